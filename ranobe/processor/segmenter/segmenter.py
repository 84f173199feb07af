# segmenter/segmenter.py
import logging
import math
import re
from bisect import bisect_left
from typing import Optional

from .boundary import BoundarySnapper
from .models import SegmenterConfig
from .word_counter import mask_tags
from ..models import Segment

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\S+")


class Segmenter:
    """
    Divide el texto de un capítulo en segmentos ordenados que cubren todo
    el texto, sin huecos ni solapamientos.

    Reglas de tamaño (N = palabras, C = chunk_size):
      1. N < C       → un solo segmento
      2. N < 2C      → dos segmentos equilibrados (ceil(N/2), floor(N/2))
      3. en otro caso → ceil(N/C) segmentos; todos menos los dos últimos
                        tienen C palabras y el resto se reparte entre los
                        dos últimos, para no dejar un segmento final diminuto
    Después cada corte se ajusta a un límite seguro (ver BoundarySnapper).
    """

    def __init__(self, config: Optional[SegmenterConfig] = None):
        self._config  = config or SegmenterConfig()
        self._snapper = BoundarySnapper(self._config)

    @property
    def chunk_size(self) -> int:
        return self._config.chunk_size

    def plan(self, word_count: int, chunk_size: Optional[int] = None) -> list[int]:
        """Palabras por segmento antes del ajuste de cortes."""
        size = chunk_size if chunk_size is not None else self._config.chunk_size
        if size <= 0:
            raise ValueError(f"chunk_size debe ser > 0 (recibido {size})")

        n = word_count
        if n <= 0:
            return []
        if n < size:
            return [n]
        if n < 2 * size:
            sizes = [math.ceil(n / 2), n // 2]
        else:
            full  = math.ceil(n / size) - 2
            rest  = n - full * size
            sizes = [size] * full + [math.ceil(rest / 2), rest // 2]

        return [s for s in sizes if s > 0]

    def segment(self, raw_text: str, chunk_size: Optional[int] = None) -> list[Segment]:
        if not raw_text:
            return []

        masked = mask_tags(raw_text)
        starts = [m.start() for m in _WORD_RE.finditer(masked)]
        sizes  = self.plan(len(starts), chunk_size)

        if len(sizes) <= 1:
            # Incluye textos sin palabras (solo markup o espacios): un segmento
            return [self._make_segment(0, 0, len(raw_text), raw_text, starts)]

        # Índice de la primera palabra de cada segmento, salvo el primero
        cuts: list[int] = []
        consumed = 0
        for words in sizes[:-1]:
            consumed += words
            cuts.append(consumed)

        raw_offsets = [starts[c] for c in cuts]
        boundaries  = [0]

        for i, word_index in enumerate(cuts):
            upper = raw_offsets[i + 1] if i + 1 < len(cuts) else len(raw_text)
            cut = self._snapper.snap(
                raw_text, masked, starts, word_index,
                lower = boundaries[-1],
                upper = upper,
            )
            if cut <= boundaries[-1] or cut >= len(raw_text):
                logger.warning(
                    "Corte %d descartado (fuera de orden tras el ajuste); "
                    "los segmentos adyacentes se fusionan", cut,
                )
                continue
            boundaries.append(cut)

        boundaries.append(len(raw_text))

        segments = [
            self._make_segment(index, start, end, raw_text, starts)
            for index, (start, end) in enumerate(zip(boundaries, boundaries[1:]))
        ]

        logger.info(
            "Capítulo dividido en %d segmentos: %s",
            len(segments),
            ", ".join(f"[{s.index}]={s.word_count}w" for s in segments),
        )
        return segments

    @staticmethod
    def _make_segment(index: int, start: int, end: int, raw_text: str, starts: list[int]) -> Segment:
        words = bisect_left(starts, end) - bisect_left(starts, start)
        return Segment(
            index        = index,
            start_offset = start,
            end_offset   = end,
            source_text  = raw_text[start:end],
            word_count   = words,
        )
