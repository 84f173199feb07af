import logging
import re
from bisect import bisect_left, bisect_right
from typing import Callable, Optional

from .models import SegmenterConfig

logger = logging.getLogger(__name__)

# Inicio de etiqueta: "<p", "</div", "<!--"
_TAG_OPEN_RE = re.compile(r"<[A-Za-z/!]")
# Etiqueta de apertura completa ("<p>", "<em class=x>"); <br> cierra línea, no abre
_OPENING_TAG_RE = re.compile(r"<(?!br\b)[A-Za-z][^<>]*>", re.IGNORECASE)


class BoundarySnapper:
    """
    Ajusta un corte calculado por número de palabras al punto seguro más
    cercano dentro de la ventana configurada.

    Preferencia:
      1. fin de frase (. ! ? seguidos de espacio)
      2. fin de párrafo (línea en blanco o cierre de bloque)
      3. el corte original

    Los candidatos son siempre inicios de palabra, que nunca caen dentro de
    una etiqueta bien formada. Las etiquetas malformadas se resuelven al
    final empujando el corte más allá de su ">".
    """

    def __init__(self, config: SegmenterConfig):
        self._config       = config
        self._paragraph_re = re.compile(config.paragraph_break_pattern, re.IGNORECASE)

    def snap(
        self,
        text:       str,
        masked:     str,
        starts:     list[int],
        word_index: int,
        lower:      int,
        upper:      int,
    ) -> int:
        """
        starts:     offsets de inicio de cada palabra (ordenados).
        word_index: primera palabra del segmento siguiente; su inicio es el corte original.
        lower:      corte anterior — el resultado debe ser estrictamente mayor.
        upper:      siguiente corte original — el resultado debe ser estrictamente menor.
        """
        raw    = starts[word_index]
        window = self._config.lookahead_chars

        first = bisect_left(starts, max(lower + 1, raw - window))
        last  = bisect_right(starts, min(upper - 1, raw + window))
        candidates = starts[first:last]

        chosen = self._nearest(candidates, raw, lambda p: self._is_sentence_break(masked, p))
        if chosen is None:
            chosen = self._nearest(candidates, raw, lambda p: self._is_paragraph_break(text, masked, p))
        if chosen is None:
            logger.debug("Sin corte seguro cerca de %d, se usa el corte original", raw)
            chosen = raw

        chosen = self._retreat_over_opening_tags(text, chosen, lower)
        return self._push_past_open_tag(text, chosen)

    # ------------------------------------------------------------------
    # Helpers privados
    # ------------------------------------------------------------------

    @staticmethod
    def _nearest(candidates: list[int], raw: int, accept: Callable[[int], bool]) -> Optional[int]:
        # En empate gana el corte hacia atrás: el segmento no crece
        for p in sorted(candidates, key=lambda p: (abs(p - raw), p > raw)):
            if accept(p):
                return p
        return None

    def _is_sentence_break(self, masked: str, p: int) -> bool:
        j = p - 1
        if j < 0 or not masked[j].isspace():
            return False
        while j >= 0 and masked[j].isspace():
            j -= 1
        while j >= 0 and masked[j] in self._config.closing_chars:
            j -= 1
        return j >= 0 and masked[j] in self._config.sentence_terminators

    def _is_paragraph_break(self, text: str, masked: str, p: int) -> bool:
        j = p - 1
        while j >= 0 and masked[j].isspace():
            j -= 1
        return bool(self._paragraph_re.search(text, j + 1, p))

    def _retreat_over_opening_tags(self, text: str, p: int, lower: int) -> int:
        """
        Si justo antes del corte hay etiquetas de apertura ("</p> <p>Texto"),
        el corte retrocede hasta ellas para que viajen con su contenido.
        """
        while True:
            k = p
            while k > lower and text[k - 1].isspace():
                k -= 1
            if k <= lower or text[k - 1] != ">":
                return p
            lt = text.rfind("<", lower, k - 1)
            if lt <= lower or not _OPENING_TAG_RE.fullmatch(text, lt, k):
                return p
            p = lt

    def _push_past_open_tag(self, text: str, p: int) -> int:
        """Si p cae dentro de una etiqueta sin cerrar, lo mueve tras su '>'."""
        window = self._config.lookahead_chars
        start  = max(0, p - window)

        open_idx = -1
        for m in _TAG_OPEN_RE.finditer(text, start, p):
            open_idx = m.start()
        if open_idx == -1 or text.find(">", open_idx, p) != -1:
            return p

        close_idx = text.find(">", p, p + window)
        if close_idx == -1:
            return p

        q = close_idx + 1
        while q < len(text) and text[q].isspace():
            q += 1
        logger.debug("Corte %d dentro de etiqueta malformada, movido a %d", p, q)
        return q
