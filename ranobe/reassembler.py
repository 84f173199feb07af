# ranobe/reassembler.py
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ranobe.processor.models import Document, Segment, SegmentState

logger = logging.getLogger(__name__)

_MARKERS = {
    SegmentState.PENDING:    "[⏳ PENDIENTE]",
    SegmentState.PROCESSING: "[⏳ PROCESANDO]",
}
_ERROR_MARKER = "[⚠ ERROR: {kind}]"


@dataclass(frozen=True)
class RenderedSegment:
    index:  int
    state:  SegmentState
    text:   str
    marker: Optional[str] = None   # None si el segmento está DONE


class Reassembler:
    """
    Responsabilidad única: producir la vista viva del capítulo a partir del
    estado de sus segmentos, en orden de índice.

    No modifica nada: se puede llamar en cualquier momento mientras el resto
    de segmentos sigue en vuelo.
    """

    def render(self, document: Document) -> list[RenderedSegment]:
        return [self._render_segment(s) for s in sorted(document.segments, key=lambda s: s.index)]

    def render_text(self, document: Document, markers: bool = True) -> str:
        """
        Texto completo del capítulo. Con todos los segmentos DONE es
        exactamente la concatenación de sus resultados en orden.
        """
        parts: list[str] = []
        for rendered in self.render(document):
            if markers and rendered.marker:
                parts.append(f"{rendered.marker}\n")
            parts.append(rendered.text)
        return "".join(parts)

    def write(self, document: Document, output_path: Path, markers: bool = True) -> Path:
        """Escribe la vista actual en UTF-8 y devuelve la ruta."""
        if not document.segments:
            raise ValueError(f"El documento {document.id} no tiene segmentos")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.render_text(document, markers=markers), encoding="utf-8")

        logger.info(
            "Output escrito en: %s (%d/%d segmentos mejorados)",
            output_path, document.count(SegmentState.DONE), len(document.segments),
        )
        return output_path

    @staticmethod
    def _render_segment(segment: Segment) -> RenderedSegment:
        """
        DONE → resultado mejorado.
        Cualquier otro estado → texto original con una marca visible.
        """
        if segment.state == SegmentState.DONE and segment.result_text is not None:
            return RenderedSegment(index=segment.index, state=segment.state, text=segment.result_text)

        if segment.state == SegmentState.ERROR:
            kind   = segment.error_info.kind.value if segment.error_info else "desconocido"
            marker = _ERROR_MARKER.format(kind=kind)
        else:
            marker = _MARKERS.get(segment.state, _MARKERS[SegmentState.PENDING])

        return RenderedSegment(
            index  = segment.index,
            state  = segment.state,
            text   = segment.source_text,
            marker = marker,
        )
