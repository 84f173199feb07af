# summary/coordinator.py
import logging
from typing import Optional

from ranobe.config import PipelineConfig
from ranobe.dispatch.cancellation import CancellationToken
from ranobe.dispatch.dispatcher import Dispatcher
from ranobe.processor.models import Document, SegmentState, SummaryGroup, SummaryKind
from ranobe.router.prompt_builder import (
    build_combine_instructions,
    build_summary_instructions,
    format_partial_summaries,
)

logger = logging.getLogger(__name__)

_GROUP_SEPARATOR = "\n\n"


def plan_groups(segment_count: int, group_size: int) -> list[tuple[int, ...]]:
    """
    Rachas contiguas de índices que cubren cada segmento exactamente una vez.
    5 segmentos, tamaño 2 → [(0, 1), (2, 3), (4,)]
    """
    if group_size < 1:
        raise ValueError(f"group_size debe ser >= 1 (recibido {group_size})")
    return [
        tuple(range(start, min(start + group_size, segment_count)))
        for start in range(0, segment_count, group_size)
    ]


class GroupedSummaryCoordinator:
    """
    Resume el capítulo por grupos de segmentos consecutivos ya terminados.

    Cada grupo pide un resumen acotado a su propia racha, así un capítulo
    muy largo nunca se trunca contra el techo de entrada del servicio.
    Los grupos se crean de forma perezosa y se descartan cuando uno de sus
    segmentos se regenera.
    """

    def __init__(self, dispatcher: Dispatcher, config: PipelineConfig):
        self._dispatcher = dispatcher
        self._config     = config

    # ------------------------------------------------------------------
    # Planificación
    # ------------------------------------------------------------------

    def plan(self, document: Document) -> list[tuple[int, ...]]:
        return plan_groups(len(document.segments), self._config.group_size)

    def maybe_build_group(
        self,
        document: Document,
        position: int,
        kind:     SummaryKind = SummaryKind.LONG,
    ) -> Optional[SummaryGroup]:
        """
        Devuelve el grupo en `position` si todos sus segmentos están DONE,
        o None si aún no está listo. El grupo se crea una sola vez.
        """
        runs = self.plan(document)
        if not 0 <= position < len(runs):
            raise IndexError(
                f"El documento {document.id} no tiene grupo {position} ({len(runs)} grupos)"
            )

        key = (position, kind)
        existing = document.summary_groups.get(key)
        if existing is not None:
            return existing

        indices = runs[position]
        if any(document.segments[i].state != SegmentState.DONE for i in indices):
            return None

        group = SummaryGroup(position=position, segment_indices=indices, kind=kind)
        document.summary_groups[key] = group
        logger.debug("Creado %s", group.label)
        return group

    def ready_groups(self, document: Document, kind: SummaryKind = SummaryKind.LONG) -> list[SummaryGroup]:
        groups = (self.maybe_build_group(document, p, kind) for p in range(len(self.plan(document))))
        return [g for g in groups if g is not None]

    def discard_groups_for(self, document: Document, segment_index: int) -> int:
        """Descarta los grupos (de cualquier tipo) que cubren un segmento regenerado."""
        stale = [
            key for key, group in document.summary_groups.items()
            if segment_index in group.segment_indices
        ]
        for key in stale:
            del document.summary_groups[key]
        if stale:
            logger.info(
                "Descartados %d grupos de resumen por regenerar el segmento %d",
                len(stale), segment_index,
            )
        return len(stale)

    # ------------------------------------------------------------------
    # Resúmenes
    # ------------------------------------------------------------------

    async def summarize(
        self,
        document: Document,
        position: int,
        kind:     SummaryKind = SummaryKind.LONG,
        token:    Optional[CancellationToken] = None,
    ) -> Optional[SummaryGroup]:
        """
        Resume el grupo en `position`. Devuelve None si el grupo aún no está
        listo; un fallo queda en el propio grupo (state ERROR).
        """
        group = self.maybe_build_group(document, position, kind)
        if group is None:
            logger.info("Grupo %d de '%s' aún no está listo", position, document.title)
            return None
        if group.state == SegmentState.DONE:
            return group

        await self._dispatcher.run_unit(
            group, self._group_input(document, group), self._instructions(kind),
            token = token,
        )
        return group

    async def regenerate(
        self,
        document: Document,
        position: int,
        kind:     SummaryKind = SummaryKind.LONG,
        token:    Optional[CancellationToken] = None,
    ) -> Optional[SummaryGroup]:
        group = self.maybe_build_group(document, position, kind)
        if group is None:
            return None

        await self._dispatcher.regenerate_unit(
            group, self._group_input(document, group), self._instructions(kind),
            token = token,
        )
        return group

    async def combine(
        self,
        document: Document,
        token:    Optional[CancellationToken] = None,
    ) -> Optional[str]:
        """
        Une los resúmenes largos de todos los grupos en un resumen del
        capítulo completo. None mientras falte algún grupo por resumir.
        """
        runs   = self.plan(document)
        groups = [document.summary_groups.get((p, SummaryKind.LONG)) for p in range(len(runs))]
        if not groups or any(g is None or g.state != SegmentState.DONE for g in groups):
            return None
        if len(groups) == 1:
            return groups[0].result_text

        combined = SummaryGroup(
            position        = -1,
            segment_indices = tuple(range(len(document.segments))),
            kind            = SummaryKind.LONG,
        )
        await self._dispatcher.run_unit(
            combined,
            format_partial_summaries([g.result_text for g in groups]),
            build_combine_instructions(self._config.permanent_prompt),
            token = token,
        )
        if combined.state != SegmentState.DONE:
            logger.error("No se pudo combinar los resúmenes de '%s'", document.title)
            return None
        return combined.result_text

    # ------------------------------------------------------------------
    # Helpers internos
    # ------------------------------------------------------------------

    def _group_input(self, document: Document, group: SummaryGroup) -> str:
        use_source = self._config.summary_input == "source"
        parts = []
        for i in group.segment_indices:
            segment = document.segments[i]
            text = segment.source_text if use_source else segment.result_text
            parts.append((text or "").strip())
        return _GROUP_SEPARATOR.join(parts)

    def _instructions(self, kind: SummaryKind) -> str:
        short = kind == SummaryKind.SHORT
        return build_summary_instructions(
            short            = short,
            summary_prompt   = self._config.short_summary_prompt if short else self._config.summary_prompt,
            permanent_prompt = self._config.permanent_prompt,
        )
