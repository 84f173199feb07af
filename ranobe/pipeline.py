# ranobe/pipeline.py
import asyncio
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ranobe.config import PipelineConfig
from ranobe.dispatch.cancellation import CancellationToken
from ranobe.dispatch.dispatcher import Dispatcher
from ranobe.processor.models import Document, RawContent, SegmentState, SummaryGroup, SummaryKind
from ranobe.processor.segmenter.segmenter import Segmenter
from ranobe.processor.sources.factory import SourceRegistry
from ranobe.reassembler import Reassembler
from ranobe.router.prompt_builder import build_enhance_instructions
from ranobe.storage.cache import compute_fingerprint
from ranobe.summary.coordinator import GroupedSummaryCoordinator

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Resultado del pipeline, lo que el CLI consume
# ------------------------------------------------------------------

@dataclass
class PipelineResult:
    document_id:    str
    total_segments: int
    done:           int
    failed:         int
    pending:        int

    @property
    def is_complete(self) -> bool:
        return self.total_segments > 0 and self.done == self.total_segments


# ------------------------------------------------------------------
# Pipeline
# ------------------------------------------------------------------

class EnhancementPipeline:
    """
    Dirige la mejora progresiva de un capítulo de extremo a extremo.
    No tiene lógica de negocio propia: coordina módulos.

    Responsabilidades:
    - Convertir el contenido extraído en un Document segmentado
    - Despachar los segmentos y mantener un token de cancelación por documento
    - Exponer regenerate / retry / summarize / restore_original
    - Delegar la vista viva al Reassembler
    """

    def __init__(
        self,
        segmenter:   Segmenter,
        dispatcher:  Dispatcher,
        coordinator: GroupedSummaryCoordinator,
        reassembler: Reassembler,
        config:      PipelineConfig,
        sources:     Optional[SourceRegistry] = None,
    ):
        self._segmenter   = segmenter
        self._dispatcher  = dispatcher
        self._coordinator = coordinator
        self._reassembler = reassembler
        self._config      = config
        self._sources     = sources or SourceRegistry()
        # document_id -> token de las ejecuciones en curso y cuántas lo comparten
        self._active:  dict[str, CancellationToken] = {}
        self._running: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Documentos
    # ------------------------------------------------------------------

    def open(self, locator: str) -> Document:
        """Extrae el capítulo con la fuente adecuada y lo segmenta."""
        return self.open_document(self._sources.extract(locator))

    def open_document(self, content: RawContent) -> Document:
        instructions = build_enhance_instructions(
            base_prompt      = self._config.enhance_prompt,
            permanent_prompt = self._config.permanent_prompt,
            site_hints       = content.site_hints,
        )
        segments = self._segmenter.segment(content.text)
        for segment in segments:
            segment.fingerprint = compute_fingerprint(segment.source_text, instructions)

        document = Document(
            id           = document_id_for(content.source_id),
            title        = content.title,
            raw_text     = content.text,
            instructions = instructions,
            segments     = segments,
        )
        logger.debug("Documento %s con instrucciones de %d caracteres", document.id[:12], len(instructions))
        self._log(f"'{document.title}': {len(segments)} segmentos")
        return document

    # ------------------------------------------------------------------
    # Mejora
    # ------------------------------------------------------------------

    async def enhance(
        self,
        document: Document,
        token:    Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """
        Despacha todos los segmentos pendientes o fallidos y espera a que se
        asienten. Los fallos quedan en su segmento; nunca se propagan aquí.
        """
        if not document.segments:
            self._log(f"'{document.title}' está vacío, nada que procesar")
            return self.result(document)

        token = self._start(document, token)
        try:
            await self._dispatcher.process_all(document, token=token)
        finally:
            self._finish(document, token)

        result = self.result(document)
        if result.is_complete:
            self._log(f"Completado: {result.done}/{result.total_segments} segmentos")
        else:
            self._log(
                f"Parcial: {result.done} mejorados, {result.failed} en error, "
                f"{result.pending} pendientes"
            )
        return result

    async def regenerate(
        self,
        document: Document,
        index:    int,
        token:    Optional[CancellationToken] = None,
    ):
        """Vuelve a pedir un segmento saltándose la caché; sus grupos de resumen se descartan."""
        segment = document.segment(index)
        self._coordinator.discard_groups_for(document, index)

        token = self._start(document, token)
        try:
            await self._dispatcher.regenerate(segment, document.instructions, token=token)
        finally:
            self._finish(document, token)
        return segment

    async def retry_failed(
        self,
        document: Document,
        token:    Optional[CancellationToken] = None,
    ) -> PipelineResult:
        failed = [s for s in document.segments if s.state == SegmentState.ERROR]
        if not failed:
            return self.result(document)

        self._log(f"Reintentando {len(failed)} segmentos en error")
        token = self._start(document, token)
        try:
            await asyncio.gather(*(
                self._dispatcher.retry(s, document.instructions, token=token) for s in failed
            ))
        finally:
            self._finish(document, token)
        return self.result(document)

    def restore_original(self, document: Document) -> str:
        """
        Cancela las llamadas en curso del documento y devuelve el texto
        original. Los segmentos en vuelo vuelven a PENDING al observar el token.
        """
        token = self._active.get(document.id)
        if token is not None:
            token.cancel("texto original restaurado")
            self._log(f"Cancelada la mejora en curso de '{document.title}'")
        return document.raw_text

    # ------------------------------------------------------------------
    # Resúmenes
    # ------------------------------------------------------------------

    async def summarize(
        self,
        document: Document,
        kind:     SummaryKind = SummaryKind.LONG,
        token:    Optional[CancellationToken] = None,
    ) -> list[SummaryGroup]:
        """Resume todos los grupos listos. Los que no lo están se omiten."""
        positions = range(self.group_count(document))

        token = self._start(document, token)
        try:
            groups = await asyncio.gather(*(
                self._coordinator.summarize(document, p, kind, token=token) for p in positions
            ))
        finally:
            self._finish(document, token)

        ready = [g for g in groups if g is not None]
        self._log(f"{len(ready)}/{len(positions)} grupos de resumen listos")
        return ready

    def group_count(self, document: Document) -> int:
        return len(self._coordinator.plan(document))

    async def combine_summaries(
        self,
        document: Document,
        token:    Optional[CancellationToken] = None,
    ) -> Optional[str]:
        token = self._start(document, token)
        try:
            return await self._coordinator.combine(document, token=token)
        finally:
            self._finish(document, token)

    # ------------------------------------------------------------------
    # Vista
    # ------------------------------------------------------------------

    def render(self, document: Document, markers: bool = True) -> str:
        return self._reassembler.render_text(document, markers=markers)

    def write(self, document: Document, output_path: Path, markers: bool = True) -> Path:
        return self._reassembler.write(document, output_path, markers=markers)

    def result(self, document: Document) -> PipelineResult:
        return PipelineResult(
            document_id    = document.id,
            total_segments = len(document.segments),
            done           = document.count(SegmentState.DONE),
            failed         = document.count(SegmentState.ERROR),
            pending        = document.count(SegmentState.PENDING) + document.count(SegmentState.PROCESSING),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _start(self, document: Document, token: Optional[CancellationToken]) -> CancellationToken:
        active = self._active.get(document.id)
        if token is None:
            token = active if active is not None and not active.cancelled else CancellationToken()
        self._active[document.id]  = token
        self._running[document.id] = self._running.get(document.id, 0) + 1
        return token

    def _finish(self, document: Document, token: CancellationToken) -> None:
        remaining = self._running.get(document.id, 1) - 1
        if remaining > 0:
            self._running[document.id] = remaining
            return
        self._running.pop(document.id, None)
        self._active.pop(document.id, None)

    @staticmethod
    def _log(message: str) -> None:
        print(f"[ranobe] {message}")


# ------------------------------------------------------------------
# Funciones de módulo
# ------------------------------------------------------------------

def document_id_for(source_id: str) -> str:
    """SHA-256 del identificador de la fuente: el mismo capítulo siempre tiene el mismo id."""
    return hashlib.sha256(source_id.encode("utf-8")).hexdigest()
