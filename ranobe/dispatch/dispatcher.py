# dispatch/dispatcher.py
import asyncio
import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Awaitable, Callable, Iterable, Optional

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential_jitter

from ranobe.config import PipelineConfig
from ranobe.dispatch.cancellation import CancellationToken
from ranobe.processor.models import Document, ErrorInfo, Segment, SegmentState, WorkUnit
from ranobe.processor.segmenter.word_counter import count_words
from ranobe.router.base import TransformClient
from ranobe.router.errors import (
    OperationCancelledError,
    OversizedInputError,
    RateLimitedError,
    ServiceError,
    TransformError,
    TransformTimeoutError,
)
from ranobe.router.models import TransformRequest
from ranobe.storage.cache import SegmentCache, compute_fingerprint

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[WorkUnit], None]

_PENDING, _PROCESSING, _DONE, _ERROR = (
    SegmentState.PENDING,
    SegmentState.PROCESSING,
    SegmentState.DONE,
    SegmentState.ERROR,
)

# Transiciones permitidas. PENDING → DONE y ERROR → DONE son aciertos de caché;
# PROCESSING → PENDING es una cancelación; DONE → PENDING es un regenerate.
_TRANSITIONS: dict[SegmentState, set[SegmentState]] = {
    _PENDING:    {_PROCESSING, _DONE},
    _PROCESSING: {_DONE, _ERROR, _PENDING},
    _ERROR:      {_PROCESSING, _PENDING, _DONE},
    _DONE:       {_PENDING, _DONE},
}


class SegmentStateError(Exception):
    """Transición de estado no permitida (p. ej. regenerar un segmento en vuelo)."""
    pass


class Dispatcher:
    """
    Lleva cada unidad de trabajo (segmento o grupo de resumen) por la máquina
    de estados PENDING → PROCESSING → {DONE | ERROR}.

    - Consulta la caché antes de gastar red (un acierto no ocupa hueco).
    - Limita las llamadas simultáneas con un semáforo.
    - Reintenta con backoff exponencial solo los fallos reintentables.
    - Un fallo se queda en su unidad: nunca cancela ni bloquea a las demás.
    """

    def __init__(
        self,
        client:    TransformClient,
        cache:     SegmentCache,
        config:    PipelineConfig,
        on_update: Optional[UpdateCallback] = None,
        sleep:     Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client     = client
        self._cache      = cache
        self._config     = config
        self._on_update  = on_update
        self._sleep      = sleep
        self._slots      = None
        self._slots_loop = None
        # Posicionales: (inicial, máximo)
        self._backoff    = wait_exponential_jitter(config.backoff_initial, config.backoff_max)

    # ------------------------------------------------------------------
    # Segmentos
    # ------------------------------------------------------------------

    async def process(
        self,
        segment:      Segment,
        instructions: str,
        token:        Optional[CancellationToken] = None,
        force_miss:   bool = False,
    ) -> Segment:
        await self.run_unit(
            segment, segment.source_text, instructions,
            token           = token,
            force_miss      = force_miss,
            check_retention = True,
        )
        return segment

    async def process_all(
        self,
        document: Document,
        token:    Optional[CancellationToken] = None,
        states:   Iterable[SegmentState] = (SegmentState.PENDING, SegmentState.ERROR),
    ) -> list[Segment]:
        """
        Despacha a la vez todos los segmentos en `states` y espera a que
        terminen. Devuelve los segmentos tratados, en orden de índice.
        """
        wanted  = set(states)
        targets = [s for s in document.segments if s.state in wanted]
        if not targets:
            return []

        logger.info(
            "Despachando %d/%d segmentos de '%s' (concurrencia %d)",
            len(targets), len(document.segments), document.title, self._config.concurrency,
        )
        await asyncio.gather(*(
            self.process(s, document.instructions, token=token) for s in targets
        ))
        return targets

    async def regenerate(
        self,
        segment:      Segment,
        instructions: str,
        token:        Optional[CancellationToken] = None,
    ) -> Segment:
        await self.regenerate_unit(
            segment, segment.source_text, instructions,
            token = token, check_retention = True,
        )
        return segment

    async def retry(
        self,
        segment:      Segment,
        instructions: str,
        token:        Optional[CancellationToken] = None,
    ) -> Segment:
        """Reintento pedido por el usuario sobre un segmento en ERROR."""
        if segment.state != _ERROR:
            raise SegmentStateError(f"{segment.label}: solo se reintenta desde ERROR ({segment.state.value})")
        segment.retry_count += 1
        return await self.process(segment, instructions, token=token)

    # ------------------------------------------------------------------
    # Unidades genéricas (también las usa el coordinador de resúmenes)
    # ------------------------------------------------------------------

    async def run_unit(
        self,
        unit:            WorkUnit,
        payload:         str,
        instructions:    str,
        token:           Optional[CancellationToken] = None,
        force_miss:      bool = False,
        check_retention: bool = False,
    ) -> WorkUnit:
        """
        Lleva una unidad hasta DONE o ERROR. Si otra ejecución ya la tiene
        en PROCESSING se devuelve sin tocarla: esa ejecución la terminará.
        """
        if unit.state == _PROCESSING:
            logger.debug("%s ya está en proceso, se omite", unit.label)
            return unit

        unit.fingerprint = compute_fingerprint(payload, instructions)

        if token is not None and token.cancelled:
            logger.debug("%s no se despacha: token cancelado", unit.label)
            return unit

        if not force_miss:
            cached = self._cache.lookup(unit.fingerprint)
            if cached is not None:
                logger.info("%s servido desde caché", unit.label)
                self._finish(unit, cached)
                return unit
            if unit.state == _DONE:
                # Ya terminado y sin entrada de caché: nada que pedir
                return unit

        self._transition(unit, _PROCESSING)

        try:
            text = await self._call_with_retries(unit, payload, instructions, token, check_retention)

        except OperationCancelledError as e:
            logger.info("%s cancelado (%s) — vuelve a PENDING", unit.label, e)
            self._transition(unit, _PENDING)
            return unit

        except asyncio.CancelledError:
            logger.info("%s cancelado — vuelve a PENDING", unit.label)
            self._transition(unit, _PENDING)
            raise

        except TransformError as e:
            self._fail(unit, e)
            return unit

        try:
            self._cache.store(unit.fingerprint, text)
        except Exception as e:
            logger.warning("No se pudo cachear %s: %s: %s", unit.label, type(e).__name__, e)

        self._finish(unit, text)
        return unit

    async def regenerate_unit(
        self,
        unit:            WorkUnit,
        payload:         str,
        instructions:    str,
        token:           Optional[CancellationToken] = None,
        check_retention: bool = False,
    ) -> WorkUnit:
        """
        Invalida la entrada de caché, reinicia retry_count y vuelve a pasar
        por el pipeline desde PENDING saltándose la caché una sola vez.
        """
        if unit.state == _PROCESSING:
            raise SegmentStateError(f"{unit.label} está en proceso — no se puede regenerar")

        self._cache.invalidate(compute_fingerprint(payload, instructions))
        unit.retry_count = 0
        if unit.state != _PENDING:
            self._transition(unit, _PENDING)

        return await self.run_unit(
            unit, payload, instructions,
            token           = token,
            force_miss      = True,
            check_retention = check_retention,
        )

    # ------------------------------------------------------------------
    # Llamada con reintentos
    # ------------------------------------------------------------------

    async def _call_with_retries(
        self,
        unit:            WorkUnit,
        payload:         str,
        instructions:    str,
        token:           Optional[CancellationToken],
        check_retention: bool,
    ) -> str:
        retrying = AsyncRetrying(
            retry        = self._should_retry,
            wait         = self._wait,
            stop         = stop_after_attempt(self._config.max_retries + 1),
            before_sleep = partial(self._before_retry, unit),
            sleep        = self._sleep,
            reraise      = True,
        )

        text = ""
        async for attempt in retrying:
            with attempt:
                text = await self._attempt(unit, payload, instructions, token, check_retention)
        return text

    async def _attempt(
        self,
        unit:            WorkUnit,
        payload:         str,
        instructions:    str,
        token:           Optional[CancellationToken],
        check_retention: bool,
    ) -> str:
        if token is not None:
            token.raise_if_cancelled()

        words = count_words(payload)
        if words > self._config.input_ceiling_words:
            raise OversizedInputError(
                f"{unit.label} tiene {words} palabras; el techo del servicio es "
                f"{self._config.input_ceiling_words}. Reduce chunk_size."
            )

        request = TransformRequest(
            text            = payload,
            instructions    = instructions,
            max_output_size = self._config.max_output_size,
        )

        async with self._slot(token):
            try:
                response = await self._call_client(request, token)
            except (TransformError, OperationCancelledError):
                raise
            except Exception as e:
                raise ServiceError(f"{type(e).__name__}: {e}") from e

        text = response.text or ""
        if not text.strip():
            raise ServiceError(f"{response.model_used} devolvió una respuesta vacía")

        if check_retention:
            self._check_retention(unit, payload, text)

        return _preserve_trailing_whitespace(payload, text.strip())

    async def _call_client(self, request: TransformRequest, token: Optional[CancellationToken]):
        """Una llamada con deadline; el token la interrumpe en cualquier momento."""
        call    = asyncio.ensure_future(self._client.transform(request))
        waiters = {call}
        cancel_wait = None
        if token is not None:
            cancel_wait = asyncio.ensure_future(token.wait())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout     = self._config.request_timeout,
                return_when = asyncio.FIRST_COMPLETED,
            )
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()
            if not call.done():
                call.cancel()

        if call in done:
            return call.result()
        if cancel_wait is not None and cancel_wait in done:
            raise OperationCancelledError(token.reason)
        raise TransformTimeoutError(
            f"Sin respuesta tras {self._config.request_timeout:.0f}s"
        )

    def _loop_slots(self) -> asyncio.Semaphore:
        """Un semáforo por event loop: cada asyncio.run de la CLI o los tests usa el suyo."""
        loop = asyncio.get_running_loop()
        if self._slots is None or self._slots_loop is not loop:
            self._slots      = asyncio.Semaphore(self._config.concurrency)
            self._slots_loop = loop
        return self._slots

    @asynccontextmanager
    async def _slot(self, token: Optional[CancellationToken]):
        """
        Ocupa un hueco de concurrencia. Mientras espera, el token puede
        cancelar la unidad sin que llegue a ocupar el hueco.
        """
        slots = self._loop_slots()
        if token is None:
            async with slots:
                yield
            return

        acquire     = asyncio.ensure_future(slots.acquire())
        cancel_wait = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({acquire, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            _drop_acquire(acquire, slots)
            raise
        finally:
            cancel_wait.cancel()

        if not acquire.done() or token.cancelled:
            _drop_acquire(acquire, slots)
            raise OperationCancelledError(token.reason)

        try:
            yield
        finally:
            slots.release()

    def _check_retention(self, unit: WorkUnit, payload: str, text: str) -> None:
        """Un segmento mejorado mucho más corto que el original es un resumen accidental."""
        source_words = count_words(payload)
        if source_words < self._config.retention_min_words:
            return
        result_words = count_words(text)
        minimum = round(source_words * self._config.min_retention_ratio)
        if result_words < minimum:
            raise ServiceError(
                f"{unit.label}: resultado demasiado corto ({result_words}/{source_words} palabras)"
            )

    # ------------------------------------------------------------------
    # Política de reintentos (callbacks de tenacity)
    # ------------------------------------------------------------------

    def _retry_budget(self, error: BaseException) -> int:
        if isinstance(error, (RateLimitedError, TransformTimeoutError)):
            return self._config.max_retries
        if isinstance(error, ServiceError):
            return min(1, self._config.max_retries)
        # Oversized, InvalidInput, cancelaciones: nunca se reintentan
        return 0

    def _should_retry(self, retry_state: RetryCallState) -> bool:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return False
        return retry_state.attempt_number <= self._retry_budget(outcome.exception())

    def _wait(self, retry_state: RetryCallState) -> float:
        delay = self._backoff(retry_state)
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, RateLimitedError) and error.retry_after:
            delay = min(max(delay, error.retry_after), self._config.backoff_max)
        return delay

    def _before_retry(self, unit: WorkUnit, retry_state: RetryCallState) -> None:
        unit.retry_count += 1
        error = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "%s falló (%s: %s). Reintento %d en %.1fs",
            unit.label, type(error).__name__, error, unit.retry_count, delay,
        )
        self._notify(unit)

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    def _transition(
        self,
        unit:        WorkUnit,
        new_state:   SegmentState,
        result_text: Optional[str] = None,
        error_info:  Optional[ErrorInfo] = None,
    ) -> None:
        """Único punto que cambia el estado: result_text solo en DONE, error_info solo en ERROR."""
        if new_state not in _TRANSITIONS[unit.state]:
            raise SegmentStateError(
                f"{unit.label}: transición {unit.state.value} → {new_state.value} no permitida"
            )
        unit.state       = new_state
        unit.result_text = result_text if new_state == _DONE else None
        unit.error_info  = error_info if new_state == _ERROR else None
        self._notify(unit)

    def _finish(self, unit: WorkUnit, text: str) -> None:
        self._transition(unit, _DONE, result_text=text)
        logger.debug("%s completado", unit.label)

    def _fail(self, unit: WorkUnit, error: TransformError) -> None:
        info = ErrorInfo(kind=error.kind, message=str(error) or type(error).__name__)
        self._transition(unit, _ERROR, error_info=info)
        logger.error(
            "%s en ERROR tras %d reintentos (%s): %s",
            unit.label, unit.retry_count, error.kind.value, error,
        )

    def _notify(self, unit: WorkUnit) -> None:
        if self._on_update is not None:
            self._on_update(unit)


def _drop_acquire(acquire: asyncio.Future, slots: asyncio.Semaphore) -> None:
    """Abandona una espera de hueco; si ya se había concedido, lo devuelve."""
    if acquire.done():
        if not acquire.cancelled() and acquire.exception() is None:
            slots.release()
    else:
        acquire.cancel()


def _preserve_trailing_whitespace(source: str, text: str) -> str:
    """
    Conserva el espacio final del segmento original para que la
    concatenación de resultados mantenga la separación entre segmentos.
    """
    trailing = source[len(source.rstrip()):]
    return text + trailing
