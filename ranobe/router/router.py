# router/router.py
import logging
from typing import Optional

from ranobe.router.base import TransformClient
from ranobe.router.errors import (
    AllModelsExhaustedError,
    InvalidInputError,
    OversizedInputError,
    TransformError,
)
from ranobe.router.models import TransformRequest, TransformResponse

logger = logging.getLogger(__name__)

# Errores del contenido: son el mismo error en cualquier modelo
_CONTENT_ERRORS = (InvalidInputError, OversizedInputError)


class Router(TransformClient):
    """
    Decide qué modelo usar en cada llamada.
    El Dispatcher llama a Router.transform() — nunca a un adaptador directamente.

    Responsabilidades:
    - Seleccionar el modelo disponible de mayor prioridad
    - Hacer failover si el modelo falla por rate limit, timeout o servicio
    - Propagar errores de contenido (no son de disponibilidad)
    """

    def __init__(self, models: list[TransformClient]):
        # La lista ya viene ordenada por prioridad desde el config
        if not models:
            raise ValueError("El Router necesita al menos un modelo")
        self._models = models

    @property
    def name(self) -> str:
        return "router"

    def is_available(self) -> bool:
        return any(m.is_available() for m in self._models)

    async def transform(self, request: TransformRequest) -> TransformResponse:
        """
        Intenta transformar con el mejor modelo disponible.
        Si todos fallan relanza el último error tipado; si ninguno estaba
        disponible lanza AllModelsExhaustedError.
        """
        last_error: Optional[TransformError] = None

        for model in self._models:
            if not model.is_available():
                logger.info("Modelo %s no disponible (cooldown), saltando", model.name)
                continue

            try:
                logger.debug("Intentando transformación con %s", model.name)
                response = await model.transform(request)
                logger.info(
                    "Segmento transformado con %s | tokens: %d+%d",
                    model.name,
                    response.tokens_input,
                    response.tokens_output,
                )
                return response

            except _CONTENT_ERRORS as e:
                logger.error(
                    "Error de contenido en %s — no se hace failover: %s",
                    model.name, e,
                )
                raise

            except TransformError as e:
                logger.warning(
                    "Modelo %s falló (%s): %s. Pasando al siguiente.",
                    model.name, e.kind.value, e,
                )
                last_error = e
                continue

        if last_error is not None:
            raise last_error

        raise AllModelsExhaustedError("Ningún modelo disponible (todos en cooldown)")

    def available_models(self) -> list[str]:
        """Útil para logging y para la CLI."""
        return [m.name for m in self._models if m.is_available()]
