# router/base.py
import time
from abc import ABC, abstractmethod

from ranobe.router.models import ModelConfig, TransformRequest, TransformResponse


class TransformClient(ABC):
    """
    Contrato que deben cumplir todos los clientes de transformación.
    El Dispatcher y el Router solo hablan con esta interfaz.
    Nunca importan claude.py ni gemini.py directamente.
    """

    @abstractmethod
    async def transform(self, request: TransformRequest) -> TransformResponse:
        """
        Envía el texto + instrucciones al servicio y devuelve la respuesta.
        Solo lanza errores tipados de ranobe.router.errors:
        RateLimitedError, TransformTimeoutError, ServiceError,
        InvalidInputError, OversizedInputError.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """False mientras el cliente esté en cooldown. Sin latencia de red."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        ...


class CooldownMixin:
    """Cooldown temporal compartido por los adaptadores de modelos reales."""

    _config: ModelConfig

    def is_available(self) -> bool:
        if self._config._unavailable_until is not None:
            if time.time() < self._config._unavailable_until:
                return False
            self._config._unavailable_until = None  # cooldown expirado
        return True

    def _start_cooldown(self) -> None:
        self._config._unavailable_until = time.time() + self._config.cooldown_seconds
