# router/errors.py
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Clasificación de fallos del servicio de transformación."""
    OVERSIZED_INPUT = "oversized_input"
    INVALID_INPUT   = "invalid_input"
    RATE_LIMITED    = "rate_limited"
    TIMEOUT         = "timeout"
    SERVICE_ERROR   = "service_error"


class TransformError(Exception):
    """
    Base de todos los fallos tipados del cliente de transformación.
    El Dispatcher decide si reintenta mirando `kind`, nunca el mensaje.
    """
    kind: ErrorKind = ErrorKind.SERVICE_ERROR


class OversizedInputError(TransformError):
    """El segmento supera el techo de entrada del servicio. Bug de configuración."""
    kind = ErrorKind.OVERSIZED_INPUT


class InvalidInputError(TransformError):
    """El servicio rechazó el contenido. Mismo error en cualquier modelo."""
    kind = ErrorKind.INVALID_INPUT


class RateLimitedError(TransformError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str = "", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after   # segundos sugeridos por el servicio


class TransformTimeoutError(TransformError):
    kind = ErrorKind.TIMEOUT


class ServiceError(TransformError):
    """Respuesta vacía, malformada o error 5xx del servicio."""
    kind = ErrorKind.SERVICE_ERROR


class AllModelsExhaustedError(RateLimitedError):
    """Se lanza cuando ningún modelo configurado está disponible."""
    pass


class OperationCancelledError(Exception):
    """La llamada en curso fue cancelada mediante un CancellationToken."""
    pass
