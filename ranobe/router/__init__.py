from ranobe.router.router import Router
from ranobe.router.base import TransformClient
from ranobe.router.errors import (
    AllModelsExhaustedError,
    ErrorKind,
    InvalidInputError,
    OversizedInputError,
    RateLimitedError,
    ServiceError,
    TransformError,
    TransformTimeoutError,
)
from ranobe.router.models import ModelConfig, TransformRequest, TransformResponse
from ranobe.router.config_loader import load_model_configs

__all__ = [
    "Router",
    "TransformClient",
    "AllModelsExhaustedError",
    "ErrorKind",
    "InvalidInputError",
    "OversizedInputError",
    "RateLimitedError",
    "ServiceError",
    "TransformError",
    "TransformTimeoutError",
    "ModelConfig",
    "TransformRequest",
    "TransformResponse",
    "load_model_configs",
]
