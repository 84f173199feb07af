# router/models.py
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class TransformRequest:
    text:            str
    instructions:    str
    max_output_size: int = 8192


@dataclass
class TransformResponse:
    text:          str
    model_used:    str
    tokens_input:  int = 0
    tokens_output: int = 0


@dataclass
class ModelConfig:
    """
    Configuración de un modelo individual (o de una api_key concreta).
    Se carga desde ~/.ranobe/config.yaml.
    Varias entradas del mismo provider con distinta api_key permiten
    rotar claves cuando una alcanza el rate limit.
    """
    name:              str
    provider:          str
    priority:          int
    api_key:           Optional[str] = None
    model_id:          Optional[str] = None   # None → modelo por defecto del adaptador
    timeout_seconds:   int = 60
    temperature:       float = 0.7
    cooldown_seconds:  int = 300

    # Control de cooldown temporal (no viene del YAML, es runtime)
    _unavailable_until: Optional[float] = field(
        default=None, compare=False, repr=False
    )
