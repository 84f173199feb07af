# ranobe/config.py
import logging
from dataclasses import dataclass, fields, replace
from typing import Optional

from ranobe.processor.segmenter.models import SegmenterConfig

logger = logging.getLogger(__name__)

_SUMMARY_INPUTS = {"result", "source"}


@dataclass(frozen=True)
class PipelineConfig:
    """
    Configuración inmutable del pipeline.
    Se construye una vez (YAML + flags de la CLI) y se pasa explícitamente
    al Segmenter, Dispatcher y Coordinator; nunca se lee de estado global.
    """
    # Segmentación
    chunk_size:      int = 3000
    lookahead_chars: int = 300

    # Dispatch
    concurrency:     int   = 2
    max_retries:     int   = 3
    request_timeout: float = 120.0   # segundos por llamada
    backoff_initial: float = 2.0
    backoff_max:     float = 60.0
    max_output_size: int   = 8192

    # Techo de entrada del servicio, en palabras
    input_ceiling_words: int = 20000

    # Guardia contra resúmenes accidentales al mejorar un segmento
    min_retention_ratio: float = 0.7
    retention_min_words: int   = 200

    # Resúmenes por grupo
    group_size:    int = 2
    summary_input: str = "result"    # "result" | "source"

    # Prompts (None → prompt por defecto)
    enhance_prompt:       Optional[str] = None
    permanent_prompt:     Optional[str] = None
    summary_prompt:       Optional[str] = None
    short_summary_prompt: Optional[str] = None

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size debe ser > 0 (recibido {self.chunk_size})")
        if self.group_size < 1:
            raise ValueError(f"group_size debe ser >= 1 (recibido {self.group_size})")
        if self.concurrency < 1:
            raise ValueError(f"concurrency debe ser >= 1 (recibido {self.concurrency})")
        if self.max_retries < 0:
            raise ValueError(f"max_retries no puede ser negativo ({self.max_retries})")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout debe ser > 0 (recibido {self.request_timeout})")
        if self.summary_input not in _SUMMARY_INPUTS:
            raise ValueError(
                f"summary_input debe ser uno de {sorted(_SUMMARY_INPUTS)} "
                f"(recibido {self.summary_input!r})"
            )
        if self.chunk_size >= self.input_ceiling_words:
            logger.warning(
                "chunk_size (%d) no deja margen bajo el techo del servicio (%d palabras)",
                self.chunk_size, self.input_ceiling_words,
            )

    def segmenter_config(self) -> SegmenterConfig:
        return SegmenterConfig(
            chunk_size      = self.chunk_size,
            lookahead_chars = self.lookahead_chars,
        )

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """Copia con los valores no-None sustituidos (flags de la CLI)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def load_pipeline_config(raw: Optional[dict] = None, **overrides) -> PipelineConfig:
    """
    Construye la configuración desde la sección `pipeline:` del YAML.
    Las claves desconocidas se ignoran con un aviso.
    """
    section = (raw or {}).get("pipeline") or {}
    known   = {f.name for f in fields(PipelineConfig)}

    unknown = sorted(set(section) - known)
    if unknown:
        logger.warning("Claves de pipeline desconocidas ignoradas: %s", ", ".join(unknown))

    config = PipelineConfig(**{k: v for k, v in section.items() if k in known})
    return config.with_overrides(**overrides)
