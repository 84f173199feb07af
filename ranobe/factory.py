# ranobe/factory.py
from typing import Optional

from ranobe.config import load_pipeline_config
from ranobe.dispatch.dispatcher import Dispatcher, UpdateCallback
from ranobe.pipeline import EnhancementPipeline
from ranobe.processor.segmenter.segmenter import Segmenter
from ranobe.processor.sources.factory import SourceRegistry
from ranobe.reassembler import Reassembler
from ranobe.router.base import TransformClient
from ranobe.router.claude import ClaudeAdapter
from ranobe.router.config_loader import load_model_configs, read_config_file
from ranobe.router.gemini import GeminiAdapter
from ranobe.router.models import ModelConfig
from ranobe.router.router import Router
from ranobe.storage.cache import SegmentCache
from ranobe.storage.repository import SqliteStore
from ranobe.summary.coordinator import GroupedSummaryCoordinator


_ADAPTERS = {
    "claude": ClaudeAdapter,
    "gemini": GeminiAdapter,
}


def build_pipeline(
    db_path:     Optional[str]             = None,
    config_path: Optional[str]             = None,
    raw_config:  Optional[dict]            = None,
    client:      Optional[TransformClient] = None,
    on_update:   Optional[UpdateCallback]  = None,
    **overrides,
) -> EnhancementPipeline:
    """
    Ensambla el EnhancementPipeline con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.

    overrides: valores de PipelineConfig que sustituyen a los del YAML
    (los flags de la CLI). Los None se ignoran.
    """
    if raw_config is None:
        raw_config = read_config_file(config_path)

    config = load_pipeline_config(raw_config, **overrides)
    if client is None:
        client = Router(_build_models(load_model_configs(raw=raw_config)))

    cache      = build_cache(db_path)
    dispatcher = Dispatcher(client, cache, config, on_update=on_update)

    return EnhancementPipeline(
        segmenter   = Segmenter(config.segmenter_config()),
        dispatcher  = dispatcher,
        coordinator = GroupedSummaryCoordinator(dispatcher, config),
        reassembler = Reassembler(),
        config      = config,
        sources     = SourceRegistry(),
    )


def build_cache(db_path: Optional[str] = None) -> SegmentCache:
    return SegmentCache(SqliteStore(db_path=db_path))


def _build_models(configs: list[ModelConfig]) -> list[TransformClient]:
    """
    Construye los adaptadores disponibles, en orden de prioridad.
    Varias entradas del mismo proveedor (p. ej. varias API keys) son
    modelos distintos para el failover. Sin api_key se omiten.
    """
    models = []

    for config in configs:
        adapter_class = _ADAPTERS.get(config.provider)
        if not adapter_class:
            print(f"[ranobe] ⚠ {config.name}: proveedor '{config.provider}' desconocido, omitiendo")
            continue
        if not config.api_key:
            print(f"[ranobe] ⚠ {config.name}: sin api_key, omitiendo")
            continue
        models.append(adapter_class(config))

    if not models:
        raise RuntimeError(
            "Ningún modelo configurado. "
            "Revisa ~/.ranobe/config.yaml y tus variables de entorno."
        )

    return models
