# router/config_loader.py
import os
from pathlib import Path
from typing import Optional

import yaml

from ranobe.router.models import ModelConfig

_DEFAULT_CONFIG_PATH = Path.home() / ".ranobe" / "config.yaml"


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    return Path(config_path or os.environ.get("RANOBE_CONFIG_PATH") or _DEFAULT_CONFIG_PATH)


def read_config_file(config_path: Optional[str] = None) -> dict:
    """Lee el YAML completo. Lanza FileNotFoundError con un mensaje útil."""
    path = resolve_config_path(config_path)

    if not path.exists():
        raise FileNotFoundError(
            f"Config no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.ranobe/config.yaml"
        )

    with path.open(encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_model_configs(config_path: Optional[str] = None, raw: Optional[dict] = None) -> list[ModelConfig]:
    """
    Carga la configuración de modelos desde YAML.
    Resuelve variables de entorno en los api_key (${VAR}).
    Devuelve la lista ordenada por prioridad ascendente.
    """
    if raw is None:
        raw = read_config_file(config_path)

    configs = []
    for entry in raw.get("models", []):
        configs.append(ModelConfig(
            name             = entry["name"],
            provider         = entry.get("provider", entry["name"]),
            priority         = entry.get("priority", 99),
            api_key          = _resolve_env(entry.get("api_key")),
            model_id         = entry.get("model_id"),
            timeout_seconds  = entry.get("timeout_seconds", 60),
            temperature      = entry.get("temperature", 0.7),
            cooldown_seconds = entry.get("cooldown_seconds", 300),
        ))

    return sorted(configs, key=lambda c: c.priority)


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
