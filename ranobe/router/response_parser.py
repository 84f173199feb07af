# router/response_parser.py
import json
import logging
import re
from typing import Optional

from ranobe.router.errors import ServiceError

logger = logging.getLogger(__name__)

# Captura el contenido de bloques ```html ... ``` o ``` ... ```
_MARKDOWN_FENCE_RE = re.compile(
    r"^```[a-zA-Z]*\s*\n(.*?)\n?```\s*$",
    re.DOTALL,
)


def parse_model_response(raw_text: Optional[str], model_name: str) -> str:
    """
    Extrae el texto transformado de la respuesta del modelo.

    Estrategia con degradación progresiva:
    1. Texto plano (el camino feliz)
    2. Texto envuelto en un bloque markdown
    3. Objeto JSON con clave "text" (algunos modelos insisten en JSON)

    Lanza ServiceError si no queda texto utilizable.
    """
    text = (raw_text or "").strip()

    match = _MARKDOWN_FENCE_RE.match(text)
    if match:
        logger.warning(
            "%s envolvió la respuesta en markdown — considera reforzar el prompt",
            model_name,
        )
        text = match.group(1).strip()

    if text.startswith("{") and text.endswith("}"):
        extracted = _try_extract_json_text(text)
        if extracted is not None:
            logger.warning("%s devolvió JSON en lugar de texto plano", model_name)
            text = extracted

    if not text:
        raise ServiceError(f"{model_name} devolvió una respuesta vacía")

    return text


def _try_extract_json_text(text: str) -> Optional[str]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    value = data.get("text") or data.get("result") or data.get("content")
    return str(value).strip() if value else None
