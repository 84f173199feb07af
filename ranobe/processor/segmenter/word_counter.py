import logging
import re

logger = logging.getLogger(__name__)

# Una etiqueta no puede contener otro "<" ni ">"; lo demás es texto
_TAG_RE  = re.compile(r"<[^<>]*>")
_WORD_RE = re.compile(r"\S+")

MIN_CHUNK_WORDS = 100


def mask_tags(text: str) -> str:
    """
    Sustituye cada etiqueta por espacios de la misma longitud.
    Las posiciones del texto enmascarado coinciden con las del original,
    así que los offsets de palabras valen para ambos.
    """
    return _TAG_RE.sub(lambda m: " " * len(m.group(0)), text)


def word_spans(text: str) -> list[tuple[int, int]]:
    """Rangos [inicio, fin) de cada palabra fuera de las etiquetas."""
    return [m.span() for m in _WORD_RE.finditer(mask_tags(text))]


def count_words(text: str) -> int:
    """Número de palabras ignorando markup. Las etiquetas separan palabras."""
    if not text:
        return 0
    return len(_WORD_RE.findall(mask_tags(text)))


def validate_chunk_size(value) -> int:
    """
    Sanea un tamaño de segmento introducido por el usuario.
    Valores inválidos o menores que el mínimo se sustituyen por el mínimo.
    """
    try:
        size = int(value)
    except (TypeError, ValueError):
        size = 0
    if size < MIN_CHUNK_WORDS:
        logger.warning("Tamaño de segmento %r inválido, usando el mínimo %d", value, MIN_CHUNK_WORDS)
        return MIN_CHUNK_WORDS
    return size
