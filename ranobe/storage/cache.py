# storage/cache.py
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from ranobe.storage.repository import KeyValueStore

logger = logging.getLogger(__name__)

_KEY_PREFIX = "segment_cache:"


def compute_fingerprint(text: str, instructions: str) -> str:
    """
    SHA-256 del texto exacto + instrucciones activas.
    Cambiar el prompt cambia el fingerprint: la reutilización se invalida sola.
    """
    h = hashlib.sha256()
    h.update(text.encode("utf-8"))
    h.update(b"\x00")
    h.update(instructions.encode("utf-8"))
    return h.hexdigest()


class SegmentCache:
    """
    fingerprint -> resultado transformado.

    Dueña exclusiva de sus entradas: los segmentos solo recalculan el
    fingerprint para consultarlas. Así un texto idéntico en dos capítulos
    reutiliza el mismo resultado y las entradas sobreviven al documento.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store

    def lookup(self, fingerprint: str) -> Optional[str]:
        """
        Devuelve el resultado cacheado o None.
        Una entrada ilegible cuenta como fallo de caché: se borra y se
        vuelve a pedir, nunca es un error del pipeline.
        """
        raw = self._store.get(_key(fingerprint))
        if raw is None:
            return None

        result = _decode(raw)
        if result is None:
            logger.warning("Entrada de caché corrupta para %s — se descarta", fingerprint[:12])
            self._store.delete(_key(fingerprint))
            return None

        logger.debug("Cache hit %s", fingerprint[:12])
        return result

    def store(self, fingerprint: str, result_text: str) -> None:
        """Idempotente: guardar el mismo valor dos veces no reescribe la entrada."""
        existing = self._store.get(_key(fingerprint))
        if existing is not None and _decode(existing) == result_text:
            return

        payload = json.dumps({
            "result_text": result_text,
            "created_at":  datetime.now(timezone.utc).isoformat(),
        })
        self._store.set(_key(fingerprint), payload)

    def invalidate(self, fingerprint: str) -> None:
        self._store.delete(_key(fingerprint))
        logger.debug("Cache invalidada %s", fingerprint[:12])

    def clear(self) -> int:
        """Borra todas las entradas. Devuelve cuántas había."""
        keys = self._store.keys(_KEY_PREFIX)
        for key in keys:
            self._store.delete(key)
        return len(keys)

    def __len__(self) -> int:
        return len(self._store.keys(_KEY_PREFIX))


def _key(fingerprint: str) -> str:
    return f"{_KEY_PREFIX}{fingerprint}"


def _decode(raw: str) -> Optional[str]:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    result = data.get("result_text")
    return result if isinstance(result, str) else None
