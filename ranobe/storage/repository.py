# storage/repository.py
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from ranobe.storage.db import get_connection, init_schema

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """
    Almacenamiento duradero mínimo que necesita la caché:
    get/set/delete sin garantías de orden.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]: ...


class SqliteStore(KeyValueStore):
    """
    Única interfaz entre el resto de la aplicación y SQLite.
    Recibe un db_path para facilitar el testing con :memory:.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        init_schema(self._conn)
        logger.debug("Store SQLite listo (%s)", db_path or "ruta por defecto")

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Upsert: la última escritura gana."""
        updated_at = datetime.now(timezone.utc).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT (key)
                DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, updated_at),
            )

    def delete(self, key: str) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> list[str]:
        rows = self._conn.execute(
            "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key ASC",
            (len(prefix), prefix),
        ).fetchall()
        return [r["key"] for r in rows]

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()
