import pytest

from ranobe.storage.repository import SqliteStore


@pytest.fixture
def store():
    """Cada test tiene su propia DB en memoria — aislada, sin cleanup."""
    s = SqliteStore(db_path=":memory:")
    yield s
    s.close()


class TestSqliteStore:

    def test_get_inexistente_devuelve_none(self, store):
        assert store.get("no_existe") is None

    def test_set_y_get(self, store):
        store.set("a", "uno")
        assert store.get("a") == "uno"

    def test_ultima_escritura_gana(self, store):
        store.set("a", "uno")
        store.set("a", "dos")
        assert store.get("a") == "dos"
        assert store.keys() == ["a"]

    def test_delete(self, store):
        store.set("a", "uno")
        store.delete("a")
        assert store.get("a") is None

    def test_delete_inexistente_no_falla(self, store):
        store.delete("fantasma")

    def test_keys_filtra_por_prefijo(self, store):
        store.set("cache:1", "x")
        store.set("cache:2", "y")
        store.set("otro:1", "z")
        assert store.keys("cache:") == ["cache:1", "cache:2"]
        assert len(store.keys()) == 3

    def test_prefijo_con_comodines_sql_es_literal(self, store):
        store.set("a_b", "x")
        store.set("axb", "y")
        assert store.keys("a_") == ["a_b"]

    def test_persiste_en_archivo(self, tmp_path):
        path = str(tmp_path / "sub" / "ranobe.db")
        first = SqliteStore(db_path=path)
        first.set("k", "v")
        first.close()

        second = SqliteStore(db_path=path)
        assert second.get("k") == "v"
        second.close()
