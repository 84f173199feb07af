import pytest

from ranobe.router.config_loader import load_model_configs, read_config_file, resolve_config_path


RAW = {
    "models": [
        {"name": "claude", "priority": 2, "api_key": "${TEST_CLAUDE_KEY}"},
        {"name": "gemini", "priority": 1, "api_key": "clave-literal", "model_id": "gemini-2.5-pro"},
        {"name": "gemini-2", "provider": "gemini", "api_key": "${TEST_GEMINI_KEY_2}"},
    ]
}


class TestLoadModelConfigs:

    def test_ordena_por_prioridad(self, monkeypatch):
        monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-test")
        configs = load_model_configs(raw=RAW)
        assert [c.name for c in configs] == ["gemini", "claude", "gemini-2"]

    def test_resuelve_variables_de_entorno(self, monkeypatch):
        monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-test")
        configs = {c.name: c for c in load_model_configs(raw=RAW)}
        assert configs["claude"].api_key == "sk-test"
        assert configs["gemini"].api_key == "clave-literal"

    def test_variable_inexistente_deja_api_key_vacia(self, monkeypatch):
        monkeypatch.delenv("TEST_GEMINI_KEY_2", raising=False)
        configs = {c.name: c for c in load_model_configs(raw=RAW)}
        assert configs["gemini-2"].api_key is None

    def test_provider_por_defecto_es_el_nombre(self):
        configs = {c.name: c for c in load_model_configs(raw=RAW)}
        assert configs["claude"].provider == "claude"
        assert configs["gemini-2"].provider == "gemini"
        assert configs["gemini"].model_id == "gemini-2.5-pro"

    def test_sin_modelos_devuelve_lista_vacia(self):
        assert load_model_configs(raw={}) == []


class TestReadConfigFile:

    def test_lee_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("pipeline:\n  chunk_size: 1500\n", encoding="utf-8")
        assert read_config_file(str(path)) == {"pipeline": {"chunk_size": 1500}}

    def test_yaml_vacio_es_dict_vacio(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert read_config_file(str(path)) == {}

    def test_archivo_inexistente_lanza_error_con_ruta(self, tmp_path):
        missing = tmp_path / "no_existe.yaml"
        with pytest.raises(FileNotFoundError, match="no_existe.yaml"):
            read_config_file(str(missing))

    def test_variable_de_entorno_define_la_ruta(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RANOBE_CONFIG_PATH", str(tmp_path / "otra.yaml"))
        assert resolve_config_path() == tmp_path / "otra.yaml"
