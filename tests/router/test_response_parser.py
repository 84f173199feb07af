import pytest

from ranobe.router.errors import ServiceError
from ranobe.router.response_parser import parse_model_response


class TestResponseParser:

    def test_texto_plano_se_devuelve_sin_espacios_extremos(self):
        assert parse_model_response("  <p>Hola mundo</p>\n", "test_model") == "<p>Hola mundo</p>"

    def test_bloque_markdown_con_lenguaje(self):
        raw = "```html\n<p>Texto</p>\n```"
        assert parse_model_response(raw, "test_model") == "<p>Texto</p>"

    def test_bloque_markdown_sin_lenguaje(self):
        raw = "```\n<p>Texto</p>\n```"
        assert parse_model_response(raw, "test_model") == "<p>Texto</p>"

    def test_json_con_clave_text(self):
        raw = '{"text": "<p>Texto</p>"}'
        assert parse_model_response(raw, "test_model") == "<p>Texto</p>"

    def test_json_en_bloque_markdown(self):
        raw = '```json\n{"result": "Resultado"}\n```'
        assert parse_model_response(raw, "test_model") == "Resultado"

    def test_llaves_que_no_son_json_se_conservan(self):
        raw = "{Nota del autor} El capítulo continúa. {fin}"
        assert parse_model_response(raw, "test_model") == raw

    @pytest.mark.parametrize("raw", ["", "   \n", None, "```\n\n```"])
    def test_respuesta_vacia_lanza_service_error(self, raw):
        with pytest.raises(ServiceError):
            parse_model_response(raw, "test_model")
