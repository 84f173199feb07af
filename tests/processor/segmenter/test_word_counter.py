import pytest

from ranobe.processor.segmenter import MIN_CHUNK_WORDS, count_words, validate_chunk_size
from ranobe.processor.segmenter.word_counter import mask_tags, word_spans


class TestCountWords:

    def test_texto_plano(self):
        assert count_words("Hola mundo cruel") == 3

    def test_etiquetas_no_cuentan_como_palabras(self):
        assert count_words("<p>Hola <em>mundo</em></p>") == 2

    def test_etiqueta_separa_palabras(self):
        assert count_words("Hola<br>mundo") == 2

    def test_vacio_y_espacios(self):
        assert count_words("") == 0
        assert count_words("  \n\t ") == 0

    def test_atributos_con_espacios_no_cuentan(self):
        assert count_words('<p class="a b c">uno</p>') == 1


class TestMaskTags:

    def test_conserva_longitud_y_offsets(self):
        text = "<p>Hola</p>"
        masked = mask_tags(text)
        assert len(masked) == len(text)
        assert masked[3:7] == "Hola"

    def test_word_spans_apuntan_al_texto_original(self):
        text = "<b>uno</b> dos"
        spans = word_spans(text)
        assert [text[a:b] for a, b in spans] == ["uno", "dos"]


class TestValidateChunkSize:

    def test_valor_valido_se_respeta(self):
        assert validate_chunk_size(3000) == 3000

    def test_string_numerico_se_convierte(self):
        assert validate_chunk_size("1500") == 1500

    @pytest.mark.parametrize("value", [0, -5, 50, "abc", None])
    def test_valor_invalido_usa_el_minimo(self, value):
        assert validate_chunk_size(value) == MIN_CHUNK_WORDS
