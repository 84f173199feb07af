import os

import pytest

from ranobe.processor.models import RawContent
from ranobe.processor.sources import (
    ContentSource,
    HtmlFileSource,
    SourceRegistry,
    TextFileSource,
    UnsupportedSourceError,
)


@pytest.fixture
def registry():
    return SourceRegistry()


class TestTextFileSource:

    def test_titulo_desde_primera_linea(self, tmp_path):
        f = tmp_path / "cap.md"
        f.write_text("# Capítulo 3: La torre\n\nEl viento soplaba.", encoding="utf-8")

        content = TextFileSource().extract(str(f))

        assert content.title == "Capítulo 3: La torre"
        assert "El viento soplaba." in content.text
        assert content.site_hints is None

    def test_titulo_desde_nombre_si_primera_linea_es_prosa(self, tmp_path):
        f = tmp_path / "capitulo_7.txt"
        f.write_text("Era una noche oscura y tormentosa.\nNadie dormía.", encoding="utf-8")

        assert TextFileSource().extract(str(f)).title == "capitulo_7"

    def test_source_id_es_ruta_absoluta(self, tmp_path):
        f = tmp_path / "cap.txt"
        f.write_text("Texto.", encoding="utf-8")

        assert TextFileSource().extract(str(f)).source_id == os.path.abspath(str(f))

    def test_latin1_como_fallback(self, tmp_path):
        f = tmp_path / "cap.txt"
        f.write_bytes("Canción de otoño.".encode("latin-1"))

        assert "Canción" in TextFileSource().extract(str(f)).text


class TestHtmlFileSource:

    def test_extrae_cuerpo_sin_scripts(self, tmp_path):
        f = tmp_path / "cap.html"
        f.write_text(
            "<html><head><title>Capítulo 1 &amp; más</title>"
            "<style>p { color: red }</style></head>"
            "<body><script>track()</script><p>Hola.</p><p>Adiós.</p></body></html>",
            encoding="utf-8",
        )

        content = HtmlFileSource().extract(str(f))

        assert content.title == "Capítulo 1 & más"
        assert content.text == "<p>Hola.</p><p>Adiós.</p>"
        assert "<p>" in content.site_hints

    def test_titulo_desde_h1(self, tmp_path):
        f = tmp_path / "cap.htm"
        f.write_text("<h1>El <i>comienzo</i></h1><p>Texto.</p>", encoding="utf-8")

        assert HtmlFileSource().extract(str(f)).title == "El comienzo"


class TestSourceRegistry:

    def test_elige_fuente_por_extension(self, registry, tmp_path):
        f = tmp_path / "cap.html"
        f.write_text("<p>Hola.</p>", encoding="utf-8")

        assert registry.extract(str(f)).site_hints is not None

    def test_extension_no_soportada_lanza_error(self, registry):
        with pytest.raises(UnsupportedSourceError, match=".pdf"):
            registry.extract("/tmp/libro.pdf")

    def test_fuente_registrada_tiene_prioridad(self, registry):
        class SitioFalso(ContentSource):
            def can_handle(self, locator):
                return locator.startswith("https://novelas.example/")

            def extract(self, locator):
                return RawContent(title="Remoto", text="<p>Hola.</p>", source_id=locator)

        registry.register(SitioFalso())
        content = registry.extract("https://novelas.example/obra/capitulo-3")

        assert content.title == "Remoto"
        assert content.source_id == "https://novelas.example/obra/capitulo-3"
