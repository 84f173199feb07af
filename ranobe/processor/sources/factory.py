import os

from ranobe.processor.models import RawContent
from .base import ContentSource
from .html_source import HtmlFileSource
from .text_source import TextFileSource


class UnsupportedSourceError(Exception):
    """Se lanza cuando ninguna fuente registrada puede manejar el localizador."""
    pass


class SourceRegistry:
    """
    Registro central de fuentes de contenido.

    Uso básico:
        content = SourceRegistry().extract("/ruta/capitulo.html")

    Uso con una fuente registrada externamente (p. ej. un sitio concreto):
        registry = SourceRegistry()
        registry.register(MiSitioSource())
        content = registry.extract("https://misitio.com/novela/capitulo-3")

    Las fuentes se evalúan en orden de registro.
    La primera que responda True a can_handle() gana.
    """

    def __init__(self):
        self._sources: list[ContentSource] = [
            HtmlFileSource(),
            TextFileSource(),
        ]

    def register(self, source: ContentSource) -> None:
        """Registra una fuente adicional al inicio de la lista (mayor prioridad)."""
        self._sources.insert(0, source)

    def extract(self, locator: str) -> RawContent:
        """
        Raises:
            UnsupportedSourceError: si ninguna fuente puede manejarlo.
        """
        for source in self._sources:
            if source.can_handle(locator):
                return source.extract(locator)

        ext = os.path.splitext(locator)[1].lower() or locator
        raise UnsupportedSourceError(
            f"Fuente '{ext}' no soportada. "
            f"Formatos disponibles: .txt, .md, .html, .htm"
        )
