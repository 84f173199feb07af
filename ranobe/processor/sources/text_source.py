import os

from ranobe.processor.models import RawContent
from .base import ContentSource

_SUPPORTED_EXTENSIONS = {'.txt', '.md'}


class TextFileSource(ContentSource):
    """
    Fuente para capítulos en .txt y .md.

    El título se extrae, en orden de prioridad:
      - Primera línea si parece un título (≤10 palabras, sin punto final)
      - Nombre del archivo sin extensión

    El texto se entrega completo: el título forma parte del capítulo y
    también se mejora.
    """

    def can_handle(self, locator: str) -> bool:
        _, ext = os.path.splitext(locator)
        return ext.lower() in _SUPPORTED_EXTENSIONS

    def extract(self, locator: str) -> RawContent:
        raw = self._read_file(locator)
        return RawContent(
            title     = self._extract_title(raw, locator),
            text      = raw.replace('\r\n', '\n'),
            source_id = os.path.abspath(locator),
        )

    @staticmethod
    def _extract_title(text: str, file_path: str) -> str:
        first_line = text.strip().split('\n')[0].strip().lstrip('#').strip()
        words = first_line.split()
        if words and len(words) <= 10 and not first_line.endswith('.'):
            return first_line
        return os.path.splitext(os.path.basename(file_path))[0]
