import html
import os
import re

from ranobe.processor.models import RawContent
from .base import ContentSource

_SUPPORTED_EXTENSIONS = {'.html', '.htm'}

_TITLE_RE = re.compile(r'<title[^>]*>(.*?)</title>', re.IGNORECASE | re.DOTALL)
_H1_RE    = re.compile(r'<h1[^>]*>(.*?)</h1>', re.IGNORECASE | re.DOTALL)
_BODY_RE  = re.compile(r'<body[^>]*>(.*)</body>', re.IGNORECASE | re.DOTALL)
_STRIP_RE = re.compile(r'<(script|style)\b[^>]*>.*?</\1>', re.IGNORECASE | re.DOTALL)
_TAG_RE   = re.compile(r'<[^<>]*>')

_HTML_HINTS = (
    "The input is HTML. Keep one <p> element per paragraph and preserve "
    "emphasis tags (<i>, <em>, <b>, <strong>) around the same words."
)


class HtmlFileSource(ContentSource):
    """
    Fuente para capítulos guardados como HTML.
    Conserva el markup del cuerpo: el segmentador cuenta palabras fuera de
    las etiquetas y nunca corta dentro de una.
    """

    def can_handle(self, locator: str) -> bool:
        _, ext = os.path.splitext(locator)
        return ext.lower() in _SUPPORTED_EXTENSIONS

    def extract(self, locator: str) -> RawContent:
        raw  = self._read_file(locator)
        body = _BODY_RE.search(raw)
        text = _STRIP_RE.sub('', body.group(1) if body else raw).strip()

        return RawContent(
            title      = self._extract_title(raw, locator),
            text       = text,
            source_id  = os.path.abspath(locator),
            site_hints = _HTML_HINTS,
        )

    @staticmethod
    def _extract_title(raw: str, file_path: str) -> str:
        for pattern in (_TITLE_RE, _H1_RE):
            match = pattern.search(raw)
            if match:
                title = html.unescape(_TAG_RE.sub('', match.group(1))).strip()
                if title:
                    return title
        return os.path.splitext(os.path.basename(file_path))[0]
