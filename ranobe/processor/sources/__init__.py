from .base import ContentSource
from .factory import SourceRegistry, UnsupportedSourceError
from .html_source import HtmlFileSource
from .text_source import TextFileSource

__all__ = [
    "ContentSource",
    "SourceRegistry",
    "UnsupportedSourceError",
    "HtmlFileSource",
    "TextFileSource",
]
