from .segmenter import Segmenter
from .models import SegmenterConfig
from .word_counter import count_words, validate_chunk_size, MIN_CHUNK_WORDS

__all__ = [
    "Segmenter",
    "SegmenterConfig",
    "count_words",
    "validate_chunk_size",
    "MIN_CHUNK_WORDS",
]
