from dataclasses import dataclass


@dataclass(frozen=True)
class SegmenterConfig:
    """Configuración del segmentador. Centralizada y explícita."""
    chunk_size:      int = 3000   # palabras por segmento
    lookahead_chars: int = 300    # ventana de búsqueda de un corte seguro, en cada dirección

    # Terminadores de frase y cierres que pueden seguirles ("Hola." / «Hola.» / Hola.)
    sentence_terminators: str = ".!?…"
    closing_chars:        str = "\"'”’»)]"

    # Línea en blanco o cierre de elemento de bloque
    paragraph_break_pattern: str = (
        r'\n[ \t]*\n'
        r'|</(?:p|div|h[1-6]|li|blockquote|pre|section|article)\s*>'
        r'|<br\s*/?>'
    )

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size debe ser > 0 (recibido {self.chunk_size})")
        if self.lookahead_chars < 0:
            raise ValueError(f"lookahead_chars no puede ser negativo ({self.lookahead_chars})")
