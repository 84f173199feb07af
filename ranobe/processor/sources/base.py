from abc import ABC, abstractmethod

from ranobe.processor.models import RawContent


class ContentSource(ABC):
    """
    Capacidad de extracción: convierte un localizador (ruta, URL) en el
    texto de un capítulo. El pipeline solo depende de esta interfaz, nunca
    de las fuentes concretas.
    """

    @abstractmethod
    def can_handle(self, locator: str) -> bool:
        """Devuelve True si la fuente puede manejar el localizador."""
        raise NotImplementedError

    @abstractmethod
    def extract(self, locator: str) -> RawContent:
        """Extrae el capítulo y devuelve un RawContent limpio."""
        raise NotImplementedError

    @staticmethod
    def _read_file(file_path: str) -> str:
        """Lee el archivo intentando UTF-8 primero, latin-1 como fallback."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return f.read()
        except UnicodeDecodeError:
            with open(file_path, 'r', encoding='latin-1') as f:
                return f.read()
