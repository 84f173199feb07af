from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ranobe.router.errors import ErrorKind


class SegmentState(Enum):
    PENDING    = "pending"
    PROCESSING = "processing"
    DONE       = "done"
    ERROR      = "error"


class SummaryKind(Enum):
    LONG  = "long"
    SHORT = "short"


@dataclass(frozen=True)
class ErrorInfo:
    kind:    ErrorKind
    message: str


@dataclass
class RawContent:
    """Lo que sale de cualquier ContentSource: texto del capítulo + metadata."""
    title:      str
    text:       str
    source_id:  str                   # URL o ruta — identifica el capítulo
    site_hints: Optional[str] = None  # pistas de formato específicas del sitio


@dataclass
class WorkUnit(ABC):
    """
    Estado compartido por segmentos y grupos de resumen.
    Solo el Dispatcher cambia `state`; result_text existe solo en DONE y
    error_info solo en ERROR.
    """
    state:       SegmentState        = SegmentState.PENDING
    result_text: Optional[str]       = None
    error_info:  Optional[ErrorInfo] = None
    retry_count: int                 = 0
    fingerprint: Optional[str]       = None

    @property
    @abstractmethod
    def label(self) -> str:
        ...


@dataclass
class Segment(WorkUnit):
    """Unidad de trabajo del pipeline: un rango [start_offset, end_offset) del capítulo."""
    index:        int = 0
    start_offset: int = 0
    end_offset:   int = 0
    source_text:  str = ""
    word_count:   int = 0

    @property
    def label(self) -> str:
        return f"segmento {self.index}"


@dataclass
class SummaryGroup(WorkUnit):
    """Resumen de una racha contigua de segmentos ya procesados."""
    position:        int                  = 0    # posición del grupo dentro del documento
    segment_indices: tuple[int, ...]      = ()
    kind:            SummaryKind          = SummaryKind.LONG

    @property
    def label(self) -> str:
        first, last = self.segment_indices[0], self.segment_indices[-1]
        return f"resumen {self.kind.value} [{first}-{last}]"


@dataclass
class Document:
    id:           str
    title:        str
    raw_text:     str
    instructions: str
    segments:     list[Segment] = field(default_factory=list)
    # (posición del grupo, tipo) -> SummaryGroup, creados de forma perezosa
    summary_groups: dict[tuple[int, SummaryKind], SummaryGroup] = field(default_factory=dict)

    def segment(self, index: int) -> Segment:
        try:
            return self.segments[index]
        except IndexError:
            raise IndexError(
                f"El documento {self.id} no tiene segmento {index} "
                f"({len(self.segments)} segmentos)"
            ) from None

    def count(self, state: SegmentState) -> int:
        return sum(1 for s in self.segments if s.state == state)

    @property
    def is_complete(self) -> bool:
        return bool(self.segments) and all(s.state == SegmentState.DONE for s in self.segments)
