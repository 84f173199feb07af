import random

import pytest

from ranobe.processor.models import Document, ErrorInfo, Segment, SegmentState
from ranobe.reassembler import Reassembler
from ranobe.router.errors import ErrorKind


def make_document(texts: list[str]) -> Document:
    segments = [Segment(index=i, source_text=t, word_count=len(t.split())) for i, t in enumerate(texts)]
    return Document(id="doc", title="Capítulo", raw_text="".join(texts), instructions="x", segments=segments)


def mark_done(segment: Segment, text: str) -> None:
    segment.state       = SegmentState.DONE
    segment.result_text = text


@pytest.fixture
def reassembler():
    return Reassembler()


# ------------------------------------------------------------------
# Vista completa
# ------------------------------------------------------------------

def test_todo_done_es_la_concatenacion_exacta(reassembler):
    document = make_document(["a. ", "b. ", "c."])
    for segment, text in zip(document.segments, ["A. ", "B. ", "C."]):
        mark_done(segment, text)

    assert reassembler.render_text(document) == "A. B. C."


def test_nada_procesado_con_marcas_desactivadas_es_el_original(reassembler):
    document = make_document(["uno. ", "dos."])
    assert reassembler.render_text(document, markers=False) == document.raw_text


def test_orden_de_llegada_no_afecta_a_la_vista(reassembler):
    texts    = [f"s{i}. " for i in range(8)]
    expected = "".join(t.upper() for t in texts)

    for seed in range(5):
        document = make_document(texts)
        order = list(range(8))
        random.Random(seed).shuffle(order)
        for i in order:
            mark_done(document.segments[i], texts[i].upper())
        assert reassembler.render_text(document) == expected


def test_segmentos_desordenados_se_renderizan_por_indice(reassembler):
    document = make_document(["a", "b", "c"])
    document.segments.reverse()

    assert [r.index for r in reassembler.render(document)] == [0, 1, 2]


# ------------------------------------------------------------------
# Marcas
# ------------------------------------------------------------------

def test_marcas_por_estado(reassembler):
    document = make_document(["a. ", "b. ", "c. ", "d."])
    mark_done(document.segments[0], "A. ")
    document.segments[1].state = SegmentState.PROCESSING
    document.segments[2].state      = SegmentState.ERROR
    document.segments[2].error_info = ErrorInfo(kind=ErrorKind.TIMEOUT, message="lento")

    rendered = reassembler.render(document)

    assert rendered[0].marker is None
    assert rendered[1].marker == "[⏳ PROCESANDO]"
    assert rendered[2].marker == "[⚠ ERROR: timeout]"
    assert rendered[3].marker == "[⏳ PENDIENTE]"
    assert [r.text for r in rendered] == ["A. ", "b. ", "c. ", "d."]


def test_render_text_antepone_la_marca_al_original(reassembler):
    document = make_document(["a. ", "b."])
    mark_done(document.segments[1], "B.")

    assert reassembler.render_text(document) == "[⏳ PENDIENTE]\na. B."


def test_error_sin_info_usa_tipo_desconocido(reassembler):
    document = make_document(["a."])
    document.segments[0].state = SegmentState.ERROR

    assert reassembler.render(document)[0].marker == "[⚠ ERROR: desconocido]"


def test_render_no_modifica_el_documento(reassembler):
    document = make_document(["a. ", "b."])
    mark_done(document.segments[0], "A. ")

    reassembler.render_text(document)

    assert document.segments[0].state == SegmentState.DONE
    assert document.segments[1].state == SegmentState.PENDING


# ------------------------------------------------------------------
# Escritura
# ------------------------------------------------------------------

def test_write_crea_directorios_y_escribe_utf8(reassembler, tmp_path):
    document = make_document(["¡Hola! ", "Adiós."])
    for segment in document.segments:
        mark_done(segment, segment.source_text.upper())

    path = reassembler.write(document, tmp_path / "salida" / "capitulo.txt")

    assert path.read_text(encoding="utf-8") == "¡HOLA! ADIÓS."


def test_write_sin_segmentos_lanza_error(reassembler, tmp_path):
    with pytest.raises(ValueError):
        reassembler.write(make_document([]), tmp_path / "vacio.txt")
