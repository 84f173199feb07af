import asyncio
import inspect
import os
import random

import pytest

from ranobe.factory import build_pipeline
from ranobe.pipeline import PipelineResult, document_id_for
from ranobe.processor.models import RawContent, SegmentState, SummaryKind
from ranobe.router.base import TransformClient
from ranobe.router.errors import InvalidInputError
from ranobe.router.models import TransformResponse
from ranobe.storage.cache import compute_fingerprint


CHAPTER = (
    "Frase uno. Frase dos. Frase tres. Frase cuatro. "
    "Frase cinco. Frase seis. Frase siete. Frase ocho."
)


# ------------------------------------------------------------------
# Fakes y fixtures
# ------------------------------------------------------------------

class FakeClient(TransformClient):
    """Pasa el texto a mayúsculas; `handler` (sync o async) permite cambiarlo."""

    def __init__(self, handler=None):
        self.calls   = []
        self.handler = handler or (lambda request: request.text.strip().upper())

    @property
    def name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return True

    async def transform(self, request):
        self.calls.append(request)
        outcome = self.handler(request)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return TransformResponse(text=outcome, model_used="fake")


def make_pipeline(client, **overrides):
    overrides.setdefault("chunk_size", 4)
    return build_pipeline(db_path=":memory:", raw_config={}, client=client, **overrides)


def make_content(text: str = CHAPTER, site_hints=None) -> RawContent:
    return RawContent(title="Capítulo 1", text=text, source_id="https://ejemplo.com/cap-1", site_hints=site_hints)


def run(coroutine):
    return asyncio.run(coroutine)


# ------------------------------------------------------------------
# open / open_document
# ------------------------------------------------------------------

class TestOpen:

    def test_open_document_segmenta_y_asigna_fingerprints(self):
        pipeline = make_pipeline(FakeClient())
        document = pipeline.open_document(make_content())

        assert document.id == document_id_for("https://ejemplo.com/cap-1")
        assert len(document.segments) > 1
        assert "".join(s.source_text for s in document.segments) == CHAPTER
        for segment in document.segments:
            assert segment.fingerprint == compute_fingerprint(segment.source_text, document.instructions)

    def test_site_hints_entran_en_las_instrucciones(self):
        pipeline = make_pipeline(FakeClient())
        document = pipeline.open_document(make_content(site_hints="Eliminar avisos del traductor"))

        assert "Eliminar avisos del traductor" in document.instructions

    def test_open_lee_un_archivo_local(self, tmp_path):
        path = tmp_path / "capitulo.txt"
        path.write_text(CHAPTER, encoding="utf-8")

        document = make_pipeline(FakeClient()).open(str(path))

        assert document.raw_text == CHAPTER
        assert document.id == document_id_for(os.path.abspath(str(path)))

    def test_document_id_es_estable(self):
        assert document_id_for("a") == document_id_for("a")
        assert document_id_for("a") != document_id_for("b")


# ------------------------------------------------------------------
# enhance
# ------------------------------------------------------------------

class TestEnhance:

    def test_todos_los_segmentos_terminan_done(self):
        client   = FakeClient()
        pipeline = make_pipeline(client)
        document = pipeline.open_document(make_content())

        result = run(pipeline.enhance(document))

        assert result.is_complete
        assert result.done == len(document.segments)
        assert len(client.calls) == len(document.segments)
        assert pipeline.render(document) == "".join(s.result_text for s in document.segments)

    def test_capitulo_vacio_no_llama_al_servicio(self):
        client   = FakeClient()
        pipeline = make_pipeline(client)
        document = pipeline.open_document(make_content(text=""))

        result = run(pipeline.enhance(document))

        assert result == PipelineResult(document.id, 0, 0, 0, 0)
        assert not result.is_complete
        assert client.calls == []

    def test_segunda_ejecucion_usa_la_cache(self):
        client   = FakeClient()
        pipeline = make_pipeline(client)

        run(pipeline.enhance(pipeline.open_document(make_content())))
        calls = len(client.calls)
        result = run(pipeline.enhance(pipeline.open_document(make_content())))

        assert result.is_complete
        assert len(client.calls) == calls

    def test_vista_final_no_depende_del_orden_de_llegada(self):
        expected_pipeline = make_pipeline(FakeClient())
        expected_document = expected_pipeline.open_document(make_content())
        run(expected_pipeline.enhance(expected_document))
        expected = expected_pipeline.render(expected_document)

        for seed in range(3):
            rng = random.Random(seed)

            async def delayed(request):
                await asyncio.sleep(rng.random() / 100)
                return request.text.strip().upper()

            pipeline = make_pipeline(FakeClient(delayed), concurrency=4)
            document = pipeline.open_document(make_content())
            run(pipeline.enhance(document))

            assert pipeline.render(document) == expected

    def test_un_fallo_no_afecta_al_resto(self):
        def handler(request):
            if "tres" in request.text:
                raise InvalidInputError("contenido bloqueado")
            return request.text.strip().upper()

        pipeline = make_pipeline(FakeClient(handler))
        document = pipeline.open_document(make_content())

        result = run(pipeline.enhance(document))

        assert result.failed == 1
        assert result.done == len(document.segments) - 1
        rendered = pipeline.render(document)
        assert "[⚠ ERROR: invalid_input]" in rendered
        assert "Frase tres." in rendered

    def test_dos_enhance_simultaneos_no_fallan(self):
        async def delayed(request):
            await asyncio.sleep(0.01)
            return request.text.strip().upper()

        client   = FakeClient(delayed)
        pipeline = make_pipeline(client)
        document = pipeline.open_document(make_content())

        async def scenario():
            return await asyncio.gather(pipeline.enhance(document), pipeline.enhance(document))

        first, _ = run(scenario())

        assert first.is_complete
        assert pipeline.result(document).is_complete
        assert len(client.calls) == len(document.segments)

    def test_write_guarda_la_vista(self, tmp_path):
        pipeline = make_pipeline(FakeClient())
        document = pipeline.open_document(make_content())
        run(pipeline.enhance(document))

        path = pipeline.write(document, tmp_path / "mejorado.txt")

        assert path.read_text(encoding="utf-8") == pipeline.render(document)


# ------------------------------------------------------------------
# retry / regenerate / restore
# ------------------------------------------------------------------

class TestUserActions:

    def test_retry_failed_recupera_los_segmentos_en_error(self):
        blocked = {"on": True}

        def handler(request):
            if blocked["on"] and "tres" in request.text:
                raise InvalidInputError("contenido bloqueado")
            return request.text.strip().upper()

        pipeline = make_pipeline(FakeClient(handler))
        document = pipeline.open_document(make_content())
        run(pipeline.enhance(document))

        blocked["on"] = False
        result = run(pipeline.retry_failed(document))

        assert result.is_complete
        assert sum(s.retry_count for s in document.segments) == 1

    def test_retry_failed_sin_errores_no_hace_nada(self):
        client   = FakeClient()
        pipeline = make_pipeline(client)
        document = pipeline.open_document(make_content())
        run(pipeline.enhance(document))
        calls = len(client.calls)

        run(pipeline.retry_failed(document))

        assert len(client.calls) == calls

    def test_regenerate_pide_de_nuevo_y_descarta_grupos(self):
        answers  = iter(["primera", "segunda"])
        client   = FakeClient()
        pipeline = make_pipeline(client, group_size=2)
        document = pipeline.open_document(make_content())
        run(pipeline.enhance(document))
        run(pipeline.summarize(document))
        assert (0, SummaryKind.LONG) in document.summary_groups

        client.handler = lambda request: next(answers)
        segment = run(pipeline.regenerate(document, 0))

        assert segment.state == SegmentState.DONE
        assert segment.result_text.strip() == "primera"
        assert (0, SummaryKind.LONG) not in document.summary_groups

    def test_regenerate_indice_inexistente_lanza_error(self):
        pipeline = make_pipeline(FakeClient())
        document = pipeline.open_document(make_content())

        with pytest.raises(IndexError):
            run(pipeline.regenerate(document, 99))

    def test_restore_original_cancela_lo_que_esta_en_vuelo(self):
        client   = FakeClient()
        pipeline = make_pipeline(client)
        document = pipeline.open_document(make_content())

        async def never(request):
            await asyncio.Event().wait()

        client.handler = never

        async def scenario():
            task = asyncio.create_task(pipeline.enhance(document))
            while not client.calls:
                await asyncio.sleep(0)
            original = pipeline.restore_original(document)
            return original, await task

        original, result = run(scenario())

        assert original == CHAPTER
        assert result.pending == len(document.segments)
        assert all(s.state == SegmentState.PENDING for s in document.segments)

        client.handler = lambda request: request.text.strip().upper()
        assert run(pipeline.enhance(document)).is_complete

    def test_restore_original_sin_ejecucion_devuelve_el_texto(self):
        pipeline = make_pipeline(FakeClient())
        document = pipeline.open_document(make_content())

        assert pipeline.restore_original(document) == CHAPTER


# ------------------------------------------------------------------
# Resúmenes
# ------------------------------------------------------------------

class TestSummaries:

    def test_summarize_antes_de_mejorar_no_devuelve_grupos(self):
        client   = FakeClient()
        pipeline = make_pipeline(client)
        document = pipeline.open_document(make_content())

        assert run(pipeline.summarize(document)) == []
        assert client.calls == []

    def test_summarize_y_combine_tras_mejorar(self):
        client   = FakeClient()
        pipeline = make_pipeline(client, group_size=1)
        document = pipeline.open_document(make_content())
        run(pipeline.enhance(document))

        client.handler = lambda request: f"resumen {len(client.calls)}"
        groups   = run(pipeline.summarize(document))
        combined = run(pipeline.combine_summaries(document))

        assert len(groups) == pipeline.group_count(document) == len(document.segments)
        assert all(g.state == SegmentState.DONE for g in groups)
        assert combined == f"resumen {len(client.calls)}"

    def test_restore_original_cancela_los_resumenes_en_vuelo(self):
        client   = FakeClient()
        pipeline = make_pipeline(client)
        document = pipeline.open_document(make_content())
        run(pipeline.enhance(document))
        enhanced = len(client.calls)

        async def never(request):
            await asyncio.Event().wait()

        client.handler = never

        async def scenario():
            task = asyncio.create_task(pipeline.summarize(document))
            while len(client.calls) == enhanced:
                await asyncio.sleep(0)
            pipeline.restore_original(document)
            return await asyncio.wait_for(task, timeout=1)

        groups = run(scenario())

        assert groups
        assert all(g.state == SegmentState.PENDING for g in groups)
        assert all(g.result_text is None for g in document.summary_groups.values())
        assert document.id not in pipeline._active
