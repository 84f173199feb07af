# ranobe/cli.py
import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from ranobe.factory import build_cache, build_pipeline
from ranobe.processor.models import SegmentState, SummaryKind, WorkUnit
from ranobe.processor.segmenter.word_counter import validate_chunk_size
from ranobe.processor.sources.factory import UnsupportedSourceError


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

# Extensiones soportadas
_SUPPORTED_FORMATS = {".txt", ".md", ".html", ".htm"}


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="ranobe")
@click.option("--verbose", "-v", is_flag=True, help="Muestra el log de depuración")
def main(verbose: bool):
    """
    ranobe — mejora progresiva de capítulos de novela.

    Divide el capítulo en segmentos, los mejora con IA de forma
    independiente y reensambla el resultado a medida que llega.
    """
    logging.basicConfig(
        level  = logging.DEBUG if verbose else logging.WARNING,
        format = "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


# ------------------------------------------------------------------
# ranobe enhance
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--input", "-i", "input_path",
    required = True,
    type     = click.Path(exists=False),   # validamos nosotros para mejor mensaje
    help     = "Capítulo a mejorar (.txt, .md, .html)",
)
@click.option(
    "--output", "-o", "output_path",
    default = None,
    type    = click.Path(),
    help    = "Archivo de salida (por defecto <nombre>_mejorado junto al original)",
)
@click.option("--chunk-size",  type=int, default=None, help="Palabras por segmento")
@click.option("--concurrency", type=int, default=None, help="Llamadas simultáneas al servicio")
@click.option("--max-retries", type=int, default=None, help="Reintentos automáticos por segmento")
@click.option("--config", "config_path", default=None, help="Ruta al config.yaml")
def enhance(input_path: str, output_path, chunk_size, concurrency, max_retries, config_path):
    """Mejora un capítulo segmento a segmento."""

    # ── Validaciones de entrada ───────────────────────────────────
    _validate_file(input_path)
    if chunk_size is not None:
        chunk_size = validate_chunk_size(chunk_size)

    # ── Ensamblar pipeline ────────────────────────────────────────
    pipeline = _build(
        config_path = config_path,
        chunk_size  = chunk_size,
        concurrency = concurrency,
        max_retries = max_retries,
    )
    document = _open(pipeline, input_path)

    # ── Ejecutar ──────────────────────────────────────────────────
    result = _run(pipeline.enhance(document))

    output = Path(output_path) if output_path else _default_output(input_path)
    written = pipeline.write(document, output)

    # ── Resumen final ─────────────────────────────────────────────
    _print_summary(result, written)


# ------------------------------------------------------------------
# ranobe summarize
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--input", "-i", "input_path",
    required = True,
    type     = click.Path(exists=False),
    help     = "Capítulo a resumir (.txt, .md, .html)",
)
@click.option("--short", is_flag=True, help="Resumen corto (2-3 párrafos por grupo)")
@click.option("--from-source", is_flag=True, help="Resume el texto original en lugar del mejorado")
@click.option("--group-size", type=int, default=None, help="Segmentos por grupo de resumen")
@click.option("--output", "-o", "output_path", default=None, type=click.Path(), help="Guarda el resumen en un archivo")
@click.option("--config", "config_path", default=None, help="Ruta al config.yaml")
def summarize(input_path: str, short: bool, from_source: bool, group_size, output_path, config_path):
    """Resume un capítulo por grupos de segmentos consecutivos."""
    _validate_file(input_path)

    pipeline = _build(
        config_path   = config_path,
        group_size    = group_size,
        summary_input = "source" if from_source else None,
    )
    document = _open(pipeline, input_path)
    kind     = SummaryKind.SHORT if short else SummaryKind.LONG

    async def _summarize():
        # Los grupos solo existen sobre segmentos terminados; los aciertos
        # de caché hacen que esto sea gratis si el capítulo ya se mejoró.
        await pipeline.enhance(document)
        groups   = await pipeline.summarize(document, kind)
        combined = await pipeline.combine_summaries(document) if kind == SummaryKind.LONG else None
        return groups, combined

    groups, combined = _run(_summarize())

    done = [g for g in groups if g.state == SegmentState.DONE]
    if not done:
        _error("No se pudo generar ningún resumen. Revisa los segmentos en error.")
        sys.exit(1)

    if combined:
        text = combined
    else:
        text = "\n\n".join(g.result_text.strip() for g in done)

    click.echo("")
    click.echo(text)

    missing = pipeline.group_count(document) - len(done)
    if missing:
        click.echo(
            click.style(f"[ranobe] ⚠ {missing} grupos sin resumen (segmentos pendientes o en error)", fg="yellow")
        )

    if output_path:
        Path(output_path).write_text(text, encoding="utf-8")
        click.echo(f"[ranobe] Resumen guardado en: {output_path}")


# ------------------------------------------------------------------
# ranobe cache
# ------------------------------------------------------------------

@main.group()
def cache():
    """Gestiona la caché de segmentos."""


@cache.command()
@click.option("--db", "db_path", default=None, help="Ruta a la base de datos SQLite")
def stats(db_path):
    """Muestra cuántos segmentos hay cacheados."""
    segment_cache = build_cache(db_path)
    click.echo(f"[ranobe] Entradas en caché: {len(segment_cache)}")


@cache.command()
@click.option("--db", "db_path", default=None, help="Ruta a la base de datos SQLite")
@click.option("--yes", "-y", is_flag=True, help="No pedir confirmación")
def clear(db_path, yes: bool):
    """Borra todos los resultados cacheados."""
    if not yes and not click.confirm("¿Borrar todos los segmentos cacheados?", default=False):
        click.echo("[ranobe] Sin cambios.")
        return

    removed = build_cache(db_path).clear()
    click.echo(f"[ranobe] {removed} entradas eliminadas")


# ------------------------------------------------------------------
# Helpers de ejecución
# ------------------------------------------------------------------

def _build(config_path=None, **overrides):
    try:
        return build_pipeline(config_path=config_path, on_update=_progress, **overrides)
    except FileNotFoundError as e:
        _abort(str(e))
    except (RuntimeError, ValueError) as e:
        _abort(str(e))


def _open(pipeline, input_path: str):
    try:
        return pipeline.open(input_path)
    except UnsupportedSourceError as e:
        _abort(str(e))


def _run(coroutine):
    try:
        return asyncio.run(coroutine)

    except KeyboardInterrupt:
        click.echo(
            "\n[ranobe] Proceso interrumpido. "
            "Ejecuta el mismo comando para continuar: los segmentos terminados están en caché."
        )
        sys.exit(0)

    except Exception as e:
        _error(f"Error inesperado: {type(e).__name__}: {e}")
        sys.exit(1)


def _progress(unit: WorkUnit) -> None:
    """Callback del Dispatcher: informa solo de los estados finales."""
    if unit.state == SegmentState.DONE:
        click.echo(f"[ranobe]   ✓ {unit.label}")
    elif unit.state == SegmentState.ERROR:
        kind = unit.error_info.kind.value if unit.error_info else "?"
        click.echo(click.style(f"[ranobe]   ✗ {unit.label} ({kind})", fg="red"))


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_file(path: str) -> None:
    """Verifica existencia y formato del archivo."""
    p = Path(path)

    if not p.exists():
        _abort(f"Archivo no encontrado: {path}")

    if not p.is_file():
        _abort(f"La ruta no es un archivo: {path}")

    if p.suffix.lower() not in _SUPPORTED_FORMATS:
        supported = ", ".join(sorted(_SUPPORTED_FORMATS))
        _abort(
            f"Formato no soportado: '{p.suffix}'\n"
            f"Formatos disponibles: {supported}"
        )


def _default_output(input_path: str) -> Path:
    p = Path(input_path)
    return p.with_name(f"{p.stem}_mejorado{p.suffix}")


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _print_summary(result, output_path: Path) -> None:
    """Imprime el resumen final del pipeline."""
    click.echo("")
    click.echo("─" * 50)
    if result.is_complete:
        click.echo("[ranobe] ✓ Capítulo completado")
    else:
        click.echo("[ranobe] ⚠ Capítulo parcial")
    click.echo(f"[ranobe]   Segmentos    : {result.total_segments}")
    click.echo(f"[ranobe]   Mejorados    : {result.done}")

    if result.failed:
        click.echo(
            click.style(
                f"[ranobe]   En error     : {result.failed} (se conserva el texto original)",
                fg="yellow",
            )
        )

    if result.pending:
        click.echo(f"[ranobe]   Pendientes   : {result.pending}")

    click.echo(f"[ranobe]   Output       : {output_path}")
    click.echo("─" * 50)


def _abort(message: str) -> None:
    """Error de validación — culpa del usuario."""
    click.echo(click.style(f"[ranobe] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema — no es culpa del usuario."""
    click.echo(click.style(f"[ranobe] {message}", fg="red"), err=True)
