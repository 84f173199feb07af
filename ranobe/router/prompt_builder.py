# router/prompt_builder.py
from typing import Optional


_ENHANCE_DEFAULT = """\
Please enhance this novel chapter translation with the following improvements:

1. Fix grammatical errors, punctuation mistakes, and spelling issues
2. Improve the narrative flow and overall readability
3. Ensure consistent character voice, tone, and gender pronouns throughout
4. Make dialogue sound more natural and conversational
5. Refine descriptions to be more vivid and engaging

Do not summarize, shorten, or omit any part of the text. Keep every event,
line of dialogue and paragraph of the original in the same order.
"""

_PERMANENT_DEFAULT = (
    "Ensure the output is formatted using only HTML paragraph tags (<p>) for each "
    "paragraph. Handle dialogue formatting with appropriate punctuation and paragraph "
    "breaks. Do not use markdown formatting in your response."
)

_SUMMARY_LONG = """\
Please generate a comprehensive summary of the provided part of a novel chapter,
ensuring the following aspects are covered:

1. Major plot points: the main sequence of events and key developments.
2. Character interactions and development: significant interactions, introductions,
   decisions and motivations.
3. Key reveals and information: crucial information revealed, secrets, abilities or
   concepts introduced, plot twists.
4. Setting and atmosphere: notable details of the setting and shifts in mood.

Summarize only the text provided. Do not speculate about events outside it.
"""

_SUMMARY_SHORT = """\
Provide a brief 2-3 paragraph summary of the provided part of a novel chapter.
Focus on the most important events and character developments.
Summarize only the text provided.
"""

_COMBINE_SUMMARIES = """\
Please combine the following partial summaries into a coherent, comprehensive
summary of the entire chapter. Keep the chronological order of the parts and do
not drop events mentioned in any of them.
"""

_SITE_HINTS_HEADER = "Site-specific formatting notes:"


def build_enhance_instructions(
    base_prompt:      Optional[str] = None,
    permanent_prompt: Optional[str] = None,
    site_hints:       Optional[str] = None,
) -> str:
    """
    Construye las instrucciones de mejora de un capítulo.

    El fragmento NO va aquí: viaja como texto de la petición. Las
    instrucciones forman parte del fingerprint de caché: cambiar el prompt
    invalida la reutilización de resultados anteriores.
    """
    return _combine_prompts(
        base_prompt or _ENHANCE_DEFAULT,
        permanent_prompt if permanent_prompt is not None else _PERMANENT_DEFAULT,
        _format_site_hints(site_hints),
    )


def build_summary_instructions(
    short:            bool          = False,
    summary_prompt:   Optional[str] = None,
    permanent_prompt: Optional[str] = None,
) -> str:
    """Instrucciones para el resumen de un grupo de segmentos (largo o corto)."""
    base = summary_prompt or (_SUMMARY_SHORT if short else _SUMMARY_LONG)
    return _combine_prompts(
        base,
        permanent_prompt if permanent_prompt is not None else _PERMANENT_DEFAULT,
    )


def build_combine_instructions(permanent_prompt: Optional[str] = None) -> str:
    return _combine_prompts(
        _COMBINE_SUMMARIES,
        permanent_prompt if permanent_prompt is not None else _PERMANENT_DEFAULT,
    )


def format_partial_summaries(summaries: list[str]) -> str:
    """Numera los resúmenes parciales para la llamada de combinación."""
    parts = [
        f"Part {i + 1}:\n{summary.strip()}"
        for i, summary in enumerate(summaries)
    ]
    return "\n\n".join(parts)


# ------------------------------------------------------------------
# Helpers internos
# ------------------------------------------------------------------

def _combine_prompts(*parts: Optional[str]) -> str:
    return "\n\n".join(p.strip() for p in parts if p and p.strip())


def _format_site_hints(site_hints: Optional[str]) -> Optional[str]:
    if not site_hints or not site_hints.strip():
        return None
    return f"{_SITE_HINTS_HEADER}\n{site_hints.strip()}"
