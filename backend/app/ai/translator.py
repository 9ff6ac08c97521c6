"""Batch machine translation using Anthropic Claude.

All texts of an import go out in a single prompt; the model answers with a
JSON object keyed by item number. Missing or malformed entries come back as
empty dicts so callers can store whatever did translate.
"""
import json
import logging
import time
from dataclasses import dataclass

from app.core.config import settings

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "en": "English",
    "ar": "Arabic",
    "ku": "Kurdish",
    "fr": "French",
}


class TranslationError(RuntimeError):
    """The translation backend is unavailable or returned nothing usable."""


@dataclass(frozen=True)
class TranslationItem:
    text: str
    field_name: str


_PROMPT = """Translate ONLY the text content (the text inside quotes) from {source} to {targets}.
DO NOT translate field names or labels (the text in square brackets).

Texts to translate:
{texts}

Return ONLY a valid JSON object where each key is the item number ("1", "2", ...)
and each value is an object mapping language codes ({codes}) to the translated text.
Example:
{{"1": {{"{first}": "translated text"}}}}
"""


# ─── Internal helpers ───

def _call_claude(prompt: str) -> tuple[str, int, int, int]:
    """Call Claude API. Returns (response_text, prompt_tokens, completion_tokens, latency_ms)."""
    import anthropic  # lazy import

    client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
    start = time.monotonic()
    message = client.messages.create(
        model=settings.ANTHROPIC_MODEL,
        max_tokens=4096,
        messages=[{"role": "user", "content": prompt}],
    )
    latency_ms = int((time.monotonic() - start) * 1000)

    response_text = message.content[0].text if message.content else ""
    prompt_tokens = message.usage.input_tokens if message.usage else 0
    completion_tokens = message.usage.output_tokens if message.usage else 0
    return response_text, prompt_tokens, completion_tokens, latency_ms


def _parse_json_response(text: str) -> dict:
    """Extract JSON from the model response, tolerating markdown fences."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        inner = [l for l in lines if not l.startswith("```")]
        text = "\n".join(inner).strip()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse translation JSON: %s — raw: %.200s", exc, text)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def build_prompt(items: list[TranslationItem], languages: list[str], source_language: str) -> str:
    texts = "\n".join(
        f'{n}. [{item.field_name}] {json.dumps(item.text, ensure_ascii=False)}'
        for n, item in enumerate(items, start=1)
    )
    return _PROMPT.format(
        source=LANGUAGE_NAMES.get(source_language, source_language),
        targets=", ".join(LANGUAGE_NAMES.get(l, l) for l in languages),
        texts=texts,
        codes=", ".join(languages),
        first=languages[0],
    )


# ─── Public API ───

def translate_batch(
    items: list[TranslationItem],
    target_languages: list[str],
    source_language: str | None = None,
) -> list[dict[str, str]]:
    """Translate every item in one model call.

    Returns one {language_code: text} dict per input item, in input order.
    Raises TranslationError when no API key is configured or the call fails.
    """
    source_language = source_language or settings.TRANSLATION_SOURCE_LANGUAGE
    languages = [l for l in target_languages if l != source_language and l in LANGUAGE_NAMES]
    if not items or not languages:
        return [{} for _ in items]
    if not settings.ANTHROPIC_API_KEY:
        raise TranslationError("ANTHROPIC_API_KEY is not configured")

    prompt = build_prompt(items, languages, source_language)
    try:
        response_text, prompt_tokens, completion_tokens, latency_ms = _call_claude(prompt)
    except Exception as exc:
        raise TranslationError(f"Translation call failed: {exc}") from exc

    logger.info(
        "translate_batch: %d items → %s in %dms (%d/%d tokens)",
        len(items), languages, latency_ms, prompt_tokens, completion_tokens,
    )
    parsed = _parse_json_response(response_text)
    if not parsed:
        raise TranslationError("Translation response contained no usable JSON")

    results: list[dict[str, str]] = []
    for n in range(1, len(items) + 1):
        entry = parsed.get(str(n)) or {}
        results.append({
            lang: str(text).strip()
            for lang, text in entry.items()
            if lang in languages and isinstance(text, str) and text.strip()
        } if isinstance(entry, dict) else {})
    return results
