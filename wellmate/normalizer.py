"""Recover structured data from free-form model output.

normalize_response() never raises. It returns, in order of preference:

  1. the parsed text itself, after stripping markdown code fences,
     when it is a JSON object or array;
  2. the first balanced top-level [...] span that parses as an array;
  3. the first balanced top-level {...} span that parses as an object;
  4. fields pulled out of labelled prose ("observations: ...",
     "建议：[...]"), using a bilingual label table;
  5. {"rawResponse": <cleaned text>} when nothing structured is recoverable.

Callers treat the result as untrusted and read it through field_str() /
field_list(), which apply per-field defaults.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

RAW_RESPONSE_KEY = "rawResponse"

Payload = dict[str, Any] | list[Any]

# field name → labels that may introduce it in prose (longest first per language)
DEFAULT_FIELD_LABELS: dict[str, tuple[str, ...]] = {
    "observations": ("observations", "观察分析", "观察"),
    "possibleCauses": ("possibleCauses", "可能的因素", "可能原因"),
    "suggestions": ("suggestions", "支持性建议", "建议"),
    "whenToSeekHelp": ("whenToSeekHelp", "何时寻求帮助", "何时咨询"),
    "severity": ("severity", "严重程度"),
    "disclaimer": ("disclaimer", "免责声明"),
}

DEFAULT_LIST_FIELDS: frozenset[str] = frozenset({"possibleCauses", "suggestions"})

_FENCE_RE = re.compile(r"```(?:json\b)?[ \t]*\n?", re.IGNORECASE)
_QUOTES = "\"'“”‘’"


def strip_code_fences(text: str) -> str:
    """Remove ``` / ```json markers, keeping whatever they enclosed."""
    return _FENCE_RE.sub("", text).strip()


def _loads(text: str) -> Any:
    """json.loads that reports failure as None instead of raising."""
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def find_balanced_span(text: str, open_char: str, close_char: str) -> str | None:
    """Return the first balanced open/close span that is not nested in the
    other bracket type, or None.

    Only matching delimiters move the depth counter; a stray closer of the
    other type never makes the outer depth negative.
    """
    other_open, other_close = ("{", "}") if open_char == "[" else ("[", "]")
    outer = 0
    depth = 0
    start = -1
    for i, ch in enumerate(text):
        if depth == 0:
            if ch == other_open:
                outer += 1
                continue
            if ch == other_close:
                outer = max(0, outer - 1)
                continue
            if ch == open_char and outer == 0:
                start = i
                depth = 1
            continue
        if ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _label_pattern(labels: dict[str, tuple[str, ...]]) -> tuple[re.Pattern, dict[str, str]]:
    lookup: dict[str, str] = {}
    for field, names in labels.items():
        for name in names:
            lookup[name.lower()] = field
    alternatives = sorted(lookup, key=len, reverse=True)
    pattern = re.compile(
        r"(?<![A-Za-z])[\"']?(" + "|".join(re.escape(a) for a in alternatives) + r")[\"']?\s*[:：]",
        re.IGNORECASE,
    )
    return pattern, lookup


def _clean_item(item: str) -> str:
    return item.strip().strip(_QUOTES).strip()


def _split_items(text: str) -> list[str]:
    items = (_clean_item(part) for part in re.split(r"[,，\n]", text))
    return [item for item in items if item]


def _parse_list_value(value: str) -> list[Any]:
    bracket = re.match(r"\s*\[([\s\S]*?)\]", value)
    if bracket:
        inner = bracket.group(1)
        parsed = _loads(f"[{inner}]")
        if isinstance(parsed, list):
            return parsed
        return _split_items(inner)
    return _split_items(value)


def _parse_scalar_value(value: str) -> str:
    return value.strip().rstrip(",").strip().strip(_QUOTES).strip()


def extract_fields(
    text: str,
    labels: dict[str, tuple[str, ...]] | None = None,
    list_fields: frozenset[str] | None = None,
) -> dict[str, Any]:
    """Pull labelled fields out of prose.

    A field's value runs from its label to the next known label (or the end
    of the text). The first occurrence of each field wins.
    """
    labels = labels if labels is not None else DEFAULT_FIELD_LABELS
    list_fields = list_fields if list_fields is not None else DEFAULT_LIST_FIELDS
    if not labels:
        return {}

    pattern, lookup = _label_pattern(labels)
    matches = list(pattern.finditer(text))
    extracted: dict[str, Any] = {}
    for idx, match in enumerate(matches):
        field = lookup[match.group(1).lower()]
        if field in extracted:
            continue
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
        value = text[match.end():end]
        if field in list_fields:
            items = _parse_list_value(value)
            if items:
                extracted[field] = items
        else:
            scalar = _parse_scalar_value(value)
            if scalar:
                extracted[field] = scalar
    return extracted


def normalize_response(
    text: Any,
    labels: dict[str, tuple[str, ...]] | None = None,
    list_fields: frozenset[str] | None = None,
) -> Payload:
    """Best-effort structured interpretation of raw model text. Never raises."""
    if not isinstance(text, str) or not text.strip():
        return {RAW_RESPONSE_KEY: ""}

    cleaned = strip_code_fences(text)

    data = _loads(cleaned)
    if isinstance(data, (dict, list)):
        return data

    span = find_balanced_span(cleaned, "[", "]")
    if span is not None:
        data = _loads(span)
        if isinstance(data, list):
            return data

    span = find_balanced_span(cleaned, "{", "}")
    if span is not None:
        data = _loads(span)
        if isinstance(data, dict):
            return data

    logger.warning("Model output is not valid JSON, attempting field extraction")
    try:
        extracted = extract_fields(cleaned, labels, list_fields)
    except re.error as e:
        logger.warning("Field label table failed to compile: %s", e)
        extracted = {}
    if extracted:
        return extracted

    return {RAW_RESPONSE_KEY: cleaned}


# ---------------------------------------------------------------------------
# Per-field access with defaults
# ---------------------------------------------------------------------------

def is_raw_response(payload: Payload) -> bool:
    return isinstance(payload, dict) and set(payload) == {RAW_RESPONSE_KEY}


def field_str(payload: Payload, name: str, default: str = "") -> str:
    if isinstance(payload, dict):
        value = payload.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default


def field_list(payload: Payload, name: str) -> list[str]:
    if isinstance(payload, dict):
        value = payload.get(name)
        if isinstance(value, list):
            return [str(v).strip() for v in value if str(v).strip()]
    return []
