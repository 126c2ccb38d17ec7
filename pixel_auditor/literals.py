"""Pulling ``{...}`` object literals out of JavaScript text without a JS parser."""
import json
import re
from typing import Any, Dict, Optional

_ESCAPED_QUOTE = re.compile(r'\\\'|\\"')
_BARE_KEY = re.compile(r'([{,]\s*)([A-Za-z0-9_]+)\s*:')
_TRAILING_COMMA = re.compile(r',\s*}')
_KEY_VALUE = re.compile(r'[\'"]?([A-Za-z0-9_]+)[\'"]?\s*:\s*([\'"][^\'"]*[\'"]|[^,}]+)')
_NUMBER = re.compile(r'^-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')

_QUOTES = ("'", '"', '`')


def extract_object_literal(text: str, start_index: int = 0) -> Optional[str]:
    """Return the first balanced ``{...}`` region at or after ``start_index``.

    Braces inside '', "" or `` strings are ignored and backslash escapes are
    honoured. Returns None when there is no opening brace or the literal is
    never closed.
    """
    if not text:
        return None
    start = text.find('{', max(start_index, 0))
    if start < 0:
        return None

    depth = 0
    in_string = None
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
            continue
        if in_string:
            if ch == '\\':
                escaped = True
            elif ch == in_string:
                in_string = None
            continue
        if ch in _QUOTES:
            in_string = ch
            continue
        if ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _coerce_scalar(raw: str) -> Any:
    if raw == 'true':
        return True
    if raw == 'false':
        return False
    if raw == 'null':
        return None
    if _NUMBER.match(raw):
        number = float(raw)
        return int(number) if number.is_integer() and not any(c in raw for c in '.eE') else number
    return raw


def extract_parameters_manually(params_str: str) -> Dict[str, Any]:
    """Best-effort ``key: value`` scan for literals that are not JSON."""
    params: Dict[str, Any] = {}
    for match in _KEY_VALUE.finditer(params_str or ''):
        key = match.group(1)
        raw = (match.group(2) or '').strip()
        if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ('"', "'"):
            raw = raw[1:-1]
        params[key] = _coerce_scalar(raw)
    return params


def parse_params_object(literal: str) -> Dict[str, Any]:
    """Turn a JS object literal into a dict.

    Tries a JSON-ish normalisation first (quote bare keys, single to double
    quotes, drop trailing commas) and falls back to the manual scan.
    """
    if not literal:
        return {}
    jsonish = _ESCAPED_QUOTE.sub('"', literal)
    jsonish = jsonish.replace("'", '"')
    jsonish = _BARE_KEY.sub(r'\1"\2":', jsonish)
    jsonish = _TRAILING_COMMA.sub('}', jsonish)
    try:
        parsed = json.loads(jsonish)
    except ValueError:
        return extract_parameters_manually(literal)
    if not isinstance(parsed, dict):
        return extract_parameters_manually(literal)
    return parsed
