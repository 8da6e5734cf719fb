from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple


log = logging.getLogger(__name__)


_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\r?\n?", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BAD_ESCAPE_RE = re.compile(r'\\([^"\\/bfnrtu])')
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_ALL_CONTROL_RE = re.compile(r"[\x00-\x1F\x7F]")
_SPAN_RE = re.compile(r"[\[{][\s\S]*[\]}]")
_NAME_RE = re.compile(r'"name"\s*:\s*"([^"]+)"')
_DESCRIPTION_RE = re.compile(r'"description"\s*:\s*"([^"]+)"')

_VALID_ESCAPES = frozenset('"\\/bfnrtu')


class DecodeResult(NamedTuple):
    """Outcome of :func:`lenient_decode`.

    ``ok`` is False only when every strategy failed, in which case ``value``
    is None and callers substitute their own fallback.
    """

    value: Any
    ok: bool
    strategy: str


def strip_fences(text: str) -> str:
    """Remove Markdown code-fence markers (```json / ```) and surrounding blanks."""
    return _FENCE_RE.sub("", text or "").strip()


def _balanced_json_slice(s: str) -> Optional[str]:
    """Return the first balanced {...} or [...] span, string-aware; None if it never closes."""
    in_str = False
    esc = False
    depth = 0
    start_idx = -1
    for i, ch in enumerate(s):
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            # Quotes in leading prose are not JSON strings
            if depth > 0:
                in_str = True
            continue
        if ch in "{[":
            if depth == 0:
                start_idx = i
            depth += 1
        elif ch in "}]":
            if depth > 0:
                depth -= 1
                if depth == 0 and start_idx != -1:
                    return s[start_idx : i + 1]
    return None


def _repair_strings(s: str) -> str:
    """Fix defects that live inside string literals.

    - invalid backslash escapes lose their backslash (``\\'`` -> ``'``)
    - literal newlines, carriage returns and tabs inside strings become a space
    - stray control characters anywhere become a space
    """
    out: List[str] = []
    in_str = False
    i = 0
    n = len(s)
    while i < n:
        ch = s[i]
        if in_str:
            if ch == "\\":
                nxt = s[i + 1] if i + 1 < n else ""
                if nxt and nxt in _VALID_ESCAPES:
                    out.append(ch)
                    out.append(nxt)
                    i += 2
                    continue
                # Drop the backslash, reprocess the next character normally
                i += 1
                continue
            if ch == '"':
                in_str = False
                out.append(ch)
            elif ch in "\n\r\t" or _CONTROL_RE.match(ch):
                out.append(" ")
            else:
                out.append(ch)
            i += 1
            continue
        if ch == '"':
            in_str = True
            out.append(ch)
        elif _CONTROL_RE.match(ch):
            out.append(" ")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def clean_json_response(text: str) -> str:
    """First repair pass: fences, surrounding prose, trailing commas, string defects."""
    if not text:
        return "{}"
    cleaned = strip_fences(text)
    span = _balanced_json_slice(cleaned)
    if span is not None:
        cleaned = span
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    return _repair_strings(cleaned)


def _aggressive_clean(text: str) -> Optional[str]:
    """Second pass: flatten every control character and whitespace run, then re-slice."""
    s = re.sub(r"```json\s*", "", text, flags=re.IGNORECASE)
    s = re.sub(r"```\s*", "", s)
    s = _ALL_CONTROL_RE.sub(" ", s)
    s = re.sub(r"\s+", " ", s).strip()
    m = _SPAN_RE.search(s)
    if not m:
        return None
    s = _TRAILING_COMMA_RE.sub(r"\1", m.group(0))
    return _BAD_ESCAPE_RE.sub(r"\1", s)


def _repair_truncated(text: str) -> Optional[str]:
    """Close an unterminated string and any open brackets of a cut-off payload."""
    t = strip_fences(text)
    starts = [i for i in (t.find("{"), t.find("[")) if i != -1]
    if not starts:
        return None
    t = t[min(starts) :]
    in_str = False
    esc = False
    closers: List[str] = []
    for ch in t:
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            closers.append("}")
        elif ch == "[":
            closers.append("]")
        elif ch in "}]" and closers:
            closers.pop()
    if not closers and not in_str:
        return None
    if in_str:
        t += '"'
    t = t.rstrip()
    if t.endswith(","):
        t = t[:-1]
    elif t.endswith(":"):
        t += " null"
    t += "".join(reversed(closers))
    return _repair_strings(_TRAILING_COMMA_RE.sub(r"\1", t))


def _extract_name_description_pairs(text: str) -> Optional[List[Dict[str, str]]]:
    """Last resort for {name, description} arrays: pair regex captures by position."""
    if '"name"' not in text or '"description"' not in text:
        return None
    names = _NAME_RE.findall(text)
    descriptions = _DESCRIPTION_RE.findall(text)
    items = [
        {"name": name, "description": descriptions[i] if i < len(descriptions) else ""}
        for i, name in enumerate(names)
    ]
    return items or None


_STRATEGIES: Tuple[Tuple[str, Callable[[str], Optional[str]]], ...] = (
    ("cleaned", clean_json_response),
    ("aggressive", _aggressive_clean),
    ("truncated", _repair_truncated),
)


def lenient_decode(text: Any) -> DecodeResult:
    """Decode free-form model output into JSON data without ever raising.

    Strategy chain, first success wins:
    - strict ``json.loads`` of the raw text
    - cleaned: fences stripped, first balanced span, trailing commas, string repairs
    - aggressive: all control characters and whitespace runs collapsed
    - truncated: open strings/brackets closed
    - field extraction of ``name``/``description`` pairs
    """
    if not isinstance(text, str) or not text.strip():
        return DecodeResult(None, False, "empty")
    try:
        return DecodeResult(json.loads(text), True, "strict")
    except Exception:
        pass
    for name, repair in _STRATEGIES:
        try:
            candidate = repair(text)
            if candidate is None:
                continue
            return DecodeResult(json.loads(candidate), True, name)
        except Exception as exc:
            log.debug("llm_parsing.decode: %s pass failed: %r", name, exc)
    try:
        items = _extract_name_description_pairs(text)
        if items:
            log.info("llm_parsing.decode: recovered %d items by field extraction", len(items))
            return DecodeResult(items, True, "fields")
    except Exception as exc:
        log.debug("llm_parsing.decode: field extraction failed: %r", exc)
    log.warning("llm_parsing.decode: unparsable model output: %s", text[:200].replace("\n", " "))
    return DecodeResult(None, False, "fallback")


def normalize(text: Any, fallback: Any = None) -> Any:
    """Return decoded JSON for ``text`` or ``fallback`` when nothing parses."""
    result = lenient_decode(text)
    return result.value if result.ok else fallback
