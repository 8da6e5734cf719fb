from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

import jsonschema


log = logging.getLogger(__name__)


def _record(required: List[str], properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "object",
        "required": required,
        "properties": properties,
    }


_TEXT = {"type": "string"}
_OPTIONAL_TEXT = {"type": ["string", "null"]}

# Minimal shape each generated section record must have to be merged
SECTION_RECORD_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "testimonials": _record(["quote"], {"quote": _TEXT, "name": _OPTIONAL_TEXT, "title": _OPTIONAL_TEXT}),
    "team": _record(["name"], {"name": _TEXT, "role": _OPTIONAL_TEXT}),
    "portfolio": _record(
        ["title"], {"title": _TEXT, "description": _OPTIONAL_TEXT, "category": _OPTIONAL_TEXT}
    ),
    "pricing": _record(
        ["name"],
        {
            "name": _TEXT,
            "price": {"type": ["string", "number", "null"]},
            "frequency": _OPTIONAL_TEXT,
            "description": _OPTIONAL_TEXT,
            "features": {"type": ["array", "null"], "items": {"type": "string"}},
            "featured": {"type": ["boolean", "null"]},
        },
    ),
    "howItWorks": _record(["title"], {"title": _TEXT, "description": _OPTIONAL_TEXT}),
    "menu": _record(
        ["name"],
        {
            "name": _TEXT,
            "description": _OPTIONAL_TEXT,
            "price": {"type": ["string", "number", "null"]},
            "category": _OPTIONAL_TEXT,
        },
    ),
    "faq": _record(["question", "answer"], {"question": _TEXT, "answer": _TEXT}),
    "slideshow": _record(["title"], {"title": _TEXT, "subtitle": _OPTIONAL_TEXT, "ctaText": _OPTIONAL_TEXT}),
    "features": _record(["title"], {"title": _TEXT, "description": _OPTIONAL_TEXT}),
}

_VALIDATORS = {
    section: jsonschema.Draft202012Validator(schema) for section, schema in SECTION_RECORD_SCHEMAS.items()
}


def collect_errors(section: str, records: Any) -> List[Dict[str, str]]:
    """
    Return a list of {"path": "...", "message": "..."} error dicts for a section's records.
    Unknown sections only get the list check.
    """
    if not isinstance(records, list):
        return [{"path": section, "message": f"section '{section}' must be an array"}]
    validator = _VALIDATORS.get(section)
    if validator is None:
        return []
    errors: List[Dict[str, str]] = []
    for idx, rec in enumerate(records):
        for err in validator.iter_errors(rec):
            loc = ".".join(str(p) for p in err.path)
            path = f"{section}[{idx}]" + (f".{loc}" if loc else "")
            errors.append({"path": path, "message": str(err.message)})
    return errors


def _valid_records(section: str, records: List[Any]) -> Tuple[List[Dict[str, Any]], int]:
    validator = _VALIDATORS.get(section)
    kept: List[Dict[str, Any]] = []
    dropped = 0
    for rec in records:
        if not isinstance(rec, dict):
            dropped += 1
            continue
        if validator is not None and not validator.is_valid(rec):
            dropped += 1
            continue
        kept.append(rec)
    return kept, dropped


def clean_content_bundle(raw: Any, sections: List[str]) -> Dict[str, List[Dict[str, Any]]]:
    """Keep only requested sections whose value is a list, and only records that fit their schema."""
    if not isinstance(raw, dict):
        if raw is not None:
            log.warning("validators.bundle: expected object, got %s", type(raw).__name__)
        return {}
    bundle: Dict[str, List[Dict[str, Any]]] = {}
    for section in sections:
        records = raw.get(section)
        if records is None:
            continue
        if not isinstance(records, list):
            log.warning("validators.bundle: dropping section=%s (not a list)", section)
            continue
        kept, dropped = _valid_records(section, records)
        if dropped:
            log.info("validators.bundle: section=%s dropped %d malformed records", section, dropped)
        if kept:
            bundle[section] = kept
    return bundle
