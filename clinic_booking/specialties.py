"""Normalization of doctor specialty fields.

The directory hands back specialties in several shapes:

- a plain string: "Cardiology" or "Cardiology, Internal Medicine"
- a list: ["Cardiology", "Internal Medicine"]
- a JSON-encoded list: '["Cardiology","Internal Medicine"]'
- a list whose items are fragments of a JSON list that was split on commas:
  ['["Cardiology"', '"Internal Medicine"]']

classify_specialties() tags the raw value once and normalize_specialties()
turns every shape into the same ordered, de-duplicated list of names.
"""
import json
from enum import Enum
from typing import Any, List, Tuple


class SpecialtyEncoding(str, Enum):
    """Shape of a raw specialty value."""
    EMPTY = "empty"
    PLAIN = "plain"  # Comma separated string
    JSON_LIST = "json_list"  # String holding a JSON array
    LIST = "list"


def classify_specialties(raw: Any) -> Tuple[SpecialtyEncoding, Any]:
    """
    Tag a raw specialty value with its encoding.

    Returns:
        (encoding, payload) where payload is the value to normalize
    """
    if raw is None:
        return SpecialtyEncoding.EMPTY, None

    if isinstance(raw, (list, tuple)):
        if not raw:
            return SpecialtyEncoding.EMPTY, None
        return SpecialtyEncoding.LIST, list(raw)

    text = str(raw).strip()
    if not text:
        return SpecialtyEncoding.EMPTY, None
    if text.startswith("["):
        return SpecialtyEncoding.JSON_LIST, text
    return SpecialtyEncoding.PLAIN, text


def normalize_specialties(raw: Any) -> List[str]:
    """
    Normalize a raw specialty value into an ordered list of names.

    Args:
        raw: Value as received from the directory

    Returns:
        Specialty names, trimmed, empty entries dropped, first occurrence kept

    Example:
        >>> normalize_specialties('["Cardiology", "Hypertension"]')
        ['Cardiology', 'Hypertension']
    """
    encoding, payload = classify_specialties(raw)

    if encoding == SpecialtyEncoding.EMPTY:
        return []
    if encoding == SpecialtyEncoding.PLAIN:
        return _dedupe(payload.split(","))
    if encoding == SpecialtyEncoding.JSON_LIST:
        return _parse_json_list(payload)

    # LIST: items may already be clean names or fragments of a JSON array
    items = [str(item) for item in payload if item is not None]
    if any("[" in item or "]" in item or '"' in item for item in items):
        return _parse_json_list(",".join(items))
    return _dedupe(items)


def specialty_label(specialties: List[str], default: str) -> str:
    """Display label for a normalized specialty list."""
    return ", ".join(specialties) if specialties else default


def _parse_json_list(text: str) -> List[str]:
    try:
        parsed = json.loads(text)
    except ValueError:
        # Broken JSON: strip brackets and quotes and split on commas
        cleaned = text.replace("[", "").replace("]", "").replace('"', "")
        return _dedupe(cleaned.split(","))

    if isinstance(parsed, list):
        return _dedupe(str(item) for item in parsed if item is not None)
    return _dedupe([str(parsed)])


def _dedupe(names) -> List[str]:
    result = []
    for name in names:
        name = name.strip()
        if name and name not in result:
            result.append(name)
    return result
