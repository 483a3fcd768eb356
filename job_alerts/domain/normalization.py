"""Coercion of loosely shaped record fields into typed values.

Posting rows arrive from a document store where several fields have drifted
between shapes over time. Each helper here collapses every known shape into the
single representation the domain models hold, so the matcher never branches on
runtime types.
"""

from typing import Any, Dict, FrozenSet, Iterable, Optional

# Spellings seen for each workplace type, keyed by canonical value
_WORKPLACE_ALIASES = {
    "on-site": {"on-site", "onsite", "on site", "presencial", "office"},
    "hybrid": {"hybrid", "híbrido", "hibrido"},
    "remote": {"remote", "remoto"},
    "unspecified": {"unspecified", "unknown", "n/a"},
}


def normalize_workplace(value: Any) -> Any:
    """Map a workplace spelling to its canonical value.

    Missing or blank values become ``"unspecified"``. Unrecognized strings are
    returned unchanged so enum validation reports them.
    """
    if value is None:
        return "unspecified"
    if not isinstance(value, str):
        return value

    lowered = value.strip().lower()
    if not lowered:
        return "unspecified"

    for canonical, spellings in _WORKPLACE_ALIASES.items():
        if lowered in spellings:
            return canonical
    return lowered


def normalize_languages(value: Any) -> Any:
    """Collapse every known ``required_languages`` shape into ``{name: level}``.

    Accepted shapes:
    - ``None``: no language requirement
    - ``["English", "Spanish"]``: names without levels
    - ``[{"English": "C1"}, "Spanish"]``: single-entry objects mixed with names
    - ``{"English": "C1", "Spanish": None}``: the canonical mapping

    A language listed without a level is still required; its level is ``None``.
    Values that fit none of these shapes are returned unchanged for the model
    validator to reject.
    """
    if value is None:
        return {}

    if isinstance(value, dict):
        return {str(name).strip(): _level(level) for name, level in value.items() if str(name).strip()}

    if isinstance(value, (list, tuple)):
        languages: Dict[str, Optional[str]] = {}
        for entry in value:
            if isinstance(entry, str):
                if entry.strip():
                    languages.setdefault(entry.strip(), None)
            elif isinstance(entry, dict):
                for name, level in entry.items():
                    if str(name).strip():
                        languages[str(name).strip()] = _level(level)
            else:
                return value
        return languages

    return value


def _level(level: Any) -> Optional[str]:
    if level is None:
        return None
    text = str(level).strip()
    return text or None


def normalize_string_set(value: Any) -> Any:
    """Turn ``None`` or a sequence of strings into a frozenset of stripped strings.

    A lone string is treated as a one-element collection.
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return _strip_all(value)
    return value


def _strip_all(values: Iterable[Any]) -> FrozenSet[Any]:
    return frozenset(v.strip() if isinstance(v, str) else v for v in values if not (isinstance(v, str) and not v.strip()))


def blank_to_none(value: Any) -> Any:
    """Empty or whitespace-only strings become ``None``."""
    if isinstance(value, str) and not value.strip():
        return None
    return value
