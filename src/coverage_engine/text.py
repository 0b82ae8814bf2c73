"""Path and text normalisation helpers shared by the engine components."""

from __future__ import annotations

import re

from src.shared.constants import AI_SCENARIO_MARKERS, IGNORED_PATH_SEGMENTS

_PARAM_COLON_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")
_VERSION_SEGMENT_RE = re.compile(r"^v\d+$", re.IGNORECASE)
_WORD_RE = re.compile(r"[a-z0-9]+")
_MARKER_RE = re.compile(
    r"\s*(?:" + "|".join(re.escape(m) for m in AI_SCENARIO_MARKERS) + r")\s*$"
)
_SEPARATORS_RE = re.compile(r"[-_.]")


def normalize_path(path: str) -> str:
    """Return *path* with one leading slash, no trailing slash and ``{param}`` placeholders.

    >>> normalize_path("customers/:id/")
    '/customers/{id}'
    """
    path = _PARAM_COLON_RE.sub(r"{\1}", path.strip())
    path = re.sub(r"/{2,}", "/", "/" + path.lstrip("/"))
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def path_segments(path: str) -> frozenset[str]:
    """Static, lower-cased resource segments of *path*.

    Parameters, version prefixes like ``v1`` and generic prefixes like
    ``api`` are dropped.
    """
    segments: set[str] = set()
    for part in normalize_path(path).split("/"):
        if not part or part.startswith("{"):
            continue
        lowered = part.lower()
        if lowered in IGNORED_PATH_SEGMENTS or _VERSION_SEGMENT_RE.match(lowered):
            continue
        segments.add(lowered)
    return frozenset(segments)


def segment_forms(segment: str) -> set[str]:
    """Singular and plural spellings of *segment*, with and without separators."""
    base = segment.lower()
    variants = {base, _SEPARATORS_RE.sub("", base), _SEPARATORS_RE.sub(" ", base)}
    forms: set[str] = set()
    for word in variants:
        forms.add(word)
        if word.endswith("ies") and len(word) > 3:
            forms.add(word[:-3] + "y")
        elif word.endswith(("ses", "xes", "ches", "shes")):
            forms.add(word[:-2])
        elif word.endswith("s") and not word.endswith("ss") and len(word) > 1:
            forms.add(word[:-1])
        elif word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
            forms.add(word[:-1] + "ies")
        else:
            forms.add(word + "s")
    return {f for f in forms if f}


def mentions_segment(text: str, segments: frozenset[str] | set[str]) -> bool:
    """True when lower-cased *text* contains any form of any segment."""
    lowered = text.lower()
    compact = _SEPARATORS_RE.sub("", lowered).replace(" ", "")
    for segment in segments:
        for form in segment_forms(segment):
            if form in lowered or form.replace(" ", "") in compact:
                return True
    return False


def strip_markers(text: str) -> str:
    """Remove a trailing generator marker and surrounding whitespace."""
    return _MARKER_RE.sub("", text).strip()


def normalize_text(text: str) -> str:
    """Collapse case, punctuation and whitespace for equality checks."""
    return " ".join(_WORD_RE.findall(strip_markers(text).lower()))


def words(text: str) -> set[str]:
    return set(_WORD_RE.findall(text.lower()))


def common_word_count(a: str, b: str) -> int:
    """Number of distinct words *a* and *b* share."""
    return len(words(a) & words(b))


def split_identifier(name: str) -> str:
    """Turn ``testCreateCustomer_returns201`` into ``create customer returns 201``."""
    name = re.sub(r"^(test|should|when)_?", "", name, flags=re.IGNORECASE)
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", name)
    name = re.sub(r"([A-Za-z])([0-9])", r"\1 \2", name)
    name = name.replace("_", " ")
    return " ".join(name.split()).lower()
