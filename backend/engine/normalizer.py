"""
normalizer.py — The single boundary between untyped upstream payloads and
the engine's typed records.

Handles:
- Scalar coercion (blank / string / NaN / inf → None, never NaN)
- Score + max normalization
- Timestamp coercion (epoch seconds, epoch milliseconds, date strings)
- Whole section payloads → Section / Category / AssignmentRecord

Every function here is total: malformed input degrades to None or to an
empty container, nothing raises.
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from engine.models import AssignmentRecord, Category, NormalizedScore, Section


UNCATEGORIZED_INDEX = 0
UNCATEGORIZED_TITLE = "Uncategorized"

# Epoch values above this are taken to be milliseconds.
MILLISECOND_THRESHOLD = 1e12

SCORE_ALIASES = ["original_score", "score", "grade", "points", "earned"]
MAX_ALIASES = ["original_max", "max", "max_points", "max_score", "out_of"]
ID_ALIASES = ["assignment_id", "id"]
CATEGORY_ALIASES = ["category_index", "category", "grading_category", "index"]
DUE_ALIASES = ["due_timestamp", "due", "due_date"]
GRADED_ALIASES = ["graded_timestamp", "graded_at", "timestamp", "graded"]


# ── Scalars ─────────────────────────────────────────────────────────

def to_number(value: Any) -> Optional[float]:
    """Coerce to a finite float or return None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        v = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if np.isnan(v) or np.isinf(v):
        return None
    return v


def normalize(raw_score: Any, raw_max: Any) -> NormalizedScore:
    """Normalize a raw (score, max) pair into strict optional floats."""
    return NormalizedScore(score=to_number(raw_score), max=to_number(raw_max))


def normalize_timestamp(value: Any) -> Optional[float]:
    """Return epoch seconds for a number or date-like value, else None."""
    if value is None or isinstance(value, bool):
        return None
    numeric = to_number(value)
    if numeric is not None:
        return numeric / 1000.0 if abs(numeric) > MILLISECOND_THRESHOLD else numeric
    if isinstance(value, str) and not value.strip():
        return None
    try:
        ts = pd.to_datetime(value, utc=True, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if not isinstance(ts, pd.Timestamp) or pd.isna(ts):
        return None
    return float(ts.timestamp())


# ── Payloads ────────────────────────────────────────────────────────

def _pick(raw: Dict[str, Any], aliases: List[str]) -> Any:
    """Return the first present value among the aliases (case-insensitive)."""
    keys_lower = {str(k).lower().strip(): k for k in raw.keys()}
    for alias in aliases:
        if alias in keys_lower:
            return raw[keys_lower[alias]]
    return None


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text if text and text.lower() != "nan" else default


def _as_index(value: Any, default: int = UNCATEGORIZED_INDEX) -> int:
    number = to_number(value)
    return int(number) if number is not None else default


def _is_excused(raw: Dict[str, Any]) -> bool:
    flag = to_number(raw.get("exception"))
    return bool(flag)


def normalize_record(
    raw: Dict[str, Any], section_id: str, category_index: Optional[int] = None,
    position: int = 0,
) -> AssignmentRecord:
    """Build an official AssignmentRecord from an upstream row."""
    if not isinstance(raw, dict):
        raw = {}
    pair = normalize(_pick(raw, SCORE_ALIASES), _pick(raw, MAX_ALIASES))
    score = None if _is_excused(raw) else pair.score
    if category_index is None:
        category_index = _as_index(_pick(raw, CATEGORY_ALIASES))
    assignment_id = _as_text(_pick(raw, ID_ALIASES), default=f"row-{position}")

    return AssignmentRecord(
        section_id=section_id,
        assignment_id=assignment_id,
        kind="official",
        title=_as_text(raw.get("title"), default="Unknown Assignment"),
        original_score=score,
        original_max=pair.max,
        category_index=category_index,
        due_timestamp=normalize_timestamp(_pick(raw, DUE_ALIASES)),
        graded_timestamp=normalize_timestamp(_pick(raw, GRADED_ALIASES)),
        position=position,
    )


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _rows(raw: Dict[str, Any]) -> List[Any]:
    return _as_list(raw.get("assignments")) or _as_list(raw.get("grades"))


def _uncategorized_index(declared) -> int:
    """Index for rows with no usable category; never one the payload declared."""
    if UNCATEGORIZED_INDEX not in declared:
        return UNCATEGORIZED_INDEX
    return min(declared) - 1


def normalize_section(payload: Dict[str, Any]) -> Section:
    """
    Normalize one upstream section payload.

    Accepts either categories carrying their own ``assignments`` list, or a
    flat ``assignments`` / ``grades`` list whose rows name their category.
    Rows pointing at an unknown category land in "Uncategorized". Every
    record keeps its upstream position so replay order survives bucketing.
    """
    if not isinstance(payload, dict):
        payload = {}
    section_id = _as_text(_pick(payload, ["section_id", "id"]), default="section")
    title = _as_text(_pick(payload, ["title", "course_name", "section_title"]))
    reported = to_number(_pick(payload, ["reported_percentage", "percentage", "final_grade"]))

    categories: Dict[int, Category] = {}
    order: List[int] = []

    def _category(index: int) -> Category:
        if index not in categories:
            categories[index] = Category(
                index=index, weight=0.0, title=UNCATEGORIZED_TITLE, records=[]
            )
            order.append(index)
        return categories[index]

    position = 0
    for raw_cat in _as_list(payload.get("categories")):
        if not isinstance(raw_cat, dict):
            continue
        index = _as_index(_pick(raw_cat, ["index", "id", "category_index"]))
        weight = to_number(raw_cat.get("weight"))
        cat = _category(index)
        cat.weight = weight if weight is not None and weight > 0 else 0.0
        cat.title = _as_text(raw_cat.get("title"), default=cat.title)
        for raw_row in _rows(raw_cat):
            cat.records.append(normalize_record(raw_row, section_id, index, position))
            position += 1

    declared = frozenset(categories)
    for raw_row in _rows(payload):
        named = to_number(_pick(raw_row, CATEGORY_ALIASES)) if isinstance(raw_row, dict) else None
        index = int(named) if named is not None else None
        if index not in declared:
            index = _uncategorized_index(declared)
        _category(index).records.append(normalize_record(raw_row, section_id, index, position))
        position += 1

    return Section(
        id=section_id,
        title=title,
        reported_percentage=reported,
        categories=[categories[i] for i in order],
    )
