"""
changes.py — "What the institution reported" vs. "what the user computed".
"""

from typing import Optional

from engine.aggregation import PERCENT_EPSILON, SCORE_EPSILON, merge
from engine.models import AssignmentRecord, Category, DisplayPolicy, OverlayEntry


def _differs(current: Optional[float], original: Optional[float]) -> bool:
    if current is None and original is None:
        return False
    if current is None or original is None:
        return True
    return abs(current - original) > SCORE_EPSILON


def has_row_changed(record: AssignmentRecord, entry: Optional[OverlayEntry] = None) -> bool:
    if record.is_custom:
        return True
    row = merge(record, entry)
    if row.dropped:
        return True
    return _differs(row.current_score, row.original_score) or _differs(
        row.current_max, row.original_max
    )


def has_category_changed(category: Category, overlay=None) -> bool:
    for record in category.records:
        entry = overlay.get(record.section_id, record.assignment_id) if overlay is not None else None
        if has_row_changed(record, entry):
            return True
    return False


def section_display_policy(
    original_pct: Optional[float],
    current_pct: Optional[float],
    has_original: bool,
    *,
    current_max: float = 0.0,
    changed: bool = False,
) -> DisplayPolicy:
    """
    Decide which section figure leads.

    With no reported grade, the computed one leads as soon as there is any
    gradable max. Otherwise the reported grade leads and a "recomputed"
    figure is surfaced only when something changed and it moved by more
    than a hundredth of a percent.
    """
    if not has_original or original_pct is None:
        if current_pct is not None and current_max > 0:
            return DisplayPolicy(primary="current", show_recomputed=False)
        return DisplayPolicy(primary="original", show_recomputed=False)

    moved = current_pct is not None and abs(current_pct - original_pct) > PERCENT_EPSILON
    return DisplayPolicy(primary="original", show_recomputed=bool(changed and moved))


def category_display_policy(
    original_pct: Optional[float], current_pct: Optional[float], has_custom: bool
) -> bool:
    """Whether an edited category figure should be shown next to the original."""
    if original_pct is None:
        return current_pct is not None
    if has_custom:
        return True
    return current_pct is not None and abs(current_pct - original_pct) > PERCENT_EPSILON
