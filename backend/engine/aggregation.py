"""
aggregation.py — Category and section roll-ups.

Two questions are answered for every section:
- Which figures?  ``Regime.ORIGINAL`` reads what the institution reported,
  ``Regime.CURRENT`` reads the overlay-merged figures and honours drops.
- How are categories combined?  Points-based (flat earned / max) unless
  any category carries a weight, in which case weights are renormalized
  over the categories that currently have a percentage.

Row rules (both regimes):
  score or max missing   → ungraded, not summed
  score < 0 or max < 0   → excluded
  max == 0               → extra credit: earned only
  max > 0                → earned and max

Percentages are kept at full precision; rounding belongs to the caller.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from engine.models import (
    AssignmentRecord,
    Category,
    CategoryAggregation,
    CombineMode,
    EffectiveRow,
    OverlayEntry,
    Regime,
    Section,
    SectionAggregation,
)


logger = logging.getLogger(__name__)

SCORE_EPSILON = 0.001
PERCENT_EPSILON = 0.01


def coerce_regime(regime: Union[Regime, str]) -> Regime:
    """Fail fast on anything that is not a known regime."""
    if isinstance(regime, Regime):
        return regime
    try:
        return Regime(regime)
    except ValueError:
        raise ValueError(f"Unknown regime: {regime!r}") from None


def percent(earned: float, max_points: float) -> Optional[float]:
    return earned / max_points * 100 if max_points > 0 else None


# ── Overlay merge ───────────────────────────────────────────────────

def merge(record: AssignmentRecord, entry: Optional[OverlayEntry] = None) -> EffectiveRow:
    """Layer an overlay entry over a record. Pure: neither input changes."""
    score = record.base_score
    max_points = record.base_max
    dropped = False
    if entry is not None:
        if entry.score is not None:
            score = entry.score
        if entry.max is not None:
            max_points = entry.max
        dropped = bool(entry.dropped)

    return EffectiveRow(
        section_id=record.section_id,
        assignment_id=record.assignment_id,
        kind=record.kind,
        title=record.title,
        category_index=record.category_index,
        original_score=record.original_score,
        original_max=record.original_max,
        current_score=score,
        current_max=max_points,
        dropped=dropped,
    )


def effective_rows(category: Category, overlay=None) -> List[EffectiveRow]:
    rows = []
    for record in category.records:
        entry = overlay.get(record.section_id, record.assignment_id) if overlay is not None else None
        rows.append(merge(record, entry))
    return rows


def row_values(row: EffectiveRow, regime: Regime) -> Tuple[Optional[float], Optional[float]]:
    if regime is Regime.ORIGINAL:
        return row.original_score, row.original_max
    return row.current_score, row.current_max


def row_percentage(row: EffectiveRow, regime: Regime = Regime.CURRENT) -> Optional[float]:
    score, max_points = row_values(row, regime)
    if score is None or max_points is None or score < 0 or max_points <= 0:
        return None
    return score / max_points * 100


# ── Category ────────────────────────────────────────────────────────

def accumulate(
    earned: float, max_points: float, score: Optional[float], row_max: Optional[float]
) -> Tuple[float, float, str]:
    """
    Apply one row to running totals.

    Returns the new (earned, max) and how the row was treated:
    "ungraded", "excluded", "extra_credit" or "graded".
    """
    if score is None or row_max is None:
        return earned, max_points, "ungraded"
    if score < 0 or row_max < 0:
        return earned, max_points, "excluded"
    if row_max == 0:
        return earned + score, max_points, "extra_credit"
    return earned + score, max_points + row_max, "graded"


def aggregate_rows(
    rows: Iterable[EffectiveRow], regime: Union[Regime, str], *, index: int = 0,
    title: str = "", weight: float = 0.0,
) -> CategoryAggregation:
    regime = coerce_regime(regime)
    result = CategoryAggregation(index=index, title=title, weight=weight)

    for row in rows:
        if regime is Regime.ORIGINAL and row.kind == "custom":
            continue
        if regime is Regime.CURRENT and row.dropped:
            result.dropped_count += 1
            continue
        score, row_max = row_values(row, regime)
        result.earned, result.max, outcome = accumulate(result.earned, result.max, score, row_max)
        if outcome == "ungraded":
            result.ungraded_count += 1
        elif outcome == "extra_credit":
            result.extra_credit_total += score
            result.graded_count += 1
        elif outcome == "graded":
            result.graded_count += 1

    result.percentage = percent(result.earned, result.max)
    return result


def aggregate_category(
    category: Category, regime: Union[Regime, str], overlay=None
) -> CategoryAggregation:
    return aggregate_rows(
        effective_rows(category, overlay), regime,
        index=category.index, title=category.title, weight=category.weight,
    )


# ── Section ─────────────────────────────────────────────────────────

def combine(
    parts: Sequence[CategoryAggregation], weighted: bool
) -> Tuple[float, float, Optional[float], CombineMode, float]:
    """
    Combine category totals into (earned, max, percentage, mode, active_weight).

    Weighted mode renormalizes over categories with a percentage; when no
    weighted category has one it falls back to points over the same parts.
    """
    total_earned = sum(p.earned for p in parts)
    total_max = sum(p.max for p in parts)
    points_pct = percent(total_earned, total_max)

    if not weighted:
        return total_earned, total_max, points_pct, CombineMode.POINTS, 0.0

    active_weight = sum(p.weight for p in parts if p.percentage is not None and p.weight > 0)
    if active_weight <= 0:
        return total_earned, total_max, points_pct, CombineMode.WEIGHTED_FALLBACK, 0.0

    weighted_pct = sum(
        p.percentage * (p.weight / active_weight)
        for p in parts
        if p.percentage is not None and p.weight > 0
    )
    return total_earned, total_max, weighted_pct, CombineMode.WEIGHTED, active_weight


def aggregate_section(
    section: Section, regime: Union[Regime, str], overlay=None
) -> SectionAggregation:
    if section is None:
        raise ValueError("aggregate_section requires a section")
    regime = coerce_regime(regime)

    parts = [aggregate_category(cat, regime, overlay) for cat in section.categories]
    earned, max_points, pct, mode, active_weight = combine(parts, section.weighted)

    logger.debug(
        "Aggregated section %s (%s): %s over %d categories",
        section.id, regime.value, mode.value, len(parts),
    )
    return SectionAggregation(
        section_id=section.id,
        regime=regime,
        earned=earned,
        max=max_points,
        percentage=pct,
        mode=mode,
        active_weight=active_weight,
        categories=parts,
    )
