"""
trends.py — Descriptive statistics and trend detection over a section's
graded timeline.

Computes:
- mean, median, population standard deviation
- average of the last five graded items
- OLS slope (scipy.stats.linregress) and a Rising / Falling / Flat label
- momentum (last three vs. the three before them)
- consistency (100 minus dispersion, clamped to 0-100)
- per-section and overall snapshots, with overall GPA
"""

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats as sp_stats

from engine.aggregation import aggregate_section
from engine.grading_scale import overall_gpa
from engine.models import OverallSnapshot, Regime, Section, StatsSnapshot, TimelineEvent
from engine.timeline import build_events


TREND_THRESHOLD = 0.25
MOMENTUM_WINDOW = 3
RECENT_WINDOW = 5
SECONDS_PER_DAY = 86400.0


# ── Helpers ─────────────────────────────────────────────────────────

def _finite(val) -> Optional[float]:
    """Convert to float or return None for NaN / inf."""
    try:
        v = float(val)
    except (TypeError, ValueError):
        return None
    return None if (np.isnan(v) or np.isinf(v)) else v


def ols_slope(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
    """Least-squares slope of y on x; None below two points, 0 for a flat x."""
    if len(ys) < 2:
        return None
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if np.var(x) == 0:
        return 0.0
    return _finite(sp_stats.linregress(x, y).slope)


def trend_label(slope: Optional[float]) -> str:
    if slope is None:
        return "Flat"
    if slope > TREND_THRESHOLD:
        return "Rising"
    if slope < -TREND_THRESHOLD:
        return "Falling"
    return "Flat"


def momentum(ys: Sequence[float]) -> Optional[float]:
    if len(ys) < MOMENTUM_WINDOW * 2:
        return None
    recent = ys[-MOMENTUM_WINDOW:]
    previous = ys[-MOMENTUM_WINDOW * 2:-MOMENTUM_WINDOW]
    return float(np.mean(recent) - np.mean(previous))


# ── Snapshots ───────────────────────────────────────────────────────

def compute_stats(
    ys: Sequence[float],
    xs: Optional[Sequence[float]] = None,
    *,
    dropped_count: int = 0,
    ungraded_count: int = 0,
    extra_credit_total: float = 0.0,
) -> StatsSnapshot:
    """Statistics for ordered percentages; xs defaults to 0..n-1."""
    values = pd.Series(list(ys), dtype="float64")
    if xs is None:
        xs = list(range(len(values)))

    snapshot = StatsSnapshot(
        count=len(values),
        dropped_count=dropped_count,
        ungraded_count=ungraded_count,
        extra_credit_total=extra_credit_total,
    )
    if values.empty:
        return snapshot

    std = float(values.std(ddof=0))
    slope = ols_slope(xs, values.tolist())
    snapshot.mean = _finite(values.mean())
    snapshot.median = _finite(values.median())
    snapshot.std_dev = std
    snapshot.last5_avg = _finite(values.tail(RECENT_WINDOW).mean())
    snapshot.slope = slope
    snapshot.trend_label = trend_label(slope)
    snapshot.momentum = momentum(values.tolist())
    snapshot.consistency = float(np.clip(100.0 - std, 0.0, 100.0))
    return snapshot


def series_from_events(events: List[TimelineEvent]):
    """(xs, ys) for events that carry a row percentage (max > 0)."""
    points = [(e.x, e.row_percentage, e.timestamped) for e in events if e.row_percentage is not None]
    xs = [x / SECONDS_PER_DAY if stamped else x for x, _, stamped in points]
    ys = [y for _, y, _ in points]
    return xs, ys


def section_stats(section: Section, overlay=None) -> StatsSnapshot:
    """Snapshot over the section's current, non-dropped, gradable rows."""
    events = build_events(section, overlay, Regime.CURRENT)
    xs, ys = series_from_events(events)
    totals = aggregate_section(section, Regime.CURRENT, overlay)
    return compute_stats(
        ys, xs,
        dropped_count=sum(c.dropped_count for c in totals.categories),
        ungraded_count=sum(c.ungraded_count for c in totals.categories),
        extra_credit_total=sum(c.extra_credit_total for c in totals.categories),
    )


def overall_stats(sections: Sequence[Section], overlay=None) -> OverallSnapshot:
    """
    One snapshot across every section.

    Row percentages are concatenated in section order on an index axis;
    GPA averages the per-section GPA of sections with a computable grade.
    """
    ys: List[float] = []
    dropped = ungraded = 0
    extra = 0.0
    section_pcts = []

    for section in sections:
        _, section_ys = series_from_events(build_events(section, overlay, Regime.CURRENT))
        ys.extend(section_ys)
        totals = aggregate_section(section, Regime.CURRENT, overlay)
        section_pcts.append(totals.percentage)
        dropped += sum(c.dropped_count for c in totals.categories)
        ungraded += sum(c.ungraded_count for c in totals.categories)
        extra += sum(c.extra_credit_total for c in totals.categories)

    base = compute_stats(
        ys, dropped_count=dropped, ungraded_count=ungraded, extra_credit_total=extra
    )
    return OverallSnapshot(
        **base.model_dump(),
        gpa=overall_gpa(section_pcts),
        section_count=len(section_pcts),
    )
