"""
timeline.py — Chronological replay of a section's grade history.

Each row gets an x position:
- graded timestamp, else due timestamp, ignoring anything before
  2000-01-01 (zero / placeholder dates);
- when at least two rows carry usable timestamps spanning a real range,
  rows without one are placed by interpolating their insertion order
  across that range;
- otherwise every row uses its insertion index.

Insertion order is the upstream row position, not category order; custom
rows follow the official ones in the order they were added.

Events are then sorted by x (stable) and the aggregation rules are
replayed one row at a time, so every event carries the section
percentage as it stood right after that row was graded.
"""

import logging
from typing import List, Optional, Union

import numpy as np
import pandas as pd

from engine.aggregation import (
    accumulate,
    coerce_regime,
    combine,
    effective_rows,
    percent,
    row_percentage,
    row_values,
)
from engine.models import CategoryAggregation, Regime, Section, TimelineEvent


logger = logging.getLogger(__name__)

# 2000-01-01T00:00:00Z
TIMESTAMP_FLOOR = 946684800.0


def usable_timestamp(value: Optional[float]) -> Optional[float]:
    if value is None or np.isnan(value) or value < TIMESTAMP_FLOOR:
        return None
    return float(value)


def _candidate(graded: Optional[float], due: Optional[float]) -> Optional[float]:
    ts = usable_timestamp(graded)
    return ts if ts is not None else usable_timestamp(due)


def assign_x(candidates: List[Optional[float]]) -> pd.DataFrame:
    """
    Map per-row timestamp candidates to x positions.

    Returns a frame with columns position, timestamp, x, timestamped.
    """
    n = len(candidates)
    frame = pd.DataFrame({
        "position": np.arange(n, dtype=float),
        "timestamp": pd.Series(candidates, dtype="float64"),
    })
    known = frame["timestamp"].dropna()
    use_time = len(known) >= 2 and known.max() > known.min()

    if use_time:
        span = [0.0, float(max(n - 1, 1))]
        filler = np.interp(frame["position"], span, [known.min(), known.max()])
        frame["x"] = frame["timestamp"].fillna(pd.Series(filler, index=frame.index))
    else:
        frame["x"] = frame["position"]
    frame["timestamped"] = use_time
    return frame


def build_events(
    section: Section, overlay=None, regime: Union[Regime, str] = Regime.CURRENT
) -> List[TimelineEvent]:
    if section is None:
        raise ValueError("build_events requires a section")
    regime = coerce_regime(regime)

    owners = [cat.index for cat in section.categories for _ in cat.records]
    rows = [row for cat in section.categories for row in effective_rows(cat, overlay)]
    records = section.records()

    # Categories bucket the rows; replay follows upstream insertion order.
    insertion = sorted(range(len(records)), key=lambda i: (records[i].is_custom, records[i].position))
    owners = [owners[i] for i in insertion]
    rows = [rows[i] for i in insertion]
    records = [records[i] for i in insertion]
    candidates = [_candidate(r.graded_timestamp, r.due_timestamp) for r in records]
    frame = assign_x(candidates)
    ordered = frame.sort_values("x", kind="mergesort")

    running = {
        cat.index: CategoryAggregation(index=cat.index, title=cat.title, weight=cat.weight)
        for cat in section.categories
    }
    parts = list(running.values())

    events: List[TimelineEvent] = []
    for position, x, timestamped in zip(
        ordered["position"].astype(int), ordered["x"], ordered["timestamped"]
    ):
        row = rows[position]
        if regime is Regime.CURRENT and row.dropped:
            continue
        if regime is Regime.ORIGINAL and row.kind == "custom":
            continue
        score, row_max = row_values(row, regime)
        part = running[owners[position]]
        earned, max_points, outcome = accumulate(part.earned, part.max, score, row_max)
        if outcome in ("ungraded", "excluded"):
            continue
        part.earned, part.max = earned, max_points
        part.percentage = percent(earned, max_points)

        _, _, section_pct, _, _ = combine(parts, section.weighted)
        events.append(TimelineEvent(
            x=float(x),
            category_index=owners[position],
            row=row,
            row_percentage=row_percentage(row, regime),
            running_section_percentage=section_pct,
            timestamped=bool(timestamped),
        ))

    logger.debug("Built %d timeline events for section %s", len(events), section.id)
    return events
