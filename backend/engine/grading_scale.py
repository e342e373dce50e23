"""
grading_scale.py — Letter grades, GPA points and colour bands.

One US-style 4.0 step table drives both the letter and the GPA value, so
the two can never disagree.
"""

import math
from typing import Any, Dict, Iterable, List, Optional

from engine.normalizer import to_number


# (min_whole_percentage, letter, gpa_points), ordered high to low.
GRADE_STEPS = [
    (93, "A", 4.0),
    (90, "A-", 3.7),
    (87, "B+", 3.3),
    (83, "B", 3.0),
    (80, "B-", 2.7),
    (77, "C+", 2.3),
    (73, "C", 2.0),
    (70, "C-", 1.7),
    (67, "D+", 1.3),
    (63, "D", 1.0),
    (60, "D-", 0.7),
]
FAILING = ("F", 0.0)

# Colour bands used by the presentation layer for grade pills.
GRADE_BANDS = [
    (90.0, "grade-a"),
    (80.0, "grade-b"),
    (70.0, "grade-c"),
    (60.0, "grade-d"),
]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_letter_grade(percentage: Optional[float]) -> str:
    """Return the letter for a 0-100 percentage, '-' when there is none."""
    value = to_number(percentage)
    if value is None:
        return "-"
    for min_pct, letter, _ in GRADE_STEPS:
        if value >= min_pct:
            return letter
    return FAILING[0]


def get_grade_band(percentage: Optional[float]) -> str:
    value = to_number(percentage)
    if value is None:
        return "grade-none"
    for min_pct, band in GRADE_BANDS:
        if value >= min_pct:
            return band
    return "grade-f"


def get_gpa_points(percentage: Optional[float]) -> Optional[float]:
    """GPA points for a section grade, stepped on the rounded whole percentage."""
    value = to_number(percentage)
    if value is None:
        return None
    whole = round_half_up(value)
    for min_pct, _, points in GRADE_STEPS:
        if whole >= min_pct:
            return points
    return FAILING[1]


def overall_gpa(percentages: Iterable[Optional[float]]) -> Optional[float]:
    """Average GPA across sections that have a computable grade."""
    points = [p for p in (get_gpa_points(v) for v in percentages) if p is not None]
    if not points:
        return None
    return sum(points) / len(points)


def get_all_grade_thresholds() -> List[Dict[str, Any]]:
    """Return the full scale for legend/reference."""
    thresholds = []
    for idx, (min_pct, letter, points) in enumerate(GRADE_STEPS):
        max_pct = 100.0 if idx == 0 else GRADE_STEPS[idx - 1][0] - 0.01
        thresholds.append({
            "min": float(min_pct),
            "max": round(max_pct, 2),
            "label": letter,
            "points": points,
        })
    thresholds.append({
        "min": 0.0,
        "max": round(GRADE_STEPS[-1][0] - 0.01, 2),
        "label": FAILING[0],
        "points": FAILING[1],
    })
    return thresholds
