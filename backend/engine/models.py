"""
models.py — Typed records shared by every engine module.

Raw upstream payloads never reach these models directly; normalizer.py is
the only place that turns loosely-typed dicts into them.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


RecordKind = Literal["official", "custom"]
TrendLabel = Literal["Rising", "Falling", "Flat"]


class Regime(str, Enum):
    """Which figures a roll-up reads: server-reported or user-edited."""

    ORIGINAL = "original"
    CURRENT = "current"


class CombineMode(str, Enum):
    POINTS = "points"
    WEIGHTED = "weighted"
    WEIGHTED_FALLBACK = "weighted_fallback"


class NormalizedScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: Optional[float] = None
    max: Optional[float] = None


# ── Records ─────────────────────────────────────────────────────────

class AssignmentRecord(BaseModel):
    """One gradebook row as reported upstream, or a user-added custom row."""

    model_config = ConfigDict(frozen=True)

    section_id: str
    assignment_id: str
    kind: RecordKind = "official"
    title: str = ""
    original_score: Optional[float] = None
    original_max: Optional[float] = None
    category_index: int = 0
    due_timestamp: Optional[float] = None
    graded_timestamp: Optional[float] = None
    # Upstream row order; custom rows replay after every official row.
    position: int = 0
    # Only meaningful for custom rows; official rows keep these empty.
    custom_score: Optional[float] = None
    custom_max: Optional[float] = None

    @property
    def is_custom(self) -> bool:
        return self.kind == "custom"

    @property
    def base_score(self) -> Optional[float]:
        return self.custom_score if self.is_custom else self.original_score

    @property
    def base_max(self) -> Optional[float]:
        return self.custom_max if self.is_custom else self.original_max


class OverlayEntry(BaseModel):
    """Sparse user patch for a single row. Unset fields fall through."""

    score: Optional[float] = None
    max: Optional[float] = None
    dropped: bool = False

    def is_empty(self) -> bool:
        return self.score is None and self.max is None and not self.dropped

    def to_wire(self) -> dict:
        out: dict = {}
        if self.score is not None:
            out["score"] = self.score
        if self.max is not None:
            out["max"] = self.max
        if self.dropped:
            out["dropped"] = True
        return out


class EffectiveRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    section_id: str
    assignment_id: str
    kind: RecordKind = "official"
    title: str = ""
    category_index: int = 0
    original_score: Optional[float] = None
    original_max: Optional[float] = None
    current_score: Optional[float] = None
    current_max: Optional[float] = None
    dropped: bool = False


class Category(BaseModel):
    index: int
    weight: float = 0.0
    title: str = ""
    records: List[AssignmentRecord] = Field(default_factory=list)


class Section(BaseModel):
    id: str
    title: str = ""
    reported_percentage: Optional[float] = None
    categories: List[Category] = Field(default_factory=list)

    def category(self, index: int) -> Optional[Category]:
        for cat in self.categories:
            if cat.index == index:
                return cat
        return None

    def records(self) -> List[AssignmentRecord]:
        return [rec for cat in self.categories for rec in cat.records]

    @property
    def weighted(self) -> bool:
        return any(cat.weight > 0 for cat in self.categories)


class CustomAssignment(BaseModel):
    """Persistence shape of a user-added assignment."""

    id: str
    title: str = "Custom Assignment"
    score: Optional[float] = None
    max: Optional[float] = None
    section_id: str
    category_index: int = 0

    def to_record(self) -> AssignmentRecord:
        return AssignmentRecord(
            section_id=self.section_id,
            assignment_id=self.id,
            kind="custom",
            title=self.title,
            category_index=self.category_index,
            custom_score=self.score,
            custom_max=self.max,
        )


# ── Results ─────────────────────────────────────────────────────────

class AggregationResult(BaseModel):
    earned: float = 0.0
    max: float = 0.0
    percentage: Optional[float] = None


class CategoryAggregation(AggregationResult):
    index: int
    title: str = ""
    weight: float = 0.0
    graded_count: int = 0
    ungraded_count: int = 0
    dropped_count: int = 0
    extra_credit_total: float = 0.0


class SectionAggregation(AggregationResult):
    section_id: str
    regime: Regime
    mode: CombineMode = CombineMode.POINTS
    active_weight: float = 0.0
    categories: List[CategoryAggregation] = Field(default_factory=list)


class DisplayPolicy(BaseModel):
    primary: Literal["original", "current"] = "original"
    show_recomputed: bool = False


class CategoryReport(BaseModel):
    index: int
    title: str = ""
    original: CategoryAggregation
    current: CategoryAggregation
    changed: bool = False
    show_edited: bool = False


class SectionReport(BaseModel):
    section_id: str
    title: str = ""
    reported_percentage: Optional[float] = None
    original: SectionAggregation
    current: SectionAggregation
    categories: List[CategoryReport] = Field(default_factory=list)
    changed: bool = False
    display: DisplayPolicy = Field(default_factory=DisplayPolicy)
    letter: Optional[str] = None


class TimelineEvent(BaseModel):
    x: float
    category_index: int
    row: EffectiveRow
    row_percentage: Optional[float] = None
    running_section_percentage: Optional[float] = None
    timestamped: bool = False


class StatsSnapshot(BaseModel):
    count: int = 0
    mean: Optional[float] = None
    median: Optional[float] = None
    std_dev: Optional[float] = None
    last5_avg: Optional[float] = None
    slope: Optional[float] = None
    trend_label: TrendLabel = "Flat"
    momentum: Optional[float] = None
    consistency: Optional[float] = None
    dropped_count: int = 0
    ungraded_count: int = 0
    extra_credit_total: float = 0.0


class OverallSnapshot(StatsSnapshot):
    gpa: Optional[float] = None
    section_count: int = 0
