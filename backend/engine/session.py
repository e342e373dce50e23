"""
session.py — Per-user gradebook state.

A GradebookSession owns everything that used to be global: the normalized
server sections, the edit overlay, the custom assignments and the link to
the external state store. Every mutation recomputes the owning section,
notifies subscribers with the fresh report and queues the overall rollup.
"""

import logging
import uuid
from time import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from engine.aggregation import SCORE_EPSILON, aggregate_section
from engine.changes import category_display_policy, has_category_changed, section_display_policy
from engine.custom import CustomAssignmentRegistry
from engine.grading_scale import get_letter_grade
from engine.models import (
    AssignmentRecord,
    Category,
    CategoryReport,
    CustomAssignment,
    OverallSnapshot,
    Regime,
    Section,
    SectionReport,
    StatsSnapshot,
    TimelineEvent,
)
from engine.normalizer import UNCATEGORIZED_TITLE, normalize_section, to_number
from engine.overlay import EditOverlayStore
from engine.persistence import CUSTOM_KEY, OVERLAY_KEY, load_state
from engine.rollup import OverallRollupQueue
from engine.timeline import build_events
from engine.trends import overall_stats, section_stats


logger = logging.getLogger(__name__)

Listener = Callable[[SectionReport], None]


def build_section_report(section: Section, overlay=None) -> SectionReport:
    """Both regimes, change flags and the display decision for one section."""
    original = aggregate_section(section, Regime.ORIGINAL, overlay)
    current = aggregate_section(section, Regime.CURRENT, overlay)

    categories = []
    for cat, orig_part, cur_part in zip(section.categories, original.categories, current.categories):
        has_custom = any(r.is_custom for r in cat.records)
        categories.append(CategoryReport(
            index=cat.index,
            title=cat.title,
            original=orig_part,
            current=cur_part,
            changed=has_category_changed(cat, overlay),
            show_edited=category_display_policy(orig_part.percentage, cur_part.percentage, has_custom),
        ))

    changed = any(c.changed for c in categories)
    has_original = section.reported_percentage is not None
    display = section_display_policy(
        section.reported_percentage,
        current.percentage,
        has_original,
        current_max=current.max,
        changed=changed,
    )
    shown = current.percentage if display.primary == "current" or display.show_recomputed \
        else section.reported_percentage

    return SectionReport(
        section_id=section.id,
        title=section.title,
        reported_percentage=section.reported_percentage,
        original=original,
        current=current,
        categories=categories,
        changed=changed,
        display=display,
        letter=get_letter_grade(shown) if shown is not None else None,
    )


class GradebookSession:
    def __init__(
        self,
        session_id: Optional[str] = None,
        store=None,
        owner: Optional[str] = None,
    ):
        self.id = session_id or str(uuid.uuid4())
        self.owner = owner or self.id
        self.created_at = time()
        self._store = store

        state = load_state(store, self.owner) if store is not None else {"overlay": {}, "custom": []}
        self.overlay = EditOverlayStore.from_dict(state["overlay"], persist=self._persist_overlay)
        self.custom = CustomAssignmentRegistry.from_list(state["custom"], persist=self._persist_custom)

        self._sections: Dict[str, Section] = {}
        self._reports: Dict[str, SectionReport] = {}
        self._listeners: List[Listener] = []
        self._overall: Optional[OverallSnapshot] = None
        self.rollup = OverallRollupQueue(self._run_rollup)

    # ── Loading ─────────────────────────────────────────────────────

    def load_section(self, payload: Dict[str, Any]) -> SectionReport:
        section = normalize_section(payload)
        self._sections[section.id] = section
        logger.info("Session %s loaded section %s (%d rows)", self.id, section.id, len(section.records()))
        return self.recompute(section.id)

    def load_sections(self, payloads: Iterable[Dict[str, Any]]) -> List[SectionReport]:
        return [self.load_section(p) for p in payloads]

    def section_ids(self) -> List[str]:
        return list(self._sections.keys())

    def section(self, section_id: str) -> Section:
        """The server section with this session's custom rows folded in."""
        base = self._sections[str(section_id)]
        section = base.model_copy(deep=True)
        for item in self.custom.for_section(section.id):
            cat = section.category(item.category_index)
            if cat is None:
                cat = Category(index=item.category_index, weight=0.0, title=UNCATEGORIZED_TITLE)
                section.categories.append(cat)
            cat.records.append(item.to_record())
        return section

    def record(self, section_id: str, assignment_id: str) -> AssignmentRecord:
        for record in self.section(section_id).records():
            if record.assignment_id == str(assignment_id):
                return record
        raise KeyError(f"Assignment {assignment_id!r} not found in section {section_id!r}")

    # ── Edits ───────────────────────────────────────────────────────

    def edit_score(self, section_id: str, assignment_id: str, value: Any) -> SectionReport:
        record = self.record(section_id, assignment_id)
        if record.is_custom:
            self.custom.update(record.assignment_id, score=value)
        else:
            self._edit_field(record, "score", value, record.original_score)
        return self.recompute(section_id)

    def edit_max(self, section_id: str, assignment_id: str, value: Any) -> SectionReport:
        record = self.record(section_id, assignment_id)
        if record.is_custom:
            self.custom.update(record.assignment_id, max_points=value)
        else:
            self._edit_field(record, "max", value, record.original_max)
        return self.recompute(section_id)

    def set_dropped(self, section_id: str, assignment_id: str, dropped: bool) -> SectionReport:
        record = self.record(section_id, assignment_id)
        self.overlay.set_dropped(record.section_id, record.assignment_id, bool(dropped))
        return self.recompute(section_id)

    def revert(self, section_id: str, assignment_id: str) -> SectionReport:
        record = self.record(section_id, assignment_id)
        self.overlay.remove(record.section_id, record.assignment_id)
        return self.recompute(section_id)

    def _edit_field(self, record: AssignmentRecord, field: str, value: Any, original: Optional[float]):
        number = to_number(value)
        if number is None or (original is not None and abs(number - original) <= SCORE_EPSILON):
            self.overlay.clear_field(record.section_id, record.assignment_id, field)
        elif field == "score":
            self.overlay.set_score(record.section_id, record.assignment_id, number)
        else:
            self.overlay.set_max(record.section_id, record.assignment_id, number)

    # ── Custom assignments ──────────────────────────────────────────

    def add_custom(
        self, section_id: str, category_index: int, title: Any = None,
        score: Any = None, max_points: Any = None,
    ) -> Tuple[CustomAssignment, SectionReport]:
        if str(section_id) not in self._sections:
            raise KeyError(f"Section {section_id!r} not loaded")
        item = self.custom.add(section_id, category_index, title, score, max_points)
        return item, self.recompute(section_id)

    def update_custom(self, custom_id: str, **changes) -> Tuple[CustomAssignment, SectionReport]:
        item = self.custom.update(custom_id, **changes)
        if item is None:
            raise KeyError(f"Custom assignment {custom_id!r} not found")
        return item, self.recompute(item.section_id)

    def remove_custom(self, custom_id: str) -> SectionReport:
        item = self.custom.remove(custom_id)
        if item is None:
            raise KeyError(f"Custom assignment {custom_id!r} not found")
        self.overlay.remove(item.section_id, item.id)
        return self.recompute(item.section_id)

    def clear_section(self, section_id: str) -> SectionReport:
        self.overlay.clear_section(section_id)
        self.custom.clear_section(section_id)
        return self.recompute(section_id)

    def reset_all(self) -> List[SectionReport]:
        self.overlay.clear_all()
        self.custom.clear_all()
        logger.info("Session %s reset all edits", self.id)
        return [self.recompute(sid) for sid in self.section_ids()]

    # ── Results ─────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def recompute(self, section_id: str) -> SectionReport:
        report = build_section_report(self.section(section_id), self.overlay)
        self._reports[report.section_id] = report
        logger.debug(
            "Recomputed %s: original=%s current=%s changed=%s",
            report.section_id, report.original.percentage, report.current.percentage, report.changed,
        )
        for listener in list(self._listeners):
            try:
                listener(report)
            except Exception:
                logger.exception("Section listener failed for %s", report.section_id)
        self.rollup.schedule(report.section_id)
        return report

    def report(self, section_id: str) -> SectionReport:
        if str(section_id) not in self._reports:
            return self.recompute(section_id)
        return self._reports[str(section_id)]

    def timeline(self, section_id: str) -> List[TimelineEvent]:
        return build_events(self.section(section_id), self.overlay)

    def stats(self, section_id: str) -> StatsSnapshot:
        return section_stats(self.section(section_id), self.overlay)

    def overall(self) -> OverallSnapshot:
        self.rollup.flush()
        if self._overall is None:
            self._run_rollup(set(self.section_ids()))
        return self._overall

    def _run_rollup(self, section_ids) -> None:
        sections = [self.section(sid) for sid in self.section_ids()]
        self._overall = overall_stats(sections, self.overlay)

    # ── Persistence ─────────────────────────────────────────────────

    def export_state(self) -> Dict[str, Any]:
        return {"overlay": self.overlay.to_dict(), "custom": self.custom.to_list()}

    def _persist_overlay(self, table) -> None:
        if self._store is not None:
            self._store.save(self.owner, OVERLAY_KEY, table)

    def _persist_custom(self, items) -> None:
        if self._store is not None:
            self._store.save(self.owner, CUSTOM_KEY, items)
