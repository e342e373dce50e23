"""
Tests for engine/changes.py — row/category change flags and display policy.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine.changes import (
    category_display_policy,
    has_category_changed,
    has_row_changed,
    section_display_policy,
)
from engine.models import AssignmentRecord, Category, OverlayEntry
from engine.overlay import EditOverlayStore


OFFICIAL = AssignmentRecord(section_id="S1", assignment_id="a1", original_score=8, original_max=10)


class TestHasRowChanged:
    """Row-level change detection."""

    def test_untouched_row(self):
        assert has_row_changed(OFFICIAL) is False
        assert has_row_changed(OFFICIAL, OverlayEntry()) is False

    def test_score_edit(self):
        assert has_row_changed(OFFICIAL, OverlayEntry(score=10)) is True

    def test_edit_within_epsilon_is_not_a_change(self):
        assert has_row_changed(OFFICIAL, OverlayEntry(score=8.0004)) is False

    def test_max_edit(self):
        assert has_row_changed(OFFICIAL, OverlayEntry(max=20)) is True

    def test_drop_is_a_change(self):
        assert has_row_changed(OFFICIAL, OverlayEntry(dropped=True)) is True

    def test_scoring_an_ungraded_row(self):
        ungraded = AssignmentRecord(section_id="S1", assignment_id="a2", original_max=10)
        assert has_row_changed(ungraded, OverlayEntry(score=7)) is True

    def test_custom_row_is_always_changed(self):
        custom = AssignmentRecord(section_id="S1", assignment_id="custom-1", kind="custom")
        assert has_row_changed(custom) is True


class TestHasCategoryChanged:

    def test_any_member_change_flags_category(self):
        overlay = EditOverlayStore()
        other = AssignmentRecord(section_id="S1", assignment_id="a2", original_score=5, original_max=5)
        cat = Category(index=1, records=[OFFICIAL, other])
        assert has_category_changed(cat, overlay) is False
        overlay.set_dropped("S1", "a2", True)
        assert has_category_changed(cat, overlay) is True


class TestSectionDisplayPolicy:
    """Which section figure leads, and when "recomputed" shows."""

    def test_no_original_and_computable_current(self):
        policy = section_display_policy(None, 91.0, False, current_max=100)
        assert policy.primary == "current"

    def test_no_original_and_nothing_computable(self):
        policy = section_display_policy(None, None, False, current_max=0)
        assert policy.primary == "original"
        assert policy.show_recomputed is False

    def test_recomputed_only_when_changed_and_moved(self):
        assert section_display_policy(80.0, 100.0, True, current_max=10, changed=True).show_recomputed
        assert not section_display_policy(80.0, 100.0, True, current_max=10, changed=False).show_recomputed
        assert not section_display_policy(80.0, 80.005, True, current_max=10, changed=True).show_recomputed

    def test_original_leads_when_present(self):
        policy = section_display_policy(80.0, 100.0, True, current_max=10, changed=True)
        assert policy.primary == "original"


class TestCategoryDisplayPolicy:

    def test_moved_category_shows_edited(self):
        assert category_display_policy(80.0, 90.0, False) is True
        assert category_display_policy(80.0, 80.0, False) is False

    def test_custom_rows_always_show_edited(self):
        assert category_display_policy(80.0, 80.0, True) is True
