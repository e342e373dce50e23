"""
Tests for engine/aggregation.py — row rules, regimes, points vs. weighted.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine.aggregation import aggregate_category, aggregate_section, merge
from engine.models import AssignmentRecord, Category, CombineMode, OverlayEntry, Regime, Section
from engine.overlay import EditOverlayStore


def _rec(aid, score, max_points, cat=1, section="S1"):
    return AssignmentRecord(
        section_id=section, assignment_id=aid, original_score=score,
        original_max=max_points, category_index=cat,
    )


def _section(*categories, reported=None):
    return Section(id="S1", reported_percentage=reported, categories=list(categories))


class TestMerge:
    """merge(record, overlay) is pure."""

    def test_overlay_fields_win(self):
        record = _rec("a1", 8, 10)
        row = merge(record, OverlayEntry(score=10))
        assert row.current_score == 10
        assert row.current_max == 10
        assert row.original_score == 8
        assert record.original_score == 8

    def test_no_overlay_mirrors_original(self):
        row = merge(_rec("a1", 8, 10))
        assert (row.current_score, row.current_max, row.dropped) == (8, 10, False)


class TestCategoryRules:
    """Row rules inside one category."""

    def test_points_sum(self):
        cat = Category(index=1, records=[_rec("a1", 8, 10), _rec("a2", 15, 20)])
        result = aggregate_category(cat, Regime.CURRENT)
        assert result.earned == 23
        assert result.max == 30
        assert result.percentage == pytest.approx(76.6667, abs=1e-3)

    @pytest.mark.parametrize("regime", [Regime.ORIGINAL, Regime.CURRENT])
    def test_extra_credit_adds_to_earned_only(self, regime):
        cat = Category(index=1, records=[_rec("a1", 8, 10), _rec("bonus", 2, 0)])
        result = aggregate_category(cat, regime)
        assert result.earned == 10
        assert result.max == 10
        assert result.percentage == pytest.approx(100.0)
        assert result.extra_credit_total == 2

    def test_ungraded_rows_are_counted_not_summed(self):
        cat = Category(index=1, records=[_rec("a1", 8, 10), _rec("a2", None, 10), _rec("a3", 5, None)])
        result = aggregate_category(cat, Regime.CURRENT)
        assert result.max == 10
        assert result.ungraded_count == 2
        assert result.graded_count == 1

    def test_negative_values_are_excluded(self):
        cat = Category(index=1, records=[_rec("a1", 8, 10), _rec("a2", 5, -10), _rec("a3", -3, 10)])
        result = aggregate_category(cat, Regime.CURRENT)
        assert (result.earned, result.max) == (8, 10)

    def test_only_extra_credit_is_not_gradable(self):
        cat = Category(index=1, records=[_rec("bonus", 5, 0)])
        result = aggregate_category(cat, Regime.CURRENT)
        assert result.earned == 5
        assert result.percentage is None

    def test_empty_category_is_none_not_zero(self):
        result = aggregate_category(Category(index=1), Regime.CURRENT)
        assert result.percentage is None


class TestRegimes:
    """Original vs. current figures."""

    def test_current_reads_overlay_original_does_not(self):
        overlay = EditOverlayStore()
        overlay.set_score("S1", "a1", 10)
        section = _section(Category(index=1, records=[_rec("a1", 8, 10)]))
        assert aggregate_section(section, Regime.ORIGINAL, overlay).percentage == pytest.approx(80.0)
        assert aggregate_section(section, Regime.CURRENT, overlay).percentage == pytest.approx(100.0)

    def test_drop_equals_physical_removal(self):
        overlay = EditOverlayStore()
        overlay.set_dropped("S1", "a2", True)
        full = _section(Category(index=1, records=[_rec("a1", 8, 10), _rec("a2", 2, 10), _rec("a3", 9, 10)]))
        removed = _section(Category(index=1, records=[_rec("a1", 8, 10), _rec("a3", 9, 10)]))

        dropped = aggregate_section(full, Regime.CURRENT, overlay)
        baseline = aggregate_section(removed, Regime.CURRENT)
        assert dropped.earned == baseline.earned
        assert dropped.max == baseline.max
        assert dropped.percentage == pytest.approx(baseline.percentage)
        assert dropped.categories[0].dropped_count == 1

    def test_drop_is_ignored_in_original_regime(self):
        overlay = EditOverlayStore()
        overlay.set_dropped("S1", "a2", True)
        section = _section(Category(index=1, records=[_rec("a1", 8, 10), _rec("a2", 2, 10)]))
        assert aggregate_section(section, Regime.ORIGINAL, overlay).percentage == pytest.approx(50.0)

    def test_custom_rows_only_count_in_current(self):
        custom = AssignmentRecord(
            section_id="S1", assignment_id="custom-1", kind="custom",
            category_index=1, custom_score=10, custom_max=10,
        )
        section = _section(Category(index=1, records=[_rec("a1", 5, 10), custom]))
        assert aggregate_section(section, Regime.ORIGINAL).percentage == pytest.approx(50.0)
        assert aggregate_section(section, Regime.CURRENT).percentage == pytest.approx(75.0)

    def test_invalid_regime_fails_fast(self):
        with pytest.raises(ValueError):
            aggregate_section(_section(), "projected")

    def test_string_regime_is_accepted(self):
        section = _section(Category(index=1, records=[_rec("a1", 8, 10)]))
        assert aggregate_section(section, "current").regime is Regime.CURRENT

    def test_missing_section_fails_fast(self):
        with pytest.raises(ValueError):
            aggregate_section(None, Regime.CURRENT)


class TestSectionCombination:
    """Points-based vs. weighted combination."""

    def test_points_based_when_unweighted(self):
        section = _section(
            Category(index=1, records=[_rec("a1", 8, 10)]),
            Category(index=2, records=[_rec("b1", 40, 90, cat=2)]),
        )
        result = aggregate_section(section, Regime.CURRENT)
        assert result.mode is CombineMode.POINTS
        assert result.percentage == pytest.approx(48.0)

    def test_weighted_combination(self):
        section = _section(
            Category(index=1, weight=60, records=[_rec("a1", 9, 10)]),
            Category(index=2, weight=40, records=[_rec("b1", 70, 100, cat=2)]),
        )
        result = aggregate_section(section, Regime.CURRENT)
        assert result.mode is CombineMode.WEIGHTED
        assert result.percentage == pytest.approx(90 * 0.6 + 70 * 0.4)

    def test_weight_redistribution_over_contributing_categories(self):
        section = _section(
            Category(index=1, weight=60, records=[]),
            Category(index=2, weight=40, records=[_rec("b1", 80, 100, cat=2)]),
        )
        result = aggregate_section(section, Regime.CURRENT)
        assert result.percentage == pytest.approx(80.0)
        assert result.active_weight == 40

    def test_fallback_to_points_when_no_weighted_category_contributes(self):
        section = _section(
            Category(index=1, weight=60, records=[_rec("a1", None, 10)]),
            Category(index=2, weight=0, records=[_rec("b1", 8, 10, cat=2), _rec("b2", 6, 10, cat=2)]),
        )
        result = aggregate_section(section, Regime.CURRENT)
        assert result.mode is CombineMode.WEIGHTED_FALLBACK
        assert result.percentage == pytest.approx(70.0)

    def test_fallback_pairs_earned_and_max_from_same_regime(self):
        overlay = EditOverlayStore()
        overlay.set_max("S1", "b1", 20)
        section = _section(
            Category(index=1, weight=50, records=[]),
            Category(index=2, weight=0, records=[_rec("b1", 8, 10, cat=2)]),
        )
        assert aggregate_section(section, Regime.ORIGINAL, overlay).percentage == pytest.approx(80.0)
        assert aggregate_section(section, Regime.CURRENT, overlay).percentage == pytest.approx(40.0)

    def test_nothing_gradable_is_none(self):
        section = _section(Category(index=1, records=[_rec("a1", None, None)]))
        assert aggregate_section(section, Regime.CURRENT).percentage is None
