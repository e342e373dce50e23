"""
Tests for engine/normalizer.py — scalar coercion, timestamps, section payloads.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine.normalizer import (
    UNCATEGORIZED_INDEX,
    normalize,
    normalize_section,
    normalize_timestamp,
    to_number,
)


class TestToNumber:
    """Tests for scalar coercion."""

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", float("nan"), np.nan, float("inf"), True, [], {}])
    def test_malformed_values_become_none(self, raw):
        assert to_number(raw) is None

    def test_numeric_strings_are_parsed(self):
        assert to_number(" 8.5 ") == 8.5
        assert to_number("10") == 10.0

    def test_numbers_pass_through(self):
        assert to_number(7) == 7.0
        assert to_number(np.float64(3.25)) == 3.25


class TestNormalize:
    """Tests for normalize(score, max)."""

    def test_returns_strict_pair(self):
        result = normalize("8", 10)
        assert result.score == 8.0
        assert result.max == 10.0

    def test_blank_fields_are_none_not_nan(self):
        result = normalize("", float("nan"))
        assert result.score is None
        assert result.max is None

    def test_never_throws(self):
        result = normalize(object(), {"a": 1})
        assert result.score is None and result.max is None


class TestNormalizeTimestamp:
    """Tests for timestamp coercion."""

    def test_epoch_seconds(self):
        assert normalize_timestamp(1700000000) == 1700000000.0

    def test_epoch_milliseconds(self):
        assert normalize_timestamp(1700000000000) == pytest.approx(1700000000.0)

    def test_date_string(self):
        assert normalize_timestamp("2024-01-15 00:00:00") == pytest.approx(1705276800.0)

    def test_garbage_is_none(self):
        assert normalize_timestamp("not a date") is None
        assert normalize_timestamp("") is None
        assert normalize_timestamp(None) is None


class TestNormalizeSection:
    """Tests for whole section payloads."""

    @pytest.fixture
    def payload(self):
        return {
            "section_id": "S1",
            "title": "Biology",
            "percentage": "87.5",
            "categories": [
                {
                    "index": 1, "weight": 60, "title": "Tests",
                    "assignments": [
                        {"assignment_id": "a1", "title": "Unit 1", "grade": "18", "max_points": "20"},
                        {"assignment_id": "a2", "title": "Unit 2", "grade": "", "max_points": 20},
                    ],
                },
                {"index": 2, "weight": "40", "title": "Homework"},
            ],
            "assignments": [
                {"assignment_id": "h1", "category": 2, "grade": 9, "max_points": 10},
                {"assignment_id": "x1", "category": 99, "grade": 5, "max_points": 5},
                {"assignment_id": "e1", "category": 2, "grade": 0, "max_points": 10, "exception": 1},
            ],
        }

    def test_section_fields(self, payload):
        section = normalize_section(payload)
        assert section.id == "S1"
        assert section.title == "Biology"
        assert section.reported_percentage == 87.5

    def test_categories_keep_order_and_weights(self, payload):
        section = normalize_section(payload)
        assert [c.index for c in section.categories][:2] == [1, 2]
        assert section.category(1).weight == 60
        assert section.category(2).weight == 40
        assert section.weighted

    def test_blank_grade_is_ungraded(self, payload):
        section = normalize_section(payload)
        a2 = section.category(1).records[1]
        assert a2.original_score is None
        assert a2.original_max == 20.0

    def test_flat_rows_join_their_category(self, payload):
        section = normalize_section(payload)
        ids = [r.assignment_id for r in section.category(2).records]
        assert "h1" in ids

    def test_unknown_category_goes_to_uncategorized(self, payload):
        section = normalize_section(payload)
        uncategorized = section.category(UNCATEGORIZED_INDEX)
        assert uncategorized is not None
        assert uncategorized.weight == 0
        assert [r.assignment_id for r in uncategorized.records] == ["x1"]
        assert uncategorized.records[0].category_index == UNCATEGORIZED_INDEX

    def test_excused_grade_is_ungraded(self, payload):
        section = normalize_section(payload)
        excused = [r for r in section.category(2).records if r.assignment_id == "e1"][0]
        assert excused.original_score is None

    def test_garbage_payload_gives_empty_section(self):
        section = normalize_section("nonsense")
        assert section.categories == []
        assert section.reported_percentage is None

    @pytest.mark.parametrize("raw", [
        {"section_id": "S1", "categories": 5},
        {"section_id": "S1", "categories": [{"index": 1, "assignments": 7}]},
        {"section_id": "S1", "categories": [{"index": 1, "grades": "a1"}]},
        {"section_id": "S1", "assignments": True},
        {"section_id": "S1", "grades": {"a1": 5}},
        {"section_id": "S1", "assignments": [None, 3, "row"]},
    ])
    def test_non_list_containers_are_treated_as_empty(self, raw):
        section = normalize_section(raw)
        assert section.id == "S1"
        assert all(r.original_score is None for r in section.records())

    def test_flat_rows_keep_upstream_position(self):
        section = normalize_section({
            "section_id": "S1",
            "categories": [{"index": 1, "title": "Quizzes"}, {"index": 2, "title": "Homework"}],
            "assignments": [
                {"assignment_id": "q1", "category": 1, "grade": 9, "max_points": 10},
                {"assignment_id": "h1", "category": 2, "grade": 5, "max_points": 10},
                {"assignment_id": "q2", "category": 1, "grade": 7, "max_points": 10},
            ],
        })
        positions = {r.assignment_id: r.position for r in section.records()}
        assert positions == {"q1": 0, "h1": 1, "q2": 2}

    def test_uncategorized_never_merges_into_declared_zero(self):
        section = normalize_section({
            "section_id": "S1",
            "categories": [{"index": 0, "weight": 50, "title": "Exams"}, {"index": 1, "weight": 50}],
            "assignments": [
                {"assignment_id": "e1", "category": 0, "grade": 9, "max_points": 10},
                {"assignment_id": "x1", "category": 99, "grade": 1, "max_points": 10},
                {"assignment_id": "n1", "grade": 2, "max_points": 10},
            ],
        })
        assert [r.assignment_id for r in section.category(0).records] == ["e1"]
        stray = section.category(-1)
        assert stray is not None
        assert stray.weight == 0
        assert stray.title == "Uncategorized"
        assert [r.assignment_id for r in stray.records] == ["x1", "n1"]
