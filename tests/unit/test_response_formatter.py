"""Tests for result summaries and computed analysis."""

from __future__ import annotations

import pytest
from entities.shared.response_formatter import analyze_data, format_inr, format_response


@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        (500, "500"),
        (1000, "1,000"),
        (100000, "1,00,000"),
        (1234567.5, "12,34,567.5"),
        (-2500, "-2,500"),
    ],
)
def test_format_inr(amount: float, expected: str) -> None:
    assert format_inr(amount) == expected


# ── format_response ──────────────────────────────────────────────────────


class TestFormatResponse:
    def test_no_rows(self) -> None:
        assert format_response("how many students are absent today", []) == "No results found."

    def test_single_absent_count(self) -> None:
        text = format_response("how many students are absent today", [{"count": 1}])
        assert text == "1 student is absent today."

    def test_student_count(self) -> None:
        assert format_response("how many students in 5A", [{"count": 5}]) == "5 students found."

    def test_generic_count(self) -> None:
        assert format_response("how many teachers", [{"count": 12}]) == "12 records found."

    def test_total_count_overrides_row_count(self) -> None:
        rows = [{"first_name": "Asha"}, {"first_name": "Ravi"}]

        text = format_response("list students absent today", rows, count=150)

        assert text == "150 students are absent today."

    def test_pending_fees_total(self) -> None:
        rows = [{"amount": 1500}, {"amount": 2500.5}]

        text = format_response("which students have pending fees", rows)

        assert text == "2 students have pending fees (total: ₹4,000.5)."

    def test_pending_fees_without_amounts(self) -> None:
        rows = [{"first_name": "Asha"}]
        assert format_response("unpaid fees", rows) == "1 student has pending fees."

    def test_grouped_counts_are_results(self) -> None:
        rows = [{"class_name": "5A", "count": 30}, {"class_name": "5B", "count": 28}]
        assert format_response("students by class", rows) == "2 results found."


# ── analyze_data ─────────────────────────────────────────────────────────


class TestAnalyzeData:
    def test_ratio_from_counts(self) -> None:
        rows = [{"gender": "male", "count": 30}, {"gender": "female", "count": 20}]

        result = analyze_data("ratio of boys to girls", rows)

        assert result.analysis == (
            "The ratio of male to female is 1.50:1 (60.0% male, 40.0% female). "
            "Total: 30 male and 20 female."
        )
        assert result.insights["ratio"]["groups"] == {"male": 30, "female": 20}

    def test_ratio_from_raw_records(self) -> None:
        rows = [
            {"id": 1, "gender": "male"},
            {"id": 2, "gender": "male"},
            {"id": 2, "gender": "male"},
            {"id": 3, "gender": "female"},
        ]

        result = analyze_data("boy girl ratio", rows)

        assert result.insights["ratio"]["ratio"] == "2.00:1"

    def test_ratio_below_one(self) -> None:
        rows = [{"stream": "arts", "count": 10}, {"stream": "science", "count": 30}]

        result = analyze_data("ratio of arts to science", rows)

        assert result.insights["ratio"]["ratio"] == "1:3.00"

    def test_ratio_needs_two_groups(self) -> None:
        rows = [{"gender": "male", "count": 30}]
        assert analyze_data("ratio of boys to girls", rows).analysis is None

    def test_percentages(self) -> None:
        rows = [{"status": "paid", "count": 3}, {"status": "pending", "count": 1}]

        result = analyze_data("percentage of fees paid", rows)

        assert result.analysis == "Breakdown: paid: 75.0%, pending: 25.0%"

    def test_average_ignores_zeroes(self) -> None:
        rows = [{"marks_obtained": 80}, {"marks_obtained": 90}, {"marks_obtained": 0}]

        result = analyze_data("average marks in maths", rows)

        assert result.analysis == "The average marks obtained is 85.00."

    def test_no_cue(self) -> None:
        result = analyze_data("list students", [{"first_name": "Asha"}])

        assert result.analysis is None
        assert result.insights == {}

    def test_empty_rows(self) -> None:
        assert analyze_data("ratio of boys to girls", []).analysis is None
