"""Plain-language summaries of executed query results.

Summaries are computed from the returned rows, never by the LLM, so the
numbers shown to the user always match the data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

RATIO_GROUP_FIELDS = ("stream", "category", "type", "status", "gender", "class_name", "subject_name")
PERCENT_GROUP_FIELDS = ("stream", "category", "type", "status", "gender")
COUNT_FIELDS = ("count", "student_count", "total_count", "num_students")
NUMERIC_FIELDS = ("marks_obtained", "max_marks", "amount", "percentage", "avg_percentage")


@dataclass
class DataAnalysis:
    """Computed insight over a result set."""

    analysis: str | None = None
    insights: dict[str, Any] = field(default_factory=dict)


def _plural(count: int | float, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def format_inr(amount: float) -> str:
    """Format *amount* with Indian digit grouping (12,34,567.5)."""
    negative = amount < 0
    whole, _, frac = f"{abs(amount):.2f}".partition(".")
    head, tail = whole[:-3], whole[-3:]
    groups: list[str] = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    grouped = ",".join([*groups, tail])
    frac = frac.rstrip("0")
    text = f"{grouped}.{frac}" if frac else grouped
    return f"-{text}" if negative else text


def _first_field(row: dict[str, Any], candidates: tuple[str, ...]) -> str | None:
    return next((name for name in candidates if name in row), None)


# ── Analysis ────────────────────────────────────────────────────────────


def _group_counts(rows: list[dict[str, Any]], group_field: str) -> dict[str, int]:
    first = rows[0]
    count_field = next(
        (
            name
            for name in COUNT_FIELDS
            if isinstance(first.get(name), (int, float)) and not isinstance(first.get(name), bool)
        ),
        None,
    )
    groups: dict[str, int] = {}
    if count_field:
        for row in rows:
            value, count = row.get(group_field), row.get(count_field)
            if value and count:
                groups[str(value)] = int(count)
        return groups

    # Raw records: count distinct ids per group.
    id_field = "student_id" if "student_id" in first else ("id" if "id" in first else None)
    seen: set[tuple[str, str]] = set()
    for row in rows:
        value = row.get(group_field)
        if not value:
            continue
        key = (str(value), str(row.get(id_field)) if id_field else repr(sorted(row.items())))
        if key not in seen:
            seen.add(key)
            groups[str(value)] = groups.get(str(value), 0) + 1
    return groups


def _ratio(rows: list[dict[str, Any]]) -> DataAnalysis | None:
    group_field = _first_field(rows[0], RATIO_GROUP_FIELDS)
    if not group_field:
        return None
    entries = [(name, count) for name, count in _group_counts(rows, group_field).items() if count]
    if len(entries) < 2:
        return None

    (group1, count1), (group2, count2) = entries[0], entries[1]
    ratio = count1 / count2
    ratio_text = f"{ratio:.2f}:1" if ratio >= 1 else f"1:{1 / ratio:.2f}"
    total = count1 + count2
    pct1 = f"{count1 / total * 100:.1f}"
    pct2 = f"{count2 / total * 100:.1f}"
    return DataAnalysis(
        analysis=(
            f"The ratio of {group1} to {group2} is {ratio_text} "
            f"({pct1}% {group1}, {pct2}% {group2}). "
            f"Total: {count1} {group1} and {count2} {group2}."
        ),
        insights={
            "ratio": {
                "groups": {group1: count1, group2: count2},
                "ratio": ratio_text,
                "percentage1": pct1,
                "percentage2": pct2,
            }
        },
    )


def _percentages(rows: list[dict[str, Any]]) -> DataAnalysis | None:
    group_field = _first_field(rows[0], PERCENT_GROUP_FIELDS)
    if not group_field:
        return None
    groups = _group_counts(rows, group_field)
    total = sum(groups.values())
    if not total:
        return None
    percentages = {name: f"{count / total * 100:.1f}" for name, count in groups.items()}
    text = ", ".join(f"{name}: {pct}%" for name, pct in percentages.items())
    return DataAnalysis(analysis=f"Breakdown: {text}", insights={"percentages": percentages})


def _average(rows: list[dict[str, Any]]) -> DataAnalysis | None:
    for name in NUMERIC_FIELDS:
        if name not in rows[0]:
            continue
        values = [v for v in (_to_float(row.get(name)) for row in rows) if v > 0]
        if values:
            avg = sum(values) / len(values)
            return DataAnalysis(
                analysis=f"The average {name.replace('_', ' ')} is {avg:.2f}.",
                insights={"average": {"field": name, "value": f"{avg:.2f}"}},
            )
    return None


def analyze_data(query: str, rows: list[dict[str, Any]]) -> DataAnalysis:
    """Compute ratio, percentage or average insights requested by *query*.

    Args:
        query: The user's question.
        rows: Executed result rows.

    Returns:
        ``DataAnalysis``; empty when nothing applies.
    """
    if not rows:
        return DataAnalysis()

    text = query.lower()
    result: DataAnalysis | None = None
    if "ratio" in text:
        result = _ratio(rows)
    if result is None and ("percentage" in text or "percent" in text):
        result = _percentages(rows)
    if result is None and any(cue in text for cue in ("average", "mean", "avg")):
        result = _average(rows)

    if result is not None:
        logger.debug("Analysis for %r: %s", query[:100], result.analysis)
    return result or DataAnalysis()


# ── Summary ─────────────────────────────────────────────────────────────


def format_response(query: str, rows: list[dict[str, Any]], count: int | None = None) -> str:
    """Summarize *rows* as one sentence.

    Args:
        query: The user's question.
        rows: Executed result rows.
        count: Total row count when *rows* is truncated.

    Returns:
        Summary text.
    """
    if not rows:
        return "No results found."

    text = query.lower()

    if len(rows) == 1 and "count" in rows[0]:
        total = int(_to_float(rows[0]["count"]))
        if "absent" in text:
            return f"{total} {_plural(total, 'student is', 'students are')} absent today."
        if "present" in text:
            return f"{total} {_plural(total, 'student is', 'students are')} present today."
        if "student" in text:
            return f"{total} {_plural(total, 'student', 'students')} found."
        return f"{total} {_plural(total, 'record', 'records')} found."

    actual = count if count is not None else len(rows)
    if "absent" in text and "student" in text:
        return f"{actual} {_plural(actual, 'student is', 'students are')} absent today."
    if "present" in text and "student" in text:
        return f"{actual} {_plural(actual, 'student is', 'students are')} present today."
    if "unpaid" in text or "pending" in text:
        total_amount = sum(_to_float(row.get("amount") or row.get("fee_amount")) for row in rows)
        subject = _plural(actual, "student has", "students have")
        if total_amount > 0:
            return f"{actual} {subject} pending fees (total: ₹{format_inr(total_amount)})."
        return f"{actual} {subject} pending fees."
    return f"{actual} {_plural(actual, 'result', 'results')} found."

