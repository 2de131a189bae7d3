"""Count-vs-list detection shared by every pipeline stage.

The intent fallback, the keyword extractor and the disambiguator all
ask the same question ("does the user want a number or rows?") and
answer it here, so they cannot disagree.

Rules:

* A request for a specific field (contact, phone, name, address,
  parent...) always means rows, even if "count" appears literally.
* A list verb (which, who, list, show...) always means rows.
* Otherwise a count phrase (how many, number of, count) means a number.

Phrases match on word boundaries: "who" does not match "whole" and
"count" does not match "account".
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from functools import cache

LIST_ACTIONS: tuple[str, ...] = (
    "which",
    "who",
    "list",
    "show",
    "find",
    "get",
    "display",
    "give me",
)
COUNT_ACTIONS: tuple[str, ...] = ("how many", "number of", "count")
MODIFIERS: tuple[str, ...] = (
    "top",
    "best",
    "highest",
    "lowest",
    "new",
    "recent",
    "active",
    "pending",
    "unpaid",
    "overdue",
)

# Prefix cues: "contact" also covers "contacts", "name" covers "names".
FIELD_CUES: tuple[str, ...] = (
    "contact",
    "phone",
    "name",
    "address",
    "parent",
    "email",
    "guardian",
)

# Checked in order; the first domain with a substring hit wins.
DOMAIN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "attendance": ("attendance", "absent", "present", "late", "excused", "missing"),
    "fees": ("fee", "fees", "payment", "paid", "pending", "unpaid", "overdue", "due"),
    "exams": ("exam", "exams", "result", "results", "marks", "grade", "performance", "failing"),
    "staff": ("staff", "teacher", "teachers", "employee", "employees", "designation"),
    "students": ("student", "students", "admission", "class"),
}
DEFAULT_DOMAIN = "students"


@cache
def _phrase_re(phrase: str, *, prefix: bool = False) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(word) for word in phrase.split())
    return re.compile(rf"\b{body}" if prefix else rf"\b{body}\b")


def _matches(text: str, phrases: Iterable[str], *, prefix: bool = False) -> list[str]:
    lowered = text.lower()
    return [p for p in phrases if _phrase_re(p, prefix=prefix).search(lowered)]


def find_list_actions(text: str) -> list[str]:
    """Return the list verbs present in *text*, in canonical order."""
    return _matches(text, LIST_ACTIONS)


def find_count_actions(text: str) -> list[str]:
    """Return the count phrases present in *text*, in canonical order."""
    return _matches(text, COUNT_ACTIONS)


def find_modifiers(text: str) -> list[str]:
    """Return ranking/status modifiers present in *text*."""
    return _matches(text, MODIFIERS)


def has_field_cue(text: str) -> bool:
    """True when *text* asks for a specific field such as a phone or name."""
    return bool(_matches(text, FIELD_CUES, prefix=True))


def extract_actions(text: str) -> list[str]:
    """Return the action phrases of *text*.

    List verbs take priority: count phrases are only recorded when no
    list verb and no field cue is present.
    """
    actions = find_list_actions(text)
    if actions or has_field_cue(text):
        return actions
    return find_count_actions(text)


def is_count_query(text: str, actions: Sequence[str] | None = None) -> bool:
    """Decide whether *text* asks for a number rather than rows.

    Args:
        text: Raw user question.
        actions: Previously extracted actions. When given, a count is
            only possible if they contain a count phrase and no list verb.

    Returns:
        True for a bare counting question.
    """
    if actions is not None:
        if any(a in LIST_ACTIONS for a in actions):
            return False
        if not any(a in COUNT_ACTIONS for a in actions):
            return False
    return (
        bool(find_count_actions(text))
        and not find_list_actions(text)
        and not has_field_cue(text)
    )


def infer_domain(text: str) -> str:
    """Infer a business domain from *text* using the fixed keyword table."""
    lowered = text.lower()
    for domain, keywords in DOMAIN_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return domain
    return DEFAULT_DOMAIN
