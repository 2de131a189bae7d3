"""Prompt builders for SQL generation.

Prompts are pure functions of their inputs so they can be asserted on
directly in tests. The tenant placeholder in the worked examples is
replaced with the real school id only after the model has answered.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from models import ConversationTurn

DEFAULT_PLACEHOLDER = "<school_id_from_context>"


def format_history(history: Sequence[ConversationTurn], turns: int) -> str:
    """Render the last *turns* messages as ``User:`` / ``Assistant:`` lines."""
    if not history or turns <= 0:
        return ""
    lines = [
        f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}"
        for turn in list(history)[-turns:]
    ]
    return "\n".join(lines)


def _history_section(history: Sequence[ConversationTurn], turns: int) -> str:
    rendered = format_history(history, turns)
    if not rendered:
        return ""
    return (
        "## Conversation History\n"
        "Use it to resolve references such as \"those students\" or \"the fees I mentioned\".\n"
        f"{rendered}\n"
        "\n"
    )


def _worked_examples(placeholder: str) -> str:
    scope = f"s.school_id = '{placeholder}'"
    return (
        "## Worked Examples\n"
        "- \"how many students are absent today\" (COUNT)\n"
        "  SELECT COUNT(DISTINCT s.id) AS count FROM students s "
        "JOIN attendances a ON s.id = a.student_id "
        f"WHERE {scope} AND a.school_id = '{placeholder}' "
        "AND a.date = CURRENT_DATE AND a.status = 'absent'\n"
        "- \"contact numbers of students absent today\" (LIST, asks for fields)\n"
        "  SELECT DISTINCT s.id, s.first_name, s.last_name, s.roll_number, s.father_phone, "
        "s.mother_phone, s.emergency_contact_phone, c.name AS class_name FROM students s "
        "JOIN attendances a ON s.id = a.student_id LEFT JOIN classes c ON s.class_id = c.id "
        f"WHERE {scope} AND a.date = CURRENT_DATE AND a.status = 'absent' "
        "ORDER BY c.name, s.roll_number\n"
        "- \"students with pending fees\" (LIST)\n"
        "  SELECT DISTINCT s.id, s.first_name, s.last_name, s.admission_number, f.amount, "
        "f.due_date, f.fee_type, f.status FROM students s JOIN fees f ON s.id = f.student_id "
        f"WHERE {scope} AND f.school_id = '{placeholder}' AND f.status = 'pending' "
        "ORDER BY f.due_date DESC, s.last_name\n"
        "- \"top 10 students by exam marks\"\n"
        "  SELECT s.id, s.first_name, s.last_name, c.name AS class_name, "
        "AVG(er.marks_obtained * 100.0 / NULLIF(er.max_marks, 0)) AS avg_percentage "
        "FROM students s JOIN exam_results er ON s.id = er.student_id "
        "LEFT JOIN classes c ON s.class_id = c.id "
        f"WHERE {scope} AND er.school_id = '{placeholder}' "
        "GROUP BY s.id, s.first_name, s.last_name, c.name ORDER BY avg_percentage DESC LIMIT 10\n"
        "- \"ratio of boys to girls\"\n"
        "  SELECT s.gender, COUNT(DISTINCT s.id) AS count FROM students s "
        f"WHERE {scope} AND s.is_active = true GROUP BY s.gender ORDER BY s.gender\n"
        "\n"
    )


_RULES = (
    "## COUNT vs LIST\n"
    "- COUNT: the question only asks how many (\"how many\", \"number of\", \"count\") and names "
    "no specific field. Return a single row: SELECT COUNT(DISTINCT <alias>.id) AS count.\n"
    "- LIST: the question uses a list verb (which, who, list, show, find, get, display, give me) "
    "or asks for a field such as contact, phone, name, address, parent or email. Return the "
    "rows with those fields. A requested field always means LIST, even if the word \"count\" "
    "also appears.\n"
    "\n"
    "## Choosing Columns\n"
    "Match phrases in the question to column descriptions in the schema. \"contact numbers\" "
    "means father_phone, mother_phone and emergency_contact_phone; \"parents\" means "
    "father_name and mother_name plus their phones; \"address\" means address, city and state. "
    "Always include identifying columns (first_name, last_name, roll_number) when listing "
    "students.\n"
    "\n"
    "## Rules\n"
    "1. Generate exactly one PostgreSQL SELECT statement. Never INSERT, UPDATE, DELETE, DROP, "
    "ALTER, CREATE, TRUNCATE, GRANT or REVOKE.\n"
    "2. Table names are PLURAL: attendances (not attendance), students, classes, fees, exams, "
    "exam_results, staff, subjects, schools.\n"
    "3. Every table in FROM or JOIN must be filtered by school_id where it has one.\n"
    "4. Use ILIKE for text matching and CURRENT_DATE for \"today\".\n"
    "5. Use short aliases: s students, c classes, a attendances, f fees, e exams, "
    "er exam_results, st staff, sub subjects.\n"
    "6. Use DISTINCT when joins can duplicate rows, and always add ORDER BY to lists.\n"
    "7. For ratios or percentages, GROUP BY the category (gender, status, class_name, "
    "fee_type...) and return a count per group.\n"
    "8. Return only SQL. No markdown, no explanation.\n"
    "9. If the message is not a question about school data, reply exactly: "
    "This is not a data query.\n"
    "\n"
)


def build_generation_prompt(
    query: str,
    *,
    schema: str,
    examples: dict[str, Any],
    history: Sequence[ConversationTurn] = (),
    history_turns: int = 10,
    placeholder: str = DEFAULT_PLACEHOLDER,
    structure_hint: str | None = None,
) -> str:
    """Build the first-attempt prompt.

    Args:
        query: The user's question.
        schema: Schema description (JSON text).
        examples: Sample values per table, may be empty.
        history: Prior conversation turns.
        history_turns: How many trailing turns to include.
        placeholder: Token used for the school id in worked examples.
        structure_hint: Optional draft SQL from disambiguation.

    Returns:
        Prompt text.
    """
    hint = ""
    if structure_hint:
        hint = (
            "## Suggested Structure\n"
            "Tables, joins and filters resolved from the question. Adjust it if the question "
            "needs something different.\n"
            f"{structure_hint}\n"
            "\n"
        )

    return (
        "Convert the user question into a safe, accurate PostgreSQL SELECT query for a "
        "school records system.\n"
        "\n"
        "## Database Schema\n"
        f"{schema}\n"
        "\n"
        "## Example Values\n"
        f"{json.dumps(examples, indent=2, default=str)}\n"
        "\n"
        f"{_history_section(history, history_turns)}"
        f"{_RULES}"
        f"{_worked_examples(placeholder)}"
        f"{hint}"
        f"Use '{placeholder}' wherever the school id is needed.\n"
        "\n"
        "## User Question\n"
        f"\"{query}\"\n"
        "\n"
        "Decide whether this is a COUNT or a LIST question, pick the columns, then write the SQL:"
    )


def build_retry_prompt(
    query: str,
    *,
    previous_sql: str,
    error: str,
    attempt: int,
    schema: str,
    examples: dict[str, Any],
    history: Sequence[ConversationTurn] = (),
    history_turns: int = 10,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> str:
    """Build a regeneration prompt that feeds back the failing SQL and its error.

    Args:
        query: The user's original question.
        previous_sql: SQL that failed.
        error: Database error message, verbatim.
        attempt: The attempt being generated (2 for the first retry).
        schema: Schema description (JSON text).
        examples: Sample values per table.
        history: Prior conversation turns.
        history_turns: How many trailing turns to include.
        placeholder: Token used for the school id.

    Returns:
        Prompt text.
    """
    return (
        "A SQL query you generated failed when executed against the school records database. "
        "Analyze the error and write a corrected PostgreSQL SELECT query.\n"
        "\n"
        "## Database Schema\n"
        f"{schema}\n"
        "\n"
        "## Example Values\n"
        f"{json.dumps(examples, indent=2, default=str)}\n"
        "\n"
        f"{_history_section(history, history_turns)}"
        "## Original User Question\n"
        f"\"{query}\"\n"
        "\n"
        f"## Failed SQL (attempt {attempt - 1})\n"
        f"{previous_sql}\n"
        "\n"
        "## Database Error\n"
        f"{error}\n"
        "\n"
        "## How to Fix\n"
        "1. Read the error carefully; it names the exact problem.\n"
        "2. Table names are PLURAL: attendances, students, classes, fees, exams, exam_results, "
        "staff, subjects, schools.\n"
        "3. Use only column names that exist in the schema above.\n"
        "4. Every JOIN needs an ON clause with the correct foreign key.\n"
        "5. Keep the COUNT vs LIST shape of the original answer unless the error is about it.\n"
        "6. Generate a SELECT statement only.\n"
        f"7. Filter every table by school_id = '{placeholder}'.\n"
        "8. Return only SQL. No markdown, no explanation.\n"
        "\n"
        "Corrected SQL:"
    )
