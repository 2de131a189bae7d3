"""Small SQL predicate model used for alias resolution.

Metadata predicates are written against full table names
(``attendances.status = 'absent'``). They are parsed into a flat list of
nodes where every ``qualifier.column`` pair is a ``ColumnRef``, so
aliases are applied to qualifiers only. String literals, bare column
names and substrings of longer identifiers are never touched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

_TOKEN_RE = re.compile(
    r"""
    (?P<string>'(?:[^']|'')*')         # single-quoted literal, '' escapes
    | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<space>\s+)
    | (?P<symbol>.)
    """,
    re.VERBOSE | re.DOTALL,
)

TokenKind = Literal["string", "ident", "space", "symbol"]


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    text: str


@dataclass(frozen=True, slots=True)
class ColumnRef:
    """A ``qualifier.column`` reference."""

    qualifier: str
    column: str

    @property
    def text(self) -> str:
        return f"{self.qualifier}.{self.column}"


Node = Token | ColumnRef


def tokenize(sql: str) -> list[Token]:
    return [Token(m.lastgroup, m.group()) for m in _TOKEN_RE.finditer(sql)]  # type: ignore[arg-type]


def parse_predicate(sql: str) -> list[Node]:
    """Parse *sql* into tokens with qualified column references folded."""
    tokens = tokenize(sql)
    nodes: list[Node] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        preceded_by_dot = bool(nodes) and isinstance(nodes[-1], Token) and nodes[-1].text == "."
        if (
            token.kind == "ident"
            and not preceded_by_dot
            and i + 2 < len(tokens)
            and tokens[i + 1].text == "."
            and tokens[i + 2].kind == "ident"
        ):
            nodes.append(ColumnRef(token.text, tokens[i + 2].text))
            i += 3
            continue
        nodes.append(token)
        i += 1
    return nodes


def render(nodes: list[Node]) -> str:
    return "".join(node.text for node in nodes)


def qualifiers(sql: str) -> set[str]:
    """Return every qualifier referenced in *sql*."""
    return {node.qualifier for node in parse_predicate(sql) if isinstance(node, ColumnRef)}


def apply_aliases(sql: str, aliases: Mapping[str, str]) -> str:
    """Replace table-name qualifiers with their aliases.

    Args:
        sql: Predicate or expression written against table names.
        aliases: Table name → alias for every table in the query.

    Returns:
        The rewritten text. Unknown qualifiers are left as they are.
    """
    nodes = [
        ColumnRef(aliases[node.qualifier], node.column)
        if isinstance(node, ColumnRef) and node.qualifier in aliases
        else node
        for node in parse_predicate(sql)
    ]
    return render(nodes)
