"""
Free-form filter expressions for memo listing.

The store passes ``FindMemo.filter`` through untouched; the SQL driver parses
it here and turns it into SQLAlchemy conditions. The grammar is a flat
conjunction::

    visibility in ["PUBLIC", "PROTECTED"] && creator_id == 1
    content.contains("meeting") && tag in ["work"] && has_task_list
    created_ts >= 1700000000 && pinned == true

Supported clauses:
- ``<field> <op> <literal>`` with ops ``== != < <= > >=``
- ``<field> in [<literal>, ...]`` and ``tag in [...]`` (any listed tag)
- ``content.contains("...")``
- bare flags: ``pinned``, ``has_link``, ``has_task_list``, ``has_code``,
  ``has_incomplete_tasks``
"""
import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from sqlalchemy import String, cast, column, false, func, literal, or_, select
from sqlalchemy.sql.elements import ColumnElement

from memostore.errors import FilterSyntaxError
from memostore.models.memo import Memo, RowStatus, Visibility

FIELD_TYPES = {
    "id": int,
    "uid": str,
    "short_id": str,
    "creator_id": int,
    "created_ts": int,
    "updated_ts": int,
    "visibility": Visibility,
    "row_status": RowStatus,
    "pinned": bool,
    "content": str,
}
PAYLOAD_FLAGS = ("has_link", "has_task_list", "has_code", "has_incomplete_tasks")
COMPARISON_OPS = ("==", "!=", "<", "<=", ">", ">=")
ORDERED_TYPES = (int,)

_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<number>-?\d+)
      | (?P<string>"(?:[^"\\]|\\.)*")
      | (?P<op>&&|==|!=|<=|>=|<|>)
      | (?P<punct>[\[\](),.])
      | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
    )""",
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any


@dataclass(frozen=True)
class Clause:
    """One parsed condition: ``kind`` is compare, in, contains, tag_in or flag."""
    kind: str
    field: str
    op: Optional[str] = None
    value: Any = None


def tokenize(expression: str) -> List[Token]:
    tokens = []
    pos = 0
    stripped = expression.rstrip()
    while pos < len(stripped):
        match = _TOKEN_RE.match(stripped, pos)
        if match is None or match.end() == pos:
            raise FilterSyntaxError(expression, f"unexpected character at position {pos}")
        kind = match.lastgroup
        raw = match.group(kind)
        if kind == "number":
            tokens.append(Token("literal", int(raw)))
        elif kind == "string":
            try:
                tokens.append(Token("literal", json.loads(raw)))
            except ValueError:
                raise FilterSyntaxError(expression, f"bad string literal {raw}") from None
        elif kind == "name" and raw in ("true", "false"):
            tokens.append(Token("literal", raw == "true"))
        else:
            tokens.append(Token(kind, raw))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.pos = 0

    def fail(self, reason: str):
        raise FilterSyntaxError(self.expression, reason)

    def peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def at_punct(self, value: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.kind == "punct" and tok.value == value

    def next(self, kind: Optional[str] = None, value: Optional[str] = None) -> Token:
        tok = self.peek()
        if tok is None:
            self.fail("unexpected end of expression")
        if (kind and tok.kind != kind) or (value and tok.value != value):
            self.fail(f"expected {value or kind}, got {tok.value!r}")
        self.pos += 1
        return tok

    def parse(self) -> List[Clause]:
        if not self.tokens:
            self.fail("empty expression")
        clauses = [self.clause()]
        while self.peek() is not None:
            self.next("op", "&&")
            clauses.append(self.clause())
        return clauses

    def clause(self) -> Clause:
        name = self.next("name").value
        tok = self.peek()

        if tok is None or (tok.kind == "op" and tok.value == "&&"):
            if name in PAYLOAD_FLAGS or name == "pinned":
                return Clause("flag", name)
            self.fail(f"{name!r} is not a boolean flag")

        if tok.kind == "punct" and tok.value == ".":
            self.next()
            method = self.next("name").value
            if name != "content" or method != "contains":
                self.fail(f"unknown method {name}.{method}")
            self.next("punct", "(")
            value = self.literal(str)
            self.next("punct", ")")
            return Clause("contains", name, value=value)

        if tok.kind == "name" and tok.value == "in":
            self.next()
            if name == "tag":
                return Clause("tag_in", name, value=self.literal_list(str))
            return Clause("in", self.field(name), value=self.literal_list(FIELD_TYPES[self.field(name)]))

        if tok.kind == "op" and tok.value in COMPARISON_OPS:
            op = self.next().value
            field = self.field(name)
            expected = FIELD_TYPES[field]
            if op not in ("==", "!=") and expected not in ORDERED_TYPES:
                self.fail(f"operator {op} is not supported for {field}")
            return Clause("compare", field, op=op, value=self.literal(expected))

        self.fail(f"unexpected token {tok.value!r} after {name!r}")

    def field(self, name: str) -> str:
        if name not in FIELD_TYPES:
            self.fail(f"unknown field {name!r}")
        return name

    def literal(self, expected):
        raw = self.next("literal").value
        if expected is bool:
            if not isinstance(raw, bool):
                self.fail(f"expected true or false, got {raw!r}")
            return raw
        if expected is int:
            if isinstance(raw, bool) or not isinstance(raw, int):
                self.fail(f"expected an integer, got {raw!r}")
            return raw
        if not isinstance(raw, str):
            self.fail(f"expected a string, got {raw!r}")
        if expected is str:
            return raw
        try:
            return expected(raw)
        except ValueError:
            self.fail(f"invalid {expected.__name__} {raw!r}")

    def literal_list(self, expected) -> Tuple:
        self.next("punct", "[")
        values = []
        if not self.at_punct("]"):
            values.append(self.literal(expected))
            while self.at_punct(","):
                self.next()
                values.append(self.literal(expected))
        self.next("punct", "]")
        return tuple(values)


def parse_filter(expression: str) -> List[Clause]:
    """Parse a filter expression into clauses; raises FilterSyntaxError."""
    return _Parser(expression).parse()


# ---------------------------------------------------------------------------
# Payload helpers (SQLite JSON1)
# ---------------------------------------------------------------------------
def payload_has_tag(tag: str) -> ColumnElement:
    """EXISTS over the decoded $.tags array, so escaping in the stored text never matters."""
    tags = func.json_each(Memo.payload, "$.tags").table_valued(column("value", String))
    return select(literal(1)).select_from(tags).where(tags.c.value == tag).exists()


def payload_flag_set(flag: str) -> ColumnElement:
    return func.json_extract(Memo.payload, f"$.property.{flag}") == 1


def payload_raw_contains(raw: str) -> ColumnElement:
    """Substring of the serialized payload, or of any decoded string inside it."""
    leaves = func.json_tree(Memo.payload).table_valued(column("value", String), column("type", String))
    decoded = (
        select(literal(1))
        .select_from(leaves)
        .where(leaves.c.type == "text", leaves.c.value.contains(raw, autoescape=True))
        .exists()
    )
    return or_(cast(Memo.payload, String).contains(raw, autoescape=True), decoded)


def _compare(col, op: str, value) -> ColumnElement:
    if op == "==":
        return col == value
    if op == "!=":
        return col != value
    if op == "<":
        return col < value
    if op == "<=":
        return col <= value
    if op == ">":
        return col > value
    return col >= value


def compile_clause(clause: Clause) -> ColumnElement:
    if clause.kind == "flag":
        if clause.field == "pinned":
            return Memo.pinned == True  # noqa: E712
        return payload_flag_set(clause.field)
    if clause.kind == "contains":
        return Memo.content.contains(clause.value, autoescape=True)
    if clause.kind == "tag_in":
        if not clause.value:
            return false()
        return or_(*[payload_has_tag(tag) for tag in clause.value])

    col = getattr(Memo, clause.field)
    if clause.kind == "in":
        return col.in_(list(clause.value))
    return _compare(col, clause.op, clause.value)


def compile_filter(expression: str) -> List[ColumnElement]:
    """Turn a filter expression into a list of conditions to AND together."""
    return [compile_clause(clause) for clause in parse_filter(expression)]
