"""
Mutable clause builder on top of SQLAlchemy expressions.

Clauses are accumulated in order, each tagged with the connective ("and"/"or")
that joins it to the clauses before it. Groups are built by handing a nested
builder to a callback, and may be negated.
"""
from __future__ import annotations

import operator
from datetime import date, datetime, timezone
from typing import Any, Callable, Collection, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import Date, DateTime, and_, not_, or_
from sqlalchemy.sql.elements import ColumnElement

from jsonapi_rql.rql.exceptions import RejectedInputError
from jsonapi_rql.rql.glob import LIKE_ESCAPE

# Timestamps handed to the builder use this textual format.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
DATE_FORMAT = "%Y-%m-%d"

CONNECTIVES = ("and", "or")

OPERATORS: Mapping[str, Callable[[Any, Any], ColumnElement]] = {
    "=": operator.eq,
    "<>": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
    "like": lambda column, value: column.like(value, escape=LIKE_ESCAPE),
}


def _parse_timestamp(value: str) -> datetime:
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        pass
    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise RejectedInputError(f"Invalid timestamp {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# PUBLIC_INTERFACE
def coerce_to_column(column: Any, value: Any) -> Any:
    """
    Convert textual timestamps/dates to Python objects for date-typed columns.

    Values for other column types are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    column_type = getattr(column, "type", None)
    if isinstance(column_type, DateTime):
        # bound as UTC, SQLite stores the wall-clock time only
        parsed = _parse_timestamp(value).astimezone(timezone.utc)
        if not column_type.timezone:
            parsed = parsed.replace(tzinfo=None)
        return parsed
    if isinstance(column_type, Date):
        try:
            return date.fromisoformat(value[:10])
        except ValueError as exc:
            raise RejectedInputError(f"Invalid date {value!r}") from exc
    return value


def _columns_of(source: Any) -> Mapping[str, Any]:
    """Accept a mapped class, a Table or an existing column mapping."""
    table = getattr(source, "__table__", None)
    if table is not None:
        return table.c
    columns = getattr(source, "c", None)
    if columns is not None:
        return columns
    return source


class ClauseBuilder:
    """
    Accumulates filter predicates for a single table.

    Parameters:
        columns: mapped class, Table, or mapping of field name to column.
        allowed: optional collection restricting which field names may be used.
    """

    def __init__(self, columns: Any, allowed: Optional[Collection[str]] = None) -> None:
        self.columns = _columns_of(columns)
        self.allowed = set(allowed) if allowed is not None else None
        self.clauses: List[Tuple[str, ColumnElement]] = []

    def __len__(self) -> int:
        return len(self.clauses)

    def __repr__(self) -> str:
        return f"<ClauseBuilder clauses={len(self.clauses)}>"

    def _column(self, field: str):
        if self.allowed is not None and field not in self.allowed:
            raise RejectedInputError(f"Unknown or non-filterable field {field!r}")
        column = self.columns.get(field)
        if column is None:
            raise RejectedInputError(f"Unknown or non-filterable field {field!r}")
        return column

    def _add(self, clause: ColumnElement, boolean: str) -> None:
        if boolean not in CONNECTIVES:
            raise RejectedInputError(f"Unknown connective {boolean!r}")
        self.clauses.append((boolean, clause))

    def nested(self) -> "ClauseBuilder":
        """Return an empty builder over the same columns."""
        return ClauseBuilder(self.columns, self.allowed)

    # predicates

    def where(self, field: str, op: str, value: Any, boolean: str = "and") -> "ClauseBuilder":
        """Add ``field <op> value``; ``op`` is one of OPERATORS."""
        if op not in OPERATORS:
            raise RejectedInputError(f"Unknown operator {op!r}")
        column = self._column(field)
        if op != "like":
            value = coerce_to_column(column, value)
        self._add(OPERATORS[op](column, value), boolean)
        return self

    def where_null(self, field: str, boolean: str = "and", negate: bool = False) -> "ClauseBuilder":
        column = self._column(field)
        self._add(column.is_not(None) if negate else column.is_(None), boolean)
        return self

    def where_not_null(self, field: str, boolean: str = "and") -> "ClauseBuilder":
        return self.where_null(field, boolean, negate=True)

    def where_in(
        self, field: str, values: Iterable[Any], boolean: str = "and", negate: bool = False
    ) -> "ClauseBuilder":
        column = self._column(field)
        values = [coerce_to_column(column, value) for value in values]
        self._add(column.not_in(values) if negate else column.in_(values), boolean)
        return self

    def where_group(
        self,
        callback: Callable[["ClauseBuilder"], None],
        boolean: str = "and",
        negate: bool = False,
    ) -> "ClauseBuilder":
        """
        Build a parenthesised group by passing a nested builder to ``callback``.

        An empty group adds nothing. Exceptions from the callback propagate and
        leave this builder untouched.
        """
        if boolean not in CONNECTIVES:
            raise RejectedInputError(f"Unknown connective {boolean!r}")
        group = self.nested()
        callback(group)
        expression = group.to_expression()
        if expression is None:
            return self
        if negate:
            expression = not_(expression)
        self._add(expression, boolean)
        return self

    # rendering

    def to_expression(self) -> Optional[ColumnElement]:
        """Fold the clauses left to right under their connectives."""
        if not self.clauses:
            return None
        expression = self.clauses[0][1]
        for boolean, clause in self.clauses[1:]:
            expression = and_(expression, clause) if boolean == "and" else or_(expression, clause)
        return expression

    def apply(self, statement):
        """Add the accumulated expression to a Select/Update/Delete statement."""
        expression = self.to_expression()
        if expression is None:
            return statement
        return statement.where(expression)
