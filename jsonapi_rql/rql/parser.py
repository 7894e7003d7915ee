"""
Parser for RQL (Resource Query Language) strings.

Supported syntax:

    and(eq(status,published),or(gt(rating,3),like(title,*python*)))
    status=published&rating=gt=3          (FIQL shorthand)
    (status=draft|status=review)&sort(-created_at)&limit(10,20)
    in(id,(1,2,3))  out(id,(4,5))  not(eq(author_id,null()))

Values are typed: integers and floats become numbers, ISO-8601 timestamps
become datetimes, ``true()``/``false()``/``null()``/``empty()`` are
constants and ``string:``/``integer:``/``float:``/``boolean:``/``date:``/
``glob:`` force a type. Everything else is a percent-decoded string.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import unquote

from .exceptions import RqlSyntaxError
from .glob import Glob
from .nodes import (
    ARRAY_OPERATORS,
    COMPARISON_OPERATORS,
    AbstractNode,
    AbstractQueryNode,
    ArrayNode,
    ComparisonNode,
    LimitNode,
    LogicalNode,
    Query,
    SelectNode,
    SortNode,
)

_TOKEN_RE = re.compile(r"\s*(?:([(),&|=])|([^(),&|=\s]+))")

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?$")
_DATETIME_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?$"
)
_PERCENT_RE = re.compile(r"%[0-9A-Fa-f]{2}")

_CONSTANTS: Dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "empty": "",
}


class Token(NamedTuple):
    kind: str  # "punct", "word" or "end"
    text: str
    position: int


def tokenize(text: str) -> List[Token]:
    """Split an RQL string into punctuation and word tokens."""
    tokens: List[Token] = []
    position = 0
    length = len(text)
    while position < length:
        match = _TOKEN_RE.match(text, position)
        if match is None:
            # only trailing whitespace can fail to match
            if text[position:].strip():
                raise RqlSyntaxError("Unexpected character", position)
            break
        punct, word = match.group(1), match.group(2)
        start = match.start(1) if punct else match.start(2)
        if punct:
            tokens.append(Token("punct", punct, start))
        elif word:
            tokens.append(Token("word", word, start))
        position = match.end()
    tokens.append(Token("end", "", length))
    return tokens


def parse_datetime(text: str) -> datetime:
    """Parse an ISO-8601 timestamp; values without an offset are taken as UTC."""
    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    # accept +HHMM as well as +HH:MM
    normalized = re.sub(r"([+-]\d{2})(\d{2})$", r"\1:\2", normalized)
    value = datetime.fromisoformat(normalized)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _to_boolean(text: str) -> bool:
    lowered = text.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no", ""):
        return False
    raise ValueError(f"invalid boolean {text!r}")


def glob_from_raw(raw: str) -> Glob:
    """
    Build a glob from an undecoded value.

    Raw ``*`` and ``?`` stay wildcards while percent-encoded characters are
    taken literally, so ``%2A`` matches an actual asterisk.
    """
    parts = []
    position = 0
    for match in _PERCENT_RE.finditer(raw):
        parts.append(raw[position:match.start()])
        parts.append(Glob.encode(unquote(match.group(0))))
        position = match.end()
    parts.append(raw[position:])
    return Glob("".join(parts))


_CASTS: Dict[str, Callable[[str], Any]] = {
    "string": lambda raw: unquote(raw),
    "integer": lambda raw: int(unquote(raw)),
    "float": lambda raw: float(unquote(raw)),
    "boolean": lambda raw: _to_boolean(unquote(raw)),
    "date": lambda raw: parse_datetime(unquote(raw)),
    "glob": glob_from_raw,
}


# PUBLIC_INTERFACE
def parse_value(raw: str) -> Any:
    """
    Convert a single raw RQL word into a typed Python value.

    Raises:
        RqlSyntaxError: if an explicit cast cannot be applied.
    """
    prefix, sep, rest = raw.partition(":")
    if sep and prefix in _CASTS:
        try:
            return _CASTS[prefix](rest)
        except ValueError as exc:
            raise RqlSyntaxError(f"Invalid {prefix} value {rest!r}") from exc

    if _INTEGER_RE.match(raw):
        return int(raw)
    if _FLOAT_RE.match(raw):
        return float(raw)
    if _DATETIME_RE.match(raw):
        try:
            return parse_datetime(raw)
        except ValueError as exc:
            raise RqlSyntaxError(f"Invalid date {raw!r}") from exc
    return unquote(raw)


class _Parser:
    """Recursive descent parser over the token list."""

    def __init__(self, text: str) -> None:
        self.tokens = tokenize(text)
        self.index = 0

    # token helpers

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        token = self.current
        if token.kind != "end":
            self.index += 1
        return token

    def at(self, text: str) -> bool:
        return self.current.kind == "punct" and self.current.text == text

    def expect(self, text: str) -> Token:
        if not self.at(text):
            found = self.current.text or "end of input"
            raise RqlSyntaxError(f"Expected {text!r}, found {found!r}", self.current.position)
        return self.advance()

    def expect_word(self, what: str) -> Token:
        if self.current.kind != "word":
            found = self.current.text or "end of input"
            raise RqlSyntaxError(f"Expected {what}, found {found!r}", self.current.position)
        return self.advance()

    # grammar

    def parse(self) -> Query:
        if self.current.kind == "end":
            return Query()

        nodes, connective = self.parse_group(top_level=True)
        if self.current.kind != "end":
            raise RqlSyntaxError(f"Unexpected {self.current.text!r}", self.current.position)

        select = sort = limit = None
        queries: List[AbstractQueryNode] = []
        for node in nodes:
            if isinstance(node, SelectNode):
                select = node
            elif isinstance(node, SortNode):
                sort = node
            elif isinstance(node, LimitNode):
                limit = node
            else:
                queries.append(node)

        if (select or sort or limit) and connective == "or":
            raise RqlSyntaxError("select(), sort() and limit() cannot be combined with '|'")

        query: Optional[AbstractQueryNode] = None
        if len(queries) == 1:
            query = queries[0]
        elif queries:
            query = LogicalNode(connective, tuple(queries))
        return Query(query=query, select=select, sort=sort, limit=limit)

    def parse_group(self, top_level: bool = False) -> Tuple[List[AbstractNode], str]:
        """Parse terms joined by '&' (or ',') or by '|'; mixing needs parentheses."""
        nodes = [self.parse_term(top_level)]
        connective: Optional[str] = None
        while self.at("&") or self.at("|") or self.at(","):
            token = self.advance()
            joined_by = "or" if token.text == "|" else "and"
            if connective is not None and connective != joined_by:
                raise RqlSyntaxError(
                    "Cannot mix '&' and '|' without parentheses", token.position
                )
            connective = joined_by
            nodes.append(self.parse_term(top_level))
        return nodes, connective or "and"

    def parse_term(self, top_level: bool = False) -> AbstractNode:
        if self.at("("):
            self.advance()
            nodes, connective = self.parse_group()
            self.expect(")")
            if len(nodes) == 1:
                return nodes[0]
            return LogicalNode(connective, tuple(nodes))

        name = self.expect_word("operator or field name")
        if self.at("("):
            node = self.parse_call(name)
        elif self.at("="):
            node = self.parse_fiql(name)
        else:
            raise RqlSyntaxError(f"Unexpected word {name.text!r}", name.position)

        if not top_level and not isinstance(node, AbstractQueryNode):
            raise RqlSyntaxError(f"{node.node_name}() is only allowed at top level", name.position)
        return node

    def parse_fiql(self, field_token: Token) -> AbstractNode:
        self.expect("=")
        if self.current.kind == "word" and self.peek().kind == "punct" and self.peek().text == "=":
            operator = self.advance()
            self.expect("=")
            return self.build_operator(operator, [field_token.text], self.parse_fiql_argument(operator.text))
        return self.build_operator(
            Token("word", "eq", field_token.position),
            [field_token.text],
            self.parse_fiql_argument("eq"),
        )

    def parse_fiql_argument(self, operator: str) -> List[Any]:
        if operator in ARRAY_OPERATORS and self.at("("):
            return [self.parse_array(operator)]
        return [self.parse_argument_value(operator)]

    def parse_call(self, name: Token) -> AbstractNode:
        operator = name.text
        self.expect("(")

        if operator in ("and", "or", "not"):
            queries: List[AbstractQueryNode] = []
            if not self.at(")"):
                queries.append(self.parse_term())
                while self.at(","):
                    self.advance()
                    queries.append(self.parse_term())
            self.expect(")")
            if not queries:
                raise RqlSyntaxError(f"{operator}() requires at least one query", name.position)
            if operator == "not" and len(queries) != 1:
                raise RqlSyntaxError("not() takes exactly one query", name.position)
            return LogicalNode(operator, tuple(queries))

        if operator in ("select", "sort"):
            words: List[str] = []
            if not self.at(")"):
                words.append(self.expect_word("field name").text)
                while self.at(","):
                    self.advance()
                    words.append(self.expect_word("field name").text)
            self.expect(")")
            if operator == "select":
                return SelectNode(tuple(unquote(w) for w in words))
            return SortNode(_sort_fields(words))

        if operator == "limit":
            values = [self.expect_word("limit")]
            if self.at(","):
                self.advance()
                values.append(self.expect_word("offset"))
            self.expect(")")
            numbers = []
            for token in values:
                if not _INTEGER_RE.match(token.text) or int(token.text) < 0:
                    raise RqlSyntaxError(f"Invalid limit value {token.text!r}", token.position)
                numbers.append(int(token.text))
            return LimitNode(numbers[0], numbers[1] if len(numbers) > 1 else None)

        if operator not in COMPARISON_OPERATORS and operator not in ARRAY_OPERATORS:
            raise RqlSyntaxError(f"Unknown operator {operator!r}", name.position)

        field_name = self.expect_word("field name").text
        self.expect(",")
        arguments: List[Any] = []
        if operator in ARRAY_OPERATORS and self.at("("):
            arguments.append(self.parse_array(operator))
        else:
            arguments.append(self.parse_argument_value(operator))
            while operator in ARRAY_OPERATORS and self.at(","):
                self.advance()
                arguments.append(self.parse_argument_value(operator))
        self.expect(")")
        return self.build_operator(name, [field_name], arguments)

    def parse_array(self, operator: str) -> Tuple[Any, ...]:
        self.expect("(")
        values: List[Any] = []
        if not self.at(")"):
            values.append(self.parse_argument_value(operator))
            while self.at(","):
                self.advance()
                values.append(self.parse_argument_value(operator))
        self.expect(")")
        return tuple(values)

    def parse_argument_value(self, operator: str) -> Any:
        token = self.expect_word("value")
        if self.at("("):
            # constant function such as null() or true()
            self.advance()
            self.expect(")")
            if token.text not in _CONSTANTS:
                raise RqlSyntaxError(f"Unknown constant {token.text}()", token.position)
            return _CONSTANTS[token.text]
        prefix, sep, _ = token.text.partition(":")
        if operator == "like" and not (sep and prefix in _CASTS):
            return glob_from_raw(token.text)
        try:
            value = parse_value(token.text)
        except RqlSyntaxError as exc:
            raise RqlSyntaxError(str(exc), token.position) from exc
        if operator == "like" and isinstance(value, str):
            return Glob(Glob.encode(value))
        return value

    def build_operator(self, name: Token, fields: List[str], arguments: List[Any]) -> AbstractQueryNode:
        operator = name.text
        field_name = unquote(fields[0])
        if operator in COMPARISON_OPERATORS:
            if len(arguments) != 1:
                raise RqlSyntaxError(f"{operator}() takes a single value", name.position)
            return ComparisonNode(operator, field_name, arguments[0])
        if operator in ARRAY_OPERATORS:
            if len(arguments) == 1 and isinstance(arguments[0], tuple):
                values = arguments[0]
            else:
                values = tuple(arguments)
            return ArrayNode(operator, field_name, values)
        raise RqlSyntaxError(f"Unknown operator {operator!r}", name.position)


def _sort_fields(words: List[str]) -> Dict[str, int]:
    fields: Dict[str, int] = {}
    for word in words:
        text = unquote(word)
        if text.startswith("-"):
            fields[text[1:]] = -1
        elif text.startswith("+"):
            fields[text[1:]] = 1
        else:
            fields[text] = 1
    return fields


# PUBLIC_INTERFACE
def parse_rql(text: Optional[str]) -> Query:
    """
    Parse an RQL string into a Query.

    An empty or missing string yields an empty Query (no filter).

    Raises:
        RqlSyntaxError: on malformed input.
    """
    if text is None or not text.strip():
        return Query()
    return _Parser(text).parse()
