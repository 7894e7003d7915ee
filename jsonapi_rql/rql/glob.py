from __future__ import annotations

import re

# A backslash escapes the following character; '*' and '?' are wildcards.
_TOKEN_RE = re.compile(r"\\(.)|([*?])|([^\\*?]+)|(\\)$", re.DOTALL)

LIKE_ESCAPE = "\\"


class Glob:
    """
    Wildcard pattern used by the ``like`` operator.

    ``*`` matches any run of characters, ``?`` a single character, and a
    backslash makes the next character literal.
    """

    __slots__ = ("pattern",)

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern

    def __repr__(self) -> str:
        return f"Glob({self.pattern!r})"

    def __str__(self) -> str:
        return self.pattern

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Glob) and other.pattern == self.pattern

    def __hash__(self) -> int:
        return hash((Glob, self.pattern))

    @staticmethod
    def encode(text: str) -> str:
        """Escape glob metacharacters so ``text`` matches literally."""
        return re.sub(r"([\\*?])", r"\\\1", text)

    def _tokens(self):
        for literal, wildcard, plain, trailing in _TOKEN_RE.findall(self.pattern):
            if wildcard:
                yield True, wildcard
            elif trailing:
                yield False, trailing
            else:
                yield False, literal or plain

    def to_like(self) -> str:
        """
        Translate to SQL LIKE syntax, escaping ``%`` and ``_`` with a backslash.

        The result must be used with ``ESCAPE '\\'``.
        """
        parts = []
        for is_wildcard, text in self._tokens():
            if is_wildcard:
                parts.append("%" if text == "*" else "_")
            else:
                parts.append(re.sub(r"([\\%_])", r"\\\1", text))
        return "".join(parts)

    def to_regex(self) -> str:
        """Translate to an anchored regular expression."""
        parts = []
        for is_wildcard, text in self._tokens():
            if is_wildcard:
                parts.append(".*" if text == "*" else ".")
            else:
                parts.append(re.escape(text))
        return "^" + "".join(parts) + "$"
