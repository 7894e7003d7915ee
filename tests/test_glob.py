"""
Test: Glob patterns
===================

Wildcard patterns used by like() and their LIKE/regex translations.
"""

import re

from jsonapi_rql.rql.glob import Glob


class TestToLike:
    """Translation to SQL LIKE syntax."""

    def test_wildcards(self):
        assert Glob("*py*").to_like() == "%py%"
        assert Glob("a?c").to_like() == "a_c"

    def test_like_metacharacters_are_escaped(self):
        assert Glob("100%").to_like() == "100\\%"
        assert Glob("a_b*").to_like() == "a\\_b%"

    def test_escaped_wildcards_are_literal(self):
        assert Glob("a\\*b").to_like() == "a*b"
        assert Glob("a\\?b").to_like() == "a?b"

    def test_escaped_backslash(self):
        assert Glob("a\\\\b").to_like() == "a\\\\b"


class TestEncode:
    """Escaping literal text."""

    def test_encode_escapes_metacharacters(self):
        assert Glob.encode("a*b?c\\") == "a\\*b\\?c\\\\"

    def test_encoded_text_matches_itself(self):
        text = "what? *really*"
        assert re.match(Glob(Glob.encode(text)).to_regex(), text)


class TestRegex:
    """Translation to anchored regular expressions."""

    def test_to_regex(self):
        assert Glob("*.py").to_regex() == "^.*\\.py$"
        assert re.match(Glob("file?.txt").to_regex(), "file1.txt")
        assert not re.match(Glob("file?.txt").to_regex(), "file12.txt")


class TestEquality:
    def test_equal_patterns(self):
        assert Glob("*a*") == Glob("*a*")
        assert Glob("*a*") != Glob("*b*")
        assert Glob("*a*") != "*a*"
        assert len({Glob("x"), Glob("x")}) == 1
