"""Tests for the query filter parser."""

import pytest

from typed_records.parsing import Condition, FilterParser
from typed_records.parsing.filter_lexer import FilterLexer


class TestFilterLexer:
    """Tests for the filter lexer."""

    def test_tokenize_comparison(self):
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize('age >= 21 and name = "Alex"')
        token_types = [t.type for t in tokens]

        assert token_types == ["IDENTIFIER", "GTE", "INTEGER", "AND", "IDENTIFIER", "EQ", "STRING"]

    def test_tokenize_operators(self):
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("a != 1 b < 2 c <= 3 d > 4 e == 5")
        ops = [t.type for t in tokens if t.type not in ("IDENTIFIER", "INTEGER")]

        assert ops == ["NEQ", "LT", "LTE", "GT", "EQ"]

    def test_keywords_case_insensitive(self):
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("active = TRUE AND done = False")
        token_types = [t.type for t in tokens]

        assert token_types == ["IDENTIFIER", "EQ", "TRUE", "AND", "IDENTIFIER", "EQ", "FALSE"]

    def test_illegal_character(self):
        lexer = FilterLexer()
        lexer.build()

        with pytest.raises(SyntaxError, match="Illegal character"):
            lexer.tokenize("age ~ 3")


class TestFilterParser:
    """Tests for the filter parser."""

    def test_single_condition(self):
        assert FilterParser().parse("age > 21") == [Condition("age", ">", 21)]

    def test_conjunction(self):
        conditions = FilterParser().parse('age >= 21 and name = "Alex" and active = true')

        assert conditions == [
            Condition("age", ">=", 21),
            Condition("name", "=", "Alex"),
            Condition("active", "=", True),
        ]

    def test_double_equals_normalised(self):
        assert FilterParser().parse("age == 3")[0].operator == "="

    def test_value_kinds(self):
        conditions = FilterParser().parse('a = -4 and b = 2.5 and c = "x y" and d = false')
        assert [c.value for c in conditions] == [-4, 2.5, "x y", False]

    def test_string_escapes(self):
        condition = FilterParser().parse(r'name = "say \"hi\""')[0]
        assert condition.value == 'say "hi"'

    def test_non_ascii_string(self):
        assert FilterParser().parse('name = "José Ñúñez"')[0].value == "José Ñúñez"

    def test_escapes_with_non_ascii(self):
        condition = FilterParser().parse(r'name = "Zoë\tsaid \"ça\" \\ ok"')[0]
        assert condition.value == 'Zoë\tsaid "ça" \\ ok'

    def test_parser_reusable(self):
        parser = FilterParser()
        assert parser.parse("a = 1") == [Condition("a", "=", 1)]
        assert parser.parse("b < 2") == [Condition("b", "<", 2)]

    def test_missing_value(self):
        with pytest.raises(SyntaxError, match="end of input"):
            FilterParser().parse("age >")

    def test_missing_operator(self):
        with pytest.raises(SyntaxError):
            FilterParser().parse("age 21")
