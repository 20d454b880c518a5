"""Parser for query filter expressions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import ply.yacc as yacc

from typed_records.parsing.filter_lexer import FilterLexer


@dataclass
class Condition:
    """A single ``field operator value`` comparison."""

    field: str
    operator: str  # =, !=, <, <=, >, >=
    value: Any


class FilterParser:
    """Parser for filters: comparisons joined by ``and``."""

    tokens = FilterLexer.tokens

    def __init__(self) -> None:
        self.lexer = FilterLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_filter_single(self, p: yacc.YaccProduction) -> None:
        """filter : condition"""
        p[0] = [p[1]]

    def p_filter_and(self, p: yacc.YaccProduction) -> None:
        """filter : filter AND condition"""
        p[0] = p[1] + [p[3]]

    def p_condition(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER EQ value
                     | IDENTIFIER NEQ value
                     | IDENTIFIER LT value
                     | IDENTIFIER LTE value
                     | IDENTIFIER GT value
                     | IDENTIFIER GTE value"""
        operator = p[2]
        if operator == "==":
            operator = "="
        p[0] = Condition(field=p[1], operator=operator, value=p[3])

    def p_value_integer(self, p: yacc.YaccProduction) -> None:
        """value : INTEGER"""
        p[0] = p[1]

    def p_value_float(self, p: yacc.YaccProduction) -> None:
        """value : FLOAT"""
        p[0] = p[1]

    def p_value_string(self, p: yacc.YaccProduction) -> None:
        """value : STRING"""
        p[0] = p[1]

    def p_value_true(self, p: yacc.YaccProduction) -> None:
        """value : TRUE"""
        p[0] = True

    def p_value_false(self, p: yacc.YaccProduction) -> None:
        """value : FALSE"""
        p[0] = False

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="filter", **kwargs)

    def parse(self, data: str) -> list[Condition]:
        """Parse a filter string into its conditions."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        return self.parser.parse(data, lexer=self.lexer.lexer)
