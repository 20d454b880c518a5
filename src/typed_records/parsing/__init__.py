"""Parsing module for the type and filter DSLs."""

from typed_records.parsing.filter_parser import Condition, FilterParser
from typed_records.parsing.type_parser import TypeParser

__all__ = [
    "Condition",
    "FilterParser",
    "TypeParser",
]
