"""Tests for value conversion."""

import pytest

from typed_records import codec
from typed_records.errors import ConversionError
from typed_records.types import IndexKind, ScalarKind


class TestEncode:
    """Tests for encoding field values."""

    def test_scalars(self):
        assert codec.encode(ScalarKind.STRING, "hi") == "hi"
        assert codec.encode(ScalarKind.INT, 42) == "42"
        assert codec.encode(ScalarKind.FLOAT, 1.5) == "1.5"
        assert codec.encode(ScalarKind.FLOAT, 2) == "2.0"
        assert codec.encode(ScalarKind.BOOL, True) == "1"
        assert codec.encode(ScalarKind.BOOL, False) == "0"

    def test_bool_is_not_a_number(self):
        with pytest.raises(ConversionError):
            codec.encode(ScalarKind.INT, True)
        with pytest.raises(ConversionError):
            codec.encode(ScalarKind.FLOAT, False)

    def test_wrong_types(self):
        with pytest.raises(ConversionError, match="expected str"):
            codec.encode(ScalarKind.STRING, 3)
        with pytest.raises(ConversionError, match="expected int"):
            codec.encode(ScalarKind.INT, "3")
        with pytest.raises(ConversionError, match="expected bool"):
            codec.encode(ScalarKind.BOOL, 1)


class TestDecode:
    """Tests for decoding store replies."""

    def test_scalars(self):
        assert codec.decode(ScalarKind.STRING, "hi") == "hi"
        assert codec.decode(ScalarKind.INT, "42") == 42
        assert codec.decode(ScalarKind.FLOAT, "1.5") == 1.5
        assert codec.decode(ScalarKind.BOOL, "1") is True
        assert codec.decode(ScalarKind.BOOL, "false") is False

    def test_none_stays_none(self):
        assert codec.decode(ScalarKind.INT, None) is None

    def test_bytes(self):
        assert codec.decode(ScalarKind.INT, b"7") == 7
        assert codec.decode_text(b"abc") == "abc"

    def test_invalid(self):
        with pytest.raises(ConversionError, match="to int"):
            codec.decode(ScalarKind.INT, "seven")
        with pytest.raises(ConversionError, match="to float"):
            codec.decode(ScalarKind.FLOAT, "x")
        with pytest.raises(ConversionError, match="to bool"):
            codec.decode(ScalarKind.BOOL, "maybe")


class TestIndexValues:
    """Tests for index scores and lexical members."""

    def test_numeric_score(self):
        assert codec.index_score(IndexKind.NUMERIC, 3) == 3.0
        assert codec.index_score(IndexKind.NUMERIC, -1.25) == -1.25

    def test_boolean_score(self):
        assert codec.index_score(IndexKind.BOOLEAN, True) == 1.0
        assert codec.index_score(IndexKind.BOOLEAN, False) == 0.0

    def test_lexical_has_no_score(self):
        with pytest.raises(ConversionError):
            codec.index_score(IndexKind.LEXICAL, "a")

    def test_lexical_member(self):
        member = codec.lexical_member("Ada Lovelace", "abc123")
        assert member == "Ada Lovelace abc123"
        assert codec.split_lexical_member(member) == ("Ada Lovelace", "abc123")
