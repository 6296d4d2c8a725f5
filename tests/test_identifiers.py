"""
Tests for identifier generation and parsing
"""

from uuid import UUID

import pytest

from platformq_scylla_adapter.exceptions import DataAccessError, InvalidIdentifierFormat
from platformq_scylla_adapter.identifiers import TIMEUUID_KIND, generate, parse


class TestGenerate:
    """Test identifier generation"""

    def test_generates_random_uuid_by_default(self):
        first = generate()
        second = generate()
        assert isinstance(first, UUID)
        assert first.version == 4
        assert first != second

    def test_generates_time_ordered_uuid_for_timeuuid(self):
        identifier = generate(TIMEUUID_KIND)
        assert identifier.version == 1

    def test_rejects_unknown_kind(self):
        with pytest.raises(ValueError):
            generate("bigint")


class TestParse:
    """Test identifier parsing"""

    def test_parses_canonical_text(self):
        text = "5b2f4a1e-3c2d-4e8f-9a0b-1c2d3e4f5a6b"
        assert parse(text) == UUID(text)

    def test_ignores_surrounding_whitespace(self):
        text = "5b2f4a1e-3c2d-4e8f-9a0b-1c2d3e4f5a6b"
        assert parse(f"  {text}\n") == UUID(text)

    def test_returns_uuid_unchanged(self):
        identifier = generate()
        assert parse(identifier) is identifier

    @pytest.mark.parametrize("value", ["not-a-uuid", "", "1234", None, 42])
    def test_rejects_malformed_values(self, value):
        with pytest.raises(InvalidIdentifierFormat) as exc_info:
            parse(value)
        assert exc_info.value.value == value

    def test_invalid_format_is_value_error(self):
        with pytest.raises(ValueError):
            parse("nope")
        with pytest.raises(DataAccessError):
            parse("nope")
