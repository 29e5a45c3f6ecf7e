"""
Unit tests for the duration parser.

Covers the P/T grammar, the fixed calendar multipliers and the handling
of strings that do not match the grammar.
"""

import pytest

DAY_MS = 24 * 60 * 60 * 1000


class TestParseDuration:
    """Test parse_duration against the duration grammar."""

    def test_date_part(self):
        """Years, months and days use 365/30/1 day multipliers."""
        from kairos.timing.duration import parse_duration

        assert parse_duration("P1Y2M3D") == (365 + 60 + 3) * DAY_MS

    def test_time_part(self):
        """M after T means minutes."""
        from kairos.timing.duration import parse_duration

        assert parse_duration("T5M") == 5 * 60000
        assert parse_duration("PT1H30M") == 90 * 60000
        assert parse_duration("PT45S") == 45000

    def test_bare_m_is_months(self):
        """Without T, a single M group is read as months."""
        from kairos.timing.duration import parse_duration

        assert parse_duration("5M") == 5 * 30 * DAY_MS

    def test_full_duration(self):
        """All six groups contribute."""
        from kairos.timing.duration import parse_duration

        expected = (
            365 * DAY_MS + 30 * DAY_MS + DAY_MS
            + 3600000 + 60000 + 1000
        )
        assert parse_duration("P1Y1M1DT1H1M1S") == expected

    def test_case_and_whitespace(self):
        """Grammar is case-insensitive and tolerates spaces between groups."""
        from kairos.timing.duration import parse_duration

        assert parse_duration("p1d t2h") == DAY_MS + 2 * 3600000
        assert parse_duration("  P 1D  ") == DAY_MS

    def test_empty_is_zero(self):
        """Strings without any group yield 0 rather than failing."""
        from kairos.timing.duration import parse_duration

        assert parse_duration("") == 0
        assert parse_duration("P") == 0
        assert parse_duration("PT") == 0

    def test_garbage_raises(self):
        """Text outside the grammar raises ParseError."""
        from kairos.timing.duration import parse_duration
        from kairos.errors import ParseError

        with pytest.raises(ParseError):
            parse_duration("five minutes")
        with pytest.raises(ParseError):
            parse_duration("T5M and more")
        with pytest.raises(ParseError):
            parse_duration("1.5H")

    def test_wrong_order_raises(self):
        """Groups must appear in Y, M, D, H, M, S order."""
        from kairos.timing.duration import parse_duration
        from kairos.errors import ParseError

        with pytest.raises(ParseError):
            parse_duration("1S1H")

    def test_non_string_raises(self):
        """Only strings are parsed."""
        from kairos.timing.duration import parse_duration
        from kairos.errors import ParseError

        with pytest.raises(ParseError):
            parse_duration(1000)

    def test_parse_error_is_value_error(self):
        """ParseError can be caught as ValueError."""
        from kairos.timing.duration import parse_duration

        with pytest.raises(ValueError):
            parse_duration("nope")


class TestToMilliseconds:
    """Test numeric/string duration normalization."""

    def test_numbers_pass_through(self):
        from kairos.timing.duration import to_milliseconds

        assert to_milliseconds(1500) == 1500
        assert to_milliseconds(2.5) == 2.5

    def test_strings_are_parsed(self):
        from kairos.timing.duration import to_milliseconds

        assert to_milliseconds("T1S") == 1000

    def test_none_stays_none(self):
        from kairos.timing.duration import to_milliseconds

        assert to_milliseconds(None) is None
