"""Tests for the converters module."""

import logging
from datetime import date, datetime, time, timedelta

import pytest

from simplexls.converters import (
    COMMA,
    COMMA_ESCAPED,
    COMMA_QUOTED,
    INVARIANT_CULTURE,
    KNOWN_CULTURES,
    PIPE,
    Culture,
    DateTimeConverter,
    SeparatedListConverter,
    TimeSpanConverter,
    format_timedelta,
    lookup_converter,
    register_converter,
)
from simplexls.errors import ConversionError


class TestCulture:
    """Tests for culture lookup."""

    def test_known_culture(self):
        assert Culture.from_name("de_DE") is KNOWN_CULTURES["de_DE"]
        assert Culture.from_name("de-DE") is KNOWN_CULTURES["de_DE"]
        assert Culture.from_name("de_DE.UTF-8") is KNOWN_CULTURES["de_DE"]

    def test_language_fallback(self):
        culture = Culture.from_name("de_AT")
        assert culture.name == "de_AT"
        assert culture.datetime_format == KNOWN_CULTURES["de"].datetime_format

    def test_unknown_culture_uses_invariant_formats(self, caplog):
        with caplog.at_level(logging.DEBUG):
            culture = Culture.from_name("xx_YY")
        assert culture.name == "xx_YY"
        assert culture.datetime_format == INVARIANT_CULTURE.datetime_format
        assert 'Unknown culture "xx_YY"' in caplog.text

    def test_empty_name_is_invariant(self):
        assert Culture.from_name(None) is INVARIANT_CULTURE
        assert Culture.from_name("") is INVARIANT_CULTURE

    def test_current_c_locale(self, monkeypatch):
        monkeypatch.setattr("locale.getlocale", lambda category: (None, None))
        assert Culture.current() is INVARIANT_CULTURE

    def test_current_named_locale(self, monkeypatch):
        monkeypatch.setattr("locale.getlocale", lambda category: ("cs_CZ", "UTF-8"))
        assert Culture.current() is KNOWN_CULTURES["cs_CZ"]


class TestDateTimeConverter:
    """Tests for the built-in datetime converter."""

    def test_write_invariant(self):
        value = DateTimeConverter().write(
            datetime(1990, 2, 14, 8, 30), datetime, INVARIANT_CULTURE
        )
        assert value == "1990-02-14 08:30:00"

    def test_write_culture(self):
        converter = DateTimeConverter()
        de = Culture.from_name("de_DE")
        us = Culture.from_name("en_US")
        assert converter.write(datetime(1990, 2, 14, 8, 30), datetime, de) == (
            "14.02.1990 08:30:00"
        )
        assert converter.write(datetime(1990, 2, 14, 8, 30), datetime, us) == (
            "02/14/1990 08:30:00 AM"
        )

    def test_write_none(self):
        assert DateTimeConverter().write(None, datetime, INVARIANT_CULTURE) is None

    def test_read_iso(self):
        converter = DateTimeConverter()
        assert converter.read("1990-02-14 08:30:00") == datetime(1990, 2, 14, 8, 30)
        assert converter.read("1990-02-14") == datetime(1990, 2, 14)

    def test_read_native_values(self):
        converter = DateTimeConverter()
        assert converter.read(datetime(2020, 1, 1, 12)) == datetime(2020, 1, 1, 12)
        assert converter.read(date(2020, 1, 1)) == datetime(2020, 1, 1)
        # Excel serial date
        assert converter.read(43831.5) == datetime(2020, 1, 1, 12)

    def test_read_current_culture(self, monkeypatch):
        monkeypatch.setattr(
            Culture, "current", classmethod(lambda cls: KNOWN_CULTURES["de_DE"])
        )
        converter = DateTimeConverter()
        assert converter.read("14.02.1990 08:30:00") == datetime(1990, 2, 14, 8, 30)
        assert converter.read("14.02.1990") == datetime(1990, 2, 14)

    def test_read_empty(self):
        assert DateTimeConverter().read(None) is None
        assert DateTimeConverter().read("") is None

    def test_read_invalid(self):
        with pytest.raises(ConversionError, match="Cannot parse datetime"):
            DateTimeConverter().read("not a date")


class TestTimeSpanConverter:
    """Tests for the built-in timedelta converter."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (timedelta(hours=14), "14:00:00"),
            (timedelta(days=1, hours=2, minutes=3, seconds=4), "1.02:03:04"),
            (timedelta(hours=-1), "-01:00:00"),
            (timedelta(seconds=1, microseconds=500), "00:00:01.000500"),
            (timedelta(), "00:00:00"),
        ],
    )
    def test_format(self, value, expected):
        assert format_timedelta(value) == expected
        assert TimeSpanConverter().write(value, timedelta) == expected

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("14:00:00", timedelta(hours=14)),
            ("1.02:03:04", timedelta(days=1, hours=2, minutes=3, seconds=4)),
            ("-01:00:00", timedelta(hours=-1)),
            ("00:00:01.1234567", timedelta(seconds=1, microseconds=123456)),
            ("1 day, 2:03:04", timedelta(days=1, hours=2, minutes=3, seconds=4)),
            ("-1 day, 23:00:00", timedelta(hours=-1)),
        ],
    )
    def test_parse(self, text, expected):
        assert TimeSpanConverter().read(text) == expected

    def test_read_time_cell(self):
        assert TimeSpanConverter().read(time(8, 30)) == timedelta(hours=8, minutes=30)

    def test_read_empty(self):
        assert TimeSpanConverter().read(None) is None
        assert TimeSpanConverter().read("") is None

    def test_read_invalid(self):
        with pytest.raises(ConversionError, match="Cannot parse timespan"):
            TimeSpanConverter().read("eight hours")


class TestSeparatedListConverter:
    """Tests for separator based list converters."""

    def test_comma(self):
        converter = SeparatedListConverter(COMMA)
        assert converter.write(["a", "b", "c"], list[str]) == "a, b, c"
        assert converter.read("a, b, c") == ["a", "b", "c"]

    def test_pipe(self):
        converter = SeparatedListConverter(PIPE)
        assert converter.write(["x", "y"], list[str]) == "x | y"
        assert converter.read("x | y") == ["x", "y"]

    def test_plain_separator_string(self):
        converter = SeparatedListConverter(";")
        assert converter.write(["a", "b"], list[str]) == "a;b"
        assert converter.read("a;b") == ["a", "b"]

    def test_escaped(self):
        converter = SeparatedListConverter(COMMA_ESCAPED)
        text = converter.write(["a,b", "c"], list[str])
        assert text == "a\\,b, c"
        assert converter.read(text) == ["a,b", "c"]

    def test_quoted(self):
        converter = SeparatedListConverter(COMMA_QUOTED)
        text = converter.write(["a,b", "c"], list[str])
        assert text == '"a,b", c'
        assert converter.read(text) == ["a,b", "c"]

    def test_items_typed(self):
        converter = SeparatedListConverter(COMMA, item_type=int)
        assert converter.read("1, 2, 3") == [1, 2, 3]
        with pytest.raises(ConversionError, match="list of int"):
            converter.read("1, two")

    def test_empty(self):
        converter = SeparatedListConverter()
        assert converter.write(None, list[str]) is None
        assert converter.read(None) == []
        assert converter.read("  ") == []


class TestRegistry:
    """Tests for the converter registry."""

    def test_builtin_converters(self):
        assert isinstance(lookup_converter(datetime), DateTimeConverter)
        assert isinstance(lookup_converter(timedelta), TimeSpanConverter)

    def test_exact_type_only(self):
        # date is the base class of datetime but has no converter
        assert lookup_converter(date) is None
        assert lookup_converter(str) is None

    def test_register_last_wins(self, clean_registry, caplog):
        first = SeparatedListConverter(COMMA)
        second = SeparatedListConverter(PIPE)
        with caplog.at_level(logging.DEBUG):
            register_converter(list[str], first)
            register_converter(list[str], second)
        assert lookup_converter(list[str]) is second
        assert "Registered SeparatedListConverter" in caplog.text

    def test_unhashable_type(self):
        assert lookup_converter([str]) is None
