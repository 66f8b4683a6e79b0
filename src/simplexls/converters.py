"""
Value converters between model field values and xlsx cell values.

This module contains:
- The culture abstraction used for culture-dependent text formats
- The converter interface and the built-in datetime/timedelta converters
- The process-wide converter registry keyed by exact field type
- Separator based list converters that callers may register
"""

import locale
import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

from openpyxl.utils.datetime import from_excel

from .errors import ConversionError

logger = logging.getLogger(__name__)

INVARIANT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
INVARIANT_DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class Culture:
    """Formatting rules for culture-dependent text representations."""

    name: str = ""
    datetime_format: str = INVARIANT_DATETIME_FORMAT
    date_format: str = INVARIANT_DATE_FORMAT

    @classmethod
    def from_name(cls, name: str | None) -> "Culture":
        """Get the culture for a locale name like "de_DE" or "de-DE"."""
        if not name:
            return INVARIANT_CULTURE
        normalized = name.split(".")[0].replace("-", "_")
        if normalized in KNOWN_CULTURES:
            return KNOWN_CULTURES[normalized]
        language = normalized.split("_")[0]
        if language in KNOWN_CULTURES:
            known = KNOWN_CULTURES[language]
            return cls(normalized, known.datetime_format, known.date_format)
        logger.debug('-> Unknown culture "%s", using invariant formats.', name)
        return cls(normalized)

    @classmethod
    def current(cls) -> "Culture":
        """Get the culture of the process LC_TIME locale."""
        try:
            name = locale.getlocale(locale.LC_TIME)[0]
        except ValueError:
            name = None
        if name in (None, "C", "POSIX"):
            return INVARIANT_CULTURE
        return cls.from_name(name)


INVARIANT_CULTURE = Culture()

KNOWN_CULTURES = {
    "en": Culture("en", "%m/%d/%Y %I:%M:%S %p", "%m/%d/%Y"),
    "en_US": Culture("en_US", "%m/%d/%Y %I:%M:%S %p", "%m/%d/%Y"),
    "en_GB": Culture("en_GB", "%d/%m/%Y %H:%M:%S", "%d/%m/%Y"),
    "de": Culture("de", "%d.%m.%Y %H:%M:%S", "%d.%m.%Y"),
    "de_DE": Culture("de_DE", "%d.%m.%Y %H:%M:%S", "%d.%m.%Y"),
    "cs": Culture("cs", "%d.%m.%Y %H:%M:%S", "%d.%m.%Y"),
    "cs_CZ": Culture("cs_CZ", "%d.%m.%Y %H:%M:%S", "%d.%m.%Y"),
    "fr": Culture("fr", "%d/%m/%Y %H:%M:%S", "%d/%m/%Y"),
    "fr_FR": Culture("fr_FR", "%d/%m/%Y %H:%M:%S", "%d/%m/%Y"),
}


class XLSXValueConverter(ABC):
    """Converts values between a model field and its cell representation."""

    @abstractmethod
    def write(
        self, value: Any, declared_type: Any, culture: Culture | None = None
    ) -> Any:
        """Convert a field value to the value written to the cell."""

    @abstractmethod
    def read(self, value: Any) -> Any:
        """Convert a cell value to the field value."""


class DateTimeConverter(XLSXValueConverter):
    """Writes datetimes as culture formatted text and parses them back."""

    def write(
        self, value: Any, declared_type: Any, culture: Culture | None = None
    ) -> Any:
        if not isinstance(value, datetime):
            return value
        culture = culture or Culture.current()
        return value.strftime(culture.datetime_format)

    def read(self, value: Any) -> datetime | None:
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time())
        if isinstance(value, int | float) and not isinstance(value, bool):
            return from_excel(value)
        text = str(value).strip()
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in self._candidate_formats():
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        msg = f"Cannot parse datetime from '{value}'."
        raise ConversionError(msg)

    @staticmethod
    def _candidate_formats() -> list[str]:
        current = Culture.current()
        return [
            current.datetime_format,
            current.date_format,
            INVARIANT_DATETIME_FORMAT,
        ]


# [-][d.]hh:mm:ss[.fffffff] as well as the output of str(timedelta)
CANONICAL_TIMESPAN = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{2})"
    r":(?P<seconds>\d{2})(?:\.(?P<fraction>\d{1,7}))?$"
)
PYTHON_TIMESPAN = re.compile(
    r"^(?P<days>-?\d+) days?, (?P<hours>\d{1,2}):(?P<minutes>\d{2})"
    r":(?P<seconds>\d{2})(?:\.(?P<fraction>\d{1,6}))?$"
)


class TimeSpanConverter(XLSXValueConverter):
    """Writes timedeltas in canonical text form and parses them back."""

    def write(
        self, value: Any, declared_type: Any, culture: Culture | None = None
    ) -> Any:
        if not isinstance(value, timedelta):
            return value
        return format_timedelta(value)

    def read(self, value: Any) -> timedelta | None:
        if value is None or value == "":
            return None
        if isinstance(value, timedelta):
            return value
        if isinstance(value, time):
            return timedelta(
                hours=value.hour,
                minutes=value.minute,
                seconds=value.second,
                microseconds=value.microsecond,
            )
        text = str(value).strip()
        match = CANONICAL_TIMESPAN.match(text)
        if match:
            delta = _timedelta_from_match(match, days=int(match["days"] or 0))
            return -delta if match["sign"] else delta
        match = PYTHON_TIMESPAN.match(text)
        if match:
            return _timedelta_from_match(match, days=int(match["days"]))
        msg = f"Cannot parse timespan from '{value}'."
        raise ConversionError(msg)


def format_timedelta(value: timedelta) -> str:
    """Format a timedelta as [-][d.]hh:mm:ss[.ffffff]."""
    total_us = (value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds
    sign = "-" if total_us < 0 else ""
    days, rest = divmod(abs(total_us), 86400 * 1_000_000)
    hours, rest = divmod(rest, 3600 * 1_000_000)
    minutes, rest = divmod(rest, 60 * 1_000_000)
    seconds, microseconds = divmod(rest, 1_000_000)
    text = f"{sign}{days}." if days else sign
    text += f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if microseconds:
        text += f".{microseconds:06d}"
    return text


def _timedelta_from_match(match: re.Match, days: int) -> timedelta:
    fraction = (match["fraction"] or "").ljust(6, "0")[:6]
    return timedelta(
        days=days,
        hours=int(match["hours"]),
        minutes=int(match["minutes"]),
        seconds=int(match["seconds"]),
        microseconds=int(fraction),
    )


# Separator patterns for list converters
class EscapeMode(Enum):
    """Enumeration for handling separators within text elements."""

    NONE = "none"
    BACKSLASH = "backslash"
    QUOTE = "quote"


@dataclass(frozen=True)
class SeparatorPattern:
    """Configuration for separator patterns with escaping support."""

    separator: str
    prefix: str = ""
    suffix: str = ""
    escape_mode: EscapeMode = EscapeMode.NONE

    @property
    def full_pattern(self) -> str:
        return f"{self.prefix}{self.separator}{self.suffix}"

    def escape_item(self, item: str) -> str:
        if self.escape_mode == EscapeMode.BACKSLASH:
            return item.replace(self.separator, f"\\{self.separator}")
        if self.escape_mode == EscapeMode.QUOTE and self.separator in item:
            return f'"{item}"'
        return item

    def split_escaped(self, text: str) -> list[str]:
        """Split text while respecting escape sequences."""
        if self.escape_mode == EscapeMode.BACKSLASH:
            placeholder = "\x00ESCAPED_SEP\x00"
            temp_text = text.replace(f"\\{self.separator}", placeholder)
            return [
                part.replace(placeholder, self.separator)
                for part in temp_text.split(self.full_pattern)
            ]
        if self.escape_mode == EscapeMode.QUOTE:
            return self._split_quoted(text)
        return text.split(self.full_pattern)

    def _split_quoted(self, text: str) -> list[str]:
        parts = []
        current = ""
        in_quotes = False
        i = 0
        while i < len(text):
            char = text[i]
            if char == '"':
                in_quotes = not in_quotes
            elif (
                not in_quotes
                and text[i : i + len(self.full_pattern)] == self.full_pattern
            ):
                parts.append(current)
                current = ""
                i += len(self.full_pattern) - 1
            else:
                current += char
            i += 1
        if current:
            parts.append(current)
        return parts


COMMA = SeparatorPattern(",", "", " ")  # ", "
PIPE = SeparatorPattern("|", " ", " ")  # " | "
SEMICOLON = SeparatorPattern(";", "", " ")  # "; "
NEWLINE = SeparatorPattern("\n")
COMMA_ESCAPED = SeparatorPattern(",", "", " ", EscapeMode.BACKSLASH)
COMMA_QUOTED = SeparatorPattern(",", "", " ", EscapeMode.QUOTE)


class SeparatedListConverter(XLSXValueConverter):
    """Stores a list as a single separated text cell.

    Register it for the exact list type of the fields, for example::

        register_converter(list[str], SeparatedListConverter(PIPE))
        register_converter(list[int], SeparatedListConverter(COMMA, item_type=int))
    """

    def __init__(self, pattern: SeparatorPattern | str = COMMA, item_type: type = str):
        if isinstance(pattern, str):
            pattern = SeparatorPattern(pattern)
        self.pattern = pattern
        self.item_type = item_type

    def write(
        self, value: Any, declared_type: Any, culture: Culture | None = None
    ) -> Any:
        if value is None:
            return None
        return self.pattern.full_pattern.join(
            self.pattern.escape_item(str(item)) for item in value
        )

    def read(self, value: Any) -> list:
        if value is None or not str(value).strip():
            return []
        items = self.pattern.split_escaped(str(value))
        try:
            return [self.item_type(item) for item in items]
        except ValueError as e:
            msg = f"Cannot convert '{value}' to list of {self.item_type.__name__}: {e}"
            raise ConversionError(msg) from e


# Process-wide registry. Registration is expected during setup.
_registry_lock = threading.Lock()
_CONVERTERS: dict[Any, XLSXValueConverter] = {
    datetime: DateTimeConverter(),
    timedelta: TimeSpanConverter(),
}


def register_converter(field_type: Any, converter: XLSXValueConverter) -> None:
    """Declare the converter for an exact field type (last registration wins)."""
    with _registry_lock:
        _CONVERTERS[field_type] = converter
    logger.debug(
        "-> Registered %s for %r.", converter.__class__.__name__, field_type
    )


def lookup_converter(field_type: Any) -> XLSXValueConverter | None:
    """Get the converter registered for exactly this type, if any."""
    try:
        return _CONVERTERS.get(field_type)
    except TypeError:  # unhashable annotation
        return None
