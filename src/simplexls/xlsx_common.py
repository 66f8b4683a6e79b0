"""
Common functionality shared by the sheet writer and reader.

This module contains shared infrastructure including:
- Field and sheet annotations used in model declarations
- Column plan types and field analysis
- The process-wide column plan cache
- Serialization engine for converting field values to/from cell values
- Export and import settings
"""

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import UnionType
from typing import Annotated, Any, Union, get_args, get_origin
from uuid import UUID

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from .converters import Culture, XLSXValueConverter, lookup_converter
from .errors import ConversionError, InvalidSchemaError
from .localizer import Localizer

logger = logging.getLogger(__name__)

SHEET_ANNOTATION_ATTR = "__xlsx_sheet__"
HEADER_ROW = 1
DATA_START_ROW = 2


# Annotations
@dataclass(frozen=True)
class XLSXIgnore:
    """Field annotation: never export or import this field."""


@dataclass(frozen=True)
class XLSXHeader:
    """Field annotation: use a custom column heading."""

    name: str


@dataclass(frozen=True)
class XLSXTranslate:
    """Field annotation: translate text values via the localizer.

    The translation key is ``prefix + value``.
    """

    prefix: str = ""


@dataclass(frozen=True)
class XLSXSheet:
    """Model annotation: sheet name and translation key prefix."""

    name: str | None = None
    dictionary_prefix: str = ""


def xlsx_sheet(
    name: str | None = None, dictionary_prefix: str = ""
) -> Callable[[type[BaseModel]], type[BaseModel]]:
    """Class decorator to set the sheet name and dictionary prefix of a model.

    Example:
        ```python
        @xlsx_sheet(name="People", dictionary_prefix="people.")
        class Person(BaseModel):
            name: Annotated[str, XLSXHeader("Name column")]
        ```
    """

    def decorate(model: type[BaseModel]) -> type[BaseModel]:
        setattr(model, SHEET_ANNOTATION_ATTR, XLSXSheet(name, dictionary_prefix))
        return model

    return decorate


# Column plan
class FieldKind(Enum):
    """How a column is handled by the writer and reader."""

    IGNORED = "ignored"
    PLAIN = "plain"
    CUSTOM_CONVERTED = "custom_converted"
    TRANSLATED = "translated"


@dataclass(frozen=True)
class ColumnAttributes:
    """Resolved annotations of a single field."""

    heading: str
    ignore: bool = False
    translate: bool = False
    dictionary_prefix: str = ""


@dataclass(frozen=True)
class ColumnDescriptor:
    """A field of a model together with how it maps to a column."""

    key: str
    field_type: Any
    field_info: FieldInfo
    attributes: ColumnAttributes
    nullable: bool = False
    converter: XLSXValueConverter | None = None

    @property
    def kind(self) -> FieldKind:
        if self.attributes.ignore:
            return FieldKind.IGNORED
        if self.attributes.translate:
            return FieldKind.TRANSLATED
        if self.converter is not None:
            return FieldKind.CUSTOM_CONVERTED
        return FieldKind.PLAIN

    def get_value(self, record: BaseModel) -> Any:
        return getattr(record, self.key)

    @property
    def default_needs_data(self) -> bool:
        """True if the default factory is computed from the other field values."""
        return (
            self.field_info.default_factory is not None
            and self.field_info.default_factory_takes_validated_data
        )

    def default_value(self, validated_data: dict[str, Any] | None = None) -> Any:
        """Value a field keeps when its cell is absent or cannot be read.

        Factories taking data get ``validated_data``, the values read so far.
        """
        if self.field_info.is_required():
            return None
        if self.default_needs_data:
            return self.field_info.get_default(
                call_default_factory=True, validated_data=validated_data or {}
            )
        return self.field_info.get_default(call_default_factory=True)


@dataclass(frozen=True)
class SheetDescriptor:
    """Column plan of a model. Shared via the cache, do not mutate."""

    model_type: type[BaseModel]
    name: str
    dictionary_prefix: str
    columns: tuple[ColumnDescriptor, ...]

    @property
    def visible_columns(self) -> list[ColumnDescriptor]:
        return [c for c in self.columns if not c.attributes.ignore]

    def translation_key(self, text: str) -> str:
        return f"{self.dictionary_prefix}{text}"


@dataclass
class RawTable:
    """Type-free content of a sheet."""

    headers: list[str | None] | None = None
    values: list[list[Any]] = field(default_factory=list)


class XLSXFieldAnalyzer:
    """Analyzes Pydantic model fields for xlsx processing."""

    @staticmethod
    def unwrap_optional(field_type: Any) -> tuple[Any, bool]:
        """Split ``X | None`` into ``(X, True)``; other types give ``(type, False)``."""
        if get_origin(field_type) is Annotated:
            field_type = get_args(field_type)[0]
        if get_origin(field_type) in (Union, UnionType):
            args = get_args(field_type)
            non_none = [arg for arg in args if arg is not type(None)]
            if len(non_none) == 1 and len(args) == 2:  # noqa: PLR2004
                return XLSXFieldAnalyzer.unwrap_optional(non_none[0])[0], True
        return field_type, False

    @staticmethod
    def is_class(field_type: Any) -> bool:
        # list[str] and similar aliases pass isinstance(.., type) on some versions
        return isinstance(field_type, type) and get_origin(field_type) is None

    @staticmethod
    def is_textual(field_type: Any) -> bool:
        return XLSXFieldAnalyzer.is_class(field_type) and issubclass(field_type, str)

    @staticmethod
    def extract_annotations(field_info: FieldInfo) -> list[Any]:
        """Get the xlsx annotations attached to a field."""
        xlsx_types = (XLSXIgnore, XLSXHeader, XLSXTranslate)
        found = [m for m in field_info.metadata if isinstance(m, xlsx_types)]

        # Annotated nested in Optional is not unpacked by pydantic.
        annotation = field_info.annotation
        if get_origin(annotation) in (Union, UnionType):
            for arg in get_args(annotation):
                if get_origin(arg) is Annotated:
                    found.extend(
                        m for m in get_args(arg)[1:] if isinstance(m, xlsx_types)
                    )
        return found

    @staticmethod
    def resolve_attributes(field_name: str, field_info: FieldInfo) -> ColumnAttributes:
        """Resolve ignore/header/translate annotations of one field."""
        annotations = XLSXFieldAnalyzer.extract_annotations(field_info)
        if any(isinstance(a, XLSXIgnore) for a in annotations):
            return ColumnAttributes(heading=field_name, ignore=True)

        heading = field_name
        translate = False
        dictionary_prefix = ""
        for annotation in annotations:
            if isinstance(annotation, XLSXHeader):
                heading = annotation.name
            elif isinstance(annotation, XLSXTranslate):
                field_type, _ = XLSXFieldAnalyzer.unwrap_optional(
                    field_info.annotation
                )
                if not XLSXFieldAnalyzer.is_textual(field_type):
                    msg = (
                        f"Field '{field_name}' cannot be translated since its type "
                        f"{field_type!r} is not a string type."
                    )
                    raise InvalidSchemaError(msg)
                translate = True
                dictionary_prefix = annotation.prefix

        return ColumnAttributes(
            heading=heading, translate=translate, dictionary_prefix=dictionary_prefix
        )

    @staticmethod
    def analyze_field(field_name: str, field_info: FieldInfo) -> ColumnDescriptor:
        field_type, nullable = XLSXFieldAnalyzer.unwrap_optional(field_info.annotation)
        return ColumnDescriptor(
            key=field_name,
            field_type=field_type,
            field_info=field_info,
            attributes=XLSXFieldAnalyzer.resolve_attributes(field_name, field_info),
            nullable=nullable,
            converter=lookup_converter(field_type),
        )

    @staticmethod
    def analyze_model(model: type[BaseModel]) -> SheetDescriptor:
        """Build the column plan of a model (uncached)."""
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            msg = f"Expected Pydantic BaseModel, got {model!r}"
            raise TypeError(msg)

        sheet = getattr(model, SHEET_ANNOTATION_ATTR, None) or XLSXSheet()
        columns = tuple(
            XLSXFieldAnalyzer.analyze_field(field_name, field_info)
            for field_name, field_info in model.model_fields.items()
        )
        return SheetDescriptor(
            model_type=model,
            name=sheet.name or model.__name__,
            dictionary_prefix=sheet.dictionary_prefix or "",
            columns=columns,
        )


# Column plan cache (process lifetime, keyed by class identity)
_descriptor_cache: dict[type, SheetDescriptor] = {}
_descriptor_lock = threading.Lock()


def describe_model(model: type[BaseModel]) -> SheetDescriptor:
    """Get the cached column plan of a model, building it on first use."""
    descriptor = _descriptor_cache.get(model)
    if descriptor is not None:
        return descriptor

    descriptor = XLSXFieldAnalyzer.analyze_model(model)
    with _descriptor_lock:
        # A concurrent caller may have stored an equivalent plan meanwhile.
        descriptor = _descriptor_cache.setdefault(model, descriptor)
    logger.debug(
        '-> Described model "%s" with %i column(s).',
        model.__name__,
        len(descriptor.columns),
    )
    return descriptor


def clear_descriptor_cache() -> None:
    """Forget all column plans. Only meant for tests."""
    with _descriptor_lock:
        _descriptor_cache.clear()


# Serialization engine
class XLSXSerializationEngine:
    """Conversion of field values to cell values and back."""

    def serialize_value(
        self, value: Any, column: ColumnDescriptor, culture: Culture | None = None
    ) -> Any:
        if column.converter is not None:
            return column.converter.write(value, column.field_type, culture)
        if value is None:
            return None

        # Handle Enum types BEFORE basic types (str, Enum subclasses are also str)
        if isinstance(value, Enum):
            return value.value

        # Types the spreadsheet engine stores natively
        if isinstance(
            value, bool | int | float | Decimal | str | date | datetime | time | timedelta
        ):
            return value

        if isinstance(value, list | dict):
            return json.dumps(value, default=str, ensure_ascii=False)

        return str(value)

    def coerce_value(self, raw_value: Any, field_type: Any) -> Any:
        """Convert a cell value to the declared field type."""
        if type(raw_value) is field_type:
            return raw_value

        type_converters = {
            str: self._convert_str,
            int: self._convert_int,
            float: self._convert_float,
            Decimal: self._convert_decimal,
            bool: self._convert_bool,
            date: self._convert_date,
            UUID: lambda x: UUID(str(x).strip()),
        }
        if field_type in type_converters:
            try:
                return type_converters[field_type](raw_value)
            except ConversionError:
                raise
            except (ValueError, TypeError, InvalidOperation) as e:
                msg = f"Cannot convert '{raw_value}' to {field_type.__name__}: {e}"
                raise ConversionError(msg) from e

        container = get_origin(field_type) or field_type
        if container in (list, dict):
            return self._convert_json(raw_value, container)

        if XLSXFieldAnalyzer.is_class(field_type) and issubclass(field_type, Enum):
            for enum_item in field_type:
                if enum_item.value == raw_value or str(enum_item.value) == str(
                    raw_value
                ):
                    return enum_item
            msg = f"Invalid enum value '{raw_value}' for {field_type.__name__}"
            raise ConversionError(msg)

        msg = (
            f"Unsupported conversion from {type(raw_value).__name__} "
            f"to {field_type!r}"
        )
        raise ConversionError(msg)

    @staticmethod
    def _convert_str(raw_value: Any) -> str:
        if isinstance(raw_value, float) and raw_value.is_integer():
            return str(int(raw_value))
        return str(raw_value)

    @staticmethod
    def _convert_int(raw_value: Any) -> int:
        if isinstance(raw_value, bool):
            msg = f"Boolean '{raw_value}' is not an integer"
            raise ConversionError(msg)
        if isinstance(raw_value, float | Decimal):
            if raw_value != int(raw_value):
                msg = f"'{raw_value}' is not an integral number"
                raise ConversionError(msg)
            return int(raw_value)
        return int(str(raw_value).strip())

    @staticmethod
    def _convert_float(raw_value: Any) -> float:
        if isinstance(raw_value, bool):
            msg = f"Boolean '{raw_value}' is not a number"
            raise ConversionError(msg)
        return float(raw_value)

    @staticmethod
    def _convert_decimal(raw_value: Any) -> Decimal:
        if isinstance(raw_value, bool):
            msg = f"Boolean '{raw_value}' is not a number"
            raise ConversionError(msg)
        return Decimal(str(raw_value).strip())

    @staticmethod
    def _convert_bool(raw_value: Any) -> bool:
        if isinstance(raw_value, int | float):
            return bool(raw_value)
        text = str(raw_value).strip().lower()
        if text in ("true", "yes", "1"):
            return True
        if text in ("false", "no", "0"):
            return False
        msg = f"Cannot convert '{raw_value}' to boolean. Expected True/False, Yes/No or 1/0."
        raise ConversionError(msg)

    @staticmethod
    def _convert_date(raw_value: Any) -> date:
        if isinstance(raw_value, datetime):
            return raw_value.date()
        if isinstance(raw_value, date):
            return raw_value
        return date.fromisoformat(str(raw_value).strip())

    @staticmethod
    def _convert_json(raw_value: Any, container: type) -> Any:
        # list and dict fields are written as JSON text
        try:
            value = json.loads(str(raw_value))
        except ValueError as e:
            msg = f"Cannot convert '{raw_value}' to {container.__name__}: {e}"
            raise ConversionError(msg) from e
        if not isinstance(value, container):
            msg = f"'{raw_value}' is not a JSON {container.__name__}"
            raise ConversionError(msg)
        return value


# Settings
@dataclass
class SheetExportSettings:
    """Settings for writing one sheet."""

    sheet_name: str | None = None
    culture: Culture = field(default_factory=Culture.current)
    omit_empty_columns: bool = False
    localizer: Localizer | None = None
    translate_headers: bool = True

    @property
    def has_localizer(self) -> bool:
        return self.localizer is not None

    def get_localizer(self) -> Localizer | None:
        """Get the localizer scoped to the export culture."""
        if self.localizer is None:
            return None
        return self.localizer.with_culture(self.culture)


@dataclass
class SheetImportSettings:
    """Settings for reading one sheet."""

    has_header: bool = True
    break_on_error: bool = False
