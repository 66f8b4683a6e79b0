# Common pytest fixtures for all test modules
import tempfile
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Annotated
from uuid import UUID, uuid4

import pytest
from pydantic import BaseModel, Field

from simplexls import config, converters
from simplexls.converters import INVARIANT_CULTURE
from simplexls.xlsx_common import (
    SheetExportSettings,
    XLSXHeader,
    XLSXIgnore,
    XLSXTranslate,
    clear_descriptor_cache,
    xlsx_sheet,
)


# Test Enums
class Status(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# Test Models
class Person(BaseModel):
    """Person with a custom heading, converted and ignored fields."""

    name: Annotated[str, XLSXHeader("Name column")] = ""
    age: int = 0
    birthday: datetime | None = None
    work_hours: timedelta = timedelta()
    ignored_id: Annotated[UUID, XLSXIgnore()] = Field(default_factory=uuid4)


class Contact(BaseModel):
    """Model with optional columns that may stay empty."""

    name: str
    phone: str | None = None
    email: str | None = None


@xlsx_sheet(name="Pets", dictionary_prefix="pets.")
class Pet(BaseModel):
    """Model with a translated value column."""

    name: str
    species: Annotated[str, XLSXTranslate(prefix="species.")]


class Item(BaseModel):
    """Model covering the plain coercion table."""

    label: str
    count: int = 0
    price: float = 0.0
    available: bool = False
    status: Status = Status.ACTIVE
    note: str | None = None


# Common fixtures
@pytest.fixture
def temp_file():
    """Temporary file for testing."""
    with tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False) as f:
        yield Path(f.name)
    Path(f.name).unlink(missing_ok=True)


@pytest.fixture
def temp_config():
    """
    Provides a temporary config that can be safely changed in test functions.

    After the test the config will be reset to default.
    """
    yield config

    # Reset the globally changed config to default.
    config.load_config()


@pytest.fixture
def clean_registry(monkeypatch):
    """Isolate converter registrations and column plans of a test."""
    monkeypatch.setattr(converters, "_CONVERTERS", dict(converters._CONVERTERS))
    clear_descriptor_cache()
    yield converters
    clear_descriptor_cache()


@pytest.fixture
def invariant_settings():
    """Export settings independent of the locale of the test machine."""
    return SheetExportSettings(culture=INVARIANT_CULTURE)


@pytest.fixture
def sample_people():
    return [
        Person(
            age=27,
            name="Theodor Roosevelt",
            birthday=datetime(1990, 2, 14),
            work_hours=timedelta(hours=14),
        ),
        Person(
            age=24,
            name="Alice",
            birthday=datetime(1990, 3, 7),
            work_hours=timedelta(hours=8),
        ),
    ]


@pytest.fixture
def sample_contacts():
    return [
        Contact(name="Ann", email="ann@example.org"),
        Contact(name="Bob"),
        Contact(name="Cid", email="cid@example.org"),
    ]
