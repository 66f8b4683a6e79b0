"""Key to text lookup used for translating sheet names, headers and values."""

import logging
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from .converters import Culture

logger = logging.getLogger(__name__)


@runtime_checkable
class Localizer(Protocol):
    """Anything that maps translation keys to localized text."""

    def __getitem__(self, key: str) -> str: ...

    def with_culture(self, culture: Culture | str | None) -> "Localizer": ...


class DictLocalizer:
    """Localizer backed by one dictionary per culture.

    The catalog stored under ``""`` is the neutral fallback. Lookups try the
    exact culture (``de_DE``), then its language (``de``), then the neutral
    catalog. Unknown keys are returned unchanged.

    Example:
        ```python
        localizer = DictLocalizer(
            {
                "": {"Person": "Person", "Name": "Name"},
                "de": {"Person": "Person", "Name": "Vorname"},
            }
        )
        localizer.with_culture("de_DE")["Name"]  # -> "Vorname"
        ```
    """

    def __init__(
        self,
        catalogs: Mapping[str, Mapping[str, str]],
        culture: Culture | str | None = None,
    ):
        self.catalogs = {
            name.replace("-", "_"): catalog for name, catalog in catalogs.items()
        }
        if isinstance(culture, Culture):
            culture = culture.name
        self.culture = (culture or "").replace("-", "_")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "DictLocalizer":
        """Create a localizer with a single neutral catalog."""
        return cls({"": mapping})

    def with_culture(self, culture: Culture | str | None) -> "DictLocalizer":
        return DictLocalizer(self.catalogs, culture)

    def _lookup_order(self) -> list[str]:
        names = []
        if self.culture:
            names.append(self.culture)
            language = self.culture.split("_")[0]
            if language != self.culture:
                names.append(language)
        names.append("")
        return names

    def __getitem__(self, key: str) -> str:
        for name in self._lookup_order():
            catalog = self.catalogs.get(name)
            if catalog is not None and key in catalog:
                return catalog[key]
        logger.debug('-> No translation for key "%s" (culture "%s").', key, self.culture)
        return key
