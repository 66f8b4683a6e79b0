"""Config module to share default export/import settings across simplexls."""

import logging
import sys
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from simplexls.converters import Culture
from simplexls.localizer import DictLocalizer, Localizer
from simplexls.xlsx_common import SheetExportSettings, SheetImportSettings
from simplexls.xlsx_sheet import MAX_SHEETNAME_LENGTH

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)


class ExportConfig(BaseModel):
    sheet_name: str | None = None
    culture: str | None = None  # None selects the culture of the process locale
    omit_empty_columns: bool = False
    translate_headers: bool = True
    # culture name -> {translation key -> text}; "" holds the neutral catalog
    translations: dict[str, dict[str, str]] = {}

    @field_validator("sheet_name", "culture", mode="before")
    @classmethod
    def handle_empty_field(cls, value):
        # None cannot be expressed in toml so we catch an empty string before validation.
        if value == "":
            return None
        return value

    @field_validator("sheet_name")
    @classmethod
    def check_sheet_name_length(cls, value):
        if value is not None and len(value) > MAX_SHEETNAME_LENGTH:
            msg = (
                f'Sheet name "{value}" is longer than {MAX_SHEETNAME_LENGTH} characters.'
            )
            raise ValueError(msg)
        return value

    def to_settings(self, localizer: Localizer | None = None) -> SheetExportSettings:
        """Create export settings; translations from config are used as fallback localizer."""
        if localizer is None and self.translations:
            localizer = DictLocalizer(self.translations)
        culture = (
            Culture.from_name(self.culture) if self.culture else Culture.current()
        )
        return SheetExportSettings(
            sheet_name=self.sheet_name,
            culture=culture,
            omit_empty_columns=self.omit_empty_columns,
            localizer=localizer,
            translate_headers=self.translate_headers,
        )


class ImportConfig(BaseModel):
    has_header: bool = True
    break_on_error: bool = False
    sheet_index: Annotated[int, Field(ge=1)] = 1

    def to_settings(self) -> SheetImportSettings:
        return SheetImportSettings(
            has_header=self.has_header, break_on_error=self.break_on_error
        )


class SimpleXlsConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    export: ExportConfig = ExportConfig()
    import_: ImportConfig = Field(
        default_factory=ImportConfig, alias="import"
    )
    default_config: bool = False


# These parameters will be updated/set by load_config.
CONFIG = SimpleXlsConfig(default_config=True)
CONFIG_PATH: Path | None = None


def load_config(
    config_file: Path | None = None, config: SimpleXlsConfig | None = None
):
    new_conf = {}
    new_conf["CONFIG_PATH"] = None
    if config_file is not None and not config_file.exists():
        logger.warning('Configuration file "%s" not found.', config_file)
    if (True if config_file is None else not config_file.exists()) and config is None:
        new_conf["CONFIG"] = SimpleXlsConfig(default_config=True)
        logger.debug("Initializing default config.")
    elif config_file and config is None:
        with config_file.open(mode="rb") as fp:
            conf = tomllib.load(fp)
        logger.debug("Config loaded from: %s", config_file)
        new_conf["CONFIG"] = SimpleXlsConfig(**conf)
        new_conf["CONFIG_PATH"] = config_file.resolve()
    else:
        new_conf["CONFIG"] = SimpleXlsConfig.model_validate_json(
            config.model_dump_json(by_alias=True)
        )
        logger.debug("Refreshing global state of config.")

    for name, value in new_conf.items():
        globals()[name] = value
