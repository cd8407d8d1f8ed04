"""Configuration file loader and validator.

Handles reading, formatting, and validating settings from the INI configuration file.
Raises exceptions for any issues encountered during loading.
"""

from __future__ import annotations

import ast
import configparser
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from models.config_models import Config, ProviderSettings
from models.provider_models import BackoffStrategy, ProviderId
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable
    from dataclasses import Field as DataclassField
else:
    from dataclasses import Field as DataclassField

__all__: list[str] = [
    "Config",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

ALLOWED_PROVIDER_ENGINES: Final[dict[ProviderId, tuple[str, ...]]] = {
    ProviderId.SPECIALIZED_DICTIONARY: ("jotoba",),
    ProviderId.PRIMARY_TRANSLATOR: ("google_cloud", "deepl", "openai"),
    ProviderId.SECONDARY_TRANSLATOR: ("google_cloud", "deepl", "openai"),
    ProviderId.GENERATIVE_FALLBACK: ("openai",),
}


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


class ConfigLoader:
    """Handles loading and validation of configuration settings.

    Every section of ``Config`` is optional in the file; missing keys keep their dataclass defaults.

    Args:
        config_filename (str): INI file name to load.
        script_name (str): Executing script name, used in error messaging.
        **args: Command-line overrides (``debug``, ``active_users``, ``deadline``).

    Raises:
        ConfigFileNotFoundError: If the configuration file does not exist.
        ConfigFormatError: If the file cannot be parsed or contains invalid values/types.
    """

    def __init__(
        self,
        *,
        config_filename: str,
        script_name: str,
        **args,
    ) -> None:
        config_path = Path(config_filename)
        msg: str
        if not config_path.exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Please create '{config_filename}' in the same directory as '{script_name}'."
            )
            raise ConfigFileNotFoundError(msg)

        parser: ConfigParser = ConfigParser()
        # keep key case so they line up with the upper-case dataclass fields
        parser.optionxform = str  # type: ignore[assignment,method-assign]

        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        self.config = Config()
        self.config.GENERAL.SCRIPT_NAME = script_name
        self._convert_settings(parser)
        if args.get("debug", False):
            self.config.GENERAL.DEBUG = True
        if args.get("active_users") is not None:
            self.config.RESOLUTION.ACTIVE_USERS = int(args["active_users"])
        if args.get("deadline") is not None:
            self.config.RESOLUTION.DEADLINE_SEC = float(args["deadline"])
        self._validate_settings()

    def _convert_settings(self, parser: ConfigParser) -> None:
        """Copy every known key from the parser into the Config object.

        Args:
            parser (ConfigParser): Parsed INI data.

        Raises:
            ConfigFormatError: If a value cannot be parsed or coerced to the expected type.
        """
        formatter = _ConfigFormatter(self.config, parser)
        for section in fields(self.config):
            if not parser.has_section(section.name):
                logger.debug("Section not present, using defaults: '%s'", section.name)
                continue
            self._convert_section_field(parser, formatter, section)

        known_sections: set[str] = {section.name for section in fields(self.config)}
        for unknown in set(parser.sections()) - known_sections:
            logger.warning("Ignoring unknown configuration section: '%s'", unknown)

    def _convert_section_field(
        self, parser: ConfigParser, formatter: _ConfigFormatter, section: DataclassField[Any]
    ) -> None:
        for key in fields(getattr(self.config, section.name)):
            try:
                parser[section.name][key.name]
            except KeyError:
                logger.debug("Skipping undefined setting: '%s.%s'", section.name, key.name)
                continue

            formatted_value = formatter.apply_format(section, key)
            setattr(getattr(self.config, section.name), key.name, formatted_value)

    def _validate_settings(self) -> None:
        """Validate cross-field rules for the resolution pipeline.

        Raises:
            ConfigFormatError: If validation fails for any setting.
        """
        try:
            self._validate_provider_order()
            for provider_id in ProviderId:
                self._validate_provider(provider_id)
            self._validate_positive("RESOLUTION", "DEADLINE_SEC")
            self._validate_positive("RESOLUTION", "QUEUE_TIMEOUT_SEC")
            self._validate_positive("RESOLUTION", "WINDOW_TICK_SEC")
            self._validate_positive("CACHE", "FAST_TIER_MAX_ENTRIES")
        except (AttributeError, TypeError, ValueError) as err:
            msg: str = f"Invalid configuration value: {err}"
            raise ConfigFormatError(msg) from None

    def _validate_provider_order(self) -> None:
        order: list[str] = self.config.RESOLUTION.PROVIDER_ORDER
        if not isinstance(order, list) or not order:
            msg = "'RESOLUTION.PROVIDER_ORDER' must be a non-empty list"
            raise ConfigTypeError(msg)
        valid: set[str] = {member.value for member in ProviderId}
        unknown: list[str] = [name for name in order if name not in valid]
        if unknown:
            msg: str = f"Unknown provider ids in 'RESOLUTION.PROVIDER_ORDER': {unknown}"
            raise ConfigValueError(msg)
        if len(set(order)) != len(order):
            msg = "'RESOLUTION.PROVIDER_ORDER' contains duplicates"
            raise ConfigValueError(msg)

    def _validate_provider(self, provider_id: ProviderId) -> None:
        """Check one provider section.

        Raises:
            ConfigValueError: If the engine, strategy or limits are invalid.
        """
        settings: ProviderSettings = getattr(self.config, provider_id.config_section)
        field_name: str = provider_id.config_section
        if not settings.ENABLED:
            logger.info("Provider disabled by configuration: '%s'", provider_id)
            return

        if settings.ENGINE not in ALLOWED_PROVIDER_ENGINES[provider_id]:
            msg: str = (
                f"Unsupported engine '{settings.ENGINE}' for '{field_name}.ENGINE'. "
                f"Allowed: {list(ALLOWED_PROVIDER_ENGINES[provider_id])}"
            )
            raise ConfigValueError(msg)

        try:
            BackoffStrategy(settings.BACKOFF_STRATEGY.lower())
        except ValueError:
            msg = f"Unknown backoff strategy '{settings.BACKOFF_STRATEGY}' for '{field_name}.BACKOFF_STRATEGY'"
            raise ConfigValueError(msg) from None

        for key in ("MAX_REQUESTS_PER_WINDOW", "WINDOW_DURATION_MS", "MAX_CONCURRENT_REQUESTS", "CALL_TIMEOUT_SEC"):
            if getattr(settings, key) <= 0:
                msg = f"'{field_name}.{key}' must be greater than zero"
                raise ConfigValueError(msg)
        if settings.MAX_RETRIES < 0 or settings.BACKOFF_MS < 0:
            msg = f"'{field_name}.MAX_RETRIES' and '{field_name}.BACKOFF_MS' must not be negative"
            raise ConfigValueError(msg)

        if settings.CALL_TIMEOUT_SEC >= self.config.RESOLUTION.QUEUE_TIMEOUT_SEC:
            msg = (
                f"'{field_name}.CALL_TIMEOUT_SEC' ({settings.CALL_TIMEOUT_SEC}) must be shorter than "
                f"'RESOLUTION.QUEUE_TIMEOUT_SEC' ({self.config.RESOLUTION.QUEUE_TIMEOUT_SEC})"
            )
            raise ConfigValueError(msg)

        if not isinstance(settings.TARGET_LANGUAGES, list):
            msg = f"Unsupported type used for '{field_name}.TARGET_LANGUAGES': {type(settings.TARGET_LANGUAGES)}"
            raise ConfigTypeError(msg)

    def _validate_positive(self, section_name: str, key_name: str) -> None:
        value: float = getattr(getattr(self.config, section_name), key_name)
        if value <= 0:
            msg: str = f"'{section_name}.{key_name}' must be greater than zero"
            raise ConfigValueError(msg)


class _ConfigFormatter:
    """Converts INI string values to typed Python objects (bool, int, float, str, list, dict)."""

    def __init__(self, config: Config, parser: ConfigParser) -> None:
        self.config: Config = config
        self.parser: ConfigParser = parser

    def apply_format(self, section: DataclassField[Any], key: DataclassField[Any]) -> Any:
        """Convert INI value to the expected Python type based on the Config field's current value.

        Args:
            section (DataclassField[Any]): Configuration section field containing the key.
            key (DataclassField[Any]): Target field within the section.

        Returns:
            Any: Parsed value coerced to the type declared in the config dataclass.

        Raises:
            ConfigValueError: If a value cannot be coerced to the expected type.
            ConfigFormatError: If literal evaluation fails due to invalid syntax.
            ConfigTypeError: If an unexpected type is encountered during coercion.
        """
        formatters: dict[type, Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float | str]] = {
            bool: self.parse_as_boolean,
            int: self.parse_as_integer,
            float: self.parse_as_float,
            str: self.parse_as_string,
        }

        formatter: Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float | str] | None = (
            formatters.get(type(getattr(getattr(self.config, section.name), key.name)))
        )
        if formatter:
            try:
                return formatter(section, key)
            except ValueError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigValueError(msg) from err
            except TypeError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigTypeError(msg) from err

        value_str: str = self.parser[section.name][key.name]
        try:
            return ast.literal_eval(value_str)
        except ValueError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigValueError(msg) from err
        except SyntaxError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigFormatError(msg) from err

    def _raw(self, section: DataclassField[Any], key: DataclassField[Any]) -> str:
        value: str = self.parser.get(section.name, key.name).strip()
        for char in ("'", '"'):
            value = value.removeprefix(char).removesuffix(char)
        return value

    def parse_as_string(self, section: DataclassField[Any], key: DataclassField[Any]) -> str:
        """Return the INI string with surrounding quotes removed."""
        return self._raw(section, key)

    def parse_as_float(self, section: DataclassField[Any], key: DataclassField[Any]) -> float:
        """Convert INI string to float."""
        return float(self._raw(section, key).replace("_", ""))

    def parse_as_integer(self, section: DataclassField[Any], key: DataclassField[Any]) -> int:
        """Convert INI string to integer."""
        return int(float(self._raw(section, key).replace("_", "")))

    def parse_as_boolean(self, section: DataclassField[Any], key: DataclassField[Any]) -> bool:
        """Convert INI string to boolean."""
        return self.parser.getboolean(section.name, key.name)
