from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from config.loader import ConfigFileNotFoundError, ConfigFormatError, ConfigLoader, ConfigTypeError, ConfigValueError


def _write_ini(tmp_path: Path, content: str) -> Path:
    ini_path: Path = tmp_path / "term_resolver.ini"
    ini_path.write_text(dedent(content), encoding="utf-8")
    return ini_path


def test_config_loader_raises_for_missing_file(tmp_path: Path) -> None:
    ini_path: Path = tmp_path / "missing.ini"
    with pytest.raises(ConfigFileNotFoundError):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_empty_file_keeps_defaults(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "")

    config = ConfigLoader(config_filename=str(ini_path), script_name="resolve_term").config

    assert config.GENERAL.SCRIPT_NAME == "resolve_term"
    assert config.SPECIALIZED_DICTIONARY.ENGINE == "jotoba"
    assert config.SPECIALIZED_DICTIONARY.TARGET_LANGUAGES == ["ja"]
    assert config.GENERATIVE_FALLBACK.BACKOFF_STRATEGY == "linear"
    assert config.RESOLUTION.PROVIDER_ORDER[0] == "specialized-dictionary"


def test_values_are_coerced_to_declared_types(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [GENERAL]
        DEBUG = yes
        LOG_LEVEL = "DEBUG"

        [CACHE]
        DB_PATH = 'cache/terms.db'
        FAST_TIER_MAX_ENTRIES = 500
        TTL_GENERATIVE_FALLBACK_SEC = 3_600

        [RESOLUTION]
        PROVIDER_ORDER = ["primary-translator", "specialized-dictionary", "secondary-translator", "generative-fallback"]
        DEADLINE_SEC = 12.5

        [PRIMARY_TRANSLATOR]
        ENGINE = "deepl"
        TARGET_LANGUAGES = ["ja", "zh-CN"]
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test").config

    assert config.GENERAL.DEBUG is True
    assert config.GENERAL.LOG_LEVEL == "DEBUG"
    assert config.CACHE.DB_PATH == "cache/terms.db"
    assert config.CACHE.FAST_TIER_MAX_ENTRIES == 500
    assert config.CACHE.TTL_GENERATIVE_FALLBACK_SEC == 3600.0
    assert config.RESOLUTION.PROVIDER_ORDER[0] == "primary-translator"
    assert config.RESOLUTION.DEADLINE_SEC == 12.5
    assert config.PRIMARY_TRANSLATOR.ENGINE == "deepl"
    assert config.PRIMARY_TRANSLATOR.TARGET_LANGUAGES == ["ja", "zh-CN"]


def test_command_line_overrides(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [RESOLUTION]
        ACTIVE_USERS = 5
        DEADLINE_SEC = 20
        """,
    )

    config = ConfigLoader(
        config_filename=str(ini_path), script_name="test", debug=True, active_users=250, deadline=3
    ).config

    assert config.GENERAL.DEBUG is True
    assert config.RESOLUTION.ACTIVE_USERS == 250
    assert config.RESOLUTION.DEADLINE_SEC == 3.0


def test_unknown_section_is_ignored(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [TWITCH]
        OWNER_NAME = "owner"
        """,
    )

    ConfigLoader(config_filename=str(ini_path), script_name="test")

    assert any("Ignoring unknown configuration section" in rec.message for rec in caplog.records)


@pytest.mark.parametrize(
    ("content", "error"),
    [
        ("[RESOLUTION]\nPROVIDER_ORDER = []\n", ConfigTypeError),
        ("[RESOLUTION]\nPROVIDER_ORDER = [\"oracle\"]\n", ConfigValueError),
        ("[RESOLUTION]\nPROVIDER_ORDER = [\"primary-translator\", \"primary-translator\"]\n", ConfigValueError),
        ("[SPECIALIZED_DICTIONARY]\nENGINE = \"deepl\"\n", ConfigValueError),
        ("[GENERATIVE_FALLBACK]\nBACKOFF_STRATEGY = \"exponential\"\n", ConfigValueError),
        ("[PRIMARY_TRANSLATOR]\nMAX_CONCURRENT_REQUESTS = 0\n", ConfigValueError),
        ("[PRIMARY_TRANSLATOR]\nMAX_RETRIES = -1\n", ConfigValueError),
        ("[RESOLUTION]\nDEADLINE_SEC = 0\n", ConfigValueError),
        ("[CACHE]\nFAST_TIER_MAX_ENTRIES = many\n", ConfigValueError),
        ("[PRIMARY_TRANSLATOR]\nTARGET_LANGUAGES = [\"ja\"\n", ConfigFormatError),
    ],
)
def test_invalid_settings_are_rejected(tmp_path: Path, content: str, error: type[Exception]) -> None:
    ini_path: Path = _write_ini(tmp_path, content)

    with pytest.raises(error):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_call_timeout_must_be_shorter_than_queue_timeout(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [RESOLUTION]
        QUEUE_TIMEOUT_SEC = 5

        [SECONDARY_TRANSLATOR]
        CALL_TIMEOUT_SEC = 5
        """,
    )

    with pytest.raises(ConfigValueError, match="CALL_TIMEOUT_SEC"):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_disabled_provider_skips_validation(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [SPECIALIZED_DICTIONARY]
        ENABLED = False
        ENGINE = "unknown"
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test").config

    assert config.SPECIALIZED_DICTIONARY.ENABLED is False


def test_sample_configuration_file_loads() -> None:
    sample: Path = Path(__file__).resolve().parents[2] / "term_resolver.ini"

    config = ConfigLoader(config_filename=str(sample), script_name="test").config

    assert config.SPECIALIZED_DICTIONARY.ENDPOINT.startswith("https://")
    assert config.CACHE.TTL_SPECIALIZED_DICTIONARY_SEC > config.CACHE.TTL_GENERATIVE_FALLBACK_SEC
