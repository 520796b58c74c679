from __future__ import annotations

from pathlib import Path

import pytest

from contractgen.config.models import GenerationSettings
from contractgen.config.settings_loader import apply_env_overrides, load_settings
from contractgen.utils.errors import SettingsError


def test_load_default_settings() -> None:
    settings = load_settings(environ={})

    assert settings.currency_symbol == "$"
    assert settings.archive_root == "archive"
    assert settings.write_retries == 3
    assert settings.bundle_partial is False
    assert settings.bundle_name_pattern == "contracts_{contract_year}_{run_date}.zip"


def test_empty_settings_file_uses_model_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("", encoding="utf-8")

    assert load_settings(path, environ={}) == GenerationSettings()


def test_custom_settings_file(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "currency_symbol: EUR\nfield_formats:\n  bonusPool: currency\nbundle_partial: true\n",
        encoding="utf-8",
    )

    settings = load_settings(path, environ={})

    assert settings.currency_symbol == "EUR"
    assert settings.field_formats == {"bonusPool": "currency"}
    assert settings.bundle_partial is True


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("- a\n- b\n", "must contain a mapping"),
        ("write_retries: [\n", "Invalid YAML"),
        ("write_retries: 0\n", "Invalid settings schema"),
        ("unknown_option: true\n", "Invalid settings schema"),
        ("field_formats:\n  x: roman\n", "Invalid settings schema"),
    ],
)
def test_invalid_settings_files(tmp_path: Path, text: str, message: str) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")

    with pytest.raises(SettingsError, match=message):
        load_settings(path, environ={})


def test_missing_settings_file(tmp_path: Path) -> None:
    with pytest.raises(SettingsError, match="not found"):
        load_settings(tmp_path / "missing.yaml", environ={})


def test_env_overrides_apply() -> None:
    settings = apply_env_overrides(
        GenerationSettings(),
        {
            "CONTRACTGEN_ARCHIVE_ROOT": "/srv/archive",
            "CONTRACTGEN_WRITE_RETRIES": "5",
            "CONTRACTGEN_CURRENCY_SYMBOL": "£",
        },
    )

    assert settings.archive_root == "/srv/archive"
    assert settings.write_retries == 5
    assert settings.currency_symbol == "£"


@pytest.mark.parametrize("raw", ["zero", "0", "-2", ""])
def test_invalid_env_retries_are_ignored(raw: str) -> None:
    settings = apply_env_overrides(GenerationSettings(), {"CONTRACTGEN_WRITE_RETRIES": raw})

    assert settings.write_retries == 3


def test_blank_env_archive_root_is_ignored() -> None:
    settings = apply_env_overrides(GenerationSettings(), {"CONTRACTGEN_ARCHIVE_ROOT": "   "})

    assert settings.archive_root == "archive"
