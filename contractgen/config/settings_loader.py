"""Settings loading utilities with environment overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from contractgen.config.models import GenerationSettings
from contractgen.utils.errors import SettingsError

_ENV_ARCHIVE_ROOT = "CONTRACTGEN_ARCHIVE_ROOT"
_ENV_WRITE_RETRIES = "CONTRACTGEN_WRITE_RETRIES"
_ENV_CURRENCY_SYMBOL = "CONTRACTGEN_CURRENCY_SYMBOL"


def load_settings(
    path: Path | None = None, environ: Mapping[str, str] | None = None
) -> GenerationSettings:
    """Load and validate generation settings from YAML, then apply env overrides."""

    settings_path = path or Path(__file__).with_name("settings.yaml")

    try:
        raw = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SettingsError(f"Settings file not found: {settings_path}") from exc
    except yaml.YAMLError as exc:
        raise SettingsError(f"Invalid YAML in settings file: {settings_path}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SettingsError(f"Settings file must contain a mapping: {settings_path}")

    try:
        settings = GenerationSettings.model_validate(raw)
    except ValidationError as exc:
        raise SettingsError(f"Invalid settings schema: {settings_path}") from exc

    return apply_env_overrides(settings, os.environ if environ is None else environ)


def apply_env_overrides(
    settings: GenerationSettings, environ: Mapping[str, str]
) -> GenerationSettings:
    """Return a copy of settings with valid environment overrides applied."""

    updates: dict[str, object] = {}

    archive_root = environ.get(_ENV_ARCHIVE_ROOT, "").strip()
    if archive_root:
        updates["archive_root"] = archive_root

    write_retries = _positive_int(environ.get(_ENV_WRITE_RETRIES))
    if write_retries is not None:
        updates["write_retries"] = write_retries

    currency_symbol = environ.get(_ENV_CURRENCY_SYMBOL)
    if currency_symbol:
        updates["currency_symbol"] = currency_symbol

    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _positive_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        parsed = int(raw)
    except ValueError:
        return None
    return parsed if parsed > 0 else None
