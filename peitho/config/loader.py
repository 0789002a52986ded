"""
Settings loader.

This module provides the public API for loading settings from a
``peitho.yaml`` file and layering environment overrides on top.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import ReporterConfig, ServiceWaitConfig, Settings
from .validation import SettingsValidator, ValidationResult


def _read_document(path: Path, result: ValidationResult) -> dict[str, Any] | None:
    """Parse ``path`` as a YAML mapping; an empty file is an empty mapping."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        result.add_error(str(path), "File not found", suggestion="Check the file path is correct")
        return None
    except yaml.YAMLError as e:
        result.add_error(str(path), f"Invalid YAML syntax: {e}")
        return None

    if data is None:
        return {}
    if not isinstance(data, dict):
        result.add_error(
            str(path),
            "Settings must be a YAML object, not a list or scalar",
            value=type(data).__name__,
        )
        return None
    return data


def load_settings(
    path: str | Path,
    env: Mapping[str, str] | None = None,
) -> tuple[Settings | None, ValidationResult]:
    """
    Load and validate settings from a YAML file.

    Args:
        path: Path to the YAML settings file
        env: Environment mapping used for overrides (defaults to os.environ)

    Returns:
        Tuple of (Settings or None, ValidationResult)
        If the file or an override is invalid, Settings will be None.

    Example:
        settings, result = load_settings("peitho.yaml")
        if not result.is_valid:
            print(result)
            sys.exit(1)
    """
    path = Path(path)
    result = ValidationResult(source=str(path))
    data = _read_document(path, result)
    if data is None:
        return None, result
    return settings_from_dict(data, env, source=str(path))


def settings_from_dict(
    data: dict[str, Any],
    env: Mapping[str, str] | None = None,
    source: str = "settings",
) -> tuple[Settings | None, ValidationResult]:
    """
    Validate already-parsed settings data and apply env overrides.

    ``settings_from_dict({})`` resolves settings from the environment
    alone.
    """
    env = os.environ if env is None else env
    result = SettingsValidator(data, env, source).validate()
    if not result.is_valid:
        return None, result

    reporting = ReporterConfig(**(data.get("reporting") or {}))
    service = ServiceWaitConfig(**(data.get("service") or {}))
    reporting.apply_env(env)
    service.apply_env(env)
    return Settings(reporting=reporting, service=service), result


def load_reporter_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ReporterConfig:
    """
    Resolve the reporter configuration.

    Reads ``path`` when given; otherwise the environment alone decides.

    Raises:
        ValueError: If the settings file fails validation
    """
    env = os.environ if env is None else env
    if path is None:
        return ReporterConfig.from_env(env)

    settings, result = load_settings(path, env)
    if settings is None:
        raise ValueError(str(result))
    return settings.reporting
