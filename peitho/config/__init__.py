"""
Configuration for PeithoTest tooling.

Usage:
    from peitho.config import load_settings, ReporterConfig

    # Environment only
    config = ReporterConfig.from_env()

    # From a file, with environment overrides
    settings, result = load_settings("peitho.yaml")
    if not result.is_valid:
        print(result)
"""

from .loader import load_reporter_config, load_settings, settings_from_dict
from .models import (
    DEFAULT_RESULTS_DIR,
    CIEnvironment,
    ReporterConfig,
    ServiceWaitConfig,
    Settings,
)
from .validation import SettingsValidator, ValidationError, ValidationResult

__all__ = [
    # Loader functions
    "load_settings",
    "load_reporter_config",
    "settings_from_dict",
    # Models
    "DEFAULT_RESULTS_DIR",
    "CIEnvironment",
    "ReporterConfig",
    "ServiceWaitConfig",
    "Settings",
    # Validation
    "SettingsValidator",
    "ValidationError",
    "ValidationResult",
]
