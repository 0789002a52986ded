"""
Validation for peitho settings.

A settings source is a parsed ``peitho.yaml`` document plus the
environment variables layered over it. Both are checked before any
value reaches a config object, and every problem is collected into a
ValidationResult instead of being raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .models import (
    HEALTH_INTERVAL_MS_ENV,
    HEALTH_MAX_ATTEMPTS_ENV,
    HEALTHCHECK_URL_ENV,
)


# ─────────────────────────────────────────────────────────────────────────────
# Validation Result Types
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ValidationError:
    """One problem in a settings source."""
    path: str  # dotted key ("service.max_attempts"), env var name, or file path
    message: str
    value: Any = None
    suggestion: str | None = None

    def __str__(self) -> str:
        text = f"{self.path}: {self.message}"
        if self.value is not None:
            text += f" (got {self.value!r})"
        if self.suggestion:
            text += f". {self.suggestion}"
        return text


@dataclass
class ValidationResult:
    """Problems collected while reading one settings source."""
    source: str = "settings"
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(
        self,
        path: str,
        message: str,
        value: Any = None,
        suggestion: str | None = None,
    ) -> None:
        self.errors.append(ValidationError(path, message, value, suggestion))

    def __str__(self) -> str:
        if self.is_valid:
            return f"✅ {self.source} is valid"
        lines = [f"❌ {self.source}: {len(self.errors)} problem(s)"]
        lines.extend(f"  • {error}" for error in self.errors)
        return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Settings Validator
# ─────────────────────────────────────────────────────────────────────────────

def _is_http_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def _positive_int(value: Any) -> int | None:
    """The value as a positive int, or None when it is not one."""
    # bool is an int subclass
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return None
    if isinstance(value, int) and value >= 1:
        return value
    return None


class SettingsValidator:
    """Validates a parsed settings document and its environment overrides."""

    TOP_LEVEL = {"reporting", "service"}
    REPORTING_STRING_KEYS = {"results_dir", "host", "report_name", "executor_name", "executor_type"}
    SERVICE_INT_KEYS = {"max_attempts", "interval_ms"}
    SERVICE_KEYS = SERVICE_INT_KEYS | {"healthcheck_url"}
    ENV_INT_KEYS = (HEALTH_MAX_ATTEMPTS_ENV, HEALTH_INTERVAL_MS_ENV)

    def __init__(
        self,
        data: dict[str, Any],
        env: Mapping[str, str] | None = None,
        source: str = "settings",
    ):
        self.data = data
        self.env = env or {}
        self.result = ValidationResult(source=source)

    def validate(self) -> ValidationResult:
        """Run all validation checks and return result."""
        self._validate_top_level()
        self._validate_reporting()
        self._validate_service()
        self._validate_env()
        return self.result

    def _validate_top_level(self) -> None:
        for key in sorted(set(self.data) - self.TOP_LEVEL):
            self.result.add_error(
                key,
                f"Unknown top-level field '{key}'",
                suggestion=f"Valid fields are: {', '.join(sorted(self.TOP_LEVEL))}"
            )

    def _section(self, name: str) -> dict[str, Any] | None:
        section = self.data.get(name)
        if section is None or isinstance(section, dict):
            return section
        self.result.add_error(name, "Must be an object", value=section)
        return None

    def _validate_reporting(self) -> None:
        reporting = self._section("reporting")
        for key, value in (reporting or {}).items():
            if key not in self.REPORTING_STRING_KEYS:
                self.result.add_error(
                    f"reporting.{key}",
                    "Unknown field",
                    suggestion=f"Valid fields are: {', '.join(sorted(self.REPORTING_STRING_KEYS))}"
                )
            elif not isinstance(value, str) or not value.strip():
                self.result.add_error(f"reporting.{key}", "Must be a non-empty string", value=value)

    def _validate_service(self) -> None:
        service = self._section("service")
        for key, value in (service or {}).items():
            if key not in self.SERVICE_KEYS:
                self.result.add_error(
                    f"service.{key}",
                    "Unknown field",
                    suggestion=f"Valid fields are: {', '.join(sorted(self.SERVICE_KEYS))}"
                )
            elif key == "healthcheck_url":
                self._check_url(f"service.{key}", value)
            # YAML integers only; strings are for the environment
            elif isinstance(value, str) or _positive_int(value) is None:
                self.result.add_error(f"service.{key}", "Must be a positive integer", value=value)

    def _validate_env(self) -> None:
        if self.env.get(HEALTHCHECK_URL_ENV):
            self._check_url(HEALTHCHECK_URL_ENV, self.env[HEALTHCHECK_URL_ENV])
        for name in self.ENV_INT_KEYS:
            raw = self.env.get(name)
            if raw and _positive_int(raw) is None:
                self.result.add_error(name, "Must be a positive integer", value=raw)

    def _check_url(self, path: str, url: Any) -> None:
        if not isinstance(url, str):
            self.result.add_error(path, "Must be a string", value=url)
        elif not _is_http_url(url):
            self.result.add_error(
                path,
                "Must be a valid HTTP(S) URL",
                value=url,
                suggestion="URL should start with 'http://' or 'https://'"
            )
