"""
Typed configuration for the reporter and the service probe.

Values come from an optional YAML file and are then overridden by
environment variables, which is how CI jobs configure a run.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping


DEFAULT_RESULTS_DIR = "allure-results"
DEFAULT_HOST = "localhost"
DEFAULT_REPORT_NAME = "PeithoTest Run"
DEFAULT_HEALTHCHECK_URL = "http://localhost:8000/health"

# Environment variables
RESULTS_DIR_ENV = "ALLURE_RESULTS_DIR"
HOSTNAME_ENV = "HOSTNAME"
HEALTHCHECK_URL_ENV = "PEITHO_HEALTHCHECK_URL"
HEALTH_MAX_ATTEMPTS_ENV = "PEITHO_HEALTH_MAX_ATTEMPTS"
HEALTH_INTERVAL_MS_ENV = "PEITHO_HEALTH_INTERVAL_MS"


# ─────────────────────────────────────────────────────────────────────────────
# CI environment
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class CIEnvironment:
    """Build information picked up from GitHub Actions, when present."""
    server_url: str | None = None
    repository: str | None = None
    workflow: str | None = None
    run_number: str | None = None
    run_id: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> CIEnvironment:
        env = os.environ if env is None else env
        return cls(
            server_url=env.get("GITHUB_SERVER_URL") or None,
            repository=env.get("GITHUB_REPOSITORY") or None,
            workflow=env.get("GITHUB_WORKFLOW") or None,
            run_number=env.get("GITHUB_RUN_NUMBER") or None,
            run_id=env.get("GITHUB_RUN_ID") or None,
        )

    @property
    def repository_url(self) -> str | None:
        if self.server_url and self.repository:
            return f"{self.server_url}/{self.repository}"
        return None

    @property
    def build_url(self) -> str | None:
        if self.server_url and self.repository and self.run_id:
            return f"{self.server_url}/{self.repository}/actions/runs/{self.run_id}"
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Reporter
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ReporterConfig:
    """Settings for the Allure results writer."""
    results_dir: str | None = None  # None means ./allure-results
    host: str = DEFAULT_HOST
    report_name: str = DEFAULT_REPORT_NAME
    executor_name: str = "pytest"
    executor_type: str = "pytest"
    ci: CIEnvironment = field(default_factory=CIEnvironment)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ReporterConfig:
        """Build a config purely from environment variables."""
        config = cls()
        config.apply_env(env)
        return config

    def apply_env(self, env: Mapping[str, str] | None = None) -> None:
        """Override fields with whatever the environment provides."""
        env = os.environ if env is None else env
        if env.get(RESULTS_DIR_ENV):
            self.results_dir = env[RESULTS_DIR_ENV]
        if env.get(HOSTNAME_ENV):
            self.host = env[HOSTNAME_ENV]
        self.ci = CIEnvironment.from_env(env)

    def resolve_results_dir(self, cwd: Path | None = None) -> Path:
        """Absolute results directory, defaulting under the working directory."""
        base = cwd or Path.cwd()
        if self.results_dir:
            return (base / Path(self.results_dir).expanduser()).resolve()
        return (base / DEFAULT_RESULTS_DIR).resolve()


# ─────────────────────────────────────────────────────────────────────────────
# Service probe
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ServiceWaitConfig:
    """How long to wait for the application under test to come up."""
    healthcheck_url: str = DEFAULT_HEALTHCHECK_URL
    max_attempts: int = 20
    interval_ms: int = 1000

    def apply_env(self, env: Mapping[str, str] | None = None) -> None:
        """Override fields from the environment, which SettingsValidator has checked."""
        env = os.environ if env is None else env
        if env.get(HEALTHCHECK_URL_ENV):
            self.healthcheck_url = env[HEALTHCHECK_URL_ENV]
        if env.get(HEALTH_MAX_ATTEMPTS_ENV):
            self.max_attempts = int(env[HEALTH_MAX_ATTEMPTS_ENV])
        if env.get(HEALTH_INTERVAL_MS_ENV):
            self.interval_ms = int(env[HEALTH_INTERVAL_MS_ENV])


@dataclass
class Settings:
    """Everything a ``peitho.yaml`` file can configure."""
    reporting: ReporterConfig = field(default_factory=ReporterConfig)
    service: ServiceWaitConfig = field(default_factory=ServiceWaitConfig)
