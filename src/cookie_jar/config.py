"""Configuration models for Cookie Jar."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from cookie_jar.exceptions import ConfigError


class RiskThresholds(BaseModel):
    """Risk score cut-offs (0-100)."""
    high: float = 70
    medium: float = 50
    low: float = 30


class ComplexityWeights(BaseModel):
    """Relative weight of each complexity tier."""
    low: float = 1.0
    medium: float = 1.5
    high: float = 2.0


class RepositoryConfig(BaseModel):
    """Per-repository policy knobs."""
    repository_id: str
    owner_name: str
    repository_name: str
    grace_period_days: int = Field(default=7, ge=0)
    max_nudges: int = Field(default=3, ge=0)
    auto_release_enabled: bool = True
    risk_thresholds: RiskThresholds = Field(default_factory=RiskThresholds)
    # Stored with the repository but not yet read by any policy.
    nudge_intervals: list[int] = Field(default_factory=lambda: [3, 7, 14])
    maintainer_notification_enabled: bool = True
    community_nudging_enabled: bool = True
    complexity_weights: ComplexityWeights = Field(default_factory=ComplexityWeights)
    enabled_features: list[str] = Field(
        default_factory=lambda: ["detection", "nudging", "auto_release", "analytics"]
    )
    is_active: bool = True


class RepositoryDefaults(BaseModel):
    """Defaults applied to a repository the first time it is seen."""
    grace_period_days: int = 7
    max_nudges: int = 3
    nudge_intervals: list[int] = Field(default_factory=lambda: [3, 7, 14])
    auto_release_enabled: bool = True

    def for_repository(
        self, owner: str, repo: str, **overrides: Any
    ) -> RepositoryConfig:
        """Build a :class:`RepositoryConfig` for ``owner/repo``."""
        data: dict[str, Any] = {
            "repository_id": f"{owner}/{repo}",
            "owner_name": owner,
            "repository_name": repo,
            **self.model_dump(),
        }
        data.update(overrides)
        return RepositoryConfig(**data)


class NotificationConfig(BaseModel):
    """Low completion probability alerting."""
    probability_benchmark: float = 40.0

    @field_validator("probability_benchmark")
    @classmethod
    def _check_range(cls, value: float) -> float:
        validate_benchmark(value)
        return value


class SchedulerConfig(BaseModel):
    """Periodic processing settings."""
    interval_minutes: int = Field(default=60, gt=0)


class GitHubConfig(BaseModel):
    """GitHub API request parameters."""
    per_page: int = 100
    timeout: float = 30.0
    user_agent: str = "Cookie-Jar/1.0"


class StoreConfig(BaseModel):
    """Location of the repository configuration database."""
    db_path: str = str(Path.home() / ".cache" / "cookie-jar" / "config.db")


class CookieJarConfig(BaseModel):
    """Top-level configuration composing all sub-configs."""
    defaults: RepositoryDefaults = Field(default_factory=RepositoryDefaults)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)


def validate_benchmark(value: float) -> float:
    """Reject probability benchmarks outside ``[0, 100]``."""
    if value < 0 or value > 100:
        raise ConfigError(f"Benchmark must be between 0 and 100, got {value}")
    return value


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(path: str | Path | None = None) -> CookieJarConfig:
    """Load configuration from YAML file, environment variables, and defaults.

    Priority (highest to lowest):
    1. Environment variables (COOKIE_JAR_*)
    2. YAML config file
    3. Defaults
    """
    config_data: dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if config_path.is_file():
            with open(config_path) as f:
                yaml_data = yaml.safe_load(f)
                if yaml_data:
                    config_data = yaml_data
    else:
        for default_path in [".cookie-jar.yml", ".cookie-jar.yaml"]:
            p = Path(default_path)
            if p.exists():
                with open(p) as f:
                    yaml_data = yaml.safe_load(f)
                    if yaml_data:
                        config_data = yaml_data
                break

    env_mapping = {
        "COOKIE_JAR_GRACE_PERIOD_DAYS": ("defaults", "grace_period_days", int),
        "COOKIE_JAR_MAX_NUDGES": ("defaults", "max_nudges", int),
        "COOKIE_JAR_AUTO_RELEASE": ("defaults", "auto_release_enabled", _parse_bool),
        "COOKIE_JAR_PROBABILITY_BENCHMARK": (
            "notifications", "probability_benchmark", float,
        ),
        "COOKIE_JAR_INTERVAL_MINUTES": ("scheduler", "interval_minutes", int),
        "COOKIE_JAR_DB_PATH": ("store", "db_path", str),
    }

    for env_var, (section, key, type_fn) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            if section not in config_data:
                config_data[section] = {}
            config_data[section][key] = type_fn(value)

    return CookieJarConfig(**config_data)
