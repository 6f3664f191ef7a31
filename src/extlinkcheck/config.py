"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments   (CLI flag overrides, tests)
  2. Environment variables   (EXTLINKCHECK__CHECKER__TIMEOUT_SECONDS=5)
  3. extlinkcheck.yaml       (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CACHE_PATH = str(Path("scripts") / "validation" / "cache_data" / "external-link-cache.json")

DEFAULT_USER_AGENT = "ValidateBot/1.0"
DEFAULT_BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)

# Hosts that tolerate high request volume; matched exactly or by domain suffix.
DEFAULT_EXEMPT_HOSTS: list[str] = [
    "github.com",
    "githubusercontent.com",
    "wikipedia.org",
    "developer.mozilla.org",
    "web.dev",
    "w3.org",
    "npmjs.com",
    "youtube.com",
]

DEFAULT_INTERNAL_DOMAINS: list[str] = ["sujeet.pro", "www.sujeet.pro", "localhost", "127.0.0.1"]


def _find_config_file() -> str | None:
    """Return the path of the first extlinkcheck.yaml found, or None."""
    candidates = [
        Path("extlinkcheck.yaml"),
        Path(platformdirs.user_config_dir("extlinkcheck")) / "extlinkcheck.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheSettings(BaseModel):
    path: str = DEFAULT_CACHE_PATH
    max_age_days: float = Field(default=30, ge=0)


class CheckerSettings(BaseModel):
    timeout_seconds: float = Field(default=10.0, gt=0)
    concurrency: int = Field(default=10, ge=1)
    playwright_concurrency: int = Field(default=2, ge=1)
    expected_status: int = 200
    user_agent: str = DEFAULT_USER_AGENT
    browser_user_agent: str = DEFAULT_BROWSER_USER_AGENT


class ThrottleSettings(BaseModel):
    requests_per_second: float = Field(default=2.0, gt=0)
    exempt_hosts: list[str] = Field(default_factory=lambda: list(DEFAULT_EXEMPT_HOSTS))

    @property
    def interval_seconds(self) -> float:
        """Minimum spacing between two requests to the same host."""
        return round(1000 / self.requests_per_second) / 1000


class SiteSettings(BaseModel):
    # Never cached as external links; reachability of the site itself is a separate check.
    internal_domains: list[str] = Field(default_factory=lambda: list(DEFAULT_INTERNAL_DOMAINS))
    content_dir: str = "content"
    logs_dir: str = "logs"


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: EXTLINKCHECK__CHECKER__CONCURRENCY=4
        env_prefix="EXTLINKCHECK__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheSettings = CacheSettings()
    checker: CheckerSettings = CheckerSettings()
    throttle: ThrottleSettings = ThrottleSettings()
    site: SiteSettings = SiteSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
