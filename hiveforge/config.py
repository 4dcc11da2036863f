"""Runtime settings — env-driven.

Centralized settings using pydantic-settings for environment variable
support. Reads from a .env file and HIVEFORGE_* environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HiveforgeSettings(BaseSettings):
    """Settings with environment variable overrides.

    All settings can be overridden via HIVEFORGE_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export HIVEFORGE_LOG_LEVEL=DEBUG
        export HIVEFORGE_MAX_WORKERS=4
        export HIVEFORGE_DEFAULT_PACKAGE_SET=/srv/pkgs/stable.json
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HIVEFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging; `debug` forces DEBUG regardless of `log_level`
    log_level: str = "INFO"
    debug: bool = False

    # Names the selection bundle: "<tool_name>-<hive name>"
    tool_name: str = "hiveforge"

    # Storage
    artifact_store_path: Path = Path(".hiveforge/artifacts")

    # Resolution
    max_workers: int = Field(default_factory=lambda: os.cpu_count() or 1, ge=1)
    max_redirect_depth: int = Field(default=10, ge=1)

    # Used when the hive meta does not set `nixpkgs`
    default_package_set: Path | None = None


# Module-level singleton; import as `from hiveforge.config import settings`
settings = HiveforgeSettings()
