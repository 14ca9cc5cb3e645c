# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Configuration management for magen workflows."""

import os
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# Well-known directory
# =============================================================================
# Workflow state lives in {project_path}/.magen/ when PROJECT_PATH is set,
# otherwise in ~/.magen/.
# =============================================================================

WELL_KNOWN_DIR_NAME = ".magen"
WORKFLOW_STATE_STORE_FILENAME = "workflow-state.json"
WORKFLOW_LOGS_FILENAME = "workflow_logs.json"


class Settings(BaseSettings):
    """Main application settings.

    Every field can be overridden with a ``MAGEN_``-prefixed environment
    variable. ``project_path`` also honours the bare ``PROJECT_PATH`` variable.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAGEN_",
        env_file=".env" if not os.getenv("MAGEN_SKIP_ENV_FILE") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Storage
    project_path: Optional[Path] = Field(
        None,
        validation_alias=AliasChoices("MAGEN_PROJECT_PATH", "PROJECT_PATH", "project_path"),
        description="Root of the project that owns the well-known directory",
    )
    well_known_dir_name: str = WELL_KNOWN_DIR_NAME
    workflow_state_filename: str = WORKFLOW_STATE_STORE_FILENAME
    workflow_logs_filename: str = WORKFLOW_LOGS_FILENAME
    use_memory_checkpointer: bool = False  # For tests: nothing is written to disk
    max_checkpoints_per_thread: Optional[int] = Field(50, gt=0)

    # Engine
    recursion_limit: int = Field(100, gt=0)

    # Mobile app workflow
    connected_app_consumer_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "MAGEN_CONNECTED_APP_CONSUMER_KEY",
            "CONNECTED_APP_CONSUMER_KEY",
            "connected_app_consumer_key",
        ),
        description="Connected App consumer key baked into generated mobile apps",
    )
    connected_app_callback_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "MAGEN_CONNECTED_APP_CALLBACK_URL",
            "CONNECTED_APP_CALLBACK_URL",
            "connected_app_callback_url",
        ),
        description="Connected App OAuth callback URL",
    )
    max_build_retries: int = Field(3, gt=0)

    # Logging
    log_level: str = "INFO"
    file_logging_enabled: bool = True

    @field_validator("well_known_dir_name", "workflow_state_filename", "workflow_logs_filename")
    @classmethod
    def validate_plain_name(cls, v: str) -> str:
        """Reject names that would escape the well-known directory.

        Raises:
            ValueError: If the name is empty, absolute or contains a separator
        """
        if not v or v in (".", ".."):
            raise ValueError(f"Invalid name: {v!r}")
        if "/" in v or "\\" in v or os.path.isabs(v):
            raise ValueError(f"Name must not contain path separators: {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class WellKnownPaths:
    """Paths inside the well-known directory.

    Directory structure:
        {project_path or ~}/.magen/
        ├── workflow-state.json  # Exported checkpoint store
        └── workflow_logs.json   # Structured workflow log lines
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    @property
    def root(self) -> Path:
        """Directory the well-known directory is created in."""
        if self._settings.project_path:
            return Path(self._settings.project_path).expanduser().resolve()
        return Path.home()

    @property
    def well_known_dir(self) -> Path:
        return self.root / self._settings.well_known_dir_name

    @property
    def workflow_state_file(self) -> Path:
        return self.well_known_dir / self._settings.workflow_state_filename

    @property
    def workflow_logs_file(self) -> Path:
        return self.well_known_dir / self._settings.workflow_logs_filename

    def ensure_well_known_dir(self) -> Path:
        """Create the well-known directory if needed. Safe to call repeatedly."""
        self.well_known_dir.mkdir(parents=True, exist_ok=True)
        return self.well_known_dir


def load_settings() -> Settings:
    """Load application settings.

    Returns:
        Settings instance
    """
    return Settings()


__all__ = [
    "Settings",
    "WellKnownPaths",
    "load_settings",
    "WELL_KNOWN_DIR_NAME",
    "WORKFLOW_STATE_STORE_FILENAME",
    "WORKFLOW_LOGS_FILENAME",
]
