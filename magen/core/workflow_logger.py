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

"""Workflow logger setup.

Console output goes to stderr (stdout belongs to the tool transport).
Workflow operations can additionally be written as JSON lines to
``<well-known dir>/workflow_logs.json``.

Usage:
    configure_logging(settings)
    logger = get_workflow_logger("PRDGenerationOrchestrator")
    logger.info("Processing request")  # [magen.workflow.PRDGenerationOrchestrator] INFO ...
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from magen.config.settings import Settings, WellKnownPaths

logger = logging.getLogger(__name__)

ROOT_LOGGER_NAME = "magen"
WORKFLOW_LOGGER_NAME = "magen.workflow"

# Third-party loggers that should stay quiet at INFO
NOISY_LOGGERS = [
    "asyncio",
    "urllib3",
    "httpx",
    "httpcore",
]

_HANDLER_MARKER = "_magen_handler"

# Attributes every LogRecord has; anything else came in through ``extra=``
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class JsonLinesFormatter(logging.Formatter):
    """Formats each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["data"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging_levels(log_level: str = "INFO", file_logging_enabled: bool = True) -> None:
    """Configure logging levels, silencing noisy third-party loggers.

    Args:
        log_level: Desired log level for magen loggers.
        file_logging_enabled: If True, keeps the magen logger at INFO minimum
            so the workflow log file captures INFO+ messages.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    if file_logging_enabled:
        effective_level = min(level, logging.INFO)
    else:
        effective_level = level
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(effective_level)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def _remove_installed_handlers(target: logging.Logger) -> None:
    for handler in list(target.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            target.removeHandler(handler)
            handler.close()


def configure_logging(settings: Settings, log_file: Optional[Path] = None) -> Optional[Path]:
    """Configure magen logging from settings.

    Safe to call more than once: handlers installed by a previous call are
    replaced, never duplicated.

    Args:
        settings: Application settings
        log_file: Override for the JSON workflow log path

    Returns:
        Path of the workflow log file, or None when file logging is disabled
    """
    configure_logging_levels(settings.log_level, settings.file_logging_enabled)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    workflow = logging.getLogger(WORKFLOW_LOGGER_NAME)
    _remove_installed_handlers(root)
    _remove_installed_handlers(workflow)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    console_handler.setFormatter(
        logging.Formatter(
            "[%(name)s] [%(asctime)s] [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    setattr(console_handler, _HANDLER_MARKER, True)
    root.addHandler(console_handler)

    if not settings.file_logging_enabled:
        return None

    if log_file is None:
        paths = WellKnownPaths(settings)
        paths.ensure_well_known_dir()
        log_file = paths.workflow_logs_file
    else:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(JsonLinesFormatter())
    setattr(file_handler, _HANDLER_MARKER, True)
    workflow.addHandler(file_handler)

    logger.debug(f"Workflow logs written to: {log_file}")
    return log_file


def get_workflow_logger(component: str = "") -> logging.Logger:
    """Get a logger whose records also reach the workflow log file.

    Args:
        component: Optional component name (e.g., "PRDGenerationOrchestrator")

    Returns:
        Logger instance under ``magen.workflow``
    """
    if component:
        return logging.getLogger(f"{WORKFLOW_LOGGER_NAME}.{component}")
    return logging.getLogger(WORKFLOW_LOGGER_NAME)


__all__ = [
    "JsonLinesFormatter",
    "configure_logging",
    "configure_logging_levels",
    "get_workflow_logger",
    "NOISY_LOGGERS",
]
