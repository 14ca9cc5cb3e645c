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

"""Shared pytest fixtures and configuration."""

import logging

import pytest


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch):
    """Isolate tests from environment variables and .env files.

    Settings read ``MAGEN_*``, ``PROJECT_PATH`` and ``CONNECTED_APP_*`` from the
    environment; a developer's shell must not change where tests write state
    or logs.
    """
    import os

    monkeypatch.setenv("MAGEN_SKIP_ENV_FILE", "1")
    for var in list(os.environ):
        if var.startswith("MAGEN_") and var != "MAGEN_SKIP_ENV_FILE":
            monkeypatch.delenv(var, raising=False)
    for var in ("PROJECT_PATH", "CONNECTED_APP_CONSUMER_KEY", "CONNECTED_APP_CALLBACK_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("MAGEN_FILE_LOGGING_ENABLED", "false")


@pytest.fixture(autouse=True)
def reset_magen_log_handlers():
    """Remove handlers installed by configure_logging between tests."""
    yield
    for name in ("magen", "magen.workflow"):
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            if getattr(handler, "_magen_handler", False):
                target.removeHandler(handler)
                handler.close()
