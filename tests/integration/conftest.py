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

"""Fixtures for file-backed workflow tests."""

import pytest

from magen.config.settings import Settings
from magen.workflows.orchestrator import OrchestratorContext


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def file_settings(project_dir):
    """Settings that keep the checkpoint store under the project directory."""
    return Settings(project_path=project_dir, file_logging_enabled=False)


@pytest.fixture
def new_context(file_settings):
    """Build a fresh context per call, as a restarted process would."""

    def factory():
        return OrchestratorContext(settings=file_settings)

    return factory
