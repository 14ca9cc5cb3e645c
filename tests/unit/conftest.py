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

"""Fixtures for unit tests."""

import pytest

from magen.framework.checkpointer import MemoryCheckpointer
from magen.workflows.orchestrator import OrchestratorContext


@pytest.fixture
def checkpointer():
    """Fresh in-memory checkpointer."""
    return MemoryCheckpointer()


@pytest.fixture
def orchestrator_context():
    """Memory-only orchestrator context."""
    return OrchestratorContext.for_testing()


@pytest.fixture
def project_dir(tmp_path):
    """Empty project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path
