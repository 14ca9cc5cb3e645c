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

"""PRD generation workflow.

Guides the user from a feature request to an approved PRD.md, by way of a
feature brief and iteratively gap-analyzed functional requirements. All
artifacts live under ``<project>/magi-sdd/NNN-<feature-id>/``.
"""

from magen.workflows.prd.graph import (
    PRD_WORKFLOW_NAME,
    build_prd_graph,
    create_prd_orchestrator,
)
from magen.workflows.prd.state import PRD_STATE_SCHEMA, PRD_USER_INPUT_PROPERTIES, PRDState
from magen.workflows.prd.tools import PRD_ORCHESTRATOR_TOOL_ID

__all__ = [
    "PRDState",
    "PRD_ORCHESTRATOR_TOOL_ID",
    "PRD_STATE_SCHEMA",
    "PRD_USER_INPUT_PROPERTIES",
    "PRD_WORKFLOW_NAME",
    "build_prd_graph",
    "create_prd_orchestrator",
]
