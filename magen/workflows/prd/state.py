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

"""State of the PRD generation workflow."""

from __future__ import annotations

from typing import Annotated, Any, Optional, TypedDict

from magen.framework.nodes.user_input import PropertyMetadata
from magen.framework.state import APPEND, StateSchema

# Properties collected from the user before the workflow can start
PRD_USER_INPUT_PROPERTIES = {
    "projectPath": PropertyMetadata(
        description="The path to the root project directory",
        friendly_name="project path",
    ),
    "userUtterance": PropertyMetadata(
        description="The original user request or description of the feature",
        friendly_name="original user request",
    ),
}


class PRDState(TypedDict, total=False):
    """PRD workflow state.

    Review flags are reset with False / "" / [] rather than None, since a
    None value in an update never clears a key.
    """

    # Core workflow data
    userInput: Any
    projectPath: str
    featureId: str
    userUtterance: str

    # Feature brief
    featureBriefContent: str
    isFeatureBriefApproved: bool
    featureBriefUserFeedback: str
    featureBriefModifications: list[dict[str, Any]]

    # Functional requirements
    functionalRequirements: list[dict[str, Any]]
    requirementsSummary: str

    # Gap analysis
    gapAnalysisScore: float
    identifiedGaps: list[dict[str, Any]]
    gapAnalysisCount: int

    # Iteration control; the override only applies to the analysis round it came with
    shouldIterate: bool
    userIterationOverride: bool
    userIterationOverrideRound: int

    # PRD generation and review
    prdContent: str
    prdStatus: dict[str, Any]
    isPrdApproved: bool
    prdModifications: list[dict[str, Any]]
    prdUserFeedback: str
    workflowComplete: bool

    # Expected failures, routed to the failure node
    prdWorkflowFatalErrorMessages: Annotated[list[str], APPEND]


PRD_STATE_SCHEMA = StateSchema.from_typed_dict(PRDState)


def get_str(state: PRDState, key: str) -> Optional[str]:
    value = state.get(key)
    return value if isinstance(value, str) and value else None


__all__ = [
    "PRDState",
    "PRD_STATE_SCHEMA",
    "PRD_USER_INPUT_PROPERTIES",
    "get_str",
]
