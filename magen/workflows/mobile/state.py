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

"""State of the mobile native app workflow."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, TypedDict

from magen.framework.nodes.user_input import PropertyMetadata
from magen.framework.state import APPEND, StateSchema

Platform = Literal["iOS", "Android"]
BuildType = Literal["debug", "release"]

# Properties collected from the user before a project can be generated
MOBILE_USER_INPUT_PROPERTIES = {
    "platform": PropertyMetadata(
        description="Target mobile platform for the mobile app (iOS or Android)",
        friendly_name="mobile platform",
        value_type=Platform,
    ),
    "projectName": PropertyMetadata(
        description="The name of the mobile app project",
        friendly_name="project name",
    ),
    "packageName": PropertyMetadata(
        description="The package identifier of the mobile app, for example com.company.appname",
        friendly_name="package identifier",
    ),
    "organization": PropertyMetadata(
        description="The organization or company name",
        friendly_name="organization or company name",
    ),
    "loginHost": PropertyMetadata(
        description="The Salesforce login host for the mobile app",
        friendly_name="Salesforce login host",
    ),
}


class MobileState(TypedDict, total=False):
    """Mobile native app workflow state."""

    # Core workflow data
    userInput: Any
    platform: Platform
    projectName: str
    packageName: str
    organization: str
    loginHost: str

    # Environment
    validEnvironment: bool
    connectedAppClientId: str
    connectedAppCallbackUri: str

    # Project
    templateCandidates: list[str]
    selectedTemplate: str
    projectPath: str

    # Build, recovery and deployment
    buildType: BuildType
    targetDevice: str
    buildSuccessful: bool
    buildAttemptCount: int
    maxBuildRetries: int
    buildErrorMessages: list[str]
    buildOutputFilePath: str
    recoveryReadyForRetry: bool
    buildFixesApplied: Annotated[list[str], APPEND]
    deploymentStatus: str
    workflowComplete: bool

    # Expected failures, routed to the failure node
    workflowFatalErrorMessages: Annotated[list[str], APPEND]


MOBILE_STATE_SCHEMA = StateSchema.from_typed_dict(MobileState)


def get_str(state: MobileState, key: str) -> Optional[str]:
    value = state.get(key)
    return value if isinstance(value, str) and value else None


__all__ = [
    "BuildType",
    "MOBILE_STATE_SCHEMA",
    "MOBILE_USER_INPUT_PROPERTIES",
    "MobileState",
    "Platform",
    "get_str",
]
