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

"""Tools the mobile native app workflow asks the caller (or an executor) to run."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from magen.framework.nodes.base import ToolMetadata
from magen.workflows.mobile.state import BuildType, Platform

MOBILE_ORCHESTRATOR_TOOL_ID = "sfmobile-native-project-manager"
MOBILE_GET_INPUT_TOOL_ID = "sfmobile-native-get-input"
MOBILE_INPUT_EXTRACTION_TOOL_ID = "sfmobile-native-input-extraction"


# =============================================================================
# Plan
# =============================================================================


class TemplateDiscoveryInput(BaseModel):
    platform: Platform = Field(description="Target mobile platform")


class TemplateDiscoveryResult(BaseModel):
    templateCandidates: list[str] = Field(
        min_length=1, description="Template names worth considering for the app"
    )
    selectedTemplate: str = Field(description="The template the project will be generated from")


class ProjectGenerationInput(BaseModel):
    selectedTemplate: str = Field(description="The template selected during discovery")
    projectName: str = Field(description="Name for the mobile app project")
    platform: Platform = Field(description="Target mobile platform")
    packageName: str = Field(description="Package name for the mobile app")
    organization: str = Field(description="Organization name for the mobile app project")
    connectedAppClientId: str = Field(description="Connected App Client ID for OAuth")
    connectedAppCallbackUri: str = Field(description="Connected App Callback URI for OAuth")
    loginHost: Optional[str] = Field(default=None, description="Salesforce login host URL")


class ProjectGenerationResult(BaseModel):
    success: bool = Field(description="Whether the project generation was successful")
    message: str = Field(default="", description="Status message about the project generation")
    projectPath: Optional[str] = Field(default=None, description="Path to the generated project")
    error: Optional[str] = Field(default=None, description="Error message if generation failed")


# =============================================================================
# Run
# =============================================================================


class BuildInput(BaseModel):
    platform: Platform = Field(description="Target mobile platform")
    projectPath: str = Field(description="Path to the generated project")
    projectName: str = Field(description="Name of the mobile app project")


class BuildResult(BaseModel):
    success: bool = Field(description="Whether the build was successful")
    message: str = Field(default="", description="Status message about the build")
    output: Optional[str] = Field(default=None, description="Build output")
    error: Optional[str] = Field(default=None, description="Error message if build failed")
    buildOutputFilePath: Optional[str] = Field(
        default=None, description="Path to build output file if build failed"
    )


class BuildRecoveryInput(BaseModel):
    platform: Platform = Field(description="Target mobile platform")
    projectPath: str = Field(description="Path to the generated project")
    buildErrorMessages: list[str] = Field(description="Errors reported by the failed build")
    buildOutputFilePath: Optional[str] = Field(
        default=None, description="Path to the full build output"
    )
    attemptNumber: int = Field(description="Number of build attempts made so far")


class BuildRecoveryResult(BaseModel):
    fixesApplied: list[str] = Field(
        default_factory=list, description="Changes made to the project to fix the build"
    )
    readyForRetry: bool = Field(description="Whether the build should be attempted again")


class DeploymentInput(BaseModel):
    platform: Platform = Field(description="Target mobile platform")
    projectPath: str = Field(description="Path to the mobile project directory")
    buildType: BuildType = Field(default="debug", description="Build type for deployment")
    targetDevice: Optional[str] = Field(default=None, description="Target device identifier")


class DeploymentResult(BaseModel):
    success: bool = Field(description="Whether the app was installed and launched")
    message: str = Field(default="", description="Status message about the deployment")
    targetDevice: Optional[str] = Field(default=None, description="Device the app runs on")


# =============================================================================
# Tool Metadata
# =============================================================================

TEMPLATE_DISCOVERY_TOOL = ToolMetadata(
    tool_id="sfmobile-native-template-discovery",
    title="Salesforce Mobile Native Template Discovery",
    description="Guides template discovery and selection for Salesforce mobile app development",
    input_model=TemplateDiscoveryInput,
    result_model=TemplateDiscoveryResult,
)

PROJECT_GENERATION_TOOL = ToolMetadata(
    tool_id="sfmobile-native-project-generation",
    title="Salesforce Mobile Native Project Generation",
    description="Generates a mobile app project from the selected template",
    input_model=ProjectGenerationInput,
    result_model=ProjectGenerationResult,
)

BUILD_TOOL = ToolMetadata(
    tool_id="sfmobile-native-build",
    title="Salesforce Mobile App Build",
    description="Builds the generated iOS or Android project",
    input_model=BuildInput,
    result_model=BuildResult,
)

BUILD_RECOVERY_TOOL = ToolMetadata(
    tool_id="sfmobile-native-build-recovery",
    title="Salesforce Mobile App Build Recovery",
    description="Analyzes build failures and fixes the project so the build can be retried",
    input_model=BuildRecoveryInput,
    result_model=BuildRecoveryResult,
)

DEPLOYMENT_TOOL = ToolMetadata(
    tool_id="sfmobile-native-deployment",
    title="Salesforce Mobile Native Deployment",
    description="Deploys the built app to a device or simulator",
    input_model=DeploymentInput,
    result_model=DeploymentResult,
)


__all__ = [
    "BUILD_RECOVERY_TOOL",
    "BUILD_TOOL",
    "BuildInput",
    "BuildRecoveryInput",
    "BuildRecoveryResult",
    "BuildResult",
    "DEPLOYMENT_TOOL",
    "DeploymentInput",
    "DeploymentResult",
    "MOBILE_GET_INPUT_TOOL_ID",
    "MOBILE_INPUT_EXTRACTION_TOOL_ID",
    "MOBILE_ORCHESTRATOR_TOOL_ID",
    "PROJECT_GENERATION_TOOL",
    "ProjectGenerationInput",
    "ProjectGenerationResult",
    "TEMPLATE_DISCOVERY_TOOL",
    "TemplateDiscoveryInput",
    "TemplateDiscoveryResult",
]
