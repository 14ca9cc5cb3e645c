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

"""Nodes and routers of the mobile native app workflow.

Project generation, build, build recovery and deployment each take an
optional executor. With one, the tool runs in-process and the node never
suspends; without one, the caller is asked to run the tool and the node
picks up its result on the replay pass.

Expected failures (missing credentials, a failed generation, a build that
stays broken, a failed deployment) are appended to
``workflowFatalErrorMessages`` and routed to the failure node. Anything
else a node raises propagates to the orchestrator.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel

from magen.config.settings import Settings, load_settings
from magen.core.errors import NodeExecutionError
from magen.framework.interrupts import NodeContext, Suspended
from magen.framework.nodes.base import BaseNode, ToolInvocationNode, ToolMetadata
from magen.workflows.mobile.state import MobileState, get_str
from magen.workflows.mobile.tools import (
    BUILD_RECOVERY_TOOL,
    BUILD_TOOL,
    DEPLOYMENT_TOOL,
    PROJECT_GENERATION_TOOL,
    TEMPLATE_DISCOVERY_TOOL,
    BuildInput,
    BuildRecoveryInput,
    DeploymentInput,
    ProjectGenerationInput,
    TemplateDiscoveryInput,
)

logger = logging.getLogger(__name__)

# Node names
ENVIRONMENT_VALIDATION = "validateEnvironment"
TEMPLATE_DISCOVERY = "discoverTemplates"
PROJECT_GENERATION = "generateProject"
BUILD_VALIDATION = "validateBuild"
BUILD_RECOVERY = "buildRecovery"
DEPLOYMENT = "deployApp"
COMPLETION = "finish"
FAILURE = "workflowFailure"

DEFAULT_MAX_BUILD_RETRIES = 3

# Runs a tool in-process: receives the tool input model, returns the raw
# result (a mapping or the result model itself)
ToolExecutor = Callable[[BaseModel], Any]


def _require(state: MobileState, key: str, node_id: str) -> str:
    value = get_str(state, key)
    if value is None:
        raise NodeExecutionError(
            f"{key} is required but not present in mobile workflow state", node_id=node_id
        )
    return value


def max_build_retries(state: MobileState) -> int:
    return state.get("maxBuildRetries") or DEFAULT_MAX_BUILD_RETRIES


class ExecutableToolNode(ToolInvocationNode):
    """Tool node that can run its tool in-process instead of through the caller."""

    def __init__(self, executor: Optional[ToolExecutor] = None, name: Optional[str] = None):
        super().__init__(name)
        self.executor = executor

    def run_tool(
        self, context: NodeContext, input_values: BaseModel
    ) -> Union[BaseModel, Suspended]:
        if self.executor is None:
            return self.invoke_tool(context, input_values)

        tool: ToolMetadata = self.tool
        self.logger.info(f"Running tool '{tool.tool_id}' in process")
        return self.validate_result(tool, self.executor(input_values))


# =============================================================================
# Plan
# =============================================================================


class EnvironmentValidationNode(BaseNode):
    """Checks the Connected App credentials generated apps are configured with."""

    name = ENVIRONMENT_VALIDATION

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__()
        self.settings = settings or load_settings()

    def execute(self, state: MobileState, context: NodeContext) -> dict[str, Any]:
        client_id = self.settings.connected_app_consumer_key
        callback_uri = self.settings.connected_app_callback_url

        messages = []
        if not client_id:
            messages.append(
                "You must set the CONNECTED_APP_CONSUMER_KEY environment variable, "
                "with your Salesforce Connected App's Consumer Key associated with the mobile app."
            )
        if not callback_uri:
            messages.append(
                "You must set the CONNECTED_APP_CALLBACK_URL environment variable, "
                "with your Salesforce Connected App's Callback URL associated with the mobile app."
            )

        if messages:
            self.logger.error(f"Environment validation failed: {len(messages)} problem(s)")
            return {"validEnvironment": False, "workflowFatalErrorMessages": messages}

        return {
            "validEnvironment": True,
            "connectedAppClientId": client_id,
            "connectedAppCallbackUri": callback_uri,
        }


class CheckEnvironmentValidatedRouter:
    def __init__(self, environment_validated_node: str, invalid_environment_node: str):
        self.environment_validated_node = environment_validated_node
        self.invalid_environment_node = invalid_environment_node

    def __call__(self, state: MobileState) -> str:
        if state.get("validEnvironment"):
            return self.environment_validated_node
        logger.info(f"Environment is not valid, routing to {self.invalid_environment_node}")
        return self.invalid_environment_node


class TemplateDiscoveryNode(ToolInvocationNode):
    name = TEMPLATE_DISCOVERY
    tool = TEMPLATE_DISCOVERY_TOOL

    def execute(self, state: MobileState, context: NodeContext) -> Any:
        result = self.invoke_tool(
            context, TemplateDiscoveryInput(platform=_require(state, "platform", self.name))
        )
        if isinstance(result, Suspended):
            return result

        if result.selectedTemplate not in result.templateCandidates:
            self.logger.warning(
                f"Selected template '{result.selectedTemplate}' is not among the candidates"
            )
        return {
            "templateCandidates": result.templateCandidates,
            "selectedTemplate": result.selectedTemplate,
        }


class ProjectGenerationNode(ExecutableToolNode):
    name = PROJECT_GENERATION
    tool = PROJECT_GENERATION_TOOL

    def execute(self, state: MobileState, context: NodeContext) -> Any:
        result = self.run_tool(
            context,
            ProjectGenerationInput(
                selectedTemplate=_require(state, "selectedTemplate", self.name),
                projectName=_require(state, "projectName", self.name),
                platform=_require(state, "platform", self.name),
                packageName=_require(state, "packageName", self.name),
                organization=_require(state, "organization", self.name),
                connectedAppClientId=_require(state, "connectedAppClientId", self.name),
                connectedAppCallbackUri=_require(state, "connectedAppCallbackUri", self.name),
                loginHost=get_str(state, "loginHost"),
            ),
        )
        if isinstance(result, Suspended):
            return result

        if not result.success or not result.projectPath:
            reason = result.error or result.message or "no project path was reported"
            return {"workflowFatalErrorMessages": [f"Project generation failed: {reason}"]}

        self.logger.info(f"Generated project at: {result.projectPath}")
        return {"projectPath": result.projectPath}


class CheckFatalErrorsRouter:
    """Routes to the failure node once any fatal error has been recorded."""

    def __init__(self, next_node: str, failure_node: str):
        self.next_node = next_node
        self.failure_node = failure_node

    def __call__(self, state: MobileState) -> str:
        if state.get("workflowFatalErrorMessages"):
            return self.failure_node
        return self.next_node


# =============================================================================
# Run
# =============================================================================


class BuildValidationNode(ExecutableToolNode):
    """Builds the project and counts the attempt.

    A failure on the last allowed attempt is recorded as fatal.
    """

    name = BUILD_VALIDATION
    tool = BUILD_TOOL

    def execute(self, state: MobileState, context: NodeContext) -> Any:
        attempt = (state.get("buildAttemptCount") or 0) + 1
        result = self.run_tool(
            context,
            BuildInput(
                platform=_require(state, "platform", self.name),
                projectPath=_require(state, "projectPath", self.name),
                projectName=_require(state, "projectName", self.name),
            ),
        )
        if isinstance(result, Suspended):
            return result

        if result.success:
            self.logger.info(f"Build succeeded on attempt {attempt}")
            return {
                "buildSuccessful": True,
                "buildAttemptCount": attempt,
                "buildErrorMessages": [],
                "buildOutputFilePath": result.buildOutputFilePath or "",
            }

        errors = [result.error or result.message or "Build failed without an error message"]
        update: dict[str, Any] = {
            "buildSuccessful": False,
            "buildAttemptCount": attempt,
            "buildErrorMessages": errors,
            "buildOutputFilePath": result.buildOutputFilePath or "",
        }
        limit = max_build_retries(state)
        self.logger.warning(f"Build attempt {attempt} of {limit} failed: {errors[0]}")
        if attempt >= limit:
            update["workflowFatalErrorMessages"] = [
                f"Build failed after {attempt} attempt(s): {errors[0]}"
            ]
        return update


class CheckBuildSuccessfulRouter:
    def __init__(self, build_successful_node: str, recovery_node: str, failure_node: str):
        self.build_successful_node = build_successful_node
        self.recovery_node = recovery_node
        self.failure_node = failure_node

    def __call__(self, state: MobileState) -> str:
        if state.get("buildSuccessful"):
            return self.build_successful_node
        if (state.get("buildAttemptCount") or 0) >= max_build_retries(state):
            logger.info(f"Build retries exhausted, routing to {self.failure_node}")
            return self.failure_node
        return self.recovery_node


class BuildRecoveryNode(ExecutableToolNode):
    """Asks for the build errors to be fixed before the next attempt."""

    name = BUILD_RECOVERY
    tool = BUILD_RECOVERY_TOOL

    def execute(self, state: MobileState, context: NodeContext) -> Any:
        result = self.run_tool(
            context,
            BuildRecoveryInput(
                platform=_require(state, "platform", self.name),
                projectPath=_require(state, "projectPath", self.name),
                buildErrorMessages=state.get("buildErrorMessages") or [],
                buildOutputFilePath=get_str(state, "buildOutputFilePath"),
                attemptNumber=state.get("buildAttemptCount") or 0,
            ),
        )
        if isinstance(result, Suspended):
            return result

        update: dict[str, Any] = {
            "recoveryReadyForRetry": result.readyForRetry,
            "buildFixesApplied": result.fixesApplied,
        }
        if not result.readyForRetry:
            update["workflowFatalErrorMessages"] = [
                "Build recovery could not fix the build errors: "
                + "; ".join(state.get("buildErrorMessages") or ["unknown error"])
            ]
        return update


class DeploymentNode(ExecutableToolNode):
    name = DEPLOYMENT
    tool = DEPLOYMENT_TOOL

    def execute(self, state: MobileState, context: NodeContext) -> Any:
        result = self.run_tool(
            context,
            DeploymentInput(
                platform=_require(state, "platform", self.name),
                projectPath=_require(state, "projectPath", self.name),
                buildType=state.get("buildType") or "debug",
                targetDevice=get_str(state, "targetDevice"),
            ),
        )
        if isinstance(result, Suspended):
            return result

        if not result.success:
            return {
                "deploymentStatus": "failed",
                "workflowFatalErrorMessages": [
                    f"Deployment failed: {result.message or 'no details reported'}"
                ],
            }

        update: dict[str, Any] = {"deploymentStatus": "deployed"}
        if result.targetDevice:
            update["targetDevice"] = result.targetDevice
        return update


class CompletionNode(BaseNode):
    name = COMPLETION

    def execute(self, state: MobileState, context: NodeContext) -> dict[str, Any]:
        self.logger.info(f"Mobile app ready at: {state.get('projectPath')}")
        return {"workflowComplete": True}


class FailureNode(BaseNode):
    name = FAILURE

    def execute(self, state: MobileState, context: NodeContext) -> dict[str, Any]:
        messages = state.get("workflowFatalErrorMessages") or []
        self.logger.error(f"Mobile workflow failed: {'; '.join(messages)}")
        return {"workflowComplete": False}


__all__ = [
    "BUILD_RECOVERY",
    "BUILD_VALIDATION",
    "BuildRecoveryNode",
    "BuildValidationNode",
    "COMPLETION",
    "CheckBuildSuccessfulRouter",
    "CheckEnvironmentValidatedRouter",
    "CheckFatalErrorsRouter",
    "CompletionNode",
    "DEFAULT_MAX_BUILD_RETRIES",
    "DEPLOYMENT",
    "DeploymentNode",
    "ENVIRONMENT_VALIDATION",
    "EnvironmentValidationNode",
    "ExecutableToolNode",
    "FAILURE",
    "FailureNode",
    "PROJECT_GENERATION",
    "ProjectGenerationNode",
    "TEMPLATE_DISCOVERY",
    "TemplateDiscoveryNode",
    "ToolExecutor",
    "max_build_retries",
]
