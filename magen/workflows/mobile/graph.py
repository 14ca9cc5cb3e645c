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

"""Mobile native app workflow graph.

Flow:
    START -> validateEnvironment -> (valid? userInputExtraction : workflowFailure)
    userInputExtraction -> (properties fulfilled? discoverTemplates : getUserInput)
    getUserInput -> userInputExtraction
    discoverTemplates -> generateProject
    generateProject -> (fatal errors? workflowFailure : validateBuild)
    validateBuild -> (built? deployApp : retries left? buildRecovery : workflowFailure)
    buildRecovery -> (fatal errors? workflowFailure : validateBuild)
    deployApp -> (fatal errors? workflowFailure : finish)
    finish -> END
    workflowFailure -> END
"""

from __future__ import annotations

from typing import Any, Optional

from magen.config.settings import Settings
from magen.framework.graph import START, StateGraph
from magen.framework.nodes.user_input import (
    CheckPropertiesFulfilledRouter,
    create_get_user_input_node,
    create_user_input_extraction_node,
)
from magen.workflows.mobile import nodes
from magen.workflows.mobile.state import MOBILE_STATE_SCHEMA, MOBILE_USER_INPUT_PROPERTIES
from magen.workflows.mobile.tools import (
    MOBILE_GET_INPUT_TOOL_ID,
    MOBILE_INPUT_EXTRACTION_TOOL_ID,
    MOBILE_ORCHESTRATOR_TOOL_ID,
)
from magen.workflows.orchestrator import (
    OrchestratorContext,
    WorkflowOrchestrator,
    create_completion_message,
)

MOBILE_WORKFLOW_NAME = "mobile native app"
MOBILE_THREAD_ID_PREFIX = "mobile"


def build_mobile_graph(
    settings: Optional[Settings] = None,
    *,
    project_generator: Optional[nodes.ToolExecutor] = None,
    build_executor: Optional[nodes.ToolExecutor] = None,
    recovery_executor: Optional[nodes.ToolExecutor] = None,
    deployment_executor: Optional[nodes.ToolExecutor] = None,
) -> StateGraph:
    """Build the (uncompiled) mobile native app graph.

    Args:
        settings: Settings holding the Connected App credentials
        project_generator: Runs project generation in-process
        build_executor: Runs the build in-process
        recovery_executor: Runs build recovery in-process
        deployment_executor: Runs deployment in-process

    Any executor left out is requested from the caller as a tool invocation.
    """
    extraction = create_user_input_extraction_node(
        MOBILE_USER_INPUT_PROPERTIES, MOBILE_INPUT_EXTRACTION_TOOL_ID
    )
    get_input = create_get_user_input_node(MOBILE_USER_INPUT_PROPERTIES, MOBILE_GET_INPUT_TOOL_ID)

    graph = StateGraph(MOBILE_STATE_SCHEMA)
    for node in (
        nodes.EnvironmentValidationNode(settings),
        extraction,
        get_input,
        nodes.TemplateDiscoveryNode(),
        nodes.ProjectGenerationNode(project_generator),
        nodes.BuildValidationNode(build_executor),
        nodes.BuildRecoveryNode(recovery_executor),
        nodes.DeploymentNode(deployment_executor),
        nodes.CompletionNode(),
        nodes.FailureNode(),
    ):
        graph.add_node(node.name, node)

    graph.add_edge(START, nodes.ENVIRONMENT_VALIDATION)
    graph.add_conditional_edge(
        nodes.ENVIRONMENT_VALIDATION,
        nodes.CheckEnvironmentValidatedRouter(extraction.name, nodes.FAILURE),
    )

    # User input collection
    graph.add_conditional_edge(
        extraction.name,
        CheckPropertiesFulfilledRouter(
            nodes.TEMPLATE_DISCOVERY, get_input.name, MOBILE_USER_INPUT_PROPERTIES
        ),
    )
    graph.add_edge(get_input.name, extraction.name)

    # Plan
    graph.add_edge(nodes.TEMPLATE_DISCOVERY, nodes.PROJECT_GENERATION)
    graph.add_conditional_edge(
        nodes.PROJECT_GENERATION,
        nodes.CheckFatalErrorsRouter(nodes.BUILD_VALIDATION, nodes.FAILURE),
    )

    # Build with recovery loop
    graph.add_conditional_edge(
        nodes.BUILD_VALIDATION,
        nodes.CheckBuildSuccessfulRouter(nodes.DEPLOYMENT, nodes.BUILD_RECOVERY, nodes.FAILURE),
    )
    graph.add_conditional_edge(
        nodes.BUILD_RECOVERY,
        nodes.CheckFatalErrorsRouter(nodes.BUILD_VALIDATION, nodes.FAILURE),
    )

    # Run
    graph.add_conditional_edge(
        nodes.DEPLOYMENT,
        nodes.CheckFatalErrorsRouter(nodes.COMPLETION, nodes.FAILURE),
    )
    graph.set_finish_point(nodes.COMPLETION)
    graph.set_finish_point(nodes.FAILURE)

    return graph


def mobile_completion_prompt(state: dict[str, Any]) -> str:
    """Terminal message: where the app lives, or why the workflow failed."""
    message = create_completion_message(MOBILE_WORKFLOW_NAME)
    errors = state.get("workflowFatalErrorMessages") or []
    if errors:
        details = "\n".join(f"- {error}" for error in errors)
        return message + f"\n\nThe workflow ended because of the following errors:\n{details}"
    if state.get("projectPath"):
        message += f"\n\nThe app project is at {state['projectPath']}"
        if state.get("deploymentStatus") == "deployed":
            message += " and has been deployed"
            if state.get("targetDevice"):
                message += f" to {state['targetDevice']}"
        message += "."
    return message


def create_mobile_orchestrator(
    context: Optional[OrchestratorContext] = None,
    graph: Optional[StateGraph] = None,
    **executors: Optional[nodes.ToolExecutor],
) -> WorkflowOrchestrator:
    """Create the orchestrator that drives the mobile native app workflow.

    Args:
        context: Per-process orchestrator context (a default one is created if omitted)
        graph: Graph override, mainly for tests
        **executors: In-process executors passed to ``build_mobile_graph``

    Returns:
        WorkflowOrchestrator bound to the mobile graph
    """
    context = context or OrchestratorContext()
    settings = context.settings

    def initial_state(user_input: Any) -> dict[str, Any]:
        return {
            "userInput": user_input,
            "maxBuildRetries": settings.max_build_retries,
            "buildType": "debug",
        }

    return WorkflowOrchestrator(
        graph or build_mobile_graph(settings, **executors),
        context,
        tool_id=MOBILE_ORCHESTRATOR_TOOL_ID,
        thread_id_prefix=MOBILE_THREAD_ID_PREFIX,
        workflow_name=MOBILE_WORKFLOW_NAME,
        initial_state_factory=initial_state,
        completion_prompt=mobile_completion_prompt,
    )


__all__ = [
    "MOBILE_THREAD_ID_PREFIX",
    "MOBILE_WORKFLOW_NAME",
    "build_mobile_graph",
    "create_mobile_orchestrator",
    "mobile_completion_prompt",
]
