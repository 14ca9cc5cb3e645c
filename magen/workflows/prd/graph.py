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

"""PRD generation workflow graph.

Flow:
    START -> userInputExtraction -> (properties fulfilled? magiInitialization : getUserInput)
    getUserInput -> userInputExtraction
    magiInitialization -> (fatal errors? prdFailure : featureBriefGeneration)
    featureBriefGeneration -> featureBriefReview
    featureBriefReview -> (approved? initialRequirementsGeneration : featureBriefUpdate)
    featureBriefUpdate -> featureBriefReview
    initialRequirementsGeneration -> requirementsReview -> gapAnalysis
    gapAnalysis -> requirementsIterationControl
    requirementsIterationControl -> (iterate? gapRequirementsGeneration : prdGeneration)
    gapRequirementsGeneration -> requirementsReview
    prdGeneration -> prdReview -> (approved? prdFinalization : prdGeneration)
    prdFinalization -> END
    prdFailure -> END
"""

from __future__ import annotations

from typing import Any, Optional

from magen.framework.graph import END, START, StateGraph
from magen.framework.nodes.user_input import (
    CheckPropertiesFulfilledRouter,
    create_get_user_input_node,
    create_user_input_extraction_node,
)
from magen.workflows.orchestrator import (
    OrchestratorContext,
    WorkflowOrchestrator,
    create_completion_message,
)
from magen.workflows.prd import nodes
from magen.workflows.prd.state import PRD_STATE_SCHEMA, PRD_USER_INPUT_PROPERTIES
from magen.workflows.prd.tools import (
    PRD_GET_INPUT_TOOL_ID,
    PRD_INPUT_EXTRACTION_TOOL_ID,
    PRD_ORCHESTRATOR_TOOL_ID,
)

PRD_WORKFLOW_NAME = "PRD generation"
PRD_THREAD_ID_PREFIX = "prd"


def build_prd_graph() -> StateGraph:
    """Build the (uncompiled) PRD generation graph."""
    extraction = create_user_input_extraction_node(
        PRD_USER_INPUT_PROPERTIES, PRD_INPUT_EXTRACTION_TOOL_ID
    )
    get_input = create_get_user_input_node(PRD_USER_INPUT_PROPERTIES, PRD_GET_INPUT_TOOL_ID)

    graph = StateGraph(PRD_STATE_SCHEMA)
    for node in (
        extraction,
        get_input,
        nodes.MagiInitializationNode(),
        nodes.FeatureBriefGenerationNode(),
        nodes.FeatureBriefReviewNode(),
        nodes.FeatureBriefUpdateNode(),
        nodes.InitialRequirementsGenerationNode(),
        nodes.RequirementsReviewNode(),
        nodes.GapAnalysisNode(),
        nodes.RequirementsIterationControlNode(),
        nodes.GapRequirementsGenerationNode(),
        nodes.PRDGenerationNode(),
        nodes.PRDReviewNode(),
        nodes.PRDFinalizationNode(),
        nodes.PRDFailureNode(),
    ):
        graph.add_node(node.name, node)

    # User input collection
    graph.add_edge(START, extraction.name)
    graph.add_conditional_edge(
        extraction.name,
        CheckPropertiesFulfilledRouter(
            nodes.MAGI_INITIALIZATION, get_input.name, PRD_USER_INPUT_PROPERTIES
        ),
    )
    graph.add_edge(get_input.name, extraction.name)

    # Initialization
    graph.add_conditional_edge(
        nodes.MAGI_INITIALIZATION,
        nodes.PRDInitializationValidatedRouter(nodes.FEATURE_BRIEF_GENERATION, nodes.PRD_FAILURE),
    )

    # Feature brief review loop
    graph.add_edge(nodes.FEATURE_BRIEF_GENERATION, nodes.FEATURE_BRIEF_REVIEW)
    graph.add_conditional_edge(
        nodes.FEATURE_BRIEF_REVIEW,
        nodes.FeatureBriefApprovalRouter(
            nodes.INITIAL_REQUIREMENTS_GENERATION, nodes.FEATURE_BRIEF_UPDATE
        ),
    )
    graph.add_edge(nodes.FEATURE_BRIEF_UPDATE, nodes.FEATURE_BRIEF_REVIEW)

    # Requirements refinement loop
    graph.add_edge(nodes.INITIAL_REQUIREMENTS_GENERATION, nodes.REQUIREMENTS_REVIEW)
    graph.add_edge(nodes.REQUIREMENTS_REVIEW, nodes.GAP_ANALYSIS)
    graph.add_edge(nodes.GAP_ANALYSIS, nodes.REQUIREMENTS_ITERATION_CONTROL)
    graph.add_conditional_edge(
        nodes.REQUIREMENTS_ITERATION_CONTROL,
        nodes.IterationRouter(nodes.GAP_REQUIREMENTS_GENERATION, nodes.PRD_GENERATION),
    )
    graph.add_edge(nodes.GAP_REQUIREMENTS_GENERATION, nodes.REQUIREMENTS_REVIEW)

    # PRD review loop
    graph.add_edge(nodes.PRD_GENERATION, nodes.PRD_REVIEW)
    graph.add_conditional_edge(
        nodes.PRD_REVIEW,
        nodes.PRDApprovalRouter(nodes.PRD_FINALIZATION, nodes.PRD_GENERATION),
    )
    graph.set_finish_point(nodes.PRD_FINALIZATION)
    graph.set_finish_point(nodes.PRD_FAILURE)

    return graph


def prd_completion_prompt(state: dict[str, Any]) -> str:
    """Terminal message, listing fatal errors when the workflow failed."""
    message = create_completion_message(PRD_WORKFLOW_NAME)
    errors = state.get("prdWorkflowFatalErrorMessages") or []
    if errors:
        details = "\n".join(f"- {error}" for error in errors)
        message += f"\n\nThe workflow ended because of the following errors:\n{details}"
    return message


def create_prd_orchestrator(
    context: Optional[OrchestratorContext] = None,
    graph: Optional[StateGraph] = None,
) -> WorkflowOrchestrator:
    """Create the orchestrator that drives the PRD workflow.

    Args:
        context: Per-process orchestrator context (a default one is created if omitted)
        graph: Graph override, mainly for tests

    Returns:
        WorkflowOrchestrator bound to the PRD graph
    """
    return WorkflowOrchestrator(
        graph or build_prd_graph(),
        context or OrchestratorContext(),
        tool_id=PRD_ORCHESTRATOR_TOOL_ID,
        thread_id_prefix=PRD_THREAD_ID_PREFIX,
        workflow_name=PRD_WORKFLOW_NAME,
        completion_prompt=prd_completion_prompt,
    )


__all__ = [
    "PRD_THREAD_ID_PREFIX",
    "PRD_WORKFLOW_NAME",
    "build_prd_graph",
    "create_prd_orchestrator",
    "prd_completion_prompt",
]
