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

"""Nodes and routers of the PRD generation workflow.

Every tool node runs twice per logical step: once to request the tool
(suspending the thread) and once more when the result comes back. Files
are only written on the second pass, after the result has been validated.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Optional

from magen.core.errors import ArtifactError, NodeExecutionError
from magen.framework.interrupts import NodeContext, Suspended
from magen.framework.nodes.base import BaseNode, ToolInvocationNode
from magen.workflows.artifacts import MagiArtifact, MagiWorkspace
from magen.workflows.prd.state import PRDState, get_str
from magen.workflows.prd.tools import (
    FEATURE_BRIEF_REVIEW_TOOL,
    FEATURE_BRIEF_TOOL,
    FEATURE_BRIEF_UPDATE_TOOL,
    GAP_ANALYSIS_TOOL,
    GAP_REQUIREMENTS_TOOL,
    INITIAL_REQUIREMENTS_TOOL,
    PRD_GENERATION_TOOL,
    PRD_REVIEW_TOOL,
    REQUIREMENTS_REVIEW_TOOL,
    FeatureBriefInput,
    FeatureBriefReviewInput,
    FeatureBriefUpdateInput,
    GapAnalysisInput,
    GapRequirementsInput,
    InitialRequirementsInput,
    PRDGenerationInput,
    PRDReviewInput,
    RequirementsResult,
    RequirementsReviewInput,
)

logger = logging.getLogger(__name__)

# Node names
MAGI_INITIALIZATION = "magiInitialization"
FEATURE_BRIEF_GENERATION = "featureBriefGeneration"
FEATURE_BRIEF_REVIEW = "featureBriefReview"
FEATURE_BRIEF_UPDATE = "featureBriefUpdate"
INITIAL_REQUIREMENTS_GENERATION = "initialRequirementsGeneration"
REQUIREMENTS_REVIEW = "requirementsReview"
GAP_ANALYSIS = "gapAnalysis"
REQUIREMENTS_ITERATION_CONTROL = "requirementsIterationControl"
GAP_REQUIREMENTS_GENERATION = "gapRequirementsGeneration"
PRD_GENERATION = "prdGeneration"
PRD_REVIEW = "prdReview"
PRD_FINALIZATION = "prdFinalization"
PRD_FAILURE = "prdFailure"

# Normalized gap analysis score at which requirements are considered complete
GAP_SCORE_THRESHOLD = 0.8

_REQUIREMENT_HEADING = re.compile(r"^###\s+([A-Za-z0-9_.-]+):", re.MULTILINE)


# =============================================================================
# Helpers
# =============================================================================


def _require(state: PRDState, key: str, node_id: str) -> str:
    value = get_str(state, key)
    if value is None:
        raise NodeExecutionError(f"{key} is required but not present in PRD state", node_id=node_id)
    return value


def _workspace(state: PRDState, node_id: str) -> MagiWorkspace:
    return MagiWorkspace(_require(state, "projectPath", node_id))


def _dump_models(models: Optional[list[Any]]) -> list[dict[str, Any]]:
    return [model.model_dump(mode="json") for model in models or []]


def read_feature_brief(state: PRDState) -> str:
    """Feature brief from state, falling back to the approved file on disk."""
    content = get_str(state, "featureBriefContent")
    if content:
        return content
    project_path = get_str(state, "projectPath")
    feature_id = get_str(state, "featureId")
    if project_path and feature_id:
        return MagiWorkspace(project_path).read_artifact(feature_id, MagiArtifact.FEATURE_BRIEF)
    return ""


def read_requirements(state: PRDState) -> str:
    project_path = get_str(state, "projectPath")
    feature_id = get_str(state, "featureId")
    if not project_path or not feature_id:
        return ""
    return MagiWorkspace(project_path).read_artifact(feature_id, MagiArtifact.REQUIREMENTS)


def render_requirements(requirements: list[Mapping[str, Any]]) -> str:
    """Render functional requirements as requirements.md sections."""
    lines: list[str] = []
    for req in requirements:
        lines.append(f"### {req.get('id', '')}: {req.get('title', '')}")
        lines.append(f"- **Priority**: {req.get('priority', '')}")
        lines.append(f"- **Category**: {req.get('category', '')}")
        lines.append(f"- **Description**: {req.get('description', '')}")
        lines.append("- **Status**: Pending Review")
        lines.append("")
    return "\n".join(lines)


def build_requirements_document(
    existing_content: str, requirements: list[Mapping[str, Any]], feature_id: str = ""
) -> str:
    """Merge newly generated requirements into the requirements.md content.

    Requirements whose ID already has a heading in the document are skipped.
    """
    existing_ids = set(_REQUIREMENT_HEADING.findall(existing_content))
    new_requirements = [req for req in requirements if req.get("id") not in existing_ids]

    if not existing_content.strip():
        header = ["# Requirements", ""]
        if feature_id:
            header += [f"**Feature ID:** {feature_id}", ""]
        body = render_requirements(new_requirements)
        return "\n".join(header) + "\n" + ("## New Requirements\n\n" + body if body else "")

    if not new_requirements:
        return existing_content
    return (
        existing_content.rstrip("\n")
        + "\n\n## New Requirements\n\n"
        + render_requirements(new_requirements)
    )


def should_iterate(state: PRDState) -> bool:
    """Decide whether another round of gap-based requirements is needed.

    An override from the user only counts for the gap analysis round it was
    given in. Otherwise iterate while the normalized score is below 0.8;
    scores above 1 are treated as percentages.
    """
    raw_score = state.get("gapAnalysisScore") or 0
    score = raw_score / 100 if raw_score > 1 else raw_score

    override = state.get("userIterationOverride")
    override_round = state.get("userIterationOverrideRound")
    if isinstance(override, bool) and override_round == state.get("gapAnalysisCount", 0):
        return override
    return score < GAP_SCORE_THRESHOLD


# =============================================================================
# Initialization
# =============================================================================


class MagiInitializationNode(BaseNode):
    """Creates the magi-sdd workspace for the project.

    Filesystem failures are recorded in ``prdWorkflowFatalErrorMessages``
    rather than raised, so the workflow can route to the failure node.
    """

    name = MAGI_INITIALIZATION

    def execute(self, state: PRDState, context: NodeContext) -> dict[str, Any]:
        project_path = get_str(state, "projectPath")
        user_utterance = get_str(state, "userUtterance")
        if not project_path or not user_utterance:
            raise NodeExecutionError(
                "Both projectPath and userUtterance are required but not provided",
                node_id=self.name,
                recovery_hint="Provide userInput as an object with projectPath and userUtterance.",
            )

        try:
            workspace_path = MagiWorkspace(project_path).ensure()
        except OSError as e:
            message = (
                f"Failed to initialize magi-sdd directory in project path {project_path}: {e}"
            )
            self.logger.error(message)
            return {"prdWorkflowFatalErrorMessages": [message]}

        self.logger.info(f"Verified/created magi-sdd directory at: {workspace_path}")
        return {"projectPath": project_path, "userUtterance": user_utterance}


class PRDInitializationValidatedRouter:
    """Routes to the failure node when initialization recorded fatal errors."""

    def __init__(self, initialization_validated_node: str, failure_node: str):
        self.initialization_validated_node = initialization_validated_node
        self.failure_node = failure_node

    def __call__(self, state: PRDState) -> str:
        if state.get("prdWorkflowFatalErrorMessages"):
            return self.failure_node
        return self.initialization_validated_node


# =============================================================================
# Feature Brief
# =============================================================================


class FeatureBriefGenerationNode(ToolInvocationNode):
    name = FEATURE_BRIEF_GENERATION
    tool = FEATURE_BRIEF_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        workspace = _workspace(state, self.name)
        result = self.invoke_tool(
            context,
            FeatureBriefInput(
                userUtterance=state.get("userUtterance") or "",
                currentFeatureIds=workspace.existing_feature_ids(),
            ),
        )
        if isinstance(result, Suspended):
            return result

        try:
            feature_dir = workspace.create_feature_directory(result.recommendedFeatureId)
        except ArtifactError as e:
            raise NodeExecutionError(
                e.message, node_id=self.name, recovery_hint=e.recovery_hint, cause=e
            ) from e
        self.logger.info(f"Feature directory ready at: {feature_dir}")

        return {
            "featureId": result.recommendedFeatureId,
            "featureBriefContent": result.featureBriefMarkdown,
        }


class FeatureBriefReviewNode(ToolInvocationNode):
    """Asks the user to approve the feature brief; writes it once approved."""

    name = FEATURE_BRIEF_REVIEW
    tool = FEATURE_BRIEF_REVIEW_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        result = self.invoke_tool(
            context, FeatureBriefReviewInput(featureBrief=read_feature_brief(state))
        )
        if isinstance(result, Suspended):
            return result

        approved = result.approved
        if result.modifications and approved:
            self.logger.warning(
                "Modifications requested but approved is true. Forcing approved to false."
            )
            approved = False

        if approved:
            content = get_str(state, "featureBriefContent")
            feature_id = get_str(state, "featureId")
            if content and feature_id:
                path = _workspace(state, self.name).write_artifact(
                    feature_id, MagiArtifact.FEATURE_BRIEF, content
                )
                self.logger.info(f"Feature brief approved and written to file: {path}")

        return {
            "isFeatureBriefApproved": approved,
            "featureBriefUserFeedback": result.userFeedback or "",
            "featureBriefModifications": _dump_models(result.modifications),
        }


class FeatureBriefUpdateNode(ToolInvocationNode):
    name = FEATURE_BRIEF_UPDATE
    tool = FEATURE_BRIEF_UPDATE_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        workspace = _workspace(state, self.name)
        feature_id = _require(state, "featureId", self.name)
        feature_brief = read_feature_brief(state)
        if not feature_brief:
            raise NodeExecutionError(
                "Feature brief content is required for a feature brief update", node_id=self.name
            )
        if workspace.find_feature_directory(feature_id) is None:
            raise NodeExecutionError(
                f"Feature directory not found for featureId {feature_id}", node_id=self.name
            )

        result = self.invoke_tool(
            context,
            FeatureBriefUpdateInput(
                existingFeatureId=feature_id,
                featureBrief=feature_brief,
                userUtterance=state.get("userUtterance") or "",
                userFeedback=get_str(state, "featureBriefUserFeedback"),
                modifications=state.get("featureBriefModifications") or None,
            ),
        )
        if isinstance(result, Suspended):
            return result

        self.logger.info("Updated feature brief content in state (file written after approval)")
        # Reset the review so the next review round starts clean
        return {
            "featureBriefContent": result.featureBriefMarkdown,
            "isFeatureBriefApproved": False,
            "featureBriefUserFeedback": "",
            "featureBriefModifications": [],
        }


class FeatureBriefApprovalRouter:
    def __init__(self, approved_node: str, update_node: str):
        self.approved_node = approved_node
        self.update_node = update_node

    def __call__(self, state: PRDState) -> str:
        return self.approved_node if state.get("isFeatureBriefApproved") else self.update_node


# =============================================================================
# Requirements
# =============================================================================


class InitialRequirementsGenerationNode(ToolInvocationNode):
    name = INITIAL_REQUIREMENTS_GENERATION
    tool = INITIAL_REQUIREMENTS_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        result = self.invoke_tool(
            context, InitialRequirementsInput(featureBrief=read_feature_brief(state))
        )
        if isinstance(result, Suspended):
            return result
        return _requirements_update(result)


class GapRequirementsGenerationNode(ToolInvocationNode):
    name = GAP_REQUIREMENTS_GENERATION
    tool = GAP_REQUIREMENTS_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        result = self.invoke_tool(
            context,
            GapRequirementsInput(
                featureBrief=read_feature_brief(state),
                requirementsContent=read_requirements(state),
                identifiedGaps=state.get("identifiedGaps") or [],
            ),
        )
        if isinstance(result, Suspended):
            return result
        return _requirements_update(result)


def _requirements_update(result: RequirementsResult) -> dict[str, Any]:
    return {
        "functionalRequirements": _dump_models(result.functionalRequirements),
        "requirementsSummary": result.summary,
    }


class RequirementsReviewNode(ToolInvocationNode):
    """Reviews requirements.md with the user and writes back the result.

    The review input is the current requirements.md plus any generated
    requirements not yet in it.
    """

    name = REQUIREMENTS_REVIEW
    tool = REQUIREMENTS_REVIEW_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        workspace = _workspace(state, self.name)
        feature_id = _require(state, "featureId", self.name)

        requirements_content = build_requirements_document(
            workspace.read_artifact(feature_id, MagiArtifact.REQUIREMENTS),
            state.get("functionalRequirements") or [],
            feature_id,
        )
        result = self.invoke_tool(
            context, RequirementsReviewInput(requirementsContent=requirements_content)
        )
        if isinstance(result, Suspended):
            return result

        path = workspace.write_artifact(
            feature_id, MagiArtifact.REQUIREMENTS, result.updatedRequirementsContent
        )
        self.logger.info(f"Requirements review written to: {path} ({result.reviewSummary})")
        return {"functionalRequirements": []}


class GapAnalysisNode(ToolInvocationNode):
    name = GAP_ANALYSIS
    tool = GAP_ANALYSIS_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        result = self.invoke_tool(
            context,
            GapAnalysisInput(
                featureBrief=read_feature_brief(state),
                requirementsContent=read_requirements(state),
            ),
        )
        if isinstance(result, Suspended):
            return result

        analysis_round = (state.get("gapAnalysisCount") or 0) + 1
        update: dict[str, Any] = {
            "gapAnalysisScore": result.gapAnalysisScore,
            "identifiedGaps": _dump_models(result.identifiedGaps),
            "gapAnalysisCount": analysis_round,
        }
        if result.userWantsToContinueDespiteGaps is not None:
            update["userIterationOverride"] = result.userWantsToContinueDespiteGaps
            update["userIterationOverrideRound"] = analysis_round
        return update


class RequirementsIterationControlNode(BaseNode):
    name = REQUIREMENTS_ITERATION_CONTROL

    def execute(self, state: PRDState, context: NodeContext) -> dict[str, Any]:
        decision = should_iterate(state)
        self.logger.info(
            f"Iteration decision: score={state.get('gapAnalysisScore')}, "
            f"override={state.get('userIterationOverride')}, shouldIterate={decision}"
        )
        return {"shouldIterate": decision}


class IterationRouter:
    def __init__(self, iterate_node: str, done_node: str):
        self.iterate_node = iterate_node
        self.done_node = done_node

    def __call__(self, state: PRDState) -> str:
        return self.iterate_node if state.get("shouldIterate") else self.done_node


# =============================================================================
# PRD
# =============================================================================


class PRDGenerationNode(ToolInvocationNode):
    """Generates PRD.md. On a revision round the previous review is passed along."""

    name = PRD_GENERATION
    tool = PRD_GENERATION_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        workspace = _workspace(state, self.name)
        feature_id = _require(state, "featureId", self.name)

        revising = bool(state.get("prdContent"))
        result = self.invoke_tool(
            context,
            PRDGenerationInput(
                originalUserUtterance=state.get("userUtterance") or "",
                featureBrief=read_feature_brief(state),
                requirementsContent=workspace.read_artifact(feature_id, MagiArtifact.REQUIREMENTS),
                previousPrdContent=state.get("prdContent") if revising else None,
                userFeedback=get_str(state, "prdUserFeedback") if revising else None,
                modifications=(state.get("prdModifications") or None) if revising else None,
            ),
        )
        if isinstance(result, Suspended):
            return result

        path = workspace.write_artifact(feature_id, MagiArtifact.PRD, result.prdContent)
        self.logger.info(f"PRD written to file: {path}")
        return {
            "prdContent": result.prdContent,
            "prdStatus": result.documentStatus.model_dump(mode="json"),
        }


class PRDReviewNode(ToolInvocationNode):
    name = PRD_REVIEW
    tool = PRD_REVIEW_TOOL

    def execute(self, state: PRDState, context: NodeContext) -> Any:
        workspace = _workspace(state, self.name)
        feature_id = _require(state, "featureId", self.name)

        result = self.invoke_tool(
            context,
            PRDReviewInput(
                prdFilePath=str(workspace.artifact_path(feature_id, MagiArtifact.PRD)),
                prdContent=state.get("prdContent") or "",
                documentStatus=state.get("prdStatus") or None,
            ),
        )
        if isinstance(result, Suspended):
            return result

        return {
            "isPrdApproved": result.prdApproved,
            "prdModifications": _dump_models(result.prdModifications),
            "prdUserFeedback": result.userFeedback or "",
        }


class PRDApprovalRouter:
    def __init__(self, approved_node: str, revise_node: str):
        self.approved_node = approved_node
        self.revise_node = revise_node

    def __call__(self, state: PRDState) -> str:
        return self.approved_node if state.get("isPrdApproved") else self.revise_node


class PRDFinalizationNode(BaseNode):
    name = PRD_FINALIZATION

    def execute(self, state: PRDState, context: NodeContext) -> dict[str, Any]:
        status = dict(state.get("prdStatus") or {})
        if status:
            status["status"] = "finalized"
        return {"workflowComplete": True, "prdStatus": status}


class PRDFailureNode(BaseNode):
    name = PRD_FAILURE

    def execute(self, state: PRDState, context: NodeContext) -> dict[str, Any]:
        messages = state.get("prdWorkflowFatalErrorMessages") or []
        self.logger.error(f"PRD workflow failed: {'; '.join(messages)}")
        return {"workflowComplete": False}


__all__ = [
    "FEATURE_BRIEF_GENERATION",
    "FEATURE_BRIEF_REVIEW",
    "FEATURE_BRIEF_UPDATE",
    "FeatureBriefApprovalRouter",
    "FeatureBriefGenerationNode",
    "FeatureBriefReviewNode",
    "FeatureBriefUpdateNode",
    "GAP_ANALYSIS",
    "GAP_REQUIREMENTS_GENERATION",
    "GAP_SCORE_THRESHOLD",
    "GapAnalysisNode",
    "GapRequirementsGenerationNode",
    "INITIAL_REQUIREMENTS_GENERATION",
    "InitialRequirementsGenerationNode",
    "IterationRouter",
    "MAGI_INITIALIZATION",
    "MagiInitializationNode",
    "PRDApprovalRouter",
    "PRDFailureNode",
    "PRDFinalizationNode",
    "PRDGenerationNode",
    "PRDInitializationValidatedRouter",
    "PRDReviewNode",
    "PRD_FAILURE",
    "PRD_FINALIZATION",
    "PRD_GENERATION",
    "PRD_REVIEW",
    "REQUIREMENTS_ITERATION_CONTROL",
    "REQUIREMENTS_REVIEW",
    "RequirementsIterationControlNode",
    "RequirementsReviewNode",
    "build_requirements_document",
    "read_feature_brief",
    "render_requirements",
    "should_iterate",
]
