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

"""Tools the PRD workflow asks the caller to run.

Each tool has a pydantic input model (sent to the caller as JSON schema) and
a result model the caller's answer must validate against.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from magen.framework.nodes.base import ToolMetadata

Priority = Literal["high", "medium", "low"]
Severity = Literal["critical", "high", "medium", "low"]

PRD_ORCHESTRATOR_TOOL_ID = "magi-prd-orchestrator"
PRD_GET_INPUT_TOOL_ID = "magi-prd-get-input"
PRD_INPUT_EXTRACTION_TOOL_ID = "magi-prd-input-extraction"


# =============================================================================
# Shared Schemas
# =============================================================================


class FunctionalRequirement(BaseModel):
    id: str = Field(description="Unique identifier for the requirement")
    title: str = Field(description="Short title of the functional requirement")
    description: str = Field(description="Detailed description of the functional requirement")
    priority: Priority = Field(description="Priority level of the requirement")
    category: str = Field(
        description="Category of the requirement (e.g., UI/UX, Data, Security, Performance)"
    )


class SuggestedRequirement(BaseModel):
    title: str = Field(description="Suggested requirement title")
    description: str = Field(description="Suggested requirement description")
    priority: Priority = Field(description="Suggested priority")
    category: str = Field(description="Suggested category")


class IdentifiedGap(BaseModel):
    id: str = Field(description="Unique identifier for the gap")
    title: str = Field(description="Title of the identified gap")
    description: str = Field(description="Detailed description of the gap")
    severity: Severity = Field(description="Severity of the gap")
    category: str = Field(description="Category of the gap")
    impact: str = Field(description="Description of the impact if this gap is not addressed")
    suggestedRequirements: list[SuggestedRequirement] = Field(
        default_factory=list, description="Suggested requirements to address this gap"
    )


class FeatureBriefModification(BaseModel):
    section: str = Field(description="Section of the feature brief to modify")
    modificationReason: str = Field(description="Why the modification was requested")
    requestedContent: str = Field(description="The content the user asked for")


class DocumentStatus(BaseModel):
    author: str = Field(description="Author of the PRD")
    lastModified: str = Field(description="Last modified date")
    status: Literal["draft", "finalized"] = Field(description="Document status")


class PRDModification(BaseModel):
    section: str = Field(description="Section of the PRD that was modified")
    originalContent: str = Field(default="", description="Original content that was changed")
    modifiedContent: str = Field(default="", description="New content after modification")
    modificationReason: str = Field(description="Reason for the modification")


class TraceabilityRow(BaseModel):
    requirementId: str = Field(description="Requirement ID")
    technicalRequirementIds: str = Field(default="TBD", description="Technical requirement IDs")
    userStoryIds: str = Field(default="TBD", description="User story IDs")


# =============================================================================
# Feature Brief
# =============================================================================


class FeatureBriefInput(BaseModel):
    userUtterance: str = Field(description="The user's description of the feature")
    currentFeatureIds: list[str] = Field(
        default_factory=list,
        description="Existing feature IDs; the recommended ID must not collide with these",
    )


class FeatureBriefResult(BaseModel):
    featureBriefMarkdown: str = Field(description="The generated feature brief in markdown")
    recommendedFeatureId: str = Field(description="Recommended kebab-case feature ID")


class FeatureBriefReviewInput(BaseModel):
    featureBrief: str = Field(description="The feature brief markdown to review")


class FeatureBriefReviewResult(BaseModel):
    approved: bool = Field(description="Whether the user approved the feature brief")
    userFeedback: Optional[str] = Field(default=None, description="Feedback from the user")
    reviewSummary: str = Field(description="Summary of the review")
    modifications: Optional[list[FeatureBriefModification]] = Field(
        default=None, description="Modifications requested by the user"
    )


class FeatureBriefUpdateInput(BaseModel):
    existingFeatureId: str = Field(description="Feature ID to keep")
    featureBrief: str = Field(description="The current feature brief markdown")
    userUtterance: str = Field(description="The original user request")
    userFeedback: Optional[str] = Field(default=None, description="Feedback from the review")
    modifications: Optional[list[FeatureBriefModification]] = Field(
        default=None, description="Modifications requested during review"
    )


class FeatureBriefUpdateResult(BaseModel):
    featureBriefMarkdown: str = Field(description="The updated feature brief in markdown")


# =============================================================================
# Requirements
# =============================================================================


class InitialRequirementsInput(BaseModel):
    featureBrief: str = Field(description="The approved feature brief")


class RequirementsResult(BaseModel):
    functionalRequirements: list[FunctionalRequirement] = Field(
        description="Generated functional requirements"
    )
    summary: str = Field(description="Summary of the generated requirements")


class RequirementsReviewInput(BaseModel):
    requirementsContent: str = Field(
        description="The content of the requirements.md file containing all requirements"
    )


class RequirementsReviewResult(BaseModel):
    updatedRequirementsContent: str = Field(
        description="The updated requirements.md content with review decisions incorporated"
    )
    reviewSummary: str = Field(description="Summary of the review decisions")


class GapAnalysisInput(BaseModel):
    featureBrief: str = Field(description="The approved feature brief")
    requirementsContent: str = Field(description="The content of the requirements.md file")


class GapAnalysisResult(BaseModel):
    gapAnalysisScore: float = Field(
        ge=0, le=100, description="Overall gap analysis score (0-100, higher is better)"
    )
    identifiedGaps: list[IdentifiedGap] = Field(
        default_factory=list, description="Array of identified gaps"
    )
    userWantsToContinueDespiteGaps: Optional[bool] = Field(
        default=None,
        description=(
            "Explicit user decision: true to keep refining requirements regardless of the "
            "score, false to move on to PRD generation"
        ),
    )


class GapRequirementsInput(BaseModel):
    featureBrief: str = Field(description="The approved feature brief")
    requirementsContent: str = Field(description="The content of the requirements.md file")
    identifiedGaps: list[IdentifiedGap] = Field(description="Gaps to address")


class GapRequirementsResult(RequirementsResult):
    gapsAddressed: list[str] = Field(
        default_factory=list, description="IDs of the gaps the new requirements address"
    )


# =============================================================================
# PRD
# =============================================================================


class PRDGenerationInput(BaseModel):
    originalUserUtterance: str = Field(description="The original user request")
    featureBrief: str = Field(description="The approved feature brief")
    requirementsContent: str = Field(description="The content of the requirements.md file")
    previousPrdContent: Optional[str] = Field(
        default=None, description="The PRD from the previous review round, when revising"
    )
    userFeedback: Optional[str] = Field(
        default=None, description="Feedback from the previous PRD review"
    )
    modifications: Optional[list[PRDModification]] = Field(
        default=None, description="Modifications requested in the previous PRD review"
    )


class PRDGenerationResult(BaseModel):
    prdContent: str = Field(description="The complete PRD.md file content")
    prdFilePath: str = Field(default="", description="Where the tool suggests writing the PRD")
    documentStatus: DocumentStatus = Field(description="Document status information")
    requirementsCount: int = Field(default=0, description="Number of requirements in the PRD")
    traceabilityTableRows: list[TraceabilityRow] = Field(
        default_factory=list, description="Traceability table rows"
    )


class PRDReviewInput(BaseModel):
    prdFilePath: str = Field(description="The file path where the PRD is located")
    prdContent: str = Field(description="The complete PRD.md file content to review")
    documentStatus: Optional[DocumentStatus] = Field(
        default=None, description="Current document status"
    )


class PRDReviewResult(BaseModel):
    prdApproved: bool = Field(description="Whether the user approved the PRD")
    prdModifications: Optional[list[PRDModification]] = Field(
        default=None, description="Modifications requested by the user"
    )
    userFeedback: Optional[str] = Field(default=None, description="Feedback from the user")
    reviewSummary: str = Field(description="Summary of the review")


# =============================================================================
# Tool Metadata
# =============================================================================

FEATURE_BRIEF_TOOL = ToolMetadata(
    tool_id="magi-prd-feature-brief",
    title="Magi - Feature Brief Generation",
    description="Generates a feature brief from the user's request",
    input_model=FeatureBriefInput,
    result_model=FeatureBriefResult,
)

FEATURE_BRIEF_REVIEW_TOOL = ToolMetadata(
    tool_id="magi-prd-feature-brief-review",
    title="Magi - Feature Brief Review",
    description="Presents the feature brief to the user for approval or modification",
    input_model=FeatureBriefReviewInput,
    result_model=FeatureBriefReviewResult,
)

FEATURE_BRIEF_UPDATE_TOOL = ToolMetadata(
    tool_id="magi-prd-feature-brief-update",
    title="Magi - Feature Brief Update",
    description="Updates the feature brief with the user's review feedback",
    input_model=FeatureBriefUpdateInput,
    result_model=FeatureBriefUpdateResult,
)

INITIAL_REQUIREMENTS_TOOL = ToolMetadata(
    tool_id="magi-prd-initial-requirements",
    title="Magi - Initial Requirements Generation",
    description="Generates initial functional requirements from the approved feature brief",
    input_model=InitialRequirementsInput,
    result_model=RequirementsResult,
)

REQUIREMENTS_REVIEW_TOOL = ToolMetadata(
    tool_id="magi-prd-requirements-review",
    title="Magi - Requirements Review and Approval",
    description=(
        "Reviews the requirements.md file with the user, facilitating approval, rejection, "
        "or modification of requirements. Returns updated requirements.md content."
    ),
    input_model=RequirementsReviewInput,
    result_model=RequirementsReviewResult,
)

GAP_ANALYSIS_TOOL = ToolMetadata(
    tool_id="magi-prd-gap-analysis",
    title="Magi - Gap Analysis",
    description=(
        "Analyzes current functional requirements against the feature brief to identify gaps, "
        "score requirement strengths, and provide improvement recommendations"
    ),
    input_model=GapAnalysisInput,
    result_model=GapAnalysisResult,
)

GAP_REQUIREMENTS_TOOL = ToolMetadata(
    tool_id="magi-prd-gap-requirements",
    title="Magi - Gap-Based Requirements Generation",
    description="Generates functional requirements that address the identified gaps",
    input_model=GapRequirementsInput,
    result_model=GapRequirementsResult,
)

PRD_GENERATION_TOOL = ToolMetadata(
    tool_id="magi-prd-generation",
    title="Magi - PRD Generation",
    description=(
        "Generates a comprehensive Product Requirements Document (PRD.md) from approved "
        "feature brief and requirements"
    ),
    input_model=PRDGenerationInput,
    result_model=PRDGenerationResult,
)

PRD_REVIEW_TOOL = ToolMetadata(
    tool_id="magi-prd-review",
    title="Magi - PRD Review",
    description="Presents the generated PRD to the user for review, approval, or modification",
    input_model=PRDReviewInput,
    result_model=PRDReviewResult,
)


__all__ = [
    "DocumentStatus",
    "FEATURE_BRIEF_REVIEW_TOOL",
    "FEATURE_BRIEF_TOOL",
    "FEATURE_BRIEF_UPDATE_TOOL",
    "FeatureBriefModification",
    "FunctionalRequirement",
    "GAP_ANALYSIS_TOOL",
    "GAP_REQUIREMENTS_TOOL",
    "INITIAL_REQUIREMENTS_TOOL",
    "IdentifiedGap",
    "PRD_GENERATION_TOOL",
    "PRD_GET_INPUT_TOOL_ID",
    "PRD_INPUT_EXTRACTION_TOOL_ID",
    "PRD_ORCHESTRATOR_TOOL_ID",
    "PRD_REVIEW_TOOL",
    "REQUIREMENTS_REVIEW_TOOL",
]
