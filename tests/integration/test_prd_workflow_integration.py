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

"""PRD workflow runs against the JSON file checkpoint store.

Each orchestrator call uses a new context, so every round trip starts from
what the previous one wrote to disk.
"""

import json

import pytest

from magen.core.errors import EngineInvariantError
from magen.workflows.prd.graph import create_prd_orchestrator

pytestmark = pytest.mark.integration

DOCUMENT_STATUS = {"author": "Magi", "lastModified": "2025-01-01", "status": "draft"}
REQUIREMENT = {
    "id": "FR-1",
    "title": "Offline queue",
    "description": "Queue edits while offline",
    "priority": "high",
    "category": "Data",
}


def answer_for(tool_id, input_values):
    if tool_id == "magi-prd-feature-brief":
        return {"featureBriefMarkdown": "# Offline sync", "recommendedFeatureId": "offline-sync"}
    if tool_id == "magi-prd-feature-brief-review":
        return {"approved": True, "reviewSummary": "Approved"}
    if tool_id == "magi-prd-initial-requirements":
        return {"functionalRequirements": [REQUIREMENT], "summary": "One requirement"}
    if tool_id == "magi-prd-requirements-review":
        return {
            "updatedRequirementsContent": input_values["requirementsContent"],
            "reviewSummary": "Approved all",
        }
    if tool_id == "magi-prd-gap-analysis":
        return {"gapAnalysisScore": 92}
    if tool_id == "magi-prd-generation":
        return {"prdContent": "# PRD", "documentStatus": DOCUMENT_STATUS}
    if tool_id == "magi-prd-review":
        return {"prdApproved": True, "reviewSummary": "Approved"}
    raise AssertionError(f"Unexpected tool: {tool_id}")


async def call(new_context, payload):
    return await create_prd_orchestrator(new_context()).handle_request(payload)


class TestFileBackedPRDWorkflow:
    """Tests for the PRD workflow across simulated process restarts."""

    @pytest.mark.asyncio
    async def test_runs_to_completion(self, new_context, project_dir):
        output = await call(
            new_context,
            {"userInput": {"projectPath": str(project_dir), "userUtterance": "Add offline sync"}},
        )
        thread_id = output.workflowStateData.thread_id
        tools = []

        while output.status == "interrupted":
            action = output.nextAction
            tools.append(action.name)
            output = await call(
                new_context,
                {
                    "userInput": answer_for(action.name, action.inputValues),
                    "workflowStateData": {"thread_id": thread_id},
                },
            )

        assert output.status == "completed"
        assert tools == [
            "magi-prd-feature-brief",
            "magi-prd-feature-brief-review",
            "magi-prd-initial-requirements",
            "magi-prd-requirements-review",
            "magi-prd-gap-analysis",
            "magi-prd-generation",
            "magi-prd-review",
        ]

        feature_dir = project_dir / "magi-sdd" / "001-offline-sync"
        assert (feature_dir / "feature-brief.md").read_text() == "# Offline sync"
        assert "### FR-1: Offline queue" in (feature_dir / "requirements.md").read_text()
        assert (feature_dir / "PRD.md").read_text() == "# PRD"

        store = json.loads((project_dir / ".magen" / "workflow-state.json").read_text())
        assert store["version"] == 1
        latest = store["threads"][thread_id][-1]
        assert latest["status"] == "completed"
        assert latest["state"]["workflowComplete"] is True
        assert latest["state"]["prdStatus"]["status"] == "finalized"

    @pytest.mark.asyncio
    async def test_token_survives_restart(self, new_context, project_dir):
        first = await call(
            new_context,
            {"userInput": {"projectPath": str(project_dir), "userUtterance": "Add offline sync"}},
        )
        token = first.workflowStateData.model_dump()

        resurfaced = await call(new_context, {"workflowStateData": token})

        assert resurfaced.status == "interrupted"
        assert resurfaced.nextAction == first.nextAction

    @pytest.mark.asyncio
    async def test_deleted_store_cannot_resume(self, new_context, project_dir):
        first = await call(
            new_context,
            {"userInput": {"projectPath": str(project_dir), "userUtterance": "Add offline sync"}},
        )
        (project_dir / ".magen" / "workflow-state.json").unlink()

        with pytest.raises(EngineInvariantError):
            await call(
                new_context,
                {
                    "userInput": answer_for("magi-prd-feature-brief", {}),
                    "workflowStateData": first.workflowStateData.model_dump(),
                },
            )
