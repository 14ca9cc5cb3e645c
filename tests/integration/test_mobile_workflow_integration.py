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

"""Mobile workflow runs against the JSON file checkpoint store."""

import json

import pytest

from magen.config.settings import Settings
from magen.workflows.mobile.graph import create_mobile_orchestrator
from magen.workflows.orchestrator import OrchestratorContext

pytestmark = pytest.mark.integration

APP_PROPERTIES = {
    "platform": "Android",
    "projectName": "FieldService",
    "packageName": "com.acme.fieldservice",
    "organization": "Acme",
    "loginHost": "https://test.salesforce.com",
}


@pytest.fixture
def new_mobile_context(project_dir):
    settings = Settings(
        project_path=project_dir,
        file_logging_enabled=False,
        connected_app_consumer_key="3MVG9-consumer-key",
        connected_app_callback_url="acme://oauth/done",
        max_build_retries=2,
    )
    return lambda: OrchestratorContext(settings=settings)


class TestFileBackedMobileWorkflow:
    """Tests for the mobile workflow across simulated process restarts."""

    @pytest.mark.asyncio
    async def test_build_recovery_across_restarts(self, new_mobile_context, project_dir):
        answers = {
            "sfmobile-native-template-discovery": [
                {
                    "templateCandidates": ["AndroidNativeKotlinTemplate"],
                    "selectedTemplate": "AndroidNativeKotlinTemplate",
                }
            ],
            "sfmobile-native-project-generation": [
                {"success": True, "projectPath": str(project_dir / "FieldService")}
            ],
            "sfmobile-native-build": [
                {"success": False, "error": "Gradle sync failed"},
                {"success": True},
            ],
            "sfmobile-native-build-recovery": [
                {"fixesApplied": ["Updated Gradle wrapper"], "readyForRetry": True}
            ],
            "sfmobile-native-deployment": [{"success": True, "targetDevice": "Pixel 9"}],
        }

        output = await create_mobile_orchestrator(new_mobile_context()).handle_request(
            {"userInput": APP_PROPERTIES}
        )
        thread_id = output.workflowStateData.thread_id
        while output.status == "interrupted":
            answer = answers[output.nextAction.name].pop(0)
            output = await create_mobile_orchestrator(new_mobile_context()).handle_request(
                {"userInput": answer, "workflowStateData": output.workflowStateData.model_dump()}
            )

        assert output.status == "completed"
        assert all(not remaining for remaining in answers.values())

        stored = json.loads((project_dir / ".magen" / "workflow-state.json").read_text())
        latest = stored["threads"][thread_id][-1]
        assert latest["status"] == "completed"
        assert latest["state"]["maxBuildRetries"] == 2
        assert latest["state"]["buildAttemptCount"] == 2
        assert latest["state"]["deploymentStatus"] == "deployed"
        assert latest["state"]["targetDevice"] == "Pixel 9"
