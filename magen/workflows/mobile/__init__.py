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

"""Mobile native app workflow.

Takes the user from a description of the app they want to a generated,
built and deployed Salesforce native mobile project. Build failures loop
through a recovery step until the build passes or the retry budget is spent.
"""

from magen.workflows.mobile.graph import (
    MOBILE_WORKFLOW_NAME,
    build_mobile_graph,
    create_mobile_orchestrator,
)
from magen.workflows.mobile.state import (
    MOBILE_STATE_SCHEMA,
    MOBILE_USER_INPUT_PROPERTIES,
    MobileState,
)
from magen.workflows.mobile.tools import MOBILE_ORCHESTRATOR_TOOL_ID

__all__ = [
    "MOBILE_ORCHESTRATOR_TOOL_ID",
    "MOBILE_STATE_SCHEMA",
    "MOBILE_USER_INPUT_PROPERTIES",
    "MOBILE_WORKFLOW_NAME",
    "MobileState",
    "build_mobile_graph",
    "create_mobile_orchestrator",
]
