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

"""Reusable workflow nodes."""

from magen.framework.nodes.base import BaseNode, ToolInvocationNode, ToolMetadata
from magen.framework.nodes.user_input import (
    CheckPropertiesFulfilledRouter,
    GetUserInputNode,
    PropertyMetadata,
    UserInputExtractionNode,
    create_get_user_input_node,
    create_user_input_extraction_node,
)

__all__ = [
    "BaseNode",
    "CheckPropertiesFulfilledRouter",
    "GetUserInputNode",
    "PropertyMetadata",
    "ToolInvocationNode",
    "ToolMetadata",
    "UserInputExtractionNode",
    "create_get_user_input_node",
    "create_user_input_extraction_node",
]
