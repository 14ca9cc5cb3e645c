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

"""User input collection nodes.

Three pieces that let a workflow gather a set of required properties from
free-form user input:

    - ``userInputExtraction``: pulls properties out of ``state["userInput"]``,
      directly when it is already a structured mapping, otherwise by asking
      the caller to run an extraction tool
    - ``CheckPropertiesFulfilledRouter``: routes onward once every property
      is present, back to input collection otherwise
    - ``getUserInput``: asks the caller to prompt the user for the missing
      properties and stores the answer in ``state["userInput"]``

Typical wiring:

    graph.add_node(extraction.name, extraction)
    graph.add_node(get_input.name, get_input)
    graph.add_edge(START, extraction.name)
    graph.add_conditional_edge(
        extraction.name,
        CheckPropertiesFulfilledRouter("initialize", get_input.name, properties),
    )
    graph.add_edge(get_input.name, extraction.name)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, TypeAdapter, create_model
from pydantic import ValidationError as PydanticValidationError

from magen.framework.interrupts import NodeContext, Suspended
from magen.framework.nodes.base import ToolInvocationNode, ToolMetadata

logger = logging.getLogger(__name__)

GET_USER_INPUT_NODE_NAME = "getUserInput"
USER_INPUT_EXTRACTION_NODE_NAME = "userInputExtraction"


@dataclass(frozen=True)
class PropertyMetadata:
    """A property the workflow needs from the user.

    Attributes:
        description: What the property means (shown to the extraction tool)
        friendly_name: Short name shown to the user
        value_type: Type the value must validate against
    """

    description: str
    friendly_name: str
    value_type: Any = str

    def validate(self, value: Any) -> Any:
        """Validate a value, raising pydantic's ValidationError if it does not fit."""
        return TypeAdapter(self.value_type).validate_python(value)


PropertyMetadataCollection = Mapping[str, PropertyMetadata]


def _default_is_fulfilled(state: Mapping[str, Any], property_name: str) -> bool:
    return bool(state.get(property_name))


# =============================================================================
# Tool Schemas
# =============================================================================


class GetInputProperty(BaseModel):
    propertyName: str = Field(description="The property name")
    friendlyName: str = Field(description="A human-friendly name for the property")
    description: str = Field(description="Description of the property")


class GetInputToolInput(BaseModel):
    propertiesRequiringInput: list[GetInputProperty] = Field(
        description="The properties the user should be prompted for"
    )


class GetInputToolResult(BaseModel):
    userUtterance: Any = Field(description="The user's response to the input prompt")


class PropertyToExtract(BaseModel):
    propertyName: str = Field(description="The property name")
    description: str = Field(description="Description of the property")


class InputExtractionToolInput(BaseModel):
    userUtterance: Any = Field(description="Raw user input to extract properties from")
    propertiesToExtract: list[PropertyToExtract] = Field(
        description="The properties to extract from the user input"
    )
    resultSchema: str = Field(description="JSON schema the extraction result must follow")


class InputExtractionToolResult(BaseModel):
    extractedProperties: dict[str, Any] = Field(
        default_factory=dict, description="Extracted property values keyed by property name"
    )


def get_input_tool(tool_id: str) -> ToolMetadata[GetInputToolResult]:
    return ToolMetadata(
        tool_id=tool_id,
        title="Get User Input",
        description="Provides a prompt to the user to elicit their input for a set of properties",
        input_model=GetInputToolInput,
        result_model=GetInputToolResult,
    )


def input_extraction_tool(tool_id: str) -> ToolMetadata[InputExtractionToolResult]:
    return ToolMetadata(
        tool_id=tool_id,
        title="Input Extraction",
        description="Parses user input and extracts structured project properties",
        input_model=InputExtractionToolInput,
        result_model=InputExtractionToolResult,
    )


# =============================================================================
# Nodes
# =============================================================================


class GetUserInputNode(ToolInvocationNode):
    """Asks the user for every property that is not yet fulfilled."""

    name = GET_USER_INPUT_NODE_NAME

    def __init__(
        self,
        required_properties: PropertyMetadataCollection,
        tool_id: str,
        is_property_fulfilled: Optional[Callable[[Mapping[str, Any], str], bool]] = None,
    ):
        super().__init__()
        self.required_properties = dict(required_properties)
        self.tool = get_input_tool(tool_id)
        self.is_property_fulfilled = is_property_fulfilled or _default_is_fulfilled

    def unfulfilled_properties(self, state: Mapping[str, Any]) -> list[GetInputProperty]:
        return [
            GetInputProperty(
                propertyName=name,
                friendlyName=metadata.friendly_name,
                description=metadata.description,
            )
            for name, metadata in self.required_properties.items()
            if not self.is_property_fulfilled(state, name)
        ]

    def execute(self, state: dict[str, Any], context: NodeContext) -> Any:
        unfulfilled = self.unfulfilled_properties(state)
        self.logger.debug(
            f"Requesting input for properties: {[p.propertyName for p in unfulfilled]}"
        )
        result = self.invoke_tool(context, GetInputToolInput(propertiesRequiringInput=unfulfilled))
        if isinstance(result, Suspended):
            return result
        return {"userInput": result.userUtterance}


class UserInputExtractionNode(ToolInvocationNode):
    """Extracts required properties from ``state["userInput"]``.

    When the user input is a mapping that already carries valid values for
    every required property, they are taken as-is and no tool is invoked.
    Otherwise the caller is asked to run the extraction tool; values that
    fail validation and properties that were not asked for are dropped.
    """

    name = USER_INPUT_EXTRACTION_NODE_NAME

    def __init__(
        self,
        required_properties: PropertyMetadataCollection,
        tool_id: str,
        get_user_input: Optional[Callable[[Mapping[str, Any]], Any]] = None,
    ):
        super().__init__()
        self.required_properties = dict(required_properties)
        self.tool = input_extraction_tool(tool_id)
        self.get_user_input = get_user_input or (lambda state: state.get("userInput"))

    def execute(self, state: dict[str, Any], context: NodeContext) -> Any:
        user_input = self.get_user_input(state)

        direct = self._extract_directly(user_input)
        if direct is not None:
            self.logger.info(f"Properties supplied directly in user input: {sorted(direct)}")
            return direct

        result = self.invoke_tool(
            context,
            InputExtractionToolInput(
                userUtterance=user_input,
                propertiesToExtract=[
                    PropertyToExtract(propertyName=name, description=metadata.description)
                    for name, metadata in self.required_properties.items()
                ],
                resultSchema=json.dumps(self.result_schema()),
            ),
        )
        if isinstance(result, Suspended):
            return result

        extracted = self.filter_valid_properties(result.extractedProperties)
        self.logger.info(f"Property extraction completed: {sorted(extracted)}")
        return extracted

    def _extract_directly(self, user_input: Any) -> Optional[dict[str, Any]]:
        if not isinstance(user_input, Mapping):
            return None
        if not all(name in user_input for name in self.required_properties):
            return None
        try:
            return {
                name: metadata.validate(user_input[name])
                for name, metadata in self.required_properties.items()
            }
        except PydanticValidationError:
            return None

    def result_schema(self) -> dict[str, Any]:
        """JSON schema of the extraction result for the current properties."""
        fields: dict[str, Any] = {
            name: (
                Optional[metadata.value_type],
                Field(default=None, description=metadata.description),
            )
            for name, metadata in self.required_properties.items()
        }
        extracted_model = create_model("ExtractedProperties", **fields)
        result_model = create_model("ExtractionResult", extractedProperties=(extracted_model, ...))
        return result_model.model_json_schema()

    def filter_valid_properties(self, extracted: Mapping[str, Any]) -> dict[str, Any]:
        """Keep only known properties whose values validate."""
        valid: dict[str, Any] = {}
        invalid: list[str] = []
        for name, value in extracted.items():
            if value is None:
                continue
            metadata = self.required_properties.get(name)
            if metadata is None:
                self.logger.warning(f"Unknown property in extraction result: {name}")
                continue
            try:
                valid[name] = metadata.validate(value)
            except PydanticValidationError:
                invalid.append(name)

        if invalid:
            self.logger.info(f"Some properties failed validation: {invalid}")
        return valid


class CheckPropertiesFulfilledRouter:
    """Routes to ``fulfilled_node`` once every required property is present."""

    def __init__(
        self,
        fulfilled_node: str,
        unfulfilled_node: str,
        required_properties: PropertyMetadataCollection,
        is_property_fulfilled: Optional[Callable[[Mapping[str, Any], str], bool]] = None,
    ):
        self.fulfilled_node = fulfilled_node
        self.unfulfilled_node = unfulfilled_node
        self.required_properties = dict(required_properties)
        self.is_property_fulfilled = is_property_fulfilled or _default_is_fulfilled

    def __call__(self, state: Mapping[str, Any]) -> str:
        for name in self.required_properties:
            if not self.is_property_fulfilled(state, name):
                logger.info(f"Property '{name}' unfulfilled, routing to {self.unfulfilled_node}")
                return self.unfulfilled_node

        logger.info(f"All properties fulfilled, routing to {self.fulfilled_node}")
        return self.fulfilled_node


def create_get_user_input_node(
    required_properties: PropertyMetadataCollection,
    tool_id: str,
    is_property_fulfilled: Optional[Callable[[Mapping[str, Any], str], bool]] = None,
) -> GetUserInputNode:
    """Create the node that prompts the user for missing properties."""
    return GetUserInputNode(required_properties, tool_id, is_property_fulfilled)


def create_user_input_extraction_node(
    required_properties: PropertyMetadataCollection,
    tool_id: str,
    get_user_input: Optional[Callable[[Mapping[str, Any]], Any]] = None,
) -> UserInputExtractionNode:
    """Create the node that extracts properties from ``state["userInput"]``."""
    return UserInputExtractionNode(required_properties, tool_id, get_user_input)


__all__ = [
    "CheckPropertiesFulfilledRouter",
    "GET_USER_INPUT_NODE_NAME",
    "GetInputProperty",
    "GetInputToolInput",
    "GetInputToolResult",
    "GetUserInputNode",
    "InputExtractionToolInput",
    "InputExtractionToolResult",
    "PropertyMetadata",
    "PropertyMetadataCollection",
    "PropertyToExtract",
    "USER_INPUT_EXTRACTION_NODE_NAME",
    "UserInputExtractionNode",
    "create_get_user_input_node",
    "create_user_input_extraction_node",
]
