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

"""Base classes for workflow nodes.

Nodes are plain callables, so any function works with ``StateGraph.add_node``.
The classes here add a stable ``name`` and the request-then-validate pattern
used by every node that delegates work to an external tool.

Example:
    class SummaryNode(ToolInvocationNode):
        name = "summary"
        tool = SUMMARY_TOOL

        def execute(self, state, context):
            result = self.invoke_tool(context, {"text": state["text"]})
            if isinstance(result, Suspended):
                return result
            return {"summary": result.summary}

    graph.add_node(node.name, node)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from magen.core.errors import NodeExecutionError
from magen.framework.interrupts import NodeContext, Suspended, ToolInvocationRequest

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)


@dataclass(frozen=True)
class ToolMetadata(Generic[ResultT]):
    """Description of an external tool a node can ask the caller to run.

    Attributes:
        tool_id: Name the caller invokes
        title: Human readable title
        description: What the tool does
        input_model: Pydantic model of the tool input
        result_model: Pydantic model the caller's result must satisfy
    """

    tool_id: str
    title: str
    description: str
    input_model: type[BaseModel]
    result_model: type[ResultT]

    def build_request(
        self, input_values: Union[BaseModel, dict[str, Any], None] = None
    ) -> ToolInvocationRequest:
        return ToolInvocationRequest.from_model(
            name=self.tool_id,
            description=self.description,
            input_model=self.input_model,
            input_values=input_values,
        )


class BaseNode(ABC):
    """A named workflow node.

    Subclasses implement ``execute(state, context)``. Instances are callable
    so they can be registered directly with ``StateGraph.add_node``.
    """

    name: str = ""

    def __init__(self, name: Optional[str] = None):
        if name:
            self.name = name
        if not self.name:
            raise ValueError(f"{type(self).__name__} needs a node name")
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @abstractmethod
    def execute(self, state: dict[str, Any], context: NodeContext) -> Any:
        """Run the node and return a partial update, None, or Suspended."""

    def __call__(self, state: dict[str, Any], context: NodeContext) -> Any:
        return self.execute(state, context)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class ToolInvocationNode(BaseNode):
    """Node that asks the caller to run a tool and validates what comes back.

    ``invoke_tool`` returns ``Suspended`` on the first pass and the validated
    result model on the replay pass. Side effects (file writes, directory
    creation) belong after the result has been received.
    """

    tool: Optional[ToolMetadata] = None

    def invoke_tool(
        self,
        context: NodeContext,
        input_values: Union[BaseModel, dict[str, Any], None] = None,
        tool: Optional[ToolMetadata[ResultT]] = None,
    ) -> Union[ResultT, Suspended]:
        """Request a tool invocation and validate the caller's result.

        Args:
            context: Node execution context
            input_values: Values for the tool input
            tool: Tool to invoke (defaults to the node's ``tool``)

        Returns:
            Validated result model, or Suspended while waiting for the caller

        Raises:
            NodeExecutionError: If the caller's result does not match the
                tool's result model
        """
        tool = tool or self.tool
        if tool is None:
            raise NodeExecutionError(
                f"Node '{self.name}' has no tool configured", node_id=self.name
            )

        request = tool.build_request(input_values)
        self.logger.debug(f"Requesting tool '{tool.tool_id}' with input: {request.input_values}")
        raw_result = context.request_input(request)
        if isinstance(raw_result, Suspended):
            return raw_result

        return self.validate_result(tool, raw_result)

    def validate_result(self, tool: ToolMetadata[ResultT], raw_result: Any) -> ResultT:
        try:
            result = tool.result_model.model_validate(raw_result)
        except PydanticValidationError as e:
            self.logger.error(f"Invalid result from tool '{tool.tool_id}': {e}")
            raise NodeExecutionError(
                f"Result from tool '{tool.tool_id}' failed validation: {e.error_count()} error(s)",
                node_id=self.name,
                details={"tool_id": tool.tool_id, "errors": e.errors(include_url=False)},
                recovery_hint=(
                    f"Return a result matching the '{tool.tool_id}' result schema "
                    "and resume the workflow."
                ),
                cause=e,
            ) from e

        self.logger.info(f"Received valid result from tool '{tool.tool_id}'")
        return result


__all__ = [
    "BaseNode",
    "ToolInvocationNode",
    "ToolMetadata",
]
