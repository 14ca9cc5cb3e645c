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

"""Interrupts: how a node asks the external caller for input.

A node that needs input calls ``context.request_input(request)``:

    - First pass: the call returns a ``Suspended`` value. The node returns it
      and the engine checkpoints the thread with the pending ``Interrupt``.
    - Replay pass (after the caller supplied a value): the same call returns
      the supplied value and the node carries on.

Because the whole node runs again on resume, anything it does *before*
``request_input`` must be idempotent. Side effects belong after the input
has been received.

Example:
    async def ask_name(state, context):
        answer = context.request_input(
            ToolInvocationRequest(
                name="get-input",
                description="Ask the user for their name",
                input_schema={"type": "object"},
                input_values={"question": "What is your name?"},
            )
        )
        if isinstance(answer, Suspended):
            return answer
        return {"name": answer["name"]}
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


@dataclass
class ToolInvocationRequest:
    """The caller-visible description of the next action.

    Attributes:
        name: Tool the caller should invoke next
        description: What the tool does
        input_schema: JSON schema of the tool's input
        input_values: Values to pass to the tool
    """

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)
    input_values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_model(
        cls,
        name: str,
        description: str,
        input_model: type[BaseModel],
        input_values: Union[BaseModel, dict[str, Any], None] = None,
    ) -> "ToolInvocationRequest":
        """Build a request whose schema comes from a pydantic input model.

        Args:
            name: Tool name
            description: Tool description
            input_model: Pydantic model describing the tool input
            input_values: Model instance or dict of values to send

        Returns:
            ToolInvocationRequest with a JSON schema generated from the model
        """
        if isinstance(input_values, BaseModel):
            values = input_values.model_dump(mode="json", by_alias=True, exclude_none=True)
        else:
            values = dict(input_values or {})
        return cls(
            name=name,
            description=description,
            input_schema=input_model.model_json_schema(by_alias=True),
            input_values=values,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape ``{name, description, inputSchema, inputValues}``."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "inputValues": self.input_values,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolInvocationRequest":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            input_schema=data.get("inputSchema", {}),
            input_values=data.get("inputValues", {}),
        )


@dataclass
class Interrupt:
    """A pending request for external input, owned by one node.

    Attributes:
        id: Unique interrupt identifier
        node_id: Node that raised the interrupt
        request: What the caller should do next
        index: Position of the request among the node's request_input calls
    """

    node_id: str
    request: ToolInvocationRequest
    index: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "node_id": self.node_id,
            "index": self.index,
            "request": self.request.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Interrupt":
        return cls(
            id=data["id"],
            node_id=data["node_id"],
            index=data.get("index", 0),
            request=ToolInvocationRequest.from_dict(data["request"]),
        )


@dataclass(frozen=True)
class Suspended:
    """Returned by a node (and by ``request_input``) when it must wait for input."""

    interrupt: Interrupt

    @property
    def request(self) -> ToolInvocationRequest:
        return self.interrupt.request


@dataclass(frozen=True)
class Resume:
    """Explicit resume command: the value answering the pending interrupt."""

    value: Any


class NodeContext:
    """Per-execution context handed to nodes that accept two arguments.

    Resume values are matched to ``request_input`` calls by call order, so a
    node may ask several questions; each one suspends the thread once.
    """

    def __init__(
        self,
        thread_id: str,
        node_id: str,
        resume_values: Optional[list[Any]] = None,
        step: int = 0,
    ):
        self.thread_id = thread_id
        self.node_id = node_id
        self.step = step
        self._resume_values = list(resume_values or [])
        self._calls = 0
        self._interrupt: Optional[Interrupt] = None

    @property
    def interrupt(self) -> Optional[Interrupt]:
        """The interrupt raised during this pass, if any."""
        return self._interrupt

    @property
    def is_resuming(self) -> bool:
        """True when at least one resume value is available to this pass."""
        return bool(self._resume_values)

    def request_input(self, request: ToolInvocationRequest) -> Any:
        """Ask the external caller for input.

        Args:
            request: Description of the action the caller should perform

        Returns:
            The caller's value on a replay pass, otherwise a ``Suspended``
            that the node should return unchanged.
        """
        index = self._calls
        self._calls += 1

        if index < len(self._resume_values):
            logger.debug(
                f"Node '{self.node_id}' received resume value #{index} for '{request.name}'"
            )
            return self._resume_values[index]

        if self._interrupt is None:
            self._interrupt = Interrupt(node_id=self.node_id, request=request, index=index)
            logger.debug(f"Node '{self.node_id}' suspended on '{request.name}'")
        return Suspended(self._interrupt)


__all__ = [
    "Interrupt",
    "NodeContext",
    "Resume",
    "Suspended",
    "ToolInvocationRequest",
]
