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

"""Workflow orchestrator: one round trip with the external caller per call.

Every call is a cold start. The orchestrator loads the checkpoint store,
resumes (or starts) the thread named by the caller's ``workflowStateData``
token, runs the graph until it suspends or finishes, writes the store back,
and returns instructions telling the caller which tool to invoke next.

Usage:
    context = OrchestratorContext()
    orchestrator = WorkflowOrchestrator(
        prd_graph,
        context,
        tool_id="magi-prd-orchestrator",
        thread_id_prefix="prd",
    )
    output = await orchestrator.handle_request({"userInput": {...}})
    print(output.orchestrationInstructionsPrompt)
"""

from __future__ import annotations

import copy
import json
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from magen.config.settings import Settings, WellKnownPaths, load_settings
from magen.core.errors import ConfigurationError, EngineInvariantError, ErrorHandler
from magen.core.workflow_logger import configure_logging, get_workflow_logger
from magen.framework.checkpointer import (
    CheckpointerProtocol,
    JSONFileCheckpointer,
    MemoryCheckpointer,
)
from magen.framework.graph import CompiledGraph, GraphExecutionResult, StateGraph
from magen.framework.interrupts import Resume, ToolInvocationRequest

WORKFLOW_STATE_DATA_PROPERTY = "workflowStateData"

_THREAD_ID_ALPHABET = string.ascii_lowercase + string.digits


# =============================================================================
# Wire Models
# =============================================================================


class WorkflowStateData(BaseModel):
    """Opaque token the caller round-trips between orchestrator calls."""

    model_config = ConfigDict(extra="allow")

    thread_id: str = Field(description="Workflow thread identifier")


class OrchestratorInput(BaseModel):
    """Input accepted by an orchestrator tool."""

    model_config = ConfigDict(extra="ignore")

    userInput: Any = Field(
        default=None,
        description="User input: free text or the result of the previous tool invocation",
    )
    workflowStateData: Optional[WorkflowStateData] = Field(
        default=None,
        description="Opaque workflow state data. Omit to start a new workflow.",
    )


class ToolInvocationData(BaseModel):
    """The next tool the caller should invoke."""

    name: str
    description: str
    inputSchema: dict[str, Any]
    inputValues: dict[str, Any]


class OrchestratorOutput(BaseModel):
    """Output returned by an orchestrator tool."""

    orchestrationInstructionsPrompt: str
    status: Literal["interrupted", "completed"]
    nextAction: Optional[ToolInvocationData] = None
    workflowStateData: Optional[WorkflowStateData] = None


@dataclass(frozen=True)
class StartRequest:
    """Start a new thread with the caller's input as initial state."""

    thread_id: str
    initial_input: Any


@dataclass(frozen=True)
class ResumeRequest:
    """Resume a suspended thread with the caller's input as the resume value."""

    thread_id: str
    value: Any


OrchestratorRequest = Union[StartRequest, ResumeRequest]


def generate_thread_id(prefix: str) -> str:
    """Generate ``<prefix>-<epoch ms>-<6 base36 chars>``."""
    suffix = "".join(secrets.choice(_THREAD_ID_ALPHABET) for _ in range(6))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def with_workflow_state_property(input_schema: dict[str, Any]) -> dict[str, Any]:
    """Copy of a tool input schema that also declares ``workflowStateData``."""
    schema = copy.deepcopy(input_schema) if input_schema else {"type": "object"}
    properties = schema.setdefault("properties", {})
    if WORKFLOW_STATE_DATA_PROPERTY not in properties:
        properties[WORKFLOW_STATE_DATA_PROPERTY] = {
            "type": "object",
            "description": "Opaque workflow state data. Round-trip it to the orchestrator "
            "without modification.",
            "properties": {"thread_id": {"type": "string"}},
            "required": ["thread_id"],
        }
    return schema


def create_orchestration_prompt(
    tool_id: str,
    request: ToolInvocationRequest,
    workflow_state_data: dict[str, Any],
) -> str:
    """Instructions telling the caller to invoke the next tool.

    Args:
        tool_id: Orchestrator tool ID
        request: Tool the caller should invoke next
        workflow_state_data: Token to pass along to that tool

    Returns:
        Prompt text
    """
    input_schema = with_workflow_state_property(request.input_schema)
    return f"""
# Your Role

You are participating in a workflow orchestration process. The current
(`{tool_id}`) MCP server tool is the orchestrator, and is sending
you instructions on what to do next. These instructions describe the next participating
MCP server tool to invoke, along with its input schema and input values.

# Your Task

Invoke the following MCP server tool:

**MCP Server Tool Name**: {request.name}
**MCP Server Tool Input Schema**:
```json
{json.dumps(input_schema)}
```
**MCP Server Tool Input Values**:
```json
{json.dumps(request.input_values)}
```

## Additional Input: `{WORKFLOW_STATE_DATA_PROPERTY}`

`{WORKFLOW_STATE_DATA_PROPERTY}` is an additional input parameter that is
specified in the input schema above, and should be passed to the next MCP server tool
invocation, with the following object value:

```json
{json.dumps(workflow_state_data)}
```

This represents opaque workflow state data that should be round-tripped back to the
`{tool_id}` MCP server tool orchestrator at the completion of the
next MCP server tool invocation, without modification. These instructions will be further
specified by the next MCP server tool invocation.

The MCP server tool you invoke will respond with its output, along with further
instructions for continuing the workflow.
"""


def create_completion_message(workflow_name: str) -> str:
    return (
        f"The {workflow_name} workflow has concluded. "
        "No further workflow actions are forthcoming."
    )


# =============================================================================
# Orchestrator Context
# =============================================================================


class OrchestratorContext:
    """Per-process resources shared by orchestrator calls.

    Owns the settings, the checkpointer and its load/persist lifecycle. A
    hosting process builds one context; tests build one per simulated call
    to mimic a process restart.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        checkpointer: Optional[CheckpointerProtocol] = None,
        error_handler: Optional[ErrorHandler] = None,
        setup_logging: bool = False,
    ):
        if settings is None:
            try:
                settings = load_settings()
            except PydanticValidationError as e:
                failed = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
                raise ConfigurationError(
                    f"Invalid magen settings: {', '.join(failed) or 'unknown field'}",
                    config_key=failed[0] if failed else None,
                    recovery_hint="Check the MAGEN_* environment variables and the .env file.",
                    cause=e,
                ) from e
        self.settings = settings
        self.paths = WellKnownPaths(self.settings)
        self.error_handler = error_handler or ErrorHandler(logger_name="magen.workflow")
        self._checkpointer = checkpointer
        self._loaded = False
        if setup_logging:
            configure_logging(self.settings)

    @classmethod
    def for_testing(cls, settings: Optional[Settings] = None) -> "OrchestratorContext":
        """Memory-only context: nothing is read from or written to disk."""
        settings = settings or Settings(use_memory_checkpointer=True, file_logging_enabled=False)
        return cls(settings=settings, checkpointer=MemoryCheckpointer())

    @property
    def checkpointer(self) -> CheckpointerProtocol:
        if self._checkpointer is None:
            self._checkpointer = self._create_checkpointer()
        return self._checkpointer

    def _create_checkpointer(self) -> CheckpointerProtocol:
        max_per_thread = self.settings.max_checkpoints_per_thread
        if self.settings.use_memory_checkpointer:
            return MemoryCheckpointer(max_checkpoints_per_thread=max_per_thread)
        return JSONFileCheckpointer(
            self.paths.workflow_state_file, max_checkpoints_per_thread=max_per_thread
        )

    def ensure_loaded(self) -> None:
        """Import the durable store once per context."""
        if self._loaded:
            return
        checkpointer = self.checkpointer
        if isinstance(checkpointer, JSONFileCheckpointer):
            self.paths.ensure_well_known_dir()
            checkpointer.load()
        self._loaded = True

    def snapshot(self) -> dict[str, Any]:
        """Copy of the working store, taken before a call runs."""
        return copy.deepcopy(self.checkpointer.export_state())

    def rollback(self, snapshot: dict[str, Any]) -> None:
        """Discard checkpoints written by a call that failed."""
        self.checkpointer.import_state(snapshot)

    def persist(self) -> None:
        """Write the store back to disk (no-op for memory checkpointers)."""
        checkpointer = self.checkpointer
        if isinstance(checkpointer, JSONFileCheckpointer):
            checkpointer.persist()


# =============================================================================
# Orchestrator
# =============================================================================


class WorkflowOrchestrator:
    """Adapts a StateGraph to the one-call-per-round-trip tool protocol."""

    def __init__(
        self,
        workflow: StateGraph,
        context: OrchestratorContext,
        *,
        tool_id: str,
        thread_id_prefix: str,
        workflow_name: str = "",
        initial_state_factory: Optional[Callable[[Any], dict[str, Any]]] = None,
        completion_prompt: Optional[Callable[[dict[str, Any]], str]] = None,
    ):
        self.workflow = workflow
        self.context = context
        self.tool_id = tool_id
        self.thread_id_prefix = thread_id_prefix
        self.workflow_name = workflow_name or thread_id_prefix
        self.initial_state_factory = initial_state_factory or (
            lambda user_input: {"userInput": user_input}
        )
        self.completion_prompt = completion_prompt or (
            lambda state: create_completion_message(self.workflow_name)
        )
        self.logger = get_workflow_logger(type(self).__name__)

    def compile(self) -> CompiledGraph:
        return self.workflow.compile(
            checkpointer=self.context.checkpointer,
            recursion_limit=self.context.settings.recursion_limit,
        )

    def parse_request(
        self, raw_input: Union[OrchestratorInput, dict[str, Any], None]
    ) -> OrchestratorRequest:
        """Decide between starting and resuming a thread.

        A token means resume; no token means start. Input that does not parse
        starts a new workflow, with whatever ``userInput`` it carried.
        """
        if isinstance(raw_input, OrchestratorInput):
            parsed = raw_input
        else:
            raw = raw_input or {}
            try:
                parsed = OrchestratorInput.model_validate(raw)
            except PydanticValidationError as e:
                self.logger.error(f"Error parsing orchestrator input. Starting a new workflow: {e}")
                user_input = raw.get("userInput") if isinstance(raw, dict) else None
                return StartRequest(generate_thread_id(self.thread_id_prefix), user_input)

        token = parsed.workflowStateData
        if token is not None and token.thread_id:
            return ResumeRequest(token.thread_id, parsed.userInput)
        return StartRequest(generate_thread_id(self.thread_id_prefix), parsed.userInput)

    async def handle_request(
        self, raw_input: Union[OrchestratorInput, dict[str, Any], None] = None
    ) -> OrchestratorOutput:
        """Run one round trip.

        Raises:
            EngineInvariantError: If the thread cannot be resumed, or the
                workflow suspends without an interrupt
            PersistenceError: If the store cannot be read or written
            Exception: Anything a node raises
        """
        request = self.parse_request(raw_input)
        thread_id = request.thread_id
        self.logger.info(
            f"Processing orchestrator request for thread {thread_id} "
            f"({type(request).__name__})",
            extra={"thread_id": thread_id, "tool_id": self.tool_id},
        )

        snapshot: Optional[dict[str, Any]] = None
        try:
            self.context.ensure_loaded()
            snapshot = self.context.snapshot()
            graph = self.compile()
            result = await self._run(graph, request)
            return self._build_output(result)
        except Exception as e:
            # Working store goes back to what the last persist wrote
            if snapshot is not None:
                self.context.rollback(snapshot)
            self.context.error_handler.handle(
                e, context={"thread_id": thread_id, "tool_id": self.tool_id}
            )
            raise

    async def _run(
        self, graph: CompiledGraph, request: OrchestratorRequest
    ) -> GraphExecutionResult:
        if isinstance(request, StartRequest):
            self.logger.info(f"Starting new workflow execution: {request.thread_id}")
            initial_state = self.initial_state_factory(request.initial_input)
            return await graph.invoke(initial_state, thread_id=request.thread_id)

        snapshot = await graph.get_state(request.thread_id)
        if snapshot is None:
            raise EngineInvariantError(
                f"No workflow state found for thread '{request.thread_id}'",
                thread_id=request.thread_id,
                recovery_hint="Start a new workflow by omitting workflowStateData.",
            )

        self.logger.info(
            f"Resuming interrupted workflow {request.thread_id} at {list(snapshot.next_nodes)}"
        )
        if request.value is None:
            return await graph.invoke(None, thread_id=request.thread_id)
        return await graph.invoke(Resume(request.value), thread_id=request.thread_id)

    def _build_output(self, result: GraphExecutionResult) -> OrchestratorOutput:
        thread_id = result.thread_id

        if result.completed:
            self.context.persist()
            self.logger.info(f"Workflow completed: {thread_id}")
            return OrchestratorOutput(
                orchestrationInstructionsPrompt=self.completion_prompt(result.state),
                status="completed",
            )

        if result.interrupt is None:
            self.logger.error("Workflow suspended without an expected tool invocation")
            raise EngineInvariantError(
                "FATAL: Unexpected workflow state without an interrupt", thread_id=thread_id
            )

        request = result.interrupt.request
        self.logger.info(
            f"Workflow interrupted for tool execution: {request.name}",
            extra={"thread_id": thread_id, "next_tool": request.name},
        )
        self.context.persist()

        token = WorkflowStateData(thread_id=thread_id)
        return OrchestratorOutput(
            orchestrationInstructionsPrompt=create_orchestration_prompt(
                self.tool_id, request, token.model_dump()
            ),
            status="interrupted",
            nextAction=ToolInvocationData(
                name=request.name,
                description=request.description,
                inputSchema=with_workflow_state_property(request.input_schema),
                inputValues=request.input_values,
            ),
            workflowStateData=token,
        )


__all__ = [
    "OrchestratorContext",
    "OrchestratorInput",
    "OrchestratorOutput",
    "OrchestratorRequest",
    "ResumeRequest",
    "StartRequest",
    "ToolInvocationData",
    "WorkflowOrchestrator",
    "WorkflowStateData",
    "create_completion_message",
    "create_orchestration_prompt",
    "generate_thread_id",
    "with_workflow_state_property",
]
