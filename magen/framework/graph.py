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

"""StateGraph - resumable graph workflow engine.

Builds cyclic, stateful workflows whose threads can suspend to ask an
external caller for input and resume later, in a different process, from a
checkpoint.

Design Principles:
    - The compiled graph holds no thread data; threads live in the checkpointer
    - Exactly one node runs at a time and routing yields exactly one successor
    - A suspended pass commits nothing; the node is replayed in full on resume
    - Node exceptions propagate unchanged; the engine never retries

Example:
    from magen.framework.graph import StateGraph, END
    from magen.framework.checkpointer import MemoryCheckpointer

    graph = StateGraph(DraftState)
    graph.add_node("draft", draft)
    graph.add_node("review", review)        # suspends for the caller's verdict
    graph.add_node("finalize", finalize)
    graph.add_edge("draft", "review")
    graph.add_conditional_edge(
        "review",
        lambda state: "done" if state["approved"] else "again",
        {"again": "draft", "done": "finalize"},
    )
    graph.add_edge("finalize", END)
    graph.set_entry_point("draft")

    app = graph.compile(checkpointer=MemoryCheckpointer())
    result = await app.invoke({"topic": "login"}, thread_id="t1")
    if result.interrupted:
        result = await app.invoke(Resume({"approved": True}), thread_id="t1")
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from magen.core.errors import (
    EngineInvariantError,
    GraphRecursionError,
    NodeExecutionError,
    NodeTimeoutError,
    ValidationError,
)
from magen.framework.checkpointer import (
    CheckpointerProtocol,
    CheckpointStatus,
    MemoryCheckpointer,
    WorkflowCheckpoint,
)
from magen.framework.interrupts import Interrupt, NodeContext, Resume, Suspended
from magen.framework.state import StateSchema, merge_state

logger = logging.getLogger(__name__)

# Sentinels for the start and end of the graph
END = "__end__"
START = "__start__"

DEFAULT_RECURSION_LIMIT = 100

NodeResult = Union[Mapping[str, Any], Suspended, None]
RouterResult = str


class EdgeType(Enum):
    """Types of edges in the graph."""

    NORMAL = "normal"
    CONDITIONAL = "conditional"


class ExecutionStatus(str, Enum):
    """How an invoke call ended."""

    INTERRUPTED = "interrupted"
    COMPLETED = "completed"


@dataclass
class Edge:
    """An outgoing transition from a node.

    Attributes:
        source: Source node ID
        target: Target node ID for normal edges
        edge_type: Normal or conditional
        router: Function of the state returning a branch name or node ID
        branches: Optional mapping from router result to node ID
    """

    source: str
    target: Optional[str] = None
    edge_type: EdgeType = EdgeType.NORMAL
    router: Optional[Callable[[dict[str, Any]], RouterResult]] = None
    branches: Optional[dict[str, str]] = None

    def possible_targets(self) -> Optional[list[str]]:
        """Targets this edge can lead to, or None when the router is unconstrained."""
        if self.edge_type == EdgeType.NORMAL:
            return [self.target] if self.target is not None else []
        if self.branches is not None:
            return list(self.branches.values())
        return None

    def resolve(self, state: dict[str, Any]) -> str:
        """Pick the next node for the given state.

        Raises:
            EngineInvariantError: If the edge lacks its target or router, or the
                router result maps to no branch
        """
        if self.edge_type == EdgeType.NORMAL:
            if self.target is None:
                raise EngineInvariantError(f"Edge from '{self.source}' has no target")
            return self.target

        if self.router is None:
            raise EngineInvariantError(f"Conditional edge from '{self.source}' has no router")
        result = self.router(state)
        if self.branches is None:
            return result
        if result in self.branches:
            return self.branches[result]
        raise EngineInvariantError(
            f"Router for '{self.source}' returned unknown branch '{result}' "
            f"(expected one of {sorted(self.branches)})"
        )


@dataclass
class Node:
    """A node in the graph.

    The function receives ``(state)`` or ``(state, context)`` and returns a
    partial update, None, or ``Suspended``. It may be sync or async.

    Attributes:
        id: Unique node identifier
        func: Node execution function
        timeout: Optional timeout in seconds for async nodes
        metadata: Additional node metadata
    """

    id: str
    func: Callable[..., NodeResult | Awaitable[NodeResult]]
    timeout: Optional[float] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    accepts_context: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self.accepts_context = _accepts_context(self.func)

    async def execute(self, state: dict[str, Any], context: NodeContext) -> NodeResult:
        """Execute node function.

        Args:
            state: Copy of the current state
            context: Execution context for input requests

        Returns:
            Partial state update, None, or Suspended
        """
        if self.accepts_context:
            result = self.func(state, context)
        else:
            result = self.func(state)
        if inspect.isawaitable(result):
            return await result
        return result


def _accepts_context(func: Callable[..., Any]) -> bool:
    """True when ``func`` takes a second positional argument for the context."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False

    positional = 0
    for param in signature.parameters.values():
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            return True
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return positional >= 2


@dataclass
class StateSnapshot:
    """Read-only view of a thread's latest checkpoint.

    Attributes:
        thread_id: Thread identifier
        values: Current state
        next_nodes: Nodes pending execution (empty once completed)
        interrupt: Pending interrupt, if the thread is suspended
        status: Checkpoint status
        step: Nodes completed so far
        checkpoint_id: Latest checkpoint ID
    """

    thread_id: str
    values: dict[str, Any]
    next_nodes: tuple[str, ...]
    interrupt: Optional[Interrupt]
    status: CheckpointStatus
    step: int
    checkpoint_id: str

    @property
    def pending_tasks(self) -> tuple[str, ...]:
        return self.next_nodes

    @property
    def is_interrupted(self) -> bool:
        return self.interrupt is not None

    @property
    def is_completed(self) -> bool:
        return self.status == CheckpointStatus.COMPLETED


@dataclass
class GraphExecutionResult:
    """Result from graph execution.

    Attributes:
        state: State after the call
        thread_id: Thread identifier
        status: Interrupted or completed
        interrupt: Pending interrupt when interrupted
        iterations: Number of node executions in this call
        duration: Wall time of this call
        node_history: Nodes executed in this call, in order
    """

    state: dict[str, Any]
    thread_id: str
    status: ExecutionStatus
    interrupt: Optional[Interrupt] = None
    iterations: int = 0
    duration: float = 0.0
    node_history: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED

    @property
    def interrupted(self) -> bool:
        return self.status == ExecutionStatus.INTERRUPTED


# =============================================================================
# Graph Execution Helpers
# =============================================================================


class IterationController:
    """Bounds the number of node executions in a single invoke call.

    Human-driven loops suspend on every iteration and never come close to
    the limit; a loop that cycles without ever suspending does.
    """

    def __init__(self, recursion_limit: int, thread_id: str):
        self.recursion_limit = recursion_limit
        self.thread_id = thread_id
        self.iterations = 0
        self.visited_count: dict[str, int] = {}

    def record(self, node_id: str) -> None:
        """Count one node execution.

        Raises:
            GraphRecursionError: If the limit is exceeded
        """
        self.iterations += 1
        self.visited_count[node_id] = self.visited_count.get(node_id, 0) + 1
        if self.iterations > self.recursion_limit:
            logger.error(
                f"Recursion limit {self.recursion_limit} hit at node '{node_id}' "
                f"(visits: {self.visited_count})"
            )
            raise GraphRecursionError(self.recursion_limit, thread_id=self.thread_id)


class NodeExecutor:
    """Runs one node with its timeout and validates what it returns."""

    def __init__(self, nodes: dict[str, Node]):
        self.nodes = nodes

    async def execute(
        self,
        node_id: str,
        state: dict[str, Any],
        context: NodeContext,
    ) -> NodeResult:
        node = self.nodes.get(node_id)
        if node is None:
            raise EngineInvariantError(
                f"Checkpoint references unknown node '{node_id}'", thread_id=context.thread_id
            )

        start = time.time()
        try:
            if node.timeout is not None:
                result = await asyncio.wait_for(
                    node.execute(copy.deepcopy(state), context), timeout=node.timeout
                )
            else:
                result = await node.execute(copy.deepcopy(state), context)
        except asyncio.TimeoutError as e:
            raise NodeTimeoutError(node_id, node.timeout or 0.0, cause=e) from e
        except Exception as e:
            logger.error(f"Node '{node_id}' failed: {type(e).__name__}: {e}")
            raise

        logger.debug(f"Node '{node_id}' finished in {time.time() - start:.3f}s")

        if result is not None and not isinstance(result, (Mapping, Suspended)):
            raise NodeExecutionError(
                f"Node '{node_id}' returned {type(result).__name__}; "
                "expected a partial state dict, None or Suspended",
                node_id=node_id,
            )
        return result


class GraphCheckpointManager:
    """Loads and saves checkpoints for a compiled graph."""

    def __init__(self, checkpointer: CheckpointerProtocol):
        self.checkpointer = checkpointer

    async def load(self, thread_id: str) -> Optional[WorkflowCheckpoint]:
        return await self.checkpointer.get(thread_id)

    async def save(
        self,
        thread_id: str,
        state: dict[str, Any],
        *,
        status: CheckpointStatus,
        next_nodes: list[str],
        step: int,
        parent_id: Optional[str],
        interrupt: Optional[Interrupt] = None,
        resume_values: Optional[list[Any]] = None,
    ) -> WorkflowCheckpoint:
        checkpoint = WorkflowCheckpoint(
            checkpoint_id=WorkflowCheckpoint.new_id(),
            thread_id=thread_id,
            state=copy.deepcopy(state),
            next_nodes=list(next_nodes),
            status=status,
            interrupt=interrupt,
            resume_values=list(resume_values or []),
            step=step,
            parent_id=parent_id,
        )
        await self.checkpointer.put(checkpoint)
        return checkpoint


# =============================================================================
# Compiled Graph
# =============================================================================


class CompiledGraph:
    """Compiled graph ready for execution.

    Stateless with respect to threads: every invoke starts by reading the
    thread's latest checkpoint.
    """

    def __init__(
        self,
        nodes: dict[str, Node],
        edges: dict[str, Edge],
        entry_point: str,
        state_schema: StateSchema,
        checkpointer: CheckpointerProtocol,
        recursion_limit: int = DEFAULT_RECURSION_LIMIT,
    ):
        self._nodes = nodes
        self._edges = edges
        self._entry_point = entry_point
        self._state_schema = state_schema
        self._checkpoints = GraphCheckpointManager(checkpointer)
        self._executor = NodeExecutor(nodes)
        self.recursion_limit = recursion_limit

    @property
    def checkpointer(self) -> CheckpointerProtocol:
        return self._checkpoints.checkpointer

    @property
    def entry_point(self) -> str:
        return self._entry_point

    @property
    def state_schema(self) -> StateSchema:
        return self._state_schema

    async def get_state(self, thread_id: str) -> Optional[StateSnapshot]:
        """Snapshot of a thread's latest checkpoint, or None for unknown threads."""
        checkpoint = await self._checkpoints.load(thread_id)
        if checkpoint is None:
            return None
        return StateSnapshot(
            thread_id=thread_id,
            values=copy.deepcopy(checkpoint.state),
            next_nodes=tuple(checkpoint.next_nodes),
            interrupt=checkpoint.interrupt,
            status=checkpoint.status,
            step=checkpoint.step,
            checkpoint_id=checkpoint.checkpoint_id,
        )

    async def invoke(
        self,
        input: Union[Mapping[str, Any], Resume, None] = None,
        *,
        thread_id: str,
        recursion_limit: Optional[int] = None,
    ) -> GraphExecutionResult:
        """Run a thread until it suspends or reaches END.

        Args:
            input: Initial state for a new thread; for a suspended thread, the
                resume value (a ``Resume`` or a plain mapping). None on a
                suspended thread re-surfaces the pending interrupt.
            thread_id: Thread identifier
            recursion_limit: Override for the per-call node execution limit

        Returns:
            GraphExecutionResult describing where the thread stopped

        Raises:
            EngineInvariantError: If the thread cannot be resumed
            GraphRecursionError: If the call runs too many nodes without suspending
            Exception: Anything a node raises, unchanged
        """
        start_time = time.time()
        checkpoint = await self._checkpoints.load(thread_id)

        if checkpoint is None:
            if isinstance(input, Resume):
                raise EngineInvariantError(
                    f"Cannot resume thread '{thread_id}': no checkpoint exists",
                    thread_id=thread_id,
                    recovery_hint="Start a new workflow without a workflow state token.",
                )
            state = self._state_schema.initial_state(input)
            current = self._entry_point
            resume_values: list[Any] = []
            step = 0
            parent_id: Optional[str] = None
            logger.info(f"Starting thread '{thread_id}' at '{current}'")
        else:
            interrupt = self._require_resumable(checkpoint)
            if input is None:
                logger.info(
                    f"No resume value for thread '{thread_id}'; "
                    f"re-surfacing interrupt from '{interrupt.node_id}'"
                )
                return GraphExecutionResult(
                    state=copy.deepcopy(checkpoint.state),
                    thread_id=thread_id,
                    status=ExecutionStatus.INTERRUPTED,
                    interrupt=interrupt,
                    duration=time.time() - start_time,
                )
            value = input.value if isinstance(input, Resume) else input
            state = copy.deepcopy(checkpoint.state)
            current = interrupt.node_id
            resume_values = [*checkpoint.resume_values, value]
            step = checkpoint.step
            parent_id = checkpoint.checkpoint_id
            logger.info(f"Resuming thread '{thread_id}' at '{current}'")

        controller = IterationController(recursion_limit or self.recursion_limit, thread_id)
        node_history: list[str] = []

        while True:
            controller.record(current)
            context = NodeContext(thread_id, current, resume_values, step)
            result = await self._executor.execute(current, state, context)
            node_history.append(current)

            interrupt = context.interrupt
            if interrupt is None and isinstance(result, Suspended):
                interrupt = result.interrupt
            if interrupt is not None:
                saved = await self._checkpoints.save(
                    thread_id,
                    state,
                    status=CheckpointStatus.INTERRUPTED,
                    next_nodes=[current],
                    step=step,
                    parent_id=parent_id,
                    interrupt=interrupt,
                    resume_values=resume_values,
                )
                logger.info(
                    f"Thread '{thread_id}' suspended at '{current}' "
                    f"awaiting '{interrupt.request.name}'"
                )
                return GraphExecutionResult(
                    state=copy.deepcopy(saved.state),
                    thread_id=thread_id,
                    status=ExecutionStatus.INTERRUPTED,
                    interrupt=interrupt,
                    iterations=controller.iterations,
                    duration=time.time() - start_time,
                    node_history=node_history,
                )

            state = merge_state(self._state_schema, state, result)  # type: ignore[arg-type]
            step += 1
            resume_values = []

            next_node = self._get_next_node(current, state, thread_id)
            if next_node == END:
                saved = await self._checkpoints.save(
                    thread_id,
                    state,
                    status=CheckpointStatus.COMPLETED,
                    next_nodes=[],
                    step=step,
                    parent_id=parent_id,
                )
                logger.info(f"Thread '{thread_id}' completed after {step} step(s)")
                return GraphExecutionResult(
                    state=copy.deepcopy(saved.state),
                    thread_id=thread_id,
                    status=ExecutionStatus.COMPLETED,
                    iterations=controller.iterations,
                    duration=time.time() - start_time,
                    node_history=node_history,
                )

            saved = await self._checkpoints.save(
                thread_id,
                state,
                status=CheckpointStatus.RUNNING,
                next_nodes=[next_node],
                step=step,
                parent_id=parent_id,
            )
            parent_id = saved.checkpoint_id
            logger.debug(f"Thread '{thread_id}': {current} -> {next_node}")
            current = next_node

    def _require_resumable(self, checkpoint: WorkflowCheckpoint) -> Interrupt:
        """Return the pending interrupt of a checkpoint, or raise."""
        thread_id = checkpoint.thread_id
        if checkpoint.status == CheckpointStatus.COMPLETED:
            raise EngineInvariantError(
                f"Thread '{thread_id}' has already completed",
                thread_id=thread_id,
                recovery_hint="Start a new workflow; completed threads cannot be resumed.",
            )
        if checkpoint.interrupt is None:
            raise EngineInvariantError(
                f"Thread '{thread_id}' has pending nodes {checkpoint.next_nodes} "
                "but no pending interrupt",
                thread_id=thread_id,
                recovery_hint="The checkpoint is corrupt or from an incompatible version.",
            )
        if checkpoint.interrupt.node_id not in self._nodes:
            raise EngineInvariantError(
                f"Thread '{thread_id}' is suspended at unknown node "
                f"'{checkpoint.interrupt.node_id}'",
                thread_id=thread_id,
            )
        return checkpoint.interrupt

    def _get_next_node(self, current_node: str, state: dict[str, Any], thread_id: str) -> str:
        """Resolve the successor of a node.

        Raises:
            EngineInvariantError: If routing names a node that does not exist
        """
        edge = self._edges.get(current_node)
        if edge is None:
            raise EngineInvariantError(
                f"Node '{current_node}' has no outgoing edge", thread_id=thread_id
            )
        try:
            target = edge.resolve(state)
        except EngineInvariantError as e:
            e.thread_id = thread_id
            e.details["thread_id"] = thread_id
            raise
        if target != END and target not in self._nodes:
            raise EngineInvariantError(
                f"Router for '{current_node}' returned undeclared node '{target}'",
                thread_id=thread_id,
            )
        return target

    def get_graph_schema(self) -> dict[str, Any]:
        """Get graph structure as dictionary.

        Returns:
            Dictionary describing nodes and edges
        """
        return {
            "nodes": list(self._nodes.keys()),
            "edges": {
                src: {
                    "type": edge.edge_type.value,
                    "target": edge.target,
                    "branches": dict(edge.branches) if edge.branches else None,
                }
                for src, edge in self._edges.items()
            },
            "entry_point": self._entry_point,
        }


# =============================================================================
# Graph Builder
# =============================================================================


class StateGraph:
    """StateGraph builder for creating resumable workflows.

    Example:
        graph = StateGraph(PRDState)
        graph.add_node("generate", generate)
        graph.add_node("review", review)
        graph.add_edge(START, "generate")
        graph.add_edge("generate", "review")
        graph.add_conditional_edge("review", route_review, {"yes": END, "no": "generate"})

        app = graph.compile(checkpointer=checkpointer)
    """

    def __init__(self, state_schema: Union[StateSchema, type, None] = None):
        """Initialize StateGraph.

        Args:
            state_schema: A StateSchema, a TypedDict to build one from, or
                None for an all-REPLACE state
        """
        if state_schema is None:
            self._state_schema = StateSchema()
        elif isinstance(state_schema, StateSchema):
            self._state_schema = state_schema
        else:
            self._state_schema = StateSchema.from_typed_dict(state_schema)
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, list[Edge]] = {}
        self._entry_points: list[str] = []

    @property
    def state_schema(self) -> StateSchema:
        return self._state_schema

    def add_node(
        self,
        node_id: str,
        func: Callable[..., NodeResult | Awaitable[NodeResult]],
        *,
        timeout: Optional[float] = None,
        **metadata: Any,
    ) -> "StateGraph":
        """Add a node to the graph.

        Args:
            node_id: Unique node identifier
            func: Node function taking ``(state)`` or ``(state, context)``
            timeout: Optional timeout in seconds
            **metadata: Additional metadata

        Returns:
            Self for chaining

        Raises:
            ValidationError: If the name is reserved or already used
        """
        if not node_id:
            raise ValidationError(
                "Node name must be a non-empty string", errors=["empty node name"]
            )
        if node_id in (START, END):
            raise ValidationError(
                f"Node name '{node_id}' is reserved", errors=[f"reserved name: {node_id}"]
            )
        if node_id in self._nodes:
            raise ValidationError(
                f"Node '{node_id}' already exists", errors=[f"duplicate node: {node_id}"]
            )

        self._nodes[node_id] = Node(id=node_id, func=func, timeout=timeout, metadata=metadata)
        logger.debug(f"Added node: {node_id}")
        return self

    def add_edge(self, source: str, target: str) -> "StateGraph":
        """Add a normal edge between nodes.

        ``add_edge(START, node)`` declares the entry point.

        Args:
            source: Source node ID (or START)
            target: Target node ID (or END)

        Returns:
            Self for chaining
        """
        if source == START:
            self._entry_points.append(target)
            logger.debug(f"Added entry point: {target}")
            return self

        self._edges.setdefault(source, []).append(
            Edge(source=source, target=target, edge_type=EdgeType.NORMAL)
        )
        logger.debug(f"Added edge: {source} -> {target}")
        return self

    def add_conditional_edge(
        self,
        source: str,
        router: Callable[[dict[str, Any]], RouterResult],
        branches: Optional[dict[str, str]] = None,
    ) -> "StateGraph":
        """Add a conditional edge.

        Args:
            source: Source node ID
            router: Function of the state returning a branch name (when
                ``branches`` is given) or a node ID / END
            branches: Optional mapping from branch names to node IDs. Without
                it the router may name any node, and reachability checks
                treat every node as a possible target.

        Returns:
            Self for chaining
        """
        self._edges.setdefault(source, []).append(
            Edge(
                source=source,
                edge_type=EdgeType.CONDITIONAL,
                router=router,
                branches=dict(branches) if branches is not None else None,
            )
        )
        targets = list(branches.values()) if branches else "<any>"
        logger.debug(f"Added conditional edge: {source} -> {targets}")
        return self

    def set_entry_point(self, node_id: str) -> "StateGraph":
        """Set the entry point node.

        Args:
            node_id: Node to start execution from

        Returns:
            Self for chaining
        """
        return self.add_edge(START, node_id)

    def set_finish_point(self, node_id: str) -> "StateGraph":
        """Set a node as finish point (adds edge to END)."""
        return self.add_edge(node_id, END)

    def compile(
        self,
        checkpointer: Optional[CheckpointerProtocol] = None,
        *,
        recursion_limit: Optional[int] = None,
    ) -> CompiledGraph:
        """Compile the graph for execution.

        Args:
            checkpointer: Checkpoint store (defaults to a MemoryCheckpointer)
            recursion_limit: Maximum node executions per invoke call
                (defaults to DEFAULT_RECURSION_LIMIT)

        Returns:
            CompiledGraph ready for execution

        Raises:
            ValidationError: If the graph is invalid
        """
        errors = self._validate()
        if errors:
            raise ValidationError(f"Invalid graph: {'; '.join(errors)}", errors=errors)

        return CompiledGraph(
            nodes=dict(self._nodes),
            edges={source: edges[0] for source, edges in self._edges.items()},
            entry_point=self._entry_points[0],
            state_schema=self._state_schema,
            checkpointer=checkpointer if checkpointer is not None else MemoryCheckpointer(),
            recursion_limit=recursion_limit or DEFAULT_RECURSION_LIMIT,
        )

    def _validate(self) -> list[str]:
        """Validate graph structure.

        Returns:
            List of error messages
        """
        errors: list[str] = []

        if not self._nodes:
            errors.append("Graph has no nodes")

        if not self._entry_points:
            errors.append("No entry point set")
        elif len(self._entry_points) > 1:
            errors.append(f"Multiple entry points declared: {self._entry_points}")
        for entry in self._entry_points:
            if entry not in self._nodes:
                errors.append(f"Entry point '{entry}' not found")

        for source, edges in self._edges.items():
            if source not in self._nodes:
                errors.append(f"Edge source '{source}' not found")
            if len(edges) > 1:
                errors.append(f"Node '{source}' has {len(edges)} outgoing edges; expected one")

            for edge in edges:
                if edge.edge_type == EdgeType.NORMAL:
                    if edge.target != END and edge.target not in self._nodes:
                        errors.append(f"Edge target '{edge.target}' not found")
                elif edge.branches is not None:
                    for branch, target in edge.branches.items():
                        if target != END and target not in self._nodes:
                            errors.append(
                                f"Conditional target '{target}' not found (branch: {branch})"
                            )

        for node_id in self._nodes:
            if node_id not in self._edges:
                errors.append(f"Node '{node_id}' has no outgoing edge")

        if len(self._entry_points) == 1 and self._entry_points[0] in self._nodes:
            reachable = self._find_reachable()
            for node_id in self._nodes:
                if node_id not in reachable:
                    errors.append(f"Node '{node_id}' is unreachable")

        return errors

    def _find_reachable(self) -> set[str]:
        """Find all reachable nodes from the entry point."""
        reachable: set[str] = set()
        to_visit = [self._entry_points[0]]

        while to_visit:
            node_id = to_visit.pop()
            if node_id in reachable or node_id == END or node_id not in self._nodes:
                continue

            reachable.add(node_id)

            for edge in self._edges.get(node_id, []):
                targets = edge.possible_targets()
                if targets is None:
                    to_visit.extend(self._nodes)
                else:
                    to_visit.extend(t for t in targets if t is not None)

        return reachable


__all__ = [
    "END",
    "START",
    "CompiledGraph",
    "Edge",
    "EdgeType",
    "ExecutionStatus",
    "GraphCheckpointManager",
    "GraphExecutionResult",
    "IterationController",
    "Node",
    "NodeExecutor",
    "StateGraph",
    "StateSnapshot",
]
