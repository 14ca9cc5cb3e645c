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

"""Tests for graph definition, validation and execution."""

import asyncio
from typing import Annotated, TypedDict

import pytest

from magen.core.errors import (
    EngineInvariantError,
    GraphRecursionError,
    NodeExecutionError,
    NodeTimeoutError,
    ValidationError,
)
from magen.framework.checkpointer import CheckpointStatus
from magen.framework.graph import END, START, Edge, EdgeType, ExecutionStatus, StateGraph
from magen.framework.interrupts import Resume, Suspended, ToolInvocationRequest
from magen.framework.state import APPEND


class GreetingState(TypedDict, total=False):
    initialized: bool
    name: str
    greeting: str
    log: Annotated[list[str], APPEND]


NAME_REQUEST = ToolInvocationRequest(
    name="get-name",
    description="Ask the user for their name",
    input_schema={"type": "object", "properties": {"name": {"type": "string"}}},
    input_values={"question": "What is your name?"},
)


def init_node(state):
    return {"initialized": True, "log": ["init"]}


def ask_node(state, context):
    answer = context.request_input(NAME_REQUEST)
    if isinstance(answer, Suspended):
        return answer
    return {"name": answer["name"], "log": ["ask"]}


async def greet_node(state):
    return {"greeting": f"Hello, {state['name']}", "log": ["greet"]}


def build_greeting_graph():
    graph = StateGraph(GreetingState)
    graph.add_node("init", init_node)
    graph.add_node("ask", ask_node)
    graph.add_node("greet", greet_node)
    graph.add_edge(START, "init")
    graph.add_edge("init", "ask")
    graph.add_edge("ask", "greet")
    graph.add_edge("greet", END)
    return graph


class TestGraphValidation:
    """Tests for compile-time validation."""

    def test_valid_graph_compiles(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        assert app.entry_point == "init"
        assert app.checkpointer is checkpointer

    def test_duplicate_node_rejected(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        with pytest.raises(ValidationError, match="already exists"):
            graph.add_node("a", init_node)

    @pytest.mark.parametrize("name", [START, END, ""])
    def test_reserved_or_empty_name_rejected(self, name):
        with pytest.raises(ValidationError):
            StateGraph().add_node(name, init_node)

    def test_no_nodes(self):
        with pytest.raises(ValidationError) as exc_info:
            StateGraph().compile()
        assert "Graph has no nodes" in exc_info.value.errors

    def test_no_entry_point(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_edge("a", END)
        with pytest.raises(ValidationError) as exc_info:
            graph.compile()
        assert "No entry point set" in exc_info.value.errors

    def test_multiple_entry_points(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_node("b", init_node)
        graph.add_edge(START, "a")
        graph.add_edge(START, "b")
        graph.add_edge("a", END)
        graph.add_edge("b", END)
        with pytest.raises(ValidationError, match="Multiple entry points"):
            graph.compile()

    def test_undeclared_edge_target(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_edge(START, "a")
        graph.add_edge("a", "missing")
        with pytest.raises(ValidationError) as exc_info:
            graph.compile()
        assert "Edge target 'missing' not found" in exc_info.value.errors

    def test_undeclared_edge_source(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_edge(START, "a")
        graph.add_edge("a", END)
        graph.add_edge("ghost", "a")
        with pytest.raises(ValidationError, match="Edge source 'ghost' not found"):
            graph.compile()

    def test_undeclared_branch_target(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_edge(START, "a")
        graph.add_conditional_edge("a", lambda s: "go", {"go": "missing", "stop": END})
        with pytest.raises(ValidationError, match="Conditional target 'missing'"):
            graph.compile()

    def test_node_without_outgoing_edge(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_edge(START, "a")
        with pytest.raises(ValidationError, match="has no outgoing edge"):
            graph.compile()

    def test_fan_out_rejected(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_node("b", init_node)
        graph.add_edge(START, "a")
        graph.add_edge("a", "b")
        graph.add_edge("a", END)
        graph.add_edge("b", END)
        with pytest.raises(ValidationError, match="2 outgoing edges"):
            graph.compile()

    def test_unreachable_node(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_node("island", init_node)
        graph.add_edge(START, "a")
        graph.add_edge("a", END)
        graph.add_edge("island", END)
        with pytest.raises(ValidationError) as exc_info:
            graph.compile()
        assert "Node 'island' is unreachable" in exc_info.value.errors

    def test_all_errors_reported(self):
        graph = StateGraph()
        graph.add_node("a", init_node)
        graph.add_edge("a", "missing")
        with pytest.raises(ValidationError) as exc_info:
            graph.compile()
        assert len(exc_info.value.errors) >= 2

    def test_graph_schema(self, checkpointer):
        schema = build_greeting_graph().compile(checkpointer).get_graph_schema()
        assert schema["nodes"] == ["init", "ask", "greet"]
        assert schema["entry_point"] == "init"
        assert schema["edges"]["ask"] == {"type": "normal", "target": "greet", "branches": None}


class TestSuspendAndResume:
    """Tests for the interrupt/resume cycle."""

    @pytest.mark.asyncio
    async def test_first_invoke_suspends_at_ask(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)

        result = await app.invoke({}, thread_id="t1")

        assert result.status == ExecutionStatus.INTERRUPTED
        assert result.interrupt.node_id == "ask"
        assert result.interrupt.request.name == "get-name"
        assert result.node_history == ["init", "ask"]
        assert result.state["initialized"] is True
        assert "name" not in result.state

    @pytest.mark.asyncio
    async def test_resume_runs_to_end(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        await app.invoke({}, thread_id="t1")

        result = await app.invoke({"name": "Ava"}, thread_id="t1")

        assert result.completed
        assert result.state["greeting"] == "Hello, Ava"
        assert result.state["log"] == ["init", "ask", "greet"]
        assert result.node_history == ["ask", "greet"]

    @pytest.mark.asyncio
    async def test_resume_command(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        await app.invoke({}, thread_id="t1")

        result = await app.invoke(Resume({"name": "Bo"}), thread_id="t1")

        assert result.state["greeting"] == "Hello, Bo"

    @pytest.mark.asyncio
    async def test_snapshot_of_suspended_thread(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        await app.invoke({}, thread_id="t1")

        snapshot = await app.get_state("t1")

        assert snapshot.is_interrupted
        assert snapshot.next_nodes == ("ask",)
        assert snapshot.pending_tasks == ("ask",)
        assert snapshot.status == CheckpointStatus.INTERRUPTED
        assert snapshot.step == 1

    @pytest.mark.asyncio
    async def test_snapshot_of_completed_thread(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        await app.invoke({}, thread_id="t1")
        await app.invoke({"name": "Ava"}, thread_id="t1")

        snapshot = await app.get_state("t1")

        assert snapshot.is_completed
        assert snapshot.next_nodes == ()
        assert snapshot.interrupt is None
        assert snapshot.step == 3

    @pytest.mark.asyncio
    async def test_unknown_thread_snapshot_is_none(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        assert await app.get_state("nope") is None

    @pytest.mark.asyncio
    async def test_none_input_resurfaces_interrupt(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        first = await app.invoke({}, thread_id="t1")

        again = await app.invoke(None, thread_id="t1")

        assert again.interrupted
        assert again.interrupt.node_id == "ask"
        assert again.interrupt.request == first.interrupt.request
        assert again.node_history == []
        snapshot = await app.get_state("t1")
        assert snapshot.next_nodes == ("ask",)

    @pytest.mark.asyncio
    async def test_completed_thread_cannot_be_reused(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        await app.invoke({}, thread_id="t1")
        await app.invoke({"name": "Ava"}, thread_id="t1")

        with pytest.raises(EngineInvariantError, match="already completed"):
            await app.invoke({"name": "Again"}, thread_id="t1")

    @pytest.mark.asyncio
    async def test_resume_without_checkpoint_raises(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        with pytest.raises(EngineInvariantError):
            await app.invoke(Resume({"name": "Ava"}), thread_id="unknown")

    @pytest.mark.asyncio
    async def test_pending_nodes_without_interrupt_raises(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        await app.invoke({}, thread_id="t1")
        checkpoint = await checkpointer.get("t1")
        checkpoint.interrupt = None
        checkpoint.status = CheckpointStatus.RUNNING

        with pytest.raises(EngineInvariantError, match="no pending interrupt"):
            await app.invoke({"name": "Ava"}, thread_id="t1")

    @pytest.mark.asyncio
    async def test_threads_are_independent(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        await app.invoke({}, thread_id="t1")
        await app.invoke({}, thread_id="t2")

        done = await app.invoke({"name": "Two"}, thread_id="t2")

        assert done.state["greeting"] == "Hello, Two"
        assert (await app.get_state("t1")).is_interrupted


class TestRouting:
    """Tests for conditional routing and cycles."""

    @staticmethod
    def build_review_graph(scores):
        """Review loop: revise until the score reaches 80."""
        remaining = list(scores)

        def review(state):
            return {"score": remaining.pop(0), "visits": ["review"]}

        def revise(state):
            return {"visits": ["revise"]}

        def finalize(state):
            return {"visits": ["finalize"], "done": True}

        review_state = TypedDict(
            "ReviewState", {"score": int, "done": bool, "visits": Annotated[list, APPEND]}
        )
        graph = StateGraph(review_state)
        graph.add_node("review", review)
        graph.add_node("revise", revise)
        graph.add_node("finalize", finalize)
        graph.add_edge(START, "review")
        graph.add_conditional_edge(
            "review", lambda s: "revise" if s["score"] < 80 else "finalize"
        )
        graph.add_edge("revise", "review")
        graph.add_edge("finalize", END)
        return graph

    @pytest.mark.asyncio
    async def test_low_score_routes_to_revise(self, checkpointer):
        app = self.build_review_graph([70, 95]).compile(checkpointer)

        result = await app.invoke({}, thread_id="t1")

        assert result.node_history == ["review", "revise", "review", "finalize"]
        assert result.state["done"] is True

    @pytest.mark.asyncio
    async def test_high_score_routes_to_finalize(self, checkpointer):
        app = self.build_review_graph([95]).compile(checkpointer)

        result = await app.invoke({}, thread_id="t1")

        assert result.node_history == ["review", "finalize"]

    @pytest.mark.asyncio
    async def test_branch_mapping(self, checkpointer):
        graph = StateGraph()
        graph.add_node("check", lambda s: {"ok": s.get("value", 0) > 1})
        graph.add_node("yes", lambda s: {"answer": "yes"})
        graph.add_node("no", lambda s: {"answer": "no"})
        graph.add_edge(START, "check")
        graph.add_conditional_edge("check", lambda s: s["ok"], {True: "yes", False: "no"})
        graph.add_edge("yes", END)
        graph.add_edge("no", END)
        app = graph.compile(checkpointer)

        assert (await app.invoke({"value": 5}, thread_id="a")).state["answer"] == "yes"
        assert (await app.invoke({"value": 0}, thread_id="b")).state["answer"] == "no"

    @pytest.mark.asyncio
    async def test_router_to_undeclared_node_raises(self, checkpointer):
        graph = StateGraph()
        graph.add_node("a", lambda s: {"x": 1})
        graph.add_edge(START, "a")
        graph.add_conditional_edge("a", lambda s: "nowhere")
        app = graph.compile(checkpointer)

        with pytest.raises(EngineInvariantError, match="undeclared node 'nowhere'") as exc_info:
            await app.invoke({}, thread_id="t1")
        assert exc_info.value.thread_id == "t1"

    @pytest.mark.asyncio
    async def test_unknown_branch_raises(self, checkpointer):
        graph = StateGraph()
        graph.add_node("a", lambda s: {"x": 1})
        graph.add_edge(START, "a")
        graph.add_conditional_edge("a", lambda s: "maybe", {"yes": END})
        app = graph.compile(checkpointer)

        with pytest.raises(EngineInvariantError, match="unknown branch"):
            await app.invoke({}, thread_id="t1")

    def test_edge_without_target_raises(self):
        edge = Edge(source="a")

        with pytest.raises(EngineInvariantError, match="Edge from 'a' has no target"):
            edge.resolve({})

    def test_conditional_edge_without_router_raises(self):
        edge = Edge(source="a", edge_type=EdgeType.CONDITIONAL, branches={"yes": END})

        with pytest.raises(EngineInvariantError, match="has no router"):
            edge.resolve({})

    @pytest.mark.asyncio
    async def test_cycle_without_suspension_hits_recursion_limit(self, checkpointer):
        graph = StateGraph()
        graph.add_node("loop", lambda s: {"n": s.get("n", 0) + 1})
        graph.add_edge(START, "loop")
        graph.add_conditional_edge("loop", lambda s: "loop")
        app = graph.compile(checkpointer, recursion_limit=5)

        with pytest.raises(GraphRecursionError) as exc_info:
            await app.invoke({}, thread_id="t1")
        assert exc_info.value.limit == 5

    @pytest.mark.asyncio
    async def test_recursion_limit_override_per_call(self, checkpointer):
        app = self.build_review_graph([10, 20, 30, 90]).compile(checkpointer)

        with pytest.raises(GraphRecursionError):
            await app.invoke({}, thread_id="t1", recursion_limit=3)


class TestNodeExecution:
    """Tests for node execution semantics."""

    @pytest.mark.asyncio
    async def test_node_exception_propagates_unchanged(self, checkpointer):
        def broken(state):
            raise RuntimeError("boom")

        graph = StateGraph()
        graph.add_node("broken", broken)
        graph.set_entry_point("broken")
        graph.set_finish_point("broken")
        app = graph.compile(checkpointer)

        with pytest.raises(RuntimeError, match="boom"):
            await app.invoke({}, thread_id="t1")
        assert await app.get_state("t1") is None

    @pytest.mark.asyncio
    async def test_invalid_return_type_raises(self, checkpointer):
        graph = StateGraph()
        graph.add_node("bad", lambda s: "not a dict")
        graph.set_entry_point("bad")
        graph.set_finish_point("bad")
        app = graph.compile(checkpointer)

        with pytest.raises(NodeExecutionError) as exc_info:
            await app.invoke({}, thread_id="t1")
        assert exc_info.value.node_id == "bad"

    @pytest.mark.asyncio
    async def test_none_return_keeps_state(self, checkpointer):
        graph = StateGraph()
        graph.add_node("noop", lambda s: None)
        graph.set_entry_point("noop")
        graph.set_finish_point("noop")
        app = graph.compile(checkpointer)

        result = await app.invoke({"kept": 1}, thread_id="t1")

        assert result.state == {"kept": 1}

    @pytest.mark.asyncio
    async def test_node_timeout(self, checkpointer):
        async def slow(state):
            await asyncio.sleep(1)
            return {"done": True}

        graph = StateGraph()
        graph.add_node("slow", slow, timeout=0.01)
        graph.set_entry_point("slow")
        graph.set_finish_point("slow")
        app = graph.compile(checkpointer)

        with pytest.raises(NodeTimeoutError) as exc_info:
            await app.invoke({}, thread_id="t1")
        assert exc_info.value.node_id == "slow"

    @pytest.mark.asyncio
    async def test_node_cannot_mutate_committed_state(self, checkpointer):
        def mutating(state):
            state["items"].append("leak")
            return {"touched": True}

        graph = StateGraph()
        graph.add_node("mutating", mutating)
        graph.set_entry_point("mutating")
        graph.set_finish_point("mutating")
        app = graph.compile(checkpointer)

        result = await app.invoke({"items": []}, thread_id="t1")

        assert result.state["items"] == []

    @pytest.mark.asyncio
    async def test_running_checkpoints_written_between_nodes(self, checkpointer):
        app = build_greeting_graph().compile(checkpointer)
        await app.invoke({}, thread_id="t1")

        history = await checkpointer.list("t1")

        assert [cp.status for cp in history] == [
            CheckpointStatus.INTERRUPTED,
            CheckpointStatus.RUNNING,
        ]
        assert history[1].next_nodes == ["ask"]
        assert history[0].parent_id == history[1].checkpoint_id
