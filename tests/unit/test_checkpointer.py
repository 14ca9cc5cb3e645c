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

"""Tests for checkpoint storage and the JSON state file."""

import json
import os
from datetime import date

import pytest

from magen.core.errors import EngineInvariantError, PersistenceError
from magen.framework.checkpointer import (
    STORE_FORMAT_VERSION,
    CheckpointStatus,
    JSONFileCheckpointer,
    MemoryCheckpointer,
    WorkflowCheckpoint,
    WorkflowStatePersistence,
)
from magen.framework.graph import END, START, StateGraph
from magen.framework.interrupts import Interrupt, Resume, Suspended, ToolInvocationRequest


def make_checkpoint(thread_id="t1", step=0, **kwargs):
    return WorkflowCheckpoint(
        checkpoint_id=WorkflowCheckpoint.new_id(),
        thread_id=thread_id,
        state={"step": step},
        step=step,
        **kwargs,
    )


def ask_node(state, context):
    answer = context.request_input(ToolInvocationRequest(name="ask", description="Ask"))
    if isinstance(answer, Suspended):
        return answer
    return {"answer": answer["text"]}


def build_ask_graph():
    graph = StateGraph()
    graph.add_node("ask", ask_node)
    graph.add_edge(START, "ask")
    graph.add_edge("ask", END)
    return graph


class TestWorkflowCheckpoint:
    """Tests for checkpoint serialization."""

    def test_round_trip_with_interrupt(self):
        checkpoint = make_checkpoint(
            status=CheckpointStatus.INTERRUPTED,
            next_nodes=["ask"],
            interrupt=Interrupt(
                node_id="ask", request=ToolInvocationRequest(name="ask", description="Ask")
            ),
            resume_values=[{"a": 1}],
        )

        restored = WorkflowCheckpoint.from_dict(json.loads(json.dumps(checkpoint.to_dict())))

        assert restored == checkpoint

    def test_from_dict_defaults(self):
        restored = WorkflowCheckpoint.from_dict(
            {"checkpoint_id": "c1", "thread_id": "t1", "state": {}}
        )
        assert restored.status == CheckpointStatus.RUNNING
        assert restored.interrupt is None
        assert restored.next_nodes == []


class TestMemoryCheckpointer:
    """Tests for MemoryCheckpointer."""

    @pytest.mark.asyncio
    async def test_get_returns_latest(self, checkpointer):
        await checkpointer.put(make_checkpoint(step=1))
        await checkpointer.put(make_checkpoint(step=2))

        latest = await checkpointer.get("t1")

        assert latest.step == 2

    @pytest.mark.asyncio
    async def test_get_unknown_thread(self, checkpointer):
        assert await checkpointer.get("missing") is None

    @pytest.mark.asyncio
    async def test_list_newest_first(self, checkpointer):
        for step in range(3):
            await checkpointer.put(make_checkpoint(step=step))

        history = await checkpointer.list("t1")

        assert [cp.step for cp in history] == [2, 1, 0]

    @pytest.mark.asyncio
    async def test_history_cap_keeps_latest(self):
        checkpointer = MemoryCheckpointer(max_checkpoints_per_thread=2)
        for step in range(5):
            await checkpointer.put(make_checkpoint(step=step))

        history = await checkpointer.list("t1")

        assert [cp.step for cp in history] == [4, 3]

    @pytest.mark.asyncio
    async def test_export_shape(self, checkpointer):
        await checkpointer.put(make_checkpoint(thread_id="a"))
        await checkpointer.put(make_checkpoint(thread_id="b"))

        blob = checkpointer.export_state()

        assert blob["version"] == STORE_FORMAT_VERSION
        assert set(blob["threads"]) == {"a", "b"}
        assert checkpointer.thread_ids() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_import_export_preserves_snapshots(self, checkpointer):
        app = build_ask_graph().compile(checkpointer)
        await app.invoke({"seed": 1}, thread_id="t1")
        before = await app.get_state("t1")

        restored = MemoryCheckpointer()
        restored.import_state(json.loads(json.dumps(checkpointer.export_state())))
        after = await build_ask_graph().compile(restored).get_state("t1")

        assert after == before

    def test_import_unknown_version_raises(self, checkpointer):
        with pytest.raises(PersistenceError, match="Unsupported"):
            checkpointer.import_state({"version": 99, "threads": {}})

    def test_import_missing_threads_raises(self, checkpointer):
        with pytest.raises(PersistenceError):
            checkpointer.import_state({"version": STORE_FORMAT_VERSION})

    def test_import_malformed_checkpoint_raises(self, checkpointer):
        with pytest.raises(PersistenceError, match="Malformed"):
            checkpointer.import_state(
                {"version": STORE_FORMAT_VERSION, "threads": {"t1": [{"state": {}}]}}
            )


class TestWorkflowStatePersistence:
    """Tests for the on-disk document."""

    def test_missing_file_reads_none(self, tmp_path):
        assert WorkflowStatePersistence(tmp_path / "state.json").read_state() is None

    def test_empty_file_reads_none(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("   ")
        assert WorkflowStatePersistence(path).read_state() is None

    def test_corrupt_file_reads_none(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert WorkflowStatePersistence(path).read_state() is None

    def test_non_object_reads_none(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2]")
        assert WorkflowStatePersistence(path).read_state() is None

    def test_unreadable_path_raises(self, tmp_path):
        # A directory where the file should be cannot be read as text
        path = tmp_path / "state.json"
        path.mkdir()
        with pytest.raises(PersistenceError):
            WorkflowStatePersistence(path).read_state()

    def test_write_then_read(self, tmp_path):
        persistence = WorkflowStatePersistence(tmp_path / "nested" / "state.json")

        persistence.write_state({"version": 1, "threads": {}})

        assert persistence.read_state() == {"version": 1, "threads": {}}

    def test_write_leaves_no_temp_files(self, tmp_path):
        persistence = WorkflowStatePersistence(tmp_path / "state.json")

        persistence.write_state({"a": 1})
        persistence.write_state({"a": 2})

        assert os.listdir(tmp_path) == ["state.json"]
        assert json.loads((tmp_path / "state.json").read_text()) == {"a": 2}

    def test_failed_write_keeps_previous_document(self, tmp_path):
        persistence = WorkflowStatePersistence(tmp_path / "state.json")
        persistence.write_state({"a": 1})

        circular: dict = {}
        circular["self"] = circular
        with pytest.raises(PersistenceError):
            persistence.write_state(circular)

        assert persistence.read_state() == {"a": 1}
        assert os.listdir(tmp_path) == ["state.json"]

    def test_non_json_value_is_not_stringified(self, tmp_path):
        persistence = WorkflowStatePersistence(tmp_path / "state.json")
        persistence.write_state({"a": 1})

        with pytest.raises(PersistenceError, match="Failed to write workflow state"):
            persistence.write_state({"a": 2, "when": date(2025, 1, 1)})

        assert persistence.read_state() == {"a": 1}
        assert os.listdir(tmp_path) == ["state.json"]


class TestJSONFileCheckpointer:
    """Tests for the file-backed checkpointer."""

    @pytest.mark.asyncio
    async def test_persist_and_reload(self, tmp_path):
        path = tmp_path / "workflow-state.json"
        first = JSONFileCheckpointer(path)
        first.load()
        app = build_ask_graph().compile(first)
        await app.invoke({}, thread_id="t1")
        first.persist()

        second = JSONFileCheckpointer(path)
        second.load()
        result = await build_ask_graph().compile(second).invoke(
            Resume({"text": "hi"}), thread_id="t1"
        )

        assert result.completed
        assert result.state["answer"] == "hi"

    def test_load_once_unless_forced(self, tmp_path):
        path = tmp_path / "workflow-state.json"
        checkpointer = JSONFileCheckpointer(path)
        checkpointer.load()
        assert checkpointer.loaded

        path.write_text(json.dumps({"version": STORE_FORMAT_VERSION, "threads": {}}))
        checkpointer.load()
        assert checkpointer.thread_ids() == []

        path.write_text(
            json.dumps(
                {
                    "version": STORE_FORMAT_VERSION,
                    "threads": {"t9": [make_checkpoint(thread_id="t9").to_dict()]},
                }
            )
        )
        checkpointer.load(force=True)
        assert checkpointer.thread_ids() == ["t9"]

    @pytest.mark.asyncio
    async def test_deleted_file_starts_empty(self, tmp_path):
        """Deleting the store between calls loses threads without crashing."""
        path = tmp_path / "workflow-state.json"
        first = JSONFileCheckpointer(path)
        first.load()
        await build_ask_graph().compile(first).invoke({}, thread_id="t1")
        first.persist()

        path.unlink()
        second = JSONFileCheckpointer(path)
        second.load()
        app = build_ask_graph().compile(second)

        assert await app.get_state("t1") is None
        with pytest.raises(EngineInvariantError):
            await app.invoke(Resume({"text": "hi"}), thread_id="t1")

    def test_max_checkpoints_passed_through(self, tmp_path):
        checkpointer = JSONFileCheckpointer(tmp_path / "s.json", max_checkpoints_per_thread=3)
        assert checkpointer.max_checkpoints_per_thread == 3
        assert checkpointer.path == tmp_path / "s.json"
