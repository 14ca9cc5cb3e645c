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

"""Checkpointer implementations for StateGraph persistence.

The hosting process exits between every round trip with the caller, so the
whole checkpoint store is exported to a single JSON document after each call
and imported again at the start of the next one.

Implementations:
    - MemoryCheckpointer: In-process storage (tests, and the working copy
      used between import and export)
    - WorkflowStatePersistence: Atomic read/write of the exported document
    - JSONFileCheckpointer: MemoryCheckpointer bound to a state file

Example:
    from magen.framework.checkpointer import JSONFileCheckpointer
    from magen.framework.graph import StateGraph

    checkpointer = JSONFileCheckpointer("~/.magen/workflow-state.json")
    checkpointer.load()

    app = graph.compile(checkpointer=checkpointer)
    result = await app.invoke(initial_state, thread_id="prd-1700000000000-a1b2c3")

    checkpointer.persist()
"""

from __future__ import annotations

import builtins
import json
import logging
import os
import tempfile
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol, Union, runtime_checkable

from magen.core.errors import PersistenceError
from magen.framework.interrupts import Interrupt

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class CheckpointStatus(str, Enum):
    """Where a thread stood when its checkpoint was written."""

    RUNNING = "running"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"


@dataclass
class WorkflowCheckpoint:
    """Snapshot of one thread after a step.

    Attributes:
        checkpoint_id: Unique identifier
        thread_id: Thread this checkpoint belongs to
        state: Workflow state after the last completed node
        next_nodes: Nodes still pending execution
        status: Running, interrupted or completed
        interrupt: Pending interrupt when status is INTERRUPTED
        resume_values: Values already supplied to the pending node
        step: Number of nodes completed so far in this thread
        timestamp: Creation time (epoch seconds)
        parent_id: Checkpoint this one was derived from
        metadata: Free-form metadata
    """

    checkpoint_id: str
    thread_id: str
    state: dict[str, Any]
    next_nodes: list[str] = field(default_factory=list)
    status: CheckpointStatus = CheckpointStatus.RUNNING
    interrupt: Optional[Interrupt] = None
    resume_values: list[Any] = field(default_factory=list)
    step: int = 0
    timestamp: float = field(default_factory=time.time)
    parent_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "checkpoint_id": self.checkpoint_id,
            "thread_id": self.thread_id,
            "state": self.state,
            "next_nodes": list(self.next_nodes),
            "status": self.status.value,
            "interrupt": self.interrupt.to_dict() if self.interrupt else None,
            "resume_values": list(self.resume_values),
            "step": self.step,
            "timestamp": self.timestamp,
            "parent_id": self.parent_id,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowCheckpoint":
        """Create from dict."""
        interrupt_data = data.get("interrupt")
        return cls(
            checkpoint_id=data["checkpoint_id"],
            thread_id=data["thread_id"],
            state=data.get("state", {}),
            next_nodes=list(data.get("next_nodes", [])),
            status=CheckpointStatus(data.get("status", CheckpointStatus.RUNNING.value)),
            interrupt=Interrupt.from_dict(interrupt_data) if interrupt_data else None,
            resume_values=list(data.get("resume_values", [])),
            step=data.get("step", 0),
            timestamp=data.get("timestamp", 0.0),
            parent_id=data.get("parent_id"),
            metadata=data.get("metadata", {}),
        )


@runtime_checkable
class CheckpointerProtocol(Protocol):
    """Protocol for checkpoint persistence."""

    async def put(self, checkpoint: WorkflowCheckpoint) -> None:
        """Store a checkpoint; the newest one per thread wins."""
        ...

    async def get(self, thread_id: str) -> Optional[WorkflowCheckpoint]:
        """Latest checkpoint for a thread, or None."""
        ...

    async def list(self, thread_id: str) -> builtins.list[WorkflowCheckpoint]:
        """All checkpoints for a thread, newest first."""
        ...

    def export_state(self) -> dict[str, Any]:
        """Serialize the whole store."""
        ...

    def import_state(self, blob: dict[str, Any]) -> None:
        """Replace the whole store with a previously exported blob."""
        ...


class MemoryCheckpointer:
    """In-memory checkpointer.

    Keeps an ordered history per thread. ``max_checkpoints_per_thread`` caps
    the history so long-running review loops do not grow the exported
    document without bound; the latest checkpoint is always kept.
    """

    def __init__(self, max_checkpoints_per_thread: Optional[int] = None) -> None:
        self._checkpoints: dict[str, builtins.list[WorkflowCheckpoint]] = {}
        self.max_checkpoints_per_thread = max_checkpoints_per_thread

    async def put(self, checkpoint: WorkflowCheckpoint) -> None:
        history = self._checkpoints.setdefault(checkpoint.thread_id, [])
        history.append(checkpoint)
        limit = self.max_checkpoints_per_thread
        if limit is not None and len(history) > limit:
            del history[: len(history) - limit]
        logger.debug(
            f"Stored checkpoint {checkpoint.checkpoint_id} for thread "
            f"{checkpoint.thread_id} ({checkpoint.status.value})"
        )

    async def get(self, thread_id: str) -> Optional[WorkflowCheckpoint]:
        history = self._checkpoints.get(thread_id)
        if history:
            return history[-1]
        return None

    async def list(self, thread_id: str) -> builtins.list[WorkflowCheckpoint]:
        return list(reversed(self._checkpoints.get(thread_id, [])))

    def thread_ids(self) -> builtins.list[str]:
        return list(self._checkpoints)

    def export_state(self) -> dict[str, Any]:
        """Serialize every thread's history to a JSON-compatible dict.

        Returns:
            ``{"version": 1, "threads": {thread_id: [checkpoint, ...]}}``
        """
        return {
            "version": STORE_FORMAT_VERSION,
            "threads": {
                thread_id: [cp.to_dict() for cp in history]
                for thread_id, history in self._checkpoints.items()
            },
        }

    def import_state(self, blob: dict[str, Any]) -> None:
        """Replace the in-memory store with an exported blob.

        Raises:
            PersistenceError: If the blob has an unknown version or shape
        """
        version = blob.get("version")
        if version != STORE_FORMAT_VERSION:
            raise PersistenceError(f"Unsupported checkpoint store version: {version!r}")

        threads = blob.get("threads")
        if not isinstance(threads, dict):
            raise PersistenceError("Checkpoint store is missing its 'threads' mapping")

        try:
            imported = {
                thread_id: [WorkflowCheckpoint.from_dict(cp) for cp in history]
                for thread_id, history in threads.items()
            }
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed checkpoint in store: {e}", cause=e) from e

        self._checkpoints = imported
        logger.debug(f"Imported checkpoints for {len(imported)} thread(s)")

    def clear(self) -> None:
        self._checkpoints.clear()


class WorkflowStatePersistence:
    """Reads and writes the exported checkpoint store on disk.

    Writes go to a temporary file in the same directory which is then renamed
    over the target, so a reader never sees a half-written document.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(os.path.expanduser(str(path)))

    def read_state(self) -> Optional[dict[str, Any]]:
        """Read the stored document.

        Returns:
            The parsed document, or None when the file is missing, empty or
            not valid JSON (a fresh store)

        Raises:
            PersistenceError: If the file exists but cannot be read
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"No workflow state file at {self.path}; starting with an empty store")
            return None
        except OSError as e:
            raise PersistenceError(
                f"Failed to read workflow state: {e}", path=str(self.path), cause=e
            ) from e

        if not content.strip():
            logger.warning(f"Workflow state file is empty: {self.path}")
            return None

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unparseable workflow state file {self.path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring workflow state file with unexpected shape: {self.path}")
            return None
        return data

    def write_state(self, blob: dict[str, Any]) -> None:
        """Atomically replace the stored document.

        Raises:
            PersistenceError: If the document cannot be written
        """
        tmp_path: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(blob, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(
                f"Failed to write workflow state: {e}", path=str(self.path), cause=e
            ) from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.debug(f"Wrote workflow state to: {self.path}")


class JSONFileCheckpointer(MemoryCheckpointer):
    """Checkpointer whose store is loaded from and saved to one JSON file.

    Checkpoints are held in memory while a call runs. ``load()`` pulls the
    file in and ``persist()`` writes the full store back.
    """

    def __init__(
        self,
        path: Union[str, Path],
        max_checkpoints_per_thread: Optional[int] = None,
    ) -> None:
        super().__init__(max_checkpoints_per_thread=max_checkpoints_per_thread)
        self.persistence = WorkflowStatePersistence(path)
        self._loaded = False

    @property
    def path(self) -> Path:
        return self.persistence.path

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self, force: bool = False) -> None:
        """Import the state file into memory.

        A missing or unparseable file leaves the store empty. Without
        ``force`` the file is read at most once per instance.
        """
        if self._loaded and not force:
            return

        blob = self.persistence.read_state()
        if blob is None:
            self.clear()
        else:
            self.import_state(blob)
            logger.info(f"Imported existing workflow state from {self.path}")
        self._loaded = True

    def persist(self) -> None:
        """Export the in-memory store and write it to the state file."""
        self.persistence.write_state(self.export_state())
        logger.info(f"Workflow state persisted to {self.path}")


__all__ = [
    "CheckpointStatus",
    "CheckpointerProtocol",
    "JSONFileCheckpointer",
    "MemoryCheckpointer",
    "STORE_FORMAT_VERSION",
    "WorkflowCheckpoint",
    "WorkflowStatePersistence",
]
