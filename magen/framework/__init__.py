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

"""Workflow engine.

Graphs are built with StateGraph, compiled against a checkpointer, and run
one invoke at a time. A node suspends the thread by returning the
Suspended value it got from NodeContext.request_input.
"""

from magen.framework.checkpointer import (
    CheckpointStatus,
    JSONFileCheckpointer,
    MemoryCheckpointer,
    WorkflowCheckpoint,
    WorkflowStatePersistence,
)
from magen.framework.graph import (
    END,
    START,
    CompiledGraph,
    GraphExecutionResult,
    StateGraph,
    StateSnapshot,
)
from magen.framework.interrupts import (
    Interrupt,
    NodeContext,
    Resume,
    Suspended,
    ToolInvocationRequest,
)
from magen.framework.state import APPEND, REPLACE, MergeRule, StateSchema, merge_state

__all__ = [
    # Graph
    "END",
    "START",
    "CompiledGraph",
    "GraphExecutionResult",
    "StateGraph",
    "StateSnapshot",
    # State
    "APPEND",
    "REPLACE",
    "MergeRule",
    "StateSchema",
    "merge_state",
    # Interrupts
    "Interrupt",
    "NodeContext",
    "Resume",
    "Suspended",
    "ToolInvocationRequest",
    # Checkpointing
    "CheckpointStatus",
    "JSONFileCheckpointer",
    "MemoryCheckpointer",
    "WorkflowCheckpoint",
    "WorkflowStatePersistence",
]
