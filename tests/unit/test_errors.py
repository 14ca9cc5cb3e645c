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

"""Tests for the error taxonomy and ErrorHandler."""

import logging

import pytest

from magen.core.errors import (
    ArtifactError,
    EngineInvariantError,
    ErrorCategory,
    ErrorHandler,
    ErrorSeverity,
    GraphRecursionError,
    MagenError,
    NodeExecutionError,
    NodeTimeoutError,
    PersistenceError,
    ValidationError,
)


class TestMagenError:
    """Tests for the base error."""

    def test_defaults(self):
        error = MagenError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.UNKNOWN
        assert error.severity == ErrorSeverity.ERROR
        assert len(error.correlation_id) == 8

    def test_str_includes_recovery_hint(self):
        error = MagenError("boom", recovery_hint="try again")
        assert "boom" in str(error)
        assert "Recovery hint: try again" in str(error)

    def test_to_dict(self):
        error = MagenError("boom", details={"a": 1})
        data = error.to_dict()
        assert data["error"] == "boom"
        assert data["category"] == "unknown"
        assert data["details"] == {"a": 1}
        assert "timestamp" in data


class TestErrorTypes:
    """Tests for the specific error types."""

    def test_validation_error_lists_errors(self):
        error = ValidationError("Invalid graph", errors=["a", "b"])
        assert error.errors == ["a", "b"]
        assert error.details["errors"] == ["a", "b"]
        assert error.category == ErrorCategory.GRAPH_VALIDATION

    def test_node_timeout_is_node_execution_error(self):
        error = NodeTimeoutError("slow", 1.5)
        assert isinstance(error, NodeExecutionError)
        assert error.node_id == "slow"
        assert error.timeout == 1.5
        assert error.category == ErrorCategory.NODE_TIMEOUT

    def test_recursion_error_is_engine_invariant(self):
        error = GraphRecursionError(10, thread_id="t-1")
        assert isinstance(error, EngineInvariantError)
        assert error.limit == 10
        assert error.thread_id == "t-1"
        assert error.severity == ErrorSeverity.CRITICAL

    def test_persistence_error_path(self):
        error = PersistenceError("cannot write", path="/tmp/x.json")
        assert error.path == "/tmp/x.json"
        assert error.details["path"] == "/tmp/x.json"

    def test_artifact_error_category(self):
        error = ArtifactError("bad id")
        assert error.category == ErrorCategory.ARTIFACT
        assert error.path is None


class TestErrorHandler:
    """Tests for ErrorHandler."""

    def test_handle_magen_error_merges_context(self):
        handler = ErrorHandler(include_traceback=False)
        error = NodeExecutionError("failed", node_id="n1")

        info = handler.handle(error, context={"thread_id": "t-1"})

        assert info.correlation_id == error.correlation_id
        assert info.details["node_id"] == "n1"
        assert info.details["thread_id"] == "t-1"
        assert info.traceback is None

    def test_handle_standard_exception_is_categorized(self):
        handler = ErrorHandler(include_traceback=False)

        info = handler.handle(PermissionError("denied"))

        assert info.category == ErrorCategory.FILE_PERMISSION
        assert info.original_exception == "PermissionError"

    def test_history_is_capped(self):
        handler = ErrorHandler(include_traceback=False, max_history=3)
        for i in range(5):
            handler.handle(ValueError(str(i)))

        recent = handler.get_recent_errors(10)
        assert [e.message for e in recent] == ["2", "3", "4"]

        handler.clear_history()
        assert handler.get_recent_errors() == []

    def test_logs_at_severity_level(self, caplog):
        handler = ErrorHandler(logger_name="magen.test", include_traceback=False)

        with caplog.at_level(logging.DEBUG, logger="magen.test"):
            handler.handle(EngineInvariantError("corrupt", thread_id="t-1"))

        records = [r for r in caplog.records if r.name == "magen.test"]
        assert records[0].levelno == logging.CRITICAL
        assert "engine_invariant" in records[0].getMessage()

    def test_user_message_includes_suggestion(self):
        handler = ErrorHandler(include_traceback=False)
        info = handler.handle(ValidationError("Invalid graph"))
        assert "Suggestion:" in info.to_user_message()


@pytest.mark.parametrize(
    "error",
    [
        ValidationError("x"),
        NodeExecutionError("x"),
        PersistenceError("x"),
        ArtifactError("x"),
    ],
)
def test_all_errors_are_magen_errors(error):
    assert isinstance(error, MagenError)
