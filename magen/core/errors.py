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

"""Centralized error handling for magen workflows.

This module provides:
- Exception types for graph validation, node execution, engine invariants
  and checkpoint persistence
- Error handler utility with structured logging
- Correlation IDs so a failure can be matched to its workflow log lines
"""

from __future__ import annotations

import logging
import traceback
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""

    # Graph definition errors
    GRAPH_VALIDATION = "graph_validation"

    # Runtime errors
    NODE_EXECUTION = "node_execution"
    NODE_TIMEOUT = "node_timeout"
    ENGINE_INVARIANT = "engine_invariant"
    RECURSION_LIMIT = "recursion_limit"
    STATE_MERGE = "state_merge"

    # Storage errors
    PERSISTENCE = "persistence"
    ARTIFACT = "artifact"

    # Configuration errors
    CONFIG_INVALID = "config_invalid"

    # Input errors
    INVALID_INPUT = "invalid_input"

    # System errors
    FILE_PERMISSION = "file_permission"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# =============================================================================
# Custom Exception Types
# =============================================================================


class MagenError(Exception):
    """Base exception for all magen errors.

    Provides structured error information including:
    - Error category and severity
    - Correlation ID for tracking
    - Recovery suggestions
    - Original exception chain
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        correlation_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.recovery_hint = recovery_hint
        self.correlation_id = correlation_id or str(uuid.uuid4())[:8]
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        result = f"[{self.correlation_id}] {self.message}"
        if self.recovery_hint:
            result += f"\nRecovery hint: {self.recovery_hint}"
        return result


class ValidationError(MagenError):
    """A graph definition is malformed.

    Raised at build or compile time, never while a thread is running.
    ``errors`` lists every problem found, not only the first one.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("category", ErrorCategory.GRAPH_VALIDATION)
        kwargs.setdefault(
            "recovery_hint",
            "Fix the graph definition: every edge must reference a declared node "
            "and every node must be reachable from the single entry point.",
        )
        super().__init__(message, **kwargs)
        self.errors = list(errors or [])
        self.details["errors"] = self.errors


class NodeExecutionError(MagenError):
    """A node failed while running."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("category", ErrorCategory.NODE_EXECUTION)
        super().__init__(message, **kwargs)
        self.node_id = node_id
        self.details["node_id"] = node_id


class NodeTimeoutError(NodeExecutionError):
    """A node exceeded its configured timeout."""

    def __init__(self, node_id: str, timeout: float, **kwargs: Any):
        super().__init__(
            f"Node '{node_id}' timed out after {timeout}s",
            node_id=node_id,
            category=ErrorCategory.NODE_TIMEOUT,
            recovery_hint="Increase the node timeout or make the node's I/O faster.",
            **kwargs,
        )
        self.timeout = timeout
        self.details["timeout"] = timeout


class StateMergeError(MagenError):
    """A partial update could not be merged into the thread state."""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.STATE_MERGE)
        super().__init__(message, **kwargs)
        self.key = key
        self.details["key"] = key


class EngineInvariantError(MagenError):
    """The engine found a thread in a state it must never be in.

    Examples: pending work with no interrupt to resume, a resume value for a
    thread that is not suspended, or a router that names an unknown node.
    """

    def __init__(
        self,
        message: str,
        thread_id: Optional[str] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("category", ErrorCategory.ENGINE_INVARIANT)
        kwargs.setdefault("severity", ErrorSeverity.CRITICAL)
        super().__init__(message, **kwargs)
        self.thread_id = thread_id
        self.details["thread_id"] = thread_id


class GraphRecursionError(EngineInvariantError):
    """One invoke call executed more nodes than the recursion limit allows."""

    def __init__(self, limit: int, thread_id: Optional[str] = None, **kwargs: Any):
        super().__init__(
            f"Recursion limit of {limit} node executions reached without suspending",
            thread_id=thread_id,
            category=ErrorCategory.RECURSION_LIMIT,
            recovery_hint=(
                "A cycle in the graph never reaches END or an interrupt. "
                "Check the routing conditions, or raise the recursion limit."
            ),
            **kwargs,
        )
        self.limit = limit
        self.details["limit"] = limit


class PersistenceError(MagenError):
    """The checkpoint store could not be read or written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("category", ErrorCategory.PERSISTENCE)
        kwargs.setdefault(
            "recovery_hint",
            "Check that the well-known directory exists and is writable.",
        )
        super().__init__(message, **kwargs)
        self.path = str(path) if path is not None else None
        self.details["path"] = self.path


class ArtifactError(MagenError):
    """A workflow artifact could not be located, read or written."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.ARTIFACT)
        super().__init__(message, **kwargs)
        self.path = str(path) if path is not None else None
        self.details["path"] = self.path


class ConfigurationError(MagenError):
    """Settings are missing or invalid."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.CONFIG_INVALID)
        super().__init__(message, **kwargs)
        self.config_key = config_key
        self.details["config_key"] = config_key


# =============================================================================
# Error Reporting
# =============================================================================


@dataclass
class ErrorInfo:
    """What ErrorHandler recorded about one failure."""

    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    correlation_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    details: Dict[str, Any] = field(default_factory=dict)
    recovery_hint: Optional[str] = None
    traceback: Optional[str] = None
    original_exception: Optional[str] = None

    @property
    def thread_id(self) -> Optional[str]:
        return self.details.get("thread_id")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
            "recovery_hint": self.recovery_hint,
            "traceback": self.traceback,
            "original_exception": self.original_exception,
        }

    def to_user_message(self) -> str:
        """Message suitable for returning to the tool caller."""
        if not self.recovery_hint:
            return self.message
        return f"{self.message}\n\nSuggestion: {self.recovery_hint}"


_SEVERITY_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

# Checked in order; first match wins
_BUILTIN_CATEGORIES: List[tuple[Any, ErrorCategory, Optional[str]]] = [
    (PermissionError, ErrorCategory.FILE_PERMISSION, "Check permissions on the project directory."),
    (TimeoutError, ErrorCategory.NODE_TIMEOUT, "Check the node's external calls."),
    (OSError, ErrorCategory.PERSISTENCE, "Check that the project directory is writable."),
    (KeyError, ErrorCategory.NODE_EXECUTION, "A node read a state key that was never set."),
    ((ValueError, TypeError), ErrorCategory.INVALID_INPUT, "Check input values and types."),
]


class ErrorHandler:
    """Logs failures of orchestrator calls and keeps a short history.

    Usage:
        handler = ErrorHandler()

        try:
            await orchestrator.handle_request(request)
        except Exception as e:
            handler.handle(e, context={"thread_id": thread_id})
            raise
    """

    def __init__(
        self,
        logger_name: str = "magen",
        include_traceback: bool = True,
        max_history: int = 100,
    ):
        self.logger = logging.getLogger(logger_name)
        self.include_traceback = include_traceback
        self._history: Deque[ErrorInfo] = deque(maxlen=max_history)

    def handle(
        self,
        exception: Exception,
        context: Optional[Dict[str, Any]] = None,
        log_level: Optional[int] = None,
    ) -> ErrorInfo:
        """Record and log an exception.

        Args:
            exception: The exception being handled
            context: Extra details, e.g. thread and tool IDs
            log_level: Overrides the level derived from the severity

        Returns:
            The recorded ErrorInfo
        """
        info = self.describe(exception, context)
        self._log(info, log_level)
        self._history.append(info)
        return info

    def describe(self, exception: Exception, context: Optional[Dict[str, Any]] = None) -> ErrorInfo:
        trace = traceback.format_exc() if self.include_traceback else None

        if isinstance(exception, MagenError):
            return ErrorInfo(
                message=exception.message,
                category=exception.category,
                severity=exception.severity,
                correlation_id=exception.correlation_id,
                timestamp=exception.timestamp,
                details={**exception.details, **(context or {})},
                recovery_hint=exception.recovery_hint,
                traceback=trace,
                original_exception=str(exception.cause) if exception.cause else None,
            )

        category, hint = ErrorCategory.UNKNOWN, None
        for types, candidate, candidate_hint in _BUILTIN_CATEGORIES:
            if isinstance(exception, types):
                category, hint = candidate, candidate_hint
                break

        return ErrorInfo(
            message=str(exception),
            category=category,
            severity=ErrorSeverity.ERROR,
            correlation_id=str(uuid.uuid4())[:8],
            details=dict(context or {}),
            recovery_hint=hint,
            traceback=trace,
            original_exception=type(exception).__name__,
        )

    def _log(self, info: ErrorInfo, log_level: Optional[int] = None) -> None:
        level = log_level if log_level is not None else _SEVERITY_LEVELS[info.severity]
        message = f"[{info.correlation_id}] {info.category.value}: {info.message}"
        if info.details:
            message += f" | details: {info.details}"

        self.logger.log(level, message, extra={"correlation_id": info.correlation_id})
        if info.traceback:
            self.logger.debug(f"[{info.correlation_id}] Traceback:\n{info.traceback}")

    def get_recent_errors(self, count: int = 10) -> List[ErrorInfo]:
        return list(self._history)[-count:]

    def clear_history(self) -> None:
        self._history.clear()


__all__ = [
    "ErrorCategory",
    "ErrorSeverity",
    "MagenError",
    "ValidationError",
    "NodeExecutionError",
    "NodeTimeoutError",
    "StateMergeError",
    "EngineInvariantError",
    "GraphRecursionError",
    "PersistenceError",
    "ArtifactError",
    "ConfigurationError",
    "ErrorInfo",
    "ErrorHandler",
]
