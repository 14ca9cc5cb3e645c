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

"""Core infrastructure for magen.

This package provides:
- Error taxonomy and the structured ErrorHandler
- Logging setup, including the JSON-lines workflow log
"""

from magen.core.errors import (
    ArtifactError,
    ConfigurationError,
    EngineInvariantError,
    ErrorCategory,
    ErrorHandler,
    ErrorInfo,
    ErrorSeverity,
    GraphRecursionError,
    MagenError,
    NodeExecutionError,
    NodeTimeoutError,
    PersistenceError,
    StateMergeError,
    ValidationError,
)
from magen.core.workflow_logger import configure_logging, get_workflow_logger

__all__ = [
    # Errors
    "ArtifactError",
    "ConfigurationError",
    "EngineInvariantError",
    "ErrorCategory",
    "ErrorHandler",
    "ErrorInfo",
    "ErrorSeverity",
    "GraphRecursionError",
    "MagenError",
    "NodeExecutionError",
    "NodeTimeoutError",
    "PersistenceError",
    "StateMergeError",
    "ValidationError",
    # Logging
    "configure_logging",
    "get_workflow_logger",
]
