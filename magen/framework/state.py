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

"""State channels and merge rules for StateGraph workflows.

Workflow state is a plain dict. Each key is a channel with a merge rule:

    - REPLACE (default): the newest non-None value wins
    - APPEND: values are concatenated onto the existing list

A node returns a *partial* update. Keys it leaves out, and keys it sets to
None, never clear what is already in the state.

Example:
    from typing import Annotated, Optional, TypedDict
    from magen.framework.state import APPEND, StateSchema, merge_state

    class BuildState(TypedDict, total=False):
        projectPath: str
        errors: Annotated[list[str], APPEND]

    schema = StateSchema.from_typed_dict(BuildState)
    state = merge_state(schema, {"errors": ["a"]}, {"errors": ["b"]})
    # {"errors": ["a", "b"]}
"""

from __future__ import annotations

import copy
import logging
import typing
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, get_args, get_origin, get_type_hints

from magen.core.errors import StateMergeError

logger = logging.getLogger(__name__)


class MergeRule(str, Enum):
    """How a channel combines an update with its existing value.

    Attributes:
        REPLACE: Newest non-None value overwrites
        APPEND: New value(s) are concatenated onto the existing list
    """

    REPLACE = "replace"
    APPEND = "append"


# Markers for Annotated[...] channel declarations
APPEND = MergeRule.APPEND
REPLACE = MergeRule.REPLACE


@dataclass(frozen=True)
class Channel:
    """A single state key and its merge rule.

    Attributes:
        name: State key
        rule: Merge rule for updates to this key
        default_factory: Builds the value seeded into a fresh thread state
    """

    name: str
    rule: MergeRule = MergeRule.REPLACE
    default_factory: Optional[Callable[[], Any]] = None

    def initial_value(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        if self.rule is MergeRule.APPEND:
            return []
        return None


def _unwrap_required(hint: Any) -> Any:
    """Strip Required[...] / NotRequired[...] wrappers from a TypedDict hint."""
    wrappers = tuple(
        w for w in (getattr(typing, "Required", None), getattr(typing, "NotRequired", None)) if w
    )
    while wrappers and get_origin(hint) in wrappers:
        hint = get_args(hint)[0]
    return hint


def _rule_from_hint(hint: Any) -> MergeRule:
    hint = _unwrap_required(hint)
    if get_origin(hint) is typing.Annotated:
        for marker in hint.__metadata__:
            if isinstance(marker, MergeRule):
                return marker
    return MergeRule.REPLACE


class StateSchema:
    """Declared channels of a workflow state.

    Keys that are not declared are accepted and merged with REPLACE.
    """

    def __init__(self, channels: Optional[Iterable[Channel]] = None):
        self._channels: dict[str, Channel] = {}
        for channel in channels or ():
            if channel.name in self._channels:
                raise ValueError(f"Channel '{channel.name}' declared twice")
            self._channels[channel.name] = channel

    @classmethod
    def from_typed_dict(cls, state_type: type) -> "StateSchema":
        """Build a schema from a TypedDict.

        Keys annotated ``Annotated[list[X], APPEND]`` get the APPEND rule;
        every other key gets REPLACE.

        Args:
            state_type: TypedDict class describing the state

        Returns:
            StateSchema with one channel per annotated key
        """
        hints = get_type_hints(state_type, include_extras=True)
        return cls(Channel(name=key, rule=_rule_from_hint(hint)) for key, hint in hints.items())

    @property
    def channels(self) -> dict[str, Channel]:
        return dict(self._channels)

    def rule_for(self, key: str) -> MergeRule:
        channel = self._channels.get(key)
        if channel is None:
            return MergeRule.REPLACE
        return channel.rule

    def initial_state(self, input_state: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """Build the state a fresh thread starts from.

        Channels with an initial value are seeded first, then the caller's
        input is merged on top with the usual merge rules.
        """
        seeded: dict[str, Any] = {}
        for name, channel in self._channels.items():
            value = channel.initial_value()
            if value is not None:
                seeded[name] = value
        return merge_state(self, seeded, input_state)

    def merge(
        self, old_state: Mapping[str, Any], update: Optional[Mapping[str, Any]]
    ) -> dict[str, Any]:
        return merge_state(self, old_state, update)

    def __contains__(self, key: object) -> bool:
        return key in self._channels

    def __repr__(self) -> str:
        return f"StateSchema(channels={list(self._channels)})"


def merge_state(
    schema: Optional[StateSchema],
    old_state: Mapping[str, Any],
    update: Optional[Mapping[str, Any]],
) -> dict[str, Any]:
    """Merge a partial update into a state, returning a new dict.

    ``old_state`` is never mutated. Updated values are deep-copied so a node
    that keeps a reference to what it returned cannot change the state later.

    Args:
        schema: Channel declarations (None merges every key with REPLACE)
        old_state: Current state
        update: Partial update returned by a node

    Returns:
        The merged state

    Raises:
        StateMergeError: If the update is not a mapping, or an APPEND channel
            currently holds something other than a list
    """
    merged = dict(old_state)
    if update is None:
        return merged
    if not isinstance(update, Mapping):
        raise StateMergeError(
            f"State update must be a mapping, got {type(update).__name__}",
        )

    for key, value in update.items():
        if value is None:
            continue

        rule = schema.rule_for(key) if schema is not None else MergeRule.REPLACE
        if schema is not None and key not in schema:
            logger.debug(f"Merging undeclared state key: {key}")

        value = copy.deepcopy(value)
        if rule is MergeRule.APPEND:
            existing = merged.get(key)
            if existing is None:
                existing = []
            elif not isinstance(existing, list):
                raise StateMergeError(
                    f"Cannot append to non-list value of type {type(existing).__name__}",
                    key=key,
                )
            items = list(value) if isinstance(value, (list, tuple)) else [value]
            merged[key] = [*existing, *items]
        else:
            merged[key] = value

    return merged


__all__ = [
    "APPEND",
    "REPLACE",
    "Channel",
    "MergeRule",
    "StateMergeError",
    "StateSchema",
    "merge_state",
]
