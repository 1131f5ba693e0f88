"""Restore state machine models — deterministic transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RestoreState(str, Enum):
    """States of one restore invocation."""

    IDLE = "idle"
    LOCATING_RELEASE = "locating_release"
    DOWNLOADING = "downloading"
    REASSEMBLING = "reassembling"
    VERIFYING = "verifying"
    EXTRACTING = "extracting"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_STATES: frozenset[RestoreState] = frozenset(
    {RestoreState.DONE, RestoreState.ABORTED}
)

# Valid state transitions, enforced by RestoreStateMachine.
# Every non-terminal state may abort; terminal states have no outgoing edges.
VALID_TRANSITIONS: dict[RestoreState, set[RestoreState]] = {
    RestoreState.IDLE: {RestoreState.LOCATING_RELEASE, RestoreState.ABORTED},
    RestoreState.LOCATING_RELEASE: {RestoreState.DOWNLOADING, RestoreState.ABORTED},
    RestoreState.DOWNLOADING: {RestoreState.REASSEMBLING, RestoreState.ABORTED},
    RestoreState.REASSEMBLING: {RestoreState.VERIFYING, RestoreState.ABORTED},
    RestoreState.VERIFYING: {RestoreState.EXTRACTING, RestoreState.ABORTED},
    RestoreState.EXTRACTING: {RestoreState.DONE, RestoreState.ABORTED},
    RestoreState.DONE: set(),  # terminal
    RestoreState.ABORTED: set(),  # terminal
}


class StateTransition(BaseModel):
    """Records a single state transition for diagnostics."""

    model_config = ConfigDict(frozen=True)

    from_state: RestoreState
    to_state: RestoreState
    reason: str | None = None  # populated when entering ABORTED
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class StagingPolicy(str, Enum):
    """When the restore staging area is deleted."""

    ON_SUCCESS = "on_success"  # keep it after a failure for diagnosis
    ALWAYS = "always"
    NEVER = "never"

    def should_clean(self, succeeded: bool) -> bool:
        if self is StagingPolicy.ALWAYS:
            return True
        if self is StagingPolicy.NEVER:
            return False
        return succeeded
