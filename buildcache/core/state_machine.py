"""Restore state machine.

Enforces the restore lifecycle
``idle -> locating_release -> downloading -> reassembling -> verifying
-> extracting -> done`` with ``aborted`` reachable from every non-terminal
state.  Every transition is logged and kept in an in-memory history.
"""

from __future__ import annotations

import logging

from buildcache.core.errors import BuildCacheError
from buildcache.models.states import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    RestoreState,
    StateTransition,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(BuildCacheError):
    """Raised when a requested state transition is not valid."""

    label = "invalid state transition"


class RestoreStateMachine:
    """Tracks the state of a single restore invocation."""

    def __init__(self) -> None:
        self._state = RestoreState.IDLE
        self._history: list[StateTransition] = []

    @property
    def state(self) -> RestoreState:
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """Snapshot of every transition taken so far."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def transition(
        self, target: RestoreState, *, reason: str | None = None
    ) -> StateTransition:
        """Move to *target*, raising ``InvalidTransitionError`` if disallowed."""
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        record = StateTransition(
            from_state=self._state, to_state=target, reason=reason
        )
        self._history.append(record)
        self._state = target

        if target == RestoreState.ABORTED:
            logger.warning(
                "Restore aborted in %s: %s", record.from_state.value, reason or "no reason"
            )
        else:
            logger.info("Restore %s -> %s", record.from_state.value, target.value)
        return record

    def abort(self, reason: str) -> StateTransition | None:
        """Abort unless already terminal; returns the transition taken."""
        if self.is_terminal:
            return None
        return self.transition(RestoreState.ABORTED, reason=reason)

    def get_available_transitions(self) -> set[RestoreState]:
        """Return the set of valid target states from the current state."""
        return set(VALID_TRANSITIONS.get(self._state, set()))
