"""
Session phase state machine definitions.

This module defines the canonical session phases and the allowed transitions
between them. It is intentionally passive and validation-only: the
orchestrator consults it before replacing its state and refuses (and logs)
any transition not listed here.
"""

from __future__ import annotations

# Terminal phases: once reached, the machine instance is done with this run.
SESSION_TERMINAL_PHASES: frozenset[str] = frozenset(
    {
        "invalid",
        "ended",
    }
)


# Allowed phase transitions.
#
# Key   : previous phase
# Value : set of allowed next phases
#
# Notes:
# - loading -> loading covers a superseding load (navigating to another session).
# - ready -> loading covers reloading content before the run has started.
# - running -> running is every in-run state update (visit edits, advancement).
# - Nothing leaves "ended"; "invalid" may only be left by a fresh load.
SESSION_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "loading": frozenset(
        {
            "loading",
            "invalid",
            "ready",
            "ended",
        }
    ),

    "invalid": frozenset(
        {
            "loading",
        }
    ),

    "ready": frozenset(
        {
            "loading",
            "running",
        }
    ),

    "running": frozenset(
        {
            "running",
            "ended",
        }
    ),

    "ended": frozenset(),
}


def is_terminal_phase(phase: str) -> bool:
    """Return True if the given phase is terminal."""
    return phase in SESSION_TERMINAL_PHASES


def is_valid_transition(prev_phase: str, next_phase: str) -> bool:
    """Return True if the transition prev_phase -> next_phase is allowed."""
    allowed = SESSION_ALLOWED_TRANSITIONS.get(prev_phase)
    if allowed is None:
        return False
    return next_phase in allowed
