"""
Error types raised by the simulation core.

A skipped action is not an error: it is recorded on the trace and the run
continues. Everything here is fatal to the run that raised it.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for simulation failures."""


class LedgerCallFailed(SimulationError):
    """The ledger backend rejected or failed a call."""

    def __init__(self, call: str, cause: BaseException):
        self.call = call
        self.cause = cause
        super().__init__(f"ledger call {call} failed: {cause}")


class InvariantViolation(SimulationError):
    """A core consistency check failed; indicates a modeling bug."""


class SimulationAborted(SimulationError):
    """
    A run stopped on a fatal error.

    Carries the partial SimulationState so the caller can still report the
    ticks completed before the failure. When the failing tick's action
    reached the ledger before metrics sampling failed, its trace record is
    kept on `record`.
    """

    def __init__(
        self,
        state,
        tick: int,
        action_kind: str | None,
        cause: SimulationError,
        record=None,
    ):
        self.state = state
        self.tick = tick
        self.action_kind = action_kind
        self.cause = cause
        self.record = record
        kind = action_kind or "n/a"
        super().__init__(f"run aborted at tick {tick} (action={kind}): {cause}")


def require(condition: bool, message: str) -> None:
    """Raise InvariantViolation unless condition holds."""
    if not condition:
        raise InvariantViolation(message)
