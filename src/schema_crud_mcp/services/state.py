"""Lifecycle state of the process-wide CRUD service.

`CrudServiceManager` builds the `CrudService` (engine, schema provider,
executor) on a background thread and records where that stands here, so tool
calls and the ``/health`` route can tell a pending database connection from
a failed or stopped one.

Phases move IDLE -> STARTING -> READY or FAILED. STOPPED is set by shutdown
from any phase and is final; an initialization that completes afterwards is
discarded.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Final


class ServiceInitPhase(Enum):
    """Where the CRUD service is in its lifecycle."""

    IDLE = auto()
    STARTING = auto()
    READY = auto()
    FAILED = auto()
    STOPPED = auto()


@dataclass(frozen=True)
class ServiceInitState:
    """Immutable snapshot reported by `CrudServiceManager.status`.

    Attributes:
        phase: Current lifecycle phase
        started_at: Epoch seconds when the background initialization began
        completed_at: Epoch seconds when it reached READY or FAILED
        error_message: Why initialization failed, for FAILED only
        dialect: SQLAlchemy dialect name of the connected database, once READY
    """

    phase: ServiceInitPhase
    started_at: float | None = None
    completed_at: float | None = None
    error_message: str | None = None
    dialect: str | None = None


# Tool calls in these phases report "initialization in progress"
INIT_NOT_READY_PHASES: Final[set[ServiceInitPhase]] = {
    ServiceInitPhase.IDLE,
    ServiceInitPhase.STARTING,
}
