"""
Dispatch outcome types.

Routing, selection and commit failures are returned as values rather than
raised, so callers can branch on them as ordinary data:

* ``RouteUnavailable``  -- one routing call failed (absorbed per candidate)
* ``SelectionFailure``  -- no usable ambulance (``NoCandidates``,
  ``NoLocatedCandidates``, ``NoRouteFound``)
* ``AssignmentConflict`` / ``PersistenceError`` -- the commit did not apply
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Literal, Optional, Union

from .entities import RouteEstimate, Vehicle


@dataclass(frozen=True)
class RouteUnavailable:
    reason: str


# ── Selection ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Selected:
    vehicle: Vehicle
    estimate: RouteEstimate
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class SelectionFailure:
    """Base for every "no usable ambulance" result.  Safe to retry later."""

    reason: ClassVar[str] = "selection_failed"
    ok: ClassVar[bool] = False

    candidates: int = 0


class NoCandidates(SelectionFailure):
    reason = "no_candidates"


class NoLocatedCandidates(SelectionFailure):
    reason = "no_located_candidates"


@dataclass(frozen=True)
class NoRouteFound(SelectionFailure):
    reason = "no_route_found"

    timed_out: bool = False


SelectionResult = Union[Selected, SelectionFailure]


# ── Commit ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Committed:
    booking_id: int
    vehicle_id: int
    estimate: RouteEstimate
    estimated_arrival: datetime
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Requeued:
    booking_id: int
    vehicle_id: Optional[int]
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class AssignmentConflict:
    """A compare-and-swap precondition failed; another writer won the race."""

    booking_id: int
    vehicle_id: Optional[int]
    stale: Literal["vehicle", "booking"]
    reason: ClassVar[str] = "assignment_conflict"
    ok: ClassVar[bool] = False


@dataclass(frozen=True)
class PersistenceError:
    booking_id: int
    vehicle_id: Optional[int]
    detail: str
    reason: ClassVar[str] = "persistence_error"
    ok: ClassVar[bool] = False


@dataclass(frozen=True)
class Skipped:
    """Dispatch was not attempted (booking missing or no longer pending)."""

    booking_id: int
    detail: str
    reason: ClassVar[str] = "skipped"
    ok: ClassVar[bool] = False
    found: bool = True


CommitResult = Union[Committed, AssignmentConflict, PersistenceError]
RequeueResult = Union[Requeued, AssignmentConflict, PersistenceError]
DispatchOutcome = Union[
    Committed, SelectionFailure, AssignmentConflict, PersistenceError, Skipped
]
