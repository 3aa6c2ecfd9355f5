"""Exceptions raised at the boundary of the depot planning engine."""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for all errors raised by the planning engine."""


class ValidationError(PlannerError, ValueError):
    """Raised when a record or operation argument is malformed."""


class UnknownAllocationError(PlannerError, KeyError):
    def __init__(self, allocation_id: str) -> None:
        self.allocation_id = allocation_id
        super().__init__(f"Allocation {allocation_id!r} not found")

    def __str__(self) -> str:
        return self.args[0]


class UnknownTrackError(PlannerError, KeyError):
    def __init__(self, track_id: str) -> None:
        self.track_id = track_id
        super().__init__(f"Track {track_id!r} not found")

    def __str__(self) -> str:
        return self.args[0]


class UnknownFacilityError(PlannerError, KeyError):
    def __init__(self, facility_id: str) -> None:
        self.facility_id = facility_id
        super().__init__(f"Facility {facility_id!r} not found")

    def __str__(self) -> str:
        return self.args[0]


class SessionStateError(PlannerError):
    """Raised when a session operation is not valid in the current state."""
