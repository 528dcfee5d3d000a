"""
Election phase engine.

The phase is never stored: it is derived from the organiser-set status, the
auto-transition flag, the four schedule instants and the current time.
Everything here is pure; callers pass ``now`` in tests and let it default to
``datetime.utcnow()`` in request code.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..errors import PhaseViolation


class ElectionStatus(str, Enum):
    DRAFT = "draft"
    REGISTRATION = "registration"
    VOTING = "voting"
    CLOSED = "closed"


class Phase(str, Enum):
    DRAFT = "draft"
    BEFORE_REGISTRATION = "before_registration"
    REGISTRATION = "registration"
    BETWEEN_PHASES = "between_phases"
    VOTING = "voting"
    CLOSED = "closed"


PHASE_LABELS = {
    Phase.DRAFT: "Draft",
    Phase.BEFORE_REGISTRATION: "Upcoming",
    Phase.REGISTRATION: "Registration Open",
    Phase.BETWEEN_PHASES: "Registration Closed",
    Phase.VOTING: "Voting Open",
    Phase.CLOSED: "Closed",
}

STATUS_ORDER = (
    ElectionStatus.DRAFT,
    ElectionStatus.REGISTRATION,
    ElectionStatus.VOTING,
    ElectionStatus.CLOSED,
)


@dataclass(frozen=True)
class ElectionSchedule:
    """Detached snapshot of the fields ``derive_phase`` reads."""

    status: str
    auto_transition: bool = True
    registration_start: Optional[datetime] = None
    registration_end: Optional[datetime] = None
    voting_start: Optional[datetime] = None
    voting_end: Optional[datetime] = None

    @classmethod
    def from_election(cls, election) -> "ElectionSchedule":
        return cls(
            status=election.status,
            auto_transition=bool(election.auto_transition),
            registration_start=election.registration_start,
            registration_end=election.registration_end,
            voting_start=election.voting_start,
            voting_end=election.voting_end,
        )


def _voting_ended(election, now: datetime) -> bool:
    return election.voting_end is not None and now > election.voting_end


def _registration_window(election, now: datetime) -> Optional[Phase]:
    """Where ``now`` sits relative to the registration dates, if they say anything."""
    start, end = election.registration_start, election.registration_end

    if start is not None and now < start:
        return Phase.BEFORE_REGISTRATION
    if start is not None and (end is None or now <= end):
        return Phase.REGISTRATION
    if end is not None and now > end:
        return Phase.BETWEEN_PHASES
    return None


def _scheduled_phase(election, status: ElectionStatus, now: datetime) -> Phase:
    if _voting_ended(election, now):
        return Phase.CLOSED

    # Past the end was handled above, so a started window is an open one.
    if election.voting_start is not None and election.voting_start <= now:
        return Phase.VOTING

    # Organiser opened voting without a start date.
    if status is ElectionStatus.VOTING and election.voting_start is None:
        return Phase.VOTING

    window = _registration_window(election, now)
    if window is not None:
        return window

    # Only reachable with a registration end but no start, which schedule
    # validation refuses; kept so legacy rows still resolve.
    return Phase(status.value)


def _manual_phase(election, status: ElectionStatus, now: datetime) -> Phase:
    if status is ElectionStatus.VOTING:
        return Phase.CLOSED if _voting_ended(election, now) else Phase.VOTING

    # status is registration: voting dates are ignored until the organiser
    # raises the status.
    return _registration_window(election, now) or Phase.REGISTRATION


def derive_phase(election, now: Optional[datetime] = None) -> Phase:
    """
    Authoritative phase of ``election`` at ``now``.

    ``election`` is anything exposing ``status``, ``auto_transition`` and the
    four schedule attributes: an ORM ``Election`` or an ``ElectionSchedule``.
    """
    now = now or datetime.utcnow()
    status = ElectionStatus(election.status)

    if status is ElectionStatus.DRAFT:
        return Phase.DRAFT
    if status is ElectionStatus.CLOSED:
        return Phase.CLOSED

    if election.auto_transition:
        return _scheduled_phase(election, status, now)
    return _manual_phase(election, status, now)


def require_phase(election, expected: Phase, message: str, now: Optional[datetime] = None) -> Phase:
    phase = derive_phase(election, now)
    if phase is not expected:
        raise PhaseViolation(message, details={"phase": phase.value})
    return phase


def can_transition_status(current: str, new: str) -> bool:
    """Organiser status moves forward only; closed is terminal."""
    current_status, new_status = ElectionStatus(current), ElectionStatus(new)
    if current_status is new_status:
        return True
    if current_status is ElectionStatus.CLOSED:
        return False
    return STATUS_ORDER.index(new_status) > STATUS_ORDER.index(current_status)
