"""
Rules deciding which organiser edits an election still accepts.

Each check raises instead of returning a flag so routes can run them in
sequence and let the error handler report the first violation.
"""
from datetime import datetime
from typing import Iterable, Optional

from ..errors import Conflict, PhaseViolation
from .phase import Phase, derive_phase

SCHEDULE_FIELDS = ("registration_start", "registration_end", "voting_start", "voting_end", "auto_transition")
VOTER_LOCKED_FIELDS = ("security_level", "require_location")
VOTE_LOCKED_FIELDS = ("allow_vote_update",)


def check_election_update(election, changed_fields: Iterable[str], voter_count: int, vote_count: int,
                          now: Optional[datetime] = None) -> None:
    """Reject an update touching fields that are frozen at this point of the election."""
    changed = set(changed_fields)

    schedule_changes = changed.intersection(SCHEDULE_FIELDS)
    if schedule_changes and derive_phase(election, now) is Phase.CLOSED:
        raise PhaseViolation(
            "The schedule of a closed election cannot be changed",
            details={"fields": sorted(schedule_changes)},
        )

    voter_locked = changed.intersection(VOTER_LOCKED_FIELDS)
    if voter_locked and voter_count > 0:
        raise Conflict(
            "Security and location settings cannot change once voters have registered",
            details={"fields": sorted(voter_locked), "voter_count": voter_count},
        )

    vote_locked = changed.intersection(VOTE_LOCKED_FIELDS)
    if vote_locked and vote_count > 0:
        raise Conflict(
            "Vote update policy cannot change once votes have been cast",
            details={"fields": sorted(vote_locked), "vote_count": vote_count},
        )


def check_ballot_item_change(kind: str, vote_count: int) -> None:
    """Adding or editing positions, candidates or regions."""
    if vote_count > 0:
        raise Conflict(
            f"Cannot add or edit a {kind} once votes have been cast",
            details={"vote_count": vote_count},
        )


def check_ballot_item_removal(kind: str, voter_count: int) -> None:
    """Removing positions, candidates or regions."""
    if voter_count > 0:
        raise Conflict(
            f"Cannot remove a {kind} once voters have registered",
            details={"voter_count": voter_count},
        )


def check_region_removal(voter_count: int, assigned_voter_count: int) -> None:
    if assigned_voter_count > 0:
        raise Conflict(
            "Cannot remove a region that voters are assigned to",
            details={"assigned_voter_count": assigned_voter_count},
        )
    check_ballot_item_removal("region", voter_count)
