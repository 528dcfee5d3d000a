"""
Ballot casting.

``cast_ballot`` runs its gate checks in a fixed order and only then touches
the votes table. The replace step (delete the voter's previous votes, insert
the new set) happens in a single transaction under a row lock on the voter,
so a reader sees either the whole old ballot or the whole new one.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import (
    BallotValidationError,
    Conflict,
    EligibilityViolation,
    NotFound,
    PersistenceFailure,
    VoteUpdateNotAllowed,
)
from ..extensions import db
from ..models.election import Election
from ..models.vote import Vote
from ..models.voter import Voter
from .phase import Phase, require_phase


@dataclass(frozen=True)
class Selection:
    position_id: object
    candidate_id: object


@dataclass(frozen=True)
class CastResult:
    voter_id: object
    updated: bool
    vote_count: int


def validate_ballot(election: Election, selections: Sequence[Selection]) -> None:
    """Reject the first selection that doesn't fit this election's ballot."""
    if not selections:
        raise BallotValidationError("Must vote for at least one position")

    seen = set()
    for selection in selections:
        if selection.position_id in seen:
            raise BallotValidationError(
                "Duplicate vote for the same position",
                details={"position_id": str(selection.position_id)},
            )
        seen.add(selection.position_id)

        position = election.find_position(selection.position_id)
        if position is None:
            raise BallotValidationError(
                f"Invalid position: {selection.position_id}",
                details={"position_id": str(selection.position_id)},
            )

        if position.find_candidate(selection.candidate_id) is None:
            raise BallotValidationError(
                f"Invalid candidate for position {position.title}",
                details={
                    "position_id": str(selection.position_id),
                    "candidate_id": str(selection.candidate_id),
                },
            )


def _lock_voter(election: Election, voter_id) -> Optional[Voter]:
    # FOR UPDATE serialises concurrent casts by the same voter; other voters
    # lock other rows and are not blocked.
    return (
        Voter.query
        .filter_by(id=voter_id, election_id=election.id)
        .with_for_update()
        .first()
    )


def _replace_votes(election: Election, voter: Voter, selections: Iterable[Selection], updating: bool) -> List[Vote]:
    if updating:
        Vote.query.filter_by(election_id=election.id, voter_id=voter.id).delete(synchronize_session="fetch")

    votes = [
        Vote(
            election_id=election.id,
            voter_id=voter.id,
            position_id=s.position_id,
            candidate_id=s.candidate_id,
        )
        for s in selections
    ]
    db.session.add_all(votes)
    db.session.flush()
    return votes


def cast_ballot(
    election: Election,
    voter_id,
    selections: Sequence[Selection],
    now: Optional[datetime] = None,
) -> CastResult:
    require_phase(election, Phase.VOTING, "Voting is not currently open", now)

    try:
        voter = _lock_voter(election, voter_id)
        if not voter:
            raise NotFound("Voter not found")
        if not voter.email_verified:
            raise EligibilityViolation("Email not verified", details={"voter_id": str(voter.id)})

        validate_ballot(election, selections)

        updating = (
            db.session.query(Vote.id)
            .filter_by(election_id=election.id, voter_id=voter.id)
            .first()
        ) is not None

        if updating and not election.allow_vote_update:
            raise VoteUpdateNotAllowed(
                "You have already voted and vote updates are not allowed",
                details={"voter_id": str(voter.id)},
            )

        votes = _replace_votes(election, voter, selections, updating)
        db.session.commit()

    except IntegrityError as exc:
        # Two first casts for the same voter raced past the lock (e.g. SQLite)
        db.session.rollback()
        current_app.logger.info("Concurrent ballot for voter=%s rejected", voter_id)
        raise Conflict(
            "Another ballot for this voter was recorded at the same time",
            details={"voter_id": str(voter_id)},
        ) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("DB error while casting ballot")
        raise PersistenceFailure("Failed to record vote; no changes were made") from exc
    except Exception:
        # Release the row lock before reporting a rejection
        db.session.rollback()
        raise

    current_app.logger.info(
        "Ballot %s election=%s voter=%s positions=%d",
        "updated" if updating else "cast", election.id, voter.id, len(votes),
    )
    return CastResult(voter_id=voter.id, updated=updating, vote_count=len(votes))
