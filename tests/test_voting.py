import threading

import pytest
from sqlalchemy.exc import SQLAlchemyError

from geovote.errors import (
    BallotValidationError,
    EligibilityViolation,
    NotFound,
    PersistenceFailure,
    PhaseViolation,
    VoteUpdateNotAllowed,
)
from geovote import create_app
from geovote.config import TestingConfig
from geovote.extensions import db
from geovote.models import Candidate, Election, Organizer, Position, Vote, Voter
from geovote.services import voting
from geovote.services.voting import Selection, cast_ballot


def _voter(election, email="v@example.com", verified=True):
    voter = Voter(election_id=election.id, email=email, email_verified=verified)
    db.session.add(voter)
    db.session.commit()
    return voter


def _ballot(election, pick=0):
    return [Selection(p.id, p.candidates[pick].id) for p in election.positions]


def _choices(voter):
    return {v.position_id: v.candidate_id for v in Vote.query.filter_by(voter_id=voter.id).all()}


@pytest.fixture
def voting_election(make_election):
    return make_election(status=Election.STATUS_VOTING, positions=2, allow_vote_update=True)


def test_first_cast(voting_election):
    voter = _voter(voting_election)
    result = cast_ballot(voting_election, voter.id, _ballot(voting_election))

    assert result.updated is False
    assert result.vote_count == 2
    assert _choices(voter) == {p.id: p.candidates[0].id for p in voting_election.positions}


def test_update_replaces_whole_ballot(voting_election):
    voter = _voter(voting_election)
    cast_ballot(voting_election, voter.id, _ballot(voting_election, pick=0))

    first = voting_election.positions[0]
    result = cast_ballot(voting_election, voter.id, [Selection(first.id, first.candidates[1].id)])

    assert result.updated is True
    # the second position's old vote is gone, not kept
    assert _choices(voter) == {first.id: first.candidates[1].id}
    assert Vote.query.filter_by(voter_id=voter.id).count() == 1


def test_update_refused_when_disabled(make_election):
    election = make_election(status=Election.STATUS_VOTING, allow_vote_update=False)
    voter = _voter(election)
    cast_ballot(election, voter.id, _ballot(election, pick=0))

    with pytest.raises(VoteUpdateNotAllowed) as exc:
        cast_ballot(election, voter.id, _ballot(election, pick=1))
    assert exc.value.status_code == 409
    assert _choices(voter) == {election.positions[0].id: election.positions[0].candidates[0].id}


def test_voting_phase_required(make_election):
    election = make_election(status=Election.STATUS_REGISTRATION)
    voter = _voter(election)
    with pytest.raises(PhaseViolation):
        cast_ballot(election, voter.id, _ballot(election))


def test_unverified_voter_refused(voting_election):
    voter = _voter(voting_election, verified=False)
    with pytest.raises(EligibilityViolation) as exc:
        cast_ballot(voting_election, voter.id, _ballot(voting_election))
    assert exc.value.message == "Email not verified"
    assert exc.value.status_code == 403
    assert Vote.query.filter_by(voter_id=voter.id).count() == 0


def test_unknown_voter(voting_election, make_election):
    stranger = _voter(make_election(status=Election.STATUS_VOTING))
    with pytest.raises(NotFound):
        cast_ballot(voting_election, stranger.id, _ballot(voting_election))


def test_duplicate_position_rejected(voting_election):
    voter = _voter(voting_election)
    position = voting_election.positions[0]
    ballot = [Selection(position.id, position.candidates[0].id), Selection(position.id, position.candidates[1].id)]

    with pytest.raises(BallotValidationError) as exc:
        cast_ballot(voting_election, voter.id, ballot)
    assert exc.value.details == {"position_id": str(position.id)}
    assert Vote.query.count() == 0


def test_candidate_from_other_position_rejected(voting_election):
    voter = _voter(voting_election)
    first, second = voting_election.positions
    with pytest.raises(BallotValidationError):
        cast_ballot(voting_election, voter.id, [Selection(first.id, second.candidates[0].id)])


def test_empty_ballot_rejected(voting_election):
    voter = _voter(voting_election)
    with pytest.raises(BallotValidationError):
        cast_ballot(voting_election, voter.id, [])


def test_failed_replace_keeps_previous_ballot(voting_election, monkeypatch):
    voter = _voter(voting_election)
    cast_ballot(voting_election, voter.id, _ballot(voting_election, pick=0))
    before = _choices(voter)

    real_replace = voting._replace_votes

    def failing_replace(election, voter, selections, updating):
        real_replace(election, voter, selections, updating)
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(voting, "_replace_votes", failing_replace)

    with pytest.raises(PersistenceFailure) as exc:
        cast_ballot(voting_election, voter.id, _ballot(voting_election, pick=1))
    assert exc.value.status_code == 503

    assert _choices(voter) == before
    assert Vote.query.filter_by(voter_id=voter.id).count() == 2


@pytest.fixture
def file_app(tmp_path):
    # Threads need separate connections to one database, so no :memory: here
    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ballots.db'}"

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def test_concurrent_replacements_never_expose_partial_ballot(file_app):
    organizer = Organizer(email="board@example.com", name="Election Board")
    organizer.set_password("StrongPass123")
    db.session.add(organizer)
    db.session.commit()

    election = Election(
        organizer_id=organizer.id,
        title="Student Council",
        status=Election.STATUS_VOTING,
        allow_vote_update=True,
    )
    for p in range(3):
        position = Position(title=f"Position {p + 1}", display_order=p)
        position.candidates.extend(Candidate(name=f"Candidate {p + 1}.{c + 1}", display_order=c) for c in range(2))
        election.positions.append(position)
    db.session.add(election)
    db.session.commit()

    voter = _voter(election)
    cast_ballot(election, voter.id, _ballot(election, pick=0))
    election_id, voter_id = election.id, voter.id
    db.session.rollback()

    errors, partial_reads = [], []
    done = threading.Event()

    def writer(offset):
        with file_app.app_context():
            try:
                for i in range(30):
                    local = db.session.get(Election, election_id)
                    cast_ballot(local, voter_id, _ballot(local, pick=(i + offset) % 2))
            except Exception as exc:  # collected and asserted below
                errors.append(exc)

    def reader():
        with file_app.app_context():
            while not done.is_set():
                seen = Vote.query.filter_by(voter_id=voter_id).count()
                if seen != 3:
                    partial_reads.append(seen)
                db.session.rollback()

    writers = [threading.Thread(target=writer, args=(n,)) for n in range(2)]
    watcher = threading.Thread(target=reader)
    watcher.start()
    for t in writers:
        t.start()
    for t in writers:
        t.join()
    done.set()
    watcher.join()

    assert errors == []
    assert partial_reads == []
    db.session.expire_all()
    assert Vote.query.filter_by(voter_id=voter_id).count() == 3
