from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func

from ..extensions import db
from ..models.election import Election
from ..models.vote import Vote
from ..models.voter import Voter
from .phase import Phase


def _percentage(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def results_visible(election: Election, phase: Phase, is_verified_voter: bool) -> bool:
    return (
        election.results_visibility == "public"
        or (election.results_visibility == "voters" and is_verified_voter)
        or (election.show_live_results and phase is Phase.VOTING)
        or phase is Phase.CLOSED
    )


def tally_positions(election: Election, voter_id=None) -> List[Dict]:
    """Per-position candidate counts, plus ``voter_id``'s current choice if given."""
    rows = (
        db.session.query(Vote.position_id, Vote.candidate_id, func.count(Vote.id))
        .filter(Vote.election_id == election.id)
        .group_by(Vote.position_id, Vote.candidate_id)
        .all()
    )
    counts = {(position_id, candidate_id): n for position_id, candidate_id, n in rows}
    position_totals: Counter = Counter()
    for (position_id, _), n in counts.items():
        position_totals[position_id] += n

    current: Dict = {}
    if voter_id is not None:
        current = {
            v.position_id: v.candidate_id
            for v in Vote.query.filter_by(election_id=election.id, voter_id=voter_id).all()
        }

    results = []
    for position in election.positions:
        total = position_totals[position.id]
        current_choice = current.get(position.id)
        results.append({
            "id": str(position.id),
            "title": position.title,
            "total_votes": total,
            "current_vote": str(current_choice) if current_choice else None,
            "candidates": [
                {
                    "id": str(c.id),
                    "name": c.name,
                    "votes": counts.get((position.id, c.id), 0),
                    "percentage": _percentage(counts.get((position.id, c.id), 0), total),
                }
                for c in position.candidates
            ],
        })
    return results


def region_turnout(election: Election, voters_who_voted: set) -> Optional[List[Dict]]:
    if not election.regions:
        return None

    registered = dict(
        db.session.query(Voter.region_id, func.count(Voter.id))
        .filter(Voter.election_id == election.id)
        .group_by(Voter.region_id)
        .all()
    )
    voted: Counter = Counter()
    if voters_who_voted:
        for (region_id,) in (
            db.session.query(Voter.region_id)
            .filter(Voter.election_id == election.id, Voter.id.in_(voters_who_voted))
            .all()
        ):
            if region_id is not None:
                voted[region_id] += 1

    return [
        {
            "id": str(region.id),
            "name": region.name,
            "registered": registered.get(region.id, 0),
            "voted": voted[region.id],
            "turnout": _percentage(voted[region.id], registered.get(region.id, 0)),
        }
        for region in election.regions
    ]


def election_stats(election: Election) -> Dict:
    total_voters = election.voter_count()
    total_votes = election.vote_count()
    voters_who_voted = {
        voter_id
        for (voter_id,) in db.session.query(Vote.voter_id).filter(Vote.election_id == election.id).distinct()
    }

    return {
        "total_voters": total_voters,
        "total_votes": total_votes,
        "voters_who_voted": len(voters_who_voted),
        "turnout": _percentage(len(voters_who_voted), total_voters),
        "positions": tally_positions(election),
        "regions": region_turnout(election, voters_who_voted),
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }
