import uuid
from datetime import datetime
from ..extensions import db


class Vote(db.Model):
    __tablename__ = "votes"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)

    election_id = db.Column(db.Uuid, db.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_id = db.Column(db.Uuid, db.ForeignKey("voters.id", ondelete="CASCADE"), nullable=False, index=True)
    position_id = db.Column(db.Uuid, db.ForeignKey("positions.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_id = db.Column(db.Uuid, db.ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        # At most one vote per voter per position
        db.UniqueConstraint("voter_id", "position_id", name="uq_votes_voter_position"),
        db.Index("ix_votes_election_position_candidate", "election_id", "position_id", "candidate_id"),
    )
