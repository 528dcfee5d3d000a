import uuid
from datetime import datetime
from ..extensions import db


class Position(db.Model):
    __tablename__ = "positions"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    election_id = db.Column(db.Uuid, db.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    candidates = db.relationship(
        "Candidate",
        backref="position",
        lazy=True,
        order_by="Candidate.display_order",
        cascade="all, delete-orphan",
    )

    def find_candidate(self, candidate_id):
        return next((c for c in self.candidates if c.id == candidate_id), None)
