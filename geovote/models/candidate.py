import uuid
from datetime import datetime
from ..extensions import db


class Candidate(db.Model):
    __tablename__ = "candidates"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    position_id = db.Column(db.Uuid, db.ForeignKey("positions.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
