import uuid
from datetime import datetime
from ..extensions import db


class Voter(db.Model):
    __tablename__ = "voters"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    election_id = db.Column(db.Uuid, db.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)

    # Region matched at registration; never reassigned
    region_id = db.Column(db.Uuid, db.ForeignKey("regions.id"), nullable=True, index=True)
    device_fingerprint = db.Column(db.String(255), nullable=True, index=True)
    custom_field_values = db.Column(db.JSON, nullable=False, default=dict)

    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    verification_code_hash = db.Column(db.String(255), nullable=True)
    verification_expires_at = db.Column(db.DateTime, nullable=True)

    # Audit copy of the coordinate used for the region match
    location_lat = db.Column(db.Float, nullable=True)
    location_lng = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    votes = db.relationship("Vote", backref="voter", lazy=True, cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint("election_id", "email", name="uq_voters_election_email"),
    )
