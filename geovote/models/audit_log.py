import uuid
from datetime import datetime
from ..extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    ACTOR_ORGANIZER = "organizer"
    ACTOR_VOTER = "voter"
    ACTOR_SYSTEM = "system"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)

    # Who performed the action: organizer e-mail, voter e-mail or "system"
    actor = db.Column(db.String(255), nullable=False)
    actor_type = db.Column(db.String(20), nullable=False, default=ACTOR_SYSTEM)

    # What happened, e.g. election.update, voter.vote_cast
    action = db.Column(db.String(80), nullable=False, index=True)
    # No FK: the trail outlives deleted elections
    election_id = db.Column(db.Uuid, nullable=True, index=True)

    # Request context
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
