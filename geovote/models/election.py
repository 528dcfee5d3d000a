import uuid
from datetime import datetime
from ..extensions import db
from ..services.phase import ElectionStatus, can_transition_status
from ..utils.security import generate_share_code


class Election(db.Model):
    __tablename__ = "elections"

    STATUS_DRAFT = ElectionStatus.DRAFT.value
    STATUS_REGISTRATION = ElectionStatus.REGISTRATION.value
    STATUS_VOTING = ElectionStatus.VOTING.value
    STATUS_CLOSED = ElectionStatus.CLOSED.value
    VALID_STATUSES = tuple(s.value for s in ElectionStatus)

    SECURITY_CASUAL = "casual"
    SECURITY_STANDARD = "standard"
    SECURITY_STRICT = "strict"
    SECURITY_LEVELS = (SECURITY_CASUAL, SECURITY_STANDARD, SECURITY_STRICT)

    RESULTS_VISIBILITY = ("organizer", "voters", "public")

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    organizer_id = db.Column(db.Uuid, db.ForeignKey("organizers.id", ondelete="CASCADE"), nullable=False, index=True)
    share_code = db.Column(db.String(16), nullable=False, unique=True, index=True, default=generate_share_code)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")

    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT)
    auto_transition = db.Column(db.Boolean, nullable=False, default=True)

    registration_start = db.Column(db.DateTime, nullable=True)
    registration_end = db.Column(db.DateTime, nullable=True)
    voting_start = db.Column(db.DateTime, nullable=True)
    voting_end = db.Column(db.DateTime, nullable=True)

    require_location = db.Column(db.Boolean, nullable=False, default=False)
    allow_vote_update = db.Column(db.Boolean, nullable=False, default=False)
    security_level = db.Column(db.String(20), nullable=False, default=SECURITY_STANDARD)
    show_live_results = db.Column(db.Boolean, nullable=False, default=False)
    results_visibility = db.Column(db.String(20), nullable=False, default="organizer")

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    positions = db.relationship(
        "Position",
        backref="election",
        lazy=True,
        order_by="Position.display_order",
        cascade="all, delete-orphan",
    )
    regions = db.relationship(
        "Region",
        backref="election",
        lazy=True,
        order_by="Region.display_order",
        cascade="all, delete-orphan",
    )
    custom_fields = db.relationship(
        "CustomField",
        backref="election",
        lazy=True,
        order_by="CustomField.display_order",
        cascade="all, delete-orphan",
    )
    voters = db.relationship("Voter", backref="election", lazy=True, cascade="all, delete-orphan")
    votes = db.relationship("Vote", backref="election", lazy=True, cascade="all")

    def voter_count(self) -> int:
        from .voter import Voter
        return db.session.query(db.func.count(Voter.id)).filter(Voter.election_id == self.id).scalar() or 0

    def vote_count(self) -> int:
        from .vote import Vote
        return db.session.query(db.func.count(Vote.id)).filter(Vote.election_id == self.id).scalar() or 0

    def find_position(self, position_id):
        return next((p for p in self.positions if p.id == position_id), None)

    def find_region(self, region_id):
        return next((r for r in self.regions if r.id == region_id), None)

    def change_status(self, new_status: str) -> None:
        if new_status not in self.VALID_STATUSES:
            raise ValueError(f"Unknown status: {new_status}")
        if not can_transition_status(self.status, new_status):
            raise ValueError(f"Cannot move election from {self.status} to {new_status}")
        self.status = new_status
