import uuid
from ..extensions import db


class CustomField(db.Model):
    __tablename__ = "custom_fields"

    FIELD_TYPES = ("text", "number", "dropdown", "phone")

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    election_id = db.Column(db.Uuid, db.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)

    label = db.Column(db.String(200), nullable=False)
    field_type = db.Column(db.String(20), nullable=False, default="text")
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    options = db.Column(db.JSON, nullable=False, default=list)
    display_order = db.Column(db.Integer, nullable=False, default=0)
