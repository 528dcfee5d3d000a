import uuid
from datetime import datetime
from ..extensions import db
from ..services.geofence import parse_geometry


class Region(db.Model):
    __tablename__ = "regions"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    election_id = db.Column(db.Uuid, db.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    # Wire form: {"type": "circle", "center": [lng, lat], "radiusMeters": r}
    # or {"type": "polygon"|"rectangle", "ring": [[lng, lat], ...]}
    geometry = db.Column(db.JSON, nullable=False)
    buffer_meters = db.Column(db.Float, nullable=False, default=20.0)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    voters = db.relationship("Voter", backref="region", lazy=True)

    @property
    def shape(self):
        return parse_geometry(self.geometry)
