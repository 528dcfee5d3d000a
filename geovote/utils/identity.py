import uuid
from typing import Optional

from flask_jwt_extended import get_jwt_identity

from ..extensions import db
from ..models.organizer import Organizer


def current_organizer() -> Optional[Organizer]:
    """Active organizer behind the verified JWT, or None. Use under @jwt_required()."""
    try:
        organizer_id = uuid.UUID(get_jwt_identity())
    except (TypeError, ValueError):
        return None
    organizer = db.session.get(Organizer, organizer_id)
    if organizer is None or not organizer.is_active:
        return None
    return organizer
