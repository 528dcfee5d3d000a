from .organizer import Organizer  # noqa: F401
from .election import Election  # noqa: F401
from .position import Position  # noqa: F401
from .candidate import Candidate  # noqa: F401
from .region import Region  # noqa: F401
from .custom_field import CustomField  # noqa: F401
from .voter import Voter  # noqa: F401
from .vote import Vote  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
from .revoked_token import RevokedToken  # noqa: F401

# Import ALL models so SQLAlchemy registers them

__all__ = [
    "Organizer",
    "Election",
    "Position",
    "Candidate",
    "Region",
    "CustomField",
    "Voter",
    "Vote",
    "AuditLog",
    "RevokedToken",
]
