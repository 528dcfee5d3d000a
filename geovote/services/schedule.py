from datetime import datetime
from typing import List, Mapping, Optional


def validate_schedule(fields: Mapping[str, Optional[datetime]], allow_past: bool = False,
                      now: Optional[datetime] = None) -> List[str]:
    """
    Check the four schedule instants for logical consistency.

    Only pairs that are both set are compared. Returns a list of messages,
    empty when the schedule is acceptable.
    """
    now = now or datetime.utcnow()
    errors: List[str] = []

    reg_start = fields.get("registration_start")
    reg_end = fields.get("registration_end")
    vote_start = fields.get("voting_start")
    vote_end = fields.get("voting_end")

    if not allow_past:
        if reg_start and reg_start < now:
            errors.append("Registration start must be in the future")
        if reg_end and reg_end < now:
            errors.append("Registration end must be in the future")
        if vote_start and vote_start < now:
            errors.append("Voting start must be in the future")
        if vote_end and vote_end < now:
            errors.append("Voting end must be in the future")

    if reg_end and not reg_start:
        errors.append("Registration end requires a registration start")

    if reg_start and reg_end and reg_end <= reg_start:
        errors.append("Registration end must be after registration start")

    if vote_start and vote_end and vote_end <= vote_start:
        errors.append("Voting end must be after voting start")

    if reg_end and vote_start and vote_start < reg_end:
        errors.append("Voting start must be on or after registration end")

    if reg_start and vote_start and not reg_end and vote_start <= reg_start:
        errors.append("Voting start must be after registration start")

    if reg_start and vote_end and vote_end <= reg_start:
        errors.append("Voting end must be after registration start")

    return errors
