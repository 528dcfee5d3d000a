"""
Voter registration and e-mail verification.

Checks run cheapest-abuse-signal first: phase, duplicate e-mail, duplicate
device, location, then required custom fields. Nothing is written until all
of them pass.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import (
    EligibilityViolation,
    InvalidVerificationCode,
    NotFound,
    PersistenceFailure,
    PhaseViolation,
    VoterAlreadyRegistered,
)
from ..extensions import db
from ..models.election import Election
from ..models.voter import Voter
from ..utils.security import generate_verification_code, hash_verification_code, verify_verification_code
from .geofence import check_location_eligibility
from .phase import Phase, derive_phase


@dataclass(frozen=True)
class Registration:
    voter: Voter
    verification_code: str


def _already_registered(voter: Voter) -> VoterAlreadyRegistered:
    return VoterAlreadyRegistered(
        "Already registered",
        details={"voter_id": str(voter.id), "email_verified": voter.email_verified},
    )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def check_required_fields(election: Election, values: Mapping[str, Any]) -> None:
    for field in election.custom_fields:
        if field.is_required and _is_blank(values.get(str(field.id))):
            raise EligibilityViolation(
                f"{field.label} is required",
                details={"field_id": str(field.id)},
                status_code=400,
            )


def register_voter(
    election: Election,
    email: str,
    device_fingerprint: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    custom_field_values: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Registration:
    now = now or datetime.utcnow()
    email = email.strip().lower()
    values = dict(custom_field_values or {})

    phase = derive_phase(election, now)
    if phase is not Phase.REGISTRATION:
        if phase in (Phase.VOTING, Phase.CLOSED):
            message = "Registration has closed. Only voters who registered before voting started can vote."
        else:
            message = "Registration is not currently open"
        raise PhaseViolation(message, details={"phase": phase.value})

    existing = Voter.query.filter_by(election_id=election.id, email=email).first()
    if existing:
        raise _already_registered(existing)

    if election.security_level != Election.SECURITY_CASUAL and device_fingerprint:
        same_device = (
            Voter.query
            .filter_by(election_id=election.id, device_fingerprint=device_fingerprint)
            .first()
        )
        if same_device:
            raise EligibilityViolation("A voter has already registered from this device")

    region = check_location_eligibility(election, latitude, longitude)

    check_required_fields(election, values)

    code = generate_verification_code(current_app.config.get("VERIFICATION_CODE_LENGTH", 6))
    ttl = current_app.config.get("VERIFICATION_CODE_TTL_SECONDS", 600)

    voter = Voter(
        election_id=election.id,
        email=email,
        region_id=region.id if region is not None else None,
        device_fingerprint=device_fingerprint or None,
        custom_field_values=values,
        location_lat=latitude,
        location_lng=longitude,
        verification_code_hash=hash_verification_code(code),
        verification_expires_at=now + timedelta(seconds=ttl),
    )

    try:
        db.session.add(voter)
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same e-mail
        db.session.rollback()
        existing = Voter.query.filter_by(election_id=election.id, email=email).first()
        if existing:
            raise _already_registered(existing)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("DB error registering voter")
        raise PersistenceFailure("Failed to register voter") from exc

    current_app.logger.info(
        "Voter registered election=%s voter=%s region=%s",
        election.id, voter.id, voter.region_id,
    )
    return Registration(voter=voter, verification_code=code)


def verify_voter(election: Election, voter_id, code: str, now: Optional[datetime] = None) -> Voter:
    """Mark the voter's e-mail verified. Verifying twice is a no-op."""
    now = now or datetime.utcnow()

    voter = Voter.query.filter_by(id=voter_id, election_id=election.id).first()
    if not voter:
        raise NotFound("Voter not found")

    if voter.email_verified:
        return voter

    if (
        not voter.verification_code_hash
        or voter.verification_expires_at is None
        or now > voter.verification_expires_at
        or not verify_verification_code(code, voter.verification_code_hash)
    ):
        raise InvalidVerificationCode("Invalid or expired verification code")

    voter.email_verified = True
    voter.verification_code_hash = None
    voter.verification_expires_at = None

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("DB error verifying voter")
        raise PersistenceFailure("Failed to verify voter") from exc

    return voter
