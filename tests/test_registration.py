from datetime import datetime, timedelta

import pytest

from geovote.errors import (
    EligibilityViolation,
    InvalidVerificationCode,
    NotFound,
    PhaseViolation,
    VoterAlreadyRegistered,
)
from geovote.models import Election, Voter
from geovote.services.registration import register_voter, verify_voter

from .helpers import ISLAMABAD, north_of


def test_registers_and_assigns_region(make_election, campus_circle):
    election = make_election(require_location=True, regions=[("Campus", campus_circle, 20)])
    lat, lng = north_of(ISLAMABAD, 480)

    registration = register_voter(election, "Voter@Example.com ", latitude=lat, longitude=lng)

    voter = registration.voter
    assert voter.email == "voter@example.com"
    assert voter.region_id == election.regions[0].id
    assert voter.location_lat == pytest.approx(lat)
    assert not voter.email_verified
    assert len(registration.verification_code) == 6
    assert registration.verification_code.isdigit()
    assert voter.verification_code_hash != registration.verification_code


def test_outside_every_region_rejected(make_election, campus_circle):
    election = make_election(require_location=True, regions=[("Campus", campus_circle, 20)])
    lat, lng = north_of(ISLAMABAD, 530)

    with pytest.raises(EligibilityViolation):
        register_voter(election, "far@example.com", latitude=lat, longitude=lng)
    assert Voter.query.count() == 0


def test_missing_location_when_required(make_election, campus_circle):
    election = make_election(require_location=True, regions=[("Campus", campus_circle, 20)])
    with pytest.raises(EligibilityViolation) as exc:
        register_voter(election, "v@example.com")
    assert exc.value.status_code == 400


def test_location_ignored_when_not_required(make_election):
    election = make_election()
    voter = register_voter(election, "v@example.com", latitude=0.0, longitude=0.0).voter
    assert voter.region_id is None


@pytest.mark.parametrize(
    "kwargs, fragment",
    [
        ({"status": Election.STATUS_DRAFT}, "not currently open"),
        ({"status": Election.STATUS_VOTING}, "Registration has closed"),
    ],
)
def test_registration_only_in_registration_phase(make_election, kwargs, fragment):
    election = make_election(**kwargs)
    with pytest.raises(PhaseViolation) as exc:
        register_voter(election, "v@example.com")
    assert fragment in exc.value.message


def test_duplicate_email_reports_existing_voter(make_election):
    election = make_election()
    first = register_voter(election, "v@example.com").voter

    with pytest.raises(VoterAlreadyRegistered) as exc:
        register_voter(election, "V@example.com")
    assert exc.value.status_code == 409
    assert exc.value.details == {"voter_id": str(first.id), "email_verified": False}


def test_same_email_in_another_election_is_fine(make_election):
    register_voter(make_election(), "v@example.com")
    register_voter(make_election(), "v@example.com")
    assert Voter.query.count() == 2


def test_device_reuse_blocked_unless_casual(make_election):
    standard = make_election(security_level=Election.SECURITY_STANDARD)
    register_voter(standard, "a@example.com", device_fingerprint="fp-1")
    with pytest.raises(EligibilityViolation):
        register_voter(standard, "b@example.com", device_fingerprint="fp-1")

    casual = make_election(security_level=Election.SECURITY_CASUAL)
    register_voter(casual, "a@example.com", device_fingerprint="fp-1")
    register_voter(casual, "b@example.com", device_fingerprint="fp-1")


def test_required_custom_field(make_election):
    election = make_election(custom_fields=[("Student ID", True), ("Nickname", False)])
    field_id = str(election.custom_fields[0].id)

    with pytest.raises(EligibilityViolation) as exc:
        register_voter(election, "v@example.com", custom_field_values={field_id: "   "})
    assert exc.value.status_code == 400
    assert exc.value.details == {"field_id": field_id}

    voter = register_voter(election, "v@example.com", custom_field_values={field_id: "S-123"}).voter
    assert voter.custom_field_values == {field_id: "S-123"}


def test_verify_with_correct_code(make_election):
    election = make_election()
    registration = register_voter(election, "v@example.com")

    voter = verify_voter(election, registration.voter.id, registration.verification_code)

    assert voter.email_verified
    assert voter.verification_code_hash is None
    assert voter.verification_expires_at is None
    # second call is a no-op
    assert verify_voter(election, voter.id, "000000").email_verified


def test_verify_rejects_wrong_code(make_election):
    election = make_election()
    registration = register_voter(election, "v@example.com")
    wrong = "1" * 6 if registration.verification_code != "1" * 6 else "2" * 6

    with pytest.raises(InvalidVerificationCode):
        verify_voter(election, registration.voter.id, wrong)
    assert not registration.voter.email_verified


def test_verify_rejects_expired_code(make_election):
    election = make_election()
    now = datetime.utcnow()
    registration = register_voter(election, "v@example.com", now=now)

    with pytest.raises(InvalidVerificationCode):
        verify_voter(election, registration.voter.id, registration.verification_code, now=now + timedelta(minutes=11))


def test_verify_unknown_voter(make_election):
    election = make_election()
    other = make_election()
    voter = register_voter(other, "v@example.com").voter
    with pytest.raises(NotFound):
        verify_voter(election, voter.id, "123456")
