import uuid

from flask import Blueprint, request, current_app
from flasgger import swag_from

from ...errors import NotFound, PhaseViolation
from ...extensions import db, read_cache
from ...models.audit_log import AuditLog
from ...models.election import Election
from ...models.voter import Voter
from ...schemas.election import PublicElectionSchema
from ...schemas.vote import CastBallotSchema, CastReceiptSchema, VoterRegisterSchema, VoterVerifySchema
from ...services.phase import PHASE_LABELS, ElectionSchedule, derive_phase
from ...services.registration import register_voter, verify_voter
from ...services.tally import results_visible, tally_positions
from ...services.voting import Selection, cast_ballot
from ...utils.audit import safe_audit
from ...utils.cache import election_status_key
from ...utils.mailer import safe_send_verification_code
from ...utils.rate_limit import rate_limited
from ...utils.validation import validate_or_abort

vote_bp = Blueprint("vote", __name__)

public_election_schema = PublicElectionSchema()
voter_register_schema = VoterRegisterSchema()
voter_verify_schema = VoterVerifySchema()
cast_ballot_schema = CastBallotSchema()
cast_receipt_schema = CastReceiptSchema()

VOTER = AuditLog.ACTOR_VOTER


def _election_or_404(share_code: str) -> Election:
    election = Election.query.filter_by(share_code=share_code).first()
    if not election:
        raise NotFound("Election not found", details={"share_code": share_code})
    return election


def _load_status(share_code: str):
    election = _election_or_404(share_code)
    return ElectionSchedule.from_election(election), public_election_schema.dump(election)


@vote_bp.get("/<string:share_code>")
@swag_from({
    "tags": ["Vote"],
    "summary": "Public election status by share code",
    "description": (
        "Served from a short-lived cache; the phase is recomputed on every "
        "request so a schedule boundary shows up immediately."
    ),
    "parameters": [{"in": "path", "name": "share_code", "type": "string", "required": True}],
    "responses": {200: {"description": "Election status"}, 404: {"description": "Election not found"}},
})
def election_status(share_code):
    schedule, payload = read_cache.get_or_load(
        election_status_key(share_code),
        current_app.config["STATUS_CACHE_TTL_SECONDS"],
        lambda: _load_status(share_code),
    )
    phase = derive_phase(schedule)
    return {"election": {**payload, "phase": phase.value, "phase_label": PHASE_LABELS[phase]}}, 200


@vote_bp.post("/<string:share_code>/register")
@rate_limited("register")
@swag_from({
    "tags": ["Vote"],
    "summary": "Register as a voter",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "email": {"type": "string", "example": "voter@example.com"},
                "latitude": {"type": "number", "example": 33.6844},
                "longitude": {"type": "number", "example": 73.0479},
                "device_fingerprint": {"type": "string"},
                "custom_field_values": {"type": "object"},
            },
            "required": ["email"],
        },
    }],
    "responses": {
        201: {"description": "Registered; verification code sent"},
        400: {"description": "Validation error / location required"},
        403: {"description": "Registration closed or outside eligible regions"},
        409: {"description": "Already registered"},
        429: {"description": "Too many attempts"},
    },
})
def register(share_code):
    election = _election_or_404(share_code)
    payload = validate_or_abort(voter_register_schema, request.get_json(silent=True) or {})

    registration = register_voter(
        election,
        email=payload["email"],
        device_fingerprint=payload.get("device_fingerprint"),
        latitude=payload.get("latitude"),
        longitude=payload.get("longitude"),
        custom_field_values=payload.get("custom_field_values"),
    )
    voter = registration.voter

    safe_audit("voter.register", voter.email, actor_type=VOTER, election_id=election.id,
               details={"voter_id": str(voter.id), "region_id": str(voter.region_id) if voter.region_id else None})
    email_sent = safe_send_verification_code(voter.email, registration.verification_code, election.title)

    body = {
        "message": "Registration successful. Check your email for the verification code.",
        "voter_id": str(voter.id),
        "email_sent": email_sent,
    }
    if current_app.config.get("EXPOSE_VERIFICATION_CODE"):
        body["dev_code"] = registration.verification_code
    return body, 201


@vote_bp.post("/<string:share_code>/verify")
@rate_limited("verify")
@swag_from({
    "tags": ["Vote"],
    "summary": "Verify a voter's e-mail with the emailed code",
    "responses": {200: {}, 400: {"description": "Invalid or expired code"}, 404: {}, 429: {}},
})
def verify(share_code):
    election = _election_or_404(share_code)
    payload = validate_or_abort(voter_verify_schema, request.get_json(silent=True) or {})

    voter = verify_voter(election, payload["voter_id"], payload["code"])

    safe_audit("voter.verify", voter.email, actor_type=VOTER, election_id=election.id,
               details={"voter_id": str(voter.id)})
    return {"message": "Email verified successfully", "voter_id": str(voter.id), "email_verified": True}, 200


@vote_bp.post("/<string:share_code>/cast")
@rate_limited("vote")
@swag_from({
    "tags": ["Vote"],
    "summary": "Cast or replace a ballot",
    "description": "A replacement swaps the whole previous ballot in one transaction.",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "voter_id": {"type": "string", "format": "uuid"},
                "votes": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "position_id": {"type": "string", "format": "uuid"},
                            "candidate_id": {"type": "string", "format": "uuid"},
                        },
                    },
                },
            },
            "required": ["voter_id", "votes"],
        },
    }],
    "responses": {
        200: {"description": "Ballot recorded"},
        400: {"description": "Invalid ballot"},
        403: {"description": "Voting closed or e-mail not verified"},
        404: {"description": "Voter not found"},
        409: {"description": "Already voted and updates disabled"},
        429: {"description": "Too many attempts"},
        503: {"description": "Ballot could not be stored"},
    },
})
def cast(share_code):
    election = _election_or_404(share_code)
    payload = validate_or_abort(cast_ballot_schema, request.get_json(silent=True) or {})

    selections = [Selection(v["position_id"], v["candidate_id"]) for v in payload["votes"]]
    result = cast_ballot(election, payload["voter_id"], selections)

    voter = db.session.get(Voter, result.voter_id)
    safe_audit(
        "voter.vote_updated" if result.updated else "voter.vote_cast",
        voter.email if voter else str(result.voter_id),
        actor_type=VOTER,
        election_id=election.id,
        details={"voter_id": str(result.voter_id), "positions": result.vote_count},
    )

    return cast_receipt_schema.dump({
        "message": "Vote updated successfully" if result.updated else "Vote cast successfully",
        "updated": result.updated,
        "voter_id": result.voter_id,
        "vote_count": result.vote_count,
    }), 200


@vote_bp.get("/<string:share_code>/results")
@swag_from({
    "tags": ["Vote"],
    "summary": "Election results, when visible",
    "parameters": [
        {"in": "path", "name": "share_code", "type": "string", "required": True},
        {"in": "query", "name": "voter_id", "type": "string", "required": False},
    ],
    "responses": {200: {}, 403: {"description": "Results not available yet"}, 404: {}},
})
def results(share_code):
    election = _election_or_404(share_code)
    phase = derive_phase(election)

    voter = None
    voter_id = request.args.get("voter_id", type=str)
    if voter_id:
        try:
            voter = Voter.query.filter_by(id=uuid.UUID(voter_id), election_id=election.id).first()
        except ValueError:
            voter = None

    if not results_visible(election, phase, is_verified_voter=bool(voter and voter.email_verified)):
        raise PhaseViolation("Results are not available yet", details={"phase": phase.value})

    return {
        "election_id": str(election.id),
        "title": election.title,
        "phase": phase.value,
        "phase_label": PHASE_LABELS[phase],
        "total_voters": election.voter_count(),
        "positions": tally_positions(election, voter_id=voter.id if voter else None),
    }, 200
