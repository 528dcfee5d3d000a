from flask import Blueprint, abort, request, current_app
from flasgger import swag_from
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError

from ...extensions import db, read_cache
from ...models.audit_log import AuditLog
from ...models.candidate import Candidate
from ...models.custom_field import CustomField
from ...models.election import Election
from ...models.position import Position
from ...models.region import Region
from ...models.voter import Voter
from ...schemas.election import (
    SCHEDULE_KEYS,
    CandidateCreateSchema,
    CandidateReadSchema,
    CandidateUpdateSchema,
    ElectionCreateSchema,
    ElectionReadSchema,
    ElectionUpdateSchema,
    PositionCreateSchema,
    PositionReadSchema,
    PositionUpdateSchema,
    RegionCreateSchema,
    RegionReadSchema,
    VoterReadSchema,
)
from ...services import gating
from ...services.schedule import validate_schedule
from ...services.tally import election_stats
from ...utils.audit import audit_log
from ...utils.cache import election_key_prefix, election_status_key
from ...utils.identity import current_organizer
from ...utils.validation import validate_or_abort

elections_bp = Blueprint("elections", __name__)

election_create_schema = ElectionCreateSchema()
election_update_schema = ElectionUpdateSchema()
election_read_schema = ElectionReadSchema()
position_create_schema = PositionCreateSchema()
position_update_schema = PositionUpdateSchema()
position_read_schema = PositionReadSchema()
candidate_create_schema = CandidateCreateSchema()
candidate_update_schema = CandidateUpdateSchema()
candidate_read_schema = CandidateReadSchema()
region_create_schema = RegionCreateSchema()
region_read_schema = RegionReadSchema()
voter_read_many_schema = VoterReadSchema(many=True)

ORGANIZER = AuditLog.ACTOR_ORGANIZER


def _owned_election(election_id):
    """
    Election owned by the calling organizer.
    Aborts 401 for a dead token and 404 for anything not owned, so foreign
    election ids are indistinguishable from missing ones.
    """
    organizer = current_organizer()
    if not organizer:
        abort(401, description="Organizer inactive or not found")

    election = Election.query.filter_by(id=election_id, organizer_id=organizer.id).first()
    if not election:
        abort(404, description="Election not found")
    return organizer, election


def _commit_mutation(organizer, election, action: str, details: dict | None = None) -> None:
    """Audit + commit an organizer change and drop the public status cache entry."""
    audit_log(action, organizer.email, actor_type=ORGANIZER, election_id=election.id, details=details)
    db.session.commit()
    read_cache.invalidate(election_status_key(election.share_code))


def _abort_schedule(errors):
    abort(
        400,
        description={
            "code": "VALIDATION_ERROR",
            "message": "Validation error",
            "errors": {"schedule": errors},
        },
    )


def _build_position(data: dict, display_order: int) -> Position:
    position = Position(
        title=data["title"].strip(),
        description=data.get("description") or "",
        display_order=display_order,
    )
    for i, c in enumerate(data["candidates"]):
        position.candidates.append(
            Candidate(name=c["name"].strip(), description=c.get("description") or "", display_order=i)
        )
    return position


def _build_region(data: dict, display_order: int) -> Region:
    buffer_meters = data.get("buffer_meters")
    if buffer_meters is None:
        buffer_meters = current_app.config["DEFAULT_REGION_BUFFER_METERS"]
    return Region(
        name=data["name"].strip(),
        geometry=data["geometry"],
        buffer_meters=buffer_meters,
        display_order=display_order,
    )


def _detail(election: Election) -> dict:
    data = election_read_schema.dump(election)
    data["voter_count"] = election.voter_count()
    data["vote_count"] = election.vote_count()
    return data


@elections_bp.post("/")
@jwt_required()
@swag_from({
    "tags": ["Elections"],
    "security": [{"BearerAuth": []}],
    "summary": "Create an election with positions, candidates, regions and custom fields",
    "responses": {201: {"description": "Created"}, 400: {"description": "Validation error"}, 401: {}},
})
def create_election():
    organizer = current_organizer()
    if not organizer:
        return {"message": "Organizer inactive or not found"}, 401

    payload = request.get_json(silent=True) or {}
    payload = validate_or_abort(election_create_schema, payload)

    election = Election(
        organizer_id=organizer.id,
        title=payload["title"].strip(),
        description=payload.get("description") or "",
        status=Election.STATUS_DRAFT,
        auto_transition=payload["auto_transition"],
        registration_start=payload.get("registration_start"),
        registration_end=payload.get("registration_end"),
        voting_start=payload.get("voting_start"),
        voting_end=payload.get("voting_end"),
        security_level=payload["security_level"],
        allow_vote_update=payload["allow_vote_update"],
        show_live_results=payload["show_live_results"],
        results_visibility=payload["results_visibility"],
        require_location=payload["require_location"],
    )
    for i, p in enumerate(payload["positions"]):
        election.positions.append(_build_position(p, i))
    for i, r in enumerate(payload["regions"]):
        election.regions.append(_build_region(r, i))
    for i, f in enumerate(payload["custom_fields"]):
        election.custom_fields.append(CustomField(
            label=f["label"].strip(),
            field_type=f["field_type"],
            is_required=f["is_required"],
            options=f["options"],
            display_order=i,
        ))

    try:
        db.session.add(election)
        db.session.flush()
        audit_log("election.create", organizer.email, actor_type=ORGANIZER, election_id=election.id,
                  details={"title": election.title})
        db.session.commit()
        return {"election": _detail(election)}, 201

    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error creating election")
        return {"message": "Failed to create election"}, 500


@elections_bp.get("/")
@jwt_required()
@swag_from({
    "tags": ["Elections"],
    "security": [{"BearerAuth": []}],
    "summary": "List the calling organizer's elections",
    "responses": {200: {"description": "OK"}, 401: {"description": "Unauthorized"}},
})
def list_elections():
    organizer = current_organizer()
    if not organizer:
        return {"message": "Organizer inactive or not found"}, 401

    elections = (
        Election.query
        .filter_by(organizer_id=organizer.id)
        .order_by(Election.created_at.desc())
        .all()
    )
    return {"elections": [_detail(e) for e in elections]}, 200


@elections_bp.get("/<uuid:election_id>")
@jwt_required()
@swag_from({"tags": ["Elections"], "summary": "Get election details", "responses": {200: {}, 401: {}, 404: {}}})
def get_election(election_id):
    _, election = _owned_election(election_id)
    return {"election": _detail(election)}, 200


@elections_bp.patch("/<uuid:election_id>")
@jwt_required()
@swag_from({
    "tags": ["Elections"],
    "security": [{"BearerAuth": []}],
    "summary": "Update election settings, schedule or status",
    "description": (
        "Rejected when it touches frozen settings:\n"
        "- schedule of a closed election\n"
        "- security level / location requirement once voters exist\n"
        "- vote update policy once votes exist\n"
        "Status only moves forward: draft -> registration -> voting -> closed."
    ),
    "responses": {200: {}, 400: {}, 403: {}, 404: {}, 409: {}},
})
def update_election(election_id):
    organizer, election = _owned_election(election_id)

    payload = request.get_json(silent=True) or {}
    payload = validate_or_abort(election_update_schema, payload)

    changed = {key for key, value in payload.items() if getattr(election, key) != value}
    if not changed:
        return {"election": _detail(election)}, 200

    gating.check_election_update(
        election,
        changed,
        voter_count=election.voter_count(),
        vote_count=election.vote_count(),
    )

    if changed.intersection(SCHEDULE_KEYS):
        schedule = {key: payload.get(key, getattr(election, key)) for key in SCHEDULE_KEYS}
        errors = validate_schedule(schedule, allow_past=True)
        if errors:
            _abort_schedule(errors)

    previous_status = election.status
    if "status" in changed:
        try:
            election.change_status(payload["status"])
        except ValueError as e:
            return {"message": str(e)}, 400

    for key in changed - {"status"}:
        value = payload[key]
        setattr(election, key, value.strip() if key == "title" else value)

    try:
        details = {"updated_fields": sorted(changed)}
        action = "election.update"
        if "status" in changed:
            action = "election.status_change"
            details.update({"from_status": previous_status, "to_status": election.status})
        elif changed.intersection(SCHEDULE_KEYS):
            action = "election.schedule_change"

        _commit_mutation(organizer, election, action, details)
        return {"election": _detail(election)}, 200

    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error updating election")
        return {"message": "Failed to update election"}, 500


@elections_bp.delete("/<uuid:election_id>")
@jwt_required()
@swag_from({"tags": ["Elections"], "summary": "Delete an election and everything in it", "responses": {200: {}, 404: {}}})
def delete_election(election_id):
    organizer, election = _owned_election(election_id)
    share_code = election.share_code

    try:
        audit_log("election.delete", organizer.email, actor_type=ORGANIZER, election_id=election.id,
                  details={"title": election.title})
        db.session.delete(election)
        db.session.commit()

    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error deleting election")
        return {"message": "Failed to delete election"}, 500

    read_cache.invalidate_prefix(election_key_prefix(share_code))
    return {"message": "Election deleted successfully"}, 200


@elections_bp.post("/<uuid:election_id>/positions")
@jwt_required()
@swag_from({"tags": ["Ballot"], "summary": "Add a position with its candidates", "responses": {201: {}, 400: {}, 409: {}}})
def add_position(election_id):
    organizer, election = _owned_election(election_id)
    gating.check_ballot_item_change("position", election.vote_count())

    payload = validate_or_abort(position_create_schema, request.get_json(silent=True) or {})
    order = max((p.display_order for p in election.positions), default=-1) + 1
    position = _build_position(payload, order)
    election.positions.append(position)

    try:
        db.session.flush()
        _commit_mutation(organizer, election, "election.position_add", {"position_id": str(position.id)})
        return {"position": position_read_schema.dump(position)}, 201
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error adding position")
        return {"message": "Failed to add position"}, 500


@elections_bp.patch("/<uuid:election_id>/positions/<uuid:position_id>")
@jwt_required()
@swag_from({"tags": ["Ballot"], "summary": "Edit a position", "responses": {200: {}, 404: {}, 409: {}}})
def update_position(election_id, position_id):
    organizer, election = _owned_election(election_id)
    position = election.find_position(position_id)
    if not position:
        return {"message": "Position not found"}, 404
    gating.check_ballot_item_change("position", election.vote_count())

    payload = validate_or_abort(position_update_schema, request.get_json(silent=True) or {})
    for key, value in payload.items():
        setattr(position, key, value.strip() if key == "title" else value)

    try:
        _commit_mutation(organizer, election, "election.position_update", {"position_id": str(position.id)})
        return {"position": position_read_schema.dump(position)}, 200
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error updating position")
        return {"message": "Failed to update position"}, 500


@elections_bp.delete("/<uuid:election_id>/positions/<uuid:position_id>")
@jwt_required()
@swag_from({"tags": ["Ballot"], "summary": "Remove a position", "responses": {200: {}, 404: {}, 409: {}}})
def delete_position(election_id, position_id):
    organizer, election = _owned_election(election_id)
    position = election.find_position(position_id)
    if not position:
        return {"message": "Position not found"}, 404
    gating.check_ballot_item_removal("position", election.voter_count())

    election.positions.remove(position)
    try:
        _commit_mutation(organizer, election, "election.position_remove", {"position_id": str(position_id)})
        return {"message": "Position removed"}, 200
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error removing position")
        return {"message": "Failed to remove position"}, 500


@elections_bp.post("/<uuid:election_id>/positions/<uuid:position_id>/candidates")
@jwt_required()
@swag_from({"tags": ["Ballot"], "summary": "Add a candidate to a position", "responses": {201: {}, 404: {}, 409: {}}})
def add_candidate(election_id, position_id):
    organizer, election = _owned_election(election_id)
    position = election.find_position(position_id)
    if not position:
        return {"message": "Position not found"}, 404
    gating.check_ballot_item_change("candidate", election.vote_count())

    payload = validate_or_abort(candidate_create_schema, request.get_json(silent=True) or {})
    order = max((c.display_order for c in position.candidates), default=-1) + 1
    candidate = Candidate(name=payload["name"].strip(), description=payload.get("description") or "",
                          display_order=order)
    position.candidates.append(candidate)

    try:
        db.session.flush()
        _commit_mutation(organizer, election, "election.candidate_add",
                         {"position_id": str(position.id), "candidate_id": str(candidate.id)})
        return {"candidate": candidate_read_schema.dump(candidate)}, 201
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error adding candidate")
        return {"message": "Failed to add candidate"}, 500


@elections_bp.patch("/<uuid:election_id>/positions/<uuid:position_id>/candidates/<uuid:candidate_id>")
@jwt_required()
@swag_from({"tags": ["Ballot"], "summary": "Edit a candidate", "responses": {200: {}, 404: {}, 409: {}}})
def update_candidate(election_id, position_id, candidate_id):
    organizer, election = _owned_election(election_id)
    position = election.find_position(position_id)
    candidate = position.find_candidate(candidate_id) if position else None
    if not candidate:
        return {"message": "Candidate not found"}, 404
    gating.check_ballot_item_change("candidate", election.vote_count())

    payload = validate_or_abort(candidate_update_schema, request.get_json(silent=True) or {})
    for key, value in payload.items():
        setattr(candidate, key, value.strip() if key == "name" else value)

    try:
        _commit_mutation(organizer, election, "election.candidate_update", {"candidate_id": str(candidate.id)})
        return {"candidate": candidate_read_schema.dump(candidate)}, 200
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error updating candidate")
        return {"message": "Failed to update candidate"}, 500


@elections_bp.delete("/<uuid:election_id>/positions/<uuid:position_id>/candidates/<uuid:candidate_id>")
@jwt_required()
@swag_from({"tags": ["Ballot"], "summary": "Remove a candidate", "responses": {200: {}, 404: {}, 409: {}}})
def delete_candidate(election_id, position_id, candidate_id):
    organizer, election = _owned_election(election_id)
    position = election.find_position(position_id)
    candidate = position.find_candidate(candidate_id) if position else None
    if not candidate:
        return {"message": "Candidate not found"}, 404
    gating.check_ballot_item_removal("candidate", election.voter_count())

    position.candidates.remove(candidate)
    try:
        _commit_mutation(organizer, election, "election.candidate_remove", {"candidate_id": str(candidate_id)})
        return {"message": "Candidate removed"}, 200
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error removing candidate")
        return {"message": "Failed to remove candidate"}, 500


@elections_bp.post("/<uuid:election_id>/regions")
@jwt_required()
@swag_from({
    "tags": ["Regions"],
    "summary": "Add an eligible region",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "example": "Campus"},
                "geometry": {
                    "type": "object",
                    "example": {"type": "circle", "center": [73.0479, 33.6844], "radiusMeters": 500},
                },
                "buffer_meters": {"type": "number", "example": 20},
            },
            "required": ["name", "geometry"],
        },
    }],
    "responses": {201: {}, 400: {}, 409: {}},
})
def add_region(election_id):
    organizer, election = _owned_election(election_id)
    gating.check_ballot_item_change("region", election.vote_count())

    payload = validate_or_abort(region_create_schema, request.get_json(silent=True) or {})
    order = max((r.display_order for r in election.regions), default=-1) + 1
    region = _build_region(payload, order)
    election.regions.append(region)

    try:
        db.session.flush()
        _commit_mutation(organizer, election, "election.region_add", {"region_id": str(region.id)})
        return {"region": region_read_schema.dump(region)}, 201
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error adding region")
        return {"message": "Failed to add region"}, 500


@elections_bp.delete("/<uuid:election_id>/regions/<uuid:region_id>")
@jwt_required()
@swag_from({"tags": ["Regions"], "summary": "Remove a region", "responses": {200: {}, 404: {}, 409: {}}})
def delete_region(election_id, region_id):
    organizer, election = _owned_election(election_id)
    region = election.find_region(region_id)
    if not region:
        return {"message": "Region not found"}, 404

    assigned = Voter.query.filter_by(election_id=election.id, region_id=region.id).count()
    gating.check_region_removal(election.voter_count(), assigned)

    election.regions.remove(region)
    try:
        _commit_mutation(organizer, election, "election.region_remove", {"region_id": str(region_id)})
        return {"message": "Region removed"}, 200
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error removing region")
        return {"message": "Failed to remove region"}, 500


@elections_bp.get("/<uuid:election_id>/stats")
@jwt_required()
@swag_from({
    "tags": ["Elections"],
    "summary": "Live tallies, turnout and per-region turnout",
    "responses": {200: {}, 404: {}},
})
def get_stats(election_id):
    _, election = _owned_election(election_id)
    return election_stats(election), 200


@elections_bp.get("/<uuid:election_id>/voters")
@jwt_required()
@swag_from({"tags": ["Elections"], "summary": "List registered voters", "responses": {200: {}, 404: {}}})
def list_voters(election_id):
    _, election = _owned_election(election_id)
    voters = (
        Voter.query
        .filter_by(election_id=election.id)
        .order_by(Voter.created_at.asc())
        .all()
    )
    return {"voters": voter_read_many_schema.dump(voters), "count": len(voters)}, 200
