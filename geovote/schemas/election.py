from marshmallow import Schema, fields, validate, validates, validates_schema, ValidationError, post_load

from ..models.custom_field import CustomField
from ..models.election import Election
from ..services.geofence import Polygon, geometry_to_dict, parse_geometry
from ..services.phase import PHASE_LABELS, derive_phase
from ..services.schedule import validate_schedule
from .common import UTCDateTime

SCHEDULE_KEYS = ("registration_start", "registration_end", "voting_start", "voting_end")


class CandidateCreateSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    description = fields.Str(required=False, load_default="")


class CandidateUpdateSchema(Schema):
    name = fields.Str(required=False, validate=validate.Length(min=1, max=200))
    description = fields.Str(required=False)


class PositionCreateSchema(Schema):
    title = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    description = fields.Str(required=False, load_default="")
    candidates = fields.List(
        fields.Nested(CandidateCreateSchema),
        required=True,
        validate=validate.Length(min=2, error="Each position needs at least 2 candidates"),
    )


class PositionUpdateSchema(Schema):
    title = fields.Str(required=False, validate=validate.Length(min=1, max=200))
    description = fields.Str(required=False)


class RegionCreateSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    geometry = fields.Dict(required=True)
    buffer_meters = fields.Float(required=False, allow_none=True, validate=validate.Range(min=0))

    @validates("geometry")
    def validate_geometry(self, value, **kwargs):
        try:
            shape = parse_geometry(value)
        except ValueError as e:
            raise ValidationError(str(e))
        if isinstance(shape, Polygon) and len(set(shape.ring)) < 3:
            raise ValidationError("polygon ring needs at least 3 distinct points")

    @post_load
    def normalize_geometry(self, data, **kwargs):
        data["geometry"] = geometry_to_dict(parse_geometry(data["geometry"]))
        return data


class CustomFieldCreateSchema(Schema):
    label = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    field_type = fields.Str(required=True, validate=validate.OneOf(CustomField.FIELD_TYPES))
    is_required = fields.Bool(required=False, load_default=False)
    options = fields.List(fields.Str(), required=False, load_default=list)


class ElectionCreateSchema(Schema):
    title = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    description = fields.Str(required=False, load_default="")
    positions = fields.List(
        fields.Nested(PositionCreateSchema),
        required=True,
        validate=validate.Length(min=1, error="At least 1 position required"),
    )
    regions = fields.List(fields.Nested(RegionCreateSchema), required=False, load_default=list)
    custom_fields = fields.List(fields.Nested(CustomFieldCreateSchema), required=False, load_default=list)

    registration_start = UTCDateTime(required=False, allow_none=True)
    registration_end = UTCDateTime(required=False, allow_none=True)
    voting_start = UTCDateTime(required=False, allow_none=True)
    voting_end = UTCDateTime(required=False, allow_none=True)
    auto_transition = fields.Bool(required=False, load_default=True)

    security_level = fields.Str(
        required=False, load_default=Election.SECURITY_STANDARD, validate=validate.OneOf(Election.SECURITY_LEVELS)
    )
    allow_vote_update = fields.Bool(required=False, load_default=False)
    show_live_results = fields.Bool(required=False, load_default=False)
    results_visibility = fields.Str(
        required=False, load_default="organizer", validate=validate.OneOf(Election.RESULTS_VISIBILITY)
    )
    require_location = fields.Bool(required=False, load_default=False)

    @validates_schema
    def validate_times(self, data, **kwargs):
        errors = validate_schedule({key: data.get(key) for key in SCHEDULE_KEYS}, allow_past=False)
        if errors:
            raise ValidationError(errors, field_name="schedule")


class ElectionUpdateSchema(Schema):
    title = fields.Str(required=False, validate=validate.Length(min=1, max=200))
    description = fields.Str(required=False)
    status = fields.Str(required=False, validate=validate.OneOf(Election.VALID_STATUSES))

    registration_start = UTCDateTime(required=False, allow_none=True)
    registration_end = UTCDateTime(required=False, allow_none=True)
    voting_start = UTCDateTime(required=False, allow_none=True)
    voting_end = UTCDateTime(required=False, allow_none=True)
    auto_transition = fields.Bool(required=False)

    security_level = fields.Str(required=False, validate=validate.OneOf(Election.SECURITY_LEVELS))
    allow_vote_update = fields.Bool(required=False)
    show_live_results = fields.Bool(required=False)
    results_visibility = fields.Str(required=False, validate=validate.OneOf(Election.RESULTS_VISIBILITY))
    require_location = fields.Bool(required=False)

    @validates_schema
    def at_least_one_field(self, data, **kwargs):
        if not data:
            raise ValidationError("At least one field must be provided")


class CandidateReadSchema(Schema):
    id = fields.UUID()
    name = fields.Str()
    description = fields.Str()


class PositionReadSchema(Schema):
    id = fields.UUID()
    title = fields.Str()
    description = fields.Str()
    candidates = fields.List(fields.Nested(CandidateReadSchema))


class RegionReadSchema(Schema):
    id = fields.UUID()
    name = fields.Str()
    geometry = fields.Dict()
    buffer_meters = fields.Float()


class CustomFieldReadSchema(Schema):
    id = fields.UUID()
    label = fields.Str()
    field_type = fields.Str()
    is_required = fields.Bool()
    options = fields.List(fields.Str())


class PublicElectionSchema(Schema):
    """What voters see; no organiser-only bookkeeping."""
    id = fields.UUID()
    share_code = fields.Str()
    title = fields.Str()
    description = fields.Str()
    organizer_name = fields.Function(lambda e: e.organizer.name if e.organizer else "")
    registration_start = fields.DateTime(allow_none=True)
    registration_end = fields.DateTime(allow_none=True)
    voting_start = fields.DateTime(allow_none=True)
    voting_end = fields.DateTime(allow_none=True)
    require_location = fields.Bool()
    allow_vote_update = fields.Bool()
    show_live_results = fields.Bool()
    results_visibility = fields.Str()
    security_level = fields.Str()
    positions = fields.List(fields.Nested(PositionReadSchema))
    regions = fields.List(fields.Nested(RegionReadSchema))
    custom_fields = fields.List(fields.Nested(CustomFieldReadSchema))


class ElectionReadSchema(PublicElectionSchema):
    status = fields.Str()
    auto_transition = fields.Bool()
    phase = fields.Method("get_phase")
    phase_label = fields.Method("get_phase_label")
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

    def get_phase(self, obj):
        return derive_phase(obj).value

    def get_phase_label(self, obj):
        return PHASE_LABELS[derive_phase(obj)]


class VoterReadSchema(Schema):
    id = fields.UUID()
    email = fields.Email()
    region_id = fields.UUID(allow_none=True)
    email_verified = fields.Bool()
    custom_field_values = fields.Dict()
    location_lat = fields.Float(allow_none=True)
    location_lng = fields.Float(allow_none=True)
    created_at = fields.DateTime()
