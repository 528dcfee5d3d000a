from marshmallow import Schema, fields, validate


class VoterRegisterSchema(Schema):
    email = fields.Email(required=True)
    custom_field_values = fields.Dict(keys=fields.Str(), required=False, load_default=dict)
    device_fingerprint = fields.Str(required=False, allow_none=True, validate=validate.Length(max=255))
    latitude = fields.Float(required=False, allow_none=True, validate=validate.Range(min=-90, max=90))
    longitude = fields.Float(required=False, allow_none=True, validate=validate.Range(min=-180, max=180))


class VoterVerifySchema(Schema):
    voter_id = fields.UUID(required=True)
    code = fields.Str(
        required=True,
        validate=validate.Regexp(r"^\d{4,10}$", error="Code must be numeric"),
    )


class SelectionSchema(Schema):
    position_id = fields.UUID(required=True)
    candidate_id = fields.UUID(required=True)


class CastBallotSchema(Schema):
    voter_id = fields.UUID(required=True)
    votes = fields.List(
        fields.Nested(SelectionSchema),
        required=True,
        validate=validate.Length(min=1, error="Must vote for at least one position"),
    )


class CastReceiptSchema(Schema):
    message = fields.Str(required=True)
    updated = fields.Bool(required=True)
    voter_id = fields.UUID()
    vote_count = fields.Int()
