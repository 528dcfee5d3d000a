from marshmallow import Schema, fields, validate


class RegisterSchema(Schema):
    email = fields.Email(required=True)
    password = fields.Str(required=True, validate=validate.Length(min=8, max=128))
    name = fields.Str(required=False, load_default="", validate=validate.Length(max=120))


class LoginSchema(Schema):
    """Schema for login request"""
    email = fields.Email(required=True)
    password = fields.Str(
        required=True,
        validate=validate.Length(min=8, max=128),
    )


class OrganizerSchema(Schema):
    id = fields.UUID()
    email = fields.Email()
    name = fields.Str()
    is_active = fields.Bool()
    created_at = fields.DateTime()
