from flask import Blueprint, request, current_app
from flasgger import swag_from
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt,
)
from datetime import datetime
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...utils.audit import audit_log, safe_audit
from ...utils.rate_limit import rate_limited
from ...extensions import db
from ...models.audit_log import AuditLog
from ...models.organizer import Organizer
from ...models.revoked_token import RevokedToken
from ...schemas.auth import RegisterSchema, LoginSchema, OrganizerSchema
from ...utils.identity import current_organizer
from ...utils.validation import validate_or_abort

auth_bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_req_schema = LoginSchema()
organizer_schema = OrganizerSchema()

ORGANIZER = AuditLog.ACTOR_ORGANIZER


@auth_bp.post("/register")
@rate_limited("auth")
@swag_from({
    "tags": ["Auth"],
    "summary": "Register an organizer account",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "email": {"type": "string", "example": "organizer@example.com"},
                "password": {"type": "string", "example": "StrongPass123"},
                "name": {"type": "string", "example": "Campus Election Board"}
            },
            "required": ["email", "password"]
        }
    }],
    "responses": {
        "201": {"description": "Organizer created"},
        "400": {"description": "Validation error"},
        "409": {"description": "Email already exists"},
        "429": {"description": "Too many attempts"}
    }
})
def register():
    payload = request.get_json(silent=True) or {}
    payload = validate_or_abort(register_schema, payload)

    email = payload["email"].lower().strip()

    if Organizer.query.filter_by(email=email).first():
        safe_audit("organizer.register_failed", email, actor_type=ORGANIZER, details={"reason": "email_exists"})
        return {"message": "Email already registered"}, 409

    organizer = Organizer(email=email, name=(payload.get("name") or "").strip())
    organizer.set_password(payload["password"])

    try:
        db.session.add(organizer)
        db.session.flush()  # ensure organizer.id exists for the audit row

        audit_log("organizer.register", email, actor_type=ORGANIZER, details={"organizer_id": str(organizer.id)})

        db.session.commit()
        return {"message": "Organizer registered successfully", "organizer": organizer_schema.dump(organizer)}, 201

    except IntegrityError:
        db.session.rollback()
        return {"message": "Email already registered"}, 409
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error during register")
        return {"message": "Failed to register organizer"}, 500


@auth_bp.post("/login")
@rate_limited("auth")
@swag_from({
    "tags": ["Auth"],
    "summary": "Login with email and password",
    "description": "Validates email/password and returns access/refresh tokens on successful login.",
    "responses": {
        200: {"description": "Login successful, tokens returned"},
        400: {"description": "Validation error"},
        401: {"description": "Invalid credentials"},
        403: {"description": "Account not active"},
        429: {"description": "Too many attempts"}
    }
})
def login():
    payload = request.get_json(silent=True) or {}
    payload = validate_or_abort(login_req_schema, payload)

    email = payload["email"].lower().strip()
    password = payload["password"]

    try:
        organizer = Organizer.query.filter_by(email=email).first()

        # Invalid credentials (don't leak which part failed)
        if not organizer or not organizer.check_password(password):
            audit_log("organizer.login_failed", email, actor_type=ORGANIZER, details={"reason": "invalid_credentials"})
            db.session.commit()
            return {"message": "Invalid email or password"}, 401

        if not organizer.is_active:
            audit_log("organizer.login_failed", email, actor_type=ORGANIZER, details={"reason": "inactive"})
            db.session.commit()
            return {"message": "Account is not active. Please contact support."}, 403

        access_token = create_access_token(identity=str(organizer.id))
        refresh_token = create_refresh_token(identity=str(organizer.id))

        organizer.last_login_at = datetime.utcnow()
        audit_log("organizer.login", email, actor_type=ORGANIZER, details={"organizer_id": str(organizer.id)})

        # Single commit persists last_login_at + audit row
        db.session.commit()

        return {
            "message": "Login successful",
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "organizer": organizer_schema.dump(organizer),
        }, 200

    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error during login")
        return {"message": "Authentication service error. Please try again."}, 500


@auth_bp.post("/refresh")
@jwt_required(refresh=True)
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Refresh access token (requires refresh token)",
    "responses": {
        200: {"description": "New access token issued"},
        401: {"description": "Unauthorized"},
    },
})
def refresh():
    organizer = current_organizer()
    if not organizer:
        return {"message": "Organizer inactive or not found"}, 401

    return {"access_token": create_access_token(identity=str(organizer.id))}, 200


@auth_bp.get("/me")
@jwt_required()
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Get current organizer profile",
    "responses": {200: {"description": "Organizer profile"}, 401: {"description": "Unauthorized"}, 404: {}},
})
def me():
    organizer = current_organizer()
    if not organizer:
        return {"message": "Organizer not found"}, 404
    return {"organizer": organizer_schema.dump(organizer)}, 200


@auth_bp.post("/logout")
@jwt_required(verify_type=False)
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Logout (revoke the presented access or refresh token)",
    "responses": {200: {"description": "Logged out"}, 401: {"description": "Unauthorized"}},
})
def logout():
    jwt_payload = get_jwt()
    jti = jwt_payload.get("jti")
    if not jti:
        return {"message": "Invalid token"}, 400

    try:
        db.session.add(RevokedToken(jti=jti, token_type=jwt_payload.get("type", "access")))
        db.session.commit()
        return {"message": "Logged out successfully"}, 200

    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error during logout")
        return {"message": "Logout failed"}, 500
