from typing import Any, Dict, Optional

from flask import jsonify, g
from werkzeug.exceptions import HTTPException


class ElectionError(Exception):
    """
    Base for every rejection raised by the election core.

    Subclasses fix the HTTP status and machine code; ``details`` carries
    whatever the client needs to recover (an existing voter id, the
    offending position id, ...).
    """

    status_code = 400
    code = "ELECTION_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class PhaseViolation(ElectionError):
    status_code = 403
    code = "PHASE_VIOLATION"


class EligibilityViolation(ElectionError):
    status_code = 403
    code = "NOT_ELIGIBLE"


class BallotValidationError(ElectionError):
    status_code = 400
    code = "INVALID_BALLOT"


class InvalidVerificationCode(ElectionError):
    status_code = 400
    code = "INVALID_VERIFICATION_CODE"


class Conflict(ElectionError):
    status_code = 409
    code = "CONFLICT"


class VoterAlreadyRegistered(Conflict):
    code = "ALREADY_REGISTERED"


class VoteUpdateNotAllowed(Conflict):
    code = "VOTE_UPDATE_NOT_ALLOWED"


class NotFound(ElectionError):
    status_code = 404
    code = "NOT_FOUND"


class RateLimitExceeded(ElectionError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"

    def __init__(self, retry_after_seconds: int, bucket: Optional[str] = None):
        super().__init__(
            f"Too many attempts. Try again in {retry_after_seconds}s.",
            details={"retry_after_seconds": retry_after_seconds, "bucket": bucket},
        )
        self.retry_after_seconds = retry_after_seconds


class PersistenceFailure(ElectionError):
    status_code = 503
    code = "PERSISTENCE_FAILURE"


def _payload(code: str, message: str, details=None, status=400):
    return (
        jsonify({
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "details": details or None,
            },
            "request_id": getattr(g, "request_id", None),
        }),
        status,
    )


def register_error_handlers(app):
    @app.errorhandler(ElectionError)
    def handle_election_error(e: ElectionError):
        if e.status_code >= 500:
            app.logger.error("%s: %s", e.code, e.message)
        else:
            app.logger.info("Request rejected code=%s message=%s", e.code, e.message)

        response, status = _payload(e.code, e.message, details=e.details, status=e.status_code)
        if isinstance(e, RateLimitExceeded):
            response.headers["Retry-After"] = str(e.retry_after_seconds)
        return response, status

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        desc = e.description

        # Structured error info passed via abort(description=dict)
        if isinstance(desc, dict):
            code = desc.get("code") or e.name.replace(" ", "_").upper()
            message = desc.get("message") or e.name
            details = desc.get("errors") or desc.get("details")
            return _payload(code=code, message=message, details=details, status=e.code or 400)

        return _payload(
            code=e.name.replace(" ", "_").upper(),
            message=desc or e.name,
            details=None,
            status=e.code or 400
        )

    @app.errorhandler(404)
    def handle_404(_):
        return _payload("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return handle_http_exception(e)
        app.logger.exception("Unhandled exception")
        # Don't leak internals
        return _payload("INTERNAL_SERVER_ERROR", "An unexpected error occurred", status=500)
