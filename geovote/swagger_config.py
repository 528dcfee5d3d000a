TAGS = [
    {"name": "Auth", "description": "Organizer accounts and JWT tokens"},
    {"name": "Elections", "description": "Organizer election management"},
    {"name": "Ballot", "description": "Positions and candidates; frozen once votes exist"},
    {"name": "Regions", "description": "Eligible areas voters must register from"},
    {"name": "Vote", "description": "Public endpoints addressed by share code"},
]


def _error_definition():
    return {
        "type": "object",
        "properties": {
            "success": {"type": "boolean", "example": False},
            "error": {
                "type": "object",
                "properties": {
                    "code": {"type": "string", "example": "PHASE_VIOLATION"},
                    "message": {"type": "string", "example": "Voting is not currently open"},
                    "details": {
                        "type": "object",
                        "example": {"phase": "registration"},
                        "description": "429 responses carry retry_after_seconds and bucket",
                    },
                },
            },
            "request_id": {"type": "string"},
        },
    }


def swagger_template(app=None):
    title = "GeoVote API"
    version = "1.0.0"

    if app:
        title = app.config.get("SWAGGER_TITLE", title)
        version = app.config.get("SWAGGER_VERSION", version)

    return {
        "swagger": "2.0",
        "info": {
            "title": title,
            "version": version,
            "description": "Geo-restricted elections: organizer management and public voting by share code.",
        },
        "consumes": ["application/json"],
        "produces": ["application/json"],
        "tags": TAGS,
        "securityDefinitions": {
            "BearerAuth": {
                "type": "apiKey",
                "name": "Authorization",
                "in": "header",
                "description": "JWT Authorization header: Bearer <token>",
            }
        },
        "definitions": {"ErrorResponse": _error_definition()},
    }
