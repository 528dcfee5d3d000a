from typing import Optional, Dict, Any
from flask import current_app, has_request_context, request

from ..extensions import db
from ..models.audit_log import AuditLog


def _request_context():
    """(ip, user_agent) for the current request, or (None, None) outside one."""
    if not has_request_context():
        return None, None
    ip = request.remote_addr
    ua = request.headers.get("User-Agent")
    return ip, ua[:255] if ua else None


def audit_log(
    action: str,
    actor: str,
    actor_type: str = AuditLog.ACTOR_SYSTEM,
    election_id=None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Stage an audit row in the current session; the caller commits."""
    ip, ua = _request_context()

    log = AuditLog(
        actor=actor,
        actor_type=actor_type,
        action=action,
        election_id=election_id,
        ip_address=ip[:64] if ip else None,
        user_agent=ua,
        details=details or None,
    )
    db.session.add(log)


def safe_audit(
    action: str,
    actor: str,
    actor_type: str = AuditLog.ACTOR_SYSTEM,
    election_id=None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Best-effort audit written in its own commit after the main work.
    Failures are logged and never reach the caller.
    """
    try:
        audit_log(action, actor, actor_type=actor_type, election_id=election_id, details=details)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Audit logging failed: %s", action)
