from flask_mail import Message
from flask import current_app
from ..extensions import mail


def send_verification_code(to_email: str, code: str, election_title: str) -> None:
    sender = current_app.config.get("MAIL_DEFAULT_SENDER")
    if not sender:
        # Fail fast with a meaningful message (instead of Flask-Mail assertion)
        raise RuntimeError(
            "MAIL_DEFAULT_SENDER is not configured. Set MAIL_DEFAULT_SENDER in .env"
        )

    subject = f"Your verification code for {election_title}"
    body = (
        f"Your verification code is: {code}\n\n"
        f"It expires in {current_app.config['VERIFICATION_CODE_TTL_SECONDS'] // 60} minutes.\n"
        "If you did not register for this election, please ignore this email."
    )
    msg = Message(subject=subject, recipients=[to_email], body=body, sender=sender)
    mail.send(msg)


def safe_send_verification_code(to_email: str, code: str, election_title: str) -> bool:
    """Delivery is fire-and-forget: registration has already committed."""
    try:
        send_verification_code(to_email, code, election_title)
        return True
    except Exception:
        current_app.logger.exception("Failed to send verification code to %s", to_email)
        return False
