import secrets
import string
from werkzeug.security import generate_password_hash, check_password_hash

# No 0/O/1/I/L so codes survive being read aloud or retyped
SHARE_CODE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
SHARE_CODE_LENGTH = 8


def hash_password(raw_password: str) -> str:
    return generate_password_hash(raw_password)


def verify_password(raw_password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, raw_password)


def generate_verification_code(length: int = 6) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def hash_verification_code(code: str) -> str:
    return generate_password_hash(code)


def verify_verification_code(code: str, code_hash: str) -> bool:
    return check_password_hash(code_hash, code)


def generate_share_code() -> str:
    return "".join(secrets.choice(SHARE_CODE_ALPHABET) for _ in range(SHARE_CODE_LENGTH))
