# washstation/utils/passwords.py
from __future__ import annotations

import re
from typing import Tuple

from werkzeug.security import check_password_hash, generate_password_hash


# =========================
# Password hashing / verify
# =========================
def hash_password(plain_password: str) -> str:
    """Hash a plaintext password with Werkzeug's scrypt."""
    if not isinstance(plain_password, str) or not plain_password.strip():
        raise ValueError("Password must be a non-empty string.")
    return generate_password_hash(plain_password, method="scrypt")


def verify_password(password_hash: str, plain_password: str) -> bool:
    if not password_hash or not plain_password:
        return False
    return check_password_hash(password_hash, plain_password)


# =========================
# Password policy
# =========================
_PASSWORD_RULES = [
    (lambda s: len(s) >= 10, "Password must be at least 10 characters."),
    (lambda s: re.search(r"[A-Z]", s) is not None, "Include at least one uppercase letter."),
    (lambda s: re.search(r"[a-z]", s) is not None, "Include at least one lowercase letter."),
    (lambda s: re.search(r"\d", s) is not None, "Include at least one number."),
    (lambda s: re.search(r"[^\w\s]", s) is not None, "Include at least one symbol (e.g. !@#$)."),
]


def validate_password(plain_password: str) -> Tuple[bool, str]:
    """
    Returns (ok, message). If ok is False, message explains what to fix.
    """
    if not isinstance(plain_password, str):
        return False, "Password must be text."
    pw = plain_password.strip()
    if not pw:
        return False, "Password cannot be empty."

    for rule, msg in _PASSWORD_RULES:
        if not rule(pw):
            return False, msg
    return True, ""
