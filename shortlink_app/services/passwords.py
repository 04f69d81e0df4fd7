"""
Password hashing for protected links.

bcrypt embeds a per-hash salt and `checkpw` compares in constant time.
"""

import bcrypt


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(candidate: str, password_hash: str) -> bool:
    """Return True if `candidate` matches `password_hash`. Malformed hashes never match."""
    if not candidate or not password_hash:
        return False
    try:
        return bcrypt.checkpw(candidate.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
