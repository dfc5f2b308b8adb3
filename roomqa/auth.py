"""
Authentication helpers: signed session cookies for lecturers, hosts and voters
"""

import secrets

from fastapi import HTTPException
from itsdangerous import BadSignature, SignatureExpired, TimestampSigner

from roomqa.models import Caller

LECTURER_COOKIE = "lecturer_session"
HOST_COOKIE = "host_session"
VOTER_COOKIE = "voter_session"

VOTER_SALT = "roomqa.voter"
LECTURER_SALT = "roomqa.lecturer"
HOST_SALT = "roomqa.host"


def sign_value(value: str, secret_key: str, salt: str) -> str:
    """
    Sign a cookie value

    Args:
        value: Value to sign
        secret_key: Secret key for signing
        salt: Keeps one cookie kind from being replayed as another

    Returns:
        Signed cookie string
    """
    signer = TimestampSigner(secret_key, salt=salt)
    return signer.sign(value).decode()


def unsign_value(
    cookie: str | None,
    secret_key: str,
    salt: str,
    max_age: int | None = None,
) -> str | None:
    """
    Verify a signed cookie and return its value

    Args:
        cookie: Signed cookie string
        secret_key: Secret key for verification
        salt: Salt the value was signed with
        max_age: Optional max age in seconds (None = no limit)

    Returns:
        Value if valid, None if invalid or expired
    """
    if not cookie:
        return None

    try:
        signer = TimestampSigner(secret_key, salt=salt)
        if max_age is not None:
            return signer.unsign(cookie, max_age=max_age).decode()
        return signer.unsign(cookie).decode()
    except (BadSignature, SignatureExpired):
        return None
    except UnicodeDecodeError:
        return None


# Voter tokens


def new_voter_token() -> str:
    """Generate an anonymous session token for a student"""
    return f"v-{secrets.token_urlsafe(16)}"


def create_voter_cookie(voter_token: str, secret_key: str) -> str:
    return sign_value(voter_token, secret_key, VOTER_SALT)


def verify_voter_cookie(
    cookie: str | None, secret_key: str, max_age: int | None = None
) -> str | None:
    return unsign_value(cookie, secret_key, VOTER_SALT, max_age=max_age)


# Lecturer sessions


def create_lecturer_cookie(user_id: str, secret_key: str) -> str:
    return sign_value(user_id, secret_key, LECTURER_SALT)


def verify_lecturer_cookie(
    cookie: str | None, secret_key: str, max_age: int | None = None
) -> str | None:
    return unsign_value(cookie, secret_key, LECTURER_SALT, max_age=max_age)


# One-time room hosts


def create_host_cookie(room_id: str, host_token: str, secret_key: str) -> str:
    """
    Create a signed cookie that lets the creator of a one-time room moderate it

    Args:
        room_id: One-time room ID
        host_token: The room's host secret
        secret_key: Secret key for signing

    Returns:
        Signed cookie string
    """
    return sign_value(f"{room_id}:{host_token}", secret_key, HOST_SALT)


def verify_host_cookie(
    cookie: str | None, secret_key: str, max_age: int | None = None
) -> str | None:
    """Return the host token carried by a host cookie, or None"""
    data = unsign_value(cookie, secret_key, HOST_SALT, max_age=max_age)
    if data is None or ":" not in data:
        return None
    _, host_token = data.split(":", 1)
    return host_token


def caller_from_cookies(
    lecturer_cookie: str | None,
    host_cookie: str | None,
    secret_key: str,
    max_age: int | None = None,
) -> Caller:
    """Build the caller identity from whichever moderation cookies are present"""
    return Caller(
        user_id=verify_lecturer_cookie(lecturer_cookie, secret_key, max_age=max_age),
        host_token=verify_host_cookie(host_cookie, secret_key, max_age=max_age),
    )


# FastAPI Dependencies


def require_voter(
    cookie: str | None,
    secret_key: str,
    max_age: int | None = None,
) -> str:
    """
    Require a valid voter cookie

    Raises:
        HTTPException: If cookie is invalid or missing
    """
    voter_token = verify_voter_cookie(cookie, secret_key, max_age=max_age)

    if voter_token is None:
        raise HTTPException(
            status_code=401,
            detail="Join the room first",
        )

    return voter_token


def require_lecturer(
    cookie: str | None,
    secret_key: str,
    max_age: int | None = None,
) -> str:
    """
    Require a valid lecturer cookie

    Raises:
        HTTPException: If cookie is invalid or missing
    """
    user_id = verify_lecturer_cookie(cookie, secret_key, max_age=max_age)

    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail="Not authorized, please log in",
        )

    return user_id
