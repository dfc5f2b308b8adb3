"""
Lecturer accounts: lookup, registration and password checks
"""

import uuid
from datetime import UTC, datetime
from typing import Protocol

import bcrypt

from roomqa.errors import EmailTaken, ValidationError
from roomqa.models import User
from roomqa.store import RoomStore

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


class UserDirectory(Protocol):
    """Where lecturer accounts live"""

    def find_by_email(self, email: str) -> User | None: ...

    def find_by_id(self, user_id: str) -> User | None: ...

    def create(self, name: str, email: str, password: str) -> User: ...

    def verify_password(self, user: User, password: str) -> bool: ...


def hash_password(password: str) -> str:
    """Hash a password with bcrypt and a fresh salt"""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def check_password(password: str, password_hash: str) -> bool:
    secret = password.encode()
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(secret, password_hash.encode())


class RedisUserDirectory:
    """User directory stored next to the rooms in Redis"""

    def __init__(self, store: RoomStore) -> None:
        self.store = store

    def find_by_email(self, email: str) -> User | None:
        return self.store.get_user_by_email(email.strip())

    def find_by_id(self, user_id: str) -> User | None:
        return self.store.get_user(user_id)

    def create(self, name: str, email: str, password: str) -> User:
        name = name.strip()
        email = email.strip().lower()
        if not name or not email or not password:
            raise ValidationError("Please provide name, email and password")
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters")
        if len(password.encode()) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes"
            )

        user = User(
            id=f"u-{uuid.uuid4().hex}",
            name=name,
            email=email,
            password_hash=hash_password(password),
            created_at=datetime.now(UTC),
        )
        if not self.store.create_user(user):
            raise EmailTaken()
        return user

    def verify_password(self, user: User, password: str) -> bool:
        return check_password(password, user.password_hash)
