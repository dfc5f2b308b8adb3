"""
Pydantic models for the application
"""

import hmac
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class RoomStatus(str, Enum):
    """Lifecycle status of a room"""

    ACTIVE = "active"
    CLOSED = "closed"


class QuestionStatus(str, Enum):
    """Moderation status of a student question"""

    PENDING = "pending"
    APPROVED = "approved"
    ANSWERED = "answered"
    REJECTED = "rejected"


class Caller(BaseModel):
    """Identity presented by a request that wants to moderate a room"""

    user_id: str | None = None
    host_token: str | None = None


# Room tenancy variants


class OwnedRoom(BaseModel):
    """A room that belongs to a lecturer account"""

    kind: Literal["owned"] = "owned"
    owner_ref: str

    def is_owned_by(self, caller: Caller) -> bool:
        return caller.user_id is not None and caller.user_id == self.owner_ref


class EphemeralRoom(BaseModel):
    """A one-time room with no account behind it"""

    kind: Literal["ephemeral"] = "ephemeral"
    expires_at: datetime
    host_token: str = Field(repr=False)

    def is_owned_by(self, caller: Caller) -> bool:
        if caller.host_token is None:
            return False
        return hmac.compare_digest(caller.host_token, self.host_token)


Tenancy = Annotated[OwnedRoom | EphemeralRoom, Field(discriminator="kind")]


class Room(BaseModel):
    """A Q&A room"""

    id: str
    name: str
    code: str
    owner_display_name: str
    tenancy: Tenancy
    questions_visible_to_all: bool = True
    status: RoomStatus = RoomStatus.ACTIVE
    question_count: int = 0
    participant_count: int = 0
    created_at: datetime
    closed_at: datetime | None = None

    @property
    def ephemeral(self) -> bool:
        return isinstance(self.tenancy, EphemeralRoom)

    @property
    def owner_ref(self) -> str | None:
        if isinstance(self.tenancy, OwnedRoom):
            return self.tenancy.owner_ref
        return None

    @property
    def expires_at(self) -> datetime | None:
        if isinstance(self.tenancy, EphemeralRoom):
            return self.tenancy.expires_at
        return None

    def is_expired(self, now: datetime) -> bool:
        """One-time rooms expire; owned rooms never do"""
        expires_at = self.expires_at
        return expires_at is not None and now >= expires_at

    def effective_status(self, now: datetime) -> RoomStatus:
        if self.is_expired(now):
            return RoomStatus.CLOSED
        return self.status

    def is_open(self, now: datetime) -> bool:
        return self.effective_status(now) == RoomStatus.ACTIVE

    def is_owned_by(self, caller: Caller) -> bool:
        return self.tenancy.is_owned_by(caller)

    def public(self, now: datetime) -> dict[str, Any]:
        """Serializable view without credentials"""
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "owner_name": self.owner_display_name,
            "ephemeral": self.ephemeral,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "questions_visible": self.questions_visible_to_all,
            "status": self.effective_status(now).value,
            "question_count": self.question_count,
            "participant_count": self.participant_count,
            "created_at": self.created_at.isoformat(),
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }


class RoomSummary(BaseModel):
    """Read-only view of a room returned to a student who joins it"""

    id: str
    name: str
    code: str
    owner_name: str
    questions_visible: bool
    status: RoomStatus
    expires_at: datetime | None = None


class Question(BaseModel):
    """A student question inside a room"""

    id: str
    room_id: str
    text: str
    author_tag: str
    author_token: str = Field(repr=False)
    seq: int
    status: QuestionStatus = QuestionStatus.PENDING
    upvoted_by: set[str] = Field(default_factory=set)
    reported_by: set[str] = Field(default_factory=set)
    created_at: datetime
    answered_at: datetime | None = None

    @property
    def upvote_count(self) -> int:
        return len(self.upvoted_by)

    @property
    def report_count(self) -> int:
        return len(self.reported_by)

    @property
    def is_reported(self) -> bool:
        return self.report_count >= 1

    def public(self, viewer_token: str | None = None) -> dict[str, Any]:
        """Serializable view without voter identities"""
        return {
            "id": self.id,
            "room_id": self.room_id,
            "text": self.text,
            "author_tag": self.author_tag,
            "status": self.status.value,
            "upvotes": self.upvote_count,
            "reports": self.report_count,
            "is_reported": self.is_reported,
            "created_at": self.created_at.isoformat(),
            "answered_at": self.answered_at.isoformat() if self.answered_at else None,
            "upvoted": viewer_token is not None and viewer_token in self.upvoted_by,
            "mine": viewer_token is not None and viewer_token == self.author_token,
        }


class User(BaseModel):
    """Lecturer account held by the user directory"""

    id: str
    name: str
    email: str
    password_hash: str = Field(repr=False)
    created_at: datetime


# Realtime event names


class EventType(str, Enum):
    """Events delivered to subscribers of a room"""

    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"
    NEW_QUESTION = "new-question"
    QUESTION_UPVOTE_UPDATE = "question-upvote-update"
    QUESTION_APPROVAL = "question-approval"
    QUESTION_MARKED_ANSWERED = "question-marked-answered"
    QUESTION_REMOVED = "question-removed"
    QUESTION_REPORTED = "question-reported"
    QUESTION_REJECTED = "question-rejected"
    ROOM_STATUS_CHANGED = "room-status-changed"
    ROOM_VISIBILITY_CHANGED = "room-visibility-changed"
    ROOM_DELETED = "room-deleted"
