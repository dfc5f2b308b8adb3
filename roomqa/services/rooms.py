"""
Room lifecycle: creation, joining, visibility, closing and deletion
"""

import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from roomqa.codes import generate_room_code
from roomqa.config import Settings
from roomqa.errors import (
    AlreadyClosed,
    DuplicateRoomName,
    Forbidden,
    RoomClosed,
    RoomNotFound,
    ValidationError,
)
from roomqa.models import (
    Caller,
    EphemeralRoom,
    EventType,
    OwnedRoom,
    Room,
    RoomStatus,
    RoomSummary,
)
from roomqa.services.fanout import FanoutGateway
from roomqa.store import RoomStore

logger = logging.getLogger(__name__)

EPHEMERAL_NAME_SUFFIX = "'s Room"


def utc_now() -> datetime:
    return datetime.now(UTC)


def normalize_code(code: str) -> str:
    return code.strip().upper()


class RoomManager:
    """Creates, closes, expires and deletes rooms"""

    def __init__(
        self,
        store: RoomStore,
        gateway: FanoutGateway,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.settings = settings
        self.clock = clock

    # Reads

    def get_room(self, room_id: str) -> Room:
        room = self.store.get_room(room_id)
        if room is None:
            raise RoomNotFound()
        return room

    def get_room_by_code(self, code: str) -> Room:
        room_id = self.store.find_room_id_by_code(normalize_code(code))
        if room_id is None:
            raise RoomNotFound()
        return self.get_room(room_id)

    def get_owned_room(self, room_id: str, caller: Caller) -> Room:
        """Fetch a room and check the caller may moderate it"""
        room = self.get_room(room_id)
        if not room.is_owned_by(caller):
            raise Forbidden()
        return room

    def list_rooms(self, owner_ref: str) -> list[Room]:
        return self.store.get_owner_rooms(owner_ref)

    # Creation

    def create_room(
        self,
        owner_ref: str,
        owner_name: str,
        name: str,
        questions_visible: bool = True,
    ) -> Room:
        """
        Create a room owned by a lecturer account

        Args:
            owner_ref: Lecturer user ID
            owner_name: Lecturer display name
            name: Room name
            questions_visible: Whether students see each other's questions

        Returns:
            The new room

        Raises:
            DuplicateRoomName: If the lecturer has an active room with this name
        """
        name = self._validate_name(name)
        now = self.clock()

        for existing in self.store.get_owner_rooms(owner_ref):
            if existing.name.strip() == name and existing.is_open(now):
                raise DuplicateRoomName()

        room = self._create(
            name=name,
            owner_display_name=owner_name,
            tenancy=OwnedRoom(owner_ref=owner_ref),
            questions_visible=questions_visible,
            now=now,
        )
        logger.info("Room %s (%s) created by %s", room.id, room.code, owner_ref)
        return room

    def create_ephemeral_room(self, owner_name: str) -> Room:
        """
        Create a one-time room that needs no account and expires after an hour

        The returned room carries the host token that its creator must
        present to moderate it.
        """
        owner_name = owner_name.strip() if owner_name else ""
        if not owner_name:
            raise ValidationError("Please provide your name")
        max_owner_length = self.settings.max_room_name_length - len(EPHEMERAL_NAME_SUFFIX)
        if len(owner_name) > max_owner_length:
            raise ValidationError(
                f"Your name cannot be more than {max_owner_length} characters"
            )

        now = self.clock()
        expires_at = now + timedelta(seconds=self.settings.ephemeral_ttl)
        room = self._create(
            name=self._validate_name(f"{owner_name}{EPHEMERAL_NAME_SUFFIX}"),
            owner_display_name=owner_name,
            tenancy=EphemeralRoom(
                expires_at=expires_at, host_token=secrets.token_urlsafe(32)
            ),
            questions_visible=True,
            now=now,
        )
        self.schedule_eviction(room)
        logger.info("One-time room %s (%s) created, expires %s", room.id, room.code, expires_at)
        return room

    def _create(
        self,
        name: str,
        owner_display_name: str,
        tenancy: OwnedRoom | EphemeralRoom,
        questions_visible: bool,
        now: datetime,
    ) -> Room:
        room_id = f"r-{uuid.uuid4().hex}"
        code = generate_room_code(
            lambda candidate: self.store.claim_code(candidate, room_id),
            attempts=self.settings.code_attempts,
        )
        room = Room(
            id=room_id,
            name=name,
            code=code,
            owner_display_name=owner_display_name,
            tenancy=tenancy,
            questions_visible_to_all=questions_visible,
            created_at=now,
        )
        self.store.save_room(room)
        return room

    def _validate_name(self, name: str) -> str:
        name = name.strip() if name else ""
        if not name:
            raise ValidationError("Please provide a room name")
        if len(name) > self.settings.max_room_name_length:
            raise ValidationError(
                f"Room name cannot be more than {self.settings.max_room_name_length} characters"
            )
        return name

    def schedule_eviction(self, room: Room) -> None:
        """Give a one-time room's keys a TTL past its expiry"""
        if room.expires_at is None:
            return
        evict_at = room.expires_at + timedelta(seconds=self.settings.ephemeral_retention)
        self.store.apply_room_expiry(room.id, evict_at)

    # Participation

    def join_room(self, code: str) -> RoomSummary:
        """
        Join a room by code (case-insensitive)

        Raises:
            RoomNotFound: If no room holds the code
            RoomClosed: If the room is closed or has expired
        """
        room = self.get_room_by_code(code)
        if not room.is_open(self.clock()):
            raise RoomClosed("Room is closed")

        self.store.increment_participants(room.id)
        if room.ephemeral:
            self.schedule_eviction(room)

        return RoomSummary(
            id=room.id,
            name=room.name,
            code=room.code,
            owner_name=room.owner_display_name,
            questions_visible=room.questions_visible_to_all,
            status=room.status,
            expires_at=room.expires_at,
        )

    # Owner actions

    async def toggle_visibility(self, room_id: str, caller: Caller) -> Room:
        room = self.get_owned_room(room_id, caller)
        room.questions_visible_to_all = not room.questions_visible_to_all
        self.store.save_room(room)

        logger.info(
            "Room %s questions now %s",
            room.code,
            "public" if room.questions_visible_to_all else "private",
        )
        await self.gateway.publish(
            room.code,
            EventType.ROOM_VISIBILITY_CHANGED,
            {"questionsVisible": room.questions_visible_to_all},
        )
        return room

    async def close_room(self, room_id: str, caller: Caller) -> Room:
        """
        Close a room; closing twice raises AlreadyClosed

        Expired one-time rooms count as already closed.
        """
        room = self.get_owned_room(room_id, caller)
        now = self.clock()
        if room.effective_status(now) == RoomStatus.CLOSED:
            raise AlreadyClosed()

        room.status = RoomStatus.CLOSED
        room.closed_at = now
        self.store.save_room(room)

        logger.info("Room %s closed", room.code)
        await self.gateway.publish(
            room.code,
            EventType.ROOM_STATUS_CHANGED,
            {"status": RoomStatus.CLOSED.value, "message": "The lecturer has closed this room"},
        )
        return room

    async def delete_room(self, room_id: str, caller: Caller) -> None:
        """Delete a room and all of its questions"""
        room = self.get_owned_room(room_id, caller)
        deleted = self.store.delete_room(room)

        logger.info("Room %s deleted with %d questions", room.code, deleted)
        await self.gateway.publish(
            room.code,
            EventType.ROOM_DELETED,
            {"message": "This room has been deleted"},
        )
