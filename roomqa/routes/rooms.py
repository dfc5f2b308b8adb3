"""
Room routes: creation, joining and owner controls
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

import roomqa.config
from roomqa.auth import (
    HOST_COOKIE,
    VOTER_COOKIE,
    create_host_cookie,
    create_voter_cookie,
    new_voter_token,
)
from roomqa.deps import (
    get_caller,
    get_directory,
    get_room_manager,
    optional_voter,
    verify_lecturer_auth,
)
from roomqa.directory import UserDirectory
from roomqa.models import Caller, Room, RoomSummary
from roomqa.services.rooms import RoomManager

router = APIRouter(prefix="/api/rooms")


# Request/Response models

class RoomCreateRequest(BaseModel):
    """Request to create a lecturer room"""
    name: str
    questions_visible: bool = True


class OneTimeRoomRequest(BaseModel):
    """Request to create a one-time room"""
    lecturer_name: str


class JoinRequest(BaseModel):
    """Request to join a room by code"""
    room_code: str


class RoomResponse(BaseModel):
    """Room as seen by its owner"""
    id: str
    name: str
    code: str
    owner_name: str
    ephemeral: bool
    expires_at: datetime | None = None
    questions_visible: bool
    status: str
    question_count: int
    participant_count: int
    created_at: datetime
    closed_at: datetime | None = None


class RoomListResponse(BaseModel):
    count: int
    rooms: list[RoomResponse]


class RoomActionResponse(BaseModel):
    """Response for owner actions"""
    message: str
    room: RoomResponse


class StatusResponse(BaseModel):
    status: str
    message: str


def to_response(room: Room, rooms: RoomManager) -> RoomResponse:
    return RoomResponse(**room.public(rooms.clock()))


@router.post("", status_code=201)
async def create_room(
    body: RoomCreateRequest,
    user_id: Annotated[str, Depends(verify_lecturer_auth)],
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
    directory: Annotated[UserDirectory, Depends(get_directory)],
) -> RoomResponse:
    """
    Create a new room for the logged-in lecturer
    """
    user = directory.find_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authorized, user not found")

    room = rooms.create_room(
        owner_ref=user.id,
        owner_name=user.name,
        name=body.name,
        questions_visible=body.questions_visible,
    )
    return to_response(room, rooms)


@router.get("")
async def list_rooms(
    user_id: Annotated[str, Depends(verify_lecturer_auth)],
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
) -> RoomListResponse:
    """
    Get all rooms for the logged-in lecturer, newest first
    """
    owned = [to_response(room, rooms) for room in rooms.list_rooms(user_id)]
    return RoomListResponse(count=len(owned), rooms=owned)


@router.post("/one-time", status_code=201)
async def create_one_time_room(
    body: OneTimeRoomRequest,
    response: Response,
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
) -> RoomResponse:
    """
    Create a one-time room (no account needed, expires after an hour)

    The creator receives a host cookie that lets them moderate the room.
    """
    settings = roomqa.config.settings
    room = rooms.create_ephemeral_room(body.lecturer_name)

    response.set_cookie(
        key=HOST_COOKIE,
        value=create_host_cookie(room.id, room.tenancy.host_token, settings.secret_key),
        httponly=True,
        secure=False,  # Set to True in production with HTTPS
        samesite="lax",
        max_age=settings.ephemeral_ttl,
    )
    return to_response(room, rooms)


@router.post("/join")
async def join_room(
    body: JoinRequest,
    response: Response,
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
    voter_token: Annotated[str | None, Depends(optional_voter)],
) -> RoomSummary:
    """
    Join a room with its code (for students)
    """
    summary = rooms.join_room(body.room_code)

    if voter_token is None:
        settings = roomqa.config.settings
        response.set_cookie(
            key=VOTER_COOKIE,
            value=create_voter_cookie(new_voter_token(), settings.secret_key),
            httponly=True,
            secure=False,  # Set to True in production with HTTPS
            samesite="lax",
            max_age=settings.cookie_max_age,
        )

    return summary


@router.get("/{room_id}")
async def get_room(
    room_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
) -> RoomResponse:
    """
    Get a single room (owner only)
    """
    return to_response(rooms.get_owned_room(room_id, caller), rooms)


@router.put("/{room_id}/toggle-visibility")
async def toggle_visibility(
    room_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
) -> RoomActionResponse:
    """
    Toggle whether students see each other's questions
    """
    room = await rooms.toggle_visibility(room_id, caller)
    state = "public" if room.questions_visible_to_all else "private"
    return RoomActionResponse(
        message=f"Questions are now {state}", room=to_response(room, rooms)
    )


@router.put("/{room_id}/close")
async def close_room(
    room_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
) -> RoomActionResponse:
    """
    Close a room; it stays readable but accepts no new questions
    """
    room = await rooms.close_room(room_id, caller)
    return RoomActionResponse(
        message="Room closed successfully", room=to_response(room, rooms)
    )


@router.delete("/{room_id}")
async def delete_room(
    room_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
) -> StatusResponse:
    """
    Delete a room and all of its questions
    """
    await rooms.delete_room(room_id, caller)
    return StatusResponse(
        status="deleted",
        message="Room and all associated questions deleted successfully",
    )
