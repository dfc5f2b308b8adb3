"""
Server-Sent Events (SSE) route for real-time room updates
"""

import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from roomqa.deps import get_caller, get_gateway, get_room_manager, optional_voter
from roomqa.models import Caller
from roomqa.services.fanout import FanoutGateway, QueueConnection
from roomqa.services.rooms import RoomManager

router = APIRouter()


def format_event(event: str, data: dict[str, Any]) -> str:
    """Format one event in SSE wire format"""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def event_stream(
    gateway: FanoutGateway,
    connection: QueueConnection,
    room_code: str,
    keepalive: float = 15.0,
) -> AsyncGenerator[str, None]:
    """
    Generate SSE events for one connection

    Args:
        gateway: Fan-out gateway to subscribe to
        connection: The client's connection
        room_code: Room code
        keepalive: Seconds of silence before a keepalive comment is sent

    Yields:
        SSE formatted event strings
    """
    await gateway.subscribe(connection, room_code)
    try:
        # Send initial comment to open the stream
        yield ": connected\n\n"

        while True:
            try:
                message = await asyncio.wait_for(connection.receive(), keepalive)
            except TimeoutError:
                yield ": keepalive\n\n"
                continue

            # Dropped by the gateway
            if message is None:
                return

            event, data = message
            yield format_event(event, data)
    finally:
        await gateway.unsubscribe(connection, room_code)


@router.get("/api/rooms/code/{code}/events")
async def room_event_stream(
    code: str,
    caller: Annotated[Caller, Depends(get_caller)],
    voter_token: Annotated[str | None, Depends(optional_voter)],
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
    gateway: Annotated[FanoutGateway, Depends(get_gateway)],
) -> StreamingResponse:
    """
    SSE stream of a room's events (students and host)
    """
    room = rooms.get_room_by_code(code)
    is_host = room.is_owned_by(caller)
    connection = QueueConnection(
        label="The lecturer" if is_host else "A student",
        voter_token=voter_token,
        is_host=is_host,
    )

    return StreamingResponse(
        event_stream(gateway, connection, room.code),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
