"""
Realtime fan-out of room events to subscribed connections
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from roomqa.models import EventType

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """A live client connection that can receive room events"""

    id: str
    label: str
    voter_token: str | None
    is_host: bool

    async def send(self, event: str, data: dict[str, Any]) -> None: ...

    def close(self) -> None: ...


class QueueConnection:
    """Connection that buffers events for a streaming response to drain"""

    def __init__(
        self,
        label: str = "A participant",
        voter_token: str | None = None,
        is_host: bool = False,
        maxsize: int = 100,
    ) -> None:
        self.id = f"c-{uuid.uuid4().hex}"
        self.label = label
        self.voter_token = voter_token
        self.is_host = is_host
        self.closed = False
        self.queue: asyncio.Queue[tuple[str, dict[str, Any]] | None] = asyncio.Queue(maxsize)

    async def send(self, event: str, data: dict[str, Any]) -> None:
        if self.closed:
            raise ConnectionError("connection closed")
        # A full queue means the client stopped reading
        self.queue.put_nowait((event, data))

    def close(self) -> None:
        """Stop accepting events and wake the reader so its stream can end"""
        if self.closed:
            return
        self.closed = True
        if self.queue.full():
            # Make room for the end marker; the client reloads the room on reconnect
            self.queue.get_nowait()
        self.queue.put_nowait(None)

    async def receive(self) -> tuple[str, dict[str, Any]] | None:
        """Next buffered event, or None once the connection has been closed"""
        return await self.queue.get()


class FanoutGateway:
    """
    Registry of room code -> subscribed connections

    The registry is guarded by a single lock. Deliveries happen on a snapshot
    taken under the lock, so a connection that subscribes after publish()
    starts never sees that event.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, set[Connection]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, connection: Connection, room_code: str) -> None:
        """
        Add a connection to a room and announce it to the others

        Args:
            connection: Connection to add
            room_code: Room code
        """
        code = room_code.upper()
        async with self._lock:
            subscribers = self._rooms.setdefault(code, set())
            others = set(subscribers)
            subscribers.add(connection)

        logger.info("Connection %s subscribed to %s", connection.id, code)
        await self._deliver(
            code,
            others,
            EventType.USER_JOINED.value,
            {"message": f"{connection.label} joined", "timestamp": _timestamp()},
        )

    async def unsubscribe(self, connection: Connection, room_code: str) -> None:
        """
        Remove a connection from a room and announce it to the rest

        Args:
            connection: Connection to remove
            room_code: Room code
        """
        code = room_code.upper()
        async with self._lock:
            subscribers = self._rooms.get(code)
            if subscribers is None or connection not in subscribers:
                return
            subscribers.discard(connection)
            if not subscribers:
                del self._rooms[code]
            others = set(subscribers)

        logger.info("Connection %s left %s", connection.id, code)
        await self._deliver(
            code,
            others,
            EventType.USER_LEFT.value,
            {"message": f"{connection.label} left", "timestamp": _timestamp()},
        )

    async def publish(
        self,
        room_code: str,
        event: EventType | str,
        payload: dict[str, Any],
        exclude: Connection | None = None,
        audience: Callable[[Connection], bool] | None = None,
    ) -> int:
        """
        Deliver an event to every current subscriber of a room

        Args:
            room_code: Room code
            event: Event name
            payload: Event data
            exclude: Optional originator that should not receive the event
            audience: Optional predicate restricting who receives the event

        Returns:
            Number of connections the event was delivered to
        """
        code = room_code.upper()
        async with self._lock:
            targets = set(self._rooms.get(code, ()))

        targets.discard(exclude)
        if audience is not None:
            targets = {conn for conn in targets if audience(conn)}

        name = event.value if isinstance(event, EventType) else event
        return await self._deliver(code, targets, name, payload)

    def subscriber_count(self, room_code: str) -> int:
        return len(self._rooms.get(room_code.upper(), ()))

    async def _deliver(
        self,
        code: str,
        targets: set[Connection],
        event: str,
        payload: dict[str, Any],
    ) -> int:
        delivered = 0
        failed = []
        for conn in targets:
            try:
                await conn.send(event, payload)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "Dropping connection %s from %s after failed %s delivery: %r",
                    conn.id,
                    code,
                    event,
                    e,
                )
                failed.append(conn)
                conn.close()

        if failed:
            async with self._lock:
                subscribers = self._rooms.get(code)
                if subscribers is not None:
                    subscribers.difference_update(failed)
                    if not subscribers:
                        del self._rooms[code]

        return delivered


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()
