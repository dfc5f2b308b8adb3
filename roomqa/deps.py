"""
FastAPI dependencies shared by the route modules
"""

from collections.abc import Callable, Generator
from datetime import datetime
from typing import Annotated

import redis
from fastapi import Cookie, Depends, Request

import roomqa.config
from roomqa.auth import caller_from_cookies, require_lecturer, require_voter, verify_voter_cookie
from roomqa.directory import RedisUserDirectory, UserDirectory
from roomqa.models import Caller
from roomqa.notifier import Notifier
from roomqa.services.fanout import FanoutGateway
from roomqa.services.questions import ModerationEngine
from roomqa.services.rooms import RoomManager, utc_now
from roomqa.store import RoomStore


def get_redis() -> Generator[redis.Redis, None, None]:
    """Get a Redis connection for the duration of a request"""
    redis_conn = redis.from_url(roomqa.config.settings.redis_url, decode_responses=True)
    try:
        yield redis_conn
    finally:
        redis_conn.close()


def get_store(redis_conn: Annotated[redis.Redis, Depends(get_redis)]) -> RoomStore:
    return RoomStore(redis_conn)


def get_clock() -> Callable[[], datetime]:
    return utc_now


def get_gateway(request: Request) -> FanoutGateway:
    return request.app.state.gateway


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_room_manager(
    store: Annotated[RoomStore, Depends(get_store)],
    gateway: Annotated[FanoutGateway, Depends(get_gateway)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> RoomManager:
    return RoomManager(store, gateway, roomqa.config.settings, clock=clock)


def get_moderation(
    rooms: Annotated[RoomManager, Depends(get_room_manager)],
) -> ModerationEngine:
    return ModerationEngine(rooms)


def get_directory(store: Annotated[RoomStore, Depends(get_store)]) -> UserDirectory:
    return RedisUserDirectory(store)


# Authentication


def get_caller(
    lecturer_session: Annotated[str | None, Cookie()] = None,
    host_session: Annotated[str | None, Cookie()] = None,
) -> Caller:
    """Collect whatever moderation credentials the request carries"""
    settings = roomqa.config.settings
    return caller_from_cookies(
        lecturer_session, host_session, settings.secret_key, max_age=settings.cookie_max_age
    )


def verify_lecturer_auth(
    lecturer_session: Annotated[str | None, Cookie()] = None,
) -> str:
    """Verify lecturer authentication and return the user ID"""
    settings = roomqa.config.settings
    return require_lecturer(
        lecturer_session, settings.secret_key, max_age=settings.cookie_max_age
    )


def verify_voter_auth(
    voter_session: Annotated[str | None, Cookie()] = None,
) -> str:
    """Verify the student's anonymous session and return its voter token"""
    settings = roomqa.config.settings
    return require_voter(voter_session, settings.secret_key, max_age=settings.cookie_max_age)


def optional_voter(
    voter_session: Annotated[str | None, Cookie()] = None,
) -> str | None:
    settings = roomqa.config.settings
    return verify_voter_cookie(
        voter_session, settings.secret_key, max_age=settings.cookie_max_age
    )
