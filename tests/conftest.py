"""
Pytest configuration and fixtures
"""

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta

import fakeredis
import pytest
import redis
from fastapi.testclient import TestClient

from roomqa.auth import create_host_cookie, create_lecturer_cookie, create_voter_cookie
from roomqa.config import Settings
from roomqa.directory import RedisUserDirectory
from roomqa.models import Caller, Room, User
from roomqa.services.fanout import FanoutGateway, QueueConnection
from roomqa.services.questions import ModerationEngine
from roomqa.services.rooms import RoomManager
from roomqa.store import RoomStore


class FakeClock:
    """Clock that only moves when a test says so"""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="function")
def redis_client() -> Generator[redis.Redis, None, None]:
    """
    Fixture that provides an in-memory Redis.
    Every test gets its own server, so state never leaks between tests.
    """
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)

    yield client

    client.flushall()
    client.close()


@pytest.fixture(scope="function")
def test_settings() -> Settings:
    """
    Fixture that provides test settings.
    """
    return Settings(
        redis_url="redis://localhost:6379/1",
        secret_key="test-secret-key-for-hmac",
        rate_limit_window=0,
        notifier_backend="log",
    )


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock(datetime.now(UTC))


@pytest.fixture(scope="function")
def store(redis_client: redis.Redis) -> RoomStore:
    return RoomStore(redis_client)


@pytest.fixture(scope="function")
def gateway() -> FanoutGateway:
    return FanoutGateway()


@pytest.fixture(scope="function")
def room_manager(
    store: RoomStore, gateway: FanoutGateway, test_settings: Settings, clock: FakeClock
) -> RoomManager:
    return RoomManager(store, gateway, test_settings, clock=clock)


@pytest.fixture(scope="function")
def moderation(room_manager: RoomManager) -> ModerationEngine:
    return ModerationEngine(room_manager)


@pytest.fixture(scope="function")
def lecturer(store: RoomStore) -> User:
    """A registered lecturer account"""
    return RedisUserDirectory(store).create("Dr. Ada", "ada@example.edu", "correct-horse")


@pytest.fixture(scope="function")
def lecturer_caller(lecturer: User) -> Caller:
    return Caller(user_id=lecturer.id)


@pytest.fixture(scope="function")
def room(room_manager: RoomManager, lecturer: User) -> Room:
    """An active room owned by the lecturer"""
    return room_manager.create_room(lecturer.id, lecturer.name, "Lecture 1")


@pytest.fixture(scope="function")
def listener(gateway: FanoutGateway) -> Callable:
    """Factory that subscribes a queue connection to a room code"""

    async def subscribe(
        code: str, voter_token: str | None = None, is_host: bool = False
    ) -> QueueConnection:
        conn = QueueConnection(voter_token=voter_token, is_host=is_host)
        await gateway.subscribe(conn, code)
        return conn

    return subscribe


def drain(conn: QueueConnection) -> list[tuple[str, dict]]:
    """Collect every event currently buffered on a connection"""
    events = []
    while not conn.queue.empty():
        events.append(conn.queue.get_nowait())
    return events


# HTTP clients


@pytest.fixture(scope="function")
def client(
    test_settings: Settings, redis_client: redis.Redis, clock: FakeClock
) -> Generator[TestClient, None, None]:
    """
    Fixture that provides a FastAPI test client with test settings.
    """
    # Override the global settings with test settings
    import roomqa.config
    from roomqa.deps import get_clock, get_redis
    from roomqa.main import app as fastapi_app
    from roomqa.notifier import LogNotifier

    original_settings = roomqa.config.settings
    roomqa.config.settings = test_settings

    fastapi_app.state.gateway = FanoutGateway()
    fastapi_app.state.notifier = LogNotifier()
    fastapi_app.dependency_overrides[get_redis] = lambda: redis_client
    fastapi_app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(fastapi_app) as test_client:
        yield test_client

    # Restore original settings
    fastapi_app.dependency_overrides.clear()
    roomqa.config.settings = original_settings


@pytest.fixture(scope="function")
def make_client(client: TestClient) -> Generator[Callable[..., TestClient], None, None]:
    """
    Factory for extra clients that share the app but carry their own cookies,
    so a lecturer and several students can act in one test.
    """
    opened = []

    def factory(cookies: dict[str, str] | None = None) -> TestClient:
        extra = TestClient(client.app, cookies=cookies)
        opened.append(extra)
        return extra

    yield factory

    for extra in opened:
        extra.close()


@pytest.fixture(scope="function")
def lecturer_cookies(lecturer: User, test_settings: Settings) -> dict[str, str]:
    return {"lecturer_session": create_lecturer_cookie(lecturer.id, test_settings.secret_key)}


def voter_cookies(token: str, settings: Settings) -> dict[str, str]:
    return {"voter_session": create_voter_cookie(token, settings.secret_key)}


def host_cookies(room: Room, settings: Settings) -> dict[str, str]:
    return {
        "host_session": create_host_cookie(room.id, room.tenancy.host_token, settings.secret_key)
    }
