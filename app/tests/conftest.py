"""
Pytest configuration and fixtures for testing
"""
import pytest
import random
from typing import Any, AsyncGenerator, Dict, List, Optional, Set, Tuple
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from config.settings import settings
from infrastructure.postgres_connection import Base
from infrastructure.socketio_manager import SessionRouter
from models.challenge_record import ChallengeRecord  # noqa: F401 - registers the table with Base
from services.card_pool import CardPoolProvider
from services.history_service import HistoryService
from services.room_registry import RoomRegistry
from services.presence_service import PresenceNotifier
from services.challenge_service import ChallengeCoordinator


class FakeSocketServer:
    """
    In-process stand-in for socketio.AsyncServer.

    Tracks room membership per sid and records what each connection would
    have received, so routing can be asserted end to end.
    """

    def __init__(self):
        self.rooms: Dict[str, Set[str]] = {}
        self.received: Dict[str, List[Tuple[str, Any]]] = {}
        self.emitted: List[Dict[str, Any]] = []

    async def enter_room(self, sid, room, namespace=None):
        self.rooms.setdefault(room, set()).add(sid)

    async def leave_room(self, sid, room, namespace=None):
        members = self.rooms.get(room)
        if members is not None:
            members.discard(sid)
            if not members:
                del self.rooms[room]

    async def emit(self, event, data=None, room=None, skip_sid=None, namespace=None):
        self.emitted.append({"event": event, "data": data, "room": room, "skip_sid": skip_sid})
        if room in self.rooms:
            targets = [sid for sid in self.rooms[room] if sid != skip_sid]
        else:
            # A sid is its own private room
            targets = [room]
        for sid in targets:
            self.received.setdefault(sid, []).append((event, data))

    def events(self, sid: str, event: Optional[str] = None) -> List[Any]:
        """Payloads received by a connection, optionally filtered by event name"""
        return [data for name, data in self.received.get(sid, []) if event is None or name == event]

    def event_names(self, sid: str) -> List[str]:
        return [name for name, _ in self.received.get(sid, [])]

    def clear(self) -> None:
        self.received.clear()
        self.emitted.clear()


def make_token(participant_id: str, **claims) -> str:
    """Sign a token the way the auth service does"""
    payload = {"sub": participant_id, **claims}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def token_for():
    return make_token


@pytest.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a test database engine backed by a throwaway SQLite file"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables and close
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def redis_client():
    """Create a test Redis client using fakeredis"""
    import fakeredis.aioredis

    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)

    yield redis

    # Cleanup
    await redis.flushall()
    await redis.aclose()


@pytest.fixture
async def history(redis_client, session_factory):
    """HistoryService writing to fakeredis and SQLite"""
    service = HistoryService(
        redis_getter=lambda: redis_client,
        session_factory_getter=lambda: session_factory,
        timeout=1.0,
    )
    yield service
    await service.drain()


@pytest.fixture
def card_pool():
    return CardPoolProvider()


@pytest.fixture
def registry(card_pool):
    return RoomRegistry(card_pool=card_pool, rng=random.Random(42))


@pytest.fixture
def fake_server():
    return FakeSocketServer()


@pytest.fixture
def router(fake_server, registry):
    return SessionRouter(fake_server, registry)


@pytest.fixture
def presence(router, registry):
    return PresenceNotifier(router, registry)


@pytest.fixture
def coordinator(registry, router, history, card_pool):
    return ChallengeCoordinator(registry, router, history=history, card_pool=card_pool, rng=random.Random(7))
