# app/services/history_service.py

import asyncio
import json
import logging
from datetime import datetime, UTC
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from infrastructure.postgres_connection import get_session_factory
from infrastructure.redis_connection import get_redis
from models.challenge_record import ChallengeRecord
from schemas.challenge_schema import (
    Challenge,
    ChallengeRecordResponse,
    ChallengeStatus,
    RoomEventResponse,
    RoomHistoryResponse,
)

logger = logging.getLogger(__name__)


class HistoryService:
    """
    Best-effort, write-behind persistence of challenges and room events.

    Challenges go to the relational store; the room event log is a capped
    Redis list. Each write is bounded by a timeout and retried once, after
    which it is dropped with a warning. Nothing here ever raises into
    gameplay code.
    """

    ROOM_EVENTS_KEY_PREFIX = "room_events:"

    def __init__(
        self,
        redis_getter: Callable[[], Redis] = get_redis,
        session_factory_getter: Callable[[], async_sessionmaker[AsyncSession]] = get_session_factory,
        timeout: Optional[float] = None,
    ):
        self._redis_getter = redis_getter
        self._session_factory_getter = session_factory_getter
        self.timeout = settings.PERSISTENCE_TIMEOUT_SECONDS if timeout is None else timeout
        self._tasks: Set[asyncio.Task] = set()
        self._last_by_key: Dict[str, asyncio.Task] = {}

    @staticmethod
    def _room_events_key(room_id: str) -> str:
        return f"{HistoryService.ROOM_EVENTS_KEY_PREFIX}{room_id}"

    # ---------------------------------------------------------------- writes

    async def _run_with_retry(self, operation: Callable[[], Awaitable[Any]], description: str) -> bool:
        for attempt in (1, 2):
            try:
                await asyncio.wait_for(operation(), timeout=self.timeout)
                return True
            except Exception as e:
                if attempt == 1:
                    logger.info(f"Persisting {description} failed ({type(e).__name__}), retrying once")
                else:
                    logger.warning(f"Persisting {description} failed twice ({e!r}); keeping it in memory only")
        return False

    def _schedule(self, operation: Callable[[], Awaitable[Any]], description: str, key: str) -> asyncio.Task:
        # Writes sharing a key (same challenge, same room log) land in order
        previous = self._last_by_key.get(key)

        async def run() -> bool:
            if previous is not None:
                await asyncio.gather(previous, return_exceptions=True)
            return await self._run_with_retry(operation, description)

        task = asyncio.create_task(run())
        self._tasks.add(task)
        self._last_by_key[key] = task

        def done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if self._last_by_key.get(key) is t:
                del self._last_by_key[key]

        task.add_done_callback(done)
        return task

    async def save_challenge(self, challenge: Challenge) -> None:
        record = ChallengeRecord(
            id=challenge.id,
            room_id=challenge.room_id,
            sender_id=challenge.sender_id,
            receiver_id=challenge.receiver_id,
            card_id=challenge.card_id,
            card_content=challenge.card_content,
            status=challenge.status.value,
            penalty=challenge.penalty.to_payload() if challenge.penalty else None,
            sent_at=challenge.sent_at,
            responded_at=challenge.responded_at,
        )
        async with self._session_factory_getter()() as session:
            await session.merge(record)
            await session.commit()

    async def append_event(self, room_id: str, event_type: str, data: Optional[Dict[str, Any]] = None) -> None:
        redis = self._redis_getter()
        key = self._room_events_key(room_id)
        entry = {
            "event_type": event_type,
            "room_id": room_id,
            "data": data or {},
            "created_at": datetime.now(UTC).isoformat(),
        }
        async with redis.pipeline(transaction=True) as pipe:
            pipe.lpush(key, json.dumps(entry))
            pipe.ltrim(key, 0, settings.MAX_CACHED_ROOM_EVENTS - 1)
            pipe.expire(key, settings.ROOM_EVENTS_TTL)
            await pipe.execute()

    def record_challenge(self, challenge: Challenge) -> asyncio.Task:
        snapshot = challenge.model_copy(deep=True)
        return self._schedule(
            lambda: self.save_challenge(snapshot), f"challenge {challenge.id}", key=f"challenge:{challenge.id}"
        )

    def record_event(self, room_id: str, event_type: str, data: Optional[Dict[str, Any]] = None) -> asyncio.Task:
        return self._schedule(
            lambda: self.append_event(room_id, event_type, data),
            f"{event_type} event for room {room_id}",
            key=f"events:{room_id}"
        )

    async def drain(self) -> None:
        """Wait for in-flight writes (used on shutdown and in tests)"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ----------------------------------------------------------------- reads

    @staticmethod
    def _to_response(record: ChallengeRecord) -> ChallengeRecordResponse:
        return ChallengeRecordResponse(
            id=record.id,
            room_id=record.room_id,
            sender_id=record.sender_id,
            receiver_id=record.receiver_id,
            card_id=record.card_id,
            card_content=record.card_content,
            status=ChallengeStatus(record.status),
            penalty=record.penalty,
            sent_at=record.sent_at,
            responded_at=record.responded_at,
        )

    async def get_room_events(self, room_id: str) -> List[RoomEventResponse]:
        raw = await self._redis_getter().lrange(self._room_events_key(room_id), 0, -1)
        return [RoomEventResponse(**json.loads(item)) for item in raw]

    async def get_room_history(self, room_id: str) -> RoomHistoryResponse:
        """Challenges and events of a room, newest first"""
        async with self._session_factory_getter()() as session:
            result = await session.execute(
                select(ChallengeRecord)
                .where(ChallengeRecord.room_id == room_id)
                .order_by(ChallengeRecord.sent_at.desc())
            )
            records = result.scalars().all()

        return RoomHistoryResponse(
            room_id=room_id,
            challenges=[self._to_response(r) for r in records],
            events=await self.get_room_events(room_id),
        )

    async def get_pending_challenges(self, receiver_id: str, room_id: Optional[str] = None) -> List[ChallengeRecordResponse]:
        query = select(ChallengeRecord).where(
            ChallengeRecord.receiver_id == receiver_id,
            ChallengeRecord.status == ChallengeStatus.PENDING.value,
        )
        if room_id:
            query = query.where(ChallengeRecord.room_id == room_id)
        query = query.order_by(ChallengeRecord.sent_at.desc())

        async with self._session_factory_getter()() as session:
            result = await session.execute(query)
            return [self._to_response(r) for r in result.scalars().all()]


history_service = HistoryService()
