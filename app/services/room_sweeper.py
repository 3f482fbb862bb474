# app/services/room_sweeper.py

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from config.settings import settings
from infrastructure.socketio_manager import SessionRouter
from schemas.room_schema import RoomClosedEvent, utcnow
from services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)


class RoomSweeper:
    """
    Periodically evicts abandoned rooms.

    A room is abandoned when no connection has been bound to it for the
    orphan grace period (its participants dropped while a create/join was
    still in flight), or when it is older than the maximum room age.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        router: SessionRouter,
        interval: Optional[float] = None,
        orphan_grace: Optional[float] = None,
        max_age: Optional[float] = None
    ):
        self.registry = registry
        self.router = router
        self.interval = settings.ROOM_SWEEP_INTERVAL_SECONDS if interval is None else interval
        self.orphan_grace = timedelta(seconds=settings.ROOM_ORPHAN_GRACE_SECONDS if orphan_grace is None else orphan_grace)
        self.max_age = timedelta(seconds=settings.ROOM_MAX_AGE_SECONDS if max_age is None else max_age)
        self.is_running = False

    async def start(self):
        """Run sweeps until stopped"""
        if self.is_running:
            logger.warning("RoomSweeper is already running")
            return

        self.is_running = True
        logger.info("RoomSweeper started")
        while self.is_running:
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error(f"Error sweeping rooms: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    def stop(self):
        self.is_running = False
        logger.info("RoomSweeper stopped")

    async def sweep_once(self, now: Optional[datetime] = None) -> List[str]:
        now = now or utcnow()
        evicted = []
        for room_id in self.registry.room_ids():
            room = self.registry.get_room(room_id)
            if room is None:
                continue

            too_old = now - room.created_at > self.max_age
            orphaned = (
                not self.router.has_connections(room_id)
                and now - room.last_activity_at > self.orphan_grace
            )
            if not (too_old or orphaned):
                continue

            if self.router.has_connections(room_id):
                closed = RoomClosedEvent(room_id=room_id, reason="expired" if too_old else "abandoned")
                await self.router.broadcast_to_room(room_id, 'room_closed', closed.to_payload())
            for participant_id in self.router.online_participants(room_id):
                sid = self.router.get_sid(room_id, participant_id)
                if sid is not None:
                    await self.router.unbind(sid)

            if await self.registry.evict_room(room_id):
                evicted.append(room_id)
                logger.info(f"Evicted room {room_id} ({'expired' if too_old else 'orphaned'})")
        return evicted
