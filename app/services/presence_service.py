# app/services/presence_service.py

import logging

from infrastructure.socketio_manager import Binding, SessionRouter
from schemas.room_schema import GameReadyEvent, PartnerOnlineEvent, PlayerCountEvent, PresenceStatus
from services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)


class PresenceNotifier:
    """Keeps both sides of a room aware of each other's connection status"""

    def __init__(self, router: SessionRouter, registry: RoomRegistry):
        self.router = router
        self.registry = registry

    async def announce_online(self, binding: Binding) -> None:
        """
        Tell the rest of the room this participant is online, and tell the
        new connection who is already online (works regardless of join order).
        """
        event = PartnerOnlineEvent(participant_id=binding.participant_id, status=PresenceStatus.ONLINE)
        await self.router.broadcast_to_room(
            binding.room_id, 'partner_online', event.to_payload(), exclude_sid=binding.sid
        )

        for other_id in self.router.online_participants(binding.room_id):
            if other_id == binding.participant_id:
                continue
            counterpart = PartnerOnlineEvent(participant_id=other_id, status=PresenceStatus.ONLINE)
            await self.router.send_to_connection(binding.sid, 'partner_online', counterpart.to_payload())

    async def announce_offline(self, binding: Binding) -> None:
        event = PartnerOnlineEvent(participant_id=binding.participant_id, status=PresenceStatus.OFFLINE)
        await self.router.broadcast_to_room(
            binding.room_id, 'partner_online', event.to_payload(), exclude_sid=binding.sid
        )
        logger.info(f"Participant {binding.participant_id} went offline in room {binding.room_id}")

    async def announce_player_count(self, room_id: str, event_name: str, player_count: int) -> None:
        """event_name is player_joined or player_left"""
        event = PlayerCountEvent(player_count=player_count)
        await self.router.broadcast_to_room(room_id, event_name, event.to_payload())

    async def announce_ready(self, room_id: str) -> bool:
        """
        Broadcast game_ready once per transition to a full room, and only once
        every participant has a bound connection to receive it.
        """
        room = self.registry.get_room(room_id)
        if room is None:
            return False
        online = set(self.router.online_participants(room_id))
        if any(participant_id not in online for participant_id in room.participants):
            return False
        if not await self.registry.claim_ready_announcement(room_id):
            return False
        await self.router.broadcast_to_room(room_id, 'game_ready', GameReadyEvent(room_id=room_id).to_payload())
        logger.info(f"Room {room_id} is ready")
        return True
