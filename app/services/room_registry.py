# app/services/room_registry.py

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from config.settings import settings
from exceptions.domain_exceptions import BadRequestException, ForbiddenException
from exceptions.game_exceptions import RoomNotFoundError, RoomFullError
from schemas.challenge_schema import Challenge
from schemas.room_schema import Deck, GameState, RoomResponse, utcnow
from services.card_pool import CardPoolProvider, card_pool_provider
from services.deck_service import DeckService, PENDING_OWNER_ID

logger = logging.getLogger(__name__)

MAX_PARTICIPANTS = 2


class Room(BaseModel):
    """In-memory state of one paired play session"""
    id: str
    participants: List[str] = Field(default_factory=list)
    decks: Dict[str, Deck] = Field(default_factory=dict)
    pending_deck: Optional[Deck] = None
    game_state: GameState = Field(default_factory=GameState)
    challenges: Dict[str, Challenge] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    is_ready: bool = False
    ready_announced: bool = False

    @property
    def player_count(self) -> int:
        return len(self.participants)

    def partner_of(self, participant_id: str) -> Optional[str]:
        if participant_id not in self.participants or len(self.participants) < MAX_PARTICIPANTS:
            return None
        return self.participants[1] if self.participants[0] == participant_id else self.participants[0]

    def to_response(self, online_participants: Optional[List[str]] = None) -> RoomResponse:
        return RoomResponse(
            room_id=self.id,
            participants=list(self.participants),
            player_count=self.player_count,
            is_ready=self.is_ready,
            online_participants=online_participants or [],
            game_state=self.game_state,
            created_at=self.created_at,
        )


class RoomRegistry:
    """
    Single source of truth for who is paired with whom.

    Every mutation of a room happens while holding that room's lock, so two
    joins racing for the last slot are serialized. Rooms never share a lock.
    """

    def __init__(
        self,
        card_pool: Optional[CardPoolProvider] = None,
        random_count: Optional[int] = None,
        fixed_types: Optional[List[str]] = None,
        rng: Optional[random.Random] = None
    ):
        self.card_pool = card_pool or card_pool_provider
        self.random_count = settings.DECK_RANDOM_CARDS if random_count is None else random_count
        self.fixed_types = list(fixed_types if fixed_types is not None else settings.FIXED_CARD_TYPES)
        self.rng = rng or random.Random()
        self._rooms: Dict[str, Room] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _generate_room_code(self) -> str:
        """Generate a short numeric code, e.g. 6 digits"""
        low = 10 ** (settings.ROOM_CODE_LENGTH - 1)
        return str(self.rng.randint(low, low * 10 - 1))

    def _allocate_room_id(self) -> str:
        for _ in range(settings.ROOM_CODE_MAX_ATTEMPTS):
            code = self._generate_room_code()
            if code not in self._rooms:
                return code
        raise BadRequestException(message="Failed to generate unique room code")

    @asynccontextmanager
    async def room_session(self, room_id: str) -> AsyncIterator[Room]:
        """
        Hold the room's lock and yield the room.

        Raises:
            RoomNotFoundError: If the room does not exist (or was deleted while waiting)
        """
        lock = self._locks.get(room_id)
        if lock is None:
            raise RoomNotFoundError(room_id)

        async with lock:
            room = self._rooms.get(room_id)
            # The room may have been deleted, or its code reused, while we waited
            if room is None or self._locks.get(room_id) is not lock:
                raise RoomNotFoundError(room_id)
            yield room

    async def create_room(self, creator_id: str) -> Tuple[Room, Deck]:
        """
        Create a room and generate both decks from disjoint pool partitions.

        The second deck is parked under a placeholder owner until someone joins.

        Returns:
            Tuple of (room, creator's deck)

        Raises:
            InsufficientPoolError: If the pool cannot supply two disjoint partitions
        """
        pool = await self.card_pool.get_cards()
        creator_cards, partner_cards = DeckService.partition_pool(
            pool, parts=MAX_PARTICIPANTS, size=self.random_count, rng=self.rng
        )
        creator_deck = DeckService.generate_deck(
            creator_id, creator_cards, self.fixed_types, self.random_count, rng=self.rng
        )
        pending_deck = DeckService.generate_deck(
            PENDING_OWNER_ID, partner_cards, self.fixed_types, self.random_count, rng=self.rng
        )

        # No await between allocation and insertion: the id check is atomic
        room_id = self._allocate_room_id()
        room = Room(
            id=room_id,
            participants=[creator_id],
            decks={creator_id: creator_deck},
            pending_deck=pending_deck,
        )
        self._rooms[room_id] = room
        self._locks[room_id] = asyncio.Lock()

        logger.info(f"Room {room_id} created by {creator_id}")
        return room, creator_deck

    async def join_room(self, room_id: str, joiner_id: str) -> Room:
        """
        Add a second participant and hand over the pending deck.

        Joining a room one already belongs to is a no-op.

        Raises:
            RoomNotFoundError: If the room does not exist
            RoomFullError: If the room already has two participants
        """
        async with self.room_session(room_id) as room:
            if joiner_id in room.participants:
                return room

            if room.player_count >= MAX_PARTICIPANTS or room.pending_deck is None:
                raise RoomFullError(room_id)

            room.decks[joiner_id] = DeckService.reassign_deck(room.pending_deck, joiner_id)
            room.pending_deck = None
            room.participants.append(joiner_id)
            room.last_activity_at = utcnow()

            if room.player_count == MAX_PARTICIPANTS:
                room.is_ready = True
                logger.info(f"Room {room_id} is now full")

            logger.info(f"Participant {joiner_id} joined room {room_id}")
            return room

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def room_ids(self) -> List[str]:
        return list(self._rooms.keys())

    def is_participant(self, room_id: str, participant_id: str) -> bool:
        room = self._rooms.get(room_id)
        return room is not None and participant_id in room.participants

    def require_participant(self, room_id: str, participant_id: str) -> Room:
        """
        Raises:
            RoomNotFoundError: If the room does not exist
            ForbiddenException: If the participant is not in the room
        """
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        if participant_id not in room.participants:
            raise ForbiddenException(
                message="You are not a participant of this room",
                details={"room_id": room_id}
            )
        return room

    async def remove_participant(self, room_id: str, participant_id: str) -> Optional[Room]:
        """
        Remove a participant; their deck goes back to the pending slot.

        Returns:
            The room, or None if it was deleted because nobody is left
        """
        try:
            async with self.room_session(room_id) as room:
                if participant_id not in room.participants:
                    return room

                room.participants.remove(participant_id)
                deck = room.decks.pop(participant_id, None)
                if deck is not None and room.pending_deck is None:
                    room.pending_deck = DeckService.reassign_deck(deck, PENDING_OWNER_ID)
                room.is_ready = False
                room.ready_announced = False
                room.last_activity_at = utcnow()

                logger.info(
                    f"Removed {participant_id} from room {room_id}. Remaining: {room.player_count}"
                )

                if room.player_count == 0:
                    self._delete(room_id)
                    logger.info(f"Room {room_id} is empty. Deleted.")
                    return None
                return room
        except RoomNotFoundError:
            return None

    async def claim_ready_announcement(self, room_id: str) -> bool:
        """True exactly once per transition to a full room"""
        try:
            async with self.room_session(room_id) as room:
                if not room.is_ready or room.ready_announced:
                    return False
                room.ready_announced = True
                return True
        except RoomNotFoundError:
            return False

    def touch(self, room_id: str) -> None:
        room = self._rooms.get(room_id)
        if room is not None:
            room.last_activity_at = utcnow()

    async def evict_room(self, room_id: str) -> bool:
        try:
            async with self.room_session(room_id):
                self._delete(room_id)
        except RoomNotFoundError:
            return False
        logger.info(f"Room {room_id} evicted")
        return True

    def _delete(self, room_id: str) -> None:
        self._rooms.pop(room_id, None)
        self._locks.pop(room_id, None)

    def __len__(self) -> int:
        return len(self._rooms)


room_registry = RoomRegistry()
