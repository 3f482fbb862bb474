# app/schemas/room_schema.py

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime, UTC
from enum import Enum


class CamelModel(BaseModel):
    """Base for payloads exchanged with the mobile/web clients (camelCase on the wire)"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)


# ================ Cards & Decks ================

class Card(CamelModel):
    """A card instance owned by one participant"""
    id: str = Field(..., description="Unique within the deck: card_{owner}_fixed_{type} or card_{owner}_pool_{base_id}")
    base_id: str = Field(..., description="Id of the pooled card or the fixed type")
    type: str
    content: str
    is_fixed: bool = False


class Deck(CamelModel):
    """Cards of one participant in one room. `cards` never changes shape after creation."""
    owner_id: str
    cards: List[Card]
    used_card_ids: List[str] = Field(default_factory=list)
    bonus_cards: List[Card] = Field(default_factory=list)

    def get_card(self, card_id: str) -> Optional[Card]:
        return next((c for c in self.cards if c.id == card_id), None)

    def is_used(self, card_id: str) -> bool:
        return card_id in self.used_card_ids

    def unused_cards(self) -> List[Card]:
        return [c for c in self.cards if c.id not in self.used_card_ids]


# ================ Game State ================

class HistoryEntry(CamelModel):
    challenge_id: str
    sender_id: str
    receiver_id: str
    card_id: str
    status: str
    penalty_type: Optional[str] = None
    resolved_at: datetime


class GameState(CamelModel):
    day: int = 1
    score: int = 0
    streak: int = 0
    history: List[HistoryEntry] = Field(default_factory=list)


# ================ Request Models (WebSocket) ================

class AuthenticateRequest(CamelModel):
    """Bind this connection to a room the participant already belongs to"""
    token: str = Field(..., min_length=1)
    room_id: str = Field(..., validation_alias=AliasChoices("roomId", "room_id", "roomCode"))


class JoinRoomRequest(CamelModel):
    """Request to join a room via its shareable code"""
    code: str = Field(..., validation_alias=AliasChoices("code", "roomId", "room_id", "roomCode"))

    @field_validator('code')
    @classmethod
    def validate_code_format(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit():
            raise ValueError("Room code must be numeric")
        return v


# ================ Response / Event Models ================

class RoomCreatedEvent(CamelModel):
    room_id: str


class GameStateUpdateEvent(CamelModel):
    game: GameState
    deck: Deck


class PlayerCountEvent(CamelModel):
    """Payload of player_joined / player_left"""
    player_count: int


class GameReadyEvent(CamelModel):
    room_id: str


class PresenceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class PartnerOnlineEvent(CamelModel):
    participant_id: str
    status: PresenceStatus


class RoomClosedEvent(CamelModel):
    room_id: str
    reason: str


class ErrorResponse(CamelModel):
    """Error payload delivered to the offending connection only"""
    message: str
    error_code: Optional[str] = None
    details: Optional[dict] = None


class RoomResponse(CamelModel):
    """Live snapshot of a room"""
    room_id: str
    participants: List[str]
    player_count: int
    is_ready: bool
    online_participants: List[str] = Field(default_factory=list)
    game_state: GameState
    created_at: datetime


def utcnow() -> datetime:
    return datetime.now(UTC)
