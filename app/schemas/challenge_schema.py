# app/schemas/challenge_schema.py

from pydantic import Field, AliasChoices
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from schemas.room_schema import CamelModel, Card


class ChallengeStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ChallengeAnswer(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class PenaltyType(str, Enum):
    LOSE_CARD = "lose_card"
    PARTNER_BONUS = "partner_bonus"


class Penalty(CamelModel):
    """Consequence of a rejected challenge"""
    type: PenaltyType
    target_id: str
    description: str
    lost_card_id: Optional[str] = None
    bonus_card: Optional[Card] = None


class Challenge(CamelModel):
    id: str
    room_id: str
    sender_id: str
    receiver_id: str
    card_id: str
    card_content: str
    status: ChallengeStatus = ChallengeStatus.PENDING
    penalty: Optional[Penalty] = None
    sent_at: datetime
    responded_at: Optional[datetime] = None


# ================ Request Models (WebSocket) ================

class ChallengeCardPayload(CamelModel):
    """Card as sent by a client; may be a deck card or a custom one"""
    id: str = Field(..., min_length=1)
    content: Optional[str] = None
    type: Optional[str] = None


class SendChallengeRequest(CamelModel):
    room_id: str = Field(..., validation_alias=AliasChoices("roomId", "room_id", "roomCode"))
    card: ChallengeCardPayload


class RespondChallengeRequest(CamelModel):
    room_id: str = Field(..., validation_alias=AliasChoices("roomId", "room_id", "roomCode"))
    challenge_id: str = Field(..., validation_alias=AliasChoices("challengeId", "challenge_id"))
    response: ChallengeAnswer


# ================ Event Models ================

class ChallengeReceivedEvent(CamelModel):
    challenge: Challenge


class ChallengeOutcomeEvent(CamelModel):
    """Broadcast to the whole room together with the status transition"""
    challenge: Challenge
    challenge_id: str
    status: ChallengeStatus
    response: ChallengeAnswer
    responder_id: str
    penalty: Optional[Penalty] = None
    timestamp: datetime


# ================ History (persisted) ================

class RoomEventResponse(CamelModel):
    event_type: str
    room_id: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ChallengeRecordResponse(CamelModel):
    id: str
    room_id: str
    sender_id: str
    receiver_id: str
    card_id: str
    card_content: str
    status: ChallengeStatus
    penalty: Optional[Dict[str, Any]] = None
    sent_at: datetime
    responded_at: Optional[datetime] = None


class RoomHistoryResponse(CamelModel):
    room_id: str
    challenges: List[ChallengeRecordResponse]
    events: List[RoomEventResponse]


class PendingChallengesResponse(CamelModel):
    challenges: List[ChallengeRecordResponse]
