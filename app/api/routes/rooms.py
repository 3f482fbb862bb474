# app/api/routes/rooms.py

from fastapi import APIRouter, Depends
from api.routes.auth import current_participant
from api.socketio import router as session_router
from services.room_registry import room_registry
from services.history_service import history_service
from schemas.room_schema import Deck, RoomResponse
from schemas.challenge_schema import RoomHistoryResponse

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(room_id: str, participant_id: str = Depends(current_participant)):
    """
    Get the live state of a room

    Only participants of the room can see it.
    """
    room = room_registry.require_participant(room_id, participant_id)
    return room.to_response(session_router.online_participants(room_id))


@router.get("/{room_id}/deck", response_model=Deck)
async def get_my_deck(room_id: str, participant_id: str = Depends(current_participant)):
    """Get the caller's own deck in a room"""
    room = room_registry.require_participant(room_id, participant_id)
    return room.decks[participant_id]


@router.get("/{room_id}/history", response_model=RoomHistoryResponse)
async def get_room_history(room_id: str, participant_id: str = Depends(current_participant)):
    """
    Get persisted challenges and events of a room, newest first

    Works for live rooms only; membership is checked against the registry.
    """
    room_registry.require_participant(room_id, participant_id)
    return await history_service.get_room_history(room_id)
