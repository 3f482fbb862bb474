# app/api/routes/challenges.py

from typing import Optional
from fastapi import APIRouter, Depends, Query
from api.routes.auth import current_participant
from services.history_service import history_service
from schemas.challenge_schema import PendingChallengesResponse

router = APIRouter(prefix="/challenges", tags=["challenges"])


@router.get("/pending", response_model=PendingChallengesResponse)
async def get_pending_challenges(
    room_id: Optional[str] = Query(None, description="Restrict to one room"),
    participant_id: str = Depends(current_participant)
):
    """
    Challenges waiting for the caller's answer.

    Used after a reconnect to recover challenge_received events that were
    sent while the caller was offline.
    """
    challenges = await history_service.get_pending_challenges(participant_id, room_id=room_id)
    return PendingChallengesResponse(challenges=challenges)
