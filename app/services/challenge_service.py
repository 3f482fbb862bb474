# app/services/challenge_service.py

import logging
import random
import uuid
from typing import Optional

from exceptions.domain_exceptions import ForbiddenException
from exceptions.game_exceptions import (
    AlreadyRespondedError,
    CardAlreadyUsedError,
    ChallengeNotFoundError,
    NotReceiverError,
    RoomNotReadyError,
)
from infrastructure.socketio_manager import SessionRouter
from schemas.challenge_schema import (
    Challenge,
    ChallengeAnswer,
    ChallengeCardPayload,
    ChallengeOutcomeEvent,
    ChallengeReceivedEvent,
    ChallengeStatus,
    Penalty,
    PenaltyType,
)
from schemas.room_schema import GameStateUpdateEvent, HistoryEntry, utcnow
from services.card_pool import CardPoolProvider, card_pool_provider
from services.deck_service import DeckService
from services.history_service import HistoryService, history_service
from services.room_registry import MAX_PARTICIPANTS, Room, RoomRegistry

logger = logging.getLogger(__name__)


class ChallengeCoordinator:
    """
    Runs the challenge lifecycle (pending -> accepted | rejected) for a room.

    All state changes and the broadcasts describing them happen while the
    room's lock is held, so clients never observe a status change without
    its penalty.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        router: SessionRouter,
        history: Optional[HistoryService] = None,
        card_pool: Optional[CardPoolProvider] = None,
        rng: Optional[random.Random] = None
    ):
        self.registry = registry
        self.router = router
        self.history = history or history_service
        self.card_pool = card_pool or card_pool_provider
        self.rng = rng or random.Random()

    @staticmethod
    def _refresh_day(room: Room) -> None:
        room.game_state.day = (utcnow() - room.created_at).days + 1

    async def _push_deck(self, room: Room, participant_id: str) -> None:
        deck = room.decks.get(participant_id)
        if deck is None:
            return
        event = GameStateUpdateEvent(game=room.game_state, deck=deck)
        await self.router.send_to_participant(room.id, participant_id, 'game_state_update', event.to_payload())

    def _play_card(self, room: Room, sender_id: str, card: ChallengeCardPayload) -> str:
        """Consume the played card from the sender's deck and return its content"""
        deck = room.decks[sender_id]

        deck_card = deck.get_card(card.id)
        if deck_card is not None:
            if deck.is_used(card.id):
                raise CardAlreadyUsedError(card.id)
            deck.used_card_ids.append(card.id)
            return deck_card.content

        bonus = next((c for c in deck.bonus_cards if c.id == card.id), None)
        if bonus is not None:
            deck.bonus_cards.remove(bonus)
            return bonus.content

        # Custom challenge typed by the player
        return card.content or ""

    async def send_challenge(self, room_id: str, sender_id: str, card: ChallengeCardPayload) -> Challenge:
        """
        Play a card at the other participant of the room.

        Raises:
            RoomNotFoundError: If the room does not exist
            ForbiddenException: If the sender is not in the room
            RoomNotReadyError: If the room does not have two participants
            CardAlreadyUsedError: If the card was already played from the sender's deck
        """
        async with self.registry.room_session(room_id) as room:
            if sender_id not in room.participants:
                raise ForbiddenException(
                    message="You are not a participant of this room",
                    details={"room_id": room_id}
                )
            if room.player_count != MAX_PARTICIPANTS:
                raise RoomNotReadyError(room_id, room.player_count)

            receiver_id = room.participants[1] if room.participants[0] == sender_id else room.participants[0]
            card_content = self._play_card(room, sender_id, card)

            challenge = Challenge(
                id=f"ch_{uuid.uuid4().hex}",
                room_id=room_id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                card_id=card.id,
                card_content=card_content,
                sent_at=utcnow(),
            )
            room.challenges[challenge.id] = challenge
            room.last_activity_at = challenge.sent_at

            delivered = await self.router.send_to_participant(
                room_id, receiver_id, 'challenge_received', ChallengeReceivedEvent(challenge=challenge).to_payload()
            )
            await self._push_deck(room, sender_id)
            result = challenge.model_copy(deep=True)

        logger.info(
            f"Challenge {challenge.id} sent in room {room_id}: {sender_id} -> {receiver_id}"
            + ("" if delivered else " (receiver offline)")
        )
        self.history.record_challenge(result)
        self.history.record_event(room_id, 'challenge_sent', {
            "challengeId": result.id, "cardId": card.id, "senderId": sender_id
        })
        return result

    async def _compute_penalty(self, room: Room, challenge: Challenge, responder_id: str) -> Penalty:
        """Fair coin: the rejector loses a card, or the sender gets a bonus card"""
        if self.rng.random() < 0.5:
            lost_card_id = None
            deck = room.decks.get(responder_id)
            if deck is not None:
                unused = deck.unused_cards()
                if unused:
                    lost_card_id = self.rng.choice(unused).id
                    deck.used_card_ids.append(lost_card_id)
            return Penalty(
                type=PenaltyType.LOSE_CARD,
                target_id=responder_id,
                lost_card_id=lost_card_id,
                description="Penalty: You lost a random card!",
            )

        pool = await self.card_pool.get_cards()
        bonus_card = DeckService.mint_bonus_card(challenge.sender_id, pool, rng=self.rng)
        sender_deck = room.decks.get(challenge.sender_id)
        if sender_deck is not None:
            sender_deck.bonus_cards.append(bonus_card)
        return Penalty(
            type=PenaltyType.PARTNER_BONUS,
            target_id=challenge.sender_id,
            bonus_card=bonus_card,
            description="Penalty: Partner got a bonus card!",
        )

    async def respond_to_challenge(
        self,
        room_id: str,
        challenge_id: str,
        responder_id: str,
        response: ChallengeAnswer
    ) -> Challenge:
        """
        Accept or reject a pending challenge and broadcast the outcome.

        Raises:
            RoomNotFoundError: If the room does not exist
            ChallengeNotFoundError: If the challenge is unknown in this room
            NotReceiverError: If the responder is not the challenge's receiver
            AlreadyRespondedError: If the challenge is no longer pending
        """
        async with self.registry.room_session(room_id) as room:
            challenge = room.challenges.get(challenge_id)
            if challenge is None:
                raise ChallengeNotFoundError(challenge_id)
            if challenge.receiver_id != responder_id:
                raise NotReceiverError(challenge_id)
            if challenge.status != ChallengeStatus.PENDING:
                raise AlreadyRespondedError(challenge_id, challenge.status.value)

            penalty = None
            if response == ChallengeAnswer.ACCEPT:
                challenge.status = ChallengeStatus.ACCEPTED
                room.game_state.score += 1
                room.game_state.streak += 1
            else:
                penalty = await self._compute_penalty(room, challenge, responder_id)
                challenge.status = ChallengeStatus.REJECTED
                challenge.penalty = penalty
                room.game_state.streak = 0

            challenge.responded_at = utcnow()
            self._refresh_day(room)
            room.game_state.history.append(HistoryEntry(
                challenge_id=challenge.id,
                sender_id=challenge.sender_id,
                receiver_id=challenge.receiver_id,
                card_id=challenge.card_id,
                status=challenge.status.value,
                penalty_type=penalty.type.value if penalty else None,
                resolved_at=challenge.responded_at,
            ))
            room.last_activity_at = challenge.responded_at

            outcome = ChallengeOutcomeEvent(
                challenge=challenge,
                challenge_id=challenge.id,
                status=challenge.status,
                response=response,
                responder_id=responder_id,
                penalty=penalty,
                timestamp=challenge.responded_at,
            )
            await self.router.broadcast_to_room(room_id, 'challenge_outcome', outcome.to_payload())
            if penalty is not None:
                await self._push_deck(room, penalty.target_id)

            result = challenge.model_copy(deep=True)

        logger.info(
            f"Challenge {challenge_id} in room {room_id} {result.status.value} by {responder_id}"
            + (f" with penalty {penalty.type.value}" if penalty else "")
        )
        self.history.record_challenge(result)
        self.history.record_event(room_id, f"challenge_{result.status.value}", {
            "challengeId": challenge_id, "responderId": responder_id
        })
        if penalty is not None:
            self.history.record_event(room_id, 'penalty_applied', penalty.to_payload())
        return result
