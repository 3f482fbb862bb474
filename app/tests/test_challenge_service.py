# app/tests/test_challenge_service.py

import pytest
import asyncio
import random
from unittest.mock import MagicMock
from services.challenge_service import ChallengeCoordinator
from services.history_service import HistoryService
from schemas.challenge_schema import ChallengeAnswer, ChallengeCardPayload, ChallengeStatus, PenaltyType
from exceptions.domain_exceptions import ForbiddenException
from exceptions.game_exceptions import (
    AlreadyRespondedError,
    CardAlreadyUsedError,
    ChallengeNotFoundError,
    NotReceiverError,
    RoomNotFoundError,
    RoomNotReadyError,
)


class FixedCoin(random.Random):
    """Random source whose coin flip always lands the same way"""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


LOSE_CARD = 0.1
PARTNER_BONUS = 0.9


@pytest.fixture
async def paired_room(registry, router):
    """Room with alice (creator) and bob, both connected"""
    room, _ = await registry.create_room("alice")
    await registry.join_room(room.id, "bob")
    await router.bind("sid-alice", "alice", room.id)
    await router.bind("sid-bob", "bob", room.id)
    return room


def coordinator_with(coin, registry, router, history, card_pool):
    return ChallengeCoordinator(registry, router, history=history, card_pool=card_pool, rng=FixedCoin(coin))


@pytest.mark.asyncio
class TestSendChallenge:
    """Test suite for ChallengeCoordinator.send_challenge"""

    async def test_only_receiver_gets_challenge(self, coordinator, fake_server, paired_room):
        """Test that challenge_received goes to the partner and nobody else"""
        card = paired_room.decks["alice"].cards[0]

        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id=card.id))

        assert challenge.sender_id == "alice"
        assert challenge.receiver_id == "bob"
        assert challenge.status == ChallengeStatus.PENDING
        assert challenge.card_content == card.content
        received = fake_server.events("sid-bob", "challenge_received")
        assert len(received) == 1
        assert received[0]["challenge"]["id"] == challenge.id
        assert received[0]["challenge"]["senderId"] == "alice"
        assert fake_server.events("sid-alice", "challenge_received") == []

    async def test_sender_card_marked_used(self, coordinator, fake_server, paired_room):
        """Test that the sender's deck records the played card and is pushed back"""
        card = paired_room.decks["alice"].cards[0]

        await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id=card.id))

        assert paired_room.decks["alice"].used_card_ids == [card.id]
        updates = fake_server.events("sid-alice", "game_state_update")
        assert updates[-1]["deck"]["usedCardIds"] == [card.id]
        assert "game" in updates[-1]

    async def test_replaying_used_card_fails(self, coordinator, paired_room):
        """Test that a card can only be played once"""
        card = paired_room.decks["alice"].cards[0]
        await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id=card.id))

        with pytest.raises(CardAlreadyUsedError):
            await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id=card.id))

        assert len(paired_room.challenges) == 1

    async def test_free_form_card(self, coordinator, fake_server, paired_room):
        """Test that a card outside the deck is sent as a custom challenge"""
        challenge = await coordinator.send_challenge(
            paired_room.id, "alice", ChallengeCardPayload(id="c1", content="Dance for a minute")
        )

        assert challenge.card_id == "c1"
        assert challenge.card_content == "Dance for a minute"
        assert paired_room.decks["alice"].used_card_ids == []
        assert len(fake_server.events("sid-bob", "challenge_received")) == 1

    async def test_challenge_goes_to_the_other_participant(self, coordinator, fake_server, paired_room):
        """Test receiver selection from the second participant's side"""
        challenge = await coordinator.send_challenge(paired_room.id, "bob", ChallengeCardPayload(id="c1"))

        assert challenge.receiver_id == "alice"
        assert len(fake_server.events("sid-alice", "challenge_received")) == 1
        assert fake_server.events("sid-bob", "challenge_received") == []

    async def test_room_not_ready(self, coordinator, registry, fake_server):
        """Test that a half-full room cannot host challenges"""
        room, _ = await registry.create_room("alice")

        with pytest.raises(RoomNotReadyError):
            await coordinator.send_challenge(room.id, "alice", ChallengeCardPayload(id="c1"))

        assert room.challenges == {}
        assert fake_server.emitted == []

    async def test_sender_not_in_room(self, coordinator, paired_room):
        """Test that outsiders cannot send into a room"""
        with pytest.raises(ForbiddenException):
            await coordinator.send_challenge(paired_room.id, "mallory", ChallengeCardPayload(id="c1"))

    async def test_unknown_room(self, coordinator):
        with pytest.raises(RoomNotFoundError):
            await coordinator.send_challenge("000000", "alice", ChallengeCardPayload(id="c1"))

    async def test_receiver_offline_still_records(self, coordinator, router, history, fake_server, paired_room):
        """Test that an offline receiver misses the event but the challenge is persisted"""
        await router.unbind("sid-bob")

        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))
        await history.drain()

        assert fake_server.events("sid-bob") == []
        pending = await history.get_pending_challenges("bob", room_id=paired_room.id)
        assert [c.id for c in pending] == [challenge.id]


@pytest.mark.asyncio
class TestRespondToChallenge:
    """Test suite for ChallengeCoordinator.respond_to_challenge"""

    async def test_accept(self, coordinator, fake_server, paired_room):
        """Test that accepting scores a point and both sides see the outcome"""
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))

        result = await coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.ACCEPT)

        assert result.status == ChallengeStatus.ACCEPTED
        assert result.penalty is None
        assert result.responded_at is not None
        assert paired_room.game_state.score == 1
        assert paired_room.game_state.streak == 1
        assert paired_room.game_state.history[-1].challenge_id == challenge.id
        for sid in ("sid-alice", "sid-bob"):
            outcome = fake_server.events(sid, "challenge_outcome")
            assert len(outcome) == 1
            assert outcome[0]["status"] == "accepted"
            assert outcome[0]["penalty"] is None

    async def test_reject_with_lost_card(self, registry, router, history, card_pool, fake_server, paired_room):
        """Test that the rejector can lose a random unused card"""
        coordinator = coordinator_with(LOSE_CARD, registry, router, history, card_pool)
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))

        result = await coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.REJECT)

        assert result.status == ChallengeStatus.REJECTED
        assert result.penalty.type == PenaltyType.LOSE_CARD
        assert result.penalty.target_id == "bob"
        assert result.penalty.description == "Penalty: You lost a random card!"
        assert paired_room.decks["bob"].used_card_ids == [result.penalty.lost_card_id]
        outcome = fake_server.events("sid-alice", "challenge_outcome")[0]
        assert outcome["penalty"]["type"] == "lose_card"
        assert outcome["penalty"]["lostCardId"] == result.penalty.lost_card_id
        assert fake_server.events("sid-bob", "game_state_update")[-1]["deck"]["usedCardIds"] == [
            result.penalty.lost_card_id
        ]

    async def test_reject_with_partner_bonus(self, registry, router, history, card_pool, fake_server, paired_room):
        """Test that the sender can receive a bonus card"""
        coordinator = coordinator_with(PARTNER_BONUS, registry, router, history, card_pool)
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))

        result = await coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.REJECT)

        assert result.penalty.type == PenaltyType.PARTNER_BONUS
        assert result.penalty.target_id == "alice"
        assert result.penalty.description == "Penalty: Partner got a bonus card!"
        bonus = paired_room.decks["alice"].bonus_cards
        assert [c.id for c in bonus] == [result.penalty.bonus_card.id]
        assert len(paired_room.decks["alice"].cards) == 30
        assert fake_server.events("sid-alice", "game_state_update")[-1]["deck"]["bonusCards"][0]["id"] == bonus[0].id

    async def test_bonus_card_is_consumed_when_played(self, registry, router, history, card_pool, paired_room):
        """Test that a bonus card disappears once sent"""
        coordinator = coordinator_with(PARTNER_BONUS, registry, router, history, card_pool)
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))
        result = await coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.REJECT)
        bonus_card = result.penalty.bonus_card

        played = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id=bonus_card.id))

        assert played.card_content == bonus_card.content
        assert paired_room.decks["alice"].bonus_cards == []

    async def test_reject_resets_streak(self, coordinator, paired_room):
        """Test that rejecting ends the streak but keeps the score"""
        first = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))
        await coordinator.respond_to_challenge(paired_room.id, first.id, "bob", ChallengeAnswer.ACCEPT)
        second = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c2"))

        await coordinator.respond_to_challenge(paired_room.id, second.id, "bob", ChallengeAnswer.REJECT)

        assert paired_room.game_state.score == 1
        assert paired_room.game_state.streak == 0
        assert [h.status for h in paired_room.game_state.history] == ["accepted", "rejected"]

    async def test_only_receiver_can_respond(self, coordinator, fake_server, paired_room):
        """Test that the sender cannot answer their own challenge"""
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))
        fake_server.clear()

        with pytest.raises(NotReceiverError):
            await coordinator.respond_to_challenge(paired_room.id, challenge.id, "alice", ChallengeAnswer.ACCEPT)

        assert paired_room.challenges[challenge.id].status == ChallengeStatus.PENDING
        assert fake_server.emitted == []

    async def test_respond_twice(self, coordinator, paired_room):
        """Test that a challenge is answered exactly once"""
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))
        await coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.ACCEPT)

        with pytest.raises(AlreadyRespondedError):
            await coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.REJECT)

        assert paired_room.challenges[challenge.id].status == ChallengeStatus.ACCEPTED
        assert paired_room.game_state.score == 1

    async def test_unknown_challenge(self, coordinator, paired_room):
        with pytest.raises(ChallengeNotFoundError):
            await coordinator.respond_to_challenge(paired_room.id, "ch_missing", "bob", ChallengeAnswer.ACCEPT)

    async def test_concurrent_responses(self, coordinator, fake_server, paired_room):
        """Test that racing answers resolve the challenge exactly once"""
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))

        results = await asyncio.gather(
            coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.ACCEPT),
            coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.REJECT),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], AlreadyRespondedError)
        assert len(fake_server.events("sid-alice", "challenge_outcome")) == 1

    async def test_outcome_persisted(self, coordinator, history, paired_room):
        """Test that the final challenge state reaches the history store"""
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))
        await coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.REJECT)
        await history.drain()

        room_history = await history.get_room_history(paired_room.id)

        assert [c.status for c in room_history.challenges] == [ChallengeStatus.REJECTED]
        assert room_history.challenges[0].penalty is not None
        event_types = [e.event_type for e in room_history.events]
        assert event_types[:3] == ["penalty_applied", "challenge_rejected", "challenge_sent"]
        assert await history.get_pending_challenges("bob") == []


@pytest.mark.asyncio
class TestPenaltyDistribution:
    """Test suite for the penalty coin"""

    async def test_penalty_split_is_fair(self, registry, router, card_pool, paired_room):
        """Test that over many rejected challenges each penalty kind lands about half the time"""
        coordinator = ChallengeCoordinator(
            registry, router, history=MagicMock(spec=HistoryService), card_pool=card_pool, rng=random.Random(1234)
        )

        trials = 2000
        lose_card = 0
        for _ in range(trials):
            challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))
            result = await coordinator.respond_to_challenge(
                paired_room.id, challenge.id, "bob", ChallengeAnswer.REJECT
            )
            if result.penalty.type == PenaltyType.LOSE_CARD:
                lose_card += 1

        assert 0.45 <= lose_card / trials <= 0.55

    async def test_lose_card_with_exhausted_deck(self, registry, router, history, card_pool, paired_room):
        """Test that a rejector with no unused cards loses nothing"""
        coordinator = coordinator_with(LOSE_CARD, registry, router, history, card_pool)
        bob_deck = paired_room.decks["bob"]
        bob_deck.used_card_ids = [c.id for c in bob_deck.cards]
        challenge = await coordinator.send_challenge(paired_room.id, "alice", ChallengeCardPayload(id="c1"))

        result = await coordinator.respond_to_challenge(paired_room.id, challenge.id, "bob", ChallengeAnswer.REJECT)

        assert result.penalty.type == PenaltyType.LOSE_CARD
        assert result.penalty.lost_card_id is None
        assert len(bob_deck.used_card_ids) == 30
