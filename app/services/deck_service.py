# app/services/deck_service.py

import random
import uuid
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from config.settings import settings
from exceptions.game_exceptions import InsufficientPoolError
from schemas.room_schema import Card, Deck

PENDING_OWNER_ID = "pending_player_2"


def _owner_segment(owner_id: str) -> str:
    # quote() keeps '_' as-is; it is the id separator, so escape it too
    return quote(owner_id, safe="").replace("_", "%5F")


def card_instance_id(owner_id: str, base_id: str, fixed: bool = False) -> str:
    """
    Deck-local card id: card_{owner}_fixed_{type} or card_{owner}_pool_{base_id}.

    The owner segment never contains '_', so ids are unique across owners,
    and a pooled card whose id equals a fixed type still gets its own id.
    """
    kind = "fixed" if fixed else "pool"
    return f"card_{_owner_segment(owner_id)}_{kind}_{base_id}"


def fixed_card_content(card_type: str) -> str:
    return f"Use this to {card_type} a challenge!"


class DeckService:
    """Builds per-participant decks from the shared card pool"""

    @staticmethod
    def _distinct_pool(pool: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        seen = set()
        distinct = []
        for card in pool:
            base_id = str(card["id"])
            if base_id in seen:
                continue
            seen.add(base_id)
            distinct.append(card)
        return distinct

    @staticmethod
    def partition_pool(
        pool: Sequence[Dict[str, Any]],
        parts: int,
        size: int,
        rng: Optional[random.Random] = None
    ) -> List[List[Dict[str, Any]]]:
        """
        Split the pool into `parts` disjoint random slices of `size` cards.

        Used when a room's decks are generated together so that no pooled
        card ends up in both decks.

        Raises:
            InsufficientPoolError: If the pool has fewer than parts * size distinct cards
        """
        rng = rng or random
        distinct = DeckService._distinct_pool(pool)
        needed = parts * size
        if len(distinct) < needed:
            raise InsufficientPoolError(requested=needed, available=len(distinct))

        drawn = rng.sample(distinct, needed)
        return [drawn[i * size:(i + 1) * size] for i in range(parts)]

    @staticmethod
    def generate_deck(
        owner_id: str,
        pool: Sequence[Dict[str, Any]],
        fixed_types: Optional[Sequence[str]] = None,
        random_count: Optional[int] = None,
        rng: Optional[random.Random] = None
    ) -> Deck:
        """
        Build a shuffled deck: one card per fixed type plus `random_count`
        cards drawn from `pool` without replacement.

        Args:
            owner_id: Participant owning the deck (may be the pending placeholder)
            pool: Pool cards as dicts with `id`, `type` and `content`
            fixed_types: Utility card types present in every deck
            random_count: Number of pooled cards to draw
            rng: Random source, injectable for deterministic tests

        Returns:
            Deck with a uniformly shuffled card order and no used cards

        Raises:
            InsufficientPoolError: If the pool cannot supply `random_count` distinct cards
        """
        rng = rng or random
        fixed_types = list(fixed_types if fixed_types is not None else settings.FIXED_CARD_TYPES)
        random_count = settings.DECK_RANDOM_CARDS if random_count is None else random_count

        distinct = DeckService._distinct_pool(pool)
        if len(distinct) < random_count:
            raise InsufficientPoolError(requested=random_count, available=len(distinct))

        cards = [
            Card(
                id=card_instance_id(owner_id, card_type, fixed=True),
                base_id=card_type,
                type=card_type,
                content=fixed_card_content(card_type),
                is_fixed=True,
            )
            for card_type in fixed_types
        ]
        for pooled in rng.sample(distinct, random_count):
            base_id = str(pooled["id"])
            cards.append(Card(
                id=card_instance_id(owner_id, base_id),
                base_id=base_id,
                type=pooled.get("type", "challenge"),
                content=pooled["content"],
                is_fixed=False,
            ))

        # random.shuffle is an in-place Fisher-Yates
        rng.shuffle(cards)
        return Deck(owner_id=owner_id, cards=cards)

    @staticmethod
    def reassign_deck(deck: Deck, new_owner_id: str) -> Deck:
        """Re-key a deck (cards, used ids and bonus cards) to another owner"""
        old_owner_id = deck.owner_id

        def rekey(card: Card) -> Card:
            if card.id == card_instance_id(old_owner_id, card.base_id, card.is_fixed):
                return card.model_copy(update={"id": card_instance_id(new_owner_id, card.base_id, card.is_fixed)})
            return card

        id_map = {c.id: rekey(c).id for c in deck.cards}
        return Deck(
            owner_id=new_owner_id,
            cards=[rekey(c) for c in deck.cards],
            used_card_ids=[id_map.get(card_id, card_id) for card_id in deck.used_card_ids],
            bonus_cards=list(deck.bonus_cards),
        )

    @staticmethod
    def mint_bonus_card(
        owner_id: str,
        pool: Sequence[Dict[str, Any]],
        rng: Optional[random.Random] = None
    ) -> Card:
        """Create a fresh card from the pool; it is never taken from any deck"""
        rng = rng or random
        if not pool:
            raise InsufficientPoolError(requested=1, available=0)
        pooled = rng.choice(list(pool))
        return Card(
            id=f"bonus_{owner_id}_{uuid.uuid4().hex[:12]}",
            base_id=str(pooled["id"]),
            type=pooled.get("type", "challenge"),
            content=pooled["content"],
            is_fixed=False,
        )
