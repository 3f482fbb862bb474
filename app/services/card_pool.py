# app/services/card_pool.py

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.settings import settings

logger = logging.getLogger(__name__)


def _cards(card_type: str, prefix: str, contents: List[str]) -> List[Dict[str, Any]]:
    return [
        {"id": f"{prefix}{i:02d}", "type": card_type, "content": content}
        for i, content in enumerate(contents, start=1)
    ]


DEFAULT_CARD_POOL: List[Dict[str, Any]] = (
    _cards("sweet", "sw", [
        "Write your partner a three-line love note.",
        "Send a photo of something that reminds you of them.",
        "Tell your partner one thing you admired about them today.",
        "Plan a surprise ten-minute call tonight.",
        "Record a voice message saying good morning.",
        "Share your favourite memory of the two of you.",
        "Compliment your partner in a language you don't speak.",
        "Describe your perfect lazy Sunday together.",
        "Send a song that fits your mood right now.",
        "Say thank you for something small they did this week.",
    ])
    + _cards("fun", "fn", [
        "Do your best impression of your partner.",
        "Send a selfie making your silliest face.",
        "Tell a joke; if they don't laugh, tell another.",
        "Draw your partner from memory in under a minute.",
        "Speak only in questions for the next five minutes.",
        "Invent a secret handshake and describe it.",
        "Sing the chorus of the last song you listened to.",
        "Narrate your next snack like a nature documentary.",
        "Rename yourself for the day and stick to it.",
        "Send three emojis that describe your day.",
    ])
    + _cards("deep", "dp", [
        "What is one fear you have never said out loud?",
        "Which moment made you sure about this relationship?",
        "What would you tell your younger self about love?",
        "Name a habit of yours you want to change.",
        "What does a perfect future day look like for us?",
        "What is something you wish we did more often?",
        "Share a dream you gave up on and why.",
        "What makes you feel most appreciated?",
        "Tell your partner about a time you felt proud.",
        "What is one promise you want to make this month?",
    ])
    + _cards("active", "ac", [
        "Take a fifteen-minute walk and send a photo from it.",
        "Do twenty squats while on a call with your partner.",
        "Stretch together over video for five minutes.",
        "Dance to one full song, no stopping.",
        "Drink a full glass of water right now.",
        "Tidy one corner of your room and show the result.",
        "Cook something new and share the recipe.",
        "Go outside and find something blue.",
        "Hold a plank for as long as your partner talks.",
        "Climb the stairs instead of the lift today.",
    ])
    + _cards("creative", "cr", [
        "Write a haiku about your partner.",
        "Design a logo for your relationship.",
        "Make up a short bedtime story starring both of you.",
        "Create a playlist of five songs for your next date.",
        "Describe your partner using only food.",
        "Take an artistic photo of an everyday object.",
        "Write a six-word story about your week.",
        "Invent a holiday just for the two of you.",
        "Sketch your dream home together.",
        "Write a movie title for your love story.",
    ])
    + _cards("kind", "kd", [
        "Order your partner's favourite snack for them.",
        "Let your partner choose tonight's film, no veto.",
        "Send a message to someone your partner loves.",
        "Do one chore your partner usually does.",
        "Leave a hidden note for your partner to find.",
        "Give your partner a no-phones hour of attention.",
        "Plan your next date entirely by yourself.",
        "Ask your partner how you can help this week.",
        "Write down three things you love about them.",
        "Send a good-luck message before their next big task.",
    ])
)


class CardPoolProvider:
    """Supplies the shared set of drawable cards"""

    def __init__(self, pool_path: Optional[str] = None):
        self.pool_path = pool_path
        self._cache: Optional[List[Dict[str, Any]]] = None

    async def get_cards(self) -> List[Dict[str, Any]]:
        if self._cache is None:
            self._cache = self._load()
        return list(self._cache)

    def _load(self) -> List[Dict[str, Any]]:
        if not self.pool_path:
            return list(DEFAULT_CARD_POOL)

        with Path(self.pool_path).open(encoding="utf-8") as f:
            raw = json.load(f)

        # Accept either a bare list or {"data": [...]}
        cards = raw.get("data", []) if isinstance(raw, dict) else raw
        pool = [c for c in cards if "id" in c and "content" in c]
        logger.info(f"Loaded {len(pool)} cards from {self.pool_path}")
        return pool


card_pool_provider = CardPoolProvider(settings.CARD_POOL_PATH)
