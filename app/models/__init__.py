# app/models/__init__.py

from models.challenge_record import ChallengeRecord

__all__ = ["ChallengeRecord"]
