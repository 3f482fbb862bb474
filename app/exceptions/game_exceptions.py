# app/exceptions/game_exceptions.py

from typing import Any, Dict, Optional
from exceptions.domain_exceptions import (
    NotFoundException,
    BadRequestException,
    ConflictException,
    UnauthorizedException,
    ForbiddenException,
    InternalServerException,
)


class AuthenticationError(UnauthorizedException):
    """Token missing, malformed, expired or without a participant claim"""
    error_code = "AUTH_ERROR"

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details)


class NotBoundError(UnauthorizedException):
    """Connection sent a room event before being bound to a room"""
    error_code = "NOT_BOUND"

    def __init__(self, message: str = "Connection is not bound to a room", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details)


class RoomNotFoundError(NotFoundException):
    error_code = "ROOM_NOT_FOUND"

    def __init__(self, room_id: str):
        super().__init__(message="Room not found", details={"room_id": room_id})


class RoomFullError(ConflictException):
    error_code = "ROOM_FULL"

    def __init__(self, room_id: str):
        super().__init__(message="Room is full", details={"room_id": room_id})


class RoomNotReadyError(ConflictException):
    error_code = "ROOM_NOT_READY"

    def __init__(self, room_id: str, player_count: int):
        super().__init__(
            message="Room needs two players before challenges can be sent",
            details={"room_id": room_id, "player_count": player_count}
        )


class ChallengeNotFoundError(NotFoundException):
    error_code = "CHALLENGE_NOT_FOUND"

    def __init__(self, challenge_id: str):
        super().__init__(message="Challenge not found", details={"challenge_id": challenge_id})


class NotReceiverError(ForbiddenException):
    error_code = "NOT_RECEIVER"

    def __init__(self, challenge_id: str):
        super().__init__(
            message="Only the receiver can respond to this challenge",
            details={"challenge_id": challenge_id}
        )


class AlreadyRespondedError(ConflictException):
    error_code = "ALREADY_RESPONDED"

    def __init__(self, challenge_id: str, status: str):
        super().__init__(
            message="Challenge has already been answered",
            details={"challenge_id": challenge_id, "status": status}
        )


class CardAlreadyUsedError(BadRequestException):
    error_code = "CARD_ALREADY_USED"

    def __init__(self, card_id: str):
        super().__init__(message="Card has already been played", details={"card_id": card_id})


class InsufficientPoolError(InternalServerException):
    error_code = "INSUFFICIENT_POOL"

    def __init__(self, requested: int, available: int):
        super().__init__(
            message="Card pool is too small to build the deck",
            details={"requested": requested, "available": available}
        )
