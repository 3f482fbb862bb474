# app/exceptions/__init__.py

from exceptions.domain_exceptions import (
    DomainException,
    NotFoundException,
    BadRequestException,
    ConflictException,
    UnauthorizedException,
    ForbiddenException,
    ValidationException,
    InternalServerException
)
from exceptions.game_exceptions import (
    AuthenticationError,
    NotBoundError,
    RoomNotFoundError,
    RoomFullError,
    RoomNotReadyError,
    ChallengeNotFoundError,
    NotReceiverError,
    AlreadyRespondedError,
    CardAlreadyUsedError,
    InsufficientPoolError,
)

__all__ = [
    'DomainException',
    'NotFoundException',
    'BadRequestException',
    'ConflictException',
    'UnauthorizedException',
    'ForbiddenException',
    'ValidationException',
    'InternalServerException',
    'AuthenticationError',
    'NotBoundError',
    'RoomNotFoundError',
    'RoomFullError',
    'RoomNotReadyError',
    'ChallengeNotFoundError',
    'NotReceiverError',
    'AlreadyRespondedError',
    'CardAlreadyUsedError',
    'InsufficientPoolError',
]
