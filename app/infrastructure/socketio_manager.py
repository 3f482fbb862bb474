# app/infrastructure/socketio_manager.py

import socketio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from urllib.parse import parse_qs
from jose import jwt, JWTError
from config.settings import settings
from exceptions.domain_exceptions import ForbiddenException
from exceptions.game_exceptions import AuthenticationError, RoomNotFoundError
import logging

if TYPE_CHECKING:
    from services.room_registry import RoomRegistry

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "cardgame_auth"


@dataclass(frozen=True)
class Binding:
    """Live association between one connection and a (participant, room) pair"""
    sid: str
    participant_id: str
    room_id: str


@dataclass(frozen=True)
class BindResult:
    binding: Binding
    # Older connection of the same participant in the same room, now unbound
    superseded: Optional[Binding] = None


class SessionRouter:
    """
    Binds live Socket.IO connections to rooms and routes events to them.

    One binding per connection, and at most one connection per participant
    per room: binding a newer connection supersedes the older one.
    """

    def __init__(self, server, registry: "RoomRegistry", namespace: str = "/"):
        self.server = server
        self.registry = registry
        self.namespace = namespace
        # Maps session_id to its binding
        self.bindings: Dict[str, Binding] = {}
        # Maps room_id -> participant_id -> session_id
        self.room_connections: Dict[str, Dict[str, str]] = {}
        # Maps session_id to a verified participant id (may not be bound yet)
        self.identities: Dict[str, str] = {}

    def identify(self, sid: str, participant_id: str) -> None:
        """Remember the verified identity of a connection"""
        self.identities[sid] = participant_id
        logger.info(f"Connection {sid} identified as participant {participant_id}")

    def get_identity(self, sid: str) -> Optional[str]:
        return self.identities.get(sid)

    def require_identity(self, sid: str) -> str:
        participant_id = self.identities.get(sid)
        if not participant_id:
            raise AuthenticationError("Authentication required. Send 'authenticate' with a valid token first.")
        return participant_id

    def forget(self, sid: str) -> None:
        self.identities.pop(sid, None)

    async def bind(self, sid: str, participant_id: Optional[str], room_id: str) -> BindResult:
        """
        Bind a connection to a room the participant belongs to.

        Raises:
            AuthenticationError: If no participant identity is available
            RoomNotFoundError: If the room does not exist
            ForbiddenException: If the participant is not a member of the room
        """
        if not participant_id:
            raise AuthenticationError()
        if self.registry.get_room(room_id) is None:
            raise RoomNotFoundError(room_id)
        if not self.registry.is_participant(room_id, participant_id):
            raise ForbiddenException(
                message="You are not a participant of this room",
                details={"room_id": room_id}
            )

        current = self.bindings.get(sid)
        if current == Binding(sid, participant_id, room_id):
            return BindResult(binding=current)
        if current is not None:
            await self.unbind(sid)

        superseded = None
        previous_sid = self.room_connections.get(room_id, {}).get(participant_id)
        if previous_sid is not None and previous_sid != sid:
            superseded = await self.unbind(previous_sid)
            logger.info(f"Connection {previous_sid} superseded by {sid} for {participant_id} in room {room_id}")

        binding = Binding(sid=sid, participant_id=participant_id, room_id=room_id)
        self.bindings[sid] = binding
        self.identities[sid] = participant_id
        self.room_connections.setdefault(room_id, {})[participant_id] = sid
        await self.server.enter_room(sid, room_id, namespace=self.namespace)
        self.registry.touch(room_id)

        logger.info(f"Bound {sid} to participant {participant_id} in room {room_id}")
        return BindResult(binding=binding, superseded=superseded)

    async def unbind(self, sid: str) -> Optional[Binding]:
        """Remove the connection's binding; safe to call more than once"""
        binding = self.bindings.pop(sid, None)
        if binding is None:
            return None

        connections = self.room_connections.get(binding.room_id)
        if connections is not None:
            if connections.get(binding.participant_id) == sid:
                del connections[binding.participant_id]
            if not connections:
                del self.room_connections[binding.room_id]

        try:
            await self.server.leave_room(sid, binding.room_id, namespace=self.namespace)
        except (KeyError, ValueError):
            # Connection already gone from the server side
            pass
        self.registry.touch(binding.room_id)

        logger.info(f"Unbound {sid} ({binding.participant_id}) from room {binding.room_id}")
        return binding

    def get_binding(self, sid: str) -> Optional[Binding]:
        return self.bindings.get(sid)

    def get_sid(self, room_id: str, participant_id: str) -> Optional[str]:
        return self.room_connections.get(room_id, {}).get(participant_id)

    def is_online(self, room_id: str, participant_id: str) -> bool:
        return self.get_sid(room_id, participant_id) is not None

    def online_participants(self, room_id: str) -> List[str]:
        return list(self.room_connections.get(room_id, {}).keys())

    def has_connections(self, room_id: str) -> bool:
        return bool(self.room_connections.get(room_id))

    async def broadcast_to_room(
        self,
        room_id: str,
        event: str,
        payload: Any = None,
        exclude_sid: Optional[str] = None
    ) -> None:
        """Deliver to every bound connection of the room, optionally skipping one"""
        await self.server.emit(
            event,
            payload,
            room=room_id,
            skip_sid=exclude_sid,
            namespace=self.namespace
        )

    async def send_to_participant(self, room_id: str, participant_id: str, event: str, payload: Any = None) -> bool:
        """
        Deliver to the participant's live connection in this room.

        Returns False (and delivers nothing) if the participant is offline.
        """
        sid = self.get_sid(room_id, participant_id)
        if sid is None:
            logger.info(f"Participant {participant_id} offline in room {room_id}; '{event}' not delivered")
            return False
        await self.send_to_connection(sid, event, payload)
        return True

    async def send_to_connection(self, sid: str, event: str, payload: Any = None) -> None:
        await self.server.emit(event, payload, room=sid, namespace=self.namespace)


def verify_token(token: Optional[str]) -> str:
    """
    Verify a JWT issued by the auth service and return the participant id.

    Raises:
        AuthenticationError: If the token is missing, invalid or has no subject
    """
    if not token:
        raise AuthenticationError("Authentication required")

    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.warning(f"JWT validation error: {type(e).__name__}")
        raise AuthenticationError("Invalid or expired token")

    participant_id = payload.get("sub") or payload.get("id") or payload.get("userId")
    if not participant_id:
        logger.warning("Token missing participant claim")
        raise AuthenticationError("Invalid token structure")

    return str(participant_id)


def extract_token(environ: dict, auth: Optional[dict] = None) -> Optional[str]:
    """
    Extract JWT token from the Socket.IO auth payload, query parameters OR cookies
    """
    if isinstance(auth, dict) and auth.get("token"):
        return auth["token"]

    query_string = environ.get('QUERY_STRING', '')
    if query_string:
        token = parse_qs(query_string).get('token', [None])[0]
        if token:
            return token

    cookie_header = environ.get('HTTP_COOKIE', '')
    if cookie_header:
        cookies = {}
        for cookie in cookie_header.split(';'):
            cookie = cookie.strip()
            if '=' in cookie:
                name, value = cookie.split('=', 1)
                cookies[name] = value
        return cookies.get(AUTH_COOKIE_NAME)

    return None


# Create global Socket.IO server with proper configuration
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins=settings.CORS_ORIGINS,
    logger=settings.DEBUG,
    engineio_logger=False,
    ping_timeout=60,
    ping_interval=25
)
