# app/api/socketio/room_namespace.py

import socketio
from typing import Any, Optional, Set
from pydantic import ValidationError
from infrastructure.socketio_manager import BindResult, SessionRouter, extract_token, verify_token
from services.room_registry import RoomRegistry
from services.presence_service import PresenceNotifier
from services.challenge_service import ChallengeCoordinator
from services.history_service import HistoryService
from schemas.room_schema import (
    AuthenticateRequest,
    JoinRoomRequest,
    RoomCreatedEvent,
    GameStateUpdateEvent,
    ErrorResponse,
)
from schemas.challenge_schema import SendChallengeRequest, RespondChallengeRequest
from exceptions.domain_exceptions import DomainException, ForbiddenException
from exceptions.game_exceptions import NotBoundError
import logging

logger = logging.getLogger(__name__)


class RoomNamespace(socketio.AsyncNamespace):
    """
    Socket.IO namespace for paired rooms.

    Handlers only validate input and translate errors; pairing lives in the
    RoomRegistry, delivery in the SessionRouter and gameplay in the
    ChallengeCoordinator.
    """

    def __init__(
        self,
        namespace: str,
        registry: RoomRegistry,
        router: SessionRouter,
        presence: PresenceNotifier,
        coordinator: ChallengeCoordinator,
        history: HistoryService
    ):
        super().__init__(namespace)
        self.registry = registry
        self.router = router
        self.presence = presence
        self.coordinator = coordinator
        self.history = history
        # Connections that have not disconnected yet
        self.connected: Set[str] = set()

    # ------------------------------------------------------------ helpers

    async def emit_error(self, sid: str, exc: Exception, action: str) -> None:
        """Surface a failure to the offending connection only"""
        if isinstance(exc, DomainException):
            logger.info(f"{action} failed for {sid}: {exc.error_code} {exc.message}")
            response = ErrorResponse(message=exc.message, error_code=exc.error_code, details=exc.details)
        elif isinstance(exc, ValidationError):
            response = ErrorResponse(
                message='Invalid data format',
                error_code='VALIDATION_ERROR',
                details={'errors': exc.errors(include_url=False, include_context=False, include_input=False)}
            )
        else:
            logger.error(f"Error during {action} for {sid}: {exc}", exc_info=True)
            response = ErrorResponse(message=f'Failed to {action}', error_code='INTERNAL_ERROR')
        await self.router.send_to_connection(sid, 'error', response.to_payload())

    def require_binding(self, sid: str, room_id: str):
        binding = self.router.get_binding(sid)
        if binding is None:
            raise NotBoundError()
        if binding.room_id != room_id:
            raise ForbiddenException(
                message="This connection is bound to another room",
                details={"room_id": room_id}
            )
        return binding

    async def send_state(self, sid: str, room_id: str, participant_id: str) -> None:
        room = self.registry.get_room(room_id)
        if room is None or participant_id not in room.decks:
            return
        event = GameStateUpdateEvent(game=room.game_state, deck=room.decks[participant_id])
        await self.router.send_to_connection(sid, 'game_state_update', event.to_payload())

    async def send_initial_decks(self, room_id: str) -> None:
        room = self.registry.get_room(room_id)
        if room is None:
            return
        for participant_id in list(room.participants):
            deck = room.decks.get(participant_id)
            if deck is not None:
                await self.router.send_to_participant(room_id, participant_id, 'initial_deck', deck.to_payload())

    async def bind_connection(self, sid: str, participant_id: str, room_id: str) -> Optional[BindResult]:
        """
        Bind the connection and announce it. A connection that was already
        bound to another room leaves that room first.

        Returns None if the connection closed while the request was in flight.
        """
        current = self.router.get_binding(sid)
        if current is not None and current.room_id != room_id:
            await self.depart(sid)

        result = await self.router.bind(sid, participant_id, room_id)
        if sid not in self.connected:
            # Disconnect arrived mid-request; finish the request as a departure.
            # on_disconnect already forgot the sid, but bind identified it again.
            try:
                await self.depart(sid)
            finally:
                self.router.forget(sid)
            return None

        if result.superseded is not None:
            logger.info(f"Participant {participant_id} reconnected to room {room_id} on {sid}")
        await self.presence.announce_online(result.binding)
        return result

    async def depart(self, sid: str) -> None:
        """Unbind the connection; the participant leaves the room with it"""
        binding = await self.router.unbind(sid)
        if binding is None:
            return

        await self.presence.announce_offline(binding)
        room = await self.registry.remove_participant(binding.room_id, binding.participant_id)
        if room is not None:
            await self.presence.announce_player_count(binding.room_id, 'player_left', room.player_count)
        self.history.record_event(binding.room_id, 'player_left', {
            "participantId": binding.participant_id,
            "playerCount": room.player_count if room is not None else 0,
        })

    # ----------------------------------------------------------- handlers

    async def on_connect(self, sid, environ, auth=None):
        """Tokens are optional here; `authenticate` can supply one later"""
        self.connected.add(sid)
        token = extract_token(environ, auth)
        if token:
            try:
                self.router.identify(sid, verify_token(token))
            except DomainException as e:
                await self.emit_error(sid, e, 'authenticate')
        logger.info(f"Client connected: {sid}")
        return True

    async def on_disconnect(self, sid, reason=None):
        self.connected.discard(sid)
        try:
            await self.depart(sid)
        except Exception as e:
            logger.error(f"Error cleaning up {sid} on disconnect: {e}", exc_info=True)
        finally:
            self.router.forget(sid)
        logger.info(f"Client disconnected: {sid}")

    async def on_authenticate(self, sid, data):
        """
        Bind this connection to a room the participant already belongs to

        Expected data: {"token": str, "roomId": str}
        """
        try:
            request = AuthenticateRequest(**(data or {}))
            participant_id = verify_token(request.token)
            self.router.identify(sid, participant_id)

            result = await self.bind_connection(sid, participant_id, request.room_id)
            if result is None:
                return

            room = self.registry.get_room(request.room_id)
            if room is not None:
                await self.presence.announce_player_count(request.room_id, 'player_joined', room.player_count)
            await self.send_state(sid, request.room_id, participant_id)
            await self.presence.announce_ready(request.room_id)

        except Exception as e:
            await self.emit_error(sid, e, 'authenticate')

    async def on_create_room(self, sid, data=None):
        """Create a room for the authenticated participant"""
        try:
            participant_id = self.router.require_identity(sid)
            room, deck = await self.registry.create_room(participant_id)
            self.history.record_event(room.id, 'room_created', {"participantId": participant_id})

            if await self.bind_connection(sid, participant_id, room.id) is None:
                return

            await self.router.send_to_connection(sid, 'room_created', RoomCreatedEvent(room_id=room.id).to_payload())
            event = GameStateUpdateEvent(game=room.game_state, deck=deck)
            await self.router.send_to_connection(sid, 'game_state_update', event.to_payload())

        except Exception as e:
            await self.emit_error(sid, e, 'create room')

    async def on_join_room(self, sid, data: Any):
        """
        Join a room by its code

        Expected data: {"code": str} or the bare code
        """
        try:
            request = JoinRoomRequest(code=str(data)) if isinstance(data, (str, int)) else JoinRoomRequest(**(data or {}))
            participant_id = self.router.require_identity(sid)

            room = await self.registry.join_room(request.code, participant_id)
            self.history.record_event(request.code, 'player_joined', {
                "participantId": participant_id, "playerCount": room.player_count
            })

            if await self.bind_connection(sid, participant_id, request.code) is None:
                return

            await self.presence.announce_player_count(request.code, 'player_joined', room.player_count)
            # game_ready may already have been claimed by the partner's authenticate
            await self.presence.announce_ready(request.code)
            current = self.registry.get_room(request.code)
            if current is not None and current.is_ready:
                await self.send_initial_decks(request.code)
            else:
                await self.send_state(sid, request.code, participant_id)

        except Exception as e:
            await self.emit_error(sid, e, 'join room')

    async def on_send_challenge(self, sid, data):
        """
        Play a card at the partner

        Expected data: {"roomId": str, "card": {"id": str, "content"?: str}}
        """
        try:
            request = SendChallengeRequest(**(data or {}))
            binding = self.require_binding(sid, request.room_id)
            await self.coordinator.send_challenge(request.room_id, binding.participant_id, request.card)
        except Exception as e:
            await self.emit_error(sid, e, 'send challenge')

    async def on_respond_challenge(self, sid, data):
        """
        Accept or reject a challenge received from the partner

        Expected data: {"roomId": str, "challengeId": str, "response": "accept" | "reject"}
        """
        try:
            request = RespondChallengeRequest(**(data or {}))
            binding = self.require_binding(sid, request.room_id)
            await self.coordinator.respond_to_challenge(
                request.room_id, request.challenge_id, binding.participant_id, request.response
            )
        except Exception as e:
            await self.emit_error(sid, e, 'respond to challenge')
