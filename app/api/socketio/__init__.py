# app/api/socketio/__init__.py

"""
Socket.IO wiring for paired rooms

All room traffic uses the default namespace '/'. The SessionRouter is the only
component that talks to the Socket.IO server; the services receive it by
injection so they can be exercised against a recording double in tests.
"""

from infrastructure.socketio_manager import sio, SessionRouter
from services.room_registry import room_registry
from services.history_service import history_service
from services.presence_service import PresenceNotifier
from services.challenge_service import ChallengeCoordinator
from .room_namespace import RoomNamespace

ROOM_NAMESPACE = '/'

router = SessionRouter(sio, room_registry, namespace=ROOM_NAMESPACE)
presence = PresenceNotifier(router, room_registry)
coordinator = ChallengeCoordinator(room_registry, router, history_service)

# Register the namespace
sio.register_namespace(RoomNamespace(
    ROOM_NAMESPACE,
    registry=room_registry,
    router=router,
    presence=presence,
    coordinator=coordinator,
    history=history_service,
))


__all__ = ['sio', 'router', 'presence', 'coordinator', 'RoomNamespace', 'ROOM_NAMESPACE']
