# app/tests/test_presence_service.py

import pytest


@pytest.fixture
async def room(registry):
    room, _ = await registry.create_room("alice")
    return room


@pytest.mark.asyncio
class TestPresenceNotifier:
    """Test suite for PresenceNotifier"""

    async def test_online_goes_to_partner_not_self(self, presence, router, registry, fake_server, room):
        """Test that partner_online reaches the other side only"""
        await registry.join_room(room.id, "bob")
        await router.bind("sid-a", "alice", room.id)
        binding = (await router.bind("sid-b", "bob", room.id)).binding

        await presence.announce_online(binding)

        assert fake_server.events("sid-a", "partner_online") == [{"participantId": "bob", "status": "online"}]
        assert {"participantId": "bob", "status": "online"} not in fake_server.events("sid-b", "partner_online")

    async def test_late_joiner_learns_who_is_online(self, presence, router, registry, fake_server, room):
        """Test that presence works regardless of join order"""
        await registry.join_room(room.id, "bob")
        await router.bind("sid-a", "alice", room.id)
        binding = (await router.bind("sid-b", "bob", room.id)).binding

        await presence.announce_online(binding)

        assert fake_server.events("sid-b", "partner_online") == [{"participantId": "alice", "status": "online"}]

    async def test_offline_announcement(self, presence, router, registry, fake_server, room):
        """Test that the remaining participant is told about a departure"""
        await registry.join_room(room.id, "bob")
        await router.bind("sid-a", "alice", room.id)
        await router.bind("sid-b", "bob", room.id)

        binding = await router.unbind("sid-a")
        await presence.announce_offline(binding)

        assert fake_server.events("sid-b", "partner_online") == [{"participantId": "alice", "status": "offline"}]
        assert fake_server.events("sid-a") == []

    async def test_player_count(self, presence, router, fake_server, room):
        """Test player_joined / player_left payloads"""
        await router.bind("sid-a", "alice", room.id)

        await presence.announce_player_count(room.id, "player_joined", 1)

        assert fake_server.events("sid-a", "player_joined") == [{"playerCount": 1}]

    async def test_game_ready_fires_once(self, presence, router, registry, fake_server, room):
        """Test that game_ready is broadcast once per transition to a full room"""
        await router.bind("sid-a", "alice", room.id)
        assert await presence.announce_ready(room.id) is False

        await registry.join_room(room.id, "bob")
        await router.bind("sid-b", "bob", room.id)

        assert await presence.announce_ready(room.id) is True
        assert await presence.announce_ready(room.id) is False
        assert fake_server.events("sid-a", "game_ready") == [{"roomId": room.id}]
        assert fake_server.events("sid-b", "game_ready") == [{"roomId": room.id}]

    async def test_game_ready_waits_for_every_connection(self, presence, router, registry, fake_server, room):
        """Test that a full room with an unbound participant is not announced yet"""
        await router.bind("sid-a", "alice", room.id)
        await registry.join_room(room.id, "bob")

        assert await presence.announce_ready(room.id) is False
        assert fake_server.events("sid-a", "game_ready") == []

        await router.bind("sid-b", "bob", room.id)

        assert await presence.announce_ready(room.id) is True
        assert fake_server.events("sid-b", "game_ready") == [{"roomId": room.id}]
