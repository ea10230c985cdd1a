"""
Tests for the WebSocket Relay Server

Feeds raw JSON envelopes into the server and inspects what each mock
socket was sent.
"""

import json

import pytest
from src.relay import Role, SessionRegistry, WebSocketServer


class MockWebSocket:
    """Mock WebSocket for testing."""

    def __init__(self, incoming=None):
        self.sent_messages = []
        self.incoming = list(incoming or [])

    async def send(self, message):
        self.sent_messages.append(message)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.incoming:
            raise StopAsyncIteration
        return self.incoming.pop(0)


def make_server():
    return WebSocketServer(SessionRegistry(), "localhost", 0)


def connect(server, connection_id):
    websocket = MockWebSocket()
    server.connections[connection_id] = websocket
    return websocket


def sent(websocket):
    return [json.loads(m) for m in websocket.sent_messages]


async def register(server, connection_id, room_id, role):
    await server.process_message(
        connection_id,
        json.dumps({"type": "register", "data": {"room_id": room_id, "role": role}}),
    )


def test_server_can_be_created():
    server = make_server()
    assert server.connections == {}
    assert server.server is None


@pytest.mark.asyncio
async def test_register_acknowledges_with_connection_id():
    server = make_server()
    cam = connect(server, "cam")

    await register(server, "cam", "r1", "camera")

    assert sent(cam) == [
        {
            "type": "registered",
            "data": {"connection_id": "cam", "room_id": "r1", "role": "camera"},
        }
    ]
    assert server.registry.get_room("r1").holder(Role.INITIATOR) == "cam"


@pytest.mark.asyncio
async def test_pairing_sends_peer_joined_to_both():
    server = make_server()
    cam = connect(server, "cam")
    view = connect(server, "view")

    await register(server, "cam", "r1", "camera")
    await register(server, "view", "r1", "viewer")

    assert sent(cam)[-1] == {
        "type": "peer-joined",
        "data": {"peer_id": "view", "role": "viewer"},
    }
    assert [m["type"] for m in sent(view)] == ["registered", "peer-joined"]
    assert sent(view)[-1]["data"] == {"peer_id": "cam", "role": "camera"}


@pytest.mark.asyncio
async def test_offer_is_relayed_with_sender_id():
    server = make_server()
    cam = connect(server, "cam")
    view = connect(server, "view")
    await register(server, "cam", "r1", "camera")
    await register(server, "view", "r1", "viewer")
    description = {"type": "offer", "sdp": "v=0"}

    await server.process_message(
        "cam",
        json.dumps(
            {"type": "offer", "data": {"room_id": "r1", "description": description}}
        ),
    )

    assert sent(view)[-1] == {
        "type": "offer",
        "data": {"description": description, "sender_id": "cam"},
    }
    assert sent(cam)[-1]["type"] == "peer-joined"


@pytest.mark.asyncio
async def test_candidate_is_relayed_to_target():
    server = make_server()
    cam = connect(server, "cam")
    view = connect(server, "view")
    await register(server, "cam", "r1", "camera")
    await register(server, "view", "r1", "viewer")
    candidate = {"candidate": "candidate:1 1 udp 1 10.0.0.1 9 typ host"}

    await server.process_message(
        "view",
        json.dumps(
            {
                "type": "ice-candidate",
                "data": {"room_id": "r1", "candidate": candidate, "target_id": "cam"},
            }
        ),
    )

    assert sent(cam)[-1] == {
        "type": "ice-candidate",
        "data": {"candidate": candidate, "sender_id": "view"},
    }


@pytest.mark.asyncio
async def test_reconnect_request_reaches_counterpart():
    server = make_server()
    cam = connect(server, "cam")
    connect(server, "view")
    await register(server, "cam", "r1", "camera")
    await register(server, "view", "r1", "viewer")

    await server.process_message(
        "view",
        json.dumps(
            {"type": "reconnect-request", "data": {"room_id": "r1", "role": "viewer"}}
        ),
    )

    assert sent(cam)[-1] == {
        "type": "reconnect-request",
        "data": {"peer_id": "view", "role": "viewer"},
    }


@pytest.mark.asyncio
async def test_disconnect_notifies_remaining_peer():
    server = make_server()
    cam = connect(server, "cam")
    connect(server, "view")
    await register(server, "cam", "r1", "camera")
    await register(server, "view", "r1", "viewer")

    await server.handle_disconnect("view")

    assert "view" not in server.connections
    assert sent(cam)[-1] == {"type": "peer-disconnected", "data": {"role": "viewer"}}


@pytest.mark.asyncio
async def test_join_takes_free_slot_and_acknowledges_role():
    server = make_server()
    first = connect(server, "first")
    second = connect(server, "second")

    await server.process_message(
        "first", json.dumps({"type": "join", "data": {"room_id": "r1"}})
    )
    await server.process_message(
        "second", json.dumps({"type": "join", "data": {"room_id": "r1"}})
    )

    assert sent(first)[0]["data"]["role"] == "camera"
    assert sent(second)[0]["data"]["role"] == "viewer"
    assert sent(first)[-1]["type"] == "peer-joined"


@pytest.mark.asyncio
async def test_lobby_transition_flow():
    """Test lobby routing followed by the transition to viewer."""
    server = make_server()
    lobby = connect(server, "lobby")
    cam = connect(server, "cam")
    await register(server, "lobby", "r1", "homePage")
    await register(server, "cam", "r1", "camera")

    assert sent(lobby)[-1] == {"type": "route-to-viewer", "data": {"room_id": "r1"}}

    await server.process_message(
        "lobby",
        json.dumps({"type": "transition-to-viewer", "data": {"room_id": "r1"}}),
    )

    assert sent(cam)[-1]["data"] == {"peer_id": "lobby", "role": "viewer"}
    assert sent(lobby)[-1]["data"] == {"peer_id": "cam", "role": "camera"}


@pytest.mark.asyncio
async def test_invalid_json_returns_error():
    server = make_server()
    ws = connect(server, "c1")

    await server.process_message("c1", "{not json")

    assert sent(ws) == [
        {"type": "error", "data": {"success": False, "message": "Invalid JSON format"}}
    ]


@pytest.mark.asyncio
async def test_unknown_type_returns_error():
    server = make_server()
    ws = connect(server, "c1")

    await server.process_message("c1", json.dumps({"type": "dance", "data": {}}))

    assert sent(ws)[0]["type"] == "error"
    assert "dance" in sent(ws)[0]["data"]["message"]


@pytest.mark.asyncio
async def test_unknown_role_returns_error():
    server = make_server()
    ws = connect(server, "c1")

    await register(server, "c1", "r1", "projector")

    assert sent(ws)[0]["type"] == "error"
    assert server.registry.get_room("r1") is None


@pytest.mark.asyncio
async def test_missing_fields_return_error():
    server = make_server()
    ws = connect(server, "c1")

    await server.process_message(
        "c1", json.dumps({"type": "offer", "data": {"room_id": "r1"}})
    )
    await server.process_message("c1", json.dumps({"type": "register", "data": {}}))

    assert [m["type"] for m in sent(ws)] == ["error", "error"]


@pytest.mark.asyncio
async def test_wrongly_typed_fields_return_error_and_keep_slot():
    """Test that non-string fields are rejected without dropping the connection."""
    server = make_server()
    cam = connect(server, "cam")
    view = connect(server, "view")
    await register(server, "cam", "r1", "camera")
    await register(server, "view", "r1", "viewer")
    del cam.sent_messages[:], view.sent_messages[:]

    for envelope in (
        {"type": ["offer"], "data": {}},
        {"type": {"kind": "offer"}, "data": {}},
        {"type": "register", "data": {"room_id": ["r"], "role": "camera"}},
        {"type": "register", "data": {"room_id": "r1", "role": ["viewer"]}},
        {"type": "join", "data": {"room_id": {"id": "r1"}}},
        {"type": "offer", "data": ["r1"]},
        {
            "type": "ice-candidate",
            "data": {"room_id": "r1", "candidate": {}, "target_id": ["cam"]},
        },
        ["register"],
    ):
        await server.process_message("view", json.dumps(envelope))

    assert [m["type"] for m in sent(view)] == ["error"] * 8
    assert sent(cam) == []
    assert server.registry.get_room("r1").holder(Role.RESPONDER) == "view"


@pytest.mark.asyncio
async def test_handle_client_survives_malformed_message():
    server = make_server()
    cam = connect(server, "cam")
    await register(server, "cam", "r1", "camera")
    websocket = MockWebSocket(
        incoming=[
            json.dumps({"type": "register", "data": {"room_id": "r1", "role": "viewer"}}),
            json.dumps({"type": ["offer"], "data": {}}),
            json.dumps({"type": "answer", "data": {"room_id": "r1", "description": {}}}),
        ]
    )

    await server.handle_client(websocket)

    assert [m["type"] for m in sent(websocket)] == ["registered", "peer-joined", "error"]
    assert [m["type"] for m in sent(cam)] == [
        "registered",
        "peer-joined",
        "answer",
        "peer-disconnected",
    ]


@pytest.mark.asyncio
async def test_negotiation_from_outside_the_room_is_rejected():
    server = make_server()
    cam = connect(server, "cam")
    intruder = connect(server, "intruder")
    await register(server, "cam", "r1", "camera")
    await register(server, "intruder", "r2", "viewer")
    del cam.sent_messages[:]

    await server.process_message(
        "intruder",
        json.dumps({"type": "offer", "data": {"room_id": "r1", "description": {}}}),
    )
    await server.process_message(
        "intruder",
        json.dumps(
            {"type": "reconnect-request", "data": {"room_id": "r1", "role": "viewer"}}
        ),
    )

    assert sent(cam) == []
    assert [m["type"] for m in sent(intruder)] == ["registered", "error", "error"]
    assert "r1" in sent(intruder)[-1]["data"]["message"]



@pytest.mark.asyncio
async def test_send_to_unknown_connection_returns_false():
    server = make_server()
    assert await server.send_to("ghost", {"type": "offer"}) is False


@pytest.mark.asyncio
async def test_handle_client_runs_until_socket_ends():
    """Test that a full client session registers and cleans up."""
    server = make_server()
    cam = connect(server, "cam")
    await register(server, "cam", "r1", "camera")
    websocket = MockWebSocket(
        incoming=[
            json.dumps({"type": "register", "data": {"room_id": "r1", "role": "viewer"}})
        ]
    )

    await server.handle_client(websocket)

    assert sent(websocket)[0]["type"] == "registered"
    assert sent(cam)[-1] == {"type": "peer-disconnected", "data": {"role": "viewer"}}
    assert list(server.connections) == ["cam"]
    assert server.registry.get_room("r1").holder(Role.RESPONDER) is None
