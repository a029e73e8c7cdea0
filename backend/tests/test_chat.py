"""Tests for the relay WebSocket endpoint with multi-client support.

Every frame is a JSON envelope {"event": ..., "data": {...}}. Clients
authenticate with a self-declared userId, join a two-party room and then
exchange messages and typing signals.
"""
import pytest


ROOM = "room_u1_u2"


def send(ws, event, **data):
    ws.send_json({"event": event, "data": data})


def receive(ws, expected_event):
    """Helper to receive one envelope and check its event name."""
    envelope = ws.receive_json()
    assert envelope["event"] == expected_event, envelope
    return envelope["data"]


def authenticate(ws, user_id, name):
    send(ws, "authenticate", userId=user_id, name=name)
    return receive(ws, "authenticated")


def join(ws, room_id=ROOM):
    send(ws, "join_room", roomId=room_id)
    return receive(ws, "previous_messages")


def test_authenticate_binds_identity(api_client, relay_state):
    """Authenticating binds the declared user to the connection."""
    with api_client.websocket_connect("/ws") as ws:
        reply = authenticate(ws, "u1", "Alice")

        assert reply == {"success": True, "userId": "u1", "message": "Welcome Alice!"}
        user = relay_state.connections.get("u1")
        assert user is not None
        assert relay_state.connections.lookup_by_connection(user.connectionId).id == "u1"


def test_repeated_authenticate_is_idempotent(api_client, relay_state):
    with api_client.websocket_connect("/ws") as ws:
        authenticate(ws, "u1", "Alice")
        authenticate(ws, "u1", "Alice")

        assert len(relay_state.connections) == 1


def test_send_before_authenticate_returns_error(api_client, relay_state):
    """An unauthenticated sender gets an error and nothing is logged."""
    with api_client.websocket_connect("/ws") as ws:
        join(ws)
        send(ws, "send_message", roomId=ROOM, text="hi")

        error = receive(ws, "error")
        assert error["message"] == "User not authenticated"
        assert relay_state.history.list(ROOM) == []


def test_two_clients_same_room(api_client, relay_state):
    """Both participants receive a message, including the sender."""
    with api_client.websocket_connect("/ws") as ws1, \
         api_client.websocket_connect("/ws") as ws2:

        authenticate(ws1, "u1", "Alice")
        authenticate(ws2, "u2", "Bob")
        assert join(ws1) == {"roomId": ROOM, "messages": []}
        join(ws2)

        send(ws1, "send_message", roomId=ROOM, text="hi", correlationId="t1")

        data1 = receive(ws1, "new_message")
        data2 = receive(ws2, "new_message")

        assert data1["text"] == "hi"
        assert data1["correlationId"] == "t1"
        assert data1["senderId"] == "u1"
        assert data1["senderName"] == "Alice"
        assert data1["roomId"] == ROOM
        assert "id" in data1
        assert "serverTimestamp" in data1
        assert data1 == data2

        assert len(relay_state.history.list(ROOM)) == 1

        # Reply in the other direction
        send(ws2, "send_message", roomId=ROOM, text="hello back")
        data1 = receive(ws1, "new_message")
        data2 = receive(ws2, "new_message")
        assert data1["senderId"] == "u2"
        assert "correlationId" not in data1
        assert data1 == data2


def test_typing_is_not_echoed_to_sender(api_client):
    with api_client.websocket_connect("/ws") as ws1, \
         api_client.websocket_connect("/ws") as ws2:

        authenticate(ws1, "u1", "Alice")
        authenticate(ws2, "u2", "Bob")
        join(ws1)
        join(ws2)

        send(ws1, "typing", roomId=ROOM, isTyping=True)
        typing = receive(ws2, "user_typing")
        assert typing == {
            "roomId": ROOM,
            "userId": "u1",
            "userName": "Alice",
            "isTyping": True,
        }

        # Outbound delivery is FIFO per connection: if a user_typing had been
        # queued for ws1 it would arrive before this pong.
        send(ws1, "ping")
        receive(ws1, "pong")


def test_history_on_join(api_client):
    """A client joining later receives the earlier messages in order."""
    with api_client.websocket_connect("/ws") as ws1:
        authenticate(ws1, "u1", "Alice")
        join(ws1)
        for text in ("First message", "Second message"):
            send(ws1, "send_message", roomId=ROOM, text=text)
            receive(ws1, "new_message")

        with api_client.websocket_connect("/ws") as ws2:
            authenticate(ws2, "u2", "Bob")
            history = join(ws2)

            assert [m["text"] for m in history["messages"]] == [
                "First message",
                "Second message",
            ]


def test_different_rooms_are_isolated(api_client, relay_state):
    room_other = "room_u3_u4"

    with api_client.websocket_connect("/ws") as ws1, \
         api_client.websocket_connect("/ws") as ws2:

        authenticate(ws1, "u1", "Alice")
        authenticate(ws2, "u3", "Carol")
        join(ws1, ROOM)
        join(ws2, room_other)

        send(ws1, "send_message", roomId=ROOM, text="Message in room 1")
        assert receive(ws1, "new_message")["roomId"] == ROOM

        send(ws2, "send_message", roomId=room_other, text="Message in room 2")
        assert receive(ws2, "new_message")["roomId"] == room_other

        assert relay_state.history.count(ROOM) == 1
        assert relay_state.history.count(room_other) == 1


def test_leave_room_stops_delivery(api_client):
    with api_client.websocket_connect("/ws") as ws1, \
         api_client.websocket_connect("/ws") as ws2:

        authenticate(ws1, "u1", "Alice")
        authenticate(ws2, "u2", "Bob")
        join(ws1)
        join(ws2)

        send(ws2, "leave_room", roomId=ROOM)
        send(ws2, "ping")
        receive(ws2, "pong")

        send(ws1, "send_message", roomId=ROOM, text="anyone there?")
        receive(ws1, "new_message")

        send(ws2, "ping")
        receive(ws2, "pong")


def test_messages_keep_send_order(api_client, relay_state):
    with api_client.websocket_connect("/ws") as ws:
        authenticate(ws, "u1", "Alice")
        join(ws)

        texts = ["Message 1", "Message 2", "Message 3"]
        for text in texts:
            send(ws, "send_message", roomId=ROOM, text=text)
        received = [receive(ws, "new_message")["text"] for _ in texts]

        assert received == texts
        assert [m.text for m in relay_state.history.list(ROOM)] == texts


def test_disconnect_cleans_up(api_client, relay_state):
    with api_client.websocket_connect("/ws") as ws2:
        authenticate(ws2, "u2", "Bob")
        join(ws2)

        with api_client.websocket_connect("/ws") as ws1:
            authenticate(ws1, "u1", "Alice")
            join(ws1)
            connection_id = relay_state.connections.get("u1").connectionId
            assert connection_id in relay_state.broadcaster.subscribers(ROOM)

        assert relay_state.connections.lookup_by_connection(connection_id) is None
        assert relay_state.connections.get("u1") is None
        assert connection_id not in relay_state.broadcaster.subscribers(ROOM)
        assert relay_state.broadcaster.rooms_of(connection_id) == []

        # The remaining participant is unaffected.
        send(ws2, "ping")
        receive(ws2, "pong")


@pytest.mark.parametrize("frame, fragment", [
    ("not json at all", "Invalid JSON"),
    ('{"event": "fly_away", "data": {}}', "Unknown event"),
    ('{"event": "join_room", "data": {}}', "roomId"),
])
def test_malformed_frames_return_error(api_client, relay_state, frame, fragment):
    with api_client.websocket_connect("/ws") as ws:
        ws.send_text(frame)
        error = receive(ws, "error")
        assert fragment in error["message"]

        # The connection stays usable.
        assert authenticate(ws, "u1", "Alice")["success"] is True
    assert len(relay_state.rooms) == 0


def test_binary_frame_is_rejected(api_client):
    with api_client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        receive(ws, "error")
