import pytest
from starlette.websockets import WebSocketDisconnect
from stickyboard import auth
from conftest import register_and_login


def _ws_url(tokens, username):
    return f"/ws?access_token={tokens['token']}&user={username}"


def _receive_actions(ws, count):
    return [ws.receive_json()["action"] for _ in range(count)]


@pytest.mark.parametrize("token", ["", "junk", "expired"])
def test_handshake_rejected_without_a_valid_user_token(client, token):
    if token == "expired":
        token = auth.issue_user_access(1, "alice", expires_in=-10)
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect(f"/ws?access_token={token}&user=alice"):
            pass
    assert excinfo.value.code == 1008


def test_board_token_cannot_open_the_channel(client):
    token = auth.issue_board_access(1, 1, "alice")
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws?access_token={token}"):
            pass


def test_updates_fan_out_to_the_room_without_echo(client):
    alice = register_and_login(client, "alice")
    bob = register_and_login(client, "bobby")

    with client.websocket_connect(_ws_url(alice, "alice")) as ws_a:
        assert ws_a.receive_json() == {"id": None, "action": "globalUserListUpdate", "users": ["alice"]}

        with client.websocket_connect(_ws_url(bob, "bobby")) as ws_b:
            assert ws_b.receive_json()["users"] == ["alice", "bobby"]
            assert ws_a.receive_json()["users"] == ["alice", "bobby"]

            stats = client.get("/api/realtime/stats").json()
            assert stats["connections"] == 2

            ws_a.send_json({"id": 1, "action": "connectBoard"})
            assert _receive_actions(ws_a, 3) == ["connectedUsersList", "userJoined", "globalUserListUpdate"]
            assert _receive_actions(ws_b, 1) == ["globalUserListUpdate"]

            ws_b.send_json({"id": "1", "action": "connectBoard"})
            joined = [ws_b.receive_json() for _ in range(3)]
            assert joined[1]["users"] == ["alice", "bobby"]
            assert _receive_actions(ws_a, 3) == ["connectedUsersList", "userJoined", "globalUserListUpdate"]

            move = {"id": 42, "action": "updatePosition", "positionX": 10, "positionY": 20, "boardId": 1}
            ws_a.send_json(move)
            assert ws_b.receive_json() == move

            # The next frame alice sees is bob's edit, not her own move coming back
            ws_b.send_json({"id": 42, "action": "updateTitle", "title": "Hi", "boardId": 1})
            assert ws_a.receive_json()["action"] == "updateTitle"

        left = [ws_a.receive_json() for _ in range(3)]
        assert [m["action"] for m in left] == ["userLeft", "connectedUsersList", "globalUserListUpdate"]
        assert left[0]["message"] == "bobby left the board"
        assert left[2]["users"] == ["alice"]
