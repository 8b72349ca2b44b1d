import json
import pytest
from stickyboard.realtime import protocol
from stickyboard.realtime.hub import SyncHub, room_key


class FakeConnection:
    def __init__(self, username):
        self.username = username
        self.frames = []

    def __repr__(self):
        return f"<Fake {self.username}>"

    def send(self, frame):
        self.frames.append(json.loads(frame))

    def actions(self):
        return [m["action"] for m in self.frames]

    def take(self):
        frames, self.frames = self.frames, []
        return frames


def _msg(id, action, **payload):
    return json.dumps(protocol.build(id, protocol.Action(action), **payload))


@pytest.fixture
def hub():
    return SyncHub()


def _join(hub, conn, board_id):
    hub.dispatch(conn, _msg(board_id, "connectBoard"))


def test_connect_pushes_global_user_list(hub):
    alice, bob = FakeConnection("alice"), FakeConnection("bob")
    hub.connect(alice)
    hub.connect(bob)
    assert alice.frames[-1] == {"id": None, "action": "globalUserListUpdate", "users": ["alice", "bob"]}
    assert bob.actions() == ["globalUserListUpdate"]


def test_join_announces_presence_to_the_room(hub):
    alice, bob = FakeConnection("alice"), FakeConnection("bob")
    hub.connect(alice)
    hub.connect(bob)
    _join(hub, alice, 1)
    alice.take(), bob.take()

    _join(hub, bob, "1")
    assert [m["action"] for m in alice.frames] == ["connectedUsersList", "userJoined", "globalUserListUpdate"]
    joined = alice.frames[1]
    assert joined["users"] == ["alice", "bob"]
    assert joined["message"] == "bob joined the board"
    assert bob.actions() == ["connectedUsersList", "userJoined", "globalUserListUpdate"]
    assert hub.room_usernames(1) == ["alice", "bob"]


def test_room_action_reaches_other_members_only(hub):
    alice, bob, carol = FakeConnection("alice"), FakeConnection("bob"), FakeConnection("carol")
    for conn in (alice, bob, carol):
        hub.connect(conn)
    _join(hub, alice, 1)
    _join(hub, bob, 1)
    _join(hub, carol, 2)
    for conn in (alice, bob, carol):
        conn.take()

    hub.dispatch(alice, _msg(10, "updatePosition", positionX=5, positionY=6, boardId=1))
    assert alice.frames == []
    assert bob.frames == [{"id": 10, "action": "updatePosition", "positionX": 5, "positionY": 6, "boardId": 1}]
    assert carol.frames == []


def test_room_action_without_a_room_is_dropped(hub):
    alice, bob = FakeConnection("alice"), FakeConnection("bob")
    hub.connect(alice)
    hub.connect(bob)
    _join(hub, bob, 1)
    bob.take()
    hub.dispatch(alice, _msg(3, "deleteNote", boardId=1))
    assert bob.frames == []


def test_global_actions_reach_every_other_connection(hub):
    alice, bob, carol = FakeConnection("alice"), FakeConnection("bob"), FakeConnection("carol")
    for conn in (alice, bob, carol):
        hub.connect(conn)
    _join(hub, bob, 7)
    for conn in (alice, bob, carol):
        conn.take()

    hub.dispatch(alice, _msg(None, "createBoard"))
    assert alice.frames == []
    assert bob.actions() == ["createBoard"]
    assert carol.actions() == ["createBoard"]


@pytest.mark.parametrize("raw", [
    "not json",
    "[1, 2]",
    json.dumps({"id": 1, "action": "dropTables"}),
    json.dumps({"id": 1, "action": "userJoined", "users": ["mallory"]}),
    json.dumps({"id": None, "action": "globalUserListUpdate", "users": []}),
])
def test_bad_or_server_only_frames_are_dropped(hub, raw):
    alice, bob = FakeConnection("alice"), FakeConnection("bob")
    hub.connect(alice)
    hub.connect(bob)
    _join(hub, alice, 1)
    _join(hub, bob, 1)
    alice.take(), bob.take()

    hub.dispatch(alice, raw)
    assert alice.frames == []
    assert bob.frames == []


def test_switching_rooms_leaves_the_old_one(hub):
    alice, bob = FakeConnection("alice"), FakeConnection("bob")
    hub.connect(alice)
    hub.connect(bob)
    _join(hub, alice, 1)
    _join(hub, bob, 1)
    alice.take(), bob.take()

    _join(hub, bob, 2)
    assert alice.actions() == ["userLeft", "connectedUsersList", "globalUserListUpdate"]
    assert alice.frames[0]["message"] == "bob left the board"
    assert alice.frames[0]["users"] == ["alice"]
    assert hub.room_of(bob) == 2
    assert hub.members(1) == {alice}


def test_rejoining_same_room_only_refreshes_list(hub):
    alice = FakeConnection("alice")
    hub.connect(alice)
    _join(hub, alice, 1)
    alice.take()
    _join(hub, alice, 1)
    assert alice.actions() == ["connectedUsersList"]


def test_disconnect_cleans_up(hub):
    alice, bob = FakeConnection("alice"), FakeConnection("bob")
    hub.connect(alice)
    hub.connect(bob)
    _join(hub, alice, 1)
    _join(hub, bob, 1)
    alice.take()

    hub.disconnect(bob)
    assert alice.actions() == ["userLeft", "connectedUsersList", "globalUserListUpdate"]
    assert alice.frames[-1]["users"] == ["alice"]
    assert hub.connections == {alice}

    hub.disconnect(alice)
    assert hub.snapshot() == {"connections": 0, "users": [], "rooms": {}}
    # A second disconnect is harmless
    hub.disconnect(alice)


def test_room_keys_normalise_ids():
    assert room_key("12") == 12
    assert room_key(12) == 12
    assert room_key("abc") == "abc"
    assert room_key(None) is None
    assert room_key(True) is None


def test_connection_outside_rooms_only_sees_global_actions(hub):
    alice, bob, lurker = FakeConnection("alice"), FakeConnection("bob"), FakeConnection("lurker")
    for conn in (alice, bob, lurker):
        hub.connect(conn)
    _join(hub, alice, 1)
    _join(hub, bob, 1)
    for name in ("createNote", "updatePosition", "updateContent", "updateTitle", "editDimensions", "deleteNote"):
        hub.dispatch(alice, _msg(5, name, boardId=1))
    hub.dispatch(alice, _msg(1, "deleteBoard", boardId=1))

    assert set(lurker.actions()) == {"globalUserListUpdate", "deleteBoard"}
