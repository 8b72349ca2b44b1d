"""In-memory stand-ins for the REST client and the push channel."""

from stickyboard import auth
from stickyboard.client.session import CredentialStore
from stickyboard.exceptions import ChannelUnreachable, Forbidden
from stickyboard.realtime import protocol


def note_data(note_id, board_id=1, x=0, y=0, name="note", text="", width=250, height=110):
    return {
        "id": note_id, "boardId": board_id, "userId": 1, "noteName": name, "noteText": text,
        "noteColor": "#FFFFFF", "positionX": x, "positionY": y, "width": width, "height": height,
        "updatedAt": "2026-01-01T00:00:00", "user": {"username": "alice"},
    }


def board_data(board_id, user_id=1, private=False, notes=()):
    return {
        "id": board_id, "name": f"Board {board_id}", "tag": "", "isPrivate": private,
        "userId": user_id, "user": {"id": user_id, "username": "alice"}, "stickyNotes": list(notes),
    }


class FakeApi:
    """Records every call in ``log``; ``failures`` maps a method name to the error it raises."""

    def __init__(self, user_id=1, username="alice", log=None):
        self.credentials = CredentialStore()
        self.credentials.set_user_pair(
            auth.issue_user_access(user_id, username), auth.issue_user_refresh(user_id, username), username
        )
        self.log = log if log is not None else []
        self.failures = {}
        self.valid = True
        self.boards = {}
        self.notes = {}
        self.passwords = {}
        self._next_id = 100

    def _enter(self, name, *args):
        self.log.append((name,) + args)
        error = self.failures.get(name)
        if error is not None:
            raise error

    def add_board(self, board):
        self.boards[board["id"]] = board
        self.notes.setdefault(board["id"], list(board["stickyNotes"]))

    async def validate_token(self):
        self._enter("validate_token")
        return self.valid

    async def list_boards(self):
        self._enter("list_boards")
        return {"boards": list(self.boards.values()), "loggedInUser": {"userId": 1, "username": "alice"}}

    async def list_notes(self, board_id):
        self._enter("list_notes", board_id)
        return list(self.notes.get(board_id, []))

    async def get_board_details(self, board_id, is_private, is_board_creator, use_board_token=False):
        self._enter("get_board_details", board_id, use_board_token)
        if use_board_token and self.credentials.board_access(board_id) == "stale":
            raise Forbidden("Token is for another board.")
        board = dict(self.boards[board_id], stickyNotes=self.notes.get(board_id, []))
        return {"message": "", "boardDetails": board, "loggedInUser": {"userId": 1, "username": "alice"}}

    async def verify_board_password(self, board_id, password):
        self._enter("verify_board_password", board_id, password)
        if self.passwords.get(board_id) != password:
            return {"success": False, "boardToken": None, "boardRefreshToken": None}
        return {"success": True, "boardToken": f"access-{board_id}", "boardRefreshToken": f"refresh-{board_id}"}

    async def update_position(self, note_id, x, y):
        self._enter("update_position", note_id, x, y)
        return {}

    async def update_dimensions(self, note_id, width, height):
        self._enter("update_dimensions", note_id, width, height)
        return {}

    async def update_content(self, note_id, name, text):
        self._enter("update_content", note_id, name, text)
        return {"updatedAt": "2026-02-02T00:00:00"}

    async def create_note(self, name, color, board_id):
        self._enter("create_note", name, color, board_id)
        self._next_id += 1
        note = note_data(self._next_id, board_id, name=name)
        self.notes.setdefault(board_id, []).append(note)
        return {"message": "", "stickyNote": note}

    async def delete_note(self, note_id):
        self._enter("delete_note", note_id)
        return {"success": True}

    async def create_board(self, name, tag="", is_private=False, password=None):
        self._enter("create_board", name, is_private)
        self._next_id += 1
        board = dict(board_data(self._next_id, private=is_private), name=name)
        self.add_board(board)
        if is_private:
            return {"board": board, "boardToken": "access-new", "boardRefreshToken": "refresh-new"}
        return {"board": board, "boardToken": None, "boardRefreshToken": None}

    async def delete_board(self, board_id):
        self._enter("delete_board", board_id)
        self.boards.pop(board_id, None)
        return {"success": True}


class FakeChannel:
    def __init__(self, reachable=True, log=None):
        self.reachable = reachable
        self.usable = False
        self.sent = []
        self.log = log if log is not None else []
        self.handler = None

    async def open(self, on_message):
        if not self.reachable:
            raise ChannelUnreachable("connection refused")
        self.handler = on_message
        self.usable = True

    def send(self, id, action, **payload):
        message = protocol.build(id, protocol.Action(action), **payload)
        self.sent.append(message)
        self.log.append(("send", message["action"]))


class FakeRefresher:
    def __init__(self):
        self.scheduled = []
        self.cancelled = False

    def schedule_user(self):
        self.scheduled.append("user")

    def schedule_board(self, board_id):
        self.scheduled.append(("board", board_id))

    def cancel_all(self):
        self.cancelled = True
