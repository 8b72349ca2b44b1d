"""
Push-channel message model.

Every message is a JSON object ``{"id": ..., "action": ..., **payload}``. ``id``
names the affected note or board (or is null for global actions). The only
structural check applied by the server is that ``action`` is one of the names
below.
"""

import enum
import json
from typing import Any, Optional


class Action(str, enum.Enum):
    CONNECT_BOARD = "connectBoard"
    CREATE_BOARD = "createBoard"
    DELETE_BOARD = "deleteBoard"
    CREATE_NOTE = "createNote"
    DELETE_NOTE = "deleteNote"
    UPDATE_POSITION = "updatePosition"
    UPDATE_CONTENT = "updateContent"
    UPDATE_TITLE = "updateTitle"
    EDIT_DIMENSIONS = "editDimensions"
    CONNECTED_USERS_LIST = "connectedUsersList"
    USER_JOINED = "userJoined"
    USER_LEFT = "userLeft"
    GLOBAL_USER_LIST_UPDATE = "globalUserListUpdate"


# Fanned out to the other members of the sender's room
ROOM_ACTIONS = frozenset({
    Action.CREATE_NOTE,
    Action.DELETE_NOTE,
    Action.UPDATE_POSITION,
    Action.UPDATE_CONTENT,
    Action.UPDATE_TITLE,
    Action.EDIT_DIMENSIONS,
})

# Fanned out to every other open connection, room or not
GLOBAL_ACTIONS = frozenset({
    Action.CREATE_BOARD,
    Action.DELETE_BOARD,
})

# Presence messages: only the server emits these
SERVER_ACTIONS = frozenset({
    Action.CONNECTED_USERS_LIST,
    Action.USER_JOINED,
    Action.USER_LEFT,
    Action.GLOBAL_USER_LIST_UPDATE,
})


class MessageError(ValueError):
    pass


def parse_action(value: Any) -> Optional[Action]:
    try:
        return Action(value)
    except ValueError:
        return None


def decode(raw: str) -> dict:
    """Parse a raw frame into a message dict. Raises MessageError."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MessageError(f"not JSON: {e}") from e
    if not isinstance(message, dict):
        raise MessageError("message is not an object")
    if parse_action(message.get("action")) is None:
        raise MessageError(f"unknown action {message.get('action')!r}")
    return message


def encode(message: dict) -> str:
    return json.dumps(message, separators=(",", ":"))


def build(id: Any, action: Action, **payload) -> dict:
    message = {"id": id, "action": action.value}
    message.update(payload)
    return message
