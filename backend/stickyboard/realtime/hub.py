"""
Room registry and fan-out for the push channel.

``SyncHub`` is the single owner of the global roster and the board rooms.
None of its methods await, so every registry mutation runs to completion
on the event loop without interleaving and needs no lock. Outbound frames
go through each connection's own FIFO queue, which keeps per-room arrival
order and makes ``send`` fire-and-forget.

The channel is at-most-once: nothing here retries, buffers for absent
members, or replays. Every mutating action also has a durable REST write,
so a lost frame is recovered by the next reload.
"""

import asyncio
import itertools
import logging
from typing import Any, Optional
from stickyboard.realtime import protocol
from stickyboard.realtime.protocol import Action, ROOM_ACTIONS, GLOBAL_ACTIONS, SERVER_ACTIONS

logger = logging.getLogger(__name__)

_connection_ids = itertools.count(1)


class Connection:
    """One open websocket plus its outbound queue."""

    def __init__(self, socket, user_id: int, username: str):
        self.id = next(_connection_ids)
        self.socket = socket
        self.user_id = user_id
        self.username = username
        self.closed = False
        self._outbox: asyncio.Queue = asyncio.Queue()

    def __repr__(self):
        return f"<Connection {self.id} {self.username}>"

    def send(self, frame: str) -> None:
        """Queue a frame. Never blocks and never raises."""
        if self.closed:
            return
        self._outbox.put_nowait(frame)

    async def run_writer(self) -> None:
        while True:
            frame = await self._outbox.get()
            if frame is None:
                return
            try:
                await self.socket.send_text(frame)
            except Exception as e:
                # Fire-and-forget: a dead peer loses its frames, nothing else happens
                logger.debug("Dropping frames for %r: %s", self, e)
                self.closed = True
                return

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._outbox.put_nowait(None)


def room_key(value: Any) -> Optional[Any]:
    """Board ids arrive as ints or numeric strings; rooms are keyed by int."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return str(value)


class SyncHub:
    def __init__(self):
        self._roster: set = set()
        self._rooms: dict[Any, set] = {}
        self._room_of: dict[Any, Any] = {}

    # -- queries ------------------------------------------------------------

    @property
    def connections(self) -> set:
        return set(self._roster)

    def room_of(self, conn) -> Optional[Any]:
        return self._room_of.get(conn)

    def members(self, board_id) -> set:
        return set(self._rooms.get(room_key(board_id), ()))

    def room_usernames(self, board_id) -> list[str]:
        return sorted({c.username for c in self._rooms.get(room_key(board_id), ())})

    def online_usernames(self) -> list[str]:
        return sorted({c.username for c in self._roster})

    def snapshot(self) -> dict:
        return {
            "connections": len(self._roster),
            "users": self.online_usernames(),
            "rooms": {str(board_id): len(members) for board_id, members in self._rooms.items()},
        }

    # -- lifecycle ----------------------------------------------------------

    def connect(self, conn) -> None:
        self._roster.add(conn)
        logger.info("%r connected, %d open connection(s)", conn, len(self._roster))
        self._push_global_user_list()

    def disconnect(self, conn) -> None:
        if conn not in self._roster:
            return
        self._leave_room(conn)
        self._roster.discard(conn)
        logger.info("%r disconnected, %d open connection(s)", conn, len(self._roster))
        self._push_global_user_list()

    def join(self, conn, board_id) -> None:
        if conn not in self._roster:
            logger.warning("%r tried to join board %s without being connected", conn, board_id)
            return
        key = room_key(board_id)
        if key is None:
            logger.warning("%r sent connectBoard without a board id", conn)
            return

        if self._room_of.get(conn) == key:
            self._to_room(key, protocol.build(key, Action.CONNECTED_USERS_LIST, users=self.room_usernames(key)))
            return

        self._leave_room(conn)
        self._rooms.setdefault(key, set()).add(conn)
        self._room_of[conn] = key
        users = self.room_usernames(key)
        logger.info("%r joined board %s, members: %s", conn, key, users)

        self._to_room(key, protocol.build(key, Action.CONNECTED_USERS_LIST, users=users))
        self._to_room(key, protocol.build(
            key, Action.USER_JOINED, users=users, message=f"{conn.username} joined the board",
        ))
        self._push_global_user_list()

    def _leave_room(self, conn) -> None:
        """Room-scoped leave notices only; callers push the global list."""
        key = self._room_of.pop(conn, None)
        if key is None:
            return
        members = self._rooms.get(key)
        if members is not None:
            members.discard(conn)
            if not members:
                del self._rooms[key]
                logger.info("Board %s room is empty, removed", key)
                return
        users = self.room_usernames(key)
        self._to_room(key, protocol.build(
            key, Action.USER_LEFT, users=users, message=f"{conn.username} left the board",
        ))
        self._to_room(key, protocol.build(key, Action.CONNECTED_USERS_LIST, users=users))

    # -- inbound ------------------------------------------------------------

    def dispatch(self, conn, raw: str) -> None:
        """Route one inbound frame. Bad frames are logged and dropped."""
        try:
            message = protocol.decode(raw)
        except protocol.MessageError as e:
            logger.warning("Dropping frame from %r: %s", conn, e)
            return

        action = Action(message["action"])
        if action == Action.CONNECT_BOARD:
            self.join(conn, message.get("id"))
        elif action in SERVER_ACTIONS:
            logger.warning("Dropping server-only action %s from %r", action.value, conn)
        elif action in GLOBAL_ACTIONS:
            self._fan_out(self._roster, conn, message)
        elif action in ROOM_ACTIONS:
            key = self._room_of.get(conn)
            if key is None:
                logger.warning("Dropping %s from %r: not in a board room", action.value, conn)
                return
            self._fan_out(self._rooms.get(key, ()), conn, message)

    # -- outbound -----------------------------------------------------------

    def _fan_out(self, targets, sender, message: dict) -> None:
        # Senders already applied the change locally, so never echo back
        frame = protocol.encode(message)
        for conn in list(targets):
            if conn is not sender:
                conn.send(frame)

    def _to_room(self, key, message: dict) -> None:
        frame = protocol.encode(message)
        for conn in list(self._rooms.get(key, ())):
            conn.send(frame)

    def _push_global_user_list(self) -> None:
        frame = protocol.encode(
            protocol.build(None, Action.GLOBAL_USER_LIST_UPDATE, users=self.online_usernames())
        )
        for conn in list(self._roster):
            conn.send(frame)


hub = SyncHub()
