"""
Client state reconciler: one per browser tab.

Every local mutation runs the same three steps, in order:

  1. apply it to the local view,
  2. write it through the REST API,
  3. only if that write succeeded and the push channel is usable,
     broadcast it to the other members of the room.

A failed write rolls the local change back where the old value is known,
records one user-visible message and broadcasts nothing. If the channel
could not be opened at start-up the session is degraded for its lifetime:
step 3 is skipped and peers only see changes on their next reload.

Incoming pushes patch rendered notes in place. Structural pushes (a note or
board this tab never saw, or the last note/board disappearing) re-fetch the
list from the API instead.
"""

import logging
from typing import Optional
from stickyboard.client.access import BoardAccessController
from stickyboard.client.view import BoardView, NoteView, as_id, clamp_position, clamp_size
from stickyboard.exceptions import (
    ChannelUnreachable,
    CredentialExpired,
    Forbidden,
    NotFound,
    StickyBoardError,
    ValidationFailed,
)
from stickyboard.realtime.protocol import Action

logger = logging.getLogger(__name__)

MESSAGES = {
    "fetchBoards": "Failed to fetch boards.",
    "createBoard": "Something went wrong fetching the data.",
    "unauthorizedDeletion": "Only the creator can delete this board!",
    "deleteBoard": "Failed to delete board.",
    "loadDashboard": "Failed to fetch board details.",
    "fetchNotes": "Failed to fetch sticky notes.",
    "createNote": "Failed to create note.",
    "updateNote": "Failed to update sticky note data.",
    "deleteNote": "Failed to delete note.",
    "sessionExpired": "Session expired. Please log in again.",
}

DEGRADED_BANNER = "WebSocket connection failed. You may still use the application without the connection."

POSITION, DIMENSIONS, TITLE, CONTENT = "position", "dimensions", "title", "content"


class Reconciler:
    def __init__(self, api, channel=None, view: Optional[BoardView] = None,
                 refresher=None, prompt=None):
        self.api = api
        self.channel = channel
        self.view = view or BoardView()
        self.refresher = refresher
        self.access = BoardAccessController(api, api.credentials, prompt or _no_prompt, refresher)
        self.degraded = False
        self.session_expired = False
        self.banner: Optional[str] = None
        self.last_error: Optional[str] = None
        self._local_edits: dict = {}

    # -- session ------------------------------------------------------------

    @property
    def live(self) -> bool:
        return not self.degraded and self.channel is not None and self.channel.usable

    async def start(self) -> bool:
        """Validate the stored token, try the channel once, load the board list."""
        try:
            valid = await self.api.validate_token()
        except StickyBoardError:
            valid = False
        if not valid:
            self._expire()
            return False

        if self.channel is None:
            self._go_degraded("no push channel configured")
        else:
            try:
                await self.channel.open(self.handle_incoming)
            except ChannelUnreachable as e:
                self._go_degraded(e.reason)

        if self.refresher is not None:
            self.refresher.schedule_user()
        await self.refresh_boards()
        return True

    def _go_degraded(self, reason: str) -> None:
        # Permanent for this session; a reload is the only way back
        logger.warning("Push channel unavailable (%s), running degraded", reason)
        self.degraded = True
        self.banner = DEGRADED_BANNER

    def _expire(self) -> None:
        self.session_expired = True
        self.last_error = MESSAGES["sessionExpired"]
        if self.refresher is not None:
            self.refresher.cancel_all()
        self.api.credentials.clear()

    def _fail(self, context: str, error: StickyBoardError) -> None:
        if isinstance(error, CredentialExpired):
            self._expire()
            return
        if isinstance(error, ValidationFailed):
            self.last_error = error.reason
        else:
            self.last_error = MESSAGES.get(context, error.reason)
        logger.warning("%s failed: %s", context, error.reason)

    def _broadcast(self, id, action: Action, **payload) -> None:
        if self.live:
            self.channel.send(id, action.value, **payload)

    # -- local edit tracking ------------------------------------------------

    def begin_local_edit(self, note_id: int, field: str) -> None:
        self._local_edits.setdefault(note_id, set()).add(field)

    def end_local_edit(self, note_id: int, field: str) -> None:
        fields = self._local_edits.get(note_id)
        if fields:
            fields.discard(field)
            if not fields:
                del self._local_edits[note_id]

    def is_editing(self, note_id: int, field: str) -> bool:
        return field in self._local_edits.get(note_id, ())

    # -- loading ------------------------------------------------------------

    async def refresh_boards(self) -> None:
        try:
            data = await self.api.list_boards()
        except StickyBoardError as e:
            self._fail("fetchBoards", e)
            return
        self.view.set_boards(data["boards"])
        self.view.logged_in_user = data.get("loggedInUser")

    async def refresh_notes(self) -> None:
        board_id = self.view.current_board_id
        if board_id is None:
            return
        try:
            notes = await self.api.list_notes(board_id)
        except StickyBoardError as e:
            self._fail("fetchNotes", e)
            return
        self.view.set_notes(notes)

    async def open_board(self, board_id: int) -> bool:
        board = self.view.boards.get(board_id)
        if board is None:
            self.last_error = MESSAGES["loadDashboard"]
            return False
        try:
            decision = await self.access.open(board)
        except StickyBoardError as e:
            self._fail("loadDashboard", e)
            return False
        if not decision.granted:
            self.last_error = decision.reason
            return False

        self.view.close_board()
        self.view.current_board_id = board_id
        self._broadcast(board_id, Action.CONNECT_BOARD)
        details = (decision.details or {}).get("boardDetails") or board
        if details.get("stickyNotes"):
            await self.refresh_notes()
        else:
            self.view.set_notes([])
        return True

    # -- local mutations ----------------------------------------------------

    async def move_note(self, note_id: int, x: float, y: float) -> bool:
        note = self.view.notes.get(note_id)
        if note is None:
            return False
        x, y = clamp_position(x, y, note.width, note.height,
                              self.view.container_width, self.view.container_height)
        previous = (note.x, note.y)
        note.x, note.y = x, y
        self.end_local_edit(note_id, POSITION)
        try:
            await self.api.update_position(note_id, x, y)
        except StickyBoardError as e:
            note.x, note.y = previous
            self._fail("updateNote", e)
            return False
        self._broadcast(note_id, Action.UPDATE_POSITION, positionX=x, positionY=y, boardId=note.board_id)
        return True

    async def resize_note(self, note_id: int, width: float, height: float) -> bool:
        note = self.view.notes.get(note_id)
        if note is None:
            return False
        width, height = clamp_size(width, height)
        previous = (note.width, note.height)
        note.width, note.height = width, height
        self.end_local_edit(note_id, DIMENSIONS)
        try:
            await self.api.update_dimensions(note_id, width, height)
        except StickyBoardError as e:
            note.width, note.height = previous
            self._fail("updateNote", e)
            return False
        self._broadcast(note_id, Action.EDIT_DIMENSIONS, width=width, height=height, boardId=note.board_id)
        return True

    async def edit_note(self, note_id: int, name: str, text: str) -> bool:
        note = self.view.notes.get(note_id)
        if note is None:
            return False
        name = name.strip() or "Title"
        previous = (note.name, note.text)
        note.name, note.text = name, text
        self.end_local_edit(note_id, TITLE)
        self.end_local_edit(note_id, CONTENT)
        try:
            saved = await self.api.update_content(note_id, name, text)
        except StickyBoardError as e:
            note.name, note.text = previous
            self._fail("updateNote", e)
            return False
        note.updated_at = saved.get("updatedAt", note.updated_at)
        self._broadcast(note_id, Action.UPDATE_TITLE, title=name, boardId=note.board_id)
        self._broadcast(note_id, Action.UPDATE_CONTENT, content=text, boardId=note.board_id)
        return True

    async def create_note(self, name: str, color: str = "#FFFFFF") -> Optional[NoteView]:
        board_id = self.view.current_board_id
        if not name or not name.strip():
            self.last_error = "Note must have a name."
            return None
        if board_id is None:
            self.last_error = MESSAGES["createNote"]
            return None
        try:
            data = await self.api.create_note(name.strip(), color, board_id)
        except StickyBoardError as e:
            self._fail("createNote", e)
            return None
        note = NoteView.from_api(data["stickyNote"])
        # The server assigns the id, so the note enters the view once it exists
        self.view.notes[note.id] = note
        self.view.empty = False
        self._broadcast(note.id, Action.CREATE_NOTE, name=note.name, color=note.color, boardId=board_id)
        return note

    async def delete_note(self, note_id: int) -> bool:
        note = self.view.notes.pop(note_id, None)
        if note is None:
            return False
        was_empty = self.view.empty
        self.view.empty = not self.view.notes
        try:
            await self.api.delete_note(note_id)
        except NotFound as e:
            # Someone else deleted it first; it stays gone
            self._fail("deleteNote", e)
            return False
        except StickyBoardError as e:
            self.view.notes[note_id] = note
            self.view.empty = was_empty
            self._fail("deleteNote", e)
            return False
        self._local_edits.pop(note_id, None)
        self._broadcast(note_id, Action.DELETE_NOTE, boardId=note.board_id)
        return True

    async def create_board(self, name: str, tag: str = "", is_private: bool = False,
                           password: Optional[str] = None) -> Optional[dict]:
        if not name or not name.strip():
            self.last_error = "Dashboard must have a name."
            return None
        if is_private and (not password or not password.strip()):
            self.last_error = "Please provide a password for the board!"
            return None
        try:
            data = await self.api.create_board(name, tag, is_private, password)
        except StickyBoardError as e:
            self._fail("createBoard", e)
            return None

        board = data["board"]
        self.view.boards[board["id"]] = board
        if is_private and data.get("boardToken"):
            self.api.credentials.set_board_pair(board["id"], data["boardToken"], data["boardRefreshToken"])
            if self.refresher is not None:
                self.refresher.schedule_board(board["id"])
        self._broadcast(None, Action.CREATE_BOARD)
        await self.refresh_boards()
        return board

    async def delete_board(self, board_id: int) -> bool:
        board = self.view.boards.pop(board_id, None)
        if board is None:
            return False
        try:
            await self.api.delete_board(board_id)
        except Forbidden as e:
            self.view.boards[board_id] = board
            self.last_error = MESSAGES["unauthorizedDeletion"]
            logger.info("Delete of board %s refused: %s", board_id, e.reason)
            return False
        except StickyBoardError as e:
            self.view.boards[board_id] = board
            self._fail("deleteBoard", e)
            return False
        if self.view.current_board_id == board_id:
            self.view.close_board()
        self.api.credentials.drop_board(board_id)
        self._broadcast(board_id, Action.DELETE_BOARD, boardId=board_id)
        return True

    # -- incoming pushes ----------------------------------------------------

    async def handle_incoming(self, message: dict) -> None:
        try:
            action = Action(message.get("action"))
        except ValueError:
            logger.error("Unknown action: %r", message.get("action"))
            return
        handler = self._handlers.get(action)
        if handler is None:
            logger.debug("Ignoring %s", action.value)
            return
        await handler(self, message)

    def _rendered_note(self, message: dict, field: str) -> Optional[NoteView]:
        note_id = as_id(message.get("id"))
        note = self.view.notes.get(note_id)
        if note is None:
            logger.debug("Note %s is not rendered here", message.get("id"))
            return None
        if self.is_editing(note_id, field):
            # The local edit wins; it is written through and broadcast when it ends
            return None
        return note

    async def _on_update_position(self, message: dict) -> None:
        note = self._rendered_note(message, POSITION)
        if note is not None:
            note.x = message.get("positionX", note.x)
            note.y = message.get("positionY", note.y)

    async def _on_edit_dimensions(self, message: dict) -> None:
        note = self._rendered_note(message, DIMENSIONS)
        if note is not None:
            note.width = message.get("width", note.width)
            note.height = message.get("height", note.height)

    async def _on_update_title(self, message: dict) -> None:
        note = self._rendered_note(message, TITLE)
        if note is not None:
            note.name = message.get("title", note.name)

    async def _on_update_content(self, message: dict) -> None:
        note = self._rendered_note(message, CONTENT)
        if note is not None:
            note.text = message.get("content", note.text)

    async def _on_create_note(self, message: dict) -> None:
        board_id = as_id(message.get("boardId"))
        if board_id is not None and board_id == self.view.current_board_id:
            await self.refresh_notes()

    async def _on_delete_note(self, message: dict) -> None:
        note_id = as_id(message.get("id"))
        if self.view.notes.pop(note_id, None) is None:
            return
        self._local_edits.pop(note_id, None)
        if not self.view.notes:
            await self.refresh_notes()

    async def _on_create_board(self, message: dict) -> None:
        await self.refresh_boards()

    async def _on_delete_board(self, message: dict) -> None:
        board_id = as_id(message.get("boardId", message.get("id")))
        self.view.boards.pop(board_id, None)
        if board_id is not None:
            self.api.credentials.drop_board(board_id)
            if board_id == self.view.current_board_id:
                self.view.close_board()
        if not self.view.boards:
            await self.refresh_boards()

    async def _on_room_users(self, message: dict) -> None:
        self.view.board_users = list(message.get("users") or [])

    async def _on_global_users(self, message: dict) -> None:
        self.view.global_users = list(message.get("users") or [])

    _handlers = {
        Action.UPDATE_POSITION: _on_update_position,
        Action.EDIT_DIMENSIONS: _on_edit_dimensions,
        Action.UPDATE_TITLE: _on_update_title,
        Action.UPDATE_CONTENT: _on_update_content,
        Action.CREATE_NOTE: _on_create_note,
        Action.DELETE_NOTE: _on_delete_note,
        Action.CREATE_BOARD: _on_create_board,
        Action.DELETE_BOARD: _on_delete_board,
        Action.CONNECTED_USERS_LIST: _on_room_users,
        Action.USER_JOINED: _on_room_users,
        Action.USER_LEFT: _on_room_users,
        Action.GLOBAL_USER_LIST_UPDATE: _on_global_users,
    }


async def _no_prompt(board: dict, error: Optional[str]) -> Optional[str]:
    return None
