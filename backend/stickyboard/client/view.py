"""Local view state of one browser tab, plus the drag/resize geometry rules."""

from dataclasses import dataclass, field
from typing import Any, Optional

MIN_NOTE_WIDTH, MAX_NOTE_WIDTH = 250, 415
MIN_NOTE_HEIGHT, MAX_NOTE_HEIGHT = 110, 265


def clamp_position(x: float, y: float, note_width: float, note_height: float,
                   container_width: float, container_height: float) -> tuple[float, float]:
    """Keep a dragged note inside its container (top-left origin)."""
    if x < 0:
        x = 0
    if x + note_width > container_width:
        x = container_width - note_width
    if y < 0:
        y = 0
    if y + note_height > container_height:
        y = container_height - note_height
    return x, y


def clamp_size(width: float, height: float) -> tuple[int, int]:
    width = max(MIN_NOTE_WIDTH, min(int(width), MAX_NOTE_WIDTH))
    height = max(MIN_NOTE_HEIGHT, min(int(height), MAX_NOTE_HEIGHT))
    return width, height


def as_id(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class NoteView:
    id: int
    board_id: int
    name: str
    text: str = ""
    color: str = "#FFFFFF"
    x: float = 0
    y: float = 0
    width: int = MIN_NOTE_WIDTH
    height: int = MIN_NOTE_HEIGHT
    updated_at: Optional[str] = None
    creator: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "NoteView":
        return cls(
            id=data["id"],
            board_id=data["boardId"],
            name=data.get("noteName", ""),
            text=data.get("noteText") or "",
            color=data.get("noteColor", "#FFFFFF"),
            x=data.get("positionX", 0),
            y=data.get("positionY", 0),
            width=data.get("width", MIN_NOTE_WIDTH),
            height=data.get("height", MIN_NOTE_HEIGHT),
            updated_at=data.get("updatedAt"),
            creator=(data.get("user") or {}).get("username", ""),
        )


@dataclass
class BoardView:
    container_width: float = 1200
    container_height: float = 800
    boards: dict = field(default_factory=dict)
    current_board_id: Optional[int] = None
    notes: dict = field(default_factory=dict)
    empty: bool = False
    board_users: list = field(default_factory=list)
    global_users: list = field(default_factory=list)
    logged_in_user: Optional[dict] = None

    def set_boards(self, boards: list) -> None:
        self.boards = {b["id"]: b for b in boards}

    def set_notes(self, notes: list) -> None:
        self.notes = {n["id"]: NoteView.from_api(n) for n in notes}
        self.empty = not self.notes

    def close_board(self) -> None:
        self.current_board_id = None
        self.notes = {}
        self.empty = False
        self.board_users = []
