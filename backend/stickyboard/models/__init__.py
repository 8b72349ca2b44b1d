from stickyboard.models.user import User
from stickyboard.models.board import Board
from stickyboard.models.note import StickyNote

__all__ = ["User", "Board", "StickyNote"]
