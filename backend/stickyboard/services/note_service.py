import logging
import re
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from stickyboard.exceptions import NotFound, ValidationFailed
from stickyboard.models.board import Board
from stickyboard.models.note import StickyNote

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")

NAME_MAX = 100
COLOR_MAX = 20


def parse_length(value) -> int:
    """Accept 300, 300.7 or a CSS length like "300px"."""
    if isinstance(value, bool):
        raise ValidationFailed(f"Not a length: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        raise ValidationFailed(f"Not a length: {value!r}")
    return int(float(match.group(1)))


def _check_name(name: str) -> None:
    if len(name) > NAME_MAX:
        raise ValidationFailed(f"Note name can't be more than {NAME_MAX} characters.")


class NoteService:
    async def create(self, db: AsyncSession, board_id: int, user_id: int, name: str, color: str) -> StickyNote:
        name = (name or "").strip()
        if not name:
            raise ValidationFailed("Note must have a name.")
        _check_name(name)
        color = color or "#FFFFFF"
        if len(color) > COLOR_MAX:
            raise ValidationFailed(f"Note color can't be more than {COLOR_MAX} characters.")
        board = await db.get(Board, board_id)
        if not board:
            raise NotFound(f"Board {board_id} not found")

        note = StickyNote(
            board_id=board_id,
            user_id=user_id,
            name=name,
            color=color,
            position_x=0,
            position_y=0,
            updated_at=datetime.now(timezone.utc),
        )
        db.add(note)
        await db.flush()
        logger.info("User %s created note %s on board %s", user_id, note.id, board_id)
        return await self.get(db, note.id)

    async def list_for_board(self, db: AsyncSession, board_id: int) -> list[StickyNote]:
        result = await db.execute(
            select(StickyNote)
            .where(StickyNote.board_id == board_id)
            .options(selectinload(StickyNote.creator))
            .order_by(StickyNote.id)
        )
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, note_id: int) -> Optional[StickyNote]:
        result = await db.execute(
            select(StickyNote)
            .where(StickyNote.id == note_id)
            .options(selectinload(StickyNote.creator))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _require(self, db: AsyncSession, note_id: int) -> StickyNote:
        note = await self.get(db, note_id)
        if not note:
            raise NotFound("Note not found")
        return note

    # Concurrent writers are last-write-wins: no version column, no rejection.

    async def update_position(self, db: AsyncSession, note_id: int, x: float, y: float) -> StickyNote:
        note = await self._require(db, note_id)
        note.position_x = float(x)
        note.position_y = float(y)
        await db.flush()
        return note

    async def update_content(self, db: AsyncSession, note_id: int, name: str, text: str) -> StickyNote:
        name = (name or "").strip() or "Title"
        _check_name(name)
        note = await self._require(db, note_id)
        note.name = name
        note.text = text or ""
        note.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return note

    async def update_dimensions(self, db: AsyncSession, note_id: int, width, height) -> StickyNote:
        note = await self._require(db, note_id)
        note.width = parse_length(width)
        note.height = parse_length(height)
        await db.flush()
        return note

    async def delete(self, db: AsyncSession, note_id: int) -> StickyNote:
        note = await db.get(StickyNote, note_id)
        if not note:
            raise NotFound("Note not found")
        await db.delete(note)
        await db.flush()
        logger.info("Deleted note %s from board %s", note_id, note.board_id)
        return note


note_service = NoteService()
