import logging
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from stickyboard.exceptions import ValidationFailed, NotFound, Forbidden
from stickyboard.models.board import Board
from stickyboard.models.note import StickyNote
from stickyboard.security import hash_password, verify_password

logger = logging.getLogger(__name__)

NAME_MAX = 100
TAG_MAX = 50
# bcrypt only looks at the first 72 bytes
BOARD_PASSWORD_MAX_BYTES = 72


def _with_details():
    return (
        selectinload(Board.creator),
        selectinload(Board.notes).selectinload(StickyNote.creator),
    )


class BoardService:
    async def create(
        self,
        db: AsyncSession,
        user_id: int,
        name: str,
        tag: Optional[str] = "",
        is_private: bool = False,
        password: Optional[str] = None,
    ) -> Board:
        name = (name or "").strip()
        if not name:
            raise ValidationFailed("Dashboard must have a name.")
        if len(name) > NAME_MAX:
            raise ValidationFailed(f"Dashboard name can't be more than {NAME_MAX} characters.")
        tag = (tag or "").strip()
        if len(tag) > TAG_MAX:
            raise ValidationFailed(f"Tag can't be more than {TAG_MAX} characters.")

        password_hash = None
        if is_private:
            if not password or not password.strip():
                raise ValidationFailed("Please provide a password for the board!")
            if len(password.encode("utf-8")) > BOARD_PASSWORD_MAX_BYTES:
                raise ValidationFailed("Board password is too long.")
            password_hash = await run_in_threadpool(hash_password, password)

        board = Board(
            name=name,
            tag=tag,
            is_private=bool(is_private),
            password_hash=password_hash,
            user_id=user_id,
        )
        db.add(board)
        await db.flush()
        logger.info("User %s created %s board %s", user_id, "private" if is_private else "public", board.id)
        return await self.get_with_notes(db, board.id)

    async def list_all(self, db: AsyncSession) -> list[Board]:
        """Every board, visible to every logged-in user, with creator and notes."""
        result = await db.execute(select(Board).options(*_with_details()).order_by(Board.id))
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, board_id: int) -> Optional[Board]:
        return await db.get(Board, board_id)

    async def get_with_notes(self, db: AsyncSession, board_id: int) -> Optional[Board]:
        result = await db.execute(
            select(Board)
            .where(Board.id == board_id)
            .options(*_with_details())
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def ids_created_by(self, db: AsyncSession, user_id: int) -> list[int]:
        result = await db.execute(select(Board.id).where(Board.user_id == user_id).order_by(Board.id))
        return list(result.scalars().all())

    async def check_password(self, board: Board, password: str) -> bool:
        if not board.is_private:
            return False
        return await run_in_threadpool(verify_password, password, board.password_hash)

    async def delete(self, db: AsyncSession, board_id: int, user_id: int) -> None:
        board = await db.get(Board, board_id)
        if not board:
            raise NotFound("Board not found")
        if board.user_id != user_id:
            raise Forbidden("Only the creator can delete this board.")

        # Notes go first so no row can be left pointing at a missing board,
        # whether or not the backend enforces ON DELETE CASCADE
        await db.execute(delete(StickyNote).where(StickyNote.board_id == board_id))
        await db.delete(board)
        await db.flush()
        logger.info("User %s deleted board %s and its notes", user_id, board_id)


board_service = BoardService()
