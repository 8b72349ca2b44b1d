import logging
import re
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from stickyboard.exceptions import ValidationFailed
from stickyboard.models.user import User
from stickyboard.security import hash_password, verify_password

logger = logging.getLogger(__name__)

USERNAME_MIN, USERNAME_MAX = 4, 20
PASSWORD_MIN, PASSWORD_MAX = 6, 20
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9]+$")
DUPLICATE_USERNAME = "That username already exists."


def validate_credentials(username: str, password: str) -> None:
    """Shape checks done before anything touches the database."""
    if not username or not password:
        raise ValidationFailed("Username and password are required")
    if not USERNAME_MIN <= len(username) <= USERNAME_MAX:
        raise ValidationFailed(f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters")
    if not USERNAME_PATTERN.match(username):
        raise ValidationFailed("Username can only contain numbers or letters")
    if not PASSWORD_MIN <= len(password) <= PASSWORD_MAX:
        raise ValidationFailed(f"Password must be between {PASSWORD_MIN} and {PASSWORD_MAX} characters")


class UserService:
    async def create(self, db: AsyncSession, username: str, password: str) -> User:
        validate_credentials(username, password)
        existing = await db.scalar(select(User).where(User.username == username))
        if existing:
            raise ValidationFailed(DUPLICATE_USERNAME)

        password_hash = await run_in_threadpool(hash_password, password)
        user = User(username=username, password_hash=password_hash)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same name
            await db.rollback()
            raise ValidationFailed(DUPLICATE_USERNAME)
        await db.refresh(user)
        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return user

    async def authenticate(self, db: AsyncSession, username: str, password: str) -> Optional[User]:
        if not username or not password:
            return None
        user = await db.scalar(select(User).where(User.username == username))
        if not user or not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.info("Failed login for %r", username)
            return None
        return user


user_service = UserService()
