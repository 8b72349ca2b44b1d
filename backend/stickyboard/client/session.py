"""
Client-side credential cache and proactive refresh.

``CredentialStore`` plays the role of the browser's local storage: the user
token pair plus one cached pair per private board this user agent unlocked.
``TokenRefresher`` renews each access token five minutes before the expiry
embedded in it, independent of request activity.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional
from jose import jwt, JWTError
from stickyboard.exceptions import StickyBoardError

logger = logging.getLogger(__name__)

REFRESH_MARGIN_SECONDS = 5 * 60


def token_expiry(token: str) -> Optional[int]:
    """Read ``exp`` from a JWT without verifying it (the server does that)."""
    try:
        return int(jwt.get_unverified_claims(token)["exp"])
    except (JWTError, KeyError, TypeError, ValueError):
        return None


def token_claims(token: str) -> dict:
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return {}


@dataclass
class CredentialStore:
    username: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    board_tokens: dict = field(default_factory=dict)

    @property
    def user_id(self) -> Optional[int]:
        if not self.access_token:
            return None
        sub = token_claims(self.access_token).get("sub")
        return int(sub) if sub is not None else None

    def set_user_pair(self, access_token: str, refresh_token: str, username: str) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.username = username

    def set_board_pair(self, board_id: int, access_token: str, refresh_token: str) -> None:
        self.board_tokens[int(board_id)] = {"access": access_token, "refresh": refresh_token}

    def board_access(self, board_id: int) -> Optional[str]:
        pair = self.board_tokens.get(int(board_id))
        return pair["access"] if pair else None

    def board_refresh(self, board_id: int) -> Optional[str]:
        pair = self.board_tokens.get(int(board_id))
        return pair["refresh"] if pair else None

    def update_board_access(self, board_id: int, access_token: str) -> None:
        self.board_tokens[int(board_id)]["access"] = access_token

    def drop_board(self, board_id: int) -> None:
        self.board_tokens.pop(int(board_id), None)

    def has_board(self, board_id: int) -> bool:
        return int(board_id) in self.board_tokens

    def clear(self) -> None:
        self.username = self.access_token = self.refresh_token = None
        self.board_tokens.clear()


class TokenRefresher:
    """Schedules one refresh task per credential (the user's, and each board's)."""

    def __init__(
        self,
        api,
        credentials: CredentialStore,
        on_expired: Optional[Callable[[], None]] = None,
        margin: float = REFRESH_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.api = api
        self.credentials = credentials
        self.on_expired = on_expired
        self.margin = margin
        self.clock = clock
        self._tasks: dict = {}

    def delay_for(self, token: str) -> float:
        expiry = token_expiry(token)
        if expiry is None:
            return 0.0
        return max(0.0, expiry - self.margin - self.clock())

    def schedule_user(self) -> Optional[asyncio.Task]:
        if not self.credentials.access_token:
            return None
        return self._schedule("user", self.credentials.access_token, self._refresh_user)

    def schedule_board(self, board_id: int) -> Optional[asyncio.Task]:
        token = self.credentials.board_access(board_id)
        if not token:
            return None
        return self._schedule(("board", int(board_id)), token, lambda: self._refresh_board(int(board_id)))

    def _schedule(self, key, token: str, refresh) -> asyncio.Task:
        previous = self._tasks.pop(key, None)
        if previous and previous is not asyncio.current_task():
            previous.cancel()
        delay = self.delay_for(token)
        logger.debug("Refreshing %s in %.0fs", key, delay)
        task = asyncio.create_task(self._run(key, delay, refresh))
        self._tasks[key] = task
        return task

    async def _run(self, key, delay: float, refresh) -> None:
        await asyncio.sleep(delay)
        try:
            await refresh()
        except StickyBoardError as e:
            logger.warning("Refreshing %s failed: %s", key, e.reason)
            self._tasks.pop(key, None)
            if key == "user":
                self.credentials.clear()
                if self.on_expired:
                    self.on_expired()
            else:
                # The board will simply be challenged again
                self.credentials.drop_board(key[1])

    async def _refresh_user(self) -> None:
        await self.api.refresh_token()
        self.schedule_user()

    async def _refresh_board(self, board_id: int) -> None:
        await self.api.refresh_board_token(board_id)
        self.schedule_board(board_id)

    def pending(self) -> list:
        return [key for key, task in self._tasks.items() if not task.done()]

    def cancel_all(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
