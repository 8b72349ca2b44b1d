"""
Client half of board access control.

  REQUESTED -> creator?            PASS
            -> public?             PASS
            -> cached board token? PASS
            -> CHALLENGE (ask for the password)
                 correct   -> cache a board token pair once, PASS
                 incorrect -> DENY, ask again until the prompt is cancelled
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional
from stickyboard.exceptions import CredentialExpired, Forbidden

logger = logging.getLogger(__name__)

# prompt(board, error_message) -> password, or None when the user cancels
PasswordPrompt = Callable[[dict, Optional[str]], Awaitable[Optional[str]]]


class AccessState(str, enum.Enum):
    REQUESTED = "requested"
    PASS = "pass"
    CHALLENGE = "challenge"
    DENY = "deny"


@dataclass
class AccessDecision:
    state: AccessState
    details: Optional[dict] = None
    reason: Optional[str] = None
    history: list = field(default_factory=list)

    @property
    def granted(self) -> bool:
        return self.state == AccessState.PASS


class BoardAccessController:
    def __init__(self, api, credentials, prompt: PasswordPrompt, refresher=None):
        self.api = api
        self.credentials = credentials
        self.prompt = prompt
        self.refresher = refresher

    def is_creator(self, board: dict) -> bool:
        return board.get("userId") == self.credentials.user_id

    async def open(self, board: dict) -> AccessDecision:
        board_id = board["id"]
        is_private = bool(board.get("isPrivate"))
        creator = self.is_creator(board)
        history = [AccessState.REQUESTED]

        if creator or not is_private:
            details = await self.api.get_board_details(board_id, is_private, creator)
            return AccessDecision(AccessState.PASS, details, history=history + [AccessState.PASS])

        if self.credentials.has_board(board_id):
            try:
                details = await self.api.get_board_details(board_id, True, False, use_board_token=True)
                return AccessDecision(AccessState.PASS, details, history=history + [AccessState.PASS])
            except (Forbidden, CredentialExpired) as e:
                logger.info("Cached credential for board %s no longer accepted: %s", board_id, e.reason)
                self.credentials.drop_board(board_id)

        error = None
        while True:
            history.append(AccessState.CHALLENGE)
            password = await self.prompt(board, error)
            if password is None:
                return AccessDecision(AccessState.DENY, reason=error or "Cancelled.", history=history)
            if not password.strip():
                error = "Please enter a password."
                continue

            result = await self.api.verify_board_password(board_id, password)
            if not result.get("success"):
                error = "Incorrect password."
                history.append(AccessState.DENY)
                continue

            self.credentials.set_board_pair(board_id, result["boardToken"], result["boardRefreshToken"])
            if self.refresher is not None:
                self.refresher.schedule_board(board_id)
            details = await self.api.get_board_details(board_id, True, False, use_board_token=True)
            return AccessDecision(AccessState.PASS, details, history=history + [AccessState.PASS])
