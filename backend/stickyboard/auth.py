"""
Auth module: JWT issuance/verification and the FastAPI dependencies built on it.

Four independent token scopes, each signed with its own secret and tagged with a
``scope`` claim so a token minted for one scope never verifies as another:

  user_access    1h   {sub, username, boards}
  user_refresh   7d   {sub, username}
  board_access   1h   {sub, username, board_id}
  board_refresh  7d   {sub, username, board_id}

``verify_token`` never raises; it returns a tagged ``VerifyResult`` that the
dependencies below translate into HTTP status codes. Expired access is
reported with the reserved status 222 so clients can refresh silently instead
of forcing a new login.
"""

import enum
import time
from dataclasses import dataclass, field
from typing import Optional
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import Request, HTTPException
from stickyboard.config import get_settings
from stickyboard.exceptions import CredentialExpired, CredentialInvalid

ALGORITHM = "HS256"

# Reserved status for "access credential expired, refresh required"
HTTP_TOKEN_EXPIRED = 222


class Scope(str, enum.Enum):
    USER_ACCESS = "user_access"
    USER_REFRESH = "user_refresh"
    BOARD_ACCESS = "board_access"
    BOARD_REFRESH = "board_refresh"

    @property
    def is_board(self) -> bool:
        return self in (Scope.BOARD_ACCESS, Scope.BOARD_REFRESH)

    @property
    def is_refresh(self) -> bool:
        return self in (Scope.USER_REFRESH, Scope.BOARD_REFRESH)

    @property
    def access_scope(self) -> "Scope":
        """The access scope a refresh token of this scope is allowed to mint."""
        return Scope.BOARD_ACCESS if self.is_board else Scope.USER_ACCESS


class VerifyStatus(str, enum.Enum):
    OK = "ok"
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass
class Principal:
    """Resolved identity carried by a verified token."""
    user_id: int
    username: str
    scope: Scope
    board_id: Optional[int] = None
    board_ids: list = field(default_factory=list)
    expires_at: int = 0


@dataclass
class VerifyResult:
    status: VerifyStatus
    principal: Optional[Principal] = None

    @property
    def ok(self) -> bool:
        return self.status == VerifyStatus.OK


def _secret_for(scope: Scope) -> str:
    settings = get_settings()
    return {
        Scope.USER_ACCESS: settings.secret_key,
        Scope.USER_REFRESH: settings.refresh_secret_key,
        Scope.BOARD_ACCESS: settings.board_secret_key,
        Scope.BOARD_REFRESH: settings.board_refresh_secret_key,
    }[scope]


def _lifetime_for(scope: Scope) -> int:
    settings = get_settings()
    if scope.is_refresh:
        return settings.refresh_token_expire_seconds
    return settings.access_token_expire_seconds


def _encode(scope: Scope, claims: dict, expires_in: Optional[int] = None) -> str:
    lifetime = _lifetime_for(scope) if expires_in is None else expires_in
    payload = dict(claims)
    payload["scope"] = scope.value
    payload["exp"] = int(time.time()) + lifetime
    return jwt.encode(payload, _secret_for(scope), algorithm=ALGORITHM)


def issue_user_access(user_id: int, username: str, board_ids=(), expires_in: Optional[int] = None) -> str:
    return _encode(
        Scope.USER_ACCESS,
        {"sub": str(user_id), "username": username, "boards": list(board_ids)},
        expires_in,
    )


def issue_user_refresh(user_id: int, username: str, expires_in: Optional[int] = None) -> str:
    return _encode(Scope.USER_REFRESH, {"sub": str(user_id), "username": username}, expires_in)


def issue_board_access(board_id: int, user_id: int, username: str, expires_in: Optional[int] = None) -> str:
    return _encode(
        Scope.BOARD_ACCESS,
        {"sub": str(user_id), "username": username, "board_id": board_id},
        expires_in,
    )


def issue_board_refresh(board_id: int, user_id: int, username: str, expires_in: Optional[int] = None) -> str:
    return _encode(
        Scope.BOARD_REFRESH,
        {"sub": str(user_id), "username": username, "board_id": board_id},
        expires_in,
    )


def verify_token(token: str, scope: Scope) -> VerifyResult:
    """Decode and validate a JWT for the given scope. Never raises."""
    if not token:
        return VerifyResult(VerifyStatus.INVALID)
    try:
        payload = jwt.decode(token, _secret_for(scope), algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        return VerifyResult(VerifyStatus.EXPIRED)
    except JWTError:
        return VerifyResult(VerifyStatus.INVALID)

    if payload.get("scope") != scope.value:
        return VerifyResult(VerifyStatus.INVALID)
    if scope.is_board and payload.get("board_id") is None:
        return VerifyResult(VerifyStatus.INVALID)
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return VerifyResult(VerifyStatus.INVALID)

    return VerifyResult(
        VerifyStatus.OK,
        Principal(
            user_id=user_id,
            username=payload.get("username", ""),
            scope=scope,
            board_id=payload.get("board_id"),
            board_ids=payload.get("boards", []),
            expires_at=payload["exp"],
        ),
    )


def require(token: str, scope: Scope) -> Principal:
    """Like verify_token but raises the matching credential error."""
    result = verify_token(token, scope)
    if result.status == VerifyStatus.EXPIRED:
        raise CredentialExpired()
    if not result.ok:
        raise CredentialInvalid()
    return result.principal


def refresh_access_token(refresh_token: str, scope: Scope, board_ids=()) -> str:
    """
    Mint a fresh access token of the scope matching ``scope`` (a refresh scope).
    An expired refresh token raises CredentialExpired and forces a new login.
    """
    if not scope.is_refresh:
        raise CredentialInvalid("Not a refresh scope.")
    principal = require(refresh_token, scope)
    if scope.access_scope == Scope.BOARD_ACCESS:
        return issue_board_access(principal.board_id, principal.user_id, principal.username)
    return issue_user_access(principal.user_id, principal.username, board_ids)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:] or None


def raise_for_result(result: VerifyResult) -> Principal:
    if result.status == VerifyStatus.EXPIRED:
        raise HTTPException(status_code=HTTP_TOKEN_EXPIRED, detail="Token has expired.")
    if not result.ok:
        raise HTTPException(status_code=403, detail="Invalid token.")
    return result.principal


def _authenticate(request: Request, scope: Scope) -> Principal:
    token = bearer_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail="Missing bearer token.")
    return raise_for_result(verify_token(token, scope))


async def get_current_user(request: Request) -> Principal:
    """FastAPI dependency: requires a valid user access token."""
    return _authenticate(request, Scope.USER_ACCESS)


async def get_refresh_principal(request: Request) -> Principal:
    return _authenticate(request, Scope.USER_REFRESH)


async def get_board_refresh_principal(request: Request) -> Principal:
    return _authenticate(request, Scope.BOARD_REFRESH)
