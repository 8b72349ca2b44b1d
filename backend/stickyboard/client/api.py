import logging
from typing import Any, Optional
import httpx
from stickyboard.auth import HTTP_TOKEN_EXPIRED
from stickyboard.client.session import CredentialStore
from stickyboard.exceptions import (
    CredentialExpired,
    Forbidden,
    GatewayError,
    NotFound,
    ValidationFailed,
)

logger = logging.getLogger(__name__)


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("detail") or data)
    return str(data)


def raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status == HTTP_TOKEN_EXPIRED:
        raise CredentialExpired(_error_text(response))
    if status < 400:
        return
    reason = _error_text(response)
    if status in (401, 403):
        raise Forbidden(reason, {"status": status})
    if status == 404:
        raise NotFound(reason)
    if status in (400, 422):
        raise ValidationFailed(reason)
    raise GatewayError(reason, {"status": status})


class ApiClient:
    """
    REST client for the board server.

    A 222 answer on a call made with an access token triggers one silent
    refresh through the matching refresh token, then the call is replayed.
    A second expiry, or an expired refresh token, surfaces as
    CredentialExpired.
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional[CredentialStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.credentials = credentials or CredentialStore()
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def _send(self, method: str, path: str, json: Any = None, token: Optional[str] = None) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise GatewayError(str(e)) from e
        raise_for_status(response)
        if not response.content:
            return None
        return response.json()

    async def _call(self, method: str, path: str, json: Any = None, board_id: Optional[int] = None) -> Any:
        def current_token():
            if board_id is not None:
                return self.credentials.board_access(board_id)
            return self.credentials.access_token

        try:
            return await self._send(method, path, json, current_token())
        except CredentialExpired:
            if board_id is not None:
                await self.refresh_board_token(board_id)
            else:
                await self.refresh_token()
            return await self._send(method, path, json, current_token())

    # -- auth ---------------------------------------------------------------

    async def register(self, username: str, password: str) -> dict:
        return await self._send("POST", "/register", {"username": username, "password": password})

    async def login(self, username: str, password: str) -> dict:
        data = await self._send("POST", "/login", {"username": username, "password": password})
        self.credentials.set_user_pair(data["token"], data["refreshToken"], data["username"])
        return data

    async def validate_token(self) -> bool:
        data = await self._send("POST", "/validate-token", token=self.credentials.access_token)
        return bool(data and data.get("valid"))

    async def refresh_token(self) -> str:
        if not self.credentials.refresh_token:
            raise CredentialExpired("No refresh token.")
        data = await self._send("POST", "/refresh-token", token=self.credentials.refresh_token)
        self.credentials.access_token = data["accessToken"]
        return data["accessToken"]

    async def refresh_board_token(self, board_id: int) -> str:
        refresh = self.credentials.board_refresh(board_id)
        if not refresh:
            raise CredentialExpired(f"No refresh token for board {board_id}.")
        data = await self._send("POST", "/refresh-board-token", {"boardId": board_id}, token=refresh)
        self.credentials.update_board_access(board_id, data["accessToken"])
        return data["accessToken"]

    # -- boards -------------------------------------------------------------

    async def list_boards(self) -> dict:
        return await self._call("GET", "/boards")

    async def create_board(self, name: str, tag: str = "", is_private: bool = False, password: Optional[str] = None) -> dict:
        body = {
            "dashName": name,
            "dashTag": tag,
            "isPrivate": is_private,
            "password": password if is_private else None,
        }
        return await self._call("POST", "/create-board", body)

    async def get_board_details(
        self, board_id: int, is_private: bool, is_board_creator: bool, use_board_token: bool = False
    ) -> dict:
        body = {"boardId": board_id, "isPrivate": is_private, "isBoardCreator": is_board_creator}
        return await self._call("POST", "/get-board-details", body, board_id if use_board_token else None)

    async def verify_board_password(self, board_id: int, password: str) -> dict:
        return await self._call("POST", "/verify-board-password", {"boardId": board_id, "password": password})

    async def delete_board(self, board_id: int) -> dict:
        return await self._call("DELETE", f"/boards/{board_id}")

    # -- notes --------------------------------------------------------------

    async def create_note(self, name: str, color: str, board_id: int) -> dict:
        return await self._call(
            "POST", "/create-sticky-note", {"noteName": name, "noteColor": color, "boardId": board_id}
        )

    async def list_notes(self, board_id: int) -> list:
        return await self._call("GET", f"/notes/{board_id}")

    async def update_position(self, note_id: int, x: float, y: float) -> dict:
        return await self._call("PATCH", f"/notes_position/{note_id}", {"newPositionX": x, "newPositionY": y})

    async def update_content(self, note_id: int, name: str, text: str) -> dict:
        return await self._call("PATCH", f"/notes_content/{note_id}", {"newText": text, "newName": name})

    async def update_dimensions(self, note_id: int, width: int, height: int) -> dict:
        return await self._call("PATCH", f"/notes_dimensions/{note_id}", {"newWidth": width, "newHeight": height})

    async def delete_note(self, note_id: int) -> dict:
        return await self._call("DELETE", f"/notes_delete/{note_id}")
