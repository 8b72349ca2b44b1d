import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from stickyboard.database import get_db
from stickyboard.schemas.board import (
    BoardCreate,
    BoardCreatedResponse,
    BoardDetailsRequest,
    BoardDetailsResponse,
    BoardListResponse,
    BoardPasswordRequest,
    BoardPasswordResponse,
    BoardResponse,
)
from stickyboard.schemas.user import LoggedInUser
from stickyboard.services.board_service import board_service
from stickyboard.auth import (
    Principal,
    Scope,
    VerifyStatus,
    bearer_token,
    get_current_user,
    issue_board_access,
    issue_board_refresh,
    raise_for_result,
    verify_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _board_pair(board_id: int, principal: Principal) -> tuple[str, str]:
    return (
        issue_board_access(board_id, principal.user_id, principal.username),
        issue_board_refresh(board_id, principal.user_id, principal.username),
    )


def authorize_board_view(token: str, board) -> Principal:
    """
    Decide whether the bearer may see ``board``.

    Public boards need a user access token. Private boards pass for a user
    access token belonging to the creator, or for a board access token bound
    to this board. Anything else is a 403 challenge; an expired token of
    either kind is a 222 so the client refreshes instead of re-prompting.
    """
    user_result = verify_token(token, Scope.USER_ACCESS)
    if not board.is_private:
        return raise_for_result(user_result)

    if user_result.ok:
        if user_result.principal.user_id == board.user_id:
            return user_result.principal
        raise HTTPException(status_code=403, detail="Board password required.")

    board_result = verify_token(token, Scope.BOARD_ACCESS)
    if board_result.ok:
        if board_result.principal.board_id == board.id:
            return board_result.principal
        raise HTTPException(status_code=403, detail="Token is for another board.")

    if VerifyStatus.EXPIRED in (user_result.status, board_result.status):
        return raise_for_result(
            user_result if user_result.status == VerifyStatus.EXPIRED else board_result
        )
    raise HTTPException(status_code=403, detail="Invalid token.")


@router.post("/create-board", response_model=BoardCreatedResponse, status_code=201)
async def create_board(
    data: BoardCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    board = await board_service.create(
        db,
        user_id=current_user.user_id,
        name=data.dash_name,
        tag=data.dash_tag,
        is_private=data.is_private,
        password=data.password if data.is_private else None,
    )
    board_token = board_refresh_token = None
    if board.is_private:
        # The creator gets a board credential straight away
        board_token, board_refresh_token = _board_pair(board.id, current_user)
    return BoardCreatedResponse(
        board=BoardResponse.model_validate(board),
        boardToken=board_token,
        boardRefreshToken=board_refresh_token,
    )


@router.post("/get-board-details", response_model=BoardDetailsResponse, status_code=201)
async def get_board_details(
    data: BoardDetailsRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    token = bearer_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail="Missing bearer token.")

    board = await board_service.get_with_notes(db, data.board_id)
    if not board:
        raise HTTPException(status_code=404, detail=f"Board {data.board_id} not found")

    principal = authorize_board_view(token, board)
    return BoardDetailsResponse(
        message=f"Board {board.id} details",
        boardDetails=BoardResponse.model_validate(board),
        loggedInUser=LoggedInUser(userId=principal.user_id, username=principal.username),
    )


@router.post("/verify-board-password", response_model=BoardPasswordResponse)
async def verify_board_password(
    data: BoardPasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    board = await board_service.get(db, data.board_id)
    if not board:
        raise HTTPException(status_code=404, detail=f"Board {data.board_id} not found")

    if not await board_service.check_password(board, data.password):
        logger.info("Wrong password for board %s from user %s", board.id, current_user.user_id)
        return BoardPasswordResponse(success=False)

    board_token, board_refresh_token = _board_pair(board.id, current_user)
    return BoardPasswordResponse(success=True, boardToken=board_token, boardRefreshToken=board_refresh_token)


@router.get("/boards", response_model=BoardListResponse)
async def list_boards(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    boards = await board_service.list_all(db)
    return BoardListResponse(
        boards=[BoardResponse.model_validate(b) for b in boards],
        loggedInUser=LoggedInUser(userId=current_user.user_id, username=current_user.username),
    )


@router.delete("/boards/{board_id}")
async def delete_board(
    board_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    await board_service.delete(db, board_id, current_user.user_id)
    return {"success": True, "message": "Board removed successfully"}
