from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from stickyboard.database import get_db
from stickyboard.schemas.user import RegisterRequest, LoginRequest, LoginResponse, AccessTokenResponse
from stickyboard.services.user_service import user_service
from stickyboard.services.board_service import board_service
from stickyboard.auth import (
    Principal,
    Scope,
    bearer_token,
    get_current_user,
    get_refresh_principal,
    get_board_refresh_principal,
    issue_user_access,
    issue_user_refresh,
    refresh_access_token,
)

router = APIRouter()


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    await user_service.create(db, body.username.strip(), body.password.strip())
    return {"message": "User created successfully!"}


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange username + password for a user access/refresh token pair."""
    username = body.username.strip()
    password = body.password.strip()
    if not username or not password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    user = await user_service.authenticate(db, username, password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    board_ids = await board_service.ids_created_by(db, user.id)
    return LoginResponse(
        token=issue_user_access(user.id, user.username, board_ids),
        refreshToken=issue_user_refresh(user.id, user.username),
        username=user.username,
    )


@router.post("/validate-token")
async def validate_token(current_user: Principal = Depends(get_current_user)):
    return {"valid": True}


@router.post("/refresh-token", response_model=AccessTokenResponse)
async def refresh_token(
    request: Request,
    principal: Principal = Depends(get_refresh_principal),
    db: AsyncSession = Depends(get_db),
):
    board_ids = await board_service.ids_created_by(db, principal.user_id)
    return AccessTokenResponse(
        accessToken=refresh_access_token(bearer_token(request), Scope.USER_REFRESH, board_ids)
    )


@router.post("/refresh-board-token", response_model=AccessTokenResponse)
async def refresh_board_token(request: Request, principal: Principal = Depends(get_board_refresh_principal)):
    # The board comes from the refresh token itself, never from the request body
    return AccessTokenResponse(accessToken=refresh_access_token(bearer_token(request), Scope.BOARD_REFRESH))
