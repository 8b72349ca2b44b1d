from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional
from stickyboard.schemas.note import NoteResponse
from stickyboard.schemas.user import LoggedInUser


class BoardCreate(BaseModel):
    dash_name: str = Field(alias="dashName")
    dash_tag: Optional[str] = Field(default="", alias="dashTag")
    is_private: bool = Field(default=False, alias="isPrivate")
    password: Optional[str] = None


class BoardDetailsRequest(BaseModel):
    board_id: int = Field(alias="boardId")
    # Sent by the browser client; the server decides from persisted state
    is_private: Optional[bool] = Field(default=None, alias="isPrivate")
    is_board_creator: Optional[bool] = Field(default=None, alias="isBoardCreator")


class BoardPasswordRequest(BaseModel):
    board_id: int = Field(alias="boardId")
    password: str = ""


class BoardCreator(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str


class BoardResponse(BaseModel):
    """Client-visible board. The password hash is never part of it."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    name: str
    tag: str = ""
    is_private: bool = Field(alias="isPrivate")
    user_id: int = Field(alias="userId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    creator: Optional[BoardCreator] = Field(default=None, alias="user")
    notes: list[NoteResponse] = Field(default_factory=list, alias="stickyNotes")


class BoardCreatedResponse(BaseModel):
    message: str = "Dashboard created successfully"
    board: BoardResponse
    boardToken: Optional[str] = None
    boardRefreshToken: Optional[str] = None


class BoardListResponse(BaseModel):
    boards: list[BoardResponse]
    loggedInUser: LoggedInUser


class BoardDetailsResponse(BaseModel):
    message: str
    boardDetails: BoardResponse
    loggedInUser: LoggedInUser


class BoardPasswordResponse(BaseModel):
    success: bool
    boardToken: Optional[str] = None
    boardRefreshToken: Optional[str] = None
