from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class NoteCreate(BaseModel):
    note_name: str = Field(alias="noteName")
    note_color: str = Field(default="#FFFFFF", alias="noteColor")
    board_id: int = Field(alias="boardId")


class NotePositionUpdate(BaseModel):
    new_position_x: float = Field(alias="newPositionX")
    new_position_y: float = Field(alias="newPositionY")


class NoteContentUpdate(BaseModel):
    new_text: str = Field(default="", alias="newText")
    new_name: str = Field(alias="newName")


class NoteDimensionsUpdate(BaseModel):
    # The browser sends CSS lengths such as "300px"
    new_width: int | str = Field(alias="newWidth")
    new_height: int | str = Field(alias="newHeight")


class NoteCreator(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    username: str


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    board_id: int = Field(alias="boardId")
    user_id: int = Field(alias="userId")
    name: str = Field(alias="noteName")
    text: str = Field(default="", alias="noteText")
    color: str = Field(alias="noteColor")
    position_x: float = Field(alias="positionX")
    position_y: float = Field(alias="positionY")
    width: int
    height: int
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    creator: Optional[NoteCreator] = Field(default=None, alias="user")


class NoteCreatedResponse(BaseModel):
    message: str = "Sticky note created successfully!"
    stickyNote: NoteResponse
