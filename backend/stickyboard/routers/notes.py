from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from stickyboard.database import get_db
from stickyboard.schemas.note import (
    NoteCreate,
    NoteCreatedResponse,
    NoteContentUpdate,
    NoteDimensionsUpdate,
    NotePositionUpdate,
    NoteResponse,
)
from stickyboard.services.note_service import note_service
from stickyboard.auth import get_current_user, Principal

router = APIRouter()


@router.post("/create-sticky-note", response_model=NoteCreatedResponse, status_code=201)
async def create_sticky_note(
    data: NoteCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    note = await note_service.create(db, data.board_id, current_user.user_id, data.note_name, data.note_color)
    return NoteCreatedResponse(stickyNote=NoteResponse.model_validate(note))


@router.get("/notes/{board_id}", response_model=list[NoteResponse])
async def list_notes(
    board_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    notes = await note_service.list_for_board(db, board_id)
    return [NoteResponse.model_validate(n) for n in notes]


@router.patch("/notes_position/{note_id}", response_model=NoteResponse)
async def update_position(
    note_id: int,
    data: NotePositionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    note = await note_service.update_position(db, note_id, data.new_position_x, data.new_position_y)
    return NoteResponse.model_validate(note)


@router.patch("/notes_content/{note_id}", response_model=NoteResponse)
async def update_content(
    note_id: int,
    data: NoteContentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    note = await note_service.update_content(db, note_id, data.new_name, data.new_text)
    return NoteResponse.model_validate(note)


@router.patch("/notes_dimensions/{note_id}", response_model=NoteResponse)
async def update_dimensions(
    note_id: int,
    data: NoteDimensionsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    note = await note_service.update_dimensions(db, note_id, data.new_width, data.new_height)
    return NoteResponse.model_validate(note)


@router.delete("/notes_delete/{note_id}")
async def delete_note(
    note_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    note = await note_service.delete(db, note_id)
    return {"success": True, "message": "Note removed successfully", "boardId": note.board_id}
