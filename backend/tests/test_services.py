import asyncio
import threading
import pytest
from sqlalchemy import select, func
from stickyboard.database import async_session
from stickyboard.exceptions import Forbidden, NotFound, ValidationFailed
from stickyboard.models import Board, StickyNote
from stickyboard.services.board_service import board_service
from stickyboard.services.note_service import note_service, parse_length
from stickyboard.services import user_service as user_module
from stickyboard.services.user_service import user_service, validate_credentials


async def _user(db, username="alice", password="secret1"):
    user = await user_service.create(db, username, password)
    await db.commit()
    return user


@pytest.mark.parametrize("username,password", [
    ("abc", "secret1"),
    ("a" * 21, "secret1"),
    ("bad name", "secret1"),
    ("alice", "12345"),
    ("alice", "x" * 21),
    ("", "secret1"),
])
def test_credentials_shape_is_checked(username, password):
    with pytest.raises(ValidationFailed):
        validate_credentials(username, password)


async def test_register_and_authenticate(db):
    user = await _user(db)
    assert user.password_hash != "secret1"
    assert (await user_service.authenticate(db, "alice", "secret1")).id == user.id
    assert await user_service.authenticate(db, "alice", "wrong-password") is None
    assert await user_service.authenticate(db, "nobody", "secret1") is None


async def test_duplicate_username_rejected(db):
    await _user(db)
    with pytest.raises(ValidationFailed):
        await user_service.create(db, "alice", "another1")


async def test_private_board_needs_password_and_public_stores_none(db):
    user = await _user(db)
    with pytest.raises(ValidationFailed):
        await board_service.create(db, user.id, "Secret", is_private=True, password="  ")

    public = await board_service.create(db, user.id, "Open", password="ignored")
    private = await board_service.create(db, user.id, "Secret", is_private=True, password="pw")
    await db.commit()

    assert public.password_hash is None
    assert private.password_hash is not None
    assert await board_service.check_password(private, "pw")
    assert not await board_service.check_password(private, "nope")
    assert not await board_service.check_password(public, "ignored")


async def test_board_name_required(db):
    user = await _user(db)
    with pytest.raises(ValidationFailed):
        await board_service.create(db, user.id, "   ")


async def test_delete_board_removes_its_notes(tables):
    async with async_session() as db:
        user = await _user(db)
        board = await board_service.create(db, user.id, "Doomed")
        other = await board_service.create(db, user.id, "Kept")
        for name in ("a", "b", "c"):
            await note_service.create(db, board.id, user.id, name, "#FFF")
        await note_service.create(db, other.id, user.id, "survivor", "#FFF")
        await db.commit()
        board_id, other_id, user_id = board.id, other.id, user.id

    async with async_session() as db:
        await board_service.delete(db, board_id, user_id)
        await db.commit()

    async with async_session() as db:
        assert await db.get(Board, board_id) is None
        orphans = await db.scalar(select(func.count()).select_from(StickyNote).where(StickyNote.board_id == board_id))
        assert orphans == 0
        assert [n.name for n in await note_service.list_for_board(db, other_id)] == ["survivor"]


async def test_only_creator_deletes_board(tables):
    async with async_session() as db:
        alice = await _user(db, "alice")
        bob = await _user(db, "bobby")
        board = await board_service.create(db, alice.id, "Mine")
        await db.commit()
        board_id, bob_id = board.id, bob.id

    async with async_session() as db:
        with pytest.raises(Forbidden):
            await board_service.delete(db, board_id, bob_id)
        with pytest.raises(NotFound):
            await board_service.delete(db, 9999, bob_id)
        assert await db.get(Board, board_id) is not None


async def test_note_defaults(db):
    user = await _user(db)
    board = await board_service.create(db, user.id, "B")
    note = await note_service.create(db, board.id, user.id, "  hello ", "#FFEE00")
    assert (note.name, note.position_x, note.position_y) == ("hello", 0, 0)
    assert (note.width, note.height) == (250, 110)
    assert note.updated_at is not None
    assert note.creator.username == "alice"


async def test_note_on_unknown_board(db):
    user = await _user(db)
    with pytest.raises(NotFound):
        await note_service.create(db, 404, user.id, "x", "#FFF")


async def test_updated_at_only_moves_on_content_edits(db):
    user = await _user(db)
    board = await board_service.create(db, user.id, "B")
    note = await note_service.create(db, board.id, user.id, "n", "#FFF")
    created = note.updated_at

    await note_service.update_position(db, note.id, 10, 20)
    await note_service.update_dimensions(db, note.id, "300px", 200)
    reloaded = await note_service.get(db, note.id)
    assert reloaded.updated_at == created
    assert (reloaded.position_x, reloaded.position_y, reloaded.width, reloaded.height) == (10, 20, 300, 200)

    await asyncio.sleep(0.01)
    await note_service.update_content(db, note.id, "  ", "body")
    reloaded = await note_service.get(db, note.id)
    assert reloaded.updated_at > created
    assert (reloaded.name, reloaded.text) == ("Title", "body")


async def test_concurrent_writes_last_one_wins(db):
    user = await _user(db)
    board = await board_service.create(db, user.id, "B")
    note = await note_service.create(db, board.id, user.id, "n", "#FFF")

    await note_service.update_position(db, note.id, 100, 100)
    await note_service.update_position(db, note.id, 5, 7)
    reloaded = await note_service.get(db, note.id)
    assert (reloaded.position_x, reloaded.position_y) == (5, 7)


async def test_missing_note_updates_raise(db):
    with pytest.raises(NotFound):
        await note_service.update_position(db, 1, 0, 0)
    with pytest.raises(NotFound):
        await note_service.delete(db, 1)


@pytest.mark.parametrize("value,expected", [(300, 300), (300.7, 300), ("300px", 300), ("  120px", 120)])
def test_parse_length(value, expected):
    assert parse_length(value) == expected


@pytest.mark.parametrize("value", ["wide", "", True])
def test_parse_length_rejects_garbage(value):
    with pytest.raises(ValidationFailed):
        parse_length(value)


async def test_password_hashing_runs_off_the_event_loop(db, monkeypatch):
    threads = []
    real_hash = user_module.hash_password

    def recording_hash(password):
        threads.append(threading.current_thread())
        return real_hash(password)

    monkeypatch.setattr(user_module, "hash_password", recording_hash)
    await _user(db)
    assert threads and threads[0] is not threading.main_thread()


async def test_note_name_and_color_fit_their_columns(db):
    user = await _user(db)
    board = await board_service.create(db, user.id, "B")
    with pytest.raises(ValidationFailed):
        await note_service.create(db, board.id, user.id, "n" * 101, "#FFF")
    with pytest.raises(ValidationFailed):
        await note_service.create(db, board.id, user.id, "n", "#" * 21)

    note = await note_service.create(db, board.id, user.id, "n" * 100, "#" * 20)
    with pytest.raises(ValidationFailed):
        await note_service.update_content(db, note.id, "x" * 101, "body")
    reloaded = await note_service.get(db, note.id)
    assert reloaded.name == "n" * 100
