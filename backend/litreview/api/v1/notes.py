from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.core import get_db
from litreview.models import Note, User
from litreview.schemas import NoteCreate, NoteUpdate, NoteResponse
from litreview.api.v1.auth import get_current_user
from litreview.api.v1.papers import verify_paper_access

router = APIRouter()


async def verify_note_access(note_id: int, current_user: User, db: AsyncSession) -> Note:
    note = await db.get(Note, note_id)
    if not note:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    if note.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this note")
    return note


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    data: NoteCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(data.paper_id, current_user, db)
    note = Note(user_id=current_user.id, **data.model_dump())
    db.add(note)
    await db.commit()
    await db.refresh(note)
    return note


@router.get("", response_model=list[NoteResponse])
async def list_notes(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    paper_id: int | None = Query(default=None, alias="paperId"),
):
    query = select(Note).where(Note.user_id == current_user.id)
    if paper_id is not None:
        await verify_paper_access(paper_id, current_user, db)
        query = query.where(Note.paper_id == paper_id)
    result = await db.execute(query.order_by(Note.created_at.desc(), Note.id.desc()))
    return result.scalars().all()


@router.get("/search", response_model=list[NoteResponse])
async def search_notes(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    q: str = Query(min_length=1, max_length=200),
):
    pattern = f"%{q.lower()}%"
    result = await db.execute(
        select(Note)
        .where(
            Note.user_id == current_user.id,
            or_(func.lower(Note.title).like(pattern), func.lower(Note.content).like(pattern)),
        )
        .order_by(Note.created_at.desc(), Note.id.desc())
    )
    return result.scalars().all()


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await verify_note_access(note_id, current_user, db)


@router.patch("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: int,
    data: NoteUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    note = await verify_note_access(note_id, current_user, db)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field in ("content", "color"):
            continue
        setattr(note, field, value)
    await db.commit()
    await db.refresh(note)
    return note


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    note = await verify_note_access(note_id, current_user, db)
    await db.delete(note)
    await db.commit()
