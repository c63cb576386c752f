from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from litreview.core import get_db
from litreview.models import Paper, Tag, User, paper_tags
from litreview.schemas import TagCreate, TagUpdate, TagResponse, PaperResponse
from litreview.api.v1.auth import get_current_user

router = APIRouter()


async def verify_tag_access(tag_id: int, current_user: User, db: AsyncSession) -> Tag:
    tag = await db.get(Tag, tag_id)
    if not tag:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    if tag.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this tag")
    return tag


async def _ensure_unique_name(db: AsyncSession, user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = select(Tag.id).where(Tag.user_id == user_id, func.lower(Tag.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Tag.id != exclude_id)
    if (await db.execute(query)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Tag with this name already exists")


async def _paper_count(db: AsyncSession, tag_id: int) -> int:
    return await db.scalar(
        select(func.count()).select_from(paper_tags).where(paper_tags.c.tag_id == tag_id)
    ) or 0


@router.get("", response_model=list[TagResponse])
async def list_tags(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await db.execute(
        select(Tag, func.count(paper_tags.c.paper_id))
        .outerjoin(paper_tags, paper_tags.c.tag_id == Tag.id)
        .where(Tag.user_id == current_user.id)
        .group_by(Tag.id)
        .order_by(Tag.name)
    )
    return [
        TagResponse.model_validate(tag).model_copy(update={"paper_count": count})
        for tag, count in result.all()
    ]


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    data: TagCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    name = data.name.strip()
    await _ensure_unique_name(db, current_user.id, name)
    tag = Tag(user_id=current_user.id, name=name, color=data.color)
    db.add(tag)
    await db.commit()
    await db.refresh(tag)
    return tag


@router.get("/{tag_id}", response_model=TagResponse)
async def get_tag(
    tag_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    tag = await verify_tag_access(tag_id, current_user, db)
    return TagResponse.model_validate(tag).model_copy(update={"paper_count": await _paper_count(db, tag.id)})


@router.patch("/{tag_id}", response_model=TagResponse)
async def update_tag(
    tag_id: int,
    data: TagUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    tag = await verify_tag_access(tag_id, current_user, db)
    if data.name is not None:
        name = data.name.strip()
        await _ensure_unique_name(db, current_user.id, name, exclude_id=tag.id)
        tag.name = name
    if data.color is not None:
        tag.color = data.color
    await db.commit()
    await db.refresh(tag)
    return TagResponse.model_validate(tag).model_copy(update={"paper_count": await _paper_count(db, tag.id)})


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    tag = await verify_tag_access(tag_id, current_user, db)
    await db.delete(tag)
    await db.commit()


@router.get("/{tag_id}/papers", response_model=list[PaperResponse])
async def list_tag_papers(
    tag_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    tag = await verify_tag_access(tag_id, current_user, db)
    result = await db.execute(
        select(Paper)
        .options(selectinload(Paper.tags))
        .where(Paper.tags.any(Tag.id == tag.id))
        .order_by(Paper.created_at.desc(), Paper.id.desc())
    )
    return result.scalars().all()
