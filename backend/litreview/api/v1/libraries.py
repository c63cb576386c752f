from typing import Annotated, Literal
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from litreview.core import get_db
from litreview.models import Library, LibraryItem, ReadingStatus, User, DEFAULT_LIBRARY_NAME
from litreview.schemas import (
    LibraryCreate, LibraryUpdate, LibraryResponse, LibraryItemCreate, LibraryItemUpdate,
    LibraryItemResponse, LibraryStatistics,
)
from litreview.api.v1.auth import get_current_user
from litreview.api.v1.papers import verify_paper_access

router = APIRouter()


async def ensure_default_library(db: AsyncSession, current_user: User) -> Library:
    result = await db.execute(
        select(Library).where(Library.user_id == current_user.id, Library.is_default.is_(True))
    )
    library = result.scalar_one_or_none()
    if library is None:
        library = Library(user_id=current_user.id, name=DEFAULT_LIBRARY_NAME, is_default=True)
        db.add(library)
        await db.commit()
        await db.refresh(library)
    return library


async def verify_library_access(library_id: int, current_user: User, db: AsyncSession) -> Library:
    library = await db.get(Library, library_id)
    if not library:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Library not found")
    if library.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this library")
    return library


async def _ensure_unique_name(db: AsyncSession, user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = select(Library.id).where(Library.user_id == user_id, func.lower(Library.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Library.id != exclude_id)
    if (await db.execute(query)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Library with this name already exists")


async def _with_count(db: AsyncSession, library: Library) -> LibraryResponse:
    count = await db.scalar(
        select(func.count(LibraryItem.id)).where(LibraryItem.library_id == library.id)
    )
    return LibraryResponse.model_validate(library).model_copy(update={"paper_count": count or 0})


async def _get_item(db: AsyncSession, library_id: int, paper_id: int) -> LibraryItem:
    result = await db.execute(
        select(LibraryItem)
        .options(selectinload(LibraryItem.paper))
        .where(LibraryItem.library_id == library_id, LibraryItem.paper_id == paper_id)
        .execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found in library")
    return item


@router.get("", response_model=list[LibraryResponse])
async def list_libraries(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await ensure_default_library(db, current_user)
    result = await db.execute(
        select(Library, func.count(LibraryItem.id))
        .outerjoin(LibraryItem, LibraryItem.library_id == Library.id)
        .where(Library.user_id == current_user.id)
        .group_by(Library.id)
        .order_by(Library.is_default.desc(), Library.created_at, Library.id)
    )
    return [
        LibraryResponse.model_validate(lib).model_copy(update={"paper_count": count})
        for lib, count in result.all()
    ]


@router.post("", response_model=LibraryResponse, status_code=status.HTTP_201_CREATED)
async def create_library(
    data: LibraryCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    name = data.name.strip()
    await _ensure_unique_name(db, current_user.id, name)
    library = Library(user_id=current_user.id, name=name, description=data.description)
    db.add(library)
    await db.commit()
    await db.refresh(library)
    return library


@router.get("/paper/{paper_id}", response_model=list[LibraryResponse])
async def libraries_for_paper(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Libraries that contain the given paper."""
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(Library)
        .join(LibraryItem, LibraryItem.library_id == Library.id)
        .where(Library.user_id == current_user.id, LibraryItem.paper_id == paper_id)
        .order_by(Library.is_default.desc(), Library.name)
    )
    return [await _with_count(db, lib) for lib in result.scalars().all()]


@router.get("/{library_id}", response_model=LibraryResponse)
async def get_library(
    library_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    library = await verify_library_access(library_id, current_user, db)
    return await _with_count(db, library)


@router.patch("/{library_id}", response_model=LibraryResponse)
async def update_library(
    library_id: int,
    data: LibraryUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    library = await verify_library_access(library_id, current_user, db)
    if data.name is not None and data.name.strip() != library.name:
        if library.is_default:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot rename the default library")
        name = data.name.strip()
        await _ensure_unique_name(db, current_user.id, name, exclude_id=library.id)
        library.name = name
    if "description" in data.model_fields_set:
        library.description = data.description
    await db.commit()
    await db.refresh(library)
    return await _with_count(db, library)


@router.delete("/{library_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_library(
    library_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    library = await verify_library_access(library_id, current_user, db)
    if library.is_default:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot delete the default library")
    await db.delete(library)
    await db.commit()


@router.post("/{library_id}/papers", response_model=LibraryItemResponse, status_code=status.HTTP_201_CREATED)
async def add_paper_to_library(
    library_id: int,
    data: LibraryItemCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    library = await verify_library_access(library_id, current_user, db)
    await verify_paper_access(data.paper_id, current_user, db)

    existing = await db.execute(
        select(LibraryItem.id).where(
            LibraryItem.library_id == library.id, LibraryItem.paper_id == data.paper_id
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Paper already in library")

    db.add(LibraryItem(library_id=library.id, **data.model_dump()))
    await db.commit()
    return await _get_item(db, library.id, data.paper_id)


@router.get("/{library_id}/papers", response_model=list[LibraryItemResponse])
async def list_library_papers(
    library_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: Literal["to_read", "reading", "completed"] | None = Query(default=None, alias="status"),
):
    library = await verify_library_access(library_id, current_user, db)
    query = (
        select(LibraryItem)
        .options(selectinload(LibraryItem.paper))
        .where(LibraryItem.library_id == library.id)
    )
    if status_filter:
        query = query.where(LibraryItem.reading_status == status_filter)
    result = await db.execute(query.order_by(LibraryItem.added_at.desc(), LibraryItem.id.desc()))
    return result.scalars().all()


@router.patch("/{library_id}/papers/{paper_id}", response_model=LibraryItemResponse)
async def update_library_item(
    library_id: int,
    paper_id: int,
    data: LibraryItemUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    library = await verify_library_access(library_id, current_user, db)
    item = await _get_item(db, library.id, paper_id)
    if data.reading_status is not None:
        item.reading_status = data.reading_status
    if "rating" in data.model_fields_set:
        item.rating = data.rating
    await db.commit()
    return await _get_item(db, library.id, paper_id)


@router.delete("/{library_id}/papers/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_paper_from_library(
    library_id: int,
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    library = await verify_library_access(library_id, current_user, db)
    item = await _get_item(db, library.id, paper_id)
    await db.delete(item)
    await db.commit()


@router.get("/{library_id}/statistics", response_model=LibraryStatistics)
async def library_statistics(
    library_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    library = await verify_library_access(library_id, current_user, db)
    by_status = await db.execute(
        select(LibraryItem.reading_status, func.count(LibraryItem.id))
        .where(LibraryItem.library_id == library.id)
        .group_by(LibraryItem.reading_status)
    )
    counts = {s.value: 0 for s in ReadingStatus}
    counts.update({s: n for s, n in by_status.all()})
    average = await db.scalar(
        select(func.avg(LibraryItem.rating)).where(
            LibraryItem.library_id == library.id, LibraryItem.rating.is_not(None)
        )
    )
    return LibraryStatistics(
        total=sum(counts.values()),
        by_status=counts,
        average_rating=round(float(average), 2) if average is not None else None,
    )
