import logging
import math
from typing import Annotated, Literal
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from litreview.core import get_db
from litreview.core.errors import InvalidIdentifierError, MetadataLookupError
from litreview.models import Paper, Tag, User
from litreview.schemas import (
    Page, PaperCreate, PaperUpdate, PaperResponse, PaperStatusUpdate, PaperFavoriteUpdate,
    PaperTagsUpdate, PaperStatistics, MetadataRequest, PaperMetadataResponse,
)
from litreview.api.v1.auth import get_current_user
from litreview.services.paper_metadata import fetch_metadata
from litreview.services.references import find_or_create_reference_paper, link_reference
from litreview.services.storage import StorageService, get_storage

router = APIRouter()
logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "createdAt": Paper.created_at,
    "updatedAt": Paper.updated_at,
    "title": Paper.title,
    "publicationYear": Paper.publication_year,
}
NON_NULLABLE_FIELDS = {"title", "status", "favorite"}


async def verify_paper_access(
    paper_id: int,
    current_user: User,
    db: AsyncSession,
    options: list | None = None,
) -> Paper:
    """Load a paper the current user owns, or raise 404/403."""
    query = select(Paper).where(Paper.id == paper_id)
    if options:
        query = query.options(*options)
    result = await db.execute(query)
    paper = result.scalar_one_or_none()
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    if paper.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this paper")
    return paper


async def _load_with_tags(db: AsyncSession, paper_id: int) -> Paper:
    result = await db.execute(
        select(Paper)
        .options(selectinload(Paper.tags))
        .where(Paper.id == paper_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _resolve_tags(db: AsyncSession, current_user: User, tag_ids: list[int]) -> list[Tag]:
    wanted = set(tag_ids)
    if not wanted:
        return []
    result = await db.execute(select(Tag).where(Tag.id.in_(wanted), Tag.user_id == current_user.id))
    tags = list(result.scalars().all())
    if len(tags) != len(wanted):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    return tags


def _parse_id_list(raw: str | None) -> list[int]:
    if not raw:
        return []
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid tag ids")


@router.post("", response_model=PaperResponse, status_code=status.HTTP_201_CREATED)
async def create_paper(
    paper_data: PaperCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    tags = await _resolve_tags(db, current_user, paper_data.tag_ids)
    paper = Paper(
        user_id=current_user.id,
        **paper_data.model_dump(exclude={"tag_ids", "references"}),
    )
    paper.tags = tags
    db.add(paper)
    await db.flush()

    for ref in paper_data.references:
        cited = await find_or_create_reference_paper(
            db, current_user.id, title=ref.title, authors=ref.authors, year=ref.year, doi=ref.doi
        )
        await link_reference(db, current_user.id, paper, cited, citation_depth=1)

    await db.commit()
    logger.info("Created paper %s with %d references", paper.id, len(paper_data.references))
    return await _load_with_tags(db, paper.id)


@router.get("", response_model=Page[PaperResponse])
async def search_papers(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    q: str | None = Query(default=None, max_length=200),
    year: int | None = None,
    author: str | None = None,
    journal: str | None = None,
    tags: str | None = Query(default=None, description="Comma-separated tag ids"),
    status_filter: Literal["to_read", "reading", "completed"] | None = Query(default=None, alias="status"),
    favorite: bool | None = None,
    include_references: bool = Query(default=False, alias="includeReferences"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100, alias="pageSize"),
    sort_by: Literal["createdAt", "updatedAt", "title", "publicationYear"] = Query(
        default="createdAt", alias="sortBy"
    ),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
):
    query = select(Paper).where(Paper.user_id == current_user.id)
    if not include_references:
        query = query.where(Paper.is_reference.is_(False))
    if q:
        pattern = f"%{q.lower()}%"
        query = query.where(or_(
            func.lower(Paper.title).like(pattern),
            func.lower(Paper.abstract).like(pattern),
            func.lower(Paper.authors).like(pattern),
            func.lower(Paper.keywords).like(pattern),
        ))
    if year is not None:
        query = query.where(Paper.publication_year == year)
    if author:
        query = query.where(func.lower(Paper.authors).like(f"%{author.lower()}%"))
    if journal:
        query = query.where(func.lower(Paper.journal).like(f"%{journal.lower()}%"))
    tag_ids = _parse_id_list(tags)
    if tag_ids:
        query = query.where(Paper.tags.any(Tag.id.in_(tag_ids)))
    if status_filter:
        query = query.where(Paper.status == status_filter)
    if favorite is not None:
        query = query.where(Paper.favorite.is_(favorite))

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    column = SORT_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    result = await db.execute(
        query.options(selectinload(Paper.tags))
        .order_by(ordering, Paper.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return Page[PaperResponse](
        data=[PaperResponse.model_validate(p) for p in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


@router.get("/statistics", response_model=PaperStatistics)
async def paper_statistics(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    owned = (Paper.user_id == current_user.id, Paper.is_reference.is_(False))

    total = await db.scalar(select(func.count(Paper.id)).where(*owned)) or 0
    favorites = await db.scalar(
        select(func.count(Paper.id)).where(*owned, Paper.favorite.is_(True))
    ) or 0
    by_status = await db.execute(
        select(Paper.status, func.count(Paper.id)).where(*owned).group_by(Paper.status)
    )
    by_year = await db.execute(
        select(Paper.publication_year, func.count(Paper.id))
        .where(*owned)
        .group_by(Paper.publication_year)
        .order_by(Paper.publication_year)
    )

    return PaperStatistics(
        total=total,
        favorites=favorites,
        by_status={s: n for s, n in by_status.all()},
        by_year={str(y) if y is not None else "unknown": n for y, n in by_year.all()},
    )


@router.post("/extract-metadata", response_model=PaperMetadataResponse)
async def extract_metadata(
    body: MetadataRequest,
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Resolve a DOI or arXiv id into paper fields for quick-add."""
    try:
        metadata = await fetch_metadata(body.input)
    except InvalidIdentifierError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Input must be a DOI or an arXiv identifier",
        )
    except MetadataLookupError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unable to fetch paper metadata from any source",
        )
    return PaperMetadataResponse(**metadata.to_dict())


@router.get("/{paper_id}", response_model=PaperResponse)
async def get_paper(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await verify_paper_access(paper_id, current_user, db, options=[selectinload(Paper.tags)])


@router.patch("/{paper_id}", response_model=PaperResponse)
async def update_paper(
    paper_id: int,
    data: PaperUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    paper = await verify_paper_access(paper_id, current_user, db, options=[selectinload(Paper.tags)])
    changes = data.model_dump(exclude_unset=True, exclude={"tag_ids"})
    for field, value in changes.items():
        if value is None and field in NON_NULLABLE_FIELDS:
            continue
        setattr(paper, field, value)
    if data.tag_ids is not None:
        paper.tags = await _resolve_tags(db, current_user, data.tag_ids)
    await db.commit()
    return await _load_with_tags(db, paper.id)


@router.patch("/{paper_id}/status", response_model=PaperResponse)
async def update_paper_status(
    paper_id: int,
    data: PaperStatusUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    paper = await verify_paper_access(paper_id, current_user, db)
    paper.status = data.status
    await db.commit()
    return await _load_with_tags(db, paper.id)


@router.patch("/{paper_id}/favorite", response_model=PaperResponse)
async def update_paper_favorite(
    paper_id: int,
    data: PaperFavoriteUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    paper = await verify_paper_access(paper_id, current_user, db)
    paper.favorite = data.favorite
    await db.commit()
    return await _load_with_tags(db, paper.id)


@router.post("/{paper_id}/tags", response_model=PaperResponse)
async def set_paper_tags(
    paper_id: int,
    data: PaperTagsUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    paper = await verify_paper_access(paper_id, current_user, db, options=[selectinload(Paper.tags)])
    paper.tags = await _resolve_tags(db, current_user, data.tag_ids)
    await db.commit()
    return await _load_with_tags(db, paper.id)


@router.delete("/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_paper(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageService, Depends(get_storage)],
):
    paper = await verify_paper_access(paper_id, current_user, db, options=[selectinload(Paper.pdf_files)])
    storage_keys = [f.storage_key for f in paper.pdf_files]
    await db.delete(paper)
    await db.commit()

    for key in storage_keys:
        await storage.delete_file(key)
    logger.info("Deleted paper %s (%d files)", paper_id, len(storage_keys))
