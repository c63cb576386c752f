from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.models import Citation, Paper


async def find_or_create_reference_paper(
    db: AsyncSession,
    user_id: int,
    *,
    title: str,
    authors: str | None = None,
    year: int | None = None,
    doi: str | None = None,
) -> Paper:
    """Reuse a paper the user already has with the same DOI (or title), else add a stub."""
    paper = None
    if doi:
        result = await db.execute(
            select(Paper)
            .where(Paper.user_id == user_id, func.lower(Paper.doi) == doi.lower())
            .order_by(Paper.id)
            .limit(1)
        )
        paper = result.scalar_one_or_none()
    if paper is None:
        result = await db.execute(
            select(Paper)
            .where(Paper.user_id == user_id, func.lower(Paper.title) == title.strip().lower())
            .order_by(Paper.id)
            .limit(1)
        )
        paper = result.scalar_one_or_none()
    if paper is None:
        paper = Paper(
            user_id=user_id,
            title=title.strip(),
            authors=authors,
            publication_year=year,
            doi=doi,
            is_reference=True,
        )
        db.add(paper)
        await db.flush()
    return paper


async def link_reference(
    db: AsyncSession,
    user_id: int,
    citing: Paper,
    cited: Paper,
    **fields,
) -> Citation | None:
    """Add citing -> cited unless it would be a self-citation or already exists."""
    if citing.id == cited.id:
        return None
    existing = await db.execute(
        select(Citation).where(
            Citation.citing_paper_id == citing.id, Citation.cited_paper_id == cited.id
        )
    )
    if existing.scalar_one_or_none():
        return None
    citation = Citation(
        user_id=user_id,
        citing_paper_id=citing.id,
        cited_paper_id=cited.id,
        **fields,
    )
    db.add(citation)
    await db.flush()
    return citation
