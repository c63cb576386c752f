import logging
from typing import Annotated
from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.core import get_db
from litreview.core.errors import LLMError
from litreview.models import AiSummary, User
from litreview.schemas import SummaryGenerateRequest, SummaryResponse
from litreview.api.v1.auth import get_current_user
from litreview.api.v1.papers import verify_paper_access
from litreview.services.llm import LLMService, get_llm_service
from litreview.services.summary_service import generate_summary, summary_source

router = APIRouter()
logger = logging.getLogger(__name__)


async def _existing_summary(db: AsyncSession, paper_id: int) -> AiSummary | None:
    result = await db.execute(select(AiSummary).where(AiSummary.paper_id == paper_id))
    return result.scalar_one_or_none()


@router.post("/{paper_id}", response_model=SummaryResponse)
async def create_summary(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    llm: Annotated[LLMService, Depends(get_llm_service)],
    options: Annotated[SummaryGenerateRequest | None, Body()] = None,
):
    """Return the stored summary, generating one first when missing or forced."""
    paper = await verify_paper_access(paper_id, current_user, db)
    force = options.force_regenerate if options else False

    summary = await _existing_summary(db, paper.id)
    if summary and not force:
        return summary

    if summary_source(paper) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Paper has no content to summarize")

    try:
        generated = await generate_summary(paper, llm)
    except LLMError as e:
        logger.warning("Summary generation failed for paper %s: %s", paper.id, e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to generate summary")

    if summary is None:
        summary = AiSummary(paper_id=paper.id, summary=generated.summary)
        db.add(summary)
    summary.summary = generated.summary
    summary.key_findings = generated.key_findings
    summary.model = generated.model
    await db.commit()
    await db.refresh(summary)
    return summary


@router.get("/{paper_id}", response_model=SummaryResponse)
async def get_summary(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(paper_id, current_user, db)
    summary = await _existing_summary(db, paper_id)
    if not summary:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Summary not found. Please generate it first.",
        )
    return summary


@router.delete("/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_summary(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(paper_id, current_user, db)
    summary = await _existing_summary(db, paper_id)
    if not summary:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Summary not found")
    await db.delete(summary)
    await db.commit()
