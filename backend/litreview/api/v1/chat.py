import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.core import get_db, get_settings
from litreview.core.errors import LLMError
from litreview.models import User
from litreview.schemas import ChatRequest, ChatResponse, ChatSuggestions
from litreview.api.v1.auth import get_current_user
from litreview.api.v1.papers import verify_paper_access
from litreview.services.chat_service import build_paper_context, generate_reply, suggested_prompts
from litreview.services.llm import LLMService, get_llm_service

router = APIRouter()
logger = logging.getLogger(__name__)
settings = get_settings()


@router.post("/message", response_model=ChatResponse)
async def send_message(
    data: ChatRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    llm: Annotated[LLMService, Depends(get_llm_service)],
):
    context_parts = []
    if data.paper_id is not None:
        paper = await verify_paper_access(data.paper_id, current_user, db)
        context_parts.append(build_paper_context(paper, settings.chat_context_max_chars))
    if data.paper_context:
        context_parts.append(f"Additional Context:\n{data.paper_context}")

    try:
        reply = await generate_reply(
            llm,
            data.message,
            history=[turn.model_dump() for turn in data.history],
            paper_context="\n\n".join(context_parts) or None,
        )
    except LLMError:
        logger.exception("Chat reply failed for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to generate response. Please try again.",
        )
    return ChatResponse(reply=reply, paper_id=data.paper_id)


@router.get("/suggestions", response_model=ChatSuggestions)
async def get_suggestions(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    paper_id: int | None = Query(default=None, alias="paperId"),
):
    paper = None
    if paper_id is not None:
        paper = await verify_paper_access(paper_id, current_user, db)
    return ChatSuggestions(suggestions=suggested_prompts(paper))
