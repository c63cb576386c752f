import logging
import math
from dataclasses import dataclass
from litreview.core.errors import LLMError
from litreview.models import Paper
from litreview.services.llm import LLMService

logger = logging.getLogger(__name__)

CONTENT_CHARS = 2000

RATE_PROMPT = """You are a research paper relevance analyzer. Judge how relevant and important the CITED paper is to the CITING paper.

CITING PAPER:
Title: {citing_title}
Authors: {citing_authors}
Year: {citing_year}
Abstract/Content: {citing_content}

CITED PAPER:
Title: {cited_title}
Authors: {cited_authors}
Year: {cited_year}
Abstract/Content: {cited_content}

Consider topic overlap, methodological links, whether the cited paper supplies foundational concepts, methods or data, and whether it is a key reference or a passing mention.

Reply with JSON only:
{{"relevanceScore": 0.0-1.0, "isInfluential": true|false, "reasoning": "2-3 sentences", "suggestedContext": "how the reference relates to the main paper"}}

Bands: 0.0-0.3 low, 0.3-0.6 medium, 0.6-0.8 high, 0.8-1.0 critical."""


@dataclass
class RelevanceRating:
    relevance_score: float
    is_influential: bool
    reasoning: str | None
    context: str | None


def _content(paper: Paper) -> str:
    return (paper.abstract or paper.full_text or "Not available")[:CONTENT_CHARS]


async def rate_relevance(citing: Paper, cited: Paper, llm: LLMService) -> RelevanceRating:
    prompt = RATE_PROMPT.format(
        citing_title=citing.title,
        citing_authors=citing.authors or "Unknown",
        citing_year=citing.publication_year or "Unknown",
        citing_content=_content(citing),
        cited_title=cited.title,
        cited_authors=cited.authors or "Unknown",
        cited_year=cited.publication_year or "Unknown",
        cited_content=_content(cited),
    )
    data = await llm.complete_json([{"role": "user", "content": prompt}], temperature=0.2)

    try:
        score = float(data.get("relevanceScore"))
    except (TypeError, ValueError) as e:
        raise LLMError("Model reply has no numeric relevanceScore") from e
    if not math.isfinite(score):
        raise LLMError("Model reply has a non-finite relevanceScore")

    reasoning = data.get("reasoning") or None
    rating = RelevanceRating(
        relevance_score=round(min(max(score, 0.0), 1.0), 4),
        is_influential=data.get("isInfluential") is True,
        reasoning=reasoning,
        context=data.get("suggestedContext") or reasoning,
    )
    logger.info(
        "Rated reference %s of paper %s: %.2f", cited.id, citing.id, rating.relevance_score
    )
    return rating
