import logging
from datetime import datetime, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from litreview.core import get_db, get_settings
from litreview.core.errors import LLMError
from litreview.models import Citation, Paper, User
from litreview.schemas import (
    CitationCreate, CitationUpdate, CitationResponse, CitationWithPaper, PaperBrief, PaperCitations,
    CitationStats, AutoRateResponse, AutoRateAllResponse, ParseReferencesRequest, ParsedReferenceResponse,
    ReferenceAnalysisResponse, RankedReference, AnalyzedCitation, AnalyzedPaper, Recommendations,
    CitationNetworkResponse, NetworkNode, NetworkEdge, EnhancedAnalysisResponse, EnhancedReference,
    TemporalMetrics, ReferenceInterpretation, TrendingReference, TrendingReferencesResponse, TrendingSummary,
)
from litreview.api.v1.auth import get_current_user
from litreview.api.v1.papers import verify_paper_access
from litreview.services.citation_network import build_citation_network
from litreview.services.citation_trends import (
    PaperTrends, forecast_citations, impact_potential, load_cited_by_counts, load_trends,
)
from litreview.services.llm import LLMService, get_llm_service
from litreview.services.reference_analysis import (
    DEFAULT_MIN_RELEVANCE, ReferenceCandidate, ReferenceRanking, ScoredReference, rank_references,
)
from litreview.services.reference_parser import parse_references
from litreview.services.references import find_or_create_reference_paper, link_reference
from litreview.services.relevance_rater import rate_relevance

router = APIRouter()
logger = logging.getLogger(__name__)
settings = get_settings()

AUTO_RATE_FAILED = "Failed to generate AI relevance score. Please try again or rate manually."
TRENDING_CANDIDATES = 50
TRENDING_MIN_RELEVANCE = 0.3
TRENDING_REFERENCE_MIN_SCORE = 70


async def verify_citation_access(
    citation_id: int,
    current_user: User,
    db: AsyncSession,
    with_papers: bool = False,
) -> Citation:
    query = select(Citation).where(Citation.id == citation_id)
    if with_papers:
        query = query.options(selectinload(Citation.citing_paper), selectinload(Citation.cited_paper))
    result = await db.execute(query)
    citation = result.scalar_one_or_none()
    if not citation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Citation not found")
    if citation.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this citation")
    return citation


def _with_paper(citation: Citation, other: Paper) -> CitationWithPaper:
    return CitationWithPaper(
        **CitationResponse.model_validate(citation).model_dump(),
        paper=PaperBrief.model_validate(other),
    )


async def _outgoing(db: AsyncSession, paper_id: int, user_id: int) -> list[Citation]:
    result = await db.execute(
        select(Citation)
        .options(selectinload(Citation.cited_paper).selectinload(Paper.pdf_files))
        .where(Citation.citing_paper_id == paper_id, Citation.user_id == user_id)
        .order_by(Citation.id)
    )
    return list(result.scalars().all())


async def _incoming(db: AsyncSession, paper_id: int, user_id: int) -> list[Citation]:
    result = await db.execute(
        select(Citation)
        .options(selectinload(Citation.citing_paper))
        .where(Citation.cited_paper_id == paper_id, Citation.user_id == user_id)
        .order_by(Citation.id)
    )
    return list(result.scalars().all())


@router.post("", response_model=CitationResponse, status_code=status.HTTP_201_CREATED)
async def create_citation(
    data: CitationCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    if data.citing_paper_id == data.cited_paper_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A paper cannot cite itself")

    await verify_paper_access(data.citing_paper_id, current_user, db)
    await verify_paper_access(data.cited_paper_id, current_user, db)

    existing = await db.execute(
        select(Citation.id).where(
            Citation.citing_paper_id == data.citing_paper_id,
            Citation.cited_paper_id == data.cited_paper_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Citation already exists")

    citation = Citation(user_id=current_user.id, **data.model_dump())
    db.add(citation)
    await db.commit()
    await db.refresh(citation)
    return citation


@router.post("/parse-references", response_model=list[ParsedReferenceResponse], status_code=status.HTTP_201_CREATED)
async def parse_and_link_references(
    data: ParseReferencesRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    llm: Annotated[LLMService, Depends(get_llm_service)],
):
    """Parse raw reference strings and link each one as a reference of the paper."""
    paper = await verify_paper_access(data.paper_id, current_user, db)
    raws = [r.strip() for r in data.references if r and r.strip()]
    parsed = await parse_references(raws, llm)

    linked: list[ParsedReferenceResponse] = []
    for ref in parsed:
        cited = await find_or_create_reference_paper(
            db, current_user.id, title=ref.title, authors=ref.authors, year=ref.year, doi=ref.doi
        )
        citation = await link_reference(
            db, current_user.id, paper, cited,
            citation_depth=1,
            parsed_authors=ref.authors,
            parsed_title=ref.title,
            parsed_year=ref.year,
            parsed_doi=ref.doi,
            parsing_confidence=ref.confidence,
            raw_citation=ref.raw,
        )
        if citation is None:
            continue
        linked.append(ParsedReferenceResponse(
            citation_id=citation.id,
            paper_id=cited.id,
            title=ref.title,
            authors=ref.authors,
            year=ref.year,
            doi=ref.doi,
            confidence=ref.confidence,
        ))

    await db.commit()
    logger.info("Linked %d/%d parsed references to paper %s", len(linked), len(raws), paper.id)
    return linked


@router.get("/paper/{paper_id}", response_model=PaperCitations)
async def get_paper_citations(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(paper_id, current_user, db)
    outgoing = await _outgoing(db, paper_id, current_user.id)
    incoming = await _incoming(db, paper_id, current_user.id)
    return PaperCitations(
        citing=[_with_paper(c, c.cited_paper) for c in outgoing],
        cited_by=[_with_paper(c, c.citing_paper) for c in incoming],
    )


@router.get("/paper/{paper_id}/references", response_model=list[CitationWithPaper])
async def get_references(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(paper_id, current_user, db)
    return [_with_paper(c, c.cited_paper) for c in await _outgoing(db, paper_id, current_user.id)]


@router.get("/paper/{paper_id}/cited-by", response_model=list[CitationWithPaper])
async def get_cited_by(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(paper_id, current_user, db)
    return [_with_paper(c, c.citing_paper) for c in await _incoming(db, paper_id, current_user.id)]


@router.get("/paper/{paper_id}/stats", response_model=CitationStats)
async def get_citation_stats(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(paper_id, current_user, db)
    owned = Citation.user_id == current_user.id
    cited_by = await db.scalar(
        select(func.count(Citation.id)).where(owned, Citation.cited_paper_id == paper_id)
    )
    citing = await db.scalar(
        select(func.count(Citation.id)).where(owned, Citation.citing_paper_id == paper_id)
    )
    return CitationStats(cited_by_count=cited_by or 0, citing_count=citing or 0)


async def _rank(
    db: AsyncSession, paper: Paper, user_id: int, limit: int, min_relevance: float
) -> ReferenceRanking:
    citations = await _outgoing(db, paper.id, user_id)

    cited_ids = {c.cited_paper_id for c in citations}
    in_library_counts: dict[int, int] = {}
    if cited_ids:
        counts = await db.execute(
            select(Citation.cited_paper_id, func.count(Citation.id))
            .where(Citation.user_id == user_id, Citation.cited_paper_id.in_(cited_ids))
            .group_by(Citation.cited_paper_id)
        )
        in_library_counts = {pid: n for pid, n in counts.all()}

    candidates = []
    for c in citations:
        target = c.cited_paper
        count = target.citation_count
        if count is None:
            count = in_library_counts.get(target.id, 0)
        candidates.append(ReferenceCandidate(
            citation_id=c.id,
            cited_paper_id=target.id,
            title=target.title,
            relevance_score=c.relevance_score,
            is_influential=c.is_influential,
            citation_count=count,
            year=target.publication_year,
            authors=target.authors,
            doi=target.doi,
            url=target.url,
            citation_context=c.citation_context,
            has_pdf=target.has_pdf or bool(target.full_text),
        ))

    return rank_references(
        candidates,
        limit=limit,
        min_relevance=min_relevance,
        saturation=settings.citation_count_saturation,
    )


def _ranked_reference(s: ScoredReference) -> RankedReference:
    return RankedReference(
        citation=AnalyzedCitation(
            id=s.candidate.citation_id,
            cited_paper_id=s.candidate.cited_paper_id,
            relevance_score=s.candidate.relevance_score,
            is_influential=s.candidate.is_influential,
            citation_context=s.candidate.citation_context,
        ),
        paper=AnalyzedPaper(
            id=s.candidate.cited_paper_id,
            title=s.candidate.title,
            authors=s.candidate.authors,
            year=s.candidate.year,
            doi=s.candidate.doi,
            url=s.candidate.url,
            has_pdf=s.candidate.has_pdf,
        ),
        score=s.score,
        citation_count=s.candidate.citation_count,
    )


def _analysis_fields(paper: Paper, ranking: ReferenceRanking) -> dict:
    return {
        "paper_id": paper.id,
        "title": paper.title,
        "total_references": ranking.total_references,
        "analyzed_references": ranking.analyzed_references,
        "recommendations": Recommendations(
            high_priority=ranking.high_priority,
            should_download=ranking.should_download,
        ),
    }


def _interpret(trends: PaperTrends) -> ReferenceInterpretation:
    velocity = trends.velocity.overall_velocity
    if velocity > 2:
        impact = "High impact, rapidly cited"
    elif velocity > 0.5:
        impact = "Growing impact"
    else:
        impact = "Stable or declining"
    relevance = {
        "rising": "Increasingly relevant",
        "peak": "Peak relevance",
        "declining": "Established",
    }.get(trends.aging.current_phase, "Classic work")
    return ReferenceInterpretation(impact=impact, relevance=relevance)


@router.get("/paper/{paper_id}/analyze", response_model=ReferenceAnalysisResponse)
async def analyze_references(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(default=10, ge=1, le=50),
    min_relevance: float = Query(default=DEFAULT_MIN_RELEVANCE, ge=0.0, le=1.0, alias="minRelevance"),
):
    """Rank the paper's references by relevance, influence and citation count."""
    paper = await verify_paper_access(paper_id, current_user, db)
    ranking = await _rank(db, paper, current_user.id, limit, min_relevance)
    return ReferenceAnalysisResponse(
        top_references=[_ranked_reference(s) for s in ranking.top_references],
        **_analysis_fields(paper, ranking),
    )


@router.get("/paper/{paper_id}/analyze-enhanced", response_model=EnhancedAnalysisResponse)
async def analyze_references_enhanced(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(default=10, ge=1, le=50),
    min_relevance: float = Query(default=DEFAULT_MIN_RELEVANCE, ge=0.0, le=1.0, alias="minRelevance"),
):
    """Ranked references with citation velocity and aging for each one."""
    paper = await verify_paper_access(paper_id, current_user, db)
    ranking = await _rank(db, paper, current_user.id, limit, min_relevance)
    trends = await load_trends(
        db,
        current_user.id,
        {s.candidate.cited_paper_id: s.candidate.year for s in ranking.top_references},
        datetime.now(timezone.utc).year,
    )

    references = []
    for s in ranking.top_references:
        t = trends[s.candidate.cited_paper_id]
        references.append(EnhancedReference(
            **_ranked_reference(s).model_dump(),
            temporal_metrics=TemporalMetrics(
                velocity=t.velocity.overall_velocity,
                velocity_trend=t.velocity.velocity_trend,
                acceleration=t.velocity.acceleration,
                aging_pattern=t.aging.aging_pattern,
                current_phase=t.aging.current_phase,
                paper_age=t.aging.paper_age,
            ),
            interpretation=_interpret(t),
        ))
    return EnhancedAnalysisResponse(top_references=references, **_analysis_fields(paper, ranking))


@router.get("/paper/{paper_id}/trending-references", response_model=TrendingReferencesResponse)
async def trending_references(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(default=5, ge=1, le=50),
):
    """References with strong impact potential and a growing citation trend."""
    paper = await verify_paper_access(paper_id, current_user, db)
    ranking = await _rank(db, paper, current_user.id, TRENDING_CANDIDATES, TRENDING_MIN_RELEVANCE)
    ids = [s.candidate.cited_paper_id for s in ranking.top_references]
    trends = await load_trends(
        db,
        current_user.id,
        {s.candidate.cited_paper_id: s.candidate.year for s in ranking.top_references},
        datetime.now(timezone.utc).year,
    )
    cited_by = await load_cited_by_counts(db, current_user.id, ids)

    trending = []
    for s in ranking.top_references:
        pid = s.candidate.cited_paper_id
        impact = impact_potential(trends[pid], cited_by.get(pid, 0))
        forecast = forecast_citations(trends[pid].velocity, years_ahead=1)
        growing = forecast.slope > 0
        bonus = {"breakthrough": 20, "high": 10}.get(impact.potential, 0)
        score = impact.impact_score + (30 if growing else 0) + bonus
        if score < TRENDING_REFERENCE_MIN_SCORE:
            continue
        trending.append(TrendingReference(
            citation_id=s.candidate.citation_id,
            paper_id=pid,
            title=s.candidate.title,
            score=s.score,
            trending_score=score,
            impact_score=impact.impact_score,
            potential=impact.potential,
            projected_rank=impact.projected_rank,
            is_growing=growing,
            has_high_potential=impact.impact_score >= 60,
            is_breakthrough=impact.potential == "breakthrough",
            next_year_citations=forecast.predictions[0].predicted_citations if forecast.predictions else 0,
        ))
    trending.sort(key=lambda t: (-t.trending_score, t.citation_id))
    trending = trending[:limit]

    return TrendingReferencesResponse(
        paper_id=paper.id,
        trending_count=len(trending),
        trending_references=trending,
        summary=TrendingSummary(
            breakthrough_papers=sum(1 for t in trending if t.trending_score >= 100),
            growing_papers=sum(1 for t in trending if t.is_growing),
            high_impact_papers=sum(1 for t in trending if t.has_high_potential),
        ),
    )


@router.post("/paper/{paper_id}/auto-rate-all", response_model=AutoRateAllResponse)
async def auto_rate_all(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    llm: Annotated[LLMService, Depends(get_llm_service)],
):
    """Ask the model to rate every reference that has no relevance score yet."""
    paper = await verify_paper_access(paper_id, current_user, db)
    citations = [c for c in await _outgoing(db, paper.id, current_user.id) if c.relevance_score is None]

    rated = failed = 0
    for citation in citations:
        try:
            rating = await rate_relevance(paper, citation.cited_paper, llm)
        except LLMError as e:
            logger.warning("Auto-rate failed for citation %s: %s", citation.id, e)
            failed += 1
            continue
        citation.relevance_score = rating.relevance_score
        citation.is_influential = rating.is_influential
        citation.citation_context = rating.context or citation.citation_context
        rated += 1

    await db.commit()
    return AutoRateAllResponse(rated=rated, failed=failed)


@router.get("/network/{paper_id}", response_model=CitationNetworkResponse)
async def get_citation_network(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    depth: int = Query(default=2, ge=1),
):
    """Citation subgraph around a paper in both directions, for visualization."""
    paper = await verify_paper_access(paper_id, current_user, db)
    depth = min(depth, settings.citation_network_max_depth)
    network = await build_citation_network(db, paper, current_user.id, depth)
    return CitationNetworkResponse(
        nodes=[
            NetworkNode(
                id=p.id,
                title=p.title,
                year=p.publication_year,
                authors=p.authors,
                is_reference=p.is_reference,
            )
            for p in network.nodes
        ],
        edges=[
            NetworkEdge(
                source=e.source,
                target=e.target,
                relevance_score=e.relevance_score,
                is_influential=e.is_influential,
            )
            for e in network.edges
        ],
    )


@router.patch("/{citation_id}", response_model=CitationResponse)
async def update_citation(
    citation_id: int,
    data: CitationUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    citation = await verify_citation_access(citation_id, current_user, db)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(citation, field, value)
    await db.commit()
    await db.refresh(citation)
    return citation


@router.delete("/{citation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_citation(
    citation_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    citation = await verify_citation_access(citation_id, current_user, db)
    await db.delete(citation)
    await db.commit()


@router.post("/{citation_id}/auto-rate", response_model=AutoRateResponse)
async def auto_rate_citation(
    citation_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    llm: Annotated[LLMService, Depends(get_llm_service)],
):
    citation = await verify_citation_access(citation_id, current_user, db, with_papers=True)
    try:
        rating = await rate_relevance(citation.citing_paper, citation.cited_paper, llm)
    except LLMError as e:
        logger.warning("Auto-rate failed for citation %s: %s", citation.id, e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=AUTO_RATE_FAILED)

    citation.relevance_score = rating.relevance_score
    citation.is_influential = rating.is_influential
    citation.citation_context = rating.context or citation.citation_context
    await db.commit()
    await db.refresh(citation)
    return AutoRateResponse(citation=CitationResponse.model_validate(citation), reasoning=rating.reasoning)
