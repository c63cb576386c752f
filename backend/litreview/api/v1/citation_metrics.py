from dataclasses import asdict
from datetime import datetime, timezone
from typing import Annotated, Literal
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.core import get_db, get_settings
from litreview.models import Paper, User
from litreview.schemas import (
    CentralityEntry, CentralityResponse, CoCitationEntry, CouplingEntry, SimilarPaperEntry,
    CommunityLeader, CommunityLeaders, CommunityLeadersResponse, CommunityTimeline, CommunityDynamicsResponse,
    CitationVelocityResponse, CitationBurstsResponse, CitationAgingResponse, CitationForecastResponse,
    ImpactPotentialResponse, TrendingPaperEntry,
)
from litreview.api.v1.auth import get_current_user
from litreview.api.v1.papers import verify_paper_access
from litreview.services.citation_metrics import (
    CitationGraphMetrics, bibliographic_coupling, co_citation, similar_papers,
)
from litreview.services.citation_network import CitationNetwork, build_citation_network, load_citation_pairs
from litreview.services.citation_trends import (
    RECENT_YEARS, TRENDING_MIN_RECENT, PaperTrends, forecast_citations, impact_potential,
    load_cited_by_counts, load_citing_years, load_trends, paper_trends, trending_score,
)

router = APIRouter()
settings = get_settings()


def _current_year() -> int:
    return datetime.now(timezone.utc).year


async def _network(paper_id: int, depth: int, current_user: User, db: AsyncSession) -> CitationNetwork:
    paper = await verify_paper_access(paper_id, current_user, db)
    return await build_citation_network(
        db, paper, current_user.id, min(depth, settings.citation_network_max_depth)
    )


async def _network_metrics(paper_id: int, depth: int, current_user: User, db: AsyncSession) -> CitationGraphMetrics:
    network = await _network(paper_id, depth, current_user, db)
    return _graph(network)


def _graph(network: CitationNetwork) -> CitationGraphMetrics:
    return CitationGraphMetrics(
        nodes=[p.id for p in network.nodes],
        edges=[(e.source, e.target) for e in network.edges],
    )


async def _titles(db: AsyncSession, paper_ids: list[int]) -> dict[int, str]:
    if not paper_ids:
        return {}
    result = await db.execute(select(Paper.id, Paper.title).where(Paper.id.in_(paper_ids)))
    return {pid: title for pid, title in result.all()}


async def _paper_trends(paper_id: int, current_user: User, db: AsyncSession) -> tuple[Paper, PaperTrends]:
    paper = await verify_paper_access(paper_id, current_user, db)
    trends = await load_trends(db, current_user.id, {paper.id: paper.publication_year}, _current_year())
    return paper, trends[paper.id]


@router.get("/pagerank/{paper_id}", response_model=dict[int, float])
async def pagerank(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    depth: int = Query(default=2, ge=1),
):
    metrics = await _network_metrics(paper_id, depth, current_user, db)
    return metrics.pagerank()


@router.get("/centrality/{paper_id}", response_model=CentralityResponse)
async def centrality(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    depth: int = Query(default=2, ge=1),
):
    metrics = await _network_metrics(paper_id, depth, current_user, db)
    entries, most_cited = metrics.centrality()
    return CentralityResponse(
        nodes=[CentralityEntry(**e) for e in entries],
        most_cited=[CentralityEntry(**e) for e in most_cited],
    )


@router.get("/communities/{paper_id}", response_model=list[list[int]])
async def communities(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    depth: int = Query(default=2, ge=1),
):
    metrics = await _network_metrics(paper_id, depth, current_user, db)
    return metrics.communities()


@router.get("/co-citation/{paper_id}", response_model=list[CoCitationEntry])
async def co_citation_analysis(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Papers that are cited together with this one."""
    await verify_paper_access(paper_id, current_user, db)
    rows = co_citation(paper_id, await load_citation_pairs(db, current_user.id))
    titles = await _titles(db, [r["paper_id"] for r in rows])
    return [CoCitationEntry(title=titles.get(r["paper_id"], ""), **r) for r in rows]


@router.get("/coupling/{paper_id}", response_model=list[CouplingEntry])
async def coupling_analysis(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Papers that share references with this one."""
    await verify_paper_access(paper_id, current_user, db)
    rows = bibliographic_coupling(paper_id, await load_citation_pairs(db, current_user.id))
    titles = await _titles(db, [r["paper_id"] for r in rows])
    return [CouplingEntry(title=titles.get(r["paper_id"], ""), **r) for r in rows]


@router.get("/similar/{paper_id}", response_model=list[SimilarPaperEntry])
async def similar(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    method: Literal["co-citation", "coupling", "combined"] = "combined",
    limit: int = Query(default=10, ge=1, le=50),
):
    await verify_paper_access(paper_id, current_user, db)
    rows = similar_papers(paper_id, await load_citation_pairs(db, current_user.id), method=method, limit=limit)
    titles = await _titles(db, [r["paper_id"] for r in rows])
    return [SimilarPaperEntry(title=titles.get(r["paper_id"], ""), **r) for r in rows]


@router.get("/network/{paper_id}/community-leaders", response_model=CommunityLeadersResponse)
async def community_leaders(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    depth: int = Query(default=2, ge=1),
):
    """Most influential papers inside each community of the citation network."""
    network = await _network(paper_id, depth, current_user, db)
    metrics = _graph(network)
    groups = metrics.communities()
    papers = {p.id: p for p in network.nodes}
    return CommunityLeadersResponse(
        paper_id=paper_id,
        network_size=len(network.nodes),
        community_count=len(groups),
        communities=[
            CommunityLeaders(
                community_id=entry["community_id"],
                community_size=entry["community_size"],
                leaders=[
                    CommunityLeader(
                        title=papers[leader["paper_id"]].title,
                        year=papers[leader["paper_id"]].publication_year,
                        **leader,
                    )
                    for leader in entry["leaders"]
                ],
            )
            for entry in metrics.community_leaders(groups)
        ],
    )


@router.get("/network/{paper_id}/community-dynamics", response_model=CommunityDynamicsResponse)
async def community_dynamics(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    depth: int = Query(default=2, ge=1),
):
    """How each community of the citation network grew over the years."""
    network = await _network(paper_id, depth, current_user, db)
    metrics = _graph(network)
    groups = metrics.communities()
    timelines = metrics.community_dynamics(
        groups, {p.id: p.publication_year for p in network.nodes}, _current_year()
    )
    return CommunityDynamicsResponse(
        paper_id=paper_id,
        network_size=len(network.nodes),
        community_count=len(groups),
        timelines=[CommunityTimeline(**t) for t in timelines],
        emerging_communities=[t["community_id"] for t in timelines if t["growth"] == "emerging"],
        declining_communities=[t["community_id"] for t in timelines if t["growth"] == "declining"],
    )


@router.get("/temporal/{paper_id}/velocity", response_model=CitationVelocityResponse)
async def citation_velocity(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Citations per year, dated by the citing papers' publication years."""
    paper, trends = await _paper_trends(paper_id, current_user, db)
    return CitationVelocityResponse(paper_id=paper.id, **asdict(trends.velocity))


@router.get("/temporal/{paper_id}/bursts", response_model=CitationBurstsResponse)
async def citation_bursts(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    paper, trends = await _paper_trends(paper_id, current_user, db)
    return CitationBurstsResponse(paper_id=paper.id, **asdict(trends.bursts))


@router.get("/temporal/{paper_id}/aging", response_model=CitationAgingResponse)
async def citation_aging(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    paper, trends = await _paper_trends(paper_id, current_user, db)
    return CitationAgingResponse(paper_id=paper.id, **asdict(trends.aging))


@router.get("/predictive/trending", response_model=list[TrendingPaperEntry])
async def trending_papers(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(default=10, ge=1, le=50),
):
    """Library papers gaining citations fastest in recent years."""
    current_year = _current_year()
    citing_years = await load_citing_years(db, current_user.id)
    candidates = [
        pid for pid, years in citing_years.items()
        if sum(1 for y in years if y > current_year - RECENT_YEARS) >= TRENDING_MIN_RECENT
    ]
    if not candidates:
        return []

    result = await db.execute(
        select(Paper.id, Paper.title, Paper.publication_year).where(Paper.id.in_(candidates))
    )
    scored = []
    for pid, title, pub_year in result.all():
        trends = paper_trends(citing_years[pid], pub_year, current_year)
        score, change = trending_score(trends)
        scored.append((pid, title, trends, score, change))
    scored.sort(key=lambda s: (-s[3], s[0]))

    return [
        TrendingPaperEntry(
            rank=rank,
            paper_id=pid,
            title=title,
            trending_score=score,
            recent_velocity=trends.velocity.recent_velocity,
            velocity_change=change,
            burst_active=trends.bursts.active,
        )
        for rank, (pid, title, trends, score, change) in enumerate(scored[:limit], start=1)
    ]


@router.get("/predictive/{paper_id}/forecast", response_model=CitationForecastResponse)
async def citation_forecast(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    years_ahead: int = Query(default=3, ge=1, le=10, alias="yearsAhead"),
):
    """Linear projection of yearly citations."""
    paper, trends = await _paper_trends(paper_id, current_user, db)
    forecast = forecast_citations(trends.velocity, years_ahead)
    return CitationForecastResponse(paper_id=paper.id, **asdict(forecast))


@router.get("/predictive/{paper_id}/impact", response_model=ImpactPotentialResponse)
async def impact(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    paper, trends = await _paper_trends(paper_id, current_user, db)
    cited_by = await load_cited_by_counts(db, current_user.id, [paper.id])
    return ImpactPotentialResponse(paper_id=paper.id, **asdict(impact_potential(trends, cited_by.get(paper.id, 0))))
