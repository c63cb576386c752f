"""Temporal and predictive citation metrics.

A citation is dated by the publication year of the citing paper, so all
series here are yearly. Citations whose citing paper has no year are left
out of every series. The pure functions take ``current_year`` explicitly;
only the ``load_*`` coroutines touch the database.
"""
import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
import numpy as np
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.models import Citation, Paper

logger = logging.getLogger(__name__)

RECENT_YEARS = 3
ACCELERATION_THRESHOLD = 0.5
BURST_MIN_HISTORY = 6
BURST_MIN_YEARS = 2
BURST_FACTOR = 2.0
FORECAST_MIN_HISTORY = 4
FORECAST_FULL_HISTORY = 10
TRENDING_MIN_RECENT = 3


@dataclass
class YearCount:
    year: int
    citation_count: int
    cumulative_count: int


@dataclass
class CitationVelocity:
    overall_velocity: float = 0.0
    recent_velocity: float = 0.0
    acceleration: float = 0.0
    velocity_trend: str = "stable"
    yearly_data: list[YearCount] = field(default_factory=list)
    peak_year: int | None = None
    peak_citations: int = 0


@dataclass
class Burst:
    start_year: int
    end_year: int
    duration: int
    peak_citations: int
    intensity: float


@dataclass
class CitationBursts:
    has_burst: bool = False
    active: bool = False
    current_start_year: int | None = None
    current_duration: int = 0
    current_intensity: float = 0.0
    historical_bursts: list[Burst] = field(default_factory=list)
    burst_probability: float = 0.0


@dataclass
class AgingYear:
    years_since_publication: int
    citations: int
    percentage: float
    cumulative: int


@dataclass
class CitationAging:
    paper_age: int
    citation_half_life: int = 0
    aging_pattern: str = "dormant"
    peak_year: int = 0
    current_phase: str = "dormant"
    yearly_breakdown: list[AgingYear] = field(default_factory=list)
    projected_lifespan: int = 0


@dataclass
class YearPrediction:
    year: int
    predicted_citations: int
    lower: int
    upper: int


@dataclass
class CitationForecast:
    predictions: list[YearPrediction] = field(default_factory=list)
    total_predicted: int = 0
    confidence: float = 0.0
    slope: float = 0.0
    intercept: float = 0.0
    r_squared: float = 0.0
    recommendation: str = (
        f"Insufficient data for prediction (need at least {FORECAST_MIN_HISTORY} years of history)"
    )


@dataclass
class ImpactPotential:
    impact_score: int
    potential: str
    velocity_score: int
    burst_score: int
    network_score: int
    freshness: int
    projected_rank: str
    time_to_impact: int
    risk_factors: list[str]
    strengths: list[str]


@dataclass
class PaperTrends:
    velocity: CitationVelocity
    bursts: CitationBursts
    aging: CitationAging


def citation_velocity(
    citing_years: list[int], publication_year: int | None, current_year: int
) -> CitationVelocity:
    """Citations per year over the paper's life and over the last few years."""
    if not citing_years:
        return CitationVelocity()

    counts = Counter(citing_years)
    first, last = min(counts), max(max(counts), current_year)
    yearly, cumulative = [], 0
    for year in range(first, last + 1):
        cumulative += counts.get(year, 0)
        yearly.append(YearCount(year=year, citation_count=counts.get(year, 0), cumulative_count=cumulative))

    peak = max(yearly, key=lambda y: (y.citation_count, -y.year))
    start = publication_year if publication_year is not None else first
    overall = len(citing_years) / max(1, current_year - start)
    recent = sum(n for year, n in counts.items() if year > current_year - RECENT_YEARS) / RECENT_YEARS
    acceleration = recent - overall

    if acceleration > ACCELERATION_THRESHOLD:
        trend = "accelerating"
    elif acceleration < -ACCELERATION_THRESHOLD:
        trend = "decelerating"
    else:
        trend = "stable"

    return CitationVelocity(
        overall_velocity=round(overall, 2),
        recent_velocity=round(recent, 2),
        acceleration=round(acceleration, 2),
        velocity_trend=trend,
        yearly_data=yearly,
        peak_year=peak.year,
        peak_citations=peak.citation_count,
    )


def citation_bursts(velocity: CitationVelocity) -> CitationBursts:
    """Runs of years cited at more than twice the median yearly rate."""
    yearly = velocity.yearly_data
    if len(yearly) < BURST_MIN_HISTORY:
        return CitationBursts()

    ordered = sorted(y.citation_count for y in yearly)
    baseline = max(1, ordered[len(ordered) // 2])

    bursts: list[Burst] = []
    start: int | None = None
    peak = 0
    for i, entry in enumerate(yearly):
        if entry.citation_count > baseline * BURST_FACTOR:
            if start is None:
                start, peak = i, entry.citation_count
            else:
                peak = max(peak, entry.citation_count)
        elif start is not None:
            duration = i - start
            if duration >= BURST_MIN_YEARS:
                bursts.append(Burst(
                    start_year=yearly[start].year,
                    end_year=yearly[i - 1].year,
                    duration=duration,
                    peak_citations=peak,
                    intensity=round(peak / baseline, 2),
                ))
            start, peak = None, 0

    result = CitationBursts(historical_bursts=bursts)
    if start is not None:
        result.active = True
        result.current_start_year = yearly[start].year
        result.current_duration = len(yearly) - start
        result.current_intensity = round(yearly[-1].citation_count / baseline, 2)

    recent = yearly[-BURST_MIN_HISTORY:]
    recent_average = sum(y.citation_count for y in recent) / len(recent)
    probability = min(0.95, max(0.05, (recent_average / baseline - 1) * 0.5))
    result.burst_probability = round(probability, 2)
    result.has_burst = bool(bursts) or result.active
    return result


def citation_aging(
    citing_years: list[int], publication_year: int | None, current_year: int
) -> CitationAging:
    """How citations spread over the years since publication."""
    paper_age = current_year - (publication_year if publication_year is not None else current_year)
    offsets = [year - publication_year for year in citing_years if publication_year is not None]
    offsets = [o for o in offsets if o >= 0]
    if not offsets or paper_age < 1:
        return CitationAging(paper_age=paper_age)

    counts = Counter(offsets)
    total = len(offsets)
    breakdown, cumulative = [], 0
    for offset in range(0, max(max(counts), paper_age) + 1):
        n = counts.get(offset, 0)
        cumulative += n
        breakdown.append(AgingYear(
            years_since_publication=offset,
            citations=n,
            percentage=round(n / total * 100, 1),
            cumulative=cumulative,
        ))

    peak = max(breakdown, key=lambda y: (y.citations, -y.years_since_publication))
    half_life = next(y.years_since_publication for y in breakdown if y.cumulative >= total / 2)

    if peak.years_since_publication <= 2:
        pattern = "immediate"
    elif peak.years_since_publication > 5:
        pattern = "delayed"
    elif half_life < paper_age * 0.3:
        pattern = "classic"
    else:
        pattern = "sustained"

    recent = breakdown[-RECENT_YEARS:]
    recent_average = sum(y.citations for y in recent) / len(recent)
    if recent_average < peak.citations * 0.2:
        phase = "dormant"
    elif recent_average >= peak.citations * 0.8:
        phase = "peak"
    elif recent[-1].citations > recent[0].citations:
        phase = "rising"
    else:
        phase = "declining"

    if phase in ("rising", "peak"):
        lifespan = paper_age + 5
    elif phase == "declining":
        lifespan = paper_age + 2
    else:
        lifespan = paper_age

    return CitationAging(
        paper_age=paper_age,
        citation_half_life=half_life,
        aging_pattern=pattern,
        peak_year=peak.years_since_publication,
        current_phase=phase,
        yearly_breakdown=breakdown,
        projected_lifespan=lifespan,
    )


def forecast_citations(velocity: CitationVelocity, years_ahead: int = 3) -> CitationForecast:
    """Linear trend over yearly counts, extended ``years_ahead`` years."""
    yearly = velocity.yearly_data
    if len(yearly) < FORECAST_MIN_HISTORY:
        return CitationForecast()

    x = np.arange(len(yearly), dtype=float)
    y = np.array([entry.citation_count for entry in yearly], dtype=float)
    slope, intercept = np.polyfit(x, y, 1)
    residuals = y - (slope * x + intercept)

    ss_total = float(np.sum((y - y.mean()) ** 2))
    r_squared = 1 - float(np.sum(residuals ** 2)) / ss_total if ss_total > 0 else 0.0
    if not math.isfinite(r_squared):
        r_squared = 0.0
    standard_error = float(np.std(residuals))
    if not math.isfinite(standard_error):
        standard_error = 1.0

    margin = 1.96 * standard_error
    predictions = []
    for i in range(1, years_ahead + 1):
        predicted = max(0.0, slope * (len(yearly) - 1 + i) + intercept)
        predictions.append(YearPrediction(
            year=yearly[-1].year + i,
            predicted_citations=round(predicted),
            lower=round(max(0.0, predicted - margin)),
            upper=round(predicted + margin),
        ))

    confidence = round(r_squared * min(1.0, len(yearly) / FORECAST_FULL_HISTORY), 2)
    if confidence > 0.7 and slope > 0:
        recommendation = "Strong upward trend, high confidence in continued growth"
    elif confidence > 0.7 and slope < 0:
        recommendation = "Strong downward trend, citations likely to decline"
    elif confidence > 0.4:
        recommendation = "Moderate confidence, the trend is somewhat predictable"
    else:
        recommendation = "Low confidence, the citation pattern is irregular"

    return CitationForecast(
        predictions=predictions,
        total_predicted=sum(p.predicted_citations for p in predictions),
        confidence=confidence,
        slope=round(float(slope), 4),
        intercept=round(float(intercept), 2),
        r_squared=round(r_squared, 3),
        recommendation=recommendation,
    )


def impact_potential(trends: PaperTrends, cited_by_count: int) -> ImpactPotential:
    """Composite 0-100 score from velocity, bursts, network position and age."""
    velocity, bursts, aging = trends.velocity, trends.bursts, trends.aging
    network = min(1.0, cited_by_count / 100)

    velocity_score = min(100.0, velocity.recent_velocity / 10 * 100)
    burst_score = min(100.0, bursts.burst_probability * 100 + 30) if bursts.has_burst else 0.0
    network_score = min(100.0, network / 0.1 * 100)
    freshness = max(0.0, 100.0 - aging.paper_age * 10)

    impact = round(velocity_score * 0.3 + burst_score * 0.25 + network_score * 0.3 + freshness * 0.15)
    if impact > 80:
        potential = "breakthrough"
    elif impact > 60:
        potential = "high"
    elif impact > 40:
        potential = "moderate"
    else:
        potential = "low"

    if impact > 75:
        projected_rank = "Top 10% (Q1)"
    elif impact > 50:
        projected_rank = "Top 25% (Q1-Q2)"
    elif impact > 30:
        projected_rank = "Top 50% (Q2-Q3)"
    else:
        projected_rank = "Bottom 50% (Q3-Q4)"

    time_to_impact = 3
    if velocity.velocity_trend == "accelerating":
        time_to_impact = 2
    elif velocity.velocity_trend == "decelerating":
        time_to_impact = 5
    if aging.current_phase == "peak":
        time_to_impact = 0

    risks = []
    if velocity.velocity_trend == "decelerating":
        risks.append("Declining citation velocity")
    if aging.paper_age > 5 and aging.current_phase == "declining":
        risks.append("Aging paper with declining interest")
    if not bursts.has_burst and bursts.burst_probability < 0.3:
        risks.append("Low probability of citation burst")
    if network < 0.01:
        risks.append("Weak network position")

    strengths = []
    if velocity.velocity_trend == "accelerating":
        strengths.append("Accelerating citation rate")
    if bursts.active:
        strengths.append(f"Active citation burst ({bursts.current_intensity}x intensity)")
    if network > 0.05:
        strengths.append("Strong network centrality")
    if aging.current_phase in ("rising", "peak"):
        strengths.append("In growth or peak phase")

    return ImpactPotential(
        impact_score=impact,
        potential=potential,
        velocity_score=round(velocity_score),
        burst_score=round(burst_score),
        network_score=round(network_score),
        freshness=round(freshness),
        projected_rank=projected_rank,
        time_to_impact=time_to_impact,
        risk_factors=risks,
        strengths=strengths,
    )


def paper_trends(citing_years: list[int], publication_year: int | None, current_year: int) -> PaperTrends:
    velocity = citation_velocity(citing_years, publication_year, current_year)
    return PaperTrends(
        velocity=velocity,
        bursts=citation_bursts(velocity),
        aging=citation_aging(citing_years, publication_year, current_year),
    )


def trending_score(trends: PaperTrends) -> tuple[float, float]:
    """Trending score and the percentage change of recent over overall velocity."""
    velocity, bursts = trends.velocity, trends.bursts
    score = velocity.recent_velocity + max(velocity.acceleration, 0.0) * 10
    if bursts.active:
        score += bursts.current_intensity * 5
    if velocity.overall_velocity > 0:
        change = (velocity.recent_velocity - velocity.overall_velocity) / velocity.overall_velocity * 100
    else:
        change = 100.0
    return round(score, 2), round(change, 1)


async def load_citing_years(
    db: AsyncSession, user_id: int, paper_ids: list[int] | None = None
) -> dict[int, list[int]]:
    """Publication years of the papers citing each cited paper, per user."""
    query = (
        select(Citation.cited_paper_id, Paper.publication_year)
        .join(Paper, Paper.id == Citation.citing_paper_id)
        .where(Citation.user_id == user_id, Paper.publication_year.is_not(None))
    )
    if paper_ids is not None:
        if not paper_ids:
            return {}
        query = query.where(Citation.cited_paper_id.in_(paper_ids))
    years: dict[int, list[int]] = defaultdict(list)
    for cited_id, year in (await db.execute(query)).all():
        years[cited_id].append(year)
    logger.debug("Loaded citing years for %d papers", len(years))
    return years


async def load_cited_by_counts(db: AsyncSession, user_id: int, paper_ids: list[int]) -> dict[int, int]:
    if not paper_ids:
        return {}
    result = await db.execute(
        select(Citation.cited_paper_id, func.count(Citation.id))
        .where(Citation.user_id == user_id, Citation.cited_paper_id.in_(paper_ids))
        .group_by(Citation.cited_paper_id)
    )
    return {pid: n for pid, n in result.all()}


async def load_trends(
    db: AsyncSession, user_id: int, publication_years: dict[int, int | None], current_year: int
) -> dict[int, PaperTrends]:
    """Velocity, bursts and aging for each paper id in ``publication_years``."""
    years = await load_citing_years(db, user_id, list(publication_years))
    return {
        pid: paper_trends(years.get(pid, []), pub_year, current_year)
        for pid, pub_year in publication_years.items()
    }
