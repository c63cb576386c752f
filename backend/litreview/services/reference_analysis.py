"""Rank a paper's references by combined importance.

The combined score weighs the citation's relevance score, whether it is
flagged influential, and how often the referenced paper is cited:

    score = 0.4 * relevance + 0.3 * influential + 0.3 * norm(citation_count)

``norm`` is a log scale saturating at ``saturation`` citations, so it is
monotonic and bounded to [0, 1]. Everything here is a pure function of rows
already loaded by the router.
"""
import math
from dataclasses import dataclass, field

RELEVANCE_WEIGHT = 0.4
INFLUENCE_WEIGHT = 0.3
CITATION_WEIGHT = 0.3
HIGH_PRIORITY_THRESHOLD = 0.8
DEFAULT_SATURATION = 100
DEFAULT_MIN_RELEVANCE = 0.5


@dataclass(frozen=True)
class ReferenceCandidate:
    citation_id: int
    cited_paper_id: int
    title: str
    relevance_score: float | None
    is_influential: bool
    citation_count: int
    year: int | None = None
    authors: str | None = None
    doi: str | None = None
    url: str | None = None
    citation_context: str | None = None
    has_pdf: bool = False


@dataclass(frozen=True)
class ScoredReference:
    candidate: ReferenceCandidate
    score: float


@dataclass
class ReferenceRanking:
    total_references: int
    analyzed_references: int
    top_references: list[ScoredReference] = field(default_factory=list)
    high_priority: int = 0
    should_download: int = 0


def normalize_citation_count(count: int, saturation: int = DEFAULT_SATURATION) -> float:
    if count <= 0:
        return 0.0
    if saturation <= 0:
        return 1.0
    return min(math.log1p(count) / math.log1p(saturation), 1.0)


def combined_score(candidate: ReferenceCandidate, saturation: int = DEFAULT_SATURATION) -> float:
    relevance = min(max(candidate.relevance_score or 0.0, 0.0), 1.0)
    influence = 1.0 if candidate.is_influential else 0.0
    score = (
        RELEVANCE_WEIGHT * relevance
        + INFLUENCE_WEIGHT * influence
        + CITATION_WEIGHT * normalize_citation_count(candidate.citation_count, saturation)
    )
    return round(min(max(score, 0.0), 1.0), 4)


def _sort_key(item: ScoredReference) -> tuple:
    c = item.candidate
    # Unknown years sort after every known year
    year_key = -c.year if c.year is not None else math.inf
    return (-item.score, -(c.relevance_score or 0.0), year_key, c.citation_id)


def rank_references(
    candidates: list[ReferenceCandidate],
    limit: int = 10,
    min_relevance: float = DEFAULT_MIN_RELEVANCE,
    saturation: int = DEFAULT_SATURATION,
) -> ReferenceRanking:
    eligible = [c for c in candidates if (c.relevance_score or 0.0) >= min_relevance]
    scored = sorted(
        (ScoredReference(candidate=c, score=combined_score(c, saturation)) for c in eligible),
        key=_sort_key,
    )
    high_priority = [s for s in scored if s.score >= HIGH_PRIORITY_THRESHOLD]

    return ReferenceRanking(
        total_references=len(candidates),
        analyzed_references=len(eligible),
        top_references=scored[: max(limit, 0)],
        high_priority=len(high_priority),
        should_download=sum(1 for s in high_priority if not s.candidate.has_pdf),
    )
