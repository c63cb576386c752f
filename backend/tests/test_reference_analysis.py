import math
import pytest
from litreview.services.reference_analysis import (
    HIGH_PRIORITY_THRESHOLD,
    ReferenceCandidate,
    combined_score,
    normalize_citation_count,
    rank_references,
)


def _ref(citation_id, relevance, influential=False, count=0, year=None, has_pdf=False):
    return ReferenceCandidate(
        citation_id=citation_id,
        cited_paper_id=citation_id + 100,
        title=f"Reference {citation_id}",
        relevance_score=relevance,
        is_influential=influential,
        citation_count=count,
        year=year,
        has_pdf=has_pdf,
    )


# No references means no ranking and zero aggregates
def test_empty_reference_list():
    ranking = rank_references([])
    assert ranking.total_references == 0
    assert ranking.analyzed_references == 0
    assert ranking.top_references == []
    assert ranking.high_priority == 0
    assert ranking.should_download == 0


# Only the strongly relevant reference survives minRelevance=0.5
def test_min_relevance_filters_before_ranking():
    r1 = _ref(1, 0.9, influential=True, count=50)
    r2 = _ref(2, 0.3, count=5)
    ranking = rank_references([r1, r2], limit=10, min_relevance=0.5)

    assert ranking.total_references == 2
    assert ranking.analyzed_references == 1
    assert [s.candidate.citation_id for s in ranking.top_references] == [1]
    assert ranking.top_references[0].score >= HIGH_PRIORITY_THRESHOLD
    assert ranking.high_priority == 1
    assert ranking.should_download == 1


def test_threshold_above_every_score_keeps_totals():
    ranking = rank_references([_ref(1, 0.2), _ref(2, 0.4)], min_relevance=0.95)
    assert ranking.top_references == []
    assert ranking.total_references == 2
    assert ranking.analyzed_references == 0


def test_unscored_references_count_as_zero_relevance():
    ranking = rank_references([_ref(1, None), _ref(2, 0.5)], min_relevance=0.1)
    assert [s.candidate.citation_id for s in ranking.top_references] == [2]

    ranking = rank_references([_ref(1, None)], min_relevance=0.0)
    assert ranking.analyzed_references == 1
    assert ranking.top_references[0].score == 0.0


# References below the default threshold are left out
def test_default_threshold_drops_weak_references():
    ranking = rank_references([_ref(1, 0.3), _ref(2, 0.5), _ref(3, None)])
    assert ranking.total_references == 3
    assert ranking.analyzed_references == 1
    assert [s.candidate.citation_id for s in ranking.top_references] == [2]


def test_scores_are_bounded():
    top = _ref(1, 1.0, influential=True, count=10**9)
    bottom = _ref(2, 0.0, count=0)
    assert combined_score(top) == 1.0
    assert combined_score(bottom) == 0.0


def test_citation_count_normalization_is_monotonic_and_saturates():
    values = [normalize_citation_count(c) for c in (0, 1, 5, 50, 100, 1000)]
    assert values == sorted(values)
    assert values[0] == 0.0
    assert values[4] == 1.0
    assert values[5] == 1.0
    assert normalize_citation_count(50) == pytest.approx(math.log1p(50) / math.log1p(100))
    assert normalize_citation_count(3, saturation=0) == 1.0


def test_combined_score_weights():
    ref = _ref(1, 0.5, influential=False, count=100)
    assert combined_score(ref) == pytest.approx(0.4 * 0.5 + 0.3, abs=1e-4)


def test_ordering_is_descending_by_score():
    refs = [_ref(1, 0.2), _ref(2, 0.9, influential=True), _ref(3, 0.6, count=20)]
    ranking = rank_references(refs, min_relevance=0.0)
    scores = [s.score for s in ranking.top_references]
    assert scores == sorted(scores, reverse=True)
    assert ranking.top_references[0].candidate.citation_id == 2


# Equal scores fall back to newer year first, then citation id
def test_ties_are_deterministic():
    refs = [
        _ref(3, 0.5, year=None),
        _ref(1, 0.5, year=2018),
        _ref(2, 0.5, year=2021),
        _ref(4, 0.5, year=2021),
    ]
    ranking = rank_references(refs)
    assert [s.candidate.citation_id for s in ranking.top_references] == [2, 4, 1, 3]


def test_limit_truncates_but_aggregates_cover_all():
    refs = [_ref(i, 1.0, influential=True, count=100) for i in range(1, 8)]
    ranking = rank_references(refs, limit=3)
    assert len(ranking.top_references) == 3
    assert ranking.analyzed_references == 7
    assert ranking.high_priority == 7


def test_should_download_skips_references_with_pdf():
    refs = [
        _ref(1, 1.0, influential=True, count=100, has_pdf=True),
        _ref(2, 1.0, influential=True, count=100),
        _ref(3, 0.1),
    ]
    ranking = rank_references(refs)
    assert ranking.high_priority == 2
    assert ranking.should_download == 1
