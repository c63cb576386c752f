import networkx as nx
import pytest
from conftest import cite, create_paper
from litreview.services.citation_metrics import (
    CitationGraphMetrics, bibliographic_coupling, co_citation, similar_papers,
)

# 1 and 4 both cite 2 and 3; 5 cites 2 only
PAIRS = [(1, 2), (1, 3), (4, 2), (4, 3), (5, 2)]


def test_co_citation():
    rows = co_citation(2, PAIRS)
    assert rows == [{"paper_id": 3, "co_citation_count": 2, "strength": 1.0}]
    assert co_citation(99, PAIRS) == []


def test_bibliographic_coupling():
    rows = bibliographic_coupling(1, PAIRS)
    assert [r["paper_id"] for r in rows] == [4, 5]
    assert rows[0] == {"paper_id": 4, "shared_references": 2, "strength": 1.0, "jaccard": 1.0}
    assert rows[1]["shared_references"] == 1
    assert rows[1]["jaccard"] == 0.5


def test_similar_papers_methods():
    combined = similar_papers(1, PAIRS)
    assert combined[0]["paper_id"] == 4
    assert combined[0]["similarity"] == pytest.approx(0.4)
    assert similar_papers(1, PAIRS, method="co-citation") == []
    assert len(similar_papers(1, PAIRS, method="coupling", limit=1)) == 1
    with pytest.raises(ValueError):
        similar_papers(1, PAIRS, method="cosine")


def test_pagerank_favours_cited_papers():
    metrics = CitationGraphMetrics(nodes=[1, 2, 3, 4, 5], edges=PAIRS)
    ranks = metrics.pagerank()
    assert set(ranks) == {1, 2, 3, 4, 5}
    assert ranks[2] > ranks[1]
    assert sum(ranks.values()) == pytest.approx(1.0, abs=1e-3)
    assert CitationGraphMetrics(nodes=[], edges=[]).pagerank() == {}


def test_centrality_and_most_cited():
    entries, most_cited = CitationGraphMetrics(nodes=[1, 2, 3, 4, 5], edges=PAIRS).centrality(top=2)
    by_id = {e["paper_id"]: e for e in entries}
    assert by_id[2]["in_degree"] == 3
    assert by_id[1]["out_degree"] == 2
    assert [e["paper_id"] for e in most_cited] == [2, 3]


def test_communities_without_edges_are_singletons():
    assert CitationGraphMetrics(nodes=[3, 1], edges=[]).communities() == [[1], [3]]


def test_communities_cover_every_node():
    groups = CitationGraphMetrics(nodes=[1, 2, 3, 4, 5, 6], edges=PAIRS).communities()
    assert sorted(n for g in groups for n in g) == [1, 2, 3, 4, 5, 6]
    assert [6] in groups


# Two triangles joined by the edge 3 -> 4
CLUSTERS = [(1, 2), (1, 3), (2, 3), (4, 5), (4, 6), (5, 6), (3, 4)]


def test_pagerank_falls_back_to_uniform(monkeypatch):
    def never_converges(*args, **kwargs):
        raise nx.PowerIterationFailedConvergence(kwargs.get("max_iter", 0))

    monkeypatch.setattr(nx, "pagerank", never_converges)
    ranks = CitationGraphMetrics(nodes=[1, 2, 3, 4, 5], edges=PAIRS).pagerank()
    assert ranks == {n: 0.2 for n in (1, 2, 3, 4, 5)}


def test_community_leaders():
    metrics = CitationGraphMetrics(nodes=[1, 2, 3, 4, 5, 6], edges=CLUSTERS)
    result = metrics.community_leaders([[1, 2, 3], [4, 5, 6]], top=2)
    assert [c["community_size"] for c in result] == [3, 3]

    first = result[0]["leaders"]
    assert len(first) == 2
    assert first[0]["paper_id"] == 3
    assert first[0]["in_community_degree"] == 2
    assert first[0]["bridge_score"] == pytest.approx(1 / 3, abs=1e-6)
    assert first[0]["role"] == "connector"

    by_id = {l["paper_id"]: l for l in metrics.community_leaders([[1, 2, 3], [4, 5, 6]])[1]["leaders"]}
    assert by_id[6]["role"] == "hub"
    assert by_id[4]["bridge_score"] == pytest.approx(1 / 3, abs=1e-6)


def test_community_dynamics():
    metrics = CitationGraphMetrics(nodes=[1, 2, 3, 4, 5, 6], edges=CLUSTERS)
    years = {1: 2010, 2: 2011, 3: 2012, 4: 2022, 5: 2023, 6: None}
    old, new = metrics.community_dynamics([[1, 2, 3], [4, 5, 6]], years, current_year=2024)

    assert (old["start_year"], old["end_year"]) == (2010, 2012)
    assert old["growth"] == "stable"
    assert old["citation_trend"] == "stable"
    assert old["average_age"] == 13.0

    assert (new["start_year"], new["end_year"]) == (2022, 2024)
    assert new["yearly_size"] == [
        {"year": 2022, "paper_count": 1},
        {"year": 2023, "paper_count": 1},
        {"year": 2024, "paper_count": 1},
    ]
    assert new["growth"] == "emerging"
    assert new["citation_trend"] == "increasing"
    assert new["average_age"] == 1.0


@pytest.mark.asyncio
async def test_metrics_endpoints(client, auth_headers):
    a = await create_paper(client, auth_headers, title="A")
    b = await create_paper(client, auth_headers, title="B")
    c = await create_paper(client, auth_headers, title="C")
    d = await create_paper(client, auth_headers, title="D")
    for citing, cited in ((a, b), (a, c), (d, b), (d, c)):
        await cite(client, auth_headers, citing["id"], cited["id"])

    api = "/api/v1/citations/metrics"
    response = await client.get(f"{api}/co-citation/{b['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == [{"paperId": c["id"], "title": "C", "coCitationCount": 2, "strength": 1.0}]

    response = await client.get(f"{api}/coupling/{a['id']}", headers=auth_headers)
    assert response.json()[0]["paperId"] == d["id"]
    assert response.json()[0]["sharedReferences"] == 2

    response = await client.get(f"{api}/similar/{a['id']}?method=coupling", headers=auth_headers)
    assert response.json()[0]["title"] == "D"

    response = await client.get(f"{api}/similar/{a['id']}?method=cosine", headers=auth_headers)
    assert response.status_code == 422

    response = await client.get(f"{api}/pagerank/{a['id']}", headers=auth_headers)
    assert set(response.json()) == {str(p["id"]) for p in (a, b, c, d)}

    response = await client.get(f"{api}/centrality/{a['id']}", headers=auth_headers)
    most_cited = response.json()["mostCited"]
    assert {most_cited[0]["paperId"], most_cited[1]["paperId"]} == {b["id"], c["id"]}

    response = await client.get(f"{api}/communities/{a['id']}", headers=auth_headers)
    assert sorted(n for g in response.json() for n in g) == sorted(p["id"] for p in (a, b, c, d))


@pytest.mark.asyncio
async def test_metrics_respect_ownership(client, auth_headers, other_headers):
    theirs = await create_paper(client, other_headers)
    response = await client.get(f"/api/v1/citations/metrics/pagerank/{theirs['id']}", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_community_endpoints(client, auth_headers):
    a = await create_paper(client, auth_headers, title="A", publicationYear=2015)
    b = await create_paper(client, auth_headers, title="B", publicationYear=2012)
    c = await create_paper(client, auth_headers, title="C")
    await cite(client, auth_headers, a["id"], b["id"])
    await cite(client, auth_headers, a["id"], c["id"])

    api = "/api/v1/citations/metrics/network"
    response = await client.get(f"{api}/{a['id']}/community-leaders", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["networkSize"] == 3
    assert body["communityCount"] == len(body["communities"])
    leaders = [l for community in body["communities"] for l in community["leaders"]]
    assert {l["title"] for l in leaders} == {"A", "B", "C"}
    assert {l["year"] for l in leaders} == {2015, 2012, None}

    response = await client.get(f"{api}/{a['id']}/community-dynamics", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert sum(t["size"] for t in body["timelines"]) == 3
    assert all(t["growth"] in ("emerging", "stable", "declining") for t in body["timelines"])
