import logging
from collections import defaultdict
import networkx as nx

logger = logging.getLogger(__name__)

PAGERANK_DAMPING = 0.85
PAGERANK_MAX_ITER = 30
PAGERANK_TOL = 1e-4
CO_CITATION_WEIGHT = 0.6
COUPLING_WEIGHT = 0.4
COMMUNITY_LEADERS = 5
GROWTH_WINDOW = 3


def _pagerank(graph: nx.DiGraph) -> dict[int, float]:
    n = graph.number_of_nodes()
    if n == 0:
        return {}
    for max_iter in (PAGERANK_MAX_ITER, PAGERANK_MAX_ITER * 10):
        try:
            ranks = nx.pagerank(graph, alpha=PAGERANK_DAMPING, max_iter=max_iter, tol=PAGERANK_TOL)
        except nx.PowerIterationFailedConvergence:
            logger.warning("PageRank did not converge in %d iterations on %d nodes", max_iter, n)
            continue
        return {node: round(score, 6) for node, score in ranks.items()}
    logger.warning("Falling back to uniform PageRank on %d nodes", n)
    return {node: round(1.0 / n, 6) for node in graph.nodes}


def leader_role(bridge_score: float) -> str:
    if bridge_score >= 0.6:
        return "bridge"
    if bridge_score >= 0.3:
        return "connector"
    return "hub"


class CitationGraphMetrics:
    """Graph measures over a directed citation graph (edge = citing -> cited)."""

    def __init__(self, nodes: list[int], edges: list[tuple[int, int]]):
        self.G = nx.DiGraph()
        self.G.add_nodes_from(nodes)
        self.G.add_edges_from(edges)

    def pagerank(self) -> dict[int, float]:
        return _pagerank(self.G)

    def centrality(self, top: int = 5) -> tuple[list[dict], list[dict]]:
        clustering = nx.clustering(self.G.to_undirected())
        normalized = nx.in_degree_centrality(self.G) if self.G.number_of_nodes() > 1 else {}
        entries = [
            {
                "paper_id": node,
                "in_degree": self.G.in_degree(node),
                "out_degree": self.G.out_degree(node),
                "total_degree": self.G.in_degree(node) + self.G.out_degree(node),
                "clustering": round(clustering.get(node, 0.0), 6),
                "normalized_in_degree": round(normalized.get(node, 0.0), 6),
            }
            for node in self.G.nodes
        ]
        most_cited = sorted(entries, key=lambda e: (-e["in_degree"], e["paper_id"]))[:top]
        return entries, most_cited

    def communities(self) -> list[list[int]]:
        undirected = self.G.to_undirected()
        if undirected.number_of_edges() == 0:
            groups = [{node} for node in undirected.nodes]
        else:
            groups = nx.community.greedy_modularity_communities(undirected)
        return sorted((sorted(g) for g in groups), key=lambda g: (-len(g), g[0]))

    def community_leaders(self, groups: list[list[int]], top: int = COMMUNITY_LEADERS) -> list[dict]:
        """Most influential papers of each community by PageRank inside it."""
        results = []
        for community_id, members in enumerate(groups):
            member_set = set(members)
            ranks = _pagerank(self.G.subgraph(members))
            leaders = []
            for node in members:
                inside = sum(1 for citing in self.G.predecessors(node) if citing in member_set)
                edges = list(self.G.in_edges(node)) + list(self.G.out_edges(node))
                external = sum(1 for u, v in edges if (u if v == node else v) not in member_set)
                bridge = round(external / len(edges), 6) if edges else 0.0
                leaders.append({
                    "paper_id": node,
                    "community_pagerank": ranks.get(node, 0.0),
                    "in_community_degree": inside,
                    "bridge_score": bridge,
                    "role": leader_role(bridge),
                })
            leaders.sort(key=lambda l: (-l["community_pagerank"], l["paper_id"]))
            results.append({
                "community_id": community_id,
                "community_size": len(members),
                "leaders": leaders[:top],
            })
        return results

    def community_dynamics(
        self, groups: list[list[int]], years: dict[int, int | None], current_year: int
    ) -> list[dict]:
        """Yearly growth of each community; papers without a year count as current."""
        timelines = []
        for community_id, members in enumerate(groups):
            member_years = {node: years.get(node) or current_year for node in members}
            per_year = defaultdict(int)
            for year in member_years.values():
                per_year[year] += 1
            yearly = [{"year": y, "paper_count": per_year[y]} for y in sorted(per_year)]

            recent_cut = current_year - GROWTH_WINDOW
            older_cut = current_year - 2 * GROWTH_WINDOW
            recent = [e["paper_count"] for e in yearly if e["year"] >= recent_cut]
            older = [e["paper_count"] for e in yearly if older_cut <= e["year"] < recent_cut]
            recent_avg = sum(recent) / len(recent) if recent else 0.0
            older_avg = sum(older) / len(older) if older else 0.0
            if recent_avg > older_avg * 1.5:
                growth = "emerging"
            elif recent_avg < older_avg * 0.5:
                growth = "declining"
            else:
                growth = "stable"

            recent_citations = sum(
                self.G.in_degree(n) for n, y in member_years.items() if y >= recent_cut
            )
            older_citations = sum(
                self.G.in_degree(n) for n, y in member_years.items() if older_cut <= y < recent_cut
            )
            if recent_citations > older_citations * 1.2:
                citation_trend = "increasing"
            elif recent_citations < older_citations * 0.8:
                citation_trend = "decreasing"
            else:
                citation_trend = "stable"

            ages = [current_year - y for y in member_years.values()]
            timelines.append({
                "community_id": community_id,
                "size": len(members),
                "start_year": min(member_years.values()),
                "end_year": max(member_years.values()),
                "growth": growth,
                "yearly_size": yearly,
                "average_age": round(sum(ages) / len(ages), 2),
                "citation_trend": citation_trend,
            })
        return timelines


def _citers_and_refs(pairs: list[tuple[int, int]]) -> tuple[dict[int, set[int]], dict[int, set[int]]]:
    citers: dict[int, set[int]] = defaultdict(set)
    refs: dict[int, set[int]] = defaultdict(set)
    for citing, cited in pairs:
        citers[cited].add(citing)
        refs[citing].add(cited)
    return citers, refs


def co_citation(paper_id: int, pairs: list[tuple[int, int]]) -> list[dict]:
    """Papers cited alongside ``paper_id`` by the same citing papers."""
    citers, refs = _citers_and_refs(pairs)
    own = citers.get(paper_id, set())
    counts: dict[int, int] = defaultdict(int)
    for citing in own:
        for other in refs[citing]:
            if other != paper_id:
                counts[other] += 1

    results = []
    for other, common in counts.items():
        smaller = min(len(own), len(citers[other]))
        results.append({
            "paper_id": other,
            "co_citation_count": common,
            "strength": round(common / smaller, 6) if smaller else 0.0,
        })
    return sorted(results, key=lambda r: (-r["co_citation_count"], -r["strength"], r["paper_id"]))


def bibliographic_coupling(paper_id: int, pairs: list[tuple[int, int]]) -> list[dict]:
    """Papers sharing references with ``paper_id``."""
    citers, refs = _citers_and_refs(pairs)
    own = refs.get(paper_id, set())
    candidates = {c for cited in own for c in citers[cited] if c != paper_id}

    results = []
    for other in candidates:
        shared = own & refs[other]
        if not shared:
            continue
        union = own | refs[other]
        smaller = min(len(own), len(refs[other]))
        results.append({
            "paper_id": other,
            "shared_references": len(shared),
            "strength": round(len(shared) / smaller, 6),
            "jaccard": round(len(shared) / len(union), 6),
        })
    return sorted(results, key=lambda r: (-r["shared_references"], -r["strength"], r["paper_id"]))


def similar_papers(
    paper_id: int,
    pairs: list[tuple[int, int]],
    method: str = "combined",
    limit: int = 10,
) -> list[dict]:
    co = {r["paper_id"]: r["strength"] for r in co_citation(paper_id, pairs)}
    cp = {r["paper_id"]: r["strength"] for r in bibliographic_coupling(paper_id, pairs)}

    if method == "co-citation":
        ids = set(co)
    elif method == "coupling":
        ids = set(cp)
    elif method == "combined":
        ids = set(co) | set(cp)
    else:
        raise ValueError(f"Unknown similarity method: {method}")

    results = []
    for other in ids:
        co_s, cp_s = co.get(other, 0.0), cp.get(other, 0.0)
        if method == "co-citation":
            similarity = co_s
        elif method == "coupling":
            similarity = cp_s
        else:
            similarity = CO_CITATION_WEIGHT * co_s + COUPLING_WEIGHT * cp_s
        results.append({
            "paper_id": other,
            "similarity": round(similarity, 6),
            "co_citation": co_s,
            "coupling": cp_s,
        })
    results.sort(key=lambda r: (-r["similarity"], r["paper_id"]))
    return results[:limit]
