import logging
from collections import defaultdict
from dataclasses import dataclass, field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.models import Citation, Paper

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EdgeRecord:
    citation_id: int
    source: int
    target: int
    relevance_score: float | None = None
    is_influential: bool = False


@dataclass
class TraversalState:
    """Visited set, discovery order and deduplicated edges of a BFS."""

    order: list[int] = field(default_factory=list)
    visited: set[int] = field(default_factory=set)
    edges: dict[tuple[int, int], EdgeRecord] = field(default_factory=dict)

    def visit(self, paper_id: int) -> bool:
        if paper_id in self.visited:
            return False
        self.visited.add(paper_id)
        self.order.append(paper_id)
        return True


@dataclass
class CitationNetwork:
    nodes: list[Paper]
    edges: list[EdgeRecord]


def expand_level(
    frontier: list[int],
    edges: list[EdgeRecord],
    state: TraversalState,
) -> list[int]:
    """Follow every edge touching the frontier one step, returning the next frontier.

    Nodes already visited are never queued again, so cyclic graphs terminate.
    """
    frontier_ids = set(frontier)
    outgoing: dict[int, list[EdgeRecord]] = defaultdict(list)
    incoming: dict[int, list[EdgeRecord]] = defaultdict(list)
    for edge in sorted(edges, key=lambda e: e.citation_id):
        if edge.source in frontier_ids:
            outgoing[edge.source].append(edge)
        if edge.target in frontier_ids:
            incoming[edge.target].append(edge)

    next_frontier: list[int] = []
    for node_id in frontier:
        for edge in outgoing[node_id] + incoming[node_id]:
            state.edges.setdefault((edge.source, edge.target), edge)
            neighbor = edge.target if edge.source == node_id else edge.source
            if state.visit(neighbor):
                next_frontier.append(neighbor)
    return next_frontier


async def _edges_touching(db: AsyncSession, user_id: int, paper_ids: list[int]) -> list[EdgeRecord]:
    result = await db.execute(
        select(Citation)
        .where(
            Citation.user_id == user_id,
            or_(Citation.citing_paper_id.in_(paper_ids), Citation.cited_paper_id.in_(paper_ids)),
        )
        .order_by(Citation.id)
    )
    return [
        EdgeRecord(
            citation_id=c.id,
            source=c.citing_paper_id,
            target=c.cited_paper_id,
            relevance_score=c.relevance_score,
            is_influential=c.is_influential,
        )
        for c in result.scalars().all()
    ]


async def build_citation_network(
    db: AsyncSession,
    root: Paper,
    user_id: int,
    depth: int,
) -> CitationNetwork:
    """Breadth-first citation subgraph around ``root``, both directions, ``depth`` levels."""
    if depth < 1:
        raise ValueError("depth must be at least 1")

    state = TraversalState()
    state.visit(root.id)
    frontier = [root.id]

    for level in range(depth):
        if not frontier:
            break
        edges = await _edges_touching(db, user_id, frontier)
        frontier = expand_level(frontier, edges, state)
        logger.debug("Network level %d around paper %s: %d new nodes", level + 1, root.id, len(frontier))

    papers: dict[int, Paper] = {root.id: root}
    others = [pid for pid in state.order if pid != root.id]
    if others:
        result = await db.execute(select(Paper).where(Paper.id.in_(others)))
        papers.update({p.id: p for p in result.scalars().all()})

    nodes = [papers[pid] for pid in state.order if pid in papers]
    return CitationNetwork(nodes=nodes, edges=list(state.edges.values()))


async def load_citation_pairs(db: AsyncSession, user_id: int) -> list[tuple[int, int]]:
    """All (citing, cited) pairs owned by a user."""
    result = await db.execute(
        select(Citation.citing_paper_id, Citation.cited_paper_id).where(Citation.user_id == user_id)
    )
    return [(row[0], row[1]) for row in result.all()]
