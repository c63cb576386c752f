from fastapi import APIRouter
from litreview.api.v1 import (
    auth, papers, citations, citation_metrics, tags, notes, libraries, pdf, summaries, chat, publishers,
)

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(papers.router, prefix="/papers", tags=["papers"])
# Registered ahead of /citations so /citations/{citation_id} does not shadow it
router.include_router(citation_metrics.router, prefix="/citations/metrics", tags=["citation-metrics"])
router.include_router(citations.router, prefix="/citations", tags=["citations"])
router.include_router(tags.router, prefix="/tags", tags=["tags"])
router.include_router(notes.router, prefix="/notes", tags=["notes"])
router.include_router(libraries.router, prefix="/libraries", tags=["libraries"])
router.include_router(pdf.router, prefix="/pdf", tags=["pdf"])
router.include_router(summaries.router, prefix="/summaries", tags=["summaries"])
router.include_router(chat.router, prefix="/chat", tags=["chat"])
router.include_router(publishers.router, prefix="/publishers", tags=["publishers"])
