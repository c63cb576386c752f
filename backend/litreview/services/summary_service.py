import logging
from dataclasses import dataclass
from litreview.core.errors import LLMError
from litreview.models import Paper
from litreview.services.llm import LLMService

logger = logging.getLogger(__name__)

SUMMARY_SOURCE_CHARS = 16000
MAX_KEY_FINDINGS = 8

SUMMARY_PROMPT = """Summarize the following academic paper for a researcher doing a literature review.

Title: {title}
Authors: {authors}
Year: {year}
Keywords: {keywords}

Content:
{content}

Reply with JSON only:
{{"summary": "one or two paragraphs covering the problem, approach and main results", "keyFindings": ["finding 1", "finding 2", "..."]}}"""


@dataclass
class GeneratedSummary:
    summary: str
    key_findings: list[str]
    model: str


def summary_source(paper: Paper) -> str | None:
    """Text the summary is built from, or None when the paper has nothing to summarize."""
    parts = [p for p in (paper.abstract, paper.full_text) if p and p.strip()]
    if not parts:
        return None
    return "\n\n".join(parts)[:SUMMARY_SOURCE_CHARS]


async def generate_summary(paper: Paper, llm: LLMService) -> GeneratedSummary:
    content = summary_source(paper)
    if content is None:
        raise ValueError("Paper has no content to summarize")

    data = await llm.complete_json(
        [
            {"role": "system", "content": "You are an expert academic paper analyst."},
            {
                "role": "user",
                "content": SUMMARY_PROMPT.format(
                    title=paper.title,
                    authors=paper.authors or "Unknown",
                    year=paper.publication_year or "Unknown",
                    keywords=paper.keywords or "None",
                    content=content,
                ),
            },
        ],
        temperature=0.3,
        max_tokens=1500,
    )

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise LLMError("Model reply has no summary")
    summary = summary.strip()
    findings = data.get("keyFindings") or []
    if not isinstance(findings, list):
        findings = [str(findings)]
    key_findings = [str(f).strip() for f in findings if str(f).strip()][:MAX_KEY_FINDINGS]

    logger.info("Generated summary for paper %s (%d findings)", paper.id, len(key_findings))
    return GeneratedSummary(summary=summary, key_findings=key_findings, model=llm.model)
