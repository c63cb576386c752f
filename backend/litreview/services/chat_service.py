import logging
from litreview.models import Paper
from litreview.services.llm import LLMService

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n\n[... Middle section truncated for brevity ...]\n\n"

GENERAL_SUGGESTIONS = [
    "How do I structure a literature review?",
    "Which of my papers should I read first?",
    "Explain the difference between co-citation and bibliographic coupling",
    "How can I find the most influential references in a field?",
]

PAPER_SUGGESTIONS = [
    "Summarize the main contributions of this paper",
    "What are the key findings and conclusions?",
    "Explain the methodology used in this research",
    "What are the limitations of this study?",
    "How does this paper compare to related work?",
    "What future research directions are suggested?",
    "Explain the key concepts in simple terms",
    "What datasets or experiments were used?",
]


def truncate_content(content: str, max_chars: int) -> str:
    """Keep the opening 60% and closing 20% of the budget, dropping the middle."""
    if len(content) <= max_chars:
        return content
    head = int(max_chars * 0.6)
    tail = int(max_chars * 0.2)
    return f"{content[:head]}{TRUNCATION_MARKER}{content[len(content) - tail:]}"


def build_paper_context(paper: Paper, max_chars: int) -> str:
    body = paper.full_text or paper.abstract or "No content available"
    return (
        "Context about the paper:\n"
        f"Title: {paper.title}\n"
        f"Authors: {paper.authors or 'Unknown'}\n"
        f"Publication Year: {paper.publication_year or 'Unknown'}\n"
        f"Journal: {paper.journal or 'Not specified'}\n\n"
        f"Paper Content:\n{truncate_content(body, max_chars)}\n"
    )


def suggested_prompts(paper: Paper | None) -> list[str]:
    if paper is None:
        return list(GENERAL_SUGGESTIONS)
    prompts = list(PAPER_SUGGESTIONS)
    if paper.keywords:
        first = paper.keywords.split(",")[0].strip()
        if first:
            prompts.insert(2, f"How does this paper approach {first}?")
    return prompts


async def generate_reply(
    llm: LLMService,
    message: str,
    *,
    history: list[dict[str, str]] | None = None,
    paper_context: str | None = None,
) -> str:
    system = "You are a research assistant helping a user with their literature review."
    if paper_context:
        system += " Answer using the paper context below when it is relevant.\n\n" + paper_context
    messages = [{"role": "system", "content": system}]
    messages.extend(history or [])
    messages.append({"role": "user", "content": message})

    logger.debug("Chat request with %d history turns, context=%s", len(history or []), bool(paper_context))
    return await llm.complete(messages, temperature=0.7, max_tokens=2000)
