import asyncio
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from litreview.core.errors import LLMError
from litreview.services.llm import LLMService

logger = logging.getLogger(__name__)

BASIC_PARSE_CONFIDENCE = 0.3
PARSE_BATCH_SIZE = 5

DOI_PATTERN = re.compile(r"\b(10\.\d{4,9}/[-._;()/:A-Za-z0-9]+[A-Za-z0-9])")
_NUMBER_PREFIX = re.compile(r"^(\[\d+\]|\d+\.)\s*")
_YEAR_PATTERNS = (
    re.compile(r"\((\d{4})\)"),
    re.compile(r",\s*(\d{4})[,.\s]"),
    re.compile(r"\b(\d{4})\b"),
)

PARSE_PROMPT = """You are a precise citation parser. Extract structured fields from this reference string.

REFERENCE:
"{citation}"

Rules:
- Drop a leading [N] or N. numbering prefix.
- Authors come before the year; the title usually follows the authors/year.
- Return null for anything not present. Do not guess.
- confidence is 0.0-1.0 and reflects how complete and unambiguous the reference is.

Reply with JSON only:
{{"authors": "...", "year": 2020, "title": "...", "journal": null, "doi": null, "confidence": 0.9}}"""


@dataclass
class ParsedReference:
    raw: str
    title: str
    authors: str | None
    year: int | None
    doi: str | None
    journal: str | None
    confidence: float


def _plausible_year(value) -> int | None:
    try:
        year = int(value)
    except (TypeError, ValueError):
        return None
    if 1900 <= year <= datetime.now(timezone.utc).year + 1:
        return year
    return None


def basic_parse(raw: str) -> ParsedReference:
    """Regex parse used when no model is available or the model reply is unusable."""
    clean = _NUMBER_PREFIX.sub("", raw.strip())

    doi_match = DOI_PATTERN.search(clean)
    doi = doi_match.group(1) if doi_match else None

    year = None
    for pattern in _YEAR_PATTERNS:
        match = pattern.search(clean)
        if match:
            year = _plausible_year(match.group(1))
            if year:
                break

    authors = None
    if year:
        head = clean.split(str(year))[0]
        authors = head.split(",")[0].strip(" .(") or None
    else:
        comma = clean.find(",")
        if 0 < comma < 100:
            authors = clean[:comma].strip()

    title = clean
    parts = clean.split(",")
    if len(parts) >= 2:
        candidate = parts[1].strip()
        if year:
            candidate = candidate.replace(f"({year})", "").replace(str(year), "").strip(" .")
        if len(candidate) > 10:
            title = candidate

    return ParsedReference(
        raw=raw,
        title=title[:1000] or raw[:1000],
        authors=authors or "Unknown",
        year=year,
        doi=doi,
        journal=None,
        confidence=BASIC_PARSE_CONFIDENCE,
    )


async def parse_reference(raw: str, llm: LLMService) -> ParsedReference:
    if not llm.available:
        return basic_parse(raw)
    try:
        data = await llm.complete_json(
            [{"role": "user", "content": PARSE_PROMPT.format(citation=raw)}],
            temperature=0.1,
        )
    except LLMError as e:
        logger.warning("Model parse failed, falling back to regex: %s", e)
        return basic_parse(raw)

    try:
        confidence = float(data.get("confidence") or 0.5)
    except (TypeError, ValueError):
        confidence = 0.5
    if not math.isfinite(confidence):
        confidence = 0.5

    title = (data.get("title") or "").strip() or raw
    return ParsedReference(
        raw=raw,
        title=title[:1000],
        authors=(data.get("authors") or None),
        year=_plausible_year(data.get("year")),
        doi=(data.get("doi") or None),
        journal=(data.get("journal") or None),
        confidence=min(max(confidence, 0.0), 1.0),
    )


async def parse_references(raws: list[str], llm: LLMService) -> list[ParsedReference]:
    """Parse in small concurrent batches to stay under provider rate limits."""
    results: list[ParsedReference] = []
    for i in range(0, len(raws), PARSE_BATCH_SIZE):
        batch = raws[i:i + PARSE_BATCH_SIZE]
        results.extend(await asyncio.gather(*(parse_reference(r, llm) for r in batch)))
        logger.info("Parsed %d/%d references", min(i + PARSE_BATCH_SIZE, len(raws)), len(raws))
    return results
