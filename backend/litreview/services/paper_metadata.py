"""Quick-add metadata lookup from a DOI or arXiv identifier.

Crossref resolves DOIs and the arXiv Atom API resolves arXiv ids. Semantic
Scholar is consulted afterwards for a citation count when the primary
source did not report one.
"""
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, asdict
import httpx
from litreview.core.config import get_settings
from litreview.core.errors import InvalidIdentifierError, MetadataLookupError

logger = logging.getLogger(__name__)

USER_AGENT = "LitReview/1.0 (mailto:admin@localhost)"
ATOM_NS = {"atom": "http://www.w3.org/2005/Atom", "arxiv": "http://arxiv.org/schemas/atom"}

_DOI = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:\s*)?(10\.\d{4,9}/\S+)$", re.IGNORECASE)
_ARXIV = re.compile(
    r"^(?:https?://arxiv\.org/(?:abs|pdf)/|arxiv:\s*)?"
    r"(\d{4}\.\d{4,5}(?:v\d+)?|[a-z\-]+(?:\.[A-Z]{2})?/\d{7}(?:v\d+)?)(?:\.pdf)?$",
    re.IGNORECASE,
)
_TAGS = re.compile(r"<[^>]+>")


@dataclass
class PaperMetadata:
    title: str
    source: str
    authors: str | None = None
    abstract: str | None = None
    publication_year: int | None = None
    journal: str | None = None
    doi: str | None = None
    url: str | None = None
    citation_count: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def classify_identifier(value: str) -> tuple[str, str]:
    """Return ("doi", doi) or ("arxiv", id) for user input."""
    value = value.strip()
    match = _DOI.match(value)
    if match:
        return "doi", match.group(1).rstrip(".")
    match = _ARXIV.match(value)
    if match:
        return "arxiv", match.group(1)
    raise InvalidIdentifierError(f"Not a DOI or arXiv identifier: {value}")


def _clean(text: str | None) -> str | None:
    if not text:
        return None
    return re.sub(r"\s+", " ", _TAGS.sub("", text)).strip() or None


def parse_crossref(message: dict) -> PaperMetadata | None:
    titles = message.get("title") or []
    if not titles:
        return None

    authors = []
    for author in message.get("author") or []:
        name = " ".join(p for p in (author.get("given"), author.get("family")) if p)
        if name or author.get("name"):
            authors.append(name or author["name"])

    year = None
    for key in ("issued", "published-print", "published-online", "created"):
        parts = (message.get(key) or {}).get("date-parts") or []
        if parts and parts[0] and parts[0][0]:
            year = int(parts[0][0])
            break

    containers = message.get("container-title") or []
    return PaperMetadata(
        title=_clean(titles[0]) or titles[0],
        source="crossref",
        authors=", ".join(authors) or None,
        abstract=_clean(message.get("abstract")),
        publication_year=year,
        journal=containers[0] if containers else None,
        doi=message.get("DOI"),
        url=message.get("URL"),
        citation_count=message.get("is-referenced-by-count"),
    )


def parse_arxiv_atom(xml_text: str) -> PaperMetadata | None:
    root = ET.fromstring(xml_text)
    entry = root.find("atom:entry", ATOM_NS)
    if entry is None:
        return None
    title = _clean(entry.findtext("atom:title", default="", namespaces=ATOM_NS))
    # arXiv answers unknown ids with an "Error" entry
    if not title or title.lower() == "error":
        return None

    authors = [
        a.findtext("atom:name", default="", namespaces=ATOM_NS).strip()
        for a in entry.findall("atom:author", ATOM_NS)
    ]
    published = entry.findtext("atom:published", default="", namespaces=ATOM_NS)
    year = int(published[:4]) if published[:4].isdigit() else None

    url = entry.findtext("atom:id", default="", namespaces=ATOM_NS).strip() or None
    for link in entry.findall("atom:link", ATOM_NS):
        if link.attrib.get("rel") == "alternate":
            url = link.attrib.get("href", url)
            break

    return PaperMetadata(
        title=title,
        source="arxiv",
        authors=", ".join(a for a in authors if a) or None,
        abstract=_clean(entry.findtext("atom:summary", default="", namespaces=ATOM_NS)),
        publication_year=year,
        journal=_clean(entry.findtext("arxiv:journal_ref", default="", namespaces=ATOM_NS)) or "arXiv",
        doi=_clean(entry.findtext("arxiv:doi", default="", namespaces=ATOM_NS)),
        url=url,
    )


async def _from_crossref(client: httpx.AsyncClient, doi: str) -> PaperMetadata | None:
    settings = get_settings()
    resp = await client.get(f"{settings.crossref_api_url}/works/{doi}")
    if resp.status_code == 404:
        return None
    resp.raise_for_status()
    return parse_crossref(resp.json().get("message") or {})


async def _from_arxiv(client: httpx.AsyncClient, arxiv_id: str) -> PaperMetadata | None:
    settings = get_settings()
    resp = await client.get(settings.arxiv_api_url, params={"id_list": arxiv_id, "max_results": 1})
    resp.raise_for_status()
    return parse_arxiv_atom(resp.text)


async def _citation_count(client: httpx.AsyncClient, kind: str, identifier: str) -> int | None:
    settings = get_settings()
    key = f"DOI:{identifier}" if kind == "doi" else f"arXiv:{identifier}"
    try:
        resp = await client.get(
            f"{settings.semantic_scholar_api_url}/paper/{key}", params={"fields": "citationCount"}
        )
        if resp.status_code != 200:
            return None
        return resp.json().get("citationCount")
    except (httpx.HTTPError, ValueError):
        logger.warning("Semantic Scholar lookup failed for %s", key, exc_info=True)
        return None


async def fetch_metadata(value: str, client: httpx.AsyncClient | None = None) -> PaperMetadata:
    kind, identifier = classify_identifier(value)
    settings = get_settings()

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(
            timeout=settings.metadata_timeout_seconds,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )
    try:
        try:
            if kind == "doi":
                metadata = await _from_crossref(client, identifier)
            else:
                metadata = await _from_arxiv(client, identifier)
        except (httpx.HTTPError, ValueError, ET.ParseError) as e:
            logger.warning("Metadata lookup failed for %s %s: %s", kind, identifier, e)
            metadata = None

        if metadata is None:
            raise MetadataLookupError(f"Unable to fetch paper metadata for {identifier}")

        if metadata.citation_count is None:
            metadata.citation_count = await _citation_count(client, kind, identifier)
        if kind == "doi" and not metadata.doi:
            metadata.doi = identifier
        return metadata
    finally:
        if own_client:
            await client.aclose()
