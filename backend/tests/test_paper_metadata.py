import httpx
import pytest
from litreview.core.errors import InvalidIdentifierError, MetadataLookupError
from litreview.services.paper_metadata import (
    classify_identifier, fetch_metadata, parse_arxiv_atom, parse_crossref,
)

ARXIV_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <entry>
    <id>http://arxiv.org/abs/1706.03762v7</id>
    <published>2017-06-12T17:57:34Z</published>
    <title>Attention Is All
      You Need</title>
    <summary>The dominant sequence transduction models are based on recurrent networks.</summary>
    <author><name>Ashish Vaswani</name></author>
    <author><name>Noam Shazeer</name></author>
    <link href="http://arxiv.org/abs/1706.03762v7" rel="alternate" type="text/html"/>
  </entry>
</feed>"""

ARXIV_ERROR = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry><id>http://arxiv.org/api/errors#incorrect_id_format</id><title>Error</title></entry>
</feed>"""

CROSSREF_MESSAGE = {
    "DOI": "10.1038/nature14539",
    "URL": "https://doi.org/10.1038/nature14539",
    "title": ["Deep learning"],
    "author": [{"given": "Yann", "family": "LeCun"}, {"given": "Yoshua", "family": "Bengio"}],
    "container-title": ["Nature"],
    "issued": {"date-parts": [[2015, 5, 27]]},
    "abstract": "<jats:p>Deep learning allows computational models.</jats:p>",
    "is-referenced-by-count": 50000,
}


@pytest.mark.parametrize("value, expected", [
    ("10.1038/nature14539", ("doi", "10.1038/nature14539")),
    ("https://doi.org/10.1038/nature14539", ("doi", "10.1038/nature14539")),
    ("doi: 10.1145/3292500.3330701.", ("doi", "10.1145/3292500.3330701")),
    ("1706.03762", ("arxiv", "1706.03762")),
    ("arXiv:1706.03762v7", ("arxiv", "1706.03762v7")),
    ("https://arxiv.org/pdf/1706.03762.pdf", ("arxiv", "1706.03762")),
    ("hep-th/9901001", ("arxiv", "hep-th/9901001")),
])
def test_classify_identifier(value, expected):
    assert classify_identifier(value) == expected


def test_classify_rejects_free_text():
    with pytest.raises(InvalidIdentifierError):
        classify_identifier("attention is all you need")


def test_parse_crossref():
    meta = parse_crossref(CROSSREF_MESSAGE)
    assert meta.title == "Deep learning"
    assert meta.authors == "Yann LeCun, Yoshua Bengio"
    assert meta.publication_year == 2015
    assert meta.journal == "Nature"
    assert meta.abstract == "Deep learning allows computational models."
    assert meta.citation_count == 50000
    assert parse_crossref({"title": []}) is None


def test_parse_arxiv_atom():
    meta = parse_arxiv_atom(ARXIV_FEED)
    assert meta.title == "Attention Is All You Need"
    assert meta.authors == "Ashish Vaswani, Noam Shazeer"
    assert meta.publication_year == 2017
    assert meta.journal == "arXiv"
    assert meta.url == "http://arxiv.org/abs/1706.03762v7"
    assert parse_arxiv_atom(ARXIV_ERROR) is None


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_doi_from_crossref():
    def handler(request):
        assert request.url.path.endswith("/works/10.1038/nature14539")
        return httpx.Response(200, json={"message": CROSSREF_MESSAGE})

    async with _client(handler) as client:
        meta = await fetch_metadata("10.1038/nature14539", client=client)
    assert meta.source == "crossref"
    assert meta.citation_count == 50000


# arXiv reports no citation count, so Semantic Scholar fills it in
@pytest.mark.asyncio
async def test_fetch_arxiv_enriches_citation_count():
    def handler(request):
        if "semanticscholar" in request.url.host:
            assert request.url.path.endswith("/paper/arXiv:1706.03762")
            return httpx.Response(200, json={"citationCount": 120000})
        assert request.url.params["id_list"] == "1706.03762"
        return httpx.Response(200, text=ARXIV_FEED)

    async with _client(handler) as client:
        meta = await fetch_metadata("arxiv:1706.03762", client=client)
    assert meta.source == "arxiv"
    assert meta.citation_count == 120000


@pytest.mark.asyncio
async def test_fetch_tolerates_semantic_scholar_outage():
    def handler(request):
        if "semanticscholar" in request.url.host:
            return httpx.Response(429)
        return httpx.Response(200, text=ARXIV_FEED)

    async with _client(handler) as client:
        meta = await fetch_metadata("1706.03762", client=client)
    assert meta.citation_count is None


@pytest.mark.asyncio
async def test_fetch_unknown_doi_raises():
    async with _client(lambda request: httpx.Response(404)) as client:
        with pytest.raises(MetadataLookupError):
            await fetch_metadata("10.9999/does-not-exist", client=client)


@pytest.mark.asyncio
async def test_fetch_network_error_raises_lookup_error():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    async with _client(handler) as client:
        with pytest.raises(MetadataLookupError):
            await fetch_metadata("10.1038/nature14539", client=client)
