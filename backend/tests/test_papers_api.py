import pytest
from conftest import cite, create_paper

API = "/api/v1/papers"


@pytest.mark.asyncio
async def test_create_and_get_paper(client, auth_headers):
    paper = await create_paper(
        client, auth_headers,
        title="Graph attention networks",
        authors="Velickovic P, Cucurull G",
        publicationYear=2018,
        doi="10.48550/arXiv.1710.10903",
    )
    assert paper["status"] == "to_read"
    assert paper["favorite"] is False
    assert paper["isReference"] is False
    assert paper["tags"] == []

    response = await client.get(f"{API}/{paper['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["publicationYear"] == 2018


@pytest.mark.asyncio
async def test_get_missing_or_foreign_paper(client, auth_headers, other_headers):
    response = await client.get(f"{API}/12345", headers=auth_headers)
    assert response.status_code == 404

    theirs = await create_paper(client, other_headers)
    response = await client.get(f"{API}/{theirs['id']}", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_validation_errors(client, auth_headers):
    response = await client.post(API, json={"title": ""}, headers=auth_headers)
    assert response.status_code == 422
    response = await client.post(API, json={"title": "x", "publicationYear": 3000}, headers=auth_headers)
    assert response.status_code == 422
    response = await client.post(API, json={"title": "x", "status": "skimmed"}, headers=auth_headers)
    assert response.status_code == 422


# Inline references become stub papers linked at depth 1
@pytest.mark.asyncio
async def test_create_with_references(client, auth_headers):
    existing = await create_paper(client, auth_headers, title="Existing", doi="10.1/abc")
    paper = await create_paper(
        client, auth_headers,
        title="New work",
        references=[
            {"title": "Something else", "doi": "10.1/ABC"},
            {"title": "Brand new reference", "authors": "Doe J", "year": 2001},
        ],
    )
    response = await client.get(f"/api/v1/citations/paper/{paper['id']}/references", headers=auth_headers)
    refs = response.json()
    assert [r["paper"]["id"] for r in refs][0] == existing["id"]
    assert refs[1]["paper"]["title"] == "Brand new reference"
    assert all(r["citationDepth"] == 1 for r in refs)


@pytest.mark.asyncio
async def test_search_filters_and_pagination(client, auth_headers):
    for i in range(12):
        await create_paper(
            client, auth_headers,
            title=f"Paper {i:02d}",
            publicationYear=2010 + (i % 3),
            authors="Smith J" if i % 2 else "Jones K",
        )
    await create_paper(client, auth_headers, title="Diffusion models beat GANs", abstract="Image synthesis")

    response = await client.get(f"{API}?page=2&pageSize=5&sortBy=title&sortOrder=asc", headers=auth_headers)
    body = response.json()
    assert body["total"] == 13
    assert body["page"] == 2
    assert body["pageSize"] == 5
    assert body["totalPages"] == 3
    assert [p["title"] for p in body["data"]] == [f"Paper {i:02d}" for i in range(4, 9)]

    response = await client.get(f"{API}?q=synthesis", headers=auth_headers)
    assert [p["title"] for p in response.json()["data"]] == ["Diffusion models beat GANs"]

    response = await client.get(f"{API}?year=2011&author=smith", headers=auth_headers)
    years = {p["publicationYear"] for p in response.json()["data"]}
    assert years == {2011}
    assert all("Smith" in p["authors"] for p in response.json()["data"])

    response = await client.get(f"{API}?pageSize=101", headers=auth_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_search_only_returns_own_papers(client, auth_headers, other_headers):
    await create_paper(client, other_headers, title="Not mine")
    response = await client.get(API, headers=auth_headers)
    assert response.json()["total"] == 0
    assert response.json()["totalPages"] == 0


@pytest.mark.asyncio
async def test_update_status_favorite_and_tags(client, auth_headers):
    paper = await create_paper(client, auth_headers, title="Before")
    tag = (await client.post("/api/v1/tags", json={"name": "nlp"}, headers=auth_headers)).json()

    response = await client.patch(
        f"{API}/{paper['id']}", json={"title": "After", "journal": "JMLR", "status": None}, headers=auth_headers
    )
    assert response.json()["title"] == "After"
    assert response.json()["status"] == "to_read"

    response = await client.patch(f"{API}/{paper['id']}/status", json={"status": "reading"}, headers=auth_headers)
    assert response.json()["status"] == "reading"

    response = await client.patch(f"{API}/{paper['id']}/favorite", json={"favorite": True}, headers=auth_headers)
    assert response.json()["favorite"] is True

    response = await client.post(f"{API}/{paper['id']}/tags", json={"tagIds": [tag["id"]]}, headers=auth_headers)
    assert [t["name"] for t in response.json()["tags"]] == ["nlp"]

    response = await client.get(f"{API}?tags={tag['id']}&favorite=true&status=reading", headers=auth_headers)
    assert response.json()["total"] == 1

    response = await client.post(f"{API}/{paper['id']}/tags", json={"tagIds": [999]}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_statistics(client, auth_headers):
    await create_paper(client, auth_headers, publicationYear=2020, favorite=True)
    await create_paper(client, auth_headers, publicationYear=2020, status="completed")
    await create_paper(client, auth_headers)

    response = await client.get(f"{API}/statistics", headers=auth_headers)
    body = response.json()
    assert body["total"] == 3
    assert body["favorites"] == 1
    assert body["byStatus"] == {"to_read": 2, "completed": 1}
    assert body["byYear"] == {"2020": 2, "unknown": 1}


# Deleting a paper removes the citations touching it
@pytest.mark.asyncio
async def test_delete_cascades_citations(client, auth_headers):
    a = await create_paper(client, auth_headers)
    b = await create_paper(client, auth_headers)
    await cite(client, auth_headers, a["id"], b["id"])

    response = await client.delete(f"{API}/{b['id']}", headers=auth_headers)
    assert response.status_code == 204

    response = await client.get(f"/api/v1/citations/paper/{a['id']}/references", headers=auth_headers)
    assert response.json() == []
    response = await client.get(f"{API}/{b['id']}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_extract_metadata_rejects_unknown_identifier(client, auth_headers):
    response = await client.post(f"{API}/extract-metadata", json={"input": "not an id"}, headers=auth_headers)
    assert response.status_code == 400
