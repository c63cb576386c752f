import pytest
from conftest import create_paper

API = "/api/v1/libraries"


@pytest.mark.asyncio
async def test_default_library_created_on_register(client, auth_headers):
    response = await client.get(API, headers=auth_headers)
    libraries = response.json()
    assert len(libraries) == 1
    assert libraries[0]["name"] == "My Library"
    assert libraries[0]["isDefault"] is True
    assert libraries[0]["paperCount"] == 0


@pytest.mark.asyncio
async def test_default_library_is_protected(client, auth_headers):
    default = (await client.get(API, headers=auth_headers)).json()[0]
    response = await client.patch(f"{API}/{default['id']}", json={"name": "Renamed"}, headers=auth_headers)
    assert response.status_code == 403
    response = await client.delete(f"{API}/{default['id']}", headers=auth_headers)
    assert response.status_code == 403

    response = await client.patch(f"{API}/{default['id']}", json={"description": "Everything"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["description"] == "Everything"


@pytest.mark.asyncio
async def test_library_crud(client, auth_headers, other_headers):
    response = await client.post(API, json={"name": "Thesis", "description": "Chapter 2"}, headers=auth_headers)
    assert response.status_code == 201
    library = response.json()

    response = await client.post(API, json={"name": "thesis"}, headers=auth_headers)
    assert response.status_code == 409

    response = await client.get(f"{API}/{library['id']}", headers=other_headers)
    assert response.status_code == 403

    response = await client.patch(f"{API}/{library['id']}", json={"name": "Thesis v2"}, headers=auth_headers)
    assert response.json()["name"] == "Thesis v2"

    response = await client.delete(f"{API}/{library['id']}", headers=auth_headers)
    assert response.status_code == 204
    response = await client.get(f"{API}/{library['id']}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_library_items_and_statistics(client, auth_headers):
    library = (await client.post(API, json={"name": "Reading list"}, headers=auth_headers)).json()
    a = await create_paper(client, auth_headers, title="A")
    b = await create_paper(client, auth_headers, title="B")

    response = await client.post(
        f"{API}/{library['id']}/papers", json={"paperId": a["id"], "rating": 4}, headers=auth_headers
    )
    assert response.status_code == 201
    assert response.json()["paper"]["title"] == "A"
    assert response.json()["readingStatus"] == "to_read"

    response = await client.post(f"{API}/{library['id']}/papers", json={"paperId": a["id"]}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Paper already in library"

    await client.post(
        f"{API}/{library['id']}/papers",
        json={"paperId": b["id"], "readingStatus": "completed", "rating": 2},
        headers=auth_headers,
    )
    response = await client.post(
        f"{API}/{library['id']}/papers", json={"paperId": b["id"], "rating": 6}, headers=auth_headers
    )
    assert response.status_code == 422

    response = await client.get(f"{API}/{library['id']}/papers?status=completed", headers=auth_headers)
    assert [i["paperId"] for i in response.json()] == [b["id"]]

    response = await client.patch(
        f"{API}/{library['id']}/papers/{a['id']}", json={"readingStatus": "reading"}, headers=auth_headers
    )
    assert response.json()["readingStatus"] == "reading"
    assert response.json()["rating"] == 4

    response = await client.get(f"{API}/{library['id']}/statistics", headers=auth_headers)
    assert response.json() == {
        "total": 2,
        "byStatus": {"to_read": 0, "reading": 1, "completed": 1},
        "averageRating": 3.0,
    }

    response = await client.get(f"{API}/paper/{a['id']}", headers=auth_headers)
    assert [lib["name"] for lib in response.json()] == ["Reading list"]

    response = await client.delete(f"{API}/{library['id']}/papers/{a['id']}", headers=auth_headers)
    assert response.status_code == 204
    response = await client.delete(f"{API}/{library['id']}/papers/{a['id']}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cannot_add_foreign_paper(client, auth_headers, other_headers):
    library = (await client.get(API, headers=auth_headers)).json()[0]
    theirs = await create_paper(client, other_headers)
    response = await client.post(f"{API}/{library['id']}/papers", json={"paperId": theirs["id"]}, headers=auth_headers)
    assert response.status_code == 403
