import pytest
from conftest import cite, create_paper
from litreview.services.pdf_text import extract_text_from_pdf


def _make_pdf(text: str) -> bytes:
    """Build a minimal valid single-page PDF containing the given ASCII text."""
    stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET\n".encode()
    objs = [
        b"1 0 obj\n<</Type/Catalog/Pages 2 0 R>>\nendobj\n",
        b"2 0 obj\n<</Type/Pages/Kids[3 0 R]/Count 1>>\nendobj\n",
        b"3 0 obj\n<</Type/Page/Parent 2 0 R/MediaBox[0 0 612 792]"
        b"/Contents 4 0 R/Resources<</Font<</F1 5 0 R>>>>>>\nendobj\n",
        f"4 0 obj\n<</Length {len(stream)}>>\nstream\n".encode() + stream + b"endstream\nendobj\n",
        b"5 0 obj\n<</Type/Font/Subtype/Type1/BaseFont/Helvetica>>\nendobj\n",
    ]
    header = b"%PDF-1.4\n"
    offsets, pos = [], len(header)
    for obj in objs:
        offsets.append(pos)
        pos += len(obj)
    body = b"".join(objs)
    xref = b"xref\n0 6\n0000000000 65535 f \n" + b"".join(f"{o:010d} 00000 n \n".encode() for o in offsets)
    trailer = f"trailer\n<</Size 6/Root 1 0 R>>\nstartxref\n{len(header) + len(body)}\n%%EOF\n".encode()
    return header + body + xref + trailer


def test_extract_text_from_pdf():
    assert "Hello citations" in extract_text_from_pdf(_make_pdf("Hello citations"))
    assert extract_text_from_pdf(b"%PDF-garbage") == ""


@pytest.mark.asyncio
async def test_upload_list_download_delete(client, auth_headers):
    paper = await create_paper(client, auth_headers)
    pdf_bytes = _make_pdf("Full text of the paper")

    response = await client.post(
        f"/api/v1/pdf/upload/{paper['id']}",
        files={"file": ("paper.pdf", pdf_bytes, "application/pdf")},
        headers=auth_headers,
    )
    assert response.status_code == 201
    uploaded = response.json()
    assert uploaded["version"] == 1
    assert uploaded["fileSize"] == len(pdf_bytes)
    assert uploaded["originalFilename"] == "paper.pdf"

    second = await client.post(
        f"/api/v1/pdf/upload/{paper['id']}",
        files={"file": ("paper-v2.pdf", pdf_bytes, "application/pdf")},
        headers=auth_headers,
    )
    assert second.json()["version"] == 2

    response = await client.get(f"/api/v1/pdf/paper/{paper['id']}", headers=auth_headers)
    assert [f["version"] for f in response.json()] == [2, 1]

    response = await client.get(f"/api/v1/pdf/{uploaded['id']}/download", headers=auth_headers)
    assert response.status_code == 200
    assert response.content == pdf_bytes

    # Each upload is recorded as a manual download
    response = await client.get(f"/api/v1/publishers/downloads?paperId={paper['id']}", headers=auth_headers)
    assert {d["downloadMethod"] for d in response.json()} == {"manual"}
    assert len(response.json()) == 2

    response = await client.delete(f"/api/v1/pdf/{uploaded['id']}", headers=auth_headers)
    assert response.status_code == 204
    response = await client.get(f"/api/v1/pdf/{uploaded['id']}/download", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_upload_rejects_non_pdf(client, auth_headers):
    paper = await create_paper(client, auth_headers)
    response = await client.post(
        f"/api/v1/pdf/upload/{paper['id']}",
        files={"file": ("notes.txt", b"plain text", "text/plain")},
        headers=auth_headers,
    )
    assert response.status_code == 400

    response = await client.post(
        f"/api/v1/pdf/upload/{paper['id']}",
        files={"file": ("fake.pdf", b"not really a pdf", "application/pdf")},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid PDF file format"


# An attached PDF marks the reference as already downloaded
@pytest.mark.asyncio
async def test_uploaded_pdf_counts_in_reference_analysis(client, auth_headers):
    paper = await create_paper(client, auth_headers)
    ref = await create_paper(client, auth_headers, citationCount=100)
    await cite(client, auth_headers, paper["id"], ref["id"], relevanceScore=1.0, isInfluential=True)
    await client.post(
        f"/api/v1/pdf/upload/{ref['id']}",
        files={"file": ("ref.pdf", _make_pdf("Reference"), "application/pdf")},
        headers=auth_headers,
    )

    response = await client.get(f"/api/v1/citations/paper/{paper['id']}/analyze", headers=auth_headers)
    body = response.json()
    assert body["topReferences"][0]["paper"]["hasPdf"] is True
    assert body["recommendations"] == {"highPriority": 1, "shouldDownload": 0}


@pytest.mark.asyncio
async def test_deleting_paper_removes_stored_files(client, auth_headers, storage):
    paper = await create_paper(client, auth_headers)
    await client.post(
        f"/api/v1/pdf/upload/{paper['id']}",
        files={"file": ("paper.pdf", _make_pdf("x"), "application/pdf")},
        headers=auth_headers,
    )
    assert list(storage.upload_dir.rglob("*.pdf"))

    response = await client.delete(f"/api/v1/papers/{paper['id']}", headers=auth_headers)
    assert response.status_code == 204
    assert list(storage.upload_dir.rglob("*.pdf")) == []


# A failure after the blob is written leaves neither a row nor a file behind
@pytest.mark.asyncio
async def test_failed_upload_removes_stored_file(client, auth_headers, storage, monkeypatch):
    paper = await create_paper(client, auth_headers)

    def broken_extract(file_bytes):
        raise RuntimeError("extractor crashed")

    monkeypatch.setattr("litreview.api.v1.pdf.extract_text_from_pdf", broken_extract)
    with pytest.raises(RuntimeError):
        await client.post(
            f"/api/v1/pdf/upload/{paper['id']}",
            files={"file": ("paper.pdf", _make_pdf("x"), "application/pdf")},
            headers=auth_headers,
        )
    assert list(storage.upload_dir.rglob("*.pdf")) == []

    response = await client.get(f"/api/v1/pdf/paper/{paper['id']}", headers=auth_headers)
    assert response.json() == []
