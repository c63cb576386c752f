import logging
from datetime import datetime, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.core import get_db, get_settings
from litreview.models import DownloadLog, DownloadMethod, DownloadStatus, Paper, PdfFile, User
from litreview.schemas import PdfFileResponse
from litreview.api.v1.auth import get_current_user
from litreview.api.v1.papers import verify_paper_access
from litreview.services.pdf_text import extract_text_from_pdf
from litreview.services.storage import StorageService, UploadRejected, get_storage

router = APIRouter()
logger = logging.getLogger(__name__)
settings = get_settings()


async def verify_pdf_access(file_id: int, current_user: User, db: AsyncSession) -> PdfFile:
    result = await db.execute(
        select(PdfFile, Paper.user_id).join(Paper, Paper.id == PdfFile.paper_id).where(PdfFile.id == file_id)
    )
    row = result.first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="PDF file not found")
    pdf_file, owner_id = row
    if owner_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this file")
    return pdf_file


@router.post("/upload/{paper_id}", response_model=PdfFileResponse, status_code=status.HTTP_201_CREATED)
async def upload_pdf(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageService, Depends(get_storage)],
    file: UploadFile = File(...),
):
    """Attach a PDF to a paper and fill in its full text when missing."""
    paper = await verify_paper_access(paper_id, current_user, db)

    filename = file.filename or ""
    if not filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF files are supported")

    try:
        storage_key, size = await storage.save_pdf_upload(file, paper.id, settings.max_upload_bytes)
    except UploadRejected as e:
        msg = str(e)
        if msg == "File size exceeds limit":
            msg = f"File size exceeds {settings.max_upload_mb}MB limit"
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg)

    try:
        latest = await db.scalar(select(func.max(PdfFile.version)).where(PdfFile.paper_id == paper.id))
        pdf_file = PdfFile(
            paper_id=paper.id,
            storage_key=storage_key,
            original_filename=filename,
            file_size=size,
            mime_type="application/pdf",
            version=(latest or 0) + 1,
        )
        db.add(pdf_file)

        if not paper.full_text:
            text = await run_in_threadpool(extract_text_from_pdf, await storage.read_file(storage_key))
            if text:
                paper.full_text = text

        now = datetime.now(timezone.utc)
        db.add(DownloadLog(
            user_id=current_user.id,
            paper_id=paper.id,
            download_method=DownloadMethod.MANUAL.value,
            download_status=DownloadStatus.SUCCESS.value,
            file_size_bytes=size,
            attempted_at=now,
            completed_at=now,
        ))

        await db.commit()
    except Exception:
        logger.exception("Storing PDF for paper %s failed, removing %s", paper.id, storage_key)
        await db.rollback()
        await storage.delete_file(storage_key)
        raise
    await db.refresh(pdf_file)
    logger.info("Stored PDF v%d for paper %s (%d bytes)", pdf_file.version, paper.id, size)
    return pdf_file


@router.get("/paper/{paper_id}", response_model=list[PdfFileResponse])
async def list_paper_pdfs(
    paper_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(PdfFile).where(PdfFile.paper_id == paper_id).order_by(PdfFile.version.desc())
    )
    return result.scalars().all()


@router.get("/{file_id}/download")
async def download_pdf(
    file_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageService, Depends(get_storage)],
):
    pdf_file = await verify_pdf_access(file_id, current_user, db)
    try:
        file_path = await storage.get_file_path(pdf_file.storage_key)
    except (FileNotFoundError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return FileResponse(path=file_path, media_type=pdf_file.mime_type, filename=pdf_file.original_filename)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pdf(
    file_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageService, Depends(get_storage)],
):
    pdf_file = await verify_pdf_access(file_id, current_user, db)
    storage_key = pdf_file.storage_key
    await db.delete(pdf_file)
    await db.commit()
    await storage.delete_file(storage_key)
