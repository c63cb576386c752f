import logging
from datetime import datetime, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from litreview.core import get_db
from litreview.core.encryption import decrypt_value, encrypt_value, mask_secret
from litreview.models import DownloadLog, DownloadStatus, PublisherAccount, User, VerificationStatus
from litreview.schemas import (
    PublisherAccountCreate, PublisherAccountUpdate, PublisherAccountResponse,
    DownloadLogCreate, DownloadLogUpdate, DownloadLogResponse,
)
from litreview.api.v1.auth import get_current_user
from litreview.api.v1.papers import verify_paper_access

router = APIRouter()
logger = logging.getLogger(__name__)

ENCRYPTED_FIELDS = ("access_token", "refresh_token", "institutional_credentials")


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def account_response(account: PublisherAccount) -> PublisherAccountResponse:
    """Public view of an account. Stored secrets never leave the server unmasked."""
    return PublisherAccountResponse(
        id=account.id,
        publisher=account.publisher,
        account_email=account.account_email,
        institution_name=account.institution_name,
        is_active=account.is_active,
        verification_status=account.verification_status,
        last_verified_at=account.last_verified_at,
        token_expires_at=account.token_expires_at,
        has_access_token=bool(account.access_token),
        has_institutional_credentials=bool(account.institutional_credentials),
        masked_access_token=mask_secret(decrypt_value(account.access_token)),
        created_at=account.created_at,
    )


async def verify_account_access(account_id: int, current_user: User, db: AsyncSession) -> PublisherAccount:
    account = await db.get(PublisherAccount, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Publisher account not found")
    if account.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this publisher account")
    return account


@router.post("/accounts", response_model=PublisherAccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: PublisherAccountCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    existing = await db.execute(
        select(PublisherAccount.id).where(
            PublisherAccount.user_id == current_user.id,
            PublisherAccount.publisher == data.publisher,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An account for {data.publisher} already exists",
        )

    fields = data.model_dump()
    for name in ENCRYPTED_FIELDS:
        fields[name] = encrypt_value(fields[name])
    account = PublisherAccount(user_id=current_user.id, **fields)
    db.add(account)
    await db.commit()
    await db.refresh(account)
    logger.info("Linked %s account for user %s", account.publisher, current_user.id)
    return account_response(account)


@router.get("/accounts", response_model=list[PublisherAccountResponse])
async def list_accounts(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await db.execute(
        select(PublisherAccount)
        .where(PublisherAccount.user_id == current_user.id)
        .order_by(PublisherAccount.publisher)
    )
    return [account_response(a) for a in result.scalars().all()]


@router.patch("/accounts/{account_id}", response_model=PublisherAccountResponse)
async def update_account(
    account_id: int,
    data: PublisherAccountUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    account = await verify_account_access(account_id, current_user, db)
    changes = data.model_dump(exclude_unset=True)
    for name, value in changes.items():
        if name in ENCRYPTED_FIELDS:
            value = encrypt_value(value)
        elif name == "is_active" and value is None:
            continue
        setattr(account, name, value)
    if any(name in changes for name in ENCRYPTED_FIELDS + ("token_expires_at",)):
        account.verification_status = VerificationStatus.PENDING.value
    await db.commit()
    await db.refresh(account)
    return account_response(account)


@router.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    account = await verify_account_access(account_id, current_user, db)
    await db.delete(account)
    await db.commit()


@router.post("/accounts/{account_id}/verify", response_model=PublisherAccountResponse)
async def verify_account(
    account_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Check the stored credentials are usable and record the outcome."""
    account = await verify_account_access(account_id, current_user, db)
    now = datetime.now(timezone.utc)

    expires_at = _as_utc(account.token_expires_at)
    token_usable = bool(decrypt_value(account.access_token)) and (expires_at is None or expires_at > now)
    has_institutional = bool(decrypt_value(account.institutional_credentials))

    if token_usable or has_institutional:
        account.verification_status = VerificationStatus.VERIFIED.value
    elif account.access_token and expires_at is not None and expires_at <= now:
        account.verification_status = VerificationStatus.EXPIRED.value
    else:
        account.verification_status = VerificationStatus.FAILED.value
    account.last_verified_at = now

    await db.commit()
    await db.refresh(account)
    logger.info("Verified %s account %s: %s", account.publisher, account.id, account.verification_status)
    return account_response(account)


@router.get("/downloads", response_model=list[DownloadLogResponse])
async def list_downloads(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    paper_id: int | None = Query(default=None, alias="paperId"),
):
    query = select(DownloadLog).where(DownloadLog.user_id == current_user.id)
    if paper_id is not None:
        query = query.where(DownloadLog.paper_id == paper_id)
    result = await db.execute(query.order_by(DownloadLog.attempted_at.desc(), DownloadLog.id.desc()))
    return result.scalars().all()


@router.post("/downloads", response_model=DownloadLogResponse, status_code=status.HTTP_201_CREATED)
async def record_download(
    data: DownloadLogCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await verify_paper_access(data.paper_id, current_user, db)
    if data.publisher_account_id is not None:
        await verify_account_access(data.publisher_account_id, current_user, db)

    log = DownloadLog(user_id=current_user.id, **data.model_dump())
    if data.download_status != DownloadStatus.PENDING.value:
        log.completed_at = datetime.now(timezone.utc)
    db.add(log)
    await db.commit()
    await db.refresh(log)
    return log


@router.patch("/downloads/{log_id}", response_model=DownloadLogResponse)
async def update_download(
    log_id: int,
    data: DownloadLogUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    log = await db.get(DownloadLog, log_id)
    if not log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Download log not found")
    if log.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this download log")

    for name, value in data.model_dump(exclude_unset=True).items():
        if value is None and name in ("download_status", "retry_count"):
            continue
        setattr(log, name, value)
    if data.download_status in (DownloadStatus.SUCCESS.value, DownloadStatus.FAILED.value):
        log.completed_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(log)
    return log
