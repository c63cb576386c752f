from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import (
    String, Text, Boolean, Integer, Float, DateTime, ForeignKey,
    UniqueConstraint, Index, JSON, CheckConstraint, Table, Column
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from litreview.core.database import Base


class ReadingStatus(str, Enum):
    TO_READ = "to_read"
    READING = "reading"
    COMPLETED = "completed"


class Publisher(str, Enum):
    IEEE = "ieee"
    SPRINGER = "springer"
    ACM = "acm"
    ELSEVIER = "elsevier"
    WILEY = "wiley"
    ARXIV = "arxiv"
    OTHER = "other"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"
    EXPIRED = "expired"


class DownloadMethod(str, Enum):
    MANUAL = "manual"
    PUBLISHER_OAUTH = "publisher_oauth"
    INSTITUTIONAL = "institutional"
    OPEN_ACCESS = "open_access"
    ARXIV = "arxiv"


class DownloadStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


DEFAULT_LIBRARY_NAME = "My Library"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


paper_tags = Table(
    "paper_tags",
    Base.metadata,
    Column("paper_id", Integer, ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    papers: Mapped[list["Paper"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    libraries: Mapped[list["Library"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    tags: Mapped[list["Tag"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Paper(Base):
    __tablename__ = "papers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(1000), nullable=False)
    authors: Mapped[str | None] = mapped_column(Text)
    abstract: Mapped[str | None] = mapped_column(Text)
    publication_year: Mapped[int | None] = mapped_column(Integer)
    journal: Mapped[str | None] = mapped_column(String(500))
    volume: Mapped[str | None] = mapped_column(String(50))
    issue: Mapped[str | None] = mapped_column(String(50))
    pages: Mapped[str | None] = mapped_column(String(50))
    doi: Mapped[str | None] = mapped_column(String(255))
    url: Mapped[str | None] = mapped_column(String(1000))
    keywords: Mapped[str | None] = mapped_column(Text)
    full_text: Mapped[str | None] = mapped_column(Text)
    # External citation count reported by a metadata source
    citation_count: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20), default=ReadingStatus.TO_READ.value)
    favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    is_reference: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    user: Mapped["User"] = relationship(back_populates="papers")
    tags: Mapped[list["Tag"]] = relationship(
        secondary=paper_tags, back_populates="papers", passive_deletes=True
    )
    notes: Mapped[list["Note"]] = relationship(
        back_populates="paper",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    pdf_files: Mapped[list["PdfFile"]] = relationship(
        back_populates="paper",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PdfFile.version",
    )
    references: Mapped[list["Citation"]] = relationship(
        foreign_keys="Citation.citing_paper_id",
        back_populates="citing_paper",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    cited_by: Mapped[list["Citation"]] = relationship(
        foreign_keys="Citation.cited_paper_id",
        back_populates="cited_paper",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    library_items: Mapped[list["LibraryItem"]] = relationship(
        back_populates="paper",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    summary: Mapped["AiSummary | None"] = relationship(
        back_populates="paper",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_papers_user", "user_id"),
        Index("idx_papers_doi", "doi"),
    )

    @property
    def has_pdf(self) -> bool:
        """True when any PDF is attached. Requires pdf_files to be loaded."""
        return bool(self.pdf_files)


class Citation(Base):
    __tablename__ = "citations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    citing_paper_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("papers.id", ondelete="CASCADE"), nullable=False
    )
    cited_paper_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("papers.id", ondelete="CASCADE"), nullable=False
    )
    relevance_score: Mapped[float | None] = mapped_column(Float)
    is_influential: Mapped[bool] = mapped_column(Boolean, default=False)
    citation_context: Mapped[str | None] = mapped_column(Text)
    citation_depth: Mapped[int] = mapped_column(Integer, default=0)
    parsed_authors: Mapped[str | None] = mapped_column(Text)
    parsed_title: Mapped[str | None] = mapped_column(Text)
    parsed_year: Mapped[int | None] = mapped_column(Integer)
    parsed_doi: Mapped[str | None] = mapped_column(String(255))
    parsing_confidence: Mapped[float | None] = mapped_column(Float)
    raw_citation: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    citing_paper: Mapped["Paper"] = relationship(
        foreign_keys=[citing_paper_id], back_populates="references"
    )
    cited_paper: Mapped["Paper"] = relationship(
        foreign_keys=[cited_paper_id], back_populates="cited_by"
    )

    __table_args__ = (
        UniqueConstraint("citing_paper_id", "cited_paper_id", name="uq_citation_pair"),
        CheckConstraint("citing_paper_id <> cited_paper_id", name="ck_citation_not_self"),
        CheckConstraint(
            "relevance_score IS NULL OR (relevance_score >= 0 AND relevance_score <= 1)",
            name="ck_citation_relevance_range",
        ),
        Index("idx_citations_citing", "citing_paper_id"),
        Index("idx_citations_cited", "cited_paper_id"),
        Index("idx_citations_user", "user_id"),
    )


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(7), default="#3B82F6")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    user: Mapped["User"] = relationship(back_populates="tags")
    papers: Mapped[list["Paper"]] = relationship(
        secondary=paper_tags, back_populates="tags", passive_deletes=True
    )

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)


class Note(Base):
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    paper_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("papers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str | None] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text, nullable=False)
    highlighted_text: Mapped[str | None] = mapped_column(Text)
    page_number: Mapped[int | None] = mapped_column(Integer)
    color: Mapped[str] = mapped_column(String(7), default="#FBBF24")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    paper: Mapped["Paper"] = relationship(back_populates="notes")

    __table_args__ = (Index("idx_notes_paper", "paper_id"),)


class Library(Base):
    __tablename__ = "libraries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    user: Mapped["User"] = relationship(back_populates="libraries")
    items: Mapped[list["LibraryItem"]] = relationship(
        back_populates="library",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_library_user_name"),)


class LibraryItem(Base):
    __tablename__ = "library_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    library_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False
    )
    paper_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("papers.id", ondelete="CASCADE"), nullable=False
    )
    reading_status: Mapped[str] = mapped_column(String(20), default=ReadingStatus.TO_READ.value)
    rating: Mapped[int | None] = mapped_column(Integer)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    library: Mapped["Library"] = relationship(back_populates="items")
    paper: Mapped["Paper"] = relationship(back_populates="library_items")

    __table_args__ = (
        UniqueConstraint("library_id", "paper_id", name="uq_library_item"),
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_library_item_rating"),
    )


class PdfFile(Base):
    __tablename__ = "pdf_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    paper_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("papers.id", ondelete="CASCADE"), nullable=False
    )
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, default=0)
    mime_type: Mapped[str] = mapped_column(String(100), default="application/pdf")
    version: Mapped[int] = mapped_column(Integer, default=1)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    paper: Mapped["Paper"] = relationship(back_populates="pdf_files")

    __table_args__ = (Index("idx_pdf_files_paper", "paper_id"),)


class AiSummary(Base):
    __tablename__ = "ai_summaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    paper_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("papers.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    key_findings: Mapped[list] = mapped_column(JSON, default=list)
    model: Mapped[str | None] = mapped_column(String(100))
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    paper: Mapped["Paper"] = relationship(back_populates="summary")


class PublisherAccount(Base):
    __tablename__ = "publisher_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    publisher: Mapped[str] = mapped_column(String(20), nullable=False)
    account_email: Mapped[str | None] = mapped_column(String(255))
    # Fernet ciphertext, see core.encryption
    access_token: Mapped[str | None] = mapped_column(Text)
    refresh_token: Mapped[str | None] = mapped_column(Text)
    institutional_credentials: Mapped[str | None] = mapped_column(Text)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    institution_name: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    verification_status: Mapped[str] = mapped_column(
        String(20), default=VerificationStatus.PENDING.value
    )
    last_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    __table_args__ = (
        UniqueConstraint("user_id", "publisher", name="uq_publisher_account_user"),
    )


class DownloadLog(Base):
    __tablename__ = "download_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    paper_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("papers.id", ondelete="CASCADE"), nullable=False
    )
    publisher_account_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("publisher_accounts.id", ondelete="SET NULL")
    )
    download_method: Mapped[str] = mapped_column(String(30), nullable=False)
    download_status: Mapped[str] = mapped_column(
        String(20), default=DownloadStatus.PENDING.value
    )
    file_size_bytes: Mapped[int | None] = mapped_column(Integer)
    error_message: Mapped[str | None] = mapped_column(Text)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_download_logs_user", "user_id"),
        Index("idx_download_logs_paper", "paper_id"),
    )
