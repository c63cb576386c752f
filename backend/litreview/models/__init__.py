from litreview.models.models import (
    User, Paper, Citation, Tag, Note, Library, LibraryItem,
    PdfFile, AiSummary, PublisherAccount, DownloadLog, paper_tags,
    ReadingStatus, Publisher, VerificationStatus, DownloadMethod, DownloadStatus,
    DEFAULT_LIBRARY_NAME,
)

__all__ = [
    "User", "Paper", "Citation", "Tag", "Note", "Library", "LibraryItem",
    "PdfFile", "AiSummary", "PublisherAccount", "DownloadLog", "paper_tags",
    "ReadingStatus", "Publisher", "VerificationStatus", "DownloadMethod", "DownloadStatus",
    "DEFAULT_LIBRARY_NAME",
]
