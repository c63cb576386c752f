from datetime import datetime
from typing import Generic, Literal, TypeVar
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"

ReadingStatusValue = Literal["to_read", "reading", "completed"]
PublisherValue = Literal["ieee", "springer", "acm", "elsevier", "wiley", "arxiv", "other"]
DownloadMethodValue = Literal["manual", "publisher_oauth", "institutional", "open_access", "arxiv"]
DownloadStatusValue = Literal["success", "failed", "pending"]

T = TypeVar("T")


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python. Requests accept either."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Auth

class UserCreate(ApiModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    name: str | None = None


class UserLogin(ApiModel):
    email: EmailStr
    password: str


class UserUpdate(ApiModel):
    name: str | None = Field(default=None, max_length=255)


class PasswordChange(ApiModel):
    current_password: str
    new_password: str = Field(min_length=6, max_length=72)


class UserResponse(ApiModel):
    id: int
    email: EmailStr
    name: str | None
    is_active: bool
    created_at: datetime


class TokenResponse(ApiModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(ApiModel):
    refresh_token: str


# Tags

class TagCreate(ApiModel):
    name: str = Field(min_length=1, max_length=100)
    color: str = Field(default="#3B82F6", pattern=HEX_COLOR)


class TagUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    color: str | None = Field(default=None, pattern=HEX_COLOR)


class TagBrief(ApiModel):
    id: int
    name: str
    color: str


class TagResponse(TagBrief):
    created_at: datetime
    paper_count: int = 0


# Papers

class PaperBase(ApiModel):
    title: str = Field(min_length=1, max_length=1000)
    authors: str | None = None
    abstract: str | None = None
    publication_year: int | None = Field(default=None, ge=1000, le=2100)
    journal: str | None = Field(default=None, max_length=500)
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    doi: str | None = Field(default=None, max_length=255)
    url: str | None = Field(default=None, max_length=1000)
    keywords: str | None = None
    citation_count: int | None = Field(default=None, ge=0)


class ReferenceInput(ApiModel):
    title: str = Field(min_length=1, max_length=1000)
    authors: str | None = None
    year: int | None = None
    doi: str | None = None


class PaperCreate(PaperBase):
    status: ReadingStatusValue = "to_read"
    favorite: bool = False
    tag_ids: list[int] = []
    references: list[ReferenceInput] = []


class PaperUpdate(ApiModel):
    title: str | None = Field(default=None, min_length=1, max_length=1000)
    authors: str | None = None
    abstract: str | None = None
    publication_year: int | None = Field(default=None, ge=1000, le=2100)
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    doi: str | None = None
    url: str | None = None
    keywords: str | None = None
    citation_count: int | None = Field(default=None, ge=0)
    status: ReadingStatusValue | None = None
    favorite: bool | None = None
    tag_ids: list[int] | None = None


class PaperBrief(ApiModel):
    id: int
    title: str
    authors: str | None
    publication_year: int | None
    doi: str | None


class PaperResponse(PaperBase):
    id: int
    status: str
    favorite: bool
    is_reference: bool
    tags: list[TagBrief] = []
    created_at: datetime
    updated_at: datetime


class Page(ApiModel, Generic[T]):
    data: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


class PaperStatusUpdate(ApiModel):
    status: ReadingStatusValue


class PaperFavoriteUpdate(ApiModel):
    favorite: bool


class PaperTagsUpdate(ApiModel):
    tag_ids: list[int]


class PaperStatistics(ApiModel):
    total: int
    favorites: int
    by_status: dict[str, int]
    by_year: dict[str, int]


class MetadataRequest(ApiModel):
    input: str = Field(min_length=1, max_length=500)


class PaperMetadataResponse(ApiModel):
    title: str
    authors: str | None = None
    abstract: str | None = None
    publication_year: int | None = None
    journal: str | None = None
    doi: str | None = None
    url: str | None = None
    citation_count: int | None = None
    source: str


# Citations

class CitationCreate(ApiModel):
    citing_paper_id: int
    cited_paper_id: int
    relevance_score: float | None = Field(default=None, ge=0, le=1)
    is_influential: bool = False
    citation_context: str | None = None


class CitationUpdate(ApiModel):
    relevance_score: float | None = Field(default=None, ge=0, le=1)
    is_influential: bool | None = None
    citation_context: str | None = None


class CitationResponse(ApiModel):
    id: int
    citing_paper_id: int
    cited_paper_id: int
    relevance_score: float | None
    is_influential: bool
    citation_context: str | None
    citation_depth: int
    parsed_authors: str | None = None
    parsed_title: str | None = None
    parsed_year: int | None = None
    parsed_doi: str | None = None
    parsing_confidence: float | None = None
    created_at: datetime


class CitationWithPaper(CitationResponse):
    paper: PaperBrief


class PaperCitations(ApiModel):
    citing: list[CitationWithPaper]
    cited_by: list[CitationWithPaper]


class CitationStats(ApiModel):
    cited_by_count: int
    citing_count: int


class AutoRateResponse(ApiModel):
    citation: CitationResponse
    reasoning: str | None = None


class AutoRateAllResponse(ApiModel):
    rated: int
    failed: int


class ParseReferencesRequest(ApiModel):
    paper_id: int
    references: list[str] = Field(min_length=1, max_length=200)


class ParsedReferenceResponse(ApiModel):
    citation_id: int
    paper_id: int
    title: str
    authors: str | None
    year: int | None
    doi: str | None
    confidence: float


class AnalyzedCitation(ApiModel):
    id: int
    cited_paper_id: int
    relevance_score: float | None
    is_influential: bool
    citation_context: str | None


class AnalyzedPaper(ApiModel):
    id: int
    title: str
    authors: str | None
    year: int | None
    doi: str | None
    url: str | None
    has_pdf: bool


class RankedReference(ApiModel):
    citation: AnalyzedCitation
    paper: AnalyzedPaper
    score: float
    citation_count: int


class Recommendations(ApiModel):
    high_priority: int
    should_download: int


class ReferenceAnalysisResponse(ApiModel):
    paper_id: int
    title: str
    total_references: int
    analyzed_references: int
    top_references: list[RankedReference]
    recommendations: Recommendations


class TemporalMetrics(ApiModel):
    velocity: float
    velocity_trend: str
    acceleration: float
    aging_pattern: str
    current_phase: str
    paper_age: int


class ReferenceInterpretation(ApiModel):
    impact: str
    relevance: str


class EnhancedReference(RankedReference):
    temporal_metrics: TemporalMetrics
    interpretation: ReferenceInterpretation


class EnhancedAnalysisResponse(ReferenceAnalysisResponse):
    top_references: list[EnhancedReference]


class TrendingReference(ApiModel):
    citation_id: int
    paper_id: int
    title: str
    score: float
    trending_score: int
    impact_score: int
    potential: str
    projected_rank: str
    is_growing: bool
    has_high_potential: bool
    is_breakthrough: bool
    next_year_citations: int


class TrendingSummary(ApiModel):
    breakthrough_papers: int
    growing_papers: int
    high_impact_papers: int


class TrendingReferencesResponse(ApiModel):
    paper_id: int
    trending_count: int
    trending_references: list[TrendingReference]
    summary: TrendingSummary


class NetworkNode(ApiModel):
    id: int
    title: str
    year: int | None
    authors: str | None
    is_reference: bool = False


class NetworkEdge(ApiModel):
    source: int
    target: int
    relevance_score: float | None = None
    is_influential: bool = False


class CitationNetworkResponse(ApiModel):
    nodes: list[NetworkNode]
    edges: list[NetworkEdge]


class CentralityEntry(ApiModel):
    paper_id: int
    in_degree: int
    out_degree: int
    total_degree: int
    clustering: float
    normalized_in_degree: float


class CentralityResponse(ApiModel):
    nodes: list[CentralityEntry]
    most_cited: list[CentralityEntry]


class CoCitationEntry(ApiModel):
    paper_id: int
    title: str
    co_citation_count: int
    strength: float


class CouplingEntry(ApiModel):
    paper_id: int
    title: str
    shared_references: int
    strength: float
    jaccard: float


class SimilarPaperEntry(ApiModel):
    paper_id: int
    title: str
    similarity: float
    co_citation: float
    coupling: float


class CommunityLeader(ApiModel):
    paper_id: int
    title: str
    year: int | None
    community_pagerank: float
    in_community_degree: int
    bridge_score: float
    role: Literal["hub", "connector", "bridge"]


class CommunityLeaders(ApiModel):
    community_id: int
    community_size: int
    leaders: list[CommunityLeader]


class CommunityLeadersResponse(ApiModel):
    paper_id: int
    network_size: int
    community_count: int
    communities: list[CommunityLeaders]


class YearlySize(ApiModel):
    year: int
    paper_count: int


class CommunityTimeline(ApiModel):
    community_id: int
    size: int
    start_year: int
    end_year: int
    growth: Literal["emerging", "stable", "declining"]
    yearly_size: list[YearlySize]
    average_age: float
    citation_trend: Literal["increasing", "stable", "decreasing"]


class CommunityDynamicsResponse(ApiModel):
    paper_id: int
    network_size: int
    community_count: int
    timelines: list[CommunityTimeline]
    emerging_communities: list[int]
    declining_communities: list[int]


# Citation trends

class YearlyCitations(ApiModel):
    year: int
    citation_count: int
    cumulative_count: int


class CitationVelocityResponse(ApiModel):
    paper_id: int
    overall_velocity: float
    recent_velocity: float
    acceleration: float
    velocity_trend: Literal["accelerating", "stable", "decelerating"]
    yearly_data: list[YearlyCitations]
    peak_year: int | None
    peak_citations: int


class BurstPeriod(ApiModel):
    start_year: int
    end_year: int
    duration: int
    peak_citations: int
    intensity: float


class CitationBurstsResponse(ApiModel):
    paper_id: int
    has_burst: bool
    active: bool
    current_start_year: int | None
    current_duration: int
    current_intensity: float
    historical_bursts: list[BurstPeriod]
    burst_probability: float


class AgingYearEntry(ApiModel):
    years_since_publication: int
    citations: int
    percentage: float
    cumulative: int


class CitationAgingResponse(ApiModel):
    paper_id: int
    paper_age: int
    citation_half_life: int
    aging_pattern: Literal["classic", "delayed", "immediate", "sustained", "dormant"]
    peak_year: int
    current_phase: Literal["rising", "peak", "declining", "dormant"]
    yearly_breakdown: list[AgingYearEntry]
    projected_lifespan: int


class PredictedYear(ApiModel):
    year: int
    predicted_citations: int
    lower: int
    upper: int


class CitationForecastResponse(ApiModel):
    paper_id: int
    predictions: list[PredictedYear]
    total_predicted: int
    confidence: float
    slope: float
    intercept: float
    r_squared: float
    recommendation: str


class ImpactPotentialResponse(ApiModel):
    paper_id: int
    impact_score: int
    potential: Literal["breakthrough", "high", "moderate", "low"]
    velocity_score: int
    burst_score: int
    network_score: int
    freshness: int
    projected_rank: str
    time_to_impact: int
    risk_factors: list[str]
    strengths: list[str]


class TrendingPaperEntry(ApiModel):
    rank: int
    paper_id: int
    title: str
    trending_score: float
    recent_velocity: float
    velocity_change: float
    burst_active: bool


# Notes

class NoteCreate(ApiModel):
    paper_id: int
    title: str | None = Field(default=None, max_length=255)
    content: str = Field(min_length=1)
    highlighted_text: str | None = None
    page_number: int | None = Field(default=None, ge=1)
    color: str = Field(default="#FBBF24", pattern=HEX_COLOR)


class NoteUpdate(ApiModel):
    title: str | None = Field(default=None, max_length=255)
    content: str | None = Field(default=None, min_length=1)
    highlighted_text: str | None = None
    page_number: int | None = Field(default=None, ge=1)
    color: str | None = Field(default=None, pattern=HEX_COLOR)


class NoteResponse(ApiModel):
    id: int
    paper_id: int
    title: str | None
    content: str
    highlighted_text: str | None
    page_number: int | None
    color: str
    created_at: datetime
    updated_at: datetime


# Libraries

class LibraryCreate(ApiModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None


class LibraryUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None


class LibraryResponse(ApiModel):
    id: int
    name: str
    description: str | None
    is_default: bool
    created_at: datetime
    paper_count: int = 0


class LibraryItemCreate(ApiModel):
    paper_id: int
    reading_status: ReadingStatusValue = "to_read"
    rating: int | None = Field(default=None, ge=1, le=5)


class LibraryItemUpdate(ApiModel):
    reading_status: ReadingStatusValue | None = None
    rating: int | None = Field(default=None, ge=1, le=5)


class LibraryItemResponse(ApiModel):
    id: int
    library_id: int
    paper_id: int
    reading_status: str
    rating: int | None
    added_at: datetime
    paper: PaperBrief


class LibraryStatistics(ApiModel):
    total: int
    by_status: dict[str, int]
    average_rating: float | None


# PDF files

class PdfFileResponse(ApiModel):
    id: int
    paper_id: int
    original_filename: str
    file_size: int
    mime_type: str
    version: int
    uploaded_at: datetime


# Summaries

class SummaryGenerateRequest(ApiModel):
    force_regenerate: bool = False


class SummaryResponse(ApiModel):
    id: int
    paper_id: int
    summary: str
    key_findings: list[str]
    model: str | None
    generated_at: datetime


# Chat

class ChatTurn(ApiModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(ApiModel):
    message: str = Field(min_length=1, max_length=8000)
    paper_id: int | None = None
    paper_context: str | None = Field(default=None, max_length=20000)
    history: list[ChatTurn] = Field(default=[], max_length=40)


class ChatResponse(ApiModel):
    reply: str
    paper_id: int | None = None


class ChatSuggestions(ApiModel):
    suggestions: list[str]


# Publisher accounts and download logs

class PublisherAccountCreate(ApiModel):
    publisher: PublisherValue
    account_email: EmailStr | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    institution_name: str | None = None
    institutional_credentials: str | None = None


class PublisherAccountUpdate(ApiModel):
    account_email: EmailStr | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    institution_name: str | None = None
    institutional_credentials: str | None = None
    is_active: bool | None = None


class PublisherAccountResponse(ApiModel):
    id: int
    publisher: str
    account_email: str | None
    institution_name: str | None
    is_active: bool
    verification_status: str
    last_verified_at: datetime | None
    token_expires_at: datetime | None
    has_access_token: bool
    has_institutional_credentials: bool
    masked_access_token: str | None
    created_at: datetime


class DownloadLogCreate(ApiModel):
    paper_id: int
    publisher_account_id: int | None = None
    download_method: DownloadMethodValue
    download_status: DownloadStatusValue = "pending"
    file_size_bytes: int | None = Field(default=None, ge=0)
    error_message: str | None = None


class DownloadLogUpdate(ApiModel):
    download_status: DownloadStatusValue | None = None
    error_message: str | None = None
    retry_count: int | None = Field(default=None, ge=0)
    file_size_bytes: int | None = Field(default=None, ge=0)


class DownloadLogResponse(ApiModel):
    id: int
    paper_id: int
    publisher_account_id: int | None
    download_method: str
    download_status: str
    file_size_bytes: int | None
    error_message: str | None
    retry_count: int
    attempted_at: datetime
    completed_at: datetime | None
