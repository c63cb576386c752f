from litreview.schemas.schemas import (
    ApiModel,
    UserCreate,
    UserLogin,
    UserUpdate,
    PasswordChange,
    UserResponse,
    TokenResponse,
    RefreshRequest,
    TagCreate,
    TagUpdate,
    TagBrief,
    TagResponse,
    PaperBase,
    ReferenceInput,
    PaperCreate,
    PaperUpdate,
    PaperBrief,
    PaperResponse,
    Page,
    PaperStatusUpdate,
    PaperFavoriteUpdate,
    PaperTagsUpdate,
    PaperStatistics,
    MetadataRequest,
    PaperMetadataResponse,
    CitationCreate,
    CitationUpdate,
    CitationResponse,
    CitationWithPaper,
    PaperCitations,
    CitationStats,
    AutoRateResponse,
    AutoRateAllResponse,
    ParseReferencesRequest,
    ParsedReferenceResponse,
    AnalyzedCitation,
    AnalyzedPaper,
    RankedReference,
    Recommendations,
    ReferenceAnalysisResponse,
    TemporalMetrics,
    ReferenceInterpretation,
    EnhancedReference,
    EnhancedAnalysisResponse,
    TrendingReference,
    TrendingSummary,
    TrendingReferencesResponse,
    NetworkNode,
    NetworkEdge,
    CitationNetworkResponse,
    CentralityEntry,
    CentralityResponse,
    CoCitationEntry,
    CouplingEntry,
    SimilarPaperEntry,
    CommunityLeader,
    CommunityLeaders,
    CommunityLeadersResponse,
    YearlySize,
    CommunityTimeline,
    CommunityDynamicsResponse,
    YearlyCitations,
    CitationVelocityResponse,
    BurstPeriod,
    CitationBurstsResponse,
    AgingYearEntry,
    CitationAgingResponse,
    PredictedYear,
    CitationForecastResponse,
    ImpactPotentialResponse,
    TrendingPaperEntry,
    NoteCreate,
    NoteUpdate,
    NoteResponse,
    LibraryCreate,
    LibraryUpdate,
    LibraryResponse,
    LibraryItemCreate,
    LibraryItemUpdate,
    LibraryItemResponse,
    LibraryStatistics,
    PdfFileResponse,
    SummaryGenerateRequest,
    SummaryResponse,
    ChatTurn,
    ChatRequest,
    ChatResponse,
    ChatSuggestions,
    PublisherAccountCreate,
    PublisherAccountUpdate,
    PublisherAccountResponse,
    DownloadLogCreate,
    DownloadLogUpdate,
    DownloadLogResponse,
)

__all__ = [
    "ApiModel",
    "UserCreate",
    "UserLogin",
    "UserUpdate",
    "PasswordChange",
    "UserResponse",
    "TokenResponse",
    "RefreshRequest",
    "TagCreate",
    "TagUpdate",
    "TagBrief",
    "TagResponse",
    "PaperBase",
    "ReferenceInput",
    "PaperCreate",
    "PaperUpdate",
    "PaperBrief",
    "PaperResponse",
    "Page",
    "PaperStatusUpdate",
    "PaperFavoriteUpdate",
    "PaperTagsUpdate",
    "PaperStatistics",
    "MetadataRequest",
    "PaperMetadataResponse",
    "CitationCreate",
    "CitationUpdate",
    "CitationResponse",
    "CitationWithPaper",
    "PaperCitations",
    "CitationStats",
    "AutoRateResponse",
    "AutoRateAllResponse",
    "ParseReferencesRequest",
    "ParsedReferenceResponse",
    "AnalyzedCitation",
    "AnalyzedPaper",
    "RankedReference",
    "Recommendations",
    "ReferenceAnalysisResponse",
    "TemporalMetrics",
    "ReferenceInterpretation",
    "EnhancedReference",
    "EnhancedAnalysisResponse",
    "TrendingReference",
    "TrendingSummary",
    "TrendingReferencesResponse",
    "NetworkNode",
    "NetworkEdge",
    "CitationNetworkResponse",
    "CentralityEntry",
    "CentralityResponse",
    "CoCitationEntry",
    "CouplingEntry",
    "SimilarPaperEntry",
    "CommunityLeader",
    "CommunityLeaders",
    "CommunityLeadersResponse",
    "YearlySize",
    "CommunityTimeline",
    "CommunityDynamicsResponse",
    "YearlyCitations",
    "CitationVelocityResponse",
    "BurstPeriod",
    "CitationBurstsResponse",
    "AgingYearEntry",
    "CitationAgingResponse",
    "PredictedYear",
    "CitationForecastResponse",
    "ImpactPotentialResponse",
    "TrendingPaperEntry",
    "NoteCreate",
    "NoteUpdate",
    "NoteResponse",
    "LibraryCreate",
    "LibraryUpdate",
    "LibraryResponse",
    "LibraryItemCreate",
    "LibraryItemUpdate",
    "LibraryItemResponse",
    "LibraryStatistics",
    "PdfFileResponse",
    "SummaryGenerateRequest",
    "SummaryResponse",
    "ChatTurn",
    "ChatRequest",
    "ChatResponse",
    "ChatSuggestions",
    "PublisherAccountCreate",
    "PublisherAccountUpdate",
    "PublisherAccountResponse",
    "DownloadLogCreate",
    "DownloadLogUpdate",
    "DownloadLogResponse",
]
