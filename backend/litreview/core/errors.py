class LitReviewError(Exception):
    """Base class for service-level failures that routers map to HTTP errors."""


class LLMError(LitReviewError):
    """The language model call failed or returned something unusable."""


class MetadataLookupError(LitReviewError):
    """No metadata source could resolve the identifier."""


class InvalidIdentifierError(LitReviewError):
    """Input is neither a DOI nor an arXiv identifier."""
