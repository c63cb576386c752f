from litreview.services.storage import StorageService
from litreview.services.llm import LLMService

__all__ = [
    "StorageService",
    "LLMService",
]
