import json
import logging
from typing import Any
from openai import AsyncOpenAI, OpenAIError
from litreview.core.config import Settings, get_settings
from litreview.core.errors import LLMError

logger = logging.getLogger(__name__)


def get_openai_settings(settings: Settings | None = None) -> dict[str, str]:
    """Resolve base URL, key and model for an OpenAI-compatible provider."""
    settings = settings or get_settings()
    base_url = (settings.openai_base_url or "https://api.openai.com/v1").rstrip("/")
    if not base_url.endswith("/v1") and "/v1/" not in base_url:
        base_url = f"{base_url}/v1"
    return {
        "base_url": base_url,
        "api_key": settings.openai_api_key or "",
        "model": settings.openai_model,
    }


def extract_json(raw: str) -> Any:
    """Parse a JSON object out of a model reply that may be wrapped in a code fence."""
    text = (raw or "").strip()
    if text.startswith("```"):
        parts = text.split("```")
        text = parts[1].strip() if len(parts) >= 2 else text
        if text.startswith("json"):
            text = text[4:].strip()

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        text = text[start:end + 1]

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMError(f"Model reply is not valid JSON: {e}") from e


class LLMService:
    """Thin wrapper over the chat-completions API."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        resolved = get_openai_settings(self.settings)
        self.model = resolved["model"]
        self._api_key = resolved["api_key"]
        self._base_url = resolved["base_url"]
        self._client: AsyncOpenAI | None = None

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key or None,
                base_url=self._base_url or None,
                timeout=self.settings.llm_timeout_seconds,
                max_retries=self.settings.llm_max_retries,
            )
        return self._client

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.3,
        max_tokens: int = 1500,
    ) -> str:
        if not self.available:
            raise LLMError("OPENAI_API_KEY is not configured")
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            logger.warning("Chat completion failed (model=%s): %s", self.model, e)
            raise LLMError(str(e)) from e

        content = (completion.choices[0].message.content or "").strip()
        if not content:
            raise LLMError("Model returned an empty reply")
        return content

    async def complete_json(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.1,
        max_tokens: int = 1024,
    ) -> dict[str, Any]:
        data = extract_json(await self.complete(messages, temperature=temperature, max_tokens=max_tokens))
        if not isinstance(data, dict):
            raise LLMError("Model reply is not a JSON object")
        return data


def get_llm_service() -> LLMService:
    return LLMService()
