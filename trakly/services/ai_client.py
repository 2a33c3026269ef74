import asyncio
import logging
from typing import Optional
from google import genai
from trakly.config import settings

logger = logging.getLogger(__name__)


class GeminiClient:
    """Single-turn text generation with a fallback model."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash-lite",
        fallback_model: Optional[str] = "gemini-2.5-flash",
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.models = [m for m in (model, fallback_model) if m]
        self.timeout = timeout
        self._client = genai.Client(api_key=api_key) if api_key else None

    @classmethod
    def from_settings(cls) -> "GeminiClient":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            fallback_model=settings.GEMINI_FALLBACK_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return self._client is not None

    def _call(self, prompt: str) -> str:
        if self._client is None:
            raise RuntimeError("Gemini client is not configured")
        for model_name in self.models:
            try:
                response = self._client.models.generate_content(model=model_name, contents=prompt)
                return (response.text or "").strip()
            except Exception as e:
                logger.warning(f"{model_name} failed: {e}")
        raise RuntimeError("All Gemini models failed")

    async def generate(self, prompt: str) -> str:
        # the SDK call blocks; keep it off the event loop and bounded
        return await asyncio.wait_for(asyncio.to_thread(self._call, prompt), timeout=self.timeout)
