"""
Gemini provider for tourist summaries and fact reports.

Talks to the Generative Language REST API: ``models/{model}:generateContent``
for answers and ``models`` for the model list.
"""

from typing import Optional, Dict, Any
import logging

import aiohttp

from .base import Provider, ProviderMetadata, ProviderNotAvailableError
from .utils import request_json
from ..config import Config, get_config

logger = logging.getLogger(__name__)

NO_ANSWER = "No answer."


def extract_answer(response: Optional[Dict[str, Any]]) -> str:
    """Return the first candidate's first text part, or ``NO_ANSWER``."""
    try:
        text = response["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return NO_ANSWER
    return text or NO_ANSWER


class GeminiProvider(Provider):
    """Thin async client over the Gemini REST API."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, config: Optional[Config] = None):
        super().__init__(session)
        self.config = config or get_config()
        gemini = self.config.gemini_config
        self.api_key = gemini.api_key
        self.model = gemini.model
        self.base_url = gemini.base_url.rstrip("/")
        self.timeout = self.config.timeout_config.ai

    def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name="gemini",
            version="v1",
            description=f"Google Gemini ({self.model})",
            capabilities=["summary", "fact_report", "models"],
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> str:
        if not self.api_key:
            logger.warning("[GEMINI] Missing Gemini API key")
            raise ProviderNotAvailableError("Missing Gemini API key", "gemini")
        return self.api_key

    async def generate(self, text: str) -> Dict[str, Any]:
        """Send a single-turn prompt.

        Args:
            text: Full prompt text

        Returns:
            Raw generateContent response (``{"candidates": [...]}``)

        Raises:
            ProviderNotAvailableError: No API key configured
            ProviderError: Upstream failure
        """
        key = self._require_key()
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": text}]}]}
        logger.debug(f"[GEMINI] prompt length={len(text)}")
        data = await request_json(
            "POST",
            url,
            "gemini",
            self.timeout,
            session=self.session,
            params={"key": key},
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        logger.info(f"[GEMINI] {len(data.get('candidates') or [])} candidates returned")
        return data

    async def list_models(self) -> Dict[str, Any]:
        """List the models available to the configured key."""
        key = self._require_key()
        return await request_json(
            "GET",
            f"{self.base_url}/models",
            "gemini",
            self.config.timeout_config.geo,
            session=self.session,
            params={"key": key},
        )

    async def ping(self) -> None:
        await self.list_models()
