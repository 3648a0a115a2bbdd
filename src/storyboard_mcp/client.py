"""Gemini client pool and the credential-bound ``Provider`` handed to operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from google import genai
from google.genai import types

from .config import get_config
from .errors import CredentialMissingError, TransportError
from .retry import with_retry

logger = logging.getLogger(__name__)

_API_KEY_HEADER = "x-goog-api-key"


@dataclass(frozen=True)
class Provider:
    """One API key plus the ``genai.Client`` built for it.

    Analyzer, image and video operations take a Provider as their first
    argument instead of reaching for a global client, so every call in a
    workflow uses the same credential.
    """

    api_key: str
    client: genai.Client

    async def generate_content(
        self,
        *,
        model: str,
        contents: Any,
        config: types.GenerateContentConfig,
    ) -> types.GenerateContentResponse:
        """Run ``generate_content`` on the async API (retry per config)."""
        return await with_retry(
            lambda: self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            ),
            label=f"{model} generate_content",
        )

    async def generate_videos(
        self,
        *,
        model: str,
        prompt: str,
        image: types.Image,
        config: types.GenerateVideosConfig,
    ) -> types.GenerateVideosOperation:
        """Submit a Veo job and return its (not yet done) operation handle.

        Submitted exactly once: a retried submit could start a duplicate job.
        """
        return await self.client.aio.models.generate_videos(
            model=model,
            prompt=prompt,
            image=image,
            config=config,
        )

    async def refresh_operation(
        self, operation: types.GenerateVideosOperation
    ) -> types.GenerateVideosOperation:
        """Fetch the latest state of a video job."""
        return await with_retry(
            lambda: self.client.aio.operations.get(operation),
            label=f"status of {operation.name}",
        )

    async def fetch_media(self, uri: str) -> bytes:
        """GET a provider-hosted file with this provider's key.

        Raises:
            TransportError: If the response status is not 2xx.
        """
        async with httpx.AsyncClient(follow_redirects=True, timeout=120) as http:
            response = await http.get(uri, headers={_API_KEY_HEADER: self.api_key})
        if not response.is_success:
            raise TransportError(
                f"Failed to fetch video: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.content


class GeminiClient:
    """Process-wide Gemini client pool (one client per API key)."""

    _clients: dict[str, genai.Client] = {}

    @classmethod
    def resolve_key(cls, api_key: str | None = None) -> str:
        """Return the explicit or configured key.

        Raises:
            CredentialMissingError: If neither is set.
        """
        key = api_key or get_config().gemini_api_key
        if not key:
            raise CredentialMissingError(
                "API Key missing — set GEMINI_API_KEY or pass api_key explicitly"
            )
        return key

    @classmethod
    def get(cls, api_key: str | None = None) -> genai.Client:
        """Return (or create) the shared client for *api_key*."""
        key = cls.resolve_key(api_key)
        if key not in cls._clients:
            cls._clients[key] = genai.Client(api_key=key)
            logger.info("Created Gemini client (key …%s)", key[-4:])
        return cls._clients[key]

    @classmethod
    def provider(cls, api_key: str | None = None) -> Provider:
        """Build the Provider for *api_key* (or the configured key)."""
        key = cls.resolve_key(api_key)
        return Provider(api_key=key, client=cls.get(key))

    @classmethod
    async def close_all(cls) -> int:
        """Shut down all shared clients. Returns count closed."""
        count = 0
        for client in list(cls._clients.values()):
            try:
                await client.aio.aclose()
            except Exception:
                logger.debug("Async client close failed", exc_info=True)
            try:
                client.close()
            except Exception:
                logger.debug("Client close failed", exc_info=True)
            count += 1
        cls._clients.clear()
        logger.info("Closed %d Gemini client(s)", count)
        return count
