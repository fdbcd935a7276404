"""Shared client for chat-completions vision OCR APIs."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from lector.backends.base import OCRBackend, RecognizedText
from lector.errors import RateLimitError, RemoteProviderError
from lector.utils.images import image_to_jpeg_base64, load_image, resize_for_ocr

logger = logging.getLogger(__name__)


class VisionAPIBackend(OCRBackend):
    """OCR backend speaking the chat-completions envelope.

    The image goes out as a base64 JPEG data URL next to a fixed
    instruction; the text comes back in ``choices[0].message.content``.

    Outbound calls are spaced at least ``min_interval`` seconds apart,
    retries included. HTTP 429 is retried up to ``max_retries`` total
    attempts with exponential backoff (``backoff_base``, doubling), or the
    server's Retry-After when that is longer. Every other HTTP error fails
    immediately.

    Subclasses set the provider constants below.
    """

    API_BASE: str = ""
    DEFAULT_MODEL: str = ""
    API_KEY_ENV: str = ""
    BASE_URL_ENV: str = ""
    CONFIDENCE: float = 0.9

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        max_tokens: int = 4000,
        temperature: float = 0.1,
        min_interval: float = 5.0,
        max_retries: int = 3,
        backoff_base: float = 2.0,
        max_image_dimension: int = 2048,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize vision API backend.

        Args:
            model: Model name (provider default if None)
            api_key: API key (defaults to the provider's env var)
            base_url: API base URL (defaults to the provider's env var, then API_BASE)
            timeout: Request timeout in seconds
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            min_interval: Minimum seconds between outbound requests
            max_retries: Total attempts when rate limited
            backoff_base: First backoff delay in seconds (doubles per attempt)
            max_image_dimension: Largest image side sent to the API
            client: Pre-built HTTP client (one is created if None)
            sleep: Awaitable sleep used for throttling and backoff
            clock: Monotonic clock used for throttling
        """
        self.model = model or self.DEFAULT_MODEL
        self.api_key = api_key or os.environ.get(self.API_KEY_ENV)
        base_url = base_url or os.environ.get(self.BASE_URL_ENV) or self.API_BASE
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.min_interval = min_interval
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.max_image_dimension = max_image_dimension
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep
        self._clock = clock
        self._last_request: float | None = None

    async def recognize(
        self,
        image_path: Path,
        prompt: str | None = None,
    ) -> RecognizedText:
        """Perform OCR on an image through the vision API.

        Args:
            image_path: Local image file to process
            prompt: Optional custom instruction (uses default if None)

        Returns:
            RecognizedText with the provider's fixed confidence

        Raises:
            RemoteProviderError: If the key is missing, the request fails,
                or rate limiting persists past the retry limit
        """
        if not self.api_key:
            raise RemoteProviderError(
                f"{self.name} API key not set. Pass api_key or set {self.API_KEY_ENV}."
            )

        image_base64 = await asyncio.to_thread(self._encode_image, image_path)
        payload = self._build_payload(prompt or self.get_default_prompt(), image_base64)

        attempt = 1
        while True:
            await self._throttle()
            try:
                text = await self._send(payload)
                return RecognizedText(text=text, confidence=self.CONFIDENCE)
            except RateLimitError as e:
                if attempt >= self.max_retries:
                    raise RemoteProviderError(
                        f"Rate limit persisted after {self.max_retries} attempts",
                        http_status=429,
                    ) from e

                delay = self.backoff_base * 2 ** (attempt - 1)
                if e.retry_after is not None:
                    delay = max(delay, e.retry_after)
                logger.debug(
                    f"{self.name} rate limited (attempt {attempt}/{self.max_retries}), "
                    f"backing off {delay:.1f}s"
                )
                await self._sleep(delay)
                attempt += 1

    async def is_available(self) -> bool:
        """Check if the API is reachable with the configured key.

        Returns:
            True if API key is set and GET /models answers 200
        """
        if not self.api_key:
            return False

        try:
            response = await self._client.get(
                f"{self.base_url}/models", headers=self._headers()
            )
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def aclose(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _encode_image(self, image_path: Path) -> str:
        try:
            image = load_image(image_path)
        except OSError as e:
            raise RemoteProviderError(f"Cannot read image {image_path}: {e}") from e
        image = resize_for_ocr(image, self.max_image_dimension)
        return image_to_jpeg_base64(image)

    def _image_part(self, data_url: str) -> dict[str, Any]:
        """Build the image content part of the user message."""
        return {"type": "image_url", "image_url": {"url": data_url}}

    def _build_payload(self, prompt: str, image_base64: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        self._image_part(f"data:image/jpeg;base64,{image_base64}"),
                    ],
                }
            ],
        }

    async def _throttle(self) -> None:
        """Wait until min_interval has passed since the previous request."""
        if self._last_request is not None:
            wait = self._last_request + self.min_interval - self._clock()
            if wait > 0:
                logger.debug(f"{self.name} throttling for {wait:.2f}s")
                await self._sleep(wait)
        self._last_request = self._clock()

    async def _send(self, payload: dict[str, Any]) -> str:
        """POST one completion request and return the message text.

        Raises:
            RateLimitError: On HTTP 429
            RemoteProviderError: On any other failure
        """
        try:
            response = await self._client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
            )
        except httpx.TransportError as e:
            raise RemoteProviderError(f"{self.name} request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitError(
                f"{self.name} rate limit exceeded",
                retry_after=_parse_retry_after(response.headers.get("retry-after")),
            )
        if response.status_code >= 400:
            raise RemoteProviderError(
                response.text[:200] or response.reason_phrase,
                http_status=response.status_code,
            )

        try:
            result = response.json()
            content = result["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise RemoteProviderError(f"{self.name} returned a malformed response") from e

        if isinstance(content, list):
            content = "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )
        return (content or "").strip()


def _parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None
