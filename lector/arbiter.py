"""OCR provider arbitration with failure tracking and cooldown."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

from lector.backends.base import OCRBackend, RecognizedText
from lector.errors import LocalProviderError, RemoteProviderError
from lector.models import (
    ArbiterStatus,
    ModeRecommendation,
    OCRMode,
    OCRRequest,
    OCRResult,
    OCRSource,
    ProgressCallback,
)

logger = logging.getLogger(__name__)

# Pause after each image in recognize_many, by result source
_BATCH_PAUSE = {"local": 0.5, "remote": 2.0}


@dataclass
class ArbiterHealthState:
    """Remote-provider health tracked by one OCRArbiter."""

    consecutive_failures: int = 0
    cooldown_active: bool = False
    cooldown_expiry: float = 0.0

    def reset(self) -> None:
        """Return to the healthy state."""
        self.consecutive_failures = 0
        self.cooldown_active = False
        self.cooldown_expiry = 0.0


class OCRArbiter:
    """Chooses between a remote and a local OCR backend per call.

    States are NORMAL and COOLDOWN. In ``auto`` mode each remote failure
    increments a counter; reaching ``failure_threshold`` starts a cooldown
    of ``cooldown_seconds`` during which remote is skipped entirely. Any
    remote success resets the counter. Cooldown expiry is checked lazily
    at the start of the next ``auto`` call and clears the counter.

    ``offline`` and ``online`` calls never read or change health state.
    Calls are expected one at a time; the arbiter does no locking.

    Example:
        >>> arbiter = OCRArbiter(MistralBackend(), TesseractBackend())
        >>> result = await arbiter.recognize(Path("page.jpg"))
        >>> print(result.source, result.fallback_used)
    """

    def __init__(
        self,
        remote: OCRBackend | None,
        local: OCRBackend,
        failure_threshold: int = 2,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        state: ArbiterHealthState | None = None,
    ):
        """Initialize the arbiter.

        Args:
            remote: High-accuracy remote backend (None disables remote OCR)
            local: On-device backend used offline and as fallback
            failure_threshold: Consecutive remote failures that start a cooldown
            cooldown_seconds: Length of a cooldown
            clock: Wall clock used for cooldown timing
            sleep: Awaitable sleep used between images in recognize_many
            state: Health state to share (a fresh one is created if None)
        """
        self.remote = remote
        self.local = local
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.state = state or ArbiterHealthState()
        self._clock = clock
        self._sleep = sleep

    async def recognize(self, image_path: Path, mode: OCRMode = "auto") -> OCRResult:
        """Recognize text in one image according to mode and health.

        Args:
            image_path: Local image file
            mode: "offline" (local only), "online" (remote only), or "auto"

        Returns:
            OCRResult; in offline and auto modes failures are reported in
            the result rather than raised

        Raises:
            RemoteProviderError: In online mode, when the remote call fails
                or no remote backend is configured
        """
        start = time.monotonic()
        image_path = Path(image_path)

        if mode == "offline":
            return await self._run_local(image_path, start, fallback_used=False)

        if mode == "online":
            if self.remote is None:
                raise RemoteProviderError("No remote OCR backend configured")
            recognized = await self.remote.recognize(image_path)
            return self._to_result(recognized, "remote", start)

        self._expire_cooldown()

        if self.remote is None:
            return await self._run_local(image_path, start, fallback_used=True)

        if self.state.cooldown_active:
            logger.debug(f"Remote OCR cooling down, using {self.local.name} for {image_path.name}")
            return await self._run_local(image_path, start, fallback_used=True)

        try:
            recognized = await self.remote.recognize(image_path)
        except RemoteProviderError as e:
            self._record_failure()
            logger.warning(
                f"{self.remote.name} OCR failed for {image_path.name} ({e}), "
                f"falling back to {self.local.name}"
            )
            return await self._run_local(image_path, start, fallback_used=True, remote_error=e)

        self.state.consecutive_failures = 0
        return self._to_result(recognized, "remote", start)

    async def handle(self, request: OCRRequest) -> OCRResult:
        """Recognize the image named by an OCRRequest."""
        return await self.recognize(request.image_path, request.mode)

    async def recognize_many(
        self,
        image_paths: Sequence[Path],
        mode: OCRMode = "auto",
        on_progress: ProgressCallback | None = None,
    ) -> list[OCRResult]:
        """Recognize several images one after another.

        Pauses between images (0.5s after a local result, 2s after a remote
        one) to spread load. Any exception for an image yields a
        zero-confidence result with ``error`` set, so the output always
        matches the input length.

        Args:
            image_paths: Images to process
            mode: OCR mode applied to every image
            on_progress: Optional progress callback (stage, current, total)

        Returns:
            One OCRResult per input image, in order
        """
        results: list[OCRResult] = []
        total = len(image_paths)

        for i, image_path in enumerate(image_paths):
            start = time.monotonic()
            try:
                result = await self.recognize(image_path, mode)
            except Exception as e:
                logger.warning(f"OCR failed for {Path(image_path).name}: {e}")
                result = OCRResult(
                    text="",
                    confidence=0.0,
                    source="remote" if mode == "online" else "local",
                    elapsed_time=time.monotonic() - start,
                    error=str(e),
                )
            results.append(result)

            if on_progress:
                on_progress("images", i + 1, total)

            if i < total - 1:
                await self._sleep(_BATCH_PAUSE[result.source])

        return results

    def status(self) -> ArbiterStatus:
        """Snapshot of current health without changing it."""
        now = self._clock()
        cooling = self.state.cooldown_active and now < self.state.cooldown_expiry
        remaining = max(0.0, self.state.cooldown_expiry - now) if cooling else 0.0
        return ArbiterStatus(
            cooldown_active=cooling,
            consecutive_failures=self.state.consecutive_failures,
            cooldown_expiry=self.state.cooldown_expiry,
            seconds_until_remote=remaining,
            can_use_remote=self.remote is not None and not cooling,
        )

    def reset(self) -> None:
        """Clear failures and any cooldown."""
        self.state.reset()
        logger.info("OCR arbiter health reset")

    def force_cooldown(self, seconds: float | None = None) -> None:
        """Skip remote OCR in auto mode for a while.

        Args:
            seconds: Cooldown length (defaults to cooldown_seconds)
        """
        duration = self.cooldown_seconds if seconds is None else seconds
        self.state.consecutive_failures = max(
            self.state.consecutive_failures, self.failure_threshold
        )
        self.state.cooldown_active = True
        self.state.cooldown_expiry = self._clock() + duration
        logger.info(f"Remote OCR cooldown forced for {duration:.0f}s")

    def recommend(self) -> ModeRecommendation:
        """Suggest an OCR mode based on current health."""
        if self.remote is None:
            return ModeRecommendation(mode="offline", reason="No remote OCR backend configured.")

        status = self.status()
        if status.cooldown_active:
            minutes = math.ceil(status.seconds_until_remote / 60)
            return ModeRecommendation(
                mode="offline",
                reason=(
                    f"Remote OCR temporarily disabled after {status.consecutive_failures} "
                    f"consecutive failures. Will retry in {minutes} minutes."
                ),
            )
        if status.consecutive_failures > 0:
            return ModeRecommendation(
                mode="auto",
                reason="Recent remote OCR failures detected. Auto mode will try remote first, "
                "then fall back to local.",
            )
        return ModeRecommendation(
            mode="auto",
            reason="All systems operational. Auto mode recommended for best results.",
        )

    def _expire_cooldown(self) -> None:
        if self.state.cooldown_active and self._clock() >= self.state.cooldown_expiry:
            logger.info("Remote OCR cooldown expired, re-enabling remote provider")
            self.state.reset()

    def _record_failure(self) -> None:
        self.state.consecutive_failures += 1
        if (
            not self.state.cooldown_active
            and self.state.consecutive_failures >= self.failure_threshold
        ):
            self.state.cooldown_active = True
            self.state.cooldown_expiry = self._clock() + self.cooldown_seconds
            logger.info(
                f"Remote OCR disabled for {self.cooldown_seconds:.0f}s after "
                f"{self.state.consecutive_failures} consecutive failures"
            )

    async def _run_local(
        self,
        image_path: Path,
        start: float,
        fallback_used: bool,
        remote_error: Exception | None = None,
    ) -> OCRResult:
        try:
            recognized = await self.local.recognize(image_path)
        except LocalProviderError as e:
            logger.warning(f"{self.local.name} OCR failed for {image_path.name}: {e}")
            if remote_error is None:
                return OCRResult(
                    text="",
                    confidence=0.0,
                    source="local",
                    elapsed_time=time.monotonic() - start,
                    fallback_used=fallback_used,
                    error=str(e),
                )
            return OCRResult(
                text=(
                    f"OCR failed for {image_path.name}.\n"
                    f"Remote OCR error: {remote_error}\n"
                    f"Local OCR error: {e}"
                ),
                confidence=0.0,
                source="local",
                elapsed_time=time.monotonic() - start,
                fallback_used=fallback_used,
                error=f"remote: {remote_error}; local: {e}",
            )
        return self._to_result(recognized, "local", start, fallback_used=fallback_used)

    def _to_result(
        self,
        recognized: RecognizedText,
        source: OCRSource,
        start: float,
        fallback_used: bool = False,
    ) -> OCRResult:
        return OCRResult(
            text=recognized.text,
            confidence=recognized.confidence,
            source=source,
            elapsed_time=time.monotonic() - start,
            fallback_used=fallback_used,
            blocks=recognized.blocks,
        )
