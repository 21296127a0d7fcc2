"""Analysis boundary: one model round trip per image, failures become empty envelopes."""

import asyncio
import logging
import time
import uuid
from typing import Any
from urllib.parse import urlparse

from catalog_worker.adapters.base import VisionAdapter
from catalog_worker.config import ANALYSIS_TIMEOUT_SECONDS
from catalog_worker.errors import InputError
from catalog_worker.parser import create_error_response, parse_analysis_response
from catalog_worker.prompt import build_analysis_messages
from catalog_worker.schemas.image import AnalysisContext, AnalysisResult

logger = logging.getLogger(__name__)


def validate_image_url(image_url: str | None) -> str:
    """Return the URL if it is fetchable (http/https with a host), else raise InputError."""
    if not image_url or not isinstance(image_url, str):
        raise InputError("Image URL is required")
    parsed = urlparse(image_url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InputError(f"Image URL must be an http(s) URL, got: {image_url}")
    return image_url.strip()


class ImageAnalyzer:
    """Runs the prompt → model → parse pipeline for a single image."""

    def __init__(self, adapter: VisionAdapter | None = None, timeout: float | None = None):
        if adapter is None:
            from catalog_worker.adapters import get_adapter

            adapter = get_adapter()
        self.adapter = adapter
        self.timeout = ANALYSIS_TIMEOUT_SECONDS if timeout is None else timeout

    async def analyze(
        self, image_url: str, context: AnalysisContext | None = None
    ) -> AnalysisResult:
        """Analyze one image.

        Raises:
            InputError: if ``image_url`` is not a fetchable URL. Every other
                failure is returned as an error envelope.
        """
        image_url = validate_image_url(image_url)
        context = context or AnalysisContext()
        request_id = uuid.uuid4().hex
        started = time.perf_counter()
        logger.info(f"[{request_id}] Starting image analysis for {image_url}")

        try:
            messages = build_analysis_messages(image_url, context)
            call = self.adapter.complete(messages)
            if self.timeout and self.timeout > 0:
                text = await asyncio.wait_for(call, timeout=self.timeout)
            else:
                text = await call
            model_duration = time.perf_counter() - started
            logger.info(
                f"[{request_id}] Model response received in {model_duration:.2f}s "
                f"({len(text)} chars)"
            )
            logger.debug(f"[{request_id}] Raw model response: {text!r}")

            result = parse_analysis_response(text, context)
        except Exception as e:
            logger.error(
                f"[{request_id}] Image analysis failed after "
                f"{time.perf_counter() - started:.2f}s: {e!r}"
            )
            return create_error_response(e, context)

        logger.info(
            f"[{request_id}] Analysis completed in {time.perf_counter() - started:.2f}s: "
            f"{len(result.objects)} objects, {len(result.scenes)} scenes, "
            f"{len(result.tags)} tags"
        )
        return result

    async def handle_request(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        """Handle an ``{"imageUrl": ..., "metadata": {...}}`` analysis request.

        Returns an HTTP-style status and a JSON-ready body. The body always has
        the analysis shape, including on errors.
        """
        metadata = body.get("metadata") or {}
        try:
            context = AnalysisContext.model_validate(metadata)
        except ValueError as e:
            logger.warning(f"Ignoring invalid request metadata: {e}")
            context = AnalysisContext()

        try:
            result = await self.analyze(body.get("imageUrl"), context)
        except InputError as e:
            logger.error(f"Rejected analysis request: {e}")
            envelope = create_error_response(e, context).model_dump()
            envelope["details"] = "Failed to analyze image"
            return 400, envelope

        if not result.succeeded:
            return 500, result.model_dump()
        return 200, result.model_dump()
