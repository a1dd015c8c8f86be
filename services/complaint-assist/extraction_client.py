"""Async HTTP client for the external text-extraction service.

Uses httpx with configurable timeouts. Transport-level retry via tenacity
(503/429 and connection errors) is opt-in through EXTRACTION_RETRY_ATTEMPTS;
the default of 1 means a single attempt, and failures surface to the caller.
"""

import logging

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings
from models import ExtractionRequest, ExtractionResult

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 503}


class ExtractionFailure(Exception):
    """The extraction service did not return a usable result."""


class ExtractionServiceUnavailable(ExtractionFailure):
    """Extraction service is temporarily unavailable (503/429, connection error)."""


class ExtractionClient:
    """HTTP client for the extraction service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
        connect_timeout: int | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        retry_backoff: float | None = None,
    ):
        self._base_url = (base_url or settings.EXTRACTION_SERVICE_URL).rstrip("/")
        self._retry_attempts = max(
            1, retry_attempts if retry_attempts is not None else settings.EXTRACTION_RETRY_ATTEMPTS
        )
        self._retry_delay = retry_delay if retry_delay is not None else settings.EXTRACTION_RETRY_DELAY
        self._retry_backoff = retry_backoff if retry_backoff is not None else settings.EXTRACTION_RETRY_BACKOFF

        read_timeout = timeout if timeout is not None else settings.EXTRACTION_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.EXTRACTION_CONNECT_TIMEOUT

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(
                connect=float(conn_timeout),
                read=float(read_timeout),
                write=30.0,
                pool=30.0,
            ),
        )

    async def aclose(self):
        await self._client.aclose()

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        """Send raw text to the extraction service and validate its response.

        Raises ExtractionServiceUnavailable or ExtractionFailure.
        """
        payload = request.model_dump(mode="json")
        logger.info(
            "Requesting extraction: source=%s chars=%d",
            request.source_hint.value, len(request.raw_text),
        )

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(ExtractionServiceUnavailable),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(
                multiplier=self._retry_delay,
                exp_base=self._retry_backoff,
                max=60,
            ),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Extraction service unavailable, retrying in %.1fs (attempt %d/%d)",
                state.next_action.sleep,  # type: ignore[union-attr]
                state.attempt_number,
                self._retry_attempts,
            ),
        ):
            with attempt:
                data = await self._send_extract(payload)

        try:
            return ExtractionResult.model_validate(data)
        except ValidationError as e:
            logger.error("Extraction service returned a malformed result: %s", e)
            raise ExtractionFailure(f"Malformed extraction result: {e}") from e

    async def _send_extract(self, payload: dict) -> dict:
        """Send a single extraction request."""
        try:
            resp = await self._client.post("/ai/extract", json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.warning("Extraction service connection failed: %s", e)
            raise ExtractionServiceUnavailable(f"Cannot connect to extraction service: {e}") from e
        except httpx.ReadTimeout as e:
            logger.warning("Extraction service read timeout: %s", e)
            raise ExtractionServiceUnavailable(f"Extraction service read timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Extraction service HTTP error: %s", e)
            raise ExtractionFailure(f"Extraction service HTTP error: {e}") from e

        if resp.status_code in RETRYABLE_STATUS:
            detail = _error_detail(resp)
            logger.warning("Extraction service returned %d: %s", resp.status_code, detail)
            raise ExtractionServiceUnavailable(detail)

        if resp.status_code != 200:
            detail = _error_detail(resp)
            logger.error("Extraction service error %d: %s", resp.status_code, detail)
            raise ExtractionFailure(detail)

        try:
            data = resp.json()
        except ValueError as e:
            raise ExtractionFailure("Extraction service returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise ExtractionFailure("Extraction service returned a non-object body")
        return data

    async def health(self) -> dict:
        """Check extraction service health. Returns a health dict, never raises."""
        try:
            resp = await self._client.get("/health", timeout=10.0)
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Extraction service health check failed: %s", e)
            return {"status": "unreachable", "error": str(e)}


def _error_detail(resp: httpx.Response) -> str:
    """Pull a message out of ``{"detail": ...}`` or ``{"error": {"message": ...}}`` bodies."""
    fallback = f"HTTP {resp.status_code}"
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    if "detail" in body:
        return str(body["detail"])
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return fallback
