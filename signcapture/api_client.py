"""
Contribution API client — POSTs an assembled payload to the backend.

Transport problems never raise into the UI: every outcome comes back as a
SubmissionResult so the review step can offer "retry" without re-recording.
"""

import logging
from typing import Optional

import httpx
import orjson
from pydantic import ValidationError

from signcapture.config import API_TIMEOUT, API_URL
from signcapture.core.submission import SubmissionResult, SubmissionStatus, interpret_response

log = logging.getLogger("api_client")

CONTRIBUTE_PATH = "/api/contribute"


class ContributionClient:
    """
    Thin async wrapper over httpx.AsyncClient.

    Usage:
        async with ContributionClient() as client:
            result = await client.submit(prepared.payload)
    """

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(base_url=self._base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ContributionClient":
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._http.aclose()

    async def submit(self, payload: dict) -> SubmissionResult:
        log.info("📤 Submitting '%s' (%d frames, %d attempts) → %s%s",
                 payload.get("word"), len(payload.get("frames", [])),
                 payload.get("num_attempts", 0), self._base_url, CONTRIBUTE_PATH)
        try:
            resp = await self._http.post(
                CONTRIBUTE_PATH,
                content=orjson.dumps(payload),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            log.warning("Contribution POST failed: %s", exc)
            return SubmissionResult(
                status=SubmissionStatus.TRANSPORT_ERROR,
                reason=f"Could not reach the contribution server ({exc.__class__.__name__})",
            )

        log.info("📥 Response status: %d", resp.status_code)
        try:
            body = orjson.loads(resp.content) if resp.content else {}
        except orjson.JSONDecodeError:
            body = resp.text

        try:
            return interpret_response(resp.status_code, body)
        except ValidationError as exc:
            log.warning("Unexpected response shape: %s", exc)
            return SubmissionResult(
                status=SubmissionStatus.TRANSPORT_ERROR,
                reason="Unexpected response from the contribution server",
                status_code=resp.status_code,
            )
