"""
2Captcha API client.

DESIGN PRINCIPLES:
1. Submit once, then poll. The service is asynchronous; answers take seconds.
2. Fixed warm-up delay before the first poll (service recommends ~15s).
3. Bounded poll budget at a fixed interval. Never poll forever.
4. CAPCHA_NOT_READY is the only retryable status. Any other error is terminal.
5. All methods are async.

Envelope (json=1): {"status": 1, "request": "<id or answer>"} on success,
{"status": 0, "request": "<reason>"} otherwise.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging

import httpx

from slotwatch.captcha import CaptchaImage

logger = logging.getLogger(__name__)

NOT_READY = "CAPCHA_NOT_READY"


class CaptchaSolverError(Exception):
    """Base exception for 2Captcha errors."""
    ...


class SubmissionError(CaptchaSolverError):
    """in.php rejected the image. Message is the service reason string."""
    ...


class SolveError(CaptchaSolverError):
    """res.php reported a terminal failure (e.g. ERROR_CAPTCHA_UNSOLVABLE)."""
    ...


class PollTimeoutError(CaptchaSolverError):
    """Poll budget exhausted without an answer."""
    ...


class TwoCaptchaClient:
    """Async client for the 2Captcha in.php / res.php API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://2captcha.com",
        timeout: int = 30,
    ):
        if not api_key:
            raise ValueError("SLOTWATCH_CAPTCHA_API_KEY must be set for captcha solving")
        self._api_key = api_key
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> TwoCaptchaClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    def _parse(resp: httpx.Response) -> dict:
        """Decode the JSON envelope or raise CaptchaSolverError."""
        if resp.status_code >= 400:
            raise CaptchaSolverError(f"2Captcha returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            body_preview = resp.text[:200] if resp.text else "(empty)"
            logger.error("Malformed JSON from 2Captcha: %s", body_preview)
            raise CaptchaSolverError(f"Malformed JSON response: {exc}") from exc
        if not isinstance(data, dict) or "status" not in data:
            raise CaptchaSolverError(f"Unexpected 2Captcha response: {data!r}")
        return data

    async def submit(self, image: CaptchaImage) -> str:
        """
        POST /in.php with the base64-encoded image.

        Returns the request id used as the poll key.
        Raises SubmissionError with the service reason on status 0.
        """
        form = {
            "key": self._api_key,
            "method": "base64",
            "regsense": "1",
            "json": "1",
            "body": base64.b64encode(image.data).decode("ascii"),
        }
        try:
            resp = await self._client.post("/in.php", data=form)
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Submission failed: {exc}") from exc

        data = self._parse(resp)
        if data["status"] != 1:
            raise SubmissionError(str(data.get("request", "")))
        request_id = str(data["request"])
        logger.info("2Captcha request id is %s", request_id)
        return request_id

    async def _fetch_result(self, request_id: str) -> str | None:
        """One res.php query. None means not ready yet."""
        params = {
            "key": self._api_key,
            "action": "get",
            "id": request_id,
            "json": "1",
        }
        try:
            resp = await self._client.get("/res.php", params=params)
        except httpx.TransportError:
            logger.warning("2Captcha poll for %s failed; will retry", request_id, exc_info=True)
            return None

        data = self._parse(resp)
        if data["status"] == 1:
            return str(data["request"])
        reason = str(data.get("request", ""))
        if reason == NOT_READY:
            return None
        raise SolveError(reason)

    async def poll(
        self,
        request_id: str,
        retries: int = 30,
        interval: float = 1.5,
        delay: float = 15.0,
    ) -> str:
        """
        Wait `delay` seconds, then query res.php up to `retries` times,
        `interval` seconds apart.

        Raises SolveError on a terminal service error and PollTimeoutError
        when the budget runs out.
        """
        await asyncio.sleep(delay)
        for attempt in range(1, retries + 1):
            answer = await self._fetch_result(request_id)
            if answer is not None:
                logger.info("Got 2Captcha answer for %s after %d poll(s)", request_id, attempt)
                return answer
            logger.debug("2Captcha %s not ready (%d of %d)", request_id, attempt, retries)
            if attempt < retries:
                await asyncio.sleep(interval)

        raise PollTimeoutError(
            f"No answer for request {request_id} after {retries} polls"
        )

    async def solve(
        self,
        image: CaptchaImage,
        retries: int = 30,
        interval: float = 1.5,
        delay: float = 15.0,
    ) -> tuple[str, str]:
        """Submit and poll. Returns (request_id, answer)."""
        request_id = await self.submit(image)
        answer = await self.poll(request_id, retries=retries, interval=interval, delay=delay)
        return request_id, answer

    async def report_bad(self, request_id: str) -> None:
        """Tell 2Captcha the answer was wrong. Best-effort: never raises."""
        params = {
            "key": self._api_key,
            "action": "reportbad",
            "id": request_id,
            "json": "1",
        }
        try:
            resp = await self._client.get("/res.php", params=params)
            self._parse(resp)
        except (httpx.HTTPError, CaptchaSolverError):
            logger.warning("Failed to report bad answer for %s", request_id, exc_info=True)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
