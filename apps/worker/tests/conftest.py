"""
Shared fixtures for slotwatch worker tests.

Strategy:
- No real browser, 2Captcha or Twilio calls in unit tests
- Settings built explicitly with test-safe values (no sleeping, no .env)
- A scripted fake page stands in for BrowserSession
- Tiny real images for the captcha decoding path
"""

from __future__ import annotations

import base64
from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from slotwatch.config import Settings


# ── Settings ──────────────────────────────────────────────


@pytest.fixture
def test_settings(tmp_path):
    """Settings with test-safe defaults: zero delays, audit dir in tmp."""
    return Settings(
        _env_file=None,
        url="https://appointments.test/extern/appointment_showMonth.do",
        listing_url="https://appointments.test/extern/start.do",
        captcha_api_key="test-captcha-key",
        captcha_base_url="https://2captcha.test",
        captcha_initial_delay_seconds=0,
        captcha_poll_interval_seconds=0,
        captcha_poll_retries=3,
        captcha_max_attempts=3,
        captcha_keep_images=True,
        captcha_audit_dir=str(tmp_path),
        twilio_account_sid="ACtest",
        twilio_auth_token="test-token",
        twilio_phone_number_from="+15550000001",
        twilio_phone_number_to="+15550000002",
        earlier_than_day=15,
        earlier_than_month=3,
        captcha_outcome_timeout_seconds=0.05,
    )


# ── Images ────────────────────────────────────────────────


def make_image_bytes(fmt: str = "JPEG") -> bytes:
    from PIL import Image

    img = Image.new("RGB", (120, 40), color=(255, 255, 255))
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_background_style(fmt: str = "JPEG", mime: str = "image/jpeg") -> str:
    b64 = base64.b64encode(make_image_bytes(fmt)).decode("ascii")
    return f'url("data:{mime};base64,{b64}")'


@pytest.fixture
def captcha_style():
    return make_background_style()


# ── HTTP ──────────────────────────────────────────────────


def make_response(status_code: int = 200, json_data=None, text: str | None = None) -> httpx.Response:
    """Build a minimal httpx.Response for mocking."""
    request = httpx.Request("GET", "https://2captcha.test")
    if text is not None:
        return httpx.Response(status_code=status_code, text=text, request=request)
    return httpx.Response(status_code=status_code, json=json_data or {}, request=request)


# ── Fakes ─────────────────────────────────────────────────


@pytest.fixture
def mock_notifier():
    notifier = MagicMock()
    notifier.send = AsyncMock(return_value="SM123")
    return notifier


@pytest.fixture
def mock_solver():
    solver = MagicMock()
    solver.solve = AsyncMock(return_value=("req-1", "abc123"))
    solver.report_bad = AsyncMock()
    return solver


class FakeListingSession:
    """
    BrowserSession stand-in for the paginated listing.

    `pages` maps URL -> {"markers": int, "next": url | None}. The start page
    only carries a redirect link.
    """

    def __init__(self, start_url: str, redirect: str | None, pages: dict[str, dict]):
        self._start_url = start_url
        self._redirect = redirect
        self._pages = pages
        self.url = ""
        self.loads: list[str] = []

    async def goto(self, url: str) -> None:
        self.loads.append(url)
        self.url = url

    async def href_of(self, selector: str) -> str | None:
        if self.url == self._start_url:
            return self._redirect
        return self._pages[self.url].get("next")

    async def count(self, selector: str) -> int:
        return self._pages[self.url]["markers"]


@pytest.fixture
def listing_session_factory():
    return FakeListingSession
