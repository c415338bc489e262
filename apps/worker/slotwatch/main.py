"""
slotwatch: Entry point.

One run per invocation: check the site, text the operator if something
turned up, exit. Scheduling is left to cron or a systemd timer.

Exit status 0: match notified, listing exhausted, or date not interesting.
Exit status 1: any fatal error (logged with traceback).
"""

import argparse
import asyncio
import logging
import sys

from slotwatch.browser import BrowserSession
from slotwatch.calendar_check import check_calendar
from slotwatch.config import Settings
from slotwatch.listing import check_listing
from slotwatch.notifier import SmsNotifier
from slotwatch.solver import TwoCaptchaClient

logger = logging.getLogger("slotwatch")

MODES = ("calendar", "listing")


async def run(settings: Settings, mode: str) -> None:
    if mode not in MODES:
        raise ValueError(f"Unknown mode {mode!r}; expected one of {', '.join(MODES)}")
    if mode == "listing" and not settings.listing_url:
        raise ValueError("SLOTWATCH_LISTING_URL must be set for listing mode")
    if mode == "calendar" and not settings.url:
        raise ValueError("SLOTWATCH_URL must be set for calendar mode")

    logger.info("slotwatch starting (%s)", mode)
    notifier = SmsNotifier(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_phone_number_from,
    )
    browser = BrowserSession(
        headless=settings.browser_headless,
        timeout_seconds=settings.browser_timeout_seconds,
    )

    if mode == "listing":
        async with browser as session:
            result = await check_listing(session, notifier, settings)
        logger.info("Listing check finished: %s after %d page(s)", result.outcome.value, result.pages_checked)
        return

    solver = TwoCaptchaClient(
        api_key=settings.captcha_api_key,
        base_url=settings.captcha_base_url,
        timeout=settings.captcha_request_timeout_seconds,
    )
    async with solver, browser as session:
        result = await check_calendar(session, solver, notifier, settings)
    logger.info("Calendar check finished: %r (interesting=%s)", result.appointment_date, result.interesting)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="slotwatch",
        description="Check an appointment site once and send an SMS if a slot is open.",
    )
    parser.add_argument(
        "mode",
        nargs="?",
        choices=MODES,
        help="which check to run (default: SLOTWATCH_MODE or 'calendar')",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = _parse_args(argv)
    try:
        settings = Settings()
        asyncio.run(run(settings, args.mode or settings.mode))
    except Exception:
        logger.error("slotwatch run failed", exc_info=True)
        return 1
    logger.info("Bye-bye")
    return 0


if __name__ == "__main__":
    sys.exit(main())
