"""
Captcha retry loop.

FLOW PER ATTEMPT:
1. Load the captcha page and wait for the captcha element.
2. Pull the data-URI image out of its background style and decode it.
3. Solve via 2Captcha (submit + poll).
4. Type the answer, click continue.
5. Race two observers: error marker vs. success marker. First verdict wins.

STATES: ATTEMPTING -> SUCCEEDED | REJECTED | FAILED. REJECTED (error marker
shown) and FAILED (no success marker) both retry with a fresh image
(the site regenerates it per load) until the budget is spent, then
GIVING_UP raises CaptchaExhaustedError.

A success-wait timeout counts as failure. An error-wait timeout gives no
verdict; the race keeps waiting on the success observer.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from slotwatch.browser import BrowserSession
from slotwatch.captcha import CaptchaImageError, image_from_style
from slotwatch.config import Settings
from slotwatch.solver import CaptchaSolverError, TwoCaptchaClient

logger = logging.getLogger(__name__)

# Failures that burn one attempt instead of ending the run.
_ATTEMPT_ERRORS = (PlaywrightError, CaptchaSolverError, CaptchaImageError)


class CaptchaState(Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    REJECTED = "rejected"
    FAILED = "failed"
    GIVING_UP = "giving_up"


class CaptchaExhaustedError(Exception):
    """Every captcha attempt failed."""


async def answer_the_captcha(
    session: BrowserSession, solver: TwoCaptchaClient, settings: Settings
) -> str:
    """Load a fresh captcha, solve it, submit the answer. Returns the request id."""
    logger.info("Navigating to captcha page")
    await session.goto(settings.url)

    logger.info("Waiting for captcha to appear")
    await session.wait_for(settings.captcha_selector)

    logger.info("Extracting data URI")
    style = await session.background_image(settings.captcha_selector)
    image = image_from_style(style or "")
    image.verify()
    if settings.captcha_keep_images:
        image.save(settings.captcha_audit_dir or None)

    logger.info("Sending to 2Captcha")
    request_id, answer = await solver.solve(
        image,
        retries=settings.captcha_poll_retries,
        interval=settings.captcha_poll_interval_seconds,
        delay=settings.captcha_initial_delay_seconds,
    )
    logger.info("Got 2Captcha answer: %s", answer)

    logger.info("Typing in the captcha")
    await session.fill(settings.captcha_input_selector, answer)

    logger.info('Clicking "Continue"')
    await session.click(settings.captcha_submit_selector)
    return request_id


async def _wait_for_error(
    session: BrowserSession, selector: str, timeout: float
) -> CaptchaState | None:
    try:
        await session.wait_for(selector, timeout)
    except PlaywrightTimeoutError:
        return None
    logger.info("Error marker %r appeared", selector)
    return CaptchaState.REJECTED


async def _wait_for_success(
    session: BrowserSession, selector: str, timeout: float
) -> CaptchaState:
    try:
        await session.wait_for(selector, timeout)
    except PlaywrightTimeoutError:
        logger.info("Success marker %r did not appear within %.1fs", selector, timeout)
        return CaptchaState.FAILED
    return CaptchaState.SUCCEEDED


async def wait_for_outcome(session: BrowserSession, settings: Settings) -> CaptchaState:
    """
    Race the error observer against the success observer.

    Returns SUCCEEDED, REJECTED when the error marker shows, or FAILED when
    the success marker never does. When both settle together the error wins.
    The loser is cancelled. An observer raising propagates to the caller.
    """
    timeout = settings.captcha_outcome_timeout_seconds
    pending = {
        asyncio.create_task(_wait_for_error(session, settings.captcha_error_selector, timeout)),
        asyncio.create_task(_wait_for_success(session, settings.captcha_success_selector, timeout)),
    }
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            verdicts = {task.result() for task in done} - {None}
            if CaptchaState.REJECTED in verdicts:
                return CaptchaState.REJECTED
            if CaptchaState.FAILED in verdicts:
                return CaptchaState.FAILED
            if CaptchaState.SUCCEEDED in verdicts:
                return CaptchaState.SUCCEEDED
        return CaptchaState.FAILED
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def solve_captcha_with_retries(
    session: BrowserSession, solver: TwoCaptchaClient, settings: Settings
) -> int:
    """
    Get past the captcha page within `captcha_max_attempts` attempts.

    Returns the number of attempts used.
    Raises CaptchaExhaustedError when all attempts fail.
    """
    max_attempts = settings.captcha_max_attempts

    for attempt in range(1, max_attempts + 1):
        state = CaptchaState.ATTEMPTING
        request_id: str | None = None
        try:
            request_id = await answer_the_captcha(session, solver, settings)
            logger.info("Waiting to see if we answered the captcha correctly")
            state = await wait_for_outcome(session, settings)
        except _ATTEMPT_ERRORS:
            logger.warning("Captcha attempt %d raised", attempt, exc_info=True)
            state = CaptchaState.FAILED

        if state is CaptchaState.SUCCEEDED:
            logger.info("Successfully answered the captcha (attempt %d of %d)", attempt, max_attempts)
            return attempt

        # Only an answer the site marked wrong goes back to 2Captcha.
        if state is CaptchaState.REJECTED and request_id is not None:
            await solver.report_bad(request_id)

        if attempt < max_attempts:
            logger.error(
                "Failed to answer the captcha correctly; retrying (%d of %d)",
                attempt, max_attempts,
            )

    logger.error("Captcha state %s after %d attempts", CaptchaState.GIVING_UP.value, max_attempts)
    raise CaptchaExhaustedError(
        f"Failed to answer the captcha correctly after {max_attempts} attempts; giving up"
    )
