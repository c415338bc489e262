"""Single calendar page check: captcha, read the next date, SMS if early enough."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from slotwatch.browser import BrowserSession
from slotwatch.captcha_loop import solve_captcha_with_retries
from slotwatch.config import Settings
from slotwatch.dates import create_text, is_interesting_appointment_date
from slotwatch.notifier import SmsNotifier
from slotwatch.solver import TwoCaptchaClient

logger = logging.getLogger(__name__)


@dataclass
class CalendarResult:
    appointment_date: str
    interesting: bool
    sms_sid: str | None = None


async def check_calendar(
    session: BrowserSession,
    solver: TwoCaptchaClient,
    notifier: SmsNotifier,
    settings: Settings,
) -> CalendarResult:
    await solve_captcha_with_retries(session, solver, settings)

    logger.info("Getting the next appointment date")
    appointment_date = (await session.text_of(settings.appointment_date_selector)) or ""

    message = create_text(appointment_date)
    logger.info(message)

    if not is_interesting_appointment_date(
        appointment_date, settings.earlier_than_day, settings.earlier_than_month
    ):
        logger.info("Unfortunately, that's not a very interesting appointment date.")
        logger.info(
            "We're looking for something earlier than %s.%s",
            settings.earlier_than_day, settings.earlier_than_month,
        )
        return CalendarResult(appointment_date, interesting=False)

    logger.info("That's an interesting appointment date! Sending text message")
    sid = await notifier.send(message, settings.twilio_phone_number_to)
    logger.info("Sent text message")
    return CalendarResult(appointment_date, interesting=True, sms_sid=sid)
