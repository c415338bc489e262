"""
Paginated listing check.

FLOW:
1. Load the start URL and follow the redirect link it embeds.
2. Count slot markers on the page. The first marker is a header row.
3. Any marker left over -> MATCH, send SMS, stop.
4. Else follow the next-page link. No link, or a link back to a page
   already seen -> EXHAUSTED, stop quietly.

A missing redirect link is fatal (site markup changed). A missing next link
is the normal end of the walk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from slotwatch.browser import BrowserSession
from slotwatch.config import Settings
from slotwatch.dates import create_text
from slotwatch.notifier import SmsNotifier

logger = logging.getLogger(__name__)

# Leading marker entries that are never bookable.
PLACEHOLDER_ENTRIES = 1


class NavigationError(Exception):
    """Required page element missing."""


class ListingOutcome(Enum):
    MATCH = "match"
    EXHAUSTED = "exhausted"


@dataclass
class ListingResult:
    outcome: ListingOutcome
    pages_checked: int
    url: str | None = None
    sms_sid: str | None = None


def bookable_count(marker_count: int) -> int:
    """Markers left after dropping the placeholder entries."""
    return max(marker_count - PLACEHOLDER_ENTRIES, 0)


async def check_listing(
    session: BrowserSession, notifier: SmsNotifier, settings: Settings
) -> ListingResult:
    logger.info("Navigating to %s", settings.listing_url)
    await session.goto(settings.listing_url)

    redirect = await session.href_of(settings.redirect_link_selector)
    if not redirect:
        raise NavigationError(
            f"Redirect link {settings.redirect_link_selector!r} not found on {settings.listing_url}"
        )
    logger.info("Following redirect to %s", redirect)
    await session.goto(redirect)
    pages = 1
    visited = {redirect}

    while True:
        current = session.url
        visited.add(current)
        slots = bookable_count(await session.count(settings.slot_selector))
        logger.info("Page %d (%s): %d bookable slot(s)", pages, current, slots)

        if slots:
            message = create_text(f"at {current}")
            logger.info(message)
            sid = await notifier.send(message, settings.twilio_phone_number_to)
            return ListingResult(ListingOutcome.MATCH, pages, url=current, sms_sid=sid)

        next_url = await session.href_of(settings.next_page_selector)
        if not next_url or next_url in visited:
            logger.info("No more pages after %d; nothing available", pages)
            return ListingResult(ListingOutcome.EXHAUSTED, pages)

        logger.info("Going to next page %s", next_url)
        visited.add(next_url)
        await session.goto(next_url)
        pages += 1
