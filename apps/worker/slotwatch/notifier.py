"""
SMS notification via Twilio.

RULES:
1. One message per run, sent from the configured sender number.
2. Provider rejection or a transport failure raises DeliveryError. Never retried.
"""

from __future__ import annotations

import asyncio
import logging

import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Twilio rejected or failed to accept the message."""


class SmsNotifier:
    """Send one-line text messages through Twilio."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        if not (account_sid and auth_token and from_number):
            raise ValueError(
                "SLOTWATCH_TWILIO_ACCOUNT_SID, SLOTWATCH_TWILIO_AUTH_TOKEN and "
                "SLOTWATCH_TWILIO_PHONE_NUMBER_FROM must be set for SMS"
            )
        self._from_number = from_number
        self._client = Client(account_sid, auth_token)

    async def send(self, body: str, to_number: str) -> str:
        """Send `body` to `to_number`. Returns the message SID."""
        try:
            message = await asyncio.to_thread(
                self._client.messages.create,
                body=body,
                from_=self._from_number,
                to=to_number,
            )
        except (TwilioException, requests.RequestException) as e:
            raise DeliveryError(f"SMS to {to_number} failed: {e}") from e

        logger.info("SMS sent to %s, SID: %s", to_number, message.sid)
        return message.sid
