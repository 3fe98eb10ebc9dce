"""
Twilio SMS Adapter

Sends SMS through the Twilio REST API. The Twilio client is synchronous,
so each send runs in a worker thread.
"""

import asyncio
import logging
import re

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client

from notifications_core.adapters.base import Channel, DeliveryAdapter, DeliveryResult, RenderedMessage

logger = logging.getLogger(__name__)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")

SMS_MAX_LENGTH = 1600


def is_e164(number: str) -> bool:
    return bool(E164_PATTERN.match(number or ""))


class TwilioSmsAdapter(DeliveryAdapter):
    """Twilio SMS adapter."""

    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Client | None = None,
    ):
        super().__init__(Channel.SMS)
        if not from_number:
            raise ValueError("TWILIO_FROM not set")
        if client is None:
            if not account_sid or not auth_token:
                raise ValueError("Twilio credentials not configured (TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN)")
            client = Client(account_sid, auth_token)
        self.client = client
        self.from_number = from_number

    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        if not is_e164(destination):
            logger.warning(f"Refusing SMS to non-E.164 number {destination!r}")
            return self._result(False, error="Destination is not an E.164 number")

        text = f"{message.title}: {message.body}"[:SMS_MAX_LENGTH]

        try:
            sent = await asyncio.to_thread(
                self.client.messages.create,
                to=destination,
                from_=self.from_number,
                body=text,
            )
        except TwilioRestException as e:
            logger.error(f"Twilio rejected SMS: {e.msg}", extra={"code": e.code, "status": e.status})
            return self._result(False, error=str(e.msg), raw_response={"code": e.code, "status": e.status})
        except TwilioException as e:
            logger.error(f"Twilio SMS failed: {e}")
            return self._result(False, error=str(e))

        logger.info(f"Sent SMS sid={sent.sid}")
        return self._result(True, message_id=sent.sid)
