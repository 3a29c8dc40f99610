import logging
import re
from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from utils.messages import render_sms
from utils.phone import mask_phone

logger = logging.getLogger(__name__)

_LOCAL_MOBILE = re.compile(r"^05\d{8}$")


class TwilioSmsSender:
    """Renders a template and sends it through Twilio. Disabled without credentials."""

    def __init__(self, account_sid: Optional[str], auth_token: Optional[str],
                 from_number: Optional[str], signature: str = ""):
        self.signature = signature
        self.from_number = from_number
        self.enabled = bool(account_sid and auth_token and from_number)
        if self.enabled:
            self.client = Client(account_sid, auth_token)
        else:
            self.client = None
            logger.info("SMS sender disabled - Twilio credentials not configured")

    @classmethod
    def from_config(cls, config) -> "TwilioSmsSender":
        return cls(
            config.get("TWILIO_ACCOUNT_SID"),
            config.get("TWILIO_AUTH_TOKEN"),
            config.get("TWILIO_PHONE_NUMBER"),
            signature=config.get("SMS_SIGNATURE", ""),
        )

    def send(self, local_phone: str, kind: str, data: dict) -> bool:
        if not self.enabled:
            logger.warning("SMS disabled, dropping %s message", kind)
            return False

        if not local_phone or not _LOCAL_MOBILE.match(local_phone):
            logger.warning("Refusing SMS to malformed local number")
            return False

        body = render_sms(kind, data, self.signature)
        to_number = "+972" + local_phone[1:]
        try:
            message = self.client.messages.create(body=body, to=to_number, from_=self.from_number)
        except TwilioRestException as exc:
            logger.error("Twilio error sending %s SMS to %s: %s",
                         kind, mask_phone(local_phone), exc)
            return False

        logger.info("SMS %s sent, SID: %s", kind, message.sid)
        return True
