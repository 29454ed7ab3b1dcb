"""
SMS service module for Luxe Rentals API
Handles admin notifications using Twilio
"""

import logging
from twilio.rest import Client
from config import Config
from utils import booking_code_for

logger = logging.getLogger(__name__)


class SmsService:
    """Service class for all SMS operations"""

    def __init__(self, account_sid: str = None, auth_token: str = None,
                 from_number: str = None, admin_number: str = None, client: Client = None):
        """Initialize SMS service with Twilio configuration"""
        self.account_sid = account_sid or Config.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or Config.TWILIO_AUTH_TOKEN
        self.from_number = from_number or Config.TWILIO_PHONE_NUMBER
        self.admin_number = admin_number or Config.ADMIN_PHONE_NUMBER
        self._client = client

    def is_configured(self) -> bool:
        return all([self.account_sid, self.auth_token, self.from_number])

    def get_client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def send_sms(self, to_number: str, body: str) -> bool:
        """Send a single SMS through Twilio"""
        if not self.is_configured():
            logger.info("Skipping SMS, Twilio config incomplete")
            return False

        if not to_number:
            logger.warning("Cannot send SMS without destination")
            return False

        try:
            message = self.get_client().messages.create(body=body, from_=self.from_number, to=to_number)
            logger.info(f"SMS sent successfully via Twilio: {getattr(message, 'sid', None)}")
            return True
        except Exception as e:
            logger.error(f"Error sending SMS via Twilio: {e}")
            return False

    def send_booking_request_sms(self, booking: dict) -> bool:
        """Ask the admin to approve or reject a newly paid booking"""
        code = booking.get('booking_code') or booking_code_for(booking['booking_key'])
        body = (
            f"New {booking.get('booking_type') or 'rental'} booking from {booking['start_date']} "
            f"to {booking['end_date']} at {booking.get('pickup_location') or 'n/a'}.\n"
            f"Reply YES{code} to approve or NO{code} to reject."
        )
        return self.send_sms(self.admin_number, body)
