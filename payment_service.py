"""
Payment service module for Luxe Rentals API
Handles Stripe Checkout sessions and webhook verification
"""

import logging
from typing import Any, Dict, Tuple
import stripe
from config import Config
from utils import to_cents

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Raised when Stripe fails to create a usable checkout session"""


class PaymentService:
    """Service class for all Stripe operations"""

    def __init__(self, secret_key: str = None, webhook_secret: str = None,
                 currency: str = None, base_url: str = None):
        """Initialize payment service; the API key is passed per request, never set globally"""
        self.secret_key = secret_key or Config.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or Config.STRIPE_WEBHOOK_SECRET
        self.currency = currency or Config.STRIPE_CURRENCY
        self.base_url = (base_url or Config.BASE_URL).rstrip('/')

    def _create_session(self, customer_email: str, amount: float, name: str,
                        description: str, metadata: Dict[str, str],
                        success_url: str, cancel_url: str) -> Tuple[str, str]:
        try:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                payment_method_types=['card'],
                mode='payment',
                customer_email=customer_email,
                line_items=[
                    {
                        'price_data': {
                            'currency': self.currency,
                            'product_data': {
                                'name': name,
                                'description': description
                            },
                            'unit_amount': to_cents(amount)
                        },
                        'quantity': 1
                    }
                ],
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout error: {e}")
            raise PaymentError("Failed to create checkout session") from e

        session_id = getattr(session, 'id', None)
        session_url = getattr(session, 'url', None)
        if not session_url:
            logger.error(f"Stripe session {session_id} returned no URL")
            raise PaymentError("Stripe session failed to return a URL")

        logger.info(f"Created Stripe checkout session {session_id} ({metadata.get('type')})")
        return session_id, session_url

    def create_deposit_session(self, user: Dict[str, Any], booking: Dict[str, Any]) -> Tuple[str, str]:
        """Create the deposit checkout; metadata carries everything needed to rebuild the booking"""
        metadata = {
            'type': 'deposit',
            'booking_key': booking['booking_key'],
            'user_id': user['id'],
            'car_id': booking['car_id'],
            'start_date': booking['start_date'],
            'end_date': booking['end_date'],
            'start_time': booking.get('start_time') or '',
            'end_time': booking.get('end_time') or '',
            'location': booking['pickup_location'],
            'total_price': str(booking['total_price']),
            'booking_type': booking['booking_type'],
            'hours': str(booking['hours']) if booking.get('hours') else '',
            'deposit_amount': str(booking['deposit_amount'])
        }

        return self._create_session(
            customer_email=user.get('email'),
            amount=booking['deposit_amount'],
            name=f"Deposit for {booking['booking_type']} booking",
            description=f"From {booking['start_date']} to {booking['end_date']}",
            metadata=metadata,
            success_url=f"{self.base_url}/booking/confirmation?booking_key={booking['booking_key']}",
            cancel_url=f"{self.base_url}/fleet/{booking['car_id']}?canceled=true"
        )

    def create_final_session(self, user: Dict[str, Any], booking: Dict[str, Any], amount: float) -> Tuple[str, str]:
        """Create the checkout for the remaining balance of an approved booking"""
        metadata = {
            'type': 'final',
            'booking_id': str(booking['id']),
            'user_id': user['id']
        }

        return self._create_session(
            customer_email=user.get('email'),
            amount=amount,
            name=f"Final payment for {booking.get('booking_type') or 'rental'} booking",
            description=f"From {booking['start_date']} to {booking['end_date']}",
            metadata=metadata,
            success_url=f"{self.base_url}/booking/confirmation?booking_id={booking['id']}",
            cancel_url=f"{self.base_url}/account/bookings?canceled=true"
        )

    def construct_event(self, payload: bytes, sig_header: str) -> Dict[str, Any]:
        """
        Verify a webhook delivery and return the event as a plain dict.

        Raises ValueError for an unparsable payload and
        stripe.SignatureVerificationError when the signature does not match.
        """
        if not self.webhook_secret:
            raise stripe.SignatureVerificationError("Webhook secret not configured", sig_header)
        event = stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        return event.to_dict()
