"""
Booking service module for Luxe Rentals API
Booking submission and payment reconciliation on top of the database,
payment and SMS services
"""

import logging
from typing import Any, Dict, Optional, Tuple
from werkzeug.exceptions import BadRequest, Conflict, NotFound
from config import Config
from database import DatabaseService
from payment_service import PaymentService
from sms_service import SmsService
from validators import (
    validate_payment_metadata, DEPOSIT_METADATA_FIELDS, LEGACY_METADATA_FIELDS
)
from utils import (
    calculate_total_price, get_deposit_amount, derive_booking_key,
    generate_booking_key, booking_code_for
)

logger = logging.getLogger(__name__)

DUPLICATE_BOOKING_MESSAGE = "You already have a booking for this car and date range."


class BookingService:
    """Creates bookings and reconciles them with Stripe payment events"""

    def __init__(self, db_service: DatabaseService, payment_service: PaymentService = None,
                 sms_service: SmsService = None):
        self.db_service = db_service
        self.payment_service = payment_service
        self.sms_service = sms_service

    # Pricing

    def get_bookable_car(self, car_id: str) -> Dict[str, Any]:
        car = self.db_service.get_car_by_id(car_id)
        if not car:
            raise NotFound("Car not found")
        if car.get('available') is False:
            raise Conflict("Car is not available for booking")
        return car

    def quote(self, car: Dict[str, Any], booking_type: str, start_date: str, end_date: str,
              hours: int = None) -> Dict[str, Any]:
        """Price and deposit the server will charge for this booking"""
        return {
            'car_id': car['id'],
            'booking_type': booking_type,
            'start_date': start_date,
            'end_date': end_date,
            'hours': hours,
            'total_price': calculate_total_price(car, booking_type, start_date, end_date, hours),
            'deposit_amount': get_deposit_amount(booking_type)
        }

    def _reconcile_amount(self, label: str, client_value: float, server_value: float) -> float:
        # The client's figure is only for display; the server's figure is charged.
        if client_value is not None and abs(float(client_value) - server_value) > 0.005:
            logger.warning(f"Client {label} {client_value} does not match server {label} {server_value}; using server value")
        return server_value

    # Submission

    def create_direct_booking(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Record an unpaid rental request, rejecting duplicates of the same user, car and dates"""
        car = self.get_bookable_car(data['car_id'])
        quote = self.quote(car, 'rental', data['start_date'], data['end_date'])
        total_price = self._reconcile_amount('total price', data['total_price'], quote['total_price'])

        booking_key = derive_booking_key(data['user_id'], data['car_id'], data['start_date'], data['end_date'])
        booking = self.db_service.insert_booking_once({
            'booking_key': booking_key,
            'booking_code': booking_code_for(booking_key),
            'car_id': data['car_id'],
            'user_id': data['user_id'],
            'start_date': data['start_date'],
            'end_date': data['end_date'],
            'start_time': Config.DEFAULT_START_TIME,
            'pickup_location': data['pickup_location'],
            'total_price': total_price,
            'deposit_amount': quote['deposit_amount'],
            'booking_type': 'rental',
            'paid_deposit': False,
            'status': 'pending'
        })

        if not booking:
            logger.info(f"Duplicate booking request {booking_key}")
            raise BadRequest(DUPLICATE_BOOKING_MESSAGE)

        logger.info(f"Booking created: {booking_key} for car {data['car_id']}")
        return booking

    def start_deposit_checkout(self, user: Dict[str, Any], data: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
        """
        Create (or reuse) the pending booking row and a Stripe checkout for its deposit.

        Returns the booking and the checkout URL the browser must be sent to.
        """
        car = self.get_bookable_car(data['car_id'])
        quote = self.quote(car, data['booking_type'], data['start_date'], data['end_date'], data['hours'])
        total_price = self._reconcile_amount('total price', data['total_price'], quote['total_price'])
        deposit_amount = self._reconcile_amount('deposit amount', data['deposit_amount'], quote['deposit_amount'])

        booking_key = derive_booking_key(user['id'], data['car_id'], data['start_date'], data['end_date'])
        details = {
            'start_time': data['start_time'] or Config.DEFAULT_START_TIME,
            'end_time': data['end_time'],
            'pickup_location': data['location'],
            'total_price': total_price,
            'deposit_amount': deposit_amount,
            'booking_type': data['booking_type'],
            'hours': data['hours']
        }

        booking = self.db_service.insert_booking_once({
            'booking_key': booking_key,
            'booking_code': booking_code_for(booking_key),
            'car_id': data['car_id'],
            'user_id': user['id'],
            'start_date': data['start_date'],
            'end_date': data['end_date'],
            'paid_deposit': False,
            'status': 'pending',
            **details
        })

        if booking is None:
            booking = self.db_service.refresh_unpaid_booking(booking_key, details)
            if booking is None:
                logger.info(f"Deposit already paid for booking {booking_key}")
                raise Conflict(DUPLICATE_BOOKING_MESSAGE)
            logger.info(f"Reusing unpaid booking {booking_key} for a new checkout")

        _, url = self.payment_service.create_deposit_session(user, booking)
        return booking, url

    def start_final_checkout(self, user: Dict[str, Any], booking_id: str) -> str:
        """Create a Stripe checkout for the balance left after the deposit"""
        booking = self.db_service.get_booking_by_id(booking_id)
        if not booking or str(booking.get('user_id')) != user['id']:
            raise NotFound("Booking not found")

        if booking.get('status') == 'confirmed':
            raise Conflict("Booking is already confirmed")

        if not booking.get('paid_deposit'):
            raise Conflict("Deposit has not been paid for this booking")

        balance = round(float(booking.get('total_price') or 0) - float(booking.get('deposit_amount') or 0), 2)
        if balance <= 0:
            raise BadRequest("Nothing left to pay for this booking")

        _, url = self.payment_service.create_final_session(user, booking, balance)
        return url

    def get_user_booking(self, user: Dict[str, Any], booking_key: str) -> Optional[Dict[str, Any]]:
        booking = self.db_service.get_booking_by_key(booking_key)
        if not booking or str(booking.get('user_id')) != user['id']:
            return None
        return booking

    # Reconciliation

    def handle_checkout_completed(self, metadata: Dict[str, Any]) -> Dict[str, str]:
        """Apply a completed checkout session, branching on its metadata type"""
        payment_type = metadata.get('type')

        if payment_type == 'final':
            return self.confirm_final_payment(metadata)

        if payment_type == 'deposit':
            validate_payment_metadata(metadata, DEPOSIT_METADATA_FIELDS)
            return self.record_deposit(self._booking_from_metadata(metadata), notify=True)

        logger.error(f"Unknown metadata type or missing type field: {metadata}")
        raise BadRequest("Unknown metadata type")

    def handle_legacy_checkout_completed(self, metadata: Dict[str, Any]) -> Dict[str, str]:
        """Older endpoint: every completed checkout is a deposit and must carry its key"""
        validate_payment_metadata(metadata, LEGACY_METADATA_FIELDS)
        return self.record_deposit(self._booking_from_metadata(metadata), notify=False)

    def confirm_final_payment(self, metadata: Dict[str, Any]) -> Dict[str, str]:
        booking_id = metadata.get('booking_id')
        if not booking_id:
            logger.error("Missing booking_id in final payment metadata")
            raise BadRequest("Missing booking_id")

        booking = self.db_service.confirm_booking(booking_id)
        if not booking:
            # TODO: decide whether an unknown booking id should be surfaced to Stripe as a failure
            logger.warning(f"Final payment for unknown booking {booking_id}; nothing was confirmed")
            return {'message': 'No booking matched'}

        logger.info(f"Booking {booking_id} marked as confirmed")
        return {'message': 'Booking confirmed'}

    def record_deposit(self, booking: Dict[str, Any], notify: bool = True) -> Dict[str, str]:
        """
        Persist a paid deposit exactly once per booking key.

        A redelivered event finds the key taken and the deposit already paid,
        so it changes nothing and sends no second SMS.
        """
        booking_key = booking['booking_key']

        saved = self.db_service.insert_booking_once(booking)
        if saved:
            message = 'Booking created'
        else:
            saved = self.db_service.mark_deposit_paid(booking_key)
            if not saved:
                logger.info(f"Booking {booking_key} already exists. Skipping insert.")
                return {'message': 'Booking already exists'}
            message = 'Deposit recorded'

        logger.info(f"{message}: {booking_key}")

        if notify and self.sms_service:
            if not self.sms_service.send_booking_request_sms(saved):
                logger.warning(f"Admin SMS not sent for booking {booking_key}")

        return {'message': message}

    def _booking_from_metadata(self, metadata: Dict[str, Any]) -> Dict[str, Any]:
        booking_key = metadata.get('booking_key') or generate_booking_key()

        try:
            total_price = float(metadata.get('total_price') or 0)
            deposit_amount = float(metadata.get('deposit_amount') or 0)
            hours = int(metadata['hours']) if metadata.get('hours') else None
        except (ValueError, TypeError):
            raise BadRequest("Invalid numeric metadata")

        return {
            'booking_key': booking_key,
            'booking_code': booking_code_for(booking_key),
            'car_id': metadata['car_id'],
            'user_id': metadata['user_id'],
            'start_date': metadata['start_date'],
            'end_date': metadata['end_date'],
            'start_time': metadata.get('start_time') or Config.DEFAULT_START_TIME,
            'end_time': (metadata.get('end_time') or '').strip() or None,
            'pickup_location': metadata.get('location'),
            'total_price': total_price,
            'booking_type': metadata.get('booking_type') or 'rental',
            'hours': hours,
            'deposit_amount': deposit_amount,
            'paid_deposit': True,
            'status': 'pending'
        }
