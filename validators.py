"""
Validation module for Luxe Rentals API
Contains all validation functions for request data
"""

import re
import logging
from datetime import datetime
from werkzeug.exceptions import BadRequest
from config import Config

logger = logging.getLogger(__name__)

DEPOSIT_METADATA_FIELDS = ['user_id', 'car_id', 'start_date', 'end_date', 'total_price']
LEGACY_METADATA_FIELDS = ['booking_key', 'user_id', 'car_id', 'start_date', 'end_date']


def validate_date_format(date_str: str) -> bool:
    """Validate date format YYYY-MM-DD"""
    try:
        datetime.strptime(date_str, '%Y-%m-%d')
        return True
    except (ValueError, TypeError):
        return False


def validate_time_format(time_str: str) -> bool:
    """Validate time format HH:MM"""
    return isinstance(time_str, str) and re.match(r'^([01]\d|2[0-3]):[0-5]\d$', time_str) is not None


def _is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _require_fields(data: dict, fields: list, labels: dict = None):
    for field in fields:
        if _is_missing(data.get(field)):
            label = labels.get(field, field) if labels else field
            raise BadRequest(f"Missing required field: {label}")


def _text(data: dict, field: str, label: str = None) -> str:
    value = data[field]
    if not isinstance(value, str):
        raise BadRequest(f"{label or field} must be text")
    return value.strip()


def _parse_amount(value, name: str) -> float:
    try:
        amount = float(value)
    except (ValueError, TypeError):
        raise BadRequest(f"{name} must be a valid number")
    if amount < 0:
        raise BadRequest(f"{name} cannot be negative")
    return amount


def _validate_date_range(start_date: str, end_date: str):
    if not validate_date_format(start_date) or not validate_date_format(end_date):
        raise BadRequest("Invalid date format. Use YYYY-MM-DD")
    if start_date > end_date:
        raise BadRequest("Start date must not be after end date")


def validate_car_data(data: dict) -> dict:
    """Validate car data for create/update operations"""
    required_fields = ['make', 'model', 'price_per_day']

    for field in required_fields:
        if field not in data or _is_missing(data[field]):
            raise BadRequest(f"Missing required field: {field}")

    # Validate prices
    price = _parse_amount(data['price_per_day'], "Price per day")
    if price == 0:
        raise BadRequest("Price per day must be positive")
    data['price_per_day'] = price

    if data.get('price_per_hour') not in (None, ''):
        data['price_per_hour'] = _parse_amount(data['price_per_hour'], "Price per hour")
    else:
        data['price_per_hour'] = None

    # Validate image list if provided
    if 'image_urls' in data and data['image_urls'] is not None:
        if not isinstance(data['image_urls'], list):
            raise BadRequest("image_urls must be an array")

    if 'available' in data and not isinstance(data['available'], bool):
        raise BadRequest("available must be true or false")

    return data


def validate_booking_data(data: dict) -> dict:
    """Validate a direct booking request"""
    required_fields = ['car_id', 'start_date', 'end_date', 'pickup_location', 'total_price', 'user_id']
    _require_fields(data, required_fields)

    _validate_date_range(data['start_date'], data['end_date'])

    return {
        'car_id': str(data['car_id']),
        'user_id': str(data['user_id']),
        'start_date': data['start_date'],
        'end_date': data['end_date'],
        'pickup_location': _text(data, 'pickup_location'),
        'total_price': _parse_amount(data['total_price'], "Total price")
    }


def validate_deposit_checkout_data(data: dict) -> dict:
    """Validate the deposit checkout form and normalize it to snake_case"""
    labels = {
        'carId': 'car id',
        'startDate': 'start date',
        'endDate': 'end date',
        'location': 'location',
        'totalPrice': 'total price',
        'depositAmount': 'deposit amount',
        'bookingType': 'booking type'
    }
    _require_fields(data, list(labels), labels)

    booking_type = data['bookingType']
    if booking_type not in Config.BOOKING_TYPES:
        raise BadRequest(f"Invalid booking type. Allowed: {', '.join(Config.BOOKING_TYPES)}")

    _validate_date_range(data['startDate'], data['endDate'])

    hours = None
    if booking_type == 'photoshoot':
        try:
            hours = int(data.get('hours'))
        except (ValueError, TypeError):
            raise BadRequest("Please enter a valid number of hours")
        if hours <= 0:
            raise BadRequest("Please enter a valid number of hours")

    start_time = data.get('startTime') or None
    end_time = data.get('endTime') or None
    if isinstance(end_time, str):
        end_time = end_time.strip() or None
    for value in (start_time, end_time):
        if value is not None and not validate_time_format(value):
            raise BadRequest("Invalid time format. Use HH:MM")

    return {
        'car_id': str(data['carId']),
        'start_date': data['startDate'],
        'end_date': data['endDate'],
        'start_time': start_time,
        'end_time': end_time,
        'location': _text(data, 'location'),
        'total_price': _parse_amount(data['totalPrice'], "Total price"),
        'deposit_amount': _parse_amount(data['depositAmount'], "Deposit amount"),
        'booking_type': booking_type,
        'hours': hours
    }


def validate_final_checkout_data(data: dict) -> str:
    """Validate the final payment request and return the booking id"""
    _require_fields(data, ['bookingId'], {'bookingId': 'booking id'})
    return str(data['bookingId'])


def validate_payment_metadata(metadata: dict, required_fields: list) -> dict:
    """Check that a checkout session carries what is needed to rebuild a booking"""
    missing = [field for field in required_fields if _is_missing(metadata.get(field))]
    if missing:
        logger.error(f"Missing required metadata: {missing}")
        raise BadRequest(f"Missing required metadata: {', '.join(missing)}")
    return metadata
