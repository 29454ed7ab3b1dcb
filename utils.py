"""
Utility functions module for Luxe Rentals API
Contains pricing, booking key and request helpers
"""

import math
import uuid
import logging
from datetime import datetime
from flask import request
from config import Config

logger = logging.getLogger(__name__)


def get_client_ip() -> str:
    """Get client IP address"""
    if request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0].strip()
    return request.remote_addr or 'unknown'


def parse_date(date_str: str):
    return datetime.strptime(date_str, '%Y-%m-%d').date()


def get_rental_days(start_date: str, end_date: str) -> int:
    """Whole rental days between two dates, rounded up and never below 1"""
    delta = abs(parse_date(end_date) - parse_date(start_date))
    days = math.ceil(delta.total_seconds() / 86400)
    return max(days, 1)


def calculate_rental_price(price_per_day: float, start_date: str, end_date: str) -> float:
    """Calculate rental price from the daily rate"""
    return get_rental_days(start_date, end_date) * float(price_per_day)


def calculate_photoshoot_price(hours: int, price_per_hour: float = None) -> float:
    """Calculate photoshoot price from the hourly rate"""
    rate = float(price_per_hour) if price_per_hour else Config.DEFAULT_HOURLY_RATE
    return hours * rate


def calculate_total_price(car: dict, booking_type: str, start_date: str, end_date: str, hours: int = None) -> float:
    """Calculate total price for booking"""
    if booking_type == 'photoshoot':
        return calculate_photoshoot_price(hours, car.get('price_per_hour'))
    return calculate_rental_price(car['price_per_day'], start_date, end_date)


def get_deposit_amount(booking_type: str) -> float:
    """Flat deposit for the booking type, not prorated"""
    return Config.DEPOSIT_AMOUNTS[booking_type]


def to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def derive_booking_key(user_id: str, car_id: str, start_date: str, end_date: str) -> str:
    """Deterministic key for one user booking one car over one date range"""
    return f"{user_id}-{car_id}-{start_date}-{end_date}"


def generate_booking_key() -> str:
    return uuid.uuid4().hex[:12].upper()


def booking_code_for(booking_key: str) -> str:
    """Short code quoted in SMS replies"""
    return booking_key[-4:].lower()
