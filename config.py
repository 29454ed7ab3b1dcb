"""
Configuration module for Luxe Rentals API
Centralized configuration management for all environment variables and settings
"""

import os
from datetime import timedelta
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Centralized configuration class for Luxe Rentals API"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY')
    SESSION_COOKIE_SECURE = True  # True for HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'None'  # Admin UI is served from another origin
    SESSION_COOKIE_DOMAIN = None
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)

    # CORS Configuration
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get('CORS_ORIGINS', 'http://localhost:3000,https://localhost:3000').split(',')
        if origin.strip()
    ]
    CORS_SUPPORTS_CREDENTIALS = True
    CORS_ALLOW_HEADERS = [
        'Content-Type',
        'Authorization',
        'X-Requested-With',
        'Accept',
        'Origin',
        'Cache-Control'
    ]
    CORS_METHODS = ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS']
    CORS_MAX_AGE = 86400  # Cache preflight for 24 hours

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Supabase Configuration
    SUPABASE_URL = os.environ.get('SUPABASE_URL')
    SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY')
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get('SUPABASE_SERVICE_ROLE_KEY')

    # Stripe Configuration
    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY')
    STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET')
    STRIPE_CURRENCY = os.environ.get('STRIPE_CURRENCY', 'usd')

    # Base URL of the public site, used for checkout redirects
    BASE_URL = (os.environ.get('BASE_URL') or os.environ.get('NEXT_PUBLIC_BASE_URL') or 'http://localhost:3000').rstrip('/')

    # Twilio Configuration
    TWILIO_ACCOUNT_SID = os.environ.get('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.environ.get('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER = os.environ.get('TWILIO_PHONE_NUMBER')
    ADMIN_PHONE_NUMBER = os.environ.get('ADMIN_PHONE_NUMBER')

    # Admin Configuration
    ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', 'change_this_password')

    # Business Rules
    BOOKING_TYPES = ['rental', 'photoshoot']
    DEPOSIT_AMOUNTS = {
        'rental': 1500,
        'photoshoot': 500
    }
    DEFAULT_HOURLY_RATE = 500
    DEFAULT_START_TIME = '17:00'

    @classmethod
    def validate_required_config(cls):
        """Validate that all required configuration is present"""
        required_vars = [
            'SECRET_KEY',
            'SUPABASE_URL',
            'SUPABASE_ANON_KEY',
            'STRIPE_SECRET_KEY',
            'STRIPE_WEBHOOK_SECRET'
        ]

        missing_vars = []
        for var in required_vars:
            if not getattr(cls, var):
                missing_vars.append(var)

        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")

        return True
