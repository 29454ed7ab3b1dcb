"""
Luxe Rentals Flask API - Main Application
Fleet browsing, booking requests, Stripe deposits and webhook reconciliation
"""

import os
import uuid
import logging
from datetime import datetime
import stripe
from flask import Flask, request, jsonify, g
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, BadRequest

# Import our modules
from config import Config
from database import DatabaseService
from payment_service import PaymentService, PaymentError
from sms_service import SmsService
from booking_service import BookingService
from validators import (
    validate_car_data, validate_booking_data, validate_deposit_checkout_data,
    validate_final_checkout_data, validate_date_format
)
from auth import admin_required, user_required, admin_login, admin_logout, get_admin_status
from utils import get_client_ip

API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _is_valid_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
        return True
    except (ValueError, TypeError):
        return False


def _error(e: HTTPException):
    return jsonify({"error": e.description}), e.code


def create_app(db_service: DatabaseService = None, payment_service: PaymentService = None,
               sms_service: SmsService = None) -> Flask:
    """Build the Flask app; services not passed in are created from Config"""
    app = Flask(__name__)

    # Configure Flask app
    app.config.update(
        SECRET_KEY=Config.SECRET_KEY,
        SESSION_COOKIE_SECURE=Config.SESSION_COOKIE_SECURE,
        SESSION_COOKIE_HTTPONLY=Config.SESSION_COOKIE_HTTPONLY,
        SESSION_COOKIE_SAMESITE=Config.SESSION_COOKIE_SAMESITE,
        SESSION_COOKIE_DOMAIN=Config.SESSION_COOKIE_DOMAIN,
        PERMANENT_SESSION_LIFETIME=Config.PERMANENT_SESSION_LIFETIME
    )

    # Configure CORS
    CORS(app,
         origins=Config.CORS_ORIGINS,
         supports_credentials=Config.CORS_SUPPORTS_CREDENTIALS,
         allow_headers=Config.CORS_ALLOW_HEADERS,
         methods=Config.CORS_METHODS,
         max_age=Config.CORS_MAX_AGE
    )

    # Initialize services
    if db_service is None:
        try:
            Config.validate_required_config()
            db_service = DatabaseService(Config.SUPABASE_URL, Config.SUPABASE_ANON_KEY, Config.SUPABASE_SERVICE_ROLE_KEY)
            logger.info("Database service initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize services: {e}")
            db_service = None

    payment_service = payment_service or PaymentService()
    sms_service = sms_service or SmsService()
    booking_service = BookingService(db_service, payment_service, sms_service) if db_service else None

    app.extensions['db_service'] = db_service
    app.extensions['payment_service'] = payment_service
    app.extensions['sms_service'] = sms_service
    app.extensions['booking_service'] = booking_service

    # ADMIN API ENDPOINTS

    @app.route('/admin/login', methods=['POST'])
    def admin_login_endpoint():
        """Admin login endpoint"""
        data = request.get_json(silent=True)
        if not data or 'username' not in data or 'password' not in data:
            return jsonify({'error': 'Username and password required'}), 400

        result = admin_login(data['username'], data['password'])

        if 'error' in result:
            return jsonify(result), 401

        logger.info(f"Admin login successful for {data['username']} from IP: {get_client_ip()}")
        return jsonify(result)

    @app.route('/admin/logout', methods=['POST'])
    @admin_required
    def admin_logout_endpoint():
        """Admin logout endpoint"""
        return jsonify(admin_logout())

    @app.route('/admin/status', methods=['GET'])
    @admin_required
    def admin_status_endpoint():
        """Get admin session status"""
        return jsonify(get_admin_status())

    @app.route('/admin/cars', methods=['GET'])
    @admin_required
    def admin_get_cars():
        """Get every car for the inventory view"""
        try:
            if not db_service:
                return jsonify({"error": "Database not available"}), 503

            cars = db_service.get_all_cars()
            stats = db_service.get_car_statistics()

            logger.info(f"Retrieved {len(cars)} cars for admin (available: {stats['available']}, unavailable: {stats['unavailable']})")

            return jsonify({
                "cars": cars,
                "statistics": stats
            })
        except Exception as e:
            logger.error(f"Error getting cars for admin: {e}")
            return jsonify({"error": "Failed to fetch cars"}), 500

    @app.route('/admin/cars', methods=['POST'])
    @admin_required
    def admin_create_car():
        """Create new car"""
        try:
            if not db_service:
                return jsonify({"error": "Database not available"}), 503

            car_data = request.get_json(silent=True)
            if not car_data:
                return jsonify({"error": "No data provided"}), 400

            validated_data = validate_car_data(car_data)
            validated_data['available'] = validated_data.get('available', True)
            validated_data['image_urls'] = validated_data.get('image_urls') or []

            car = db_service.create_car(validated_data)
            logger.info(f"Car created: {car['make']} {car['model']} (ID: {car['id']})")

            return jsonify({
                "success": True,
                "car": car,
                "message": "Car created successfully"
            }), 201

        except BadRequest as e:
            return _error(e)
        except Exception as e:
            logger.error(f"Error creating car: {e}")
            return jsonify({"error": "Failed to create car"}), 500

    @app.route('/admin/cars/<car_id>', methods=['PUT'])
    @admin_required
    def admin_update_car(car_id):
        """Update existing car"""
        try:
            if not db_service:
                return jsonify({"error": "Database not available"}), 503

            if not _is_valid_uuid(car_id):
                return jsonify({"error": "Invalid car ID format"}), 400

            existing_car = db_service.get_car_by_id(car_id)
            if not existing_car:
                return jsonify({"error": "Car not found"}), 404

            data = request.get_json(silent=True)
            if not data:
                return jsonify({"error": "No data provided"}), 400

            # Remove empty and read-only fields
            car_data = {k: v for k, v in data.items()
                        if v is not None and k not in ('id', 'created_at', 'updated_at')}
            if not car_data:
                return jsonify({"error": "No valid fields to update"}), 400

            validated_data = validate_car_data({**existing_car, **car_data})
            update_data = {k: validated_data[k] for k in car_data}

            updated_car = db_service.update_car(car_id, update_data)
            logger.info(f"Car {car_id} updated by admin, changes: {list(update_data.keys())}")

            return jsonify({
                "success": True,
                "car": updated_car,
                "message": "Car updated successfully"
            })

        except BadRequest as e:
            logger.error(f"Bad request for car {car_id}: {e}")
            return _error(e)
        except Exception as e:
            logger.error(f"Error updating car {car_id}: {e}", exc_info=True)
            return jsonify({"error": "Failed to update car"}), 500

    @app.route('/admin/cars/<car_id>', methods=['DELETE'])
    @admin_required
    def admin_delete_car(car_id):
        """Delete car; bookings that reference it are kept"""
        try:
            logger.info(f"Admin attempting to delete car {car_id}")

            if not db_service:
                return jsonify({"error": "Database not available"}), 503

            if not _is_valid_uuid(car_id):
                return jsonify({"error": "Invalid car ID format"}), 400

            car = db_service.get_car_by_id(car_id)
            if not car:
                return jsonify({"error": "Car not found"}), 404

            db_service.delete_car(car_id)

            logger.info(f"Car deleted by admin: {car['make']} {car['model']} (ID: {car_id})")

            return jsonify({
                "success": True,
                "deleted_car": car,
                "message": "Car deleted successfully"
            })

        except Exception as e:
            logger.error(f"Error deleting car {car_id}: {e}")
            return jsonify({"error": "Failed to delete car"}), 500

    # PUBLIC API ENDPOINTS

    @app.route('/', methods=['GET'])
    def root():
        """Root endpoint"""
        return jsonify({
            "message": "Luxe Rentals API",
            "version": API_VERSION,
            "status": "running",
            "timestamp": datetime.now().isoformat()
        })

    @app.route('/cars', methods=['GET'])
    def get_cars():
        """Get available cars, optionally at one location"""
        try:
            if not db_service:
                return jsonify({"error": "Database not available"}), 503

            cars = db_service.get_cars(location=request.args.get('location'))

            return jsonify({
                "cars": cars,
                "total": len(cars)
            })
        except Exception as e:
            logger.error(f"Error getting cars: {e}")
            return jsonify({"error": "Failed to fetch cars"}), 500

    @app.route('/cars/<car_id>', methods=['GET'])
    def get_car(car_id):
        """Get specific car by ID"""
        try:
            if not db_service:
                return jsonify({"error": "Database not available"}), 503

            if not _is_valid_uuid(car_id):
                return jsonify({"error": "Invalid car ID format"}), 400

            car = db_service.get_car_by_id(car_id)
            if not car:
                return jsonify({"error": "Car not found"}), 404

            return jsonify(car)
        except Exception as e:
            logger.error(f"Error getting car {car_id}: {e}")
            return jsonify({"error": "Failed to fetch car"}), 500

    @app.route('/cars/<car_id>/quote', methods=['GET'])
    def get_car_quote(car_id):
        """Price and deposit for a rental date range or a photoshoot"""
        try:
            if not booking_service:
                return jsonify({"error": "Database not available"}), 503

            if not _is_valid_uuid(car_id):
                return jsonify({"error": "Invalid car ID format"}), 400

            booking_type = request.args.get('booking_type', 'rental')
            if booking_type not in Config.BOOKING_TYPES:
                return jsonify({"error": f"Invalid booking type. Allowed: {', '.join(Config.BOOKING_TYPES)}"}), 400

            start_date = request.args.get('start_date')
            end_date = request.args.get('end_date') or start_date
            if not validate_date_format(start_date) or not validate_date_format(end_date):
                return jsonify({"error": "Invalid date format. Use YYYY-MM-DD"}), 400

            hours = None
            if booking_type == 'photoshoot':
                hours = request.args.get('hours', type=int)
                if not hours or hours <= 0:
                    return jsonify({"error": "Please enter a valid number of hours"}), 400

            car = db_service.get_car_by_id(car_id)
            if not car:
                return jsonify({"error": "Car not found"}), 404

            return jsonify(booking_service.quote(car, booking_type, start_date, end_date, hours))
        except Exception as e:
            logger.error(f"Error quoting car {car_id}: {e}")
            return jsonify({"error": "Failed to calculate price"}), 500

    @app.route('/booking', methods=['POST'])
    def create_booking():
        """Create an unpaid booking request"""
        try:
            data = request.get_json(silent=True)
            if not data:
                return jsonify({"error": "No data provided"}), 400

            validated_data = validate_booking_data(data)

            if not booking_service:
                return jsonify({"error": "Database not available"}), 503

            booking = booking_service.create_direct_booking(validated_data)

            return jsonify({"success": True, "data": [booking]})

        except HTTPException as e:
            return _error(e)
        except Exception as e:
            logger.error(f"Error creating booking: {e}")
            return jsonify({"error": "Failed to create booking"}), 500

    @app.route('/bookings', methods=['GET'])
    @user_required
    def get_my_bookings():
        """Bookings of the signed-in user"""
        try:
            bookings = db_service.get_user_bookings(g.user['id'])
            return jsonify({"bookings": bookings, "total": len(bookings)})
        except Exception as e:
            logger.error(f"Error getting bookings for user {g.user['id']}: {e}")
            return jsonify({"error": "Failed to fetch bookings"}), 500

    @app.route('/bookings/reference/<booking_key>', methods=['GET'])
    @user_required
    def get_booking_by_reference(booking_key):
        """Get one of the signed-in user's bookings by booking key"""
        try:
            booking = booking_service.get_user_booking(g.user, booking_key)
            if not booking:
                return jsonify({"error": "Booking not found"}), 404

            return jsonify(booking)
        except Exception as e:
            logger.error(f"Error getting booking {booking_key}: {e}")
            return jsonify({"error": "Failed to fetch booking"}), 500

    @app.route('/checkout/deposit', methods=['POST'])
    @user_required
    def checkout_deposit():
        """Create the pending booking and return the Stripe deposit checkout URL"""
        try:
            data = request.get_json(silent=True)
            if not data:
                return jsonify({"error": "Missing booking data"}), 400

            validated_data = validate_deposit_checkout_data(data)
            booking, url = booking_service.start_deposit_checkout(g.user, validated_data)

            logger.info(f"Deposit checkout started for booking {booking['booking_key']} from IP: {get_client_ip()}")
            return jsonify({"url": url})

        except HTTPException as e:
            return _error(e)
        except PaymentError as e:
            return jsonify({"error": str(e)}), 500
        except Exception as e:
            logger.error(f"Stripe Checkout error: {e}")
            return jsonify({"error": "Something went wrong"}), 500

    @app.route('/checkout/final', methods=['POST'])
    @user_required
    def checkout_final():
        """Return the Stripe checkout URL for a booking's remaining balance"""
        try:
            data = request.get_json(silent=True)
            if not data:
                return jsonify({"error": "Missing booking data"}), 400

            booking_id = validate_final_checkout_data(data)
            url = booking_service.start_final_checkout(g.user, booking_id)

            return jsonify({"url": url})

        except HTTPException as e:
            return _error(e)
        except PaymentError as e:
            return jsonify({"error": str(e)}), 500
        except Exception as e:
            logger.error(f"Stripe Checkout error: {e}")
            return jsonify({"error": "Something went wrong"}), 500

    def handle_stripe_webhook(legacy: bool):
        if not booking_service:
            return jsonify({"error": "Database not available"}), 503

        payload = request.get_data()
        sig_header = request.headers.get('stripe-signature', '')

        try:
            event = payment_service.construct_event(payload, sig_header)
        except ValueError as e:
            logger.error(f"Webhook error, invalid payload: {e}")
            return jsonify({"error": "Invalid payload"}), 400
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook error, invalid signature: {e}")
            return jsonify({"error": "Invalid signature"}), 400

        event_type = event['type']
        logger.info(f"Stripe webhook received: {event_type}")

        if event_type != 'checkout.session.completed':
            return jsonify({"message": "Unhandled event type"}), 200

        session_object = event['data']['object']
        metadata = dict(session_object.get('metadata') or {})
        logger.debug(f"Checkout session metadata: {metadata}")

        try:
            if legacy:
                result = booking_service.handle_legacy_checkout_completed(metadata)
            else:
                result = booking_service.handle_checkout_completed(metadata)
            return jsonify(result), 200
        except HTTPException as e:
            return _error(e)
        except Exception as e:
            logger.error(f"Webhook store error: {e}", exc_info=True)
            return jsonify({"error": "Failed to process payment event"}), 500

    @app.route('/webhook', methods=['POST'])
    def stripe_webhook():
        """Stripe webhook for deposit and final payments"""
        return handle_stripe_webhook(legacy=False)

    @app.route('/webhooks/stripe', methods=['POST'])
    def legacy_stripe_webhook():
        """Older Stripe webhook that only records deposits"""
        return handle_stripe_webhook(legacy=True)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        health_data = {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "version": API_VERSION,
            "environment": os.environ.get('FLASK_ENV', 'development'),
            "payments": 'configured' if payment_service.secret_key else 'not_configured',
            "sms": 'configured' if sms_service.is_configured() else 'not_configured'
        }

        status_code = 200

        # Test database connection
        if db_service:
            try:
                db_service.supabase.table('cars').select('id').limit(1).execute()
                health_data['database'] = 'connected'
            except Exception as e:
                health_data['database'] = f'error: {str(e)}'
                health_data['status'] = 'degraded'
                status_code = 503
        else:
            health_data['database'] = 'not_configured'
            health_data['status'] = 'degraded'
            status_code = 503

        return jsonify(health_data), status_code

    # Error handlers
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Internal server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(BadRequest)
    def handle_bad_request(error):
        return jsonify({'error': 'Bad request', 'details': error.description}), 400

    return app


if __name__ == '__main__':
    # Development server
    create_app().run(debug=True, host='0.0.0.0', port=5002)
