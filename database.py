"""
Database service module for Luxe Rentals API
Handles all Supabase database operations
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from supabase import create_client, Client

logger = logging.getLogger(__name__)


class DatabaseService:
    """Service class for all database operations"""

    def __init__(self, url: str, anon_key: str, service_role_key: str = None):
        """Initialize database service with Supabase credentials"""
        self.url = url
        self.anon_key = anon_key
        self.service_role_key = service_role_key

        # Initialize anon client
        try:
            self.supabase: Client = create_client(url, anon_key)
            logger.info("Supabase anon client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase anon client: {e}")
            self.supabase = None

        # Admin client will be created on demand
        self._admin_client = None

    def get_admin_client(self) -> Client:
        """Get admin client with service role key to bypass RLS"""
        if self._admin_client is not None:
            return self._admin_client

        try:
            if not self.service_role_key:
                raise Exception("Service role key not configured")

            self._admin_client = create_client(self.url, self.service_role_key)
            logger.info("Supabase admin client initialized successfully")
            return self._admin_client
        except Exception as e:
            logger.error(f"Failed to create admin client: {e}")
            raise

    # Auth

    def get_user_from_token(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Resolve a Supabase access token to the signed-in user, or None"""
        try:
            response = self.supabase.auth.get_user(access_token)
        except Exception as e:
            logger.warning(f"Rejected access token: {e}")
            return None

        user = getattr(response, 'user', None)
        if not user:
            return None
        return {'id': str(user.id), 'email': getattr(user, 'email', None)}

    # Cars

    def get_cars(self, include_unavailable: bool = False, location: str = None) -> List[Dict[str, Any]]:
        """Get cars with optional filtering"""
        try:
            query = self.supabase.table('cars').select('*')

            if not include_unavailable:
                query = query.eq('available', True)

            if location:
                query = query.eq('location', location)

            response = query.order('make').execute()
            return response.data
        except Exception as e:
            logger.error(f"Error getting cars: {e}")
            raise

    def get_all_cars(self) -> List[Dict[str, Any]]:
        """Get every car for the admin inventory view"""
        try:
            response = self.get_admin_client().table('cars').select('*').order('created_at', desc=True).execute()
            return response.data
        except Exception as e:
            logger.error(f"Error getting cars for admin: {e}")
            raise

    def get_car_by_id(self, car_id: str) -> Optional[Dict[str, Any]]:
        """Get specific car by ID"""
        try:
            response = self.supabase.table('cars').select('*').eq('id', car_id).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error getting car {car_id}: {e}")
            raise

    def create_car(self, car_data: Dict[str, Any]) -> Dict[str, Any]:
        """Create new car"""
        try:
            car_data['created_at'] = datetime.now().isoformat()
            car_data['updated_at'] = datetime.now().isoformat()

            response = self.get_admin_client().table('cars').insert(car_data).execute()
            if not response.data:
                raise Exception("Failed to create car")

            return response.data[0]
        except Exception as e:
            logger.error(f"Error creating car: {e}")
            raise

    def update_car(self, car_id: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
        """Update existing car"""
        try:
            update_data['updated_at'] = datetime.now().isoformat()

            response = self.get_admin_client().table('cars').update(update_data).eq('id', car_id).execute()
            if not response.data:
                raise Exception("Failed to update car")

            return response.data[0]
        except Exception as e:
            logger.error(f"Error updating car {car_id}: {e}")
            raise

    def delete_car(self, car_id: str) -> bool:
        """Delete car by ID. Bookings referencing it are left as they are."""
        try:
            self.get_admin_client().table('cars').delete().eq('id', car_id).execute()

            # Verify deletion
            verify_response = self.get_admin_client().table('cars').select('id').eq('id', car_id).execute()
            if verify_response.data:
                raise Exception("Car still exists after delete operation")

            return True
        except Exception as e:
            logger.error(f"Error deleting car {car_id}: {e}")
            raise

    def get_car_statistics(self) -> Dict[str, Any]:
        """Get car statistics"""
        try:
            response = self.get_admin_client().table('cars').select('id, available').execute()
            cars = response.data

            total_cars = len(cars)
            available_cars = len([car for car in cars if car.get('available', True)])

            return {
                'total': total_cars,
                'available': available_cars,
                'unavailable': total_cars - available_cars
            }
        except Exception as e:
            logger.error(f"Error getting car statistics: {e}")
            raise

    # Bookings

    def insert_booking_once(self, booking_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Insert a booking unless one with the same booking_key already exists.

        Relies on the unique constraint on bookings.booking_key: the insert is
        a single ON CONFLICT DO NOTHING statement, so two concurrent deliveries
        of the same payment event cannot both create a row. Returns the new row,
        or None when the key was already taken.
        """
        try:
            now = datetime.now().isoformat()
            booking_data.setdefault('created_at', now)
            booking_data['updated_at'] = now

            response = self.get_admin_client().table('bookings').upsert(
                booking_data,
                on_conflict='booking_key',
                ignore_duplicates=True
            ).execute()

            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error inserting booking {booking_data.get('booking_key')}: {e}")
            raise

    def mark_deposit_paid(self, booking_key: str) -> Optional[Dict[str, Any]]:
        """Flip paid_deposit on an unpaid booking. Returns None if nothing changed."""
        try:
            response = self.get_admin_client().table('bookings').update({
                'paid_deposit': True,
                'updated_at': datetime.now().isoformat()
            }).eq('booking_key', booking_key).eq('paid_deposit', False).execute()

            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error recording deposit for booking {booking_key}: {e}")
            raise

    def refresh_unpaid_booking(self, booking_key: str, update_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Overwrite the details of a booking whose deposit is still unpaid"""
        try:
            update_data = dict(update_data, updated_at=datetime.now().isoformat())

            response = self.get_admin_client().table('bookings').update(update_data).eq('booking_key', booking_key).eq('paid_deposit', False).execute()

            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error refreshing booking {booking_key}: {e}")
            raise

    def confirm_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        """Set booking status to confirmed. Returns None when no row matched."""
        try:
            response = self.get_admin_client().table('bookings').update({
                'status': 'confirmed',
                'updated_at': datetime.now().isoformat()
            }).eq('id', booking_id).execute()

            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error confirming booking {booking_id}: {e}")
            raise

    def get_booking_by_id(self, booking_id: str) -> Optional[Dict[str, Any]]:
        """Get booking by ID"""
        try:
            response = self.get_admin_client().table('bookings').select('*').eq('id', booking_id).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error getting booking {booking_id}: {e}")
            raise

    def get_booking_by_key(self, booking_key: str) -> Optional[Dict[str, Any]]:
        """Get booking by dedupe key"""
        try:
            response = self.get_admin_client().table('bookings').select('*').eq('booking_key', booking_key).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error getting booking {booking_key}: {e}")
            raise

    def get_user_bookings(self, user_id: str) -> List[Dict[str, Any]]:
        """Get all bookings made by a user, newest first"""
        try:
            response = self.get_admin_client().table('bookings').select('*').eq('user_id', user_id).order('created_at', desc=True).execute()
            return response.data
        except Exception as e:
            logger.error(f"Error getting bookings for user {user_id}: {e}")
            raise
