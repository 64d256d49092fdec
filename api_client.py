"""
REST client for the SkyNest backend.

Every page of the web client goes through ``SkyNestAPI``. The bearer token is
taken from the browser session, so the same client instance is shared by all
requests.
"""
import logging

import requests
from flask import current_app, has_request_context, session

from exceptions import ApiError, AuthenticationError, BackendUnavailable

logger = logging.getLogger(__name__)

DEFAULT_API_URL = 'http://localhost:5000/api'
DEFAULT_TIMEOUT = 10


def _data(body, default=None):
    """Unwrap the ``data`` member of a backend envelope"""
    if not isinstance(body, dict):
        return default
    data = body.get('data')
    return default if data is None else data


def _query_value(value):
    # the backend compares query flags against the string 'true'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return value


class _Resource:
    def __init__(self, client):
        self.client = client


class AuthAPI(_Resource):
    def login(self, username, password):
        body = self.client.post('/auth/login', json={'username': username, 'password': password},
                                error_message='Login failed')
        return _data(body, {})

    def register(self, user_data):
        return _data(self.client.post('/auth/register', json=user_data,
                                      error_message='Failed to create user'))

    def me(self):
        return _data(self.client.get('/auth/me'), {})

    def change_password(self, current_password, new_password):
        return self.client.put('/auth/change-password',
                               json={'current_password': current_password, 'new_password': new_password},
                               error_message='Failed to change password')

    def signup(self, data):
        return self.client.post('/auth/signup', json=data, error_message='Signup failed. Please try again.')

    def forgot_password(self, email):
        return self.client.post('/auth/forgot-password', json={'email': email},
                                error_message='Failed to send reset link')

    def reset_password(self, token, password):
        return self.client.post('/auth/reset-password', json={'token': token, 'newPassword': password},
                                error_message='Failed to reset password')


class UserAPI(_Resource):
    def list(self):
        return _data(self.client.get('/users', error_message='Failed to load users'), [])

    def get(self, user_id):
        return _data(self.client.get(f'/users/{user_id}'), {})

    def update(self, user_id, data):
        return _data(self.client.put(f'/users/{user_id}', json=data, error_message='Failed to update user'))

    def delete(self, user_id):
        return self.client.delete(f'/users/{user_id}', error_message='Failed to delete user')

    def reset_password(self, user_id, new_password):
        return self.client.put(f'/users/{user_id}/reset-password', json={'new_password': new_password},
                               error_message='Failed to reset password')


class BookingAPI(_Resource):
    def list(self, params=None):
        return _data(self.client.get('/bookings', params=params, error_message='Failed to load bookings'), [])

    def get(self, booking_id):
        return _data(self.client.get(f'/bookings/{booking_id}', error_message='Failed to load booking details'))

    def create(self, data):
        return _data(self.client.post('/bookings', json=data, error_message='Failed to create booking'), {})

    def update(self, booking_id, data):
        return _data(self.client.put(f'/bookings/{booking_id}', json=data,
                                     error_message='Failed to update booking'))

    def check_in(self, booking_id):
        return self.client.put(f'/bookings/{booking_id}/checkin', error_message='Failed to check in')

    def check_out(self, booking_id):
        return self.client.put(f'/bookings/{booking_id}/checkout', error_message='Failed to check out')

    def cancel(self, booking_id):
        return self.client.put(f'/bookings/{booking_id}/cancel', error_message='Failed to cancel booking')


class RoomAPI(_Resource):
    def list(self, params=None):
        return _data(self.client.get('/rooms', params=params, error_message='Failed to load rooms'), [])

    def available(self, branch_id, check_in_date, check_out_date, guests=1):
        params = {
            'branch_id': branch_id,
            'check_in_date': check_in_date,
            'check_out_date': check_out_date,
            'guests': guests,
        }
        return _data(self.client.get('/rooms/available', params=params,
                                     error_message='Failed to search rooms'), [])

    def get(self, room_id):
        return _data(self.client.get(f'/rooms/{room_id}'))

    def create(self, data):
        return _data(self.client.post('/rooms', json=data, error_message='Failed to create room'))

    def update(self, room_id, data):
        return _data(self.client.put(f'/rooms/{room_id}', json=data, error_message='Failed to update room'))

    def delete(self, room_id):
        return self.client.delete(f'/rooms/{room_id}', error_message='Failed to delete room')

    def types(self):
        return _data(self.client.get('/rooms/types/all'), [])


class RoomTypeAPI(_Resource):
    def list(self):
        return _data(self.client.get('/rooms/types/all'), [])

    def get(self, type_id):
        return _data(self.client.get(f'/rooms/types/{type_id}'))

    def create(self, data):
        return _data(self.client.post('/rooms/types', json=data, error_message='Failed to create room type'))

    def update(self, type_id, data):
        return _data(self.client.put(f'/rooms/types/{type_id}', json=data,
                                     error_message='Failed to update room type'))

    def delete(self, type_id):
        return self.client.delete(f'/rooms/types/{type_id}', error_message='Failed to delete room type')


class GuestAPI(_Resource):
    def list(self, search=None):
        params = {'search': search} if search else None
        return _data(self.client.get('/guests', params=params, error_message='Failed to load guests'), [])

    def get(self, guest_id):
        return _data(self.client.get(f'/guests/{guest_id}', error_message='Failed to load guest'))

    def create(self, data):
        return _data(self.client.post('/guests', json=data, error_message='Failed to create guest'), {})

    def update(self, guest_id, data):
        return _data(self.client.put(f'/guests/{guest_id}', json=data, error_message='Failed to update guest'))

    def delete(self, guest_id):
        return self.client.delete(f'/guests/{guest_id}', error_message='Failed to delete guest')

    def my_profile(self):
        return _data(self.client.get('/guests/me', error_message='Failed to load profile'), {})

    def update_my_profile(self, data):
        return _data(self.client.put('/guests/me', json=data, error_message='Failed to update profile'))


class ServiceAPI(_Resource):
    def list(self, params=None):
        return _data(self.client.get('/services', params=params, error_message='Failed to load services'), [])

    def get(self, service_id):
        return _data(self.client.get(f'/services/{service_id}'))

    def create(self, data):
        return _data(self.client.post('/services', json=data, error_message='Failed to save service'))

    def update(self, service_id, data):
        return _data(self.client.put(f'/services/{service_id}', json=data, error_message='Failed to save service'))

    def delete(self, service_id):
        return self.client.delete(f'/services/{service_id}', error_message='Failed to delete service')

    def add_usage(self, booking_id, service_id, quantity):
        data = {'booking_id': booking_id, 'service_id': service_id, 'quantity': quantity}
        return _data(self.client.post('/services/usage', json=data, error_message='Failed to add service'))

    def usage(self, booking_id):
        return _data(self.client.get(f'/services/usage/{booking_id}'), [])

    def delete_usage(self, usage_id):
        return self.client.delete(f'/services/usage/{usage_id}', error_message='Failed to remove service')

    def branch_services(self, branch_id):
        return _data(self.client.get(f'/services/branch/{branch_id}', error_message='Failed to load services'), [])

    def toggle_branch_service(self, branch_id, service_id, is_available):
        return self.client.put(f'/services/branch/{branch_id}/toggle/{service_id}',
                               json={'is_available': is_available}, error_message='Failed to toggle service')

    def set_branch_price(self, branch_id, service_id, custom_price):
        return self.client.put(f'/services/branch/{branch_id}/price/{service_id}',
                               json={'custom_price': custom_price}, error_message='Failed to set price')


class PaymentAPI(_Resource):
    def list(self, params=None):
        return _data(self.client.get('/payments', params=params, error_message='Failed to load payments'), [])

    def get(self, payment_id):
        return _data(self.client.get(f'/payments/{payment_id}'))

    def process(self, booking_id, amount, payment_method):
        data = {'booking_id': booking_id, 'amount': amount, 'payment_method': payment_method}
        return _data(self.client.post('/payments', json=data, error_message='Failed to process payment'))

    def for_booking(self, booking_id):
        return _data(self.client.get(f'/payments/booking/{booking_id}'), [])

    def update(self, payment_id, data):
        return _data(self.client.put(f'/payments/{payment_id}', json=data, error_message='Failed to update payment'))

    def calculate(self, booking_id, promo_code=None):
        data = {'booking_id': booking_id, 'promo_code': promo_code}
        return _data(self.client.post('/payments/calculate', json=data,
                                      error_message='Failed to load payment details'))

    def validate_promo(self, booking_id, promo_code):
        data = {'booking_id': booking_id, 'promo_code': promo_code}
        return self.client.post('/payments/validate-promo', json=data, error_message='Invalid promo code')

    def process_with_breakdown(self, data):
        return _data(self.client.post('/payments/process-with-breakdown', json=data,
                                      error_message='Payment failed. Please try again.'))


class SupportAPI(_Resource):
    def create_ticket(self, data):
        return _data(self.client.post('/support/tickets', json=data, error_message='Failed to submit ticket'))

    def my_tickets(self):
        return _data(self.client.get('/support/tickets/my', error_message='Failed to load tickets'), [])

    def all_tickets(self, params=None):
        return _data(self.client.get('/support/tickets', params=params, error_message='Failed to load tickets'), [])

    def get_ticket(self, ticket_id):
        return _data(self.client.get(f'/support/tickets/{ticket_id}',
                                     error_message='Failed to load ticket details'), {})

    def add_response(self, ticket_id, message):
        return _data(self.client.post(f'/support/tickets/{ticket_id}/responses', json={'message': message},
                                      error_message='Failed to add response'))

    def update_ticket(self, ticket_id, data):
        return _data(self.client.put(f'/support/tickets/{ticket_id}', json=data,
                                     error_message='Failed to update ticket'))


class ReportAPI(_Resource):
    def dashboard(self, params=None):
        return _data(self.client.get('/reports/dashboard', params=params), {})

    def occupancy(self, params=None):
        return _data(self.client.get('/reports/occupancy', params=params), [])

    def billing(self):
        return _data(self.client.get('/reports/billing'), [])

    def unpaid(self):
        return _data(self.client.get('/reports/unpaid'), [])

    def services(self, params=None):
        return _data(self.client.get('/reports/services', params=params), [])

    def revenue(self, params=None):
        return _data(self.client.get('/reports/revenue', params=params), [])

    def monthly_revenue(self, params=None):
        return _data(self.client.get('/reports/monthly-revenue', params=params), [])

    def top_services(self, params=None):
        return _data(self.client.get('/reports/top-services', params=params), [])

    def guest_history(self, guest_id):
        return _data(self.client.get(f'/reports/guest-history/{guest_id}'), [])


class BranchAPI(_Resource):
    def list(self):
        return _data(self.client.get('/branches', error_message='Failed to load branches'), [])

    def get(self, branch_id):
        return _data(self.client.get(f'/branches/{branch_id}'))

    def create(self, data):
        return _data(self.client.post('/branches', json=data, error_message='Failed to create branch'))

    def update(self, branch_id, data):
        return _data(self.client.put(f'/branches/{branch_id}', json=data, error_message='Failed to update branch'))

    def delete(self, branch_id):
        return self.client.delete(f'/branches/{branch_id}', error_message='Failed to delete branch')


class ServiceRequestAPI(_Resource):
    def list(self, params=None):
        return _data(self.client.get('/service-requests', params=params,
                                     error_message='Failed to load service requests'), [])

    def get(self, request_id):
        return _data(self.client.get(f'/service-requests/{request_id}'))

    def create(self, booking_id, service_id, quantity, request_notes=''):
        data = {
            'booking_id': booking_id,
            'service_id': service_id,
            'quantity': quantity,
            'request_notes': request_notes,
        }
        return _data(self.client.post('/service-requests', json=data, error_message='Failed to request service'))

    def review(self, request_id, status, review_notes=''):
        return _data(self.client.put(f'/service-requests/{request_id}/review',
                                     json={'status': status, 'review_notes': review_notes},
                                     error_message='Failed to review request'))

    def cancel(self, request_id):
        return self.client.delete(f'/service-requests/{request_id}', error_message='Failed to cancel request')

    def pending_count(self):
        data = _data(self.client.get('/service-requests/pending/count'), {})
        if isinstance(data, dict):
            return int(data.get('count') or data.get('pending_count') or 0)
        return int(data or 0)


class FeeAPI(_Resource):
    def for_branch(self, branch_id):
        return _data(self.client.get(f'/fees/{branch_id}', error_message='Failed to load fees'), [])

    def create(self, data):
        return _data(self.client.post('/fees', json=data, error_message='Failed to save fee'))

    def update(self, fee_id, data):
        return _data(self.client.put(f'/fees/{fee_id}', json=data, error_message='Failed to update fee'))

    def delete(self, fee_id):
        return self.client.delete(f'/fees/{fee_id}', error_message='Failed to delete fee')

    def apply_late_checkout(self, booking_id, actual_checkout_time):
        data = {'booking_id': booking_id, 'actual_checkout_time': actual_checkout_time}
        return _data(self.client.post('/fees/apply-late-checkout', json=data,
                                      error_message='Failed to apply late checkout fee'), {})

    def apply_no_show(self, booking_id):
        return _data(self.client.post('/fees/apply-no-show', json={'booking_id': booking_id},
                                      error_message='Failed to apply no-show fee'), {})

    def waive(self, booking_fee_id, reason=''):
        return self.client.post(f'/fees/waive/{booking_fee_id}', json={'reason': reason},
                                error_message='Failed to waive fee')

    def for_booking(self, booking_id):
        return _data(self.client.get(f'/fees/booking/{booking_id}'), [])


class TaxDiscountAPI(_Resource):
    def taxes(self, branch_id):
        return _data(self.client.get(f'/tax-discount/taxes/{branch_id}', error_message='Failed to load taxes'), [])

    def create_tax(self, data):
        return _data(self.client.post('/tax-discount/taxes', json=data, error_message='Failed to save tax'))

    def update_tax(self, tax_id, data):
        return _data(self.client.put(f'/tax-discount/taxes/{tax_id}', json=data, error_message='Failed to save tax'))

    def delete_tax(self, tax_id):
        return self.client.delete(f'/tax-discount/taxes/{tax_id}', error_message='Failed to delete tax')

    def discounts(self, branch_id):
        return _data(self.client.get(f'/tax-discount/discounts/{branch_id}',
                                     error_message='Failed to load discounts'), [])

    def create_discount(self, data):
        return _data(self.client.post('/tax-discount/discounts', json=data,
                                      error_message='Failed to save discount'))

    def update_discount(self, discount_id, data):
        return _data(self.client.put(f'/tax-discount/discounts/{discount_id}', json=data,
                                     error_message='Failed to save discount'))

    def delete_discount(self, discount_id):
        return self.client.delete(f'/tax-discount/discounts/{discount_id}',
                                  error_message='Failed to delete discount')


class SkyNestAPI:
    """HTTP client bound to the Flask app configuration"""

    def __init__(self, app=None, base_url=None, timeout=None):
        self.base_url = base_url
        self.timeout = timeout
        self.http = requests.Session()
        self.http.headers.update({
            'Content-Type': 'application/json',
            'Cache-Control': 'no-cache',
            'Pragma': 'no-cache',
        })

        self.auth = AuthAPI(self)
        self.users = UserAPI(self)
        self.bookings = BookingAPI(self)
        self.rooms = RoomAPI(self)
        self.room_types = RoomTypeAPI(self)
        self.guests = GuestAPI(self)
        self.services = ServiceAPI(self)
        self.payments = PaymentAPI(self)
        self.support = SupportAPI(self)
        self.reports = ReportAPI(self)
        self.branches = BranchAPI(self)
        self.service_requests = ServiceRequestAPI(self)
        self.fees = FeeAPI(self)
        self.tax_discounts = TaxDiscountAPI(self)

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.config.setdefault('SKYNEST_API_URL', DEFAULT_API_URL)
        app.config.setdefault('API_TIMEOUT', DEFAULT_TIMEOUT)
        app.extensions['skynest_api'] = self

    def _base_url(self):
        if self.base_url:
            return self.base_url.rstrip('/')
        return current_app.config.get('SKYNEST_API_URL', DEFAULT_API_URL).rstrip('/')

    def _timeout(self):
        if self.timeout:
            return self.timeout
        return float(current_app.config.get('API_TIMEOUT', DEFAULT_TIMEOUT))

    def _auth_headers(self):
        token = session.get('token') if has_request_context() else None
        if token:
            return {'Authorization': f'Bearer {token}'}
        return {}

    def request(self, method, path, params=None, json=None, error_message=None):
        """Send one request and return the decoded JSON envelope"""
        url = f'{self._base_url()}{path}'
        if params:
            params = {k: _query_value(v) for k, v in params.items() if v is not None and v != ''}
        headers = self._auth_headers()

        try:
            response = self.http.request(
                method,
                url,
                params=params or None,
                json=json,
                headers=headers,
                timeout=self._timeout(),
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error(f'[API] {method} {path} unreachable: {e}')
            raise BackendUnavailable('Unable to reach the SkyNest server. Please try again later.') from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        message = body.get('message') if isinstance(body, dict) else None

        # Without a token a 401 is a plain failure, e.g. bad login credentials
        if response.status_code == 401 and headers:
            logger.warning(f'[API] {method} {path} rejected the session token')
            raise AuthenticationError(message or 'Session expired. Please log in again.', 401, body)

        if not response.ok:
            logger.info(f'[API] {method} {path} -> {response.status_code}: {message}')
            raise ApiError(message or error_message or 'Request failed', response.status_code, body)

        logger.debug(f'[API] {method} {path} -> {response.status_code}')
        return body if isinstance(body, dict) else {'data': body}

    def get(self, path, params=None, error_message=None):
        return self.request('GET', path, params=params, error_message=error_message)

    def post(self, path, json=None, error_message=None):
        return self.request('POST', path, json=json, error_message=error_message)

    def put(self, path, json=None, error_message=None):
        return self.request('PUT', path, json=json, error_message=error_message)

    def delete(self, path, error_message=None):
        return self.request('DELETE', path, error_message=error_message)
