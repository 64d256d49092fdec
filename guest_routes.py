"""
Guest self-service portal
"""
import logging

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for
from flask_login import current_user

from exceptions import ApiError, WizardError
from filters import (
    GUEST_BOOKING_TABS, available_services, filter_guest_bookings, guest_booking_counts,
    guest_dashboard_stats,
)
from extensions import api
from helpers import parse_int
from models import (
    BOOKED, CHECKED_IN, PAYMENT_METHODS, ROLE_GUEST, SERVICE_CATEGORIES, TICKET_PRIORITIES,
    Booking,
)
from payment_service import summarize_bill
from routes import role_required
from wizard import BookingWizard

logger = logging.getLogger(__name__)

guest_bp = Blueprint('guest', __name__, url_prefix='/guest')

guest_only = role_required(ROLE_GUEST)

PROFILE_FIELDS = ('first_name', 'last_name', 'phone', 'address', 'date_of_birth')


def _open_bookings():
    """Bookings a support ticket may refer to"""
    return [b for b in api.bookings.list() if b.get('booking_status') in (BOOKED, CHECKED_IN)]


def _checked_in_booking(bookings):
    return next((b for b in bookings if b.get('booking_status') == CHECKED_IN), None)


def _own_booking(booking_id):
    """A booking of the logged-in guest; the backend scopes guests to their own"""
    try:
        data = api.bookings.get(booking_id)
    except ApiError as e:
        if e.status_code in (403, 404):
            abort(404)
        raise
    if not data:
        abort(404)
    return Booking(data)


def _guest_id():
    if current_user.guest_id:
        return current_user.guest_id
    try:
        return api.guests.my_profile().get('guest_id')
    except ApiError as e:
        logger.warning(f'[GUEST] No guest profile for {current_user.username}: {e}')
        return None


# ---- dashboard quick actions ----

@guest_bp.route('/actions/request-service', methods=['POST'])
@guest_only
def quick_request_service():
    current = guest_dashboard_stats(api.bookings.list())['current_booking']
    if not current:
        flash('No active booking. Please make a booking first.', 'danger')
        return redirect(url_for('main.guest_dashboard'))
    if current.get('booking_status') != CHECKED_IN:
        flash('You can request services after check-in. Your booking is confirmed.', 'info')
        return redirect(url_for('main.guest_dashboard'))
    return redirect(url_for('guest.request_service'))


@guest_bp.route('/actions/view-bill', methods=['POST'])
@guest_only
def quick_view_bill():
    current = guest_dashboard_stats(api.bookings.list())['current_booking']
    if not current:
        flash('No active booking', 'danger')
        return redirect(url_for('main.guest_dashboard'))
    return redirect(url_for('guest.booking_details', booking_id=current['booking_id']))


# ---- bookings ----

@guest_bp.route('/bookings')
@guest_only
def my_bookings():
    tab = request.args.get('tab', 'all')
    if tab not in GUEST_BOOKING_TABS:
        tab = 'all'

    bookings = []
    try:
        bookings = api.bookings.list()
    except ApiError as e:
        flash(e.message, 'danger')

    return render_template(
        'guest/bookings.html',
        bookings=[Booking(b) for b in filter_guest_bookings(bookings, tab)],
        counts=guest_booking_counts(bookings),
        tab=tab,
        tabs=GUEST_BOOKING_TABS,
    )


@guest_bp.route('/bookings/<int:booking_id>')
@guest_only
def booking_details(booking_id):
    booking = _own_booking(booking_id)

    services, payments = [], []
    try:
        services = api.services.usage(booking_id)
        payments = api.payments.for_booking(booking_id)
    except ApiError as e:
        logger.error(f'[GUEST] Usage or payments for booking #{booking_id} failed: {e}')

    return render_template(
        'guest/booking_details.html',
        booking=booking,
        services=services,
        payments=payments,
        bill=summarize_bill(booking, services, payments),
    )


@guest_bp.route('/bookings/new', methods=['GET', 'POST'])
@guest_only
def create_booking():
    values = request.values
    search = {
        'branch_id': values.get('branch_id', ''),
        'check_in_date': values.get('check_in_date', ''),
        'check_out_date': values.get('check_out_date', ''),
        'number_of_guests': values.get('number_of_guests', 1),
    }
    wizard = BookingWizard()

    rooms = []
    searched = bool(search['check_in_date'] or search['check_out_date'])
    if searched:
        try:
            wizard.set_stay(**search)
            rooms = api.rooms.available(**wizard.search_params())
            if not rooms and request.method == 'GET':
                flash('No rooms available for selected dates', 'info')
        except WizardError as e:
            flash(str(e), 'danger')
        except ApiError:
            flash('Failed to search rooms', 'danger')

    if request.method == 'POST':
        if not wizard.has_stay:
            if not searched:
                flash('Please select branch and dates', 'danger')
            return redirect(url_for('guest.create_booking', **search))

        guest_id = _guest_id()
        if not guest_id:
            flash('Guest profile not found. Please re-login.', 'danger')
            return redirect(url_for('guest.create_booking', **search))

        try:
            wizard.select_guest(guest_id)
            wizard.select_room(values.get('room_id'), rooms)
            wizard.set_payment(values.get('payment_method', 'Cash'), values.get('special_requests'))
            created = api.bookings.create(wizard.payload())
        except WizardError as e:
            flash(str(e), 'danger')
            return redirect(url_for('guest.create_booking', **search))
        except ApiError as e:
            flash(e.message, 'danger')
            return redirect(url_for('guest.create_booking', **search))

        logger.info(f"[BOOKING] Guest {current_user.username} booked #{created.get('booking_id')}")
        flash('Booking created successfully', 'success')
        if created.get('booking_id'):
            return redirect(url_for('guest.booking_details', booking_id=created['booking_id']))
        return redirect(url_for('guest.my_bookings'))

    branches = []
    try:
        branches = api.branches.list()
    except ApiError as e:
        flash(e.message, 'danger')

    return render_template(
        'guest/create_booking.html',
        branches=branches,
        search=search,
        rooms=rooms,
        nights=wizard.nights if wizard.has_stay else 0,
        payment_methods=PAYMENT_METHODS,
    )


# ---- service requests ----

@guest_bp.route('/request-service')
@guest_only
def request_service():
    booking = _checked_in_booking(api.bookings.list({'status': CHECKED_IN}))
    if not booking:
        flash('You must be checked-in to request services', 'danger')
        return redirect(url_for('guest.my_bookings'))

    category = request.args.get('category', 'all')
    services, my_requests = [], []
    try:
        services = available_services(api.services.branch_services(booking.get('branch_id')), category)
        my_requests = api.service_requests.list()
    except ApiError:
        flash('Failed to load services', 'danger')

    return render_template(
        'guest/request_service.html',
        booking=Booking(booking),
        services=services,
        requests=my_requests,
        category=category,
        categories=SERVICE_CATEGORIES,
    )


@guest_bp.route('/request-service', methods=['POST'])
@guest_only
def submit_service_request():
    booking = _checked_in_booking(api.bookings.list({'status': CHECKED_IN}))
    if not booking:
        flash('You must be checked-in to request services', 'danger')
        return redirect(url_for('guest.my_bookings'))

    service_id = parse_int(request.form.get('service_id'))
    quantity = parse_int(request.form.get('quantity'), 0)
    if not service_id:
        flash('Please select a service', 'danger')
        return redirect(url_for('guest.request_service'))
    if quantity < 1:
        flash('Quantity must be at least 1', 'danger')
        return redirect(url_for('guest.request_service'))

    try:
        api.service_requests.create(booking['booking_id'], service_id, quantity,
                                    request.form.get('request_notes', '').strip())
        flash('Service request submitted! Waiting for receptionist approval.', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('guest.request_service'))


@guest_bp.route('/request-service/<int:request_id>/cancel', methods=['POST'])
@guest_only
def cancel_service_request(request_id):
    try:
        api.service_requests.cancel(request_id)
        flash('Request cancelled successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('guest.request_service'))


# ---- support ----

@guest_bp.route('/support')
@guest_only
def support():
    tickets, bookings = [], []
    try:
        tickets = api.support.my_tickets()
        bookings = _open_bookings()
    except ApiError as e:
        flash(e.message, 'danger')

    return render_template(
        'guest/support.html',
        tickets=tickets,
        bookings=bookings,
        priorities=TICKET_PRIORITIES,
        selected_booking=request.args.get('booking', ''),
    )


@guest_bp.route('/support', methods=['POST'])
@guest_only
def create_ticket():
    subject = request.form.get('subject', '').strip()
    message = request.form.get('message', '').strip()
    if not subject or not message:
        flash('Please fill in all required fields', 'danger')
        return redirect(url_for('guest.support'))

    booking_id = parse_int(request.form.get('booking_id'))
    if booking_id is not None:
        try:
            open_ids = {parse_int(b.get('booking_id')) for b in _open_bookings()}
        except ApiError as e:
            flash(e.message, 'danger')
            return redirect(url_for('guest.support'))
        if booking_id not in open_ids:
            flash('Please select one of your current bookings', 'danger')
            return redirect(url_for('guest.support'))

    priority = request.form.get('priority', 'Medium')
    data = {
        'booking_id': booking_id,
        'subject': subject,
        'message': message,
        'priority': priority if priority in TICKET_PRIORITIES else 'Medium',
    }
    try:
        api.support.create_ticket(data)
        flash('Support ticket submitted successfully!', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('guest.support'))


@guest_bp.route('/support/<int:ticket_id>')
@guest_only
def ticket_details(ticket_id):
    try:
        thread = api.support.get_ticket(ticket_id)
    except ApiError:
        flash('Failed to load ticket details', 'danger')
        return redirect(url_for('guest.support'))

    return render_template(
        'support/ticket.html',
        ticket=thread.get('ticket') or {},
        responses=thread.get('responses') or [],
        statuses=None,
        respond_url=url_for('guest.respond_ticket', ticket_id=ticket_id),
        back_url=url_for('guest.support'),
    )


@guest_bp.route('/support/<int:ticket_id>/respond', methods=['POST'])
@guest_only
def respond_ticket(ticket_id):
    message = request.form.get('message', '').strip()
    if not message:
        flash('Please enter a response', 'danger')
        return redirect(url_for('guest.ticket_details', ticket_id=ticket_id))

    try:
        api.support.add_response(ticket_id, message)
        flash('Response added successfully', 'success')
    except ApiError:
        flash('Failed to add response', 'danger')
    return redirect(url_for('guest.ticket_details', ticket_id=ticket_id))


# ---- profile and bill ----

@guest_bp.route('/profile', methods=['GET', 'POST'])
@guest_only
def my_profile():
    if request.method == 'POST':
        data = {field: request.form.get(field, '').strip() for field in PROFILE_FIELDS}
        data['date_of_birth'] = data['date_of_birth'] or None
        try:
            api.guests.update_my_profile(data)
            flash('Profile updated successfully!', 'success')
        except ApiError as e:
            flash(e.message, 'danger')
        return redirect(url_for('guest.my_profile'))

    profile = {}
    try:
        profile = api.guests.my_profile()
    except ApiError:
        flash('Failed to load profile', 'danger')
    return render_template('guest/profile.html', profile=profile)


@guest_bp.route('/bill')
@guest_only
def view_bill():
    booking = _checked_in_booking(api.bookings.list())
    if not booking:
        return render_template('guest/bill.html', booking=None, services=[], payments=[], bill=None)

    booking_id = booking['booking_id']
    # a failed lookup counts as an empty list
    try:
        services = api.services.usage(booking_id)
    except ApiError:
        services = []
    try:
        payments = api.payments.for_booking(booking_id)
    except ApiError:
        payments = []

    return render_template(
        'guest/bill.html',
        booking=Booking(booking),
        services=services,
        payments=payments,
        bill=summarize_bill(booking, services, payments),
    )
