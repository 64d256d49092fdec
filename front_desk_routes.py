"""
Front desk pages shared by Admin and Receptionist: rooms, guests, service
requests, payments, support tickets and reports.
"""
import logging

from flask import Blueprint, Response, abort, flash, redirect, render_template, request, url_for
from flask_login import current_user

from exceptions import ApiError
from extensions import api
from filters import (
    filter_payments, filter_rooms, filter_service_requests, filter_tickets,
    payment_stats, room_stats, service_request_counts, ticket_counts,
)
from helpers import export_to_csv, first_of_month_iso, is_valid_email, today_iso
from models import (
    DEFAULT_COUNTRY, ID_TYPES, PAYMENT_METHODS, PAYMENT_STATUSES, REQUEST_STATUSES,
    ROOM_STATUSES, TICKET_PRIORITIES, TICKET_STATUSES,
)
from routes import branch_required, staff_required

logger = logging.getLogger(__name__)

front_desk_bp = Blueprint('front_desk', __name__)

REPORT_TABS = ('occupancy', 'revenue', 'services', 'unpaid')

# (field, heading, format) per report tab
REPORT_COLUMNS = {
    'occupancy': [
        ('branch_name', 'Branch', None), ('room_number', 'Room', None), ('room_type', 'Type', None),
        ('occupancy_date', 'Date', 'date'), ('status', 'Status', 'status'), ('guest_name', 'Guest', None),
    ],
    'revenue': [
        ('branch_name', 'Branch', None), ('room_revenue', 'Room Revenue', 'currency'),
        ('service_revenue', 'Service Revenue', 'currency'), ('total_revenue', 'Total Revenue', 'currency'),
    ],
    'services': [
        ('branch_name', 'Branch', None), ('service_name', 'Service', None),
        ('service_category', 'Category', None), ('usage_count', 'Times Used', None),
        ('total_revenue', 'Revenue', 'currency'),
    ],
    'unpaid': [
        ('booking_id', 'Booking', None), ('guest_name', 'Guest', None), ('branch_name', 'Branch', None),
        ('check_out_date', 'Check-out', 'date'), ('outstanding_amount', 'Outstanding', 'currency'),
        ('days_overdue', 'Days Overdue', None),
    ],
}

GUEST_FIELDS = (
    'first_name', 'last_name', 'email', 'phone', 'id_type', 'id_number',
    'address', 'country', 'date_of_birth',
)


def csv_response(rows, name):
    filename = f'{name}_{today_iso()}.csv'
    return Response(
        export_to_csv(rows),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


# ---- rooms ----

@front_desk_bp.route('/rooms')
@staff_required
@branch_required
def rooms():
    filters = {
        'branch_id': request.args.get('branch_id', ''),
        'room_type_id': request.args.get('room_type_id', ''),
        'status': request.args.get('status', ''),
        'floor_number': request.args.get('floor_number', ''),
        'search': request.args.get('search', '').strip(),
    }
    if current_user.is_receptionist:
        filters['branch_id'] = current_user.branch_id

    all_rooms, branches, room_types = [], [], []
    try:
        all_rooms = api.rooms.list()
        branches = api.branches.list()
        room_types = api.room_types.list()
    except ApiError as e:
        flash('Failed to load rooms', 'danger')
        logger.error(f'[ROOMS] {e}')

    visible = filter_rooms(all_rooms, **filters)
    return render_template(
        'front_desk/rooms.html',
        rooms=visible,
        stats=room_stats(visible),
        branches=branches,
        room_types=room_types,
        statuses=ROOM_STATUSES,
        filters=filters,
    )


@front_desk_bp.route('/rooms/<int:room_id>/status', methods=['POST'])
@staff_required
@branch_required
def update_room_status(room_id):
    status = request.form.get('status')
    if status not in ROOM_STATUSES:
        flash('Please select a valid room status', 'danger')
        return redirect(url_for('front_desk.rooms'))

    try:
        api.rooms.update(room_id, {'status': status})
        logger.info(f'[ROOMS] Room #{room_id} set to {status} by {current_user.username}')
        flash('Room status updated successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(request.referrer or url_for('front_desk.rooms'))


# ---- guests ----

def _guest_form():
    data = {field: request.form.get(field, '').strip() for field in GUEST_FIELDS}
    data['country'] = data['country'] or DEFAULT_COUNTRY
    data['date_of_birth'] = data['date_of_birth'] or None
    return data


@front_desk_bp.route('/guests')
@staff_required
def guests():
    search = request.args.get('search', '').strip()
    guest_list = []
    try:
        guest_list = api.guests.list(search or None)
    except ApiError as e:
        flash('Failed to load guests', 'danger')
        logger.error(f'[GUESTS] {e}')

    return render_template('front_desk/guests.html', guests=guest_list, search=search,
                           id_types=ID_TYPES, default_country=DEFAULT_COUNTRY)


@front_desk_bp.route('/guests', methods=['POST'])
@staff_required
def create_guest():
    data = _guest_form()
    if not data['first_name'] or not data['last_name']:
        flash('First and last name are required', 'danger')
        return redirect(url_for('front_desk.guests'))
    if data['email'] and not is_valid_email(data['email']):
        flash('Please enter a valid email address', 'danger')
        return redirect(url_for('front_desk.guests'))

    try:
        created = api.guests.create(data)
    except ApiError as e:
        flash(e.message, 'danger')
        return redirect(url_for('front_desk.guests'))

    flash('Guest created successfully!', 'success')
    if created.get('username') and created.get('default_password'):
        flash(f"Login Credentials: Username: {created['username']} "
              f"Password: {created['default_password']}", 'info')
    return redirect(url_for('front_desk.guests'))


@front_desk_bp.route('/guests/<int:guest_id>')
@staff_required
def guest_details(guest_id):
    try:
        guest = api.guests.get(guest_id)
    except ApiError as e:
        if e.status_code == 404:
            abort(404)
        raise
    if not guest:
        abort(404)

    history = guest.get('bookings')
    if history is None:
        try:
            history = api.reports.guest_history(guest_id)
        except ApiError as e:
            logger.error(f'[GUESTS] History for guest #{guest_id} failed: {e}')
            history = []

    return render_template('front_desk/guest_details.html', guest=guest, history=history)


@front_desk_bp.route('/guests/<int:guest_id>/edit', methods=['POST'])
@staff_required
def update_guest(guest_id):
    try:
        api.guests.update(guest_id, _guest_form())
        flash('Guest updated successfully!', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(request.referrer or url_for('front_desk.guests'))


@front_desk_bp.route('/guests/<int:guest_id>/delete', methods=['POST'])
@staff_required
def delete_guest(guest_id):
    try:
        api.guests.delete(guest_id)
        logger.info(f'[GUESTS] Guest #{guest_id} deleted by {current_user.username}')
        flash('Guest deleted successfully!', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('front_desk.guests'))


# ---- service requests ----

@front_desk_bp.route('/service-requests')
@staff_required
def service_requests():
    status = request.args.get('status', '')
    search = request.args.get('search', '').strip()

    all_requests = []
    try:
        all_requests = api.service_requests.list()
    except ApiError as e:
        flash('Failed to load service requests', 'danger')
        logger.error(f'[REQUESTS] {e}')

    return render_template(
        'front_desk/service_requests.html',
        requests=filter_service_requests(all_requests, status, search),
        counts=service_request_counts(all_requests),
        statuses=REQUEST_STATUSES,
        status=status,
        search=search,
    )


@front_desk_bp.route('/service-requests/<int:request_id>/review', methods=['POST'])
@staff_required
def review_service_request(request_id):
    status = request.form.get('status')
    review_notes = request.form.get('review_notes', '').strip()

    if status not in ('Approved', 'Rejected'):
        flash('Invalid review status', 'danger')
        return redirect(url_for('front_desk.service_requests'))
    if status == 'Rejected' and not review_notes:
        flash('Please provide a reason for rejection', 'danger')
        return redirect(url_for('front_desk.service_requests'))

    try:
        api.service_requests.review(request_id, status, review_notes)
        logger.info(f'[REQUESTS] Request #{request_id} {status.lower()} by {current_user.username}')
        flash(f'Service request {status.lower()} successfully!', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('front_desk.service_requests'))


# ---- payments ----

def _payment_filters():
    return {
        'search': request.args.get('search', '').strip(),
        'payment_method': request.args.get('payment_method', ''),
        'payment_status': request.args.get('payment_status', ''),
        'start_date': request.args.get('start_date', ''),
        'end_date': request.args.get('end_date', ''),
    }


@front_desk_bp.route('/payments')
@staff_required
def payments():
    filters = _payment_filters()
    all_payments = []
    try:
        all_payments = api.payments.list()
    except ApiError as e:
        flash('Failed to load payments', 'danger')
        logger.error(f'[PAYMENT] {e}')

    visible = filter_payments(all_payments, **filters)
    return render_template(
        'front_desk/payments.html',
        payments=visible,
        stats=payment_stats(visible),
        filters=filters,
        payment_methods=PAYMENT_METHODS,
        payment_statuses=PAYMENT_STATUSES,
    )


@front_desk_bp.route('/payments/export')
@staff_required
def export_payments():
    rows = filter_payments(api.payments.list(), **_payment_filters())
    if not rows:
        flash('No data to export', 'warning')
        return redirect(url_for('front_desk.payments', **request.args))
    return csv_response(rows, 'payments')


# ---- support tickets ----

@front_desk_bp.route('/support')
@staff_required
def support():
    status = request.args.get('status', '')
    priority = request.args.get('priority', '')
    search = request.args.get('search', '').strip()

    tickets = []
    try:
        tickets = api.support.all_tickets()
    except ApiError as e:
        flash('Failed to load tickets', 'danger')
        logger.error(f'[SUPPORT] {e}')

    return render_template(
        'front_desk/support.html',
        tickets=filter_tickets(tickets, status, priority, search),
        counts=ticket_counts(tickets),
        statuses=TICKET_STATUSES,
        priorities=TICKET_PRIORITIES,
        status=status,
        priority=priority,
        search=search,
    )


@front_desk_bp.route('/support/<int:ticket_id>')
@staff_required
def ticket_details(ticket_id):
    try:
        thread = api.support.get_ticket(ticket_id)
    except ApiError as e:
        flash('Failed to load ticket details', 'danger')
        logger.error(f'[SUPPORT] {e}')
        return redirect(url_for('front_desk.support'))

    return render_template(
        'support/ticket.html',
        ticket=thread.get('ticket') or {},
        responses=thread.get('responses') or [],
        statuses=TICKET_STATUSES,
        respond_url=url_for('front_desk.respond_ticket', ticket_id=ticket_id),
        back_url=url_for('front_desk.support'),
    )


@front_desk_bp.route('/support/<int:ticket_id>/respond', methods=['POST'])
@staff_required
def respond_ticket(ticket_id):
    message = request.form.get('message', '').strip()
    if not message:
        flash('Please enter a response', 'danger')
        return redirect(url_for('front_desk.ticket_details', ticket_id=ticket_id))

    try:
        api.support.add_response(ticket_id, message)
        flash('Response added successfully', 'success')
    except ApiError as e:
        flash(e.message or 'Failed to add response', 'danger')
    return redirect(url_for('front_desk.ticket_details', ticket_id=ticket_id))


@front_desk_bp.route('/support/<int:ticket_id>/status', methods=['POST'])
@staff_required
def update_ticket_status(ticket_id):
    status = request.form.get('status')
    if status not in TICKET_STATUSES:
        flash('Invalid ticket status', 'danger')
        return redirect(url_for('front_desk.ticket_details', ticket_id=ticket_id))

    try:
        api.support.update_ticket(ticket_id, {'status': status})
        flash(f'Ticket {status.lower()} successfully', 'success')
    except ApiError as e:
        flash(e.message or 'Failed to update ticket', 'danger')
    return redirect(url_for('front_desk.ticket_details', ticket_id=ticket_id))


# ---- reports ----

def _report_params():
    tab = request.args.get('tab', 'occupancy')
    if tab not in REPORT_TABS:
        tab = 'occupancy'
    date_range = {
        'start_date': request.args.get('start_date') or first_of_month_iso(),
        'end_date': request.args.get('end_date') or today_iso(),
    }
    return tab, date_range


def _report_rows(tab, date_range):
    if tab == 'occupancy':
        return api.reports.occupancy(date_range)
    if tab == 'revenue':
        return api.reports.revenue(date_range)
    if tab == 'services':
        return api.reports.top_services(date_range)
    return api.reports.unpaid()


@front_desk_bp.route('/reports')
@staff_required
def reports():
    tab, date_range = _report_params()
    rows = []
    try:
        rows = _report_rows(tab, date_range)
    except ApiError as e:
        logger.error(f'[REPORTS] {tab} report failed: {e}')
        flash(e.message, 'danger')

    return render_template('front_desk/reports.html', tab=tab, tabs=REPORT_TABS,
                           columns=REPORT_COLUMNS[tab], date_range=date_range, rows=rows)


@front_desk_bp.route('/reports/export')
@staff_required
def export_report():
    tab, date_range = _report_params()
    rows = _report_rows(tab, date_range)
    if not rows:
        flash('No data to export', 'warning')
        return redirect(url_for('front_desk.reports', tab=tab, **date_range))
    return csv_response(rows, f'{tab}_report')
