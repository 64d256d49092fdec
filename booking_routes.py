import logging

from flask import Blueprint, abort, flash, redirect, render_template, request, session, url_for
from flask_login import current_user

from exceptions import ApiError, WizardError
from extensions import api, gateway_service
from filters import filter_bookings
from helpers import format_currency, parse_date, parse_float, parse_int
from models import (
    DEFAULT_COUNTRY, ID_TYPES, PAYMENT_METHODS, ROLE_ADMIN, ROLE_RECEPTIONIST,
    Booking,
)
from routes import branch_required, role_required, staff_required
from wizard import STEP_CONFIRM, STEP_GUEST, STEP_ROOM, STEPS, BookingWizard

logger = logging.getLogger(__name__)

booking_bp = Blueprint('bookings', __name__, url_prefix='/bookings')


def _staff_branch_id():
    """Receptionists only ever see their own branch"""
    return current_user.branch_id if current_user.is_receptionist else None


def _load_booking(booking_id):
    try:
        data = api.bookings.get(booking_id)
    except ApiError as e:
        if e.status_code == 404:
            abort(404)
        raise
    if not data:
        abort(404)
    return Booking(data)


def _load_wizard():
    return BookingWizard.load(session, branch_id=_staff_branch_id())


def _to_details(booking_id):
    return redirect(url_for('bookings.details', booking_id=booking_id))


# ---- list ----

@booking_bp.route('')
@staff_required
@branch_required
def index():
    filters = {
        'status': request.args.get('status', ''),
        'start_date': request.args.get('start_date', ''),
        'end_date': request.args.get('end_date', ''),
    }
    params = dict(filters, branch_id=_staff_branch_id())

    bookings = []
    try:
        bookings = filter_bookings(api.bookings.list(params), **filters)
    except ApiError as e:
        logger.error(f'[BOOKING] Error fetching bookings: {e}')
        flash(e.message, 'danger')

    return render_template('bookings/index.html', bookings=[Booking(b) for b in bookings], filters=filters)


# ---- create wizard ----

@booking_bp.route('/new')
@staff_required
@branch_required
def new():
    wizard = _load_wizard()
    step = wizard.current_step()
    context = {'wizard': wizard, 'step': step, 'steps': STEPS}

    try:
        if step == STEP_GUEST:
            search = request.args.get('search', '').strip()
            context['search'] = search
            context['guests'] = api.guests.list(search or None)
            context['id_types'] = ID_TYPES
            context['default_country'] = DEFAULT_COUNTRY
        elif step == STEP_ROOM:
            context['branches'] = api.branches.list() if current_user.is_admin else []
            context['rooms'] = api.rooms.available(**wizard.search_params()) if wizard.has_stay else []
        else:
            context['payment_methods'] = PAYMENT_METHODS
    except ApiError as e:
        flash(e.message, 'danger')

    return render_template('bookings/new.html', **context)


@booking_bp.route('/new/step/<int:step>', methods=['POST'])
@staff_required
@branch_required
def wizard_step(step):
    wizard = _load_wizard()
    try:
        wizard.go_to(step)
        wizard.save(session)
    except WizardError as e:
        flash(str(e), 'warning')
    return redirect(url_for('bookings.new'))


@booking_bp.route('/new/reset', methods=['POST'])
@staff_required
@branch_required
def wizard_reset():
    BookingWizard.clear(session)
    return redirect(url_for('bookings.new'))


@booking_bp.route('/new/guest', methods=['POST'])
@staff_required
@branch_required
def wizard_select_guest():
    wizard = _load_wizard()
    try:
        wizard.select_guest(request.form.get('guest_id'), request.form.get('guest_label'))
        wizard.save(session)
    except WizardError as e:
        flash(str(e), 'danger')
    return redirect(url_for('bookings.new'))


@booking_bp.route('/new/guest/create', methods=['POST'])
@staff_required
@branch_required
def wizard_create_guest():
    form = request.form
    data = {
        'first_name': form.get('first_name', '').strip(),
        'last_name': form.get('last_name', '').strip(),
        'email': form.get('email', '').strip(),
        'phone': form.get('phone', '').strip(),
        'id_type': form.get('id_type', ID_TYPES[0]),
        'id_number': form.get('id_number', '').strip(),
        'country': form.get('country', '').strip() or DEFAULT_COUNTRY,
    }

    wizard = _load_wizard()
    try:
        guest = api.guests.create(data)
        guest_id = guest.get('guest_id') or guest.get('id')
        wizard.select_guest(guest_id, f"{data['first_name']} {data['last_name']}".strip())
        wizard.save(session)
        logger.info(f'[BOOKING] Guest #{guest_id} created from the booking wizard')
        flash('Guest created successfully', 'success')
    except ApiError as e:
        flash(e.message or 'Failed to create guest', 'danger')
    except WizardError as e:
        flash(str(e), 'danger')
    return redirect(url_for('bookings.new'))


@booking_bp.route('/new/search', methods=['POST'])
@staff_required
@branch_required
def wizard_search():
    wizard = _load_wizard()
    if current_user.is_receptionist:
        branch_id = current_user.branch_id
    else:
        branch_id = request.form.get('branch_id')
    try:
        wizard.set_stay(
            branch_id,
            request.form.get('check_in_date', ''),
            request.form.get('check_out_date', ''),
            request.form.get('number_of_guests', 1),
        )
        wizard.step = STEP_ROOM
        wizard.save(session)
    except WizardError as e:
        flash(str(e), 'danger')
        return redirect(url_for('bookings.new'))

    try:
        if not api.rooms.available(**wizard.search_params()):
            flash('No rooms available for selected dates', 'info')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('bookings.new'))


@booking_bp.route('/new/room', methods=['POST'])
@staff_required
@branch_required
def wizard_select_room():
    wizard = _load_wizard()
    try:
        rooms = api.rooms.available(**wizard.search_params()) if wizard.has_stay else []
        wizard.select_room(request.form.get('room_id'), rooms)
        wizard.step = STEP_CONFIRM
        wizard.save(session)
    except ApiError as e:
        flash(e.message, 'danger')
    except WizardError as e:
        flash(str(e), 'danger')
    return redirect(url_for('bookings.new'))


@booking_bp.route('/new/confirm', methods=['POST'])
@staff_required
@branch_required
def wizard_confirm():
    wizard = _load_wizard()
    try:
        wizard.set_payment(request.form.get('payment_method'), request.form.get('special_requests'))
        payload = wizard.payload()
    except WizardError as e:
        wizard.save(session)
        flash(str(e), 'danger')
        return redirect(url_for('bookings.new'))

    try:
        created = api.bookings.create(payload)
    except ApiError as e:
        wizard.save(session)
        flash(e.message, 'danger')
        return redirect(url_for('bookings.new'))

    BookingWizard.clear(session)
    booking_id = created.get('booking_id')
    logger.info(f'[BOOKING] {current_user.username} created booking #{booking_id}')
    flash('Booking created successfully', 'success')
    if booking_id:
        return _to_details(booking_id)
    return redirect(url_for('bookings.index'))


# ---- details and actions ----

@booking_bp.route('/<int:booking_id>')
@staff_required
def details(booking_id):
    booking = _load_booking(booking_id)

    services = []
    fees = []
    try:
        services = api.services.list({'is_active': True, 'branch_id': booking.get('branch_id')})
    except ApiError as e:
        logger.error(f'[BOOKING] Error fetching services: {e}')
    try:
        fees = api.fees.for_booking(booking_id)
    except ApiError as e:
        logger.error(f'[BOOKING] Error fetching fees: {e}')

    return render_template(
        'bookings/details.html',
        booking=booking,
        services=services,
        fees=fees,
        payment_methods=PAYMENT_METHODS,
    )


@booking_bp.route('/<int:booking_id>/checkin', methods=['POST'])
@staff_required
def check_in(booking_id):
    try:
        api.bookings.check_in(booking_id)
        logger.info(f'[BOOKING] Booking #{booking_id} checked in by {current_user.username}')
        flash('Guest checked in successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


@booking_bp.route('/<int:booking_id>/checkout', methods=['POST'])
@staff_required
def check_out(booking_id):
    booking = _load_booking(booking_id)
    if not booking.can_check_out:
        if booking.outstanding_amount > 0:
            flash('Cannot check out with outstanding balance', 'danger')
        else:
            flash('Only checked-in bookings can be checked out', 'danger')
        return _to_details(booking_id)

    try:
        api.bookings.check_out(booking_id)
        logger.info(f'[BOOKING] Booking #{booking_id} checked out by {current_user.username}')
        flash('Guest checked out successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


@booking_bp.route('/<int:booking_id>/cancel', methods=['POST'])
@staff_required
def cancel(booking_id):
    try:
        api.bookings.cancel(booking_id)
        logger.info(f'[BOOKING] Booking #{booking_id} cancelled by {current_user.username}')
        flash('Booking cancelled successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


@booking_bp.route('/<int:booking_id>/services', methods=['POST'])
@staff_required
def add_service(booking_id):
    service_id = parse_int(request.form.get('service_id'))
    quantity = parse_int(request.form.get('quantity'), 0)

    if not service_id:
        flash('Please select a service', 'danger')
        return _to_details(booking_id)
    if quantity < 1:
        flash('Quantity must be at least 1', 'danger')
        return _to_details(booking_id)

    try:
        api.services.add_usage(booking_id, service_id, quantity)
        flash('Service added successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


@booking_bp.route('/<int:booking_id>/services/<int:usage_id>/delete', methods=['POST'])
@staff_required
def remove_service(booking_id, usage_id):
    try:
        api.services.delete_usage(usage_id)
        flash('Service removed successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


@booking_bp.route('/<int:booking_id>/payments', methods=['POST'])
@staff_required
def record_payment(booking_id):
    amount = parse_float(request.form.get('amount'), 0)
    payment_method = request.form.get('payment_method', 'Cash')

    if amount <= 0:
        flash('Please enter a valid payment amount', 'danger')
        return _to_details(booking_id)
    if payment_method not in PAYMENT_METHODS:
        flash('Please select a payment method', 'danger')
        return _to_details(booking_id)

    try:
        api.payments.process(booking_id, amount, payment_method)
        logger.info(f'[PAYMENT] {payment_method} payment recorded for booking #{booking_id}')
        flash('Payment processed successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


@booking_bp.route('/<int:booking_id>/fees/late-checkout', methods=['POST'])
@staff_required
def late_checkout_fee(booking_id):
    # datetime-local input: 2024-05-01T13:30
    checkout_time = parse_date(request.form.get('actual_checkout_time'))
    if checkout_time is None:
        flash('Please enter the actual checkout time', 'danger')
        return _to_details(booking_id)

    try:
        result = api.fees.apply_late_checkout(booking_id, checkout_time.strftime('%Y-%m-%d %H:%M:%S'))
        amount = parse_float(result.get('fee_amount'), 0)
        if amount > 0:
            flash(f'Late checkout fee applied: {format_currency(amount)}', 'success')
        else:
            flash('No late checkout fee applies', 'info')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


@booking_bp.route('/<int:booking_id>/fees/no-show', methods=['POST'])
@staff_required
def no_show_fee(booking_id):
    try:
        api.fees.apply_no_show(booking_id)
        flash('No-show fee applied', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


@booking_bp.route('/<int:booking_id>/fees/<int:booking_fee_id>/waive', methods=['POST'])
@role_required(ROLE_ADMIN)
def waive_fee(booking_id, booking_fee_id):
    reason = request.form.get('reason', '').strip()
    if not reason:
        flash('Please provide a reason for waiving the fee', 'danger')
        return _to_details(booking_id)

    try:
        api.fees.waive(booking_fee_id, reason)
        logger.info(f'[BOOKING] Fee #{booking_fee_id} on booking #{booking_id} waived by {current_user.username}')
        flash('Fee waived successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _to_details(booking_id)


# ---- payment gateway ----

@booking_bp.route('/<int:booking_id>/pay', methods=['GET', 'POST'])
@role_required(ROLE_ADMIN, ROLE_RECEPTIONIST)
def payment_gateway(booking_id):
    promo_key = f'promo_{booking_id}'
    promo_code = session.get(promo_key)

    if request.method == 'POST':
        payment_method = request.form.get('payment_method', 'Credit Card')
        try:
            reference, _ = gateway_service.pay(booking_id, payment_method, promo_code,
                                               request.form.get('notes', ''))
        except ApiError as e:
            flash(e.message, 'danger')
            return redirect(url_for('bookings.payment_gateway', booking_id=booking_id))

        session.pop(promo_key, None)
        flash(f'Payment processed successfully! Reference {reference}', 'success')
        return _to_details(booking_id)

    breakdown = None
    try:
        breakdown = gateway_service.breakdown(booking_id, promo_code)
    except ApiError as e:
        flash(e.message, 'danger')
        return _to_details(booking_id)

    return render_template(
        'bookings/payment.html',
        booking_id=booking_id,
        breakdown=breakdown or {},
        promo_code=promo_code,
        payment_methods=PAYMENT_METHODS,
    )


@booking_bp.route('/<int:booking_id>/pay/promo', methods=['POST'])
@role_required(ROLE_ADMIN, ROLE_RECEPTIONIST)
def apply_promo(booking_id):
    promo_code = request.form.get('promo_code', '')
    try:
        message, _ = gateway_service.apply_promo(booking_id, promo_code)
        session[f'promo_{booking_id}'] = promo_code.strip()
        flash(message, 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('bookings.payment_gateway', booking_id=booking_id))


@booking_bp.route('/<int:booking_id>/pay/promo/remove', methods=['POST'])
@role_required(ROLE_ADMIN, ROLE_RECEPTIONIST)
def remove_promo(booking_id):
    session.pop(f'promo_{booking_id}', None)
    flash('Promo code removed', 'info')
    return redirect(url_for('bookings.payment_gateway', booking_id=booking_id))
