import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for
from flask_login import current_user

from exceptions import ApiError
from extensions import api
from filters import active_items, available_services
from helpers import parse_float, parse_int, today_iso
from models import (
    DISCOUNT_TYPES, FEE_CALCULATIONS, FEE_TYPES, ROLE_ADMIN, ROLE_RECEPTIONIST, ROLES,
    SERVICE_CATEGORIES, SERVICE_UNIT_TYPES, TAX_TYPES,
)
from routes import MIN_PASSWORD_LENGTH, no_branch_redirect, role_required, staff_required

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


def _truthy(value):
    return str(value).lower() in ('1', 'true', 'on', 'yes')


def _optional_float(value):
    return parse_float(value) if value not in (None, '') else None


def _optional_int(value):
    return parse_int(value) if value not in (None, '') else None


def resolve_branch():
    """(branches, selected branch id) for the branch-scoped admin pages.

    Admins choose with ``?branch_id=`` and default to the first branch.
    Receptionists are pinned to their own branch; ``None`` when they have none.
    """
    if current_user.is_receptionist:
        return [], current_user.branch_id

    branches = api.branches.list()
    selected = parse_int(request.values.get('branch_id'))
    if selected is None and branches:
        selected = branches[0].get('branch_id')
    return branches, selected


# ---- users ----

@admin_bp.route('/users')
@role_required(ROLE_ADMIN)
def users():
    user_list, branches = [], []
    try:
        user_list = api.users.list()
        branches = api.branches.list()
    except ApiError as e:
        flash('Failed to load users', 'danger')
        logger.error(f'[USERS] {e}')

    return render_template('admin/users.html', users=user_list, branches=branches, roles=ROLES)


@admin_bp.route('/users', methods=['POST'])
@role_required(ROLE_ADMIN)
def create_user():
    form = request.form
    data = {
        'username': form.get('username', '').strip(),
        'password': form.get('password', ''),
        'email': form.get('email', '').strip(),
        'full_name': form.get('full_name', '').strip(),
        'role': form.get('role', ROLE_RECEPTIONIST),
        'branch_id': parse_int(form.get('branch_id')),
        'phone': form.get('phone', '').strip(),
    }

    if not data['username'] or not data['email'] or not data['full_name']:
        flash('Username, email and full name are required', 'danger')
        return redirect(url_for('admin.users'))
    if len(data['password']) < MIN_PASSWORD_LENGTH:
        flash('Password must be at least 6 characters', 'danger')
        return redirect(url_for('admin.users'))
    if data['role'] not in ROLES:
        flash('Please select a valid role', 'danger')
        return redirect(url_for('admin.users'))
    if data['role'] == ROLE_RECEPTIONIST and not data['branch_id']:
        flash('Please select a branch for the receptionist', 'danger')
        return redirect(url_for('admin.users'))

    try:
        api.auth.register(data)
        logger.info(f"[USERS] {current_user.username} created {data['role']} {data['username']}")
        flash('User created successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('admin.users'))


@admin_bp.route('/users/<int:user_id>/reset-password', methods=['POST'])
@role_required(ROLE_ADMIN)
def reset_user_password(user_id):
    new_password = request.form.get('new_password', '')
    if new_password != request.form.get('confirm_password', ''):
        flash('Passwords do not match', 'danger')
        return redirect(url_for('admin.users'))
    if len(new_password) < MIN_PASSWORD_LENGTH:
        flash('Password must be at least 6 characters', 'danger')
        return redirect(url_for('admin.users'))

    try:
        api.users.reset_password(user_id, new_password)
        flash('Password reset successfully', 'success')
    except ApiError:
        flash('Failed to reset password', 'danger')
    return redirect(url_for('admin.users'))


@admin_bp.route('/users/<int:user_id>/delete', methods=['POST'])
@role_required(ROLE_ADMIN)
def delete_user(user_id):
    if str(user_id) == current_user.get_id():
        flash('You cannot delete your own account', 'danger')
        return redirect(url_for('admin.users'))

    try:
        api.users.delete(user_id)
        logger.info(f'[USERS] User #{user_id} deleted by {current_user.username}')
        flash('User deleted successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return redirect(url_for('admin.users'))


# ---- services ----

def _service_form():
    form = request.form
    return {
        'service_name': form.get('service_name', '').strip(),
        'service_category': form.get('service_category', SERVICE_CATEGORIES[0]),
        'description': form.get('description', '').strip(),
        'unit_price': parse_float(form.get('unit_price')),
        'unit_type': form.get('unit_type', SERVICE_UNIT_TYPES[0]),
    }


def _services_redirect(branch_id=None):
    return redirect(url_for('admin.services', branch_id=branch_id))


@admin_bp.route('/services')
@staff_required
def services():
    branches, branch_id = resolve_branch()
    if not branch_id and current_user.is_receptionist:
        return no_branch_redirect()

    category = request.args.get('category', 'all')
    service_list = []
    if branch_id:
        try:
            service_list = api.services.list({'branch_id': branch_id})
        except ApiError as e:
            flash(e.message, 'danger')

    if category != 'all':
        service_list = [s for s in service_list if s.get('service_category') == category]

    return render_template(
        'admin/services.html',
        services=service_list,
        available_count=len(available_services(service_list)),
        branches=branches,
        branch_id=branch_id,
        category=category,
        categories=SERVICE_CATEGORIES,
        unit_types=SERVICE_UNIT_TYPES,
    )


@admin_bp.route('/services', methods=['POST'])
@role_required(ROLE_ADMIN)
def create_service():
    data = _service_form()
    if not data['service_name'] or data['unit_price'] is None or data['unit_price'] < 0:
        flash('Service name and a valid unit price are required', 'danger')
        return _services_redirect(request.form.get('branch_id'))

    try:
        api.services.create(data)
        flash('Service created successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _services_redirect(request.form.get('branch_id'))


@admin_bp.route('/services/<int:service_id>/edit', methods=['POST'])
@role_required(ROLE_ADMIN)
def update_service(service_id):
    data = _service_form()
    if not data['service_name'] or data['unit_price'] is None or data['unit_price'] < 0:
        flash('Service name and a valid unit price are required', 'danger')
        return _services_redirect(request.form.get('branch_id'))

    try:
        api.services.update(service_id, data)
        flash('Service updated successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _services_redirect(request.form.get('branch_id'))


@admin_bp.route('/services/<int:service_id>/delete', methods=['POST'])
@role_required(ROLE_ADMIN)
def delete_service(service_id):
    try:
        api.services.delete(service_id)
        flash('Service deleted successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _services_redirect(request.form.get('branch_id'))


@admin_bp.route('/services/<int:service_id>/toggle', methods=['POST'])
@staff_required
def toggle_service(service_id):
    _, branch_id = resolve_branch()
    if not branch_id:
        flash('Please select a branch first', 'danger')
        return _services_redirect()

    # the form posts the current state; null means never configured, i.e. off
    is_available = not _truthy(request.form.get('is_available'))
    try:
        api.services.toggle_branch_service(branch_id, service_id, is_available)
        flash('Service ' + ('enabled' if is_available else 'disabled'), 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _services_redirect(branch_id)


@admin_bp.route('/services/<int:service_id>/price', methods=['POST'])
@staff_required
def set_service_price(service_id):
    _, branch_id = resolve_branch()
    if not branch_id:
        flash('Please select a branch first', 'danger')
        return _services_redirect()

    price = parse_float(request.form.get('custom_price'))
    if price is None or price < 0:
        flash('Please enter a valid price', 'danger')
        return _services_redirect(branch_id)

    try:
        api.services.set_branch_price(branch_id, service_id, price)
        flash('Custom price saved', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _services_redirect(branch_id)


# ---- fees ----

def fee_stats(fees):
    """Active fee count and the sum of active fixed amounts"""
    active = active_items(fees)
    total = sum(parse_float(f.get('fee_value'), 0) for f in active if f.get('fee_calculation') == 'Fixed Amount')
    return {'count': len(active), 'total_amount': total}


def _fee_form(branch_id):
    form = request.form
    return {
        'branch_id': branch_id,
        'fee_type': form.get('fee_type', FEE_TYPES[0]),
        'fee_calculation': form.get('fee_calculation', FEE_CALCULATIONS[0]),
        'fee_value': parse_float(form.get('fee_value')),
        'grace_period_minutes': parse_int(form.get('grace_period_minutes'), 0),
        'max_fee_amount': _optional_float(form.get('max_fee_amount')),
        'description': form.get('description', '').strip(),
    }


def _fees_redirect(branch_id):
    return redirect(url_for('admin.fees', branch_id=branch_id))


@admin_bp.route('/fees')
@staff_required
def fees():
    try:
        branches, branch_id = resolve_branch()
    except ApiError:
        flash('Failed to load branches', 'danger')
        branches, branch_id = [], None
    if not branch_id and current_user.is_receptionist:
        return no_branch_redirect()

    fee_list = []
    if branch_id:
        try:
            fee_list = api.fees.for_branch(branch_id)
        except ApiError:
            flash('Failed to load fees', 'danger')

    return render_template(
        'admin/fees.html',
        fees=fee_list,
        stats=fee_stats(fee_list),
        branches=branches,
        branch_id=branch_id,
        fee_types=FEE_TYPES,
        fee_calculations=FEE_CALCULATIONS,
    )


@admin_bp.route('/fees', methods=['POST'])
@staff_required
def save_fee():
    _, branch_id = resolve_branch()
    data = _fee_form(branch_id)
    if not branch_id or data['fee_value'] is None or data['fee_value'] < 0:
        flash('Please provide all required fields', 'danger')
        return _fees_redirect(branch_id)

    fee_id = parse_int(request.form.get('fee_config_id'))
    try:
        if fee_id:
            api.fees.update(fee_id, data)
            flash('Fee updated successfully', 'success')
        else:
            api.fees.create(data)
            flash('Fee created successfully', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _fees_redirect(branch_id)


@admin_bp.route('/fees/<int:fee_id>/toggle', methods=['POST'])
@staff_required
def toggle_fee(fee_id):
    branch_id = request.form.get('branch_id')
    try:
        api.fees.update(fee_id, {'is_active': not _truthy(request.form.get('is_active'))})
        flash('Fee status updated', 'success')
    except ApiError:
        flash('Failed to update status', 'danger')
    return _fees_redirect(branch_id)


@admin_bp.route('/fees/<int:fee_id>/delete', methods=['POST'])
@role_required(ROLE_ADMIN)
def delete_fee(fee_id):
    branch_id = request.form.get('branch_id')
    try:
        api.fees.delete(fee_id)
        flash('Fee deleted successfully', 'success')
    except ApiError:
        flash('Failed to delete fee', 'danger')
    return _fees_redirect(branch_id)


# ---- taxes & discounts ----

def tax_stats(taxes):
    active = active_items(taxes)
    return {'count': len(active), 'total': sum(parse_float(t.get('tax_rate'), 0) for t in active)}


def discount_stats(discounts):
    active = active_items(discounts)
    return {'count': len(active), 'total': sum(parse_int(d.get('usage_count'), 0) for d in active)}


def parse_discount_form(form, branch_id):
    """Numeric discount fields are parsed; empty optional values become null"""
    return {
        'branch_id': branch_id,
        'discount_name': form.get('discount_name', '').strip(),
        'discount_type': form.get('discount_type', DISCOUNT_TYPES[0]),
        'discount_value': parse_float(form.get('discount_value')),
        'promo_code': form.get('promo_code', '').strip() or None,
        'min_booking_amount': _optional_float(form.get('min_booking_amount')) or 0,
        'max_discount_amount': _optional_float(form.get('max_discount_amount')),
        'usage_limit': _optional_int(form.get('usage_limit')),
        'valid_from': form.get('valid_from') or None,
        'valid_until': form.get('valid_until') or None,
        'is_active': _truthy(form.get('is_active', 'true')),
    }


def parse_tax_form(form, branch_id):
    return {
        'branch_id': branch_id,
        'tax_name': form.get('tax_name', '').strip(),
        'tax_type': form.get('tax_type', TAX_TYPES[0]),
        'tax_rate': parse_float(form.get('tax_rate')),
        'effective_from': form.get('effective_from') or today_iso(),
        'is_active': _truthy(form.get('is_active', 'true')),
        'is_percentage': True,
    }


def _tax_discount_redirect(branch_id, tab):
    return redirect(url_for('admin.tax_discount', branch_id=branch_id, tab=tab))


@admin_bp.route('/tax-discount')
@staff_required
def tax_discount():
    tab = 'discounts' if request.args.get('tab') == 'discounts' else 'taxes'
    try:
        branches, branch_id = resolve_branch()
    except ApiError:
        flash('Failed to load branches', 'danger')
        branches, branch_id = [], None
    if not branch_id and current_user.is_receptionist:
        return no_branch_redirect()

    items = []
    if branch_id:
        try:
            items = api.tax_discounts.taxes(branch_id) if tab == 'taxes' else api.tax_discounts.discounts(branch_id)
        except ApiError as e:
            flash(e.message, 'danger')

    stats = tax_stats(items) if tab == 'taxes' else discount_stats(items)
    return render_template(
        'admin/tax_discount.html',
        tab=tab,
        items=items,
        stats=stats,
        branches=branches,
        branch_id=branch_id,
        tax_types=TAX_TYPES,
        discount_types=DISCOUNT_TYPES,
        today=today_iso(),
    )


@admin_bp.route('/tax-discount/taxes', methods=['POST'])
@staff_required
def save_tax():
    _, branch_id = resolve_branch()
    data = parse_tax_form(request.form, branch_id)
    if not branch_id or not data['tax_name'] or data['tax_rate'] is None:
        flash('Tax name and rate are required', 'danger')
        return _tax_discount_redirect(branch_id, 'taxes')

    tax_id = parse_int(request.form.get('tax_config_id'))
    try:
        if tax_id:
            api.tax_discounts.update_tax(tax_id, data)
            flash('Tax updated', 'success')
        else:
            api.tax_discounts.create_tax(data)
            flash('Tax created', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _tax_discount_redirect(branch_id, 'taxes')


@admin_bp.route('/tax-discount/discounts', methods=['POST'])
@staff_required
def save_discount():
    _, branch_id = resolve_branch()
    data = parse_discount_form(request.form, branch_id)
    if not branch_id or not data['discount_name'] or data['discount_value'] is None:
        flash('Discount name and value are required', 'danger')
        return _tax_discount_redirect(branch_id, 'discounts')

    discount_id = parse_int(request.form.get('discount_config_id'))
    try:
        if discount_id:
            api.tax_discounts.update_discount(discount_id, data)
            flash('Discount updated', 'success')
        else:
            api.tax_discounts.create_discount(data)
            flash('Discount created', 'success')
    except ApiError as e:
        flash(e.message, 'danger')
    return _tax_discount_redirect(branch_id, 'discounts')


@admin_bp.route('/tax-discount/<kind>/<int:item_id>/toggle', methods=['POST'])
@staff_required
def toggle_tax_discount(kind, item_id):
    branch_id = request.form.get('branch_id')
    is_active = not _truthy(request.form.get('is_active'))
    try:
        if kind == 'taxes':
            api.tax_discounts.update_tax(item_id, {'is_active': is_active})
            flash('Tax status updated', 'success')
        elif kind == 'discounts':
            api.tax_discounts.update_discount(item_id, {'is_active': is_active})
            flash('Discount status updated', 'success')
        else:
            flash('Unknown item type', 'danger')
    except ApiError:
        flash('Failed to update status', 'danger')
    return _tax_discount_redirect(branch_id, kind)


@admin_bp.route('/tax-discount/<kind>/<int:item_id>/delete', methods=['POST'])
@role_required(ROLE_ADMIN)
def delete_tax_discount(kind, item_id):
    branch_id = request.form.get('branch_id')
    try:
        if kind == 'taxes':
            api.tax_discounts.delete_tax(item_id)
            flash('Tax deleted', 'success')
        elif kind == 'discounts':
            api.tax_discounts.delete_discount(item_id)
            flash('Discount deleted', 'success')
        else:
            flash('Unknown item type', 'danger')
    except ApiError:
        flash(f"Failed to delete {'tax' if kind == 'taxes' else 'discount'}", 'danger')
    return _tax_discount_redirect(branch_id, kind)
