"""
Formatting and validation helpers shared by routes and templates
"""
import csv
import io
import re
from datetime import date, datetime

import pytz
from flask import current_app, has_app_context

from models import ROLE_ADMIN, ROLE_GUEST, ROLE_RECEPTIONIST

DEFAULT_TIMEZONE = 'Asia/Colombo'

STATUS_CLASSES = {
    'Booked': 'status-booked',
    'Checked-In': 'status-checked-in',
    'Checked-Out': 'status-checked-out',
    'Cancelled': 'status-cancelled',
    'Available': 'status-available',
    'Occupied': 'status-occupied',
    'Maintenance': 'status-maintenance',
    'Reserved': 'status-reserved',
    'Completed': 'status-completed',
    'Pending': 'status-pending',
    'Failed': 'status-failed',
    'Refunded': 'status-refunded',
    'PAID': 'status-paid',
    'UNPAID': 'status-unpaid',
}

ROLE_NAMES = {
    ROLE_ADMIN: 'Administrator',
    ROLE_RECEPTIONIST: 'Receptionist',
    ROLE_GUEST: 'Guest',
}

DASHBOARD_ROUTES = {
    ROLE_ADMIN: '/admin',
    ROLE_RECEPTIONIST: '/receptionist',
    ROLE_GUEST: '/guest',
}

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_RE = re.compile(r'^[+]?[\d\s\-()]+$')


def hotel_timezone():
    if has_app_context():
        return current_app.config.get('HOTEL_TIMEZONE', DEFAULT_TIMEZONE)
    return DEFAULT_TIMEZONE


def parse_date(value, timezone=None):
    """Parse an ISO date or datetime string; ``None`` when it cannot be parsed.

    Timestamps with an offset are moved to the hotel timezone first. The
    backend sends DATE columns as the UTC instant of the hotel's midnight,
    so 2024-05-02 arrives as ``2024-05-01T18:30:00.000Z``.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is not None:
        if parsed.tzinfo is not None:
            parsed = to_local_time(parsed, timezone or hotel_timezone())
        return parsed
    try:
        return datetime.strptime(text[:10], '%Y-%m-%d')
    except ValueError:
        return None


def format_currency(amount):
    try:
        value = float(amount or 0)
    except (TypeError, ValueError):
        value = 0.0
    sign = '-' if value < 0 else ''
    return f'{sign}LKR {abs(value):,.2f}'


def format_date(value, fmt='%b %d, %Y'):
    parsed = parse_date(value)
    if parsed is None:
        return '-'
    return parsed.strftime(fmt)


def to_local_time(dt, timezone=DEFAULT_TIMEZONE):
    """Convert a naive UTC or aware datetime to the hotel timezone"""
    if not dt:
        return dt
    utc = pytz.utc
    local_tz = pytz.timezone(timezone)
    if dt.tzinfo is None:
        dt = utc.localize(dt)
    return dt.astimezone(local_tz)


def format_datetime(value, timezone=DEFAULT_TIMEZONE):
    parsed = parse_date(value, timezone)
    if parsed is None:
        return '-'
    # Date-only values carry no time of day to convert
    if isinstance(value, str) and len(value.strip()) > 10:
        parsed = to_local_time(parsed, timezone)
    return parsed.strftime('%b %d, %Y %H:%M')


def calculate_nights(check_in, check_out):
    start = parse_date(check_in)
    end = parse_date(check_out)
    if start is None or end is None:
        return 0
    return (end.date() - start.date()).days


def get_status_class(status):
    return STATUS_CLASSES.get(status, 'status-default')


def is_valid_email(email):
    return bool(email and EMAIL_RE.match(email))


def is_valid_phone(phone):
    if not phone or not PHONE_RE.match(phone):
        return False
    return len(re.sub(r'\D', '', phone)) >= 10


def get_role_display_name(role):
    return ROLE_NAMES.get(role, role)


def get_dashboard_route(role):
    return DASHBOARD_ROUTES.get(role, '/')


def truncate_text(text, max_length=50):
    if not text:
        return ''
    if len(text) <= max_length:
        return text
    return text[:max_length] + '...'


def calculate_percentage(value, total):
    if not total:
        return 0
    return round((float(value) / float(total)) * 100, 2)


def group_by(items, key):
    groups = {}
    for item in items:
        groups.setdefault(item.get(key), []).append(item)
    return groups


def export_to_csv(rows):
    """Render rows as CSV text; the first row's keys become the header"""
    if not rows:
        return ''

    headers = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow(headers)
    for row in rows:
        writer.writerow(['' if row.get(h) is None else row.get(h) for h in headers])
    return buffer.getvalue()


def parse_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_float(value, default=None):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def today_iso():
    return date.today().isoformat()


def first_of_month_iso():
    return date.today().replace(day=1).isoformat()


# Sidebar links per role; order is the order shown
STAFF_NAV = [
    ('/bookings', 'Bookings'),
    ('/rooms', 'Rooms'),
    ('/services', 'Services'),
    ('/guests', 'Guests'),
    ('/service-requests', 'Service Requests'),
    ('/payments', 'Payments'),
    ('/tax-discount', 'Tax & Discounts'),
    ('/fees', 'Fees'),
    ('/reports', 'Reports'),
    ('/support', 'Support'),
]
ADMIN_NAV = [('/users', 'Users')]
PROFILE_NAV = [('/profile', 'Profile')]
GUEST_NAV = [
    ('/guest/bookings', 'My Bookings'),
    ('/guest/support', 'Support'),
    ('/guest/profile', 'My Profile'),
]


def get_nav_items(role):
    if role == ROLE_GUEST:
        return list(GUEST_NAV)
    if role == ROLE_ADMIN:
        return STAFF_NAV + ADMIN_NAV + PROFILE_NAV
    if role == ROLE_RECEPTIONIST:
        return STAFF_NAV + PROFILE_NAV
    return STAFF_NAV[:3] + PROFILE_NAV


def is_nav_active(path, current_path, dashboard_path=None):
    """Dashboards match exactly, everything else by prefix"""
    if path == dashboard_path:
        return current_path == path
    return current_path.startswith(path)
