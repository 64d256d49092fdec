"""
Client-side filtering of lists already fetched from the backend.

Every criterion is optional and they combine with AND. Search terms are
case-insensitive substring matches. Input lists are never modified.
"""
from datetime import date

from helpers import parse_date, parse_int
from models import BOOKED, CANCELLED, CHECKED_IN, CHECKED_OUT

GUEST_BOOKING_TABS = ('all', 'current', 'upcoming', 'past')


def _matches(term, *values):
    term = term.lower()
    return any(term in str(v).lower() for v in values if v is not None)


def _amount(value):
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _on_or_after(value, bound):
    parsed = parse_date(value)
    return parsed is not None and parsed.date() >= bound.date()


def _on_or_before(value, bound):
    parsed = parse_date(value)
    return parsed is not None and parsed.date() <= bound.date()


def filter_bookings(bookings, status=None, start_date=None, end_date=None, search=None):
    filtered = list(bookings)

    if status:
        filtered = [b for b in filtered if b.get('booking_status') == status]

    start = parse_date(start_date)
    if start:
        filtered = [b for b in filtered if _on_or_after(b.get('check_in_date'), start)]

    end = parse_date(end_date)
    if end:
        filtered = [b for b in filtered if _on_or_before(b.get('check_out_date'), end)]

    if search:
        filtered = [
            b for b in filtered
            if _matches(search, b.get('first_name'), b.get('last_name'), b.get('guest_name'),
                        b.get('room_number'), b.get('booking_id'))
        ]

    return filtered


def filter_guest_bookings(bookings, tab='all', today=None):
    """My Bookings tabs: current, upcoming, past or all"""
    today = today or date.today()

    if tab == 'current':
        return [b for b in bookings if b.get('booking_status') == CHECKED_IN]
    if tab == 'upcoming':
        return [
            b for b in bookings
            if b.get('booking_status') == BOOKED
            and _on_or_after(b.get('check_in_date'), parse_date(today))
        ]
    if tab == 'past':
        return [b for b in bookings if b.get('booking_status') in (CHECKED_OUT, CANCELLED)]
    return list(bookings)


def guest_booking_counts(bookings, today=None):
    return {tab: len(filter_guest_bookings(bookings, tab, today)) for tab in GUEST_BOOKING_TABS}


def guest_dashboard_stats(bookings):
    active = [b for b in bookings if b.get('booking_status') == CHECKED_IN]
    upcoming = [b for b in bookings if b.get('booking_status') == BOOKED]
    current = active[0] if active else (upcoming[0] if upcoming else None)

    return {
        'active_bookings': len(active),
        'upcoming_bookings': len(upcoming),
        'total_spent': sum(_amount(b.get('paid_amount')) for b in bookings),
        'pending_payments': sum(_amount(b.get('outstanding_amount')) for b in bookings),
        'current_booking': current,
        'upcoming': upcoming[:3],
    }


def filter_rooms(rooms, branch_id=None, room_type_id=None, status=None, floor_number=None, search=None):
    filtered = list(rooms)

    branch_id = parse_int(branch_id)
    if branch_id is not None:
        filtered = [r for r in filtered if parse_int(r.get('branch_id')) == branch_id]

    room_type_id = parse_int(room_type_id)
    if room_type_id is not None:
        filtered = [r for r in filtered if parse_int(r.get('room_type_id')) == room_type_id]

    if status:
        filtered = [r for r in filtered if r.get('status') == status]

    floor_number = parse_int(floor_number)
    if floor_number is not None:
        filtered = [r for r in filtered if parse_int(r.get('floor_number')) == floor_number]

    if search:
        filtered = [
            r for r in filtered
            if _matches(search, r.get('room_number'), r.get('branch_name'), r.get('type_name'))
        ]

    return filtered


def room_stats(rooms):
    return {
        'total': len(rooms),
        'available': sum(1 for r in rooms if r.get('status') == 'Available'),
        'occupied': sum(1 for r in rooms if r.get('status') == 'Occupied'),
        'maintenance': sum(1 for r in rooms if r.get('status') == 'Maintenance'),
    }


def filter_payments(payments, search=None, payment_method=None, payment_status=None,
                    start_date=None, end_date=None):
    filtered = list(payments)

    if search:
        filtered = [
            p for p in filtered
            if _matches(search, p.get('guest_name'), p.get('booking_id'), p.get('payment_id'))
        ]

    if payment_method:
        filtered = [p for p in filtered if p.get('payment_method') == payment_method]

    if payment_status:
        filtered = [p for p in filtered if p.get('payment_status') == payment_status]

    start = parse_date(start_date)
    if start:
        filtered = [p for p in filtered if _on_or_after(p.get('payment_date'), start)]

    end = parse_date(end_date)
    if end:
        filtered = [p for p in filtered if _on_or_before(p.get('payment_date'), end)]

    return filtered


def payment_stats(payments):
    return {
        'total': len(payments),
        'total_amount': sum(_amount(p.get('amount')) for p in payments),
        'completed': sum(1 for p in payments if p.get('payment_status') == 'Completed'),
        'pending': sum(1 for p in payments if p.get('payment_status') == 'Pending'),
        'failed': sum(1 for p in payments if p.get('payment_status') == 'Failed'),
    }


def filter_tickets(tickets, status=None, priority=None, search=None):
    filtered = list(tickets)

    if status:
        filtered = [t for t in filtered if t.get('status') == status]

    if priority:
        filtered = [t for t in filtered if t.get('priority') == priority]

    if search:
        filtered = [
            t for t in filtered
            if _matches(search, t.get('subject'), t.get('guest_name'), t.get('ticket_id'))
        ]

    return filtered


def ticket_counts(tickets):
    return {
        'open': sum(1 for t in tickets if t.get('status') == 'Open'),
        'in_progress': sum(1 for t in tickets if t.get('status') == 'In Progress'),
        'resolved': sum(1 for t in tickets if t.get('status') == 'Resolved'),
    }


def filter_service_requests(requests, status=None, search=None):
    filtered = list(requests)

    if status:
        filtered = [r for r in filtered if r.get('request_status') == status]

    if search:
        filtered = [
            r for r in filtered
            if _matches(search, r.get('guest_name'), r.get('service_name'),
                        r.get('request_id'), r.get('booking_id'))
        ]

    return filtered


def service_request_counts(requests):
    return {
        'pending': sum(1 for r in requests if r.get('request_status') == 'Pending'),
        'approved': sum(1 for r in requests if r.get('request_status') in ('Approved', 'Completed')),
        'rejected': sum(1 for r in requests if r.get('request_status') == 'Rejected'),
    }


def available_services(services, category='all'):
    """Services offered at a branch, optionally narrowed to one category"""
    # is_available comes back as 0/1, a bool, or null when never toggled
    filtered = [s for s in services if s.get('is_available') not in (0, False)]
    if category and category != 'all':
        filtered = [s for s in filtered if s.get('service_category') == category]
    return filtered


def active_items(items):
    return [i for i in items if i.get('is_active')]
