from datetime import date

import pytest

from models import Booking, User


def test_user_from_login_payload():
    user = User.from_payload({
        'user_id': 2, 'username': 'frontdesk', 'role': 'Receptionist',
        'branch': {'branch_id': 3, 'branch_name': 'SkyNest Kandy'},
    })
    assert user.get_id() == '2'
    assert user.is_receptionist and user.is_staff and not user.is_admin
    assert user.branch_id == 3
    assert user.branch_name == 'SkyNest Kandy'
    assert user.display_name == 'frontdesk'


def test_user_branch_id_from_token_claims():
    user = User.from_payload({'user_id': 9, 'username': 'x', 'role': 'Receptionist', 'branch_id': 7})
    assert user.branch_id == 7
    assert user.branch_name is None


def test_user_to_dict_round_trips_guest_id():
    user = User(5, 'kasun', role='Guest', guest_id=42, full_name='Kasun Silva')
    data = user.to_dict()
    assert data['guest_id'] == 42
    assert User.from_payload(data).guest_id == 42
    assert user.has_role('Guest', 'Admin')
    assert not user.has_role('Admin')


def make_booking(**overrides):
    data = {
        'booking_id': 10, 'booking_status': 'Booked',
        'first_name': 'Kasun', 'last_name': 'Silva',
        'check_in_date': '2024-05-01', 'check_out_date': '2024-05-04T00:00:00.000Z',
        'total_amount': '45000.00', 'paid_amount': '15000',
        'room_number': '204',
    }
    data.update(overrides)
    return Booking(data)


def test_booking_derived_values():
    booking = make_booking()
    assert booking.guest_name == 'Kasun Silva'
    assert booking.check_in == date(2024, 5, 1)
    assert booking.nights == 3
    assert booking.total_amount == 45000.0
    assert booking.outstanding_amount == 30000.0
    assert booking.room_number == '204'
    assert booking.get('missing', 'n/a') == 'n/a'
    with pytest.raises(AttributeError):
        booking.not_a_column


def test_booking_prefers_backend_outstanding():
    assert make_booking(outstanding_amount='0').outstanding_amount == 0.0


def test_booking_transitions():
    booked = make_booking()
    assert booked.can_check_in and booked.can_cancel and not booked.can_check_out

    checked_in = make_booking(booking_status='Checked-In')
    assert not checked_in.can_cancel
    assert not checked_in.can_check_out  # balance still due
    assert make_booking(booking_status='Checked-In', paid_amount='45000').can_check_out

    for final in ('Checked-Out', 'Cancelled'):
        done = make_booking(booking_status=final)
        assert not (done.can_check_in or done.can_check_out or done.can_cancel)


def test_booking_dates_from_utc_timestamps():
    booking = make_booking(check_in_date='2024-05-01T18:30:00.000Z', check_out_date='2024-05-03T18:30:00.000Z')
    assert booking.check_in == date(2024, 5, 2)
    assert booking.nights == 2
