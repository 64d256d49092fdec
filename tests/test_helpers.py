from datetime import datetime

import pytz

import helpers


def test_format_currency():
    assert helpers.format_currency(12500) == 'LKR 12,500.00'
    assert helpers.format_currency('99.5') == 'LKR 99.50'
    assert helpers.format_currency(None) == 'LKR 0.00'
    assert helpers.format_currency('not a number') == 'LKR 0.00'
    assert helpers.format_currency(-250) == '-LKR 250.00'


def test_format_date_handles_iso_and_garbage():
    assert helpers.format_date('2024-03-05') == 'Mar 05, 2024'
    assert helpers.format_date('2024-03-05T10:15:00Z') == 'Mar 05, 2024'
    assert helpers.format_date('') == '-'
    assert helpers.format_date('yesterday') == '-'


def test_format_datetime_converts_to_hotel_timezone():
    # Colombo is UTC+05:30
    assert helpers.format_datetime('2024-03-05T10:00:00Z') == 'Mar 05, 2024 15:30'
    assert helpers.format_datetime('2024-03-05') == 'Mar 05, 2024 00:00'
    assert helpers.format_datetime(None) == '-'


def test_to_local_time_treats_naive_as_utc():
    local = helpers.to_local_time(datetime(2024, 1, 1, 0, 0))
    assert local.hour == 5 and local.minute == 30
    assert local.tzinfo.zone == 'Asia/Colombo'

    aware = pytz.timezone('Europe/London').localize(datetime(2024, 7, 1, 12, 0))
    assert helpers.to_local_time(aware).hour == 16


def test_calculate_nights():
    assert helpers.calculate_nights('2024-05-01', '2024-05-04') == 3
    assert helpers.calculate_nights('2024-05-01', None) == 0


def test_status_class_and_role_name():
    assert helpers.get_status_class('Checked-In') == 'status-checked-in'
    assert helpers.get_status_class('Something else') == 'status-default'
    assert helpers.get_role_display_name('Admin') == 'Administrator'
    assert helpers.get_role_display_name('Auditor') == 'Auditor'


def test_email_and_phone_validation():
    assert helpers.is_valid_email('guest@example.com')
    assert not helpers.is_valid_email('guest@example')
    assert not helpers.is_valid_email('')
    assert helpers.is_valid_phone('+94 77 123 4567')
    assert not helpers.is_valid_phone('12345')
    assert not helpers.is_valid_phone('call me')


def test_dashboard_route_per_role():
    assert helpers.get_dashboard_route('Admin') == '/admin'
    assert helpers.get_dashboard_route('Receptionist') == '/receptionist'
    assert helpers.get_dashboard_route('Guest') == '/guest'
    assert helpers.get_dashboard_route('Unknown') == '/'


def test_truncate_text():
    assert helpers.truncate_text('short') == 'short'
    assert helpers.truncate_text('x' * 60, 10) == 'x' * 10 + '...'
    assert helpers.truncate_text(None) == ''


def test_calculate_percentage_and_group_by():
    assert helpers.calculate_percentage(1, 3) == 33.33
    assert helpers.calculate_percentage(5, 0) == 0
    grouped = helpers.group_by([{'s': 'A'}, {'s': 'B'}, {'s': 'A'}], 's')
    assert len(grouped['A']) == 2 and len(grouped['B']) == 1


def test_export_to_csv_quotes_and_blanks():
    rows = [
        {'guest': 'Perera, Nimal', 'amount': 1500, 'notes': None},
        {'guest': 'Silva', 'amount': 200, 'notes': 'said "hi"'},
    ]
    text = helpers.export_to_csv(rows)
    lines = text.strip().split('\n')
    assert lines[0] == 'guest,amount,notes'
    assert lines[1] == '"Perera, Nimal",1500,'
    assert lines[2] == 'Silva,200,"said ""hi"""'
    assert helpers.export_to_csv([]) == ''


def test_nav_items_per_role():
    admin_labels = [label for _, label in helpers.get_nav_items('Admin')]
    assert admin_labels[-2:] == ['Users', 'Profile']
    assert 'Users' not in [label for _, label in helpers.get_nav_items('Receptionist')]
    assert [label for _, label in helpers.get_nav_items('Guest')] == ['My Bookings', 'Support', 'My Profile']
    assert [label for _, label in helpers.get_nav_items('Auditor')] == ['Bookings', 'Rooms', 'Services', 'Profile']


def test_nav_active_matching():
    assert helpers.is_nav_active('/bookings', '/bookings/12')
    assert not helpers.is_nav_active('/bookings', '/rooms')
    assert helpers.is_nav_active('/guest', '/guest', dashboard_path='/guest')
    assert not helpers.is_nav_active('/guest', '/guest/bookings', dashboard_path='/guest')


def test_backend_dates_are_read_in_hotel_timezone():
    # DATE 2024-05-02 as serialized by a backend running in Colombo
    assert helpers.format_date('2024-05-01T18:30:00.000Z') == 'May 02, 2024'
    assert helpers.parse_date('2024-05-01T18:30:00.000Z').date().isoformat() == '2024-05-02'
    assert helpers.calculate_nights('2024-05-01T18:30:00.000Z', '2024-05-03T18:30:00.000Z') == 2
    # naive values carry no offset to convert
    assert helpers.parse_date('2024-05-01T18:30').day == 1


def test_parse_date_uses_configured_timezone(app, monkeypatch):
    monkeypatch.setitem(app.config, 'HOTEL_TIMEZONE', 'UTC')
    with app.app_context():
        assert helpers.format_date('2024-05-01T18:30:00.000Z') == 'May 01, 2024'
