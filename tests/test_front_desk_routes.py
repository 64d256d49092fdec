import pytest

from conftest import ADMIN, RECEPTIONIST, flashes

ROOMS = [
    {'room_id': 1, 'room_number': '101', 'branch_id': 3, 'branch_name': 'SkyNest Kandy', 'room_type_id': 1,
     'type_name': 'Standard', 'floor_number': 1, 'status': 'Available', 'base_price': 9000},
    {'room_id': 2, 'room_number': '501', 'branch_id': 1, 'branch_name': 'SkyNest Colombo', 'room_type_id': 2,
     'type_name': 'Suite', 'floor_number': 5, 'status': 'Occupied', 'base_price': 40000},
]


@pytest.fixture
def desk(login):
    return login(RECEPTIONIST)


def test_rooms_receptionist_sees_own_branch_only(desk, backend):
    backend.on('GET', '/rooms', data=ROOMS)

    html = desk.get('/rooms?branch_id=1').get_data(as_text=True)

    assert 'SkyNest Kandy' in html
    assert '501' not in html


def test_rooms_admin_filters(login, backend):
    admin = login(ADMIN)
    backend.on('GET', '/rooms', data=ROOMS)

    html = admin.get('/rooms?status=Occupied').get_data(as_text=True)

    assert 'Suite' in html
    assert '>101<' not in html


def test_room_status_update(desk, backend):
    desk.post('/rooms/1/status', data={'status': 'Maintenance'})
    assert backend.called('PUT', '/rooms/1')[0]['json'] == {'status': 'Maintenance'}

    desk.post('/rooms/1/status', data={'status': 'Demolished'})
    assert 'Please select a valid room status' in flashes(desk)
    assert len(backend.called('PUT', '/rooms/1')) == 1


def test_guest_search_and_create_shows_credentials(desk, backend):
    backend.on('GET', '/guests', data=[{'guest_id': 4, 'first_name': 'Amal', 'last_name': 'Fernando'}])
    backend.on('POST', '/guests', data={'guest_id': 5, 'username': 'amal.f', 'default_password': 'Welcome123'})

    assert b'Amal' in desk.get('/guests?search=amal').data
    assert backend.called('GET', '/guests')[0]['params'] == {'search': 'amal'}

    desk.post('/guests', data={'first_name': 'Amal', 'last_name': 'Fernando', 'email': 'amal@example.com'})

    payload = backend.called('POST', '/guests')[0]['json']
    assert payload['country'] == 'Sri Lanka'
    assert payload['date_of_birth'] is None
    assert 'Login Credentials: Username: amal.f Password: Welcome123' in flashes(desk)


def test_guest_create_requires_names(desk, backend):
    desk.post('/guests', data={'first_name': 'Amal'})
    assert 'First and last name are required' in flashes(desk)
    assert not backend.called('POST', '/guests')


def test_guest_details_falls_back_to_history_report(desk, backend):
    backend.on('GET', '/guests/4', data={'guest_id': 4, 'first_name': 'Amal', 'last_name': 'Fernando'})
    backend.on('GET', '/reports/guest-history/4', data=[
        {'booking_id': 31, 'booking_status': 'Checked-Out', 'branch_name': 'SkyNest Galle', 'total_amount': 12000},
    ])

    html = desk.get('/guests/4').get_data(as_text=True)

    assert 'SkyNest Galle' in html
    assert '/bookings/31' in html


def test_service_request_rejection_needs_notes(desk, backend):
    desk.post('/service-requests/6/review', data={'status': 'Rejected'})
    assert 'Please provide a reason for rejection' in flashes(desk)
    assert not backend.calls

    desk.post('/service-requests/6/review', data={'status': 'Approved'})
    assert backend.called('PUT', '/service-requests/6/review')[0]['json'] == {'status': 'Approved', 'review_notes': ''}


def test_service_requests_page(desk, backend):
    backend.on('GET', '/service-requests', data=[
        {'request_id': 1, 'booking_id': 15, 'guest_name': 'Kasun', 'service_name': 'Spa',
         'quantity': 1, 'request_status': 'Pending'},
        {'request_id': 2, 'booking_id': 16, 'guest_name': 'Nimal', 'service_name': 'Laundry',
         'quantity': 2, 'request_status': 'Approved'},
    ])

    html = desk.get('/service-requests?status=Pending').get_data(as_text=True)

    assert 'Spa' in html
    assert 'Laundry' not in html


def test_payments_export_csv(desk, backend):
    backend.on('GET', '/payments', data=[
        {'payment_id': 1, 'booking_id': 15, 'amount': 1000, 'payment_method': 'Cash', 'payment_status': 'Completed'},
        {'payment_id': 2, 'booking_id': 16, 'amount': 500, 'payment_method': 'Credit Card', 'payment_status': 'Pending'},
    ])

    response = desk.get('/payments/export?payment_method=Cash')

    assert response.mimetype == 'text/csv'
    assert 'attachment; filename=payments_' in response.headers['Content-Disposition']
    lines = response.get_data(as_text=True).strip().split('\n')
    assert lines[0] == 'payment_id,booking_id,amount,payment_method,payment_status'
    assert len(lines) == 2


def test_export_without_rows_warns(desk, backend):
    response = desk.get('/reports/export?tab=unpaid')
    assert response.status_code == 302
    assert 'No data to export' in flashes(desk)


def test_reports_tabs(desk, backend):
    backend.on('GET', '/reports/revenue', data=[
        {'branch_name': 'SkyNest Kandy', 'room_revenue': 100000, 'service_revenue': 20000, 'total_revenue': 120000},
    ])

    html = desk.get('/reports?tab=revenue&start_date=2024-06-01&end_date=2024-06-30').get_data(as_text=True)

    assert 'LKR 120,000.00' in html
    assert backend.called('GET', '/reports/revenue')[0]['params'] == {
        'start_date': '2024-06-01', 'end_date': '2024-06-30',
    }


def test_unknown_report_tab_defaults_to_occupancy(desk, backend):
    desk.get('/reports?tab=secrets')
    assert backend.called('GET', '/reports/occupancy')


def test_support_ticket_workflow(desk, backend):
    backend.on('GET', '/support/tickets/9', data={
        'ticket': {'ticket_id': 9, 'subject': 'Wifi down', 'status': 'Open', 'priority': 'High',
                   'description': 'No signal in room 204'},
        'responses': [{'message': 'Looking into it', 'responder_name': 'Nimali'}],
    })

    html = desk.get('/support/9').get_data(as_text=True)
    assert 'Looking into it' in html
    assert 'name="status"' in html

    desk.post('/support/9/respond', data={'message': ' '})
    assert 'Please enter a response' in flashes(desk)

    desk.post('/support/9/status', data={'status': 'Resolved'})
    assert backend.called('PUT', '/support/tickets/9')[0]['json'] == {'status': 'Resolved'}


def test_rooms_need_an_assigned_branch(login, backend):
    desk = login(dict(RECEPTIONIST, user_id=9, branch=None))
    backend.on('GET', '/rooms', data=ROOMS)

    response = desk.get('/rooms')

    assert response.status_code == 302
    assert 'No branch assigned to your account. Please contact administrator.' in flashes(desk)
    assert not backend.called('GET', '/rooms')

    desk.post('/rooms/1/status', data={'status': 'Maintenance'})
    assert not backend.called('PUT', '/rooms/1')
