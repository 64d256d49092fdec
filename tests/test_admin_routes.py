import pytest

from conftest import ADMIN, RECEPTIONIST, flashes

BRANCHES = [{'branch_id': 1, 'branch_name': 'SkyNest Colombo'}, {'branch_id': 2, 'branch_name': 'SkyNest Galle'}]


@pytest.fixture
def admin(login):
    return login(ADMIN)


@pytest.fixture
def desk(login):
    return login(RECEPTIONIST)


def test_users_page(admin, backend):
    backend.on('GET', '/users', data=[{'user_id': 2, 'username': 'frontdesk', 'role': 'Receptionist'}])
    backend.on('GET', '/branches', data=BRANCHES)

    html = admin.get('/users').get_data(as_text=True)

    assert 'frontdesk' in html
    assert 'SkyNest Galle' in html


@pytest.mark.parametrize('form, message', [
    ({'username': 'x', 'email': 'x@y.co', 'password': 'secret1'}, 'Username, email and full name are required'),
    ({'username': 'x', 'email': 'x@y.co', 'full_name': 'X', 'password': '123'}, 'Password must be at least 6 characters'),
    ({'username': 'x', 'email': 'x@y.co', 'full_name': 'X', 'password': 'secret1', 'role': 'Janitor'},
     'Please select a valid role'),
    ({'username': 'x', 'email': 'x@y.co', 'full_name': 'X', 'password': 'secret1', 'role': 'Receptionist'},
     'Please select a branch for the receptionist'),
])
def test_create_user_validation(admin, backend, form, message):
    admin.post('/users', data=form)
    assert message in flashes(admin)
    assert not backend.calls


def test_create_receptionist(admin, backend):
    admin.post('/users', data={
        'username': 'desk2', 'email': 'desk2@skynest.lk', 'full_name': 'Desk Two',
        'password': 'secret1', 'role': 'Receptionist', 'branch_id': '2',
    })
    payload = backend.called('POST', '/auth/register')[0]['json']
    assert payload['branch_id'] == 2
    assert payload['role'] == 'Receptionist'


def test_admin_cannot_delete_self(admin, backend):
    admin.post('/users/1/delete')
    assert 'You cannot delete your own account' in flashes(admin)
    assert not backend.calls

    admin.post('/users/2/delete')
    assert backend.called('DELETE', '/users/2')


def test_services_admin_defaults_to_first_branch(admin, backend):
    backend.on('GET', '/branches', data=BRANCHES)
    backend.on('GET', '/services', data=[
        {'service_id': 1, 'service_name': 'Spa Massage', 'service_category': 'Spa', 'unit_price': 5000,
         'is_available': 1},
        {'service_id': 2, 'service_name': 'Laundry', 'service_category': 'Laundry', 'unit_price': 800,
         'is_available': 0},
    ])

    html = admin.get('/services').get_data(as_text=True)

    assert backend.called('GET', '/services')[0]['params'] == {'branch_id': 1}
    assert '1 of 2 available' in html


def test_receptionist_toggles_own_branch_service(desk, backend):
    desk.post('/services/5/toggle', data={'branch_id': '1', 'is_available': 'true'})
    assert backend.called('PUT', '/services/branch/3/toggle/5')[0]['json'] == {'is_available': False}

    desk.post('/services/5/toggle', data={'is_available': ''})
    assert backend.called('PUT', '/services/branch/3/toggle/5')[1]['json'] == {'is_available': True}


def test_custom_price_must_not_be_negative(desk, backend):
    desk.post('/services/5/price', data={'custom_price': '-1'})
    assert 'Please enter a valid price' in flashes(desk)
    desk.post('/services/5/price', data={'custom_price': '1200'})
    assert backend.called('PUT', '/services/branch/3/price/5')[0]['json'] == {'custom_price': 1200.0}


def test_receptionist_cannot_create_services(desk, backend):
    response = desk.post('/services', data={'service_name': 'Yoga', 'unit_price': '100'})
    assert response.headers['Location'].endswith('/receptionist')


def test_fee_stats_counts_only_active_fixed_amounts():
    from admin_routes import fee_stats
    fees = [
        {'fee_calculation': 'Fixed Amount', 'fee_value': '2500', 'is_active': 1},
        {'fee_calculation': 'Percentage', 'fee_value': '10', 'is_active': 1},
        {'fee_calculation': 'Fixed Amount', 'fee_value': '900', 'is_active': 0},
    ]
    assert fee_stats(fees) == {'count': 2, 'total_amount': 2500.0}


def test_save_fee_creates_or_updates(desk, backend):
    desk.post('/fees', data={'fee_type': 'Late Checkout', 'fee_calculation': 'Per Hour',
                             'fee_value': '1000', 'grace_period_minutes': '30'})
    created = backend.called('POST', '/fees')[0]['json']
    assert created['branch_id'] == 3
    assert created['grace_period_minutes'] == 30
    assert created['max_fee_amount'] is None

    desk.post('/fees', data={'fee_config_id': '8', 'fee_type': 'No Show', 'fee_value': '5000'})
    assert backend.called('PUT', '/fees/8')


def test_fee_toggle_and_admin_only_delete(desk, backend):
    desk.post('/fees/8/toggle', data={'is_active': '1'})
    assert backend.called('PUT', '/fees/8')[0]['json'] == {'is_active': False}

    response = desk.post('/fees/8/delete')
    assert response.headers['Location'].endswith('/receptionist')
    assert not backend.called('DELETE', '/fees/8')


def test_parse_discount_form():
    from admin_routes import parse_discount_form
    data = parse_discount_form({
        'discount_name': 'Summer', 'discount_type': 'Percentage', 'discount_value': '10',
        'promo_code': '', 'min_booking_amount': '', 'usage_limit': '50',
    }, 2)
    assert data['discount_value'] == 10.0
    assert data['promo_code'] is None
    assert data['min_booking_amount'] == 0
    assert data['max_discount_amount'] is None
    assert data['usage_limit'] == 50
    assert data['is_active'] is True


def test_tax_discount_page_and_save(admin, backend):
    backend.on('GET', '/branches', data=BRANCHES)
    backend.on('GET', '/tax-discount/taxes/2', data=[
        {'tax_config_id': 1, 'tax_name': 'VAT', 'tax_rate': '18', 'is_active': 1},
        {'tax_config_id': 2, 'tax_name': 'Service Charge', 'tax_rate': '10', 'is_active': 1},
    ])

    html = admin.get('/tax-discount?branch_id=2').get_data(as_text=True)
    assert '28.00%' in html

    admin.post('/tax-discount/taxes', data={'branch_id': '2', 'tax_name': 'Tourism', 'tax_rate': '1'})
    payload = backend.called('POST', '/tax-discount/taxes')[0]['json']
    assert payload['branch_id'] == 2
    assert payload['is_percentage'] is True


def test_tax_discount_delete_is_admin_only(desk, backend):
    response = desk.post('/tax-discount/discounts/4/delete', data={'branch_id': '3'})
    assert response.headers['Location'].endswith('/receptionist')


def test_receptionist_without_branch_is_sent_home(login, backend):
    desk = login(dict(RECEPTIONIST, branch=None, user_id=8))
    response = desk.get('/fees')
    assert 'No branch assigned to your account. Please contact administrator.' in flashes(desk)
    assert response.status_code == 302
