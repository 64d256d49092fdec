import pytest

from exceptions import ApiError
from payment_service import PaymentGatewayService, new_transaction_reference, summarize_bill


def test_transaction_reference_uses_epoch_millis():
    assert new_transaction_reference(1717200000.5) == 'TXN1717200000500'
    assert new_transaction_reference().startswith('TXN')


def test_summarize_bill():
    bill = summarize_bill(
        {'total_amount': '50000'},
        services=[{'total_price': 3000}, {'total_price': '2000'}],
        payments=[{'amount': 20000}],
    )
    assert bill == {
        'total_amount': 50000.0,
        'service_charges': 5000.0,
        'room_charges': 45000.0,
        'total_paid': 20000.0,
        'outstanding': 30000.0,
        'fully_paid': False,
    }
    assert summarize_bill({'total_amount': 100}, payments=[{'amount': 100}])['fully_paid']


class FakePayments:
    def __init__(self):
        self.calls = []

    def calculate(self, booking_id, promo_code=None):
        self.calls.append(('calculate', booking_id, promo_code))
        return {'grand_total': 1000, 'discount_amount': 100 if promo_code else 0}

    def validate_promo(self, booking_id, promo_code):
        self.calls.append(('validate', booking_id, promo_code))
        if promo_code != 'SUMMER10':
            raise ApiError('Invalid promo code', 400)
        return {'success': True, 'message': 'Promo code applied! 10% off'}

    def process_with_breakdown(self, data):
        self.calls.append(('pay', data))
        return {'payment_id': 77}


class FakeApi:
    def __init__(self):
        self.payments = FakePayments()


@pytest.fixture
def service():
    return PaymentGatewayService(FakeApi())


def test_apply_promo(service):
    message, breakdown = service.apply_promo(5, ' SUMMER10 ')
    assert message == 'Promo code applied! 10% off'
    assert breakdown['discount_amount'] == 100
    assert ('validate', 5, 'SUMMER10') in service.api.payments.calls


def test_apply_promo_rejects_blank_and_unknown(service):
    with pytest.raises(ApiError, match='enter a promo code'):
        service.apply_promo(5, '  ')
    with pytest.raises(ApiError, match='Invalid promo code'):
        service.apply_promo(5, 'NOPE')


def test_pay_sends_reference_and_promo(service):
    reference, result = service.pay(5, 'Credit Card', 'SUMMER10', 'front desk')
    assert reference.startswith('TXN')
    assert result == {'payment_id': 77}
    _, data = service.api.payments.calls[-1]
    assert data == {
        'booking_id': 5,
        'promo_code': 'SUMMER10',
        'payment_method': 'Credit Card',
        'transaction_reference': reference,
        'notes': 'front desk',
    }


def test_breakdown_without_promo(service):
    service.breakdown(5, '')
    assert service.api.payments.calls[-1] == ('calculate', 5, None)
