"""
Payment gateway helpers for the booking payment page.
The card form is a demo: any card details are accepted and the backend
records the payment with the breakdown it calculated.
"""
import logging
import time

from exceptions import ApiError

logger = logging.getLogger(__name__)


def new_transaction_reference(now=None):
    """Gateway reference in the form TXN<epoch milliseconds>"""
    now = time.time() if now is None else now
    return f'TXN{int(now * 1000)}'


def _amount(value):
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def summarize_bill(booking, services=None, payments=None):
    """Bill of a stay: room charges are what the total holds beyond services"""
    services = services or []
    payments = payments or []

    total_amount = _amount(booking.get('total_amount'))
    service_charges = sum(_amount(s.get('total_price')) for s in services)
    total_paid = sum(_amount(p.get('amount')) for p in payments)
    outstanding = total_amount - total_paid

    return {
        'total_amount': total_amount,
        'service_charges': service_charges,
        'room_charges': total_amount - service_charges,
        'total_paid': total_paid,
        'outstanding': outstanding,
        'fully_paid': outstanding <= 0,
    }


class PaymentGatewayService:
    """Breakdown, promo codes and payment submission for one booking"""

    def __init__(self, api):
        self.api = api

    def breakdown(self, booking_id, promo_code=None):
        return self.api.payments.calculate(booking_id, promo_code or None)

    def apply_promo(self, booking_id, promo_code):
        """Validate a promo code and return (message, breakdown with the discount)"""
        promo_code = (promo_code or '').strip()
        if not promo_code:
            raise ApiError('Please enter a promo code', 400)

        body = self.api.payments.validate_promo(booking_id, promo_code)
        logger.info(f'[PAYMENT] Promo {promo_code} accepted for booking #{booking_id}')
        return body.get('message') or 'Promo code applied', self.breakdown(booking_id, promo_code)

    def pay(self, booking_id, payment_method, promo_code=None, notes=''):
        reference = new_transaction_reference()
        logger.info(f'[PAYMENT] Booking #{booking_id} paying by {payment_method}, ref {reference}')
        result = self.api.payments.process_with_breakdown({
            'booking_id': booking_id,
            'promo_code': promo_code or None,
            'payment_method': payment_method,
            'transaction_reference': reference,
            'notes': notes,
        })
        return reference, result
