"""
Multi-step booking creation wizard.

Step 1 picks the guest, step 2 the branch, dates and room, step 3 confirms
payment details. The state is a plain dict kept in the Flask session, so it
survives redirects between the wizard pages.
"""
from datetime import date

from exceptions import WizardError
from helpers import calculate_nights, parse_date, parse_int
from models import PAYMENT_METHODS


SESSION_KEY = 'booking_wizard'

STEP_GUEST = 1
STEP_ROOM = 2
STEP_CONFIRM = 3
STEPS = {
    STEP_GUEST: 'Guest',
    STEP_ROOM: 'Room',
    STEP_CONFIRM: 'Confirm',
}

# Fields of an available room kept once it is selected
ROOM_FIELDS = ('room_id', 'room_number', 'type_name', 'capacity', 'base_rate', 'total_price', 'branch_id')


class BookingWizard:

    def __init__(self, state=None):
        state = dict(state or {})
        self.step = state.get('step', STEP_GUEST)
        self.guest_id = state.get('guest_id')
        self.guest_label = state.get('guest_label')
        self.branch_id = state.get('branch_id')
        self.check_in_date = state.get('check_in_date', '')
        self.check_out_date = state.get('check_out_date', '')
        self.number_of_guests = state.get('number_of_guests', 1)
        self.room = state.get('room')
        self.payment_method = state.get('payment_method', 'Cash')
        self.special_requests = state.get('special_requests', '')

    # ---- session persistence ----

    @classmethod
    def load(cls, session, branch_id=None):
        wizard = cls(session.get(SESSION_KEY))
        if branch_id and not wizard.branch_id:
            wizard.branch_id = branch_id
        return wizard

    def save(self, session):
        session[SESSION_KEY] = self.to_dict()
        session.modified = True

    @staticmethod
    def clear(session):
        session.pop(SESSION_KEY, None)

    def to_dict(self):
        return {
            'step': self.step,
            'guest_id': self.guest_id,
            'guest_label': self.guest_label,
            'branch_id': self.branch_id,
            'check_in_date': self.check_in_date,
            'check_out_date': self.check_out_date,
            'number_of_guests': self.number_of_guests,
            'room': self.room,
            'payment_method': self.payment_method,
            'special_requests': self.special_requests,
        }

    # ---- step 1: guest ----

    def select_guest(self, guest_id, label=None):
        guest_id = parse_int(guest_id)
        if not guest_id:
            raise WizardError('Please select a guest')
        self.guest_id = guest_id
        self.guest_label = label
        self.step = STEP_ROOM

    # ---- step 2: stay and room ----

    def set_stay(self, branch_id, check_in_date, check_out_date, number_of_guests=1, today=None):
        """Record the search criteria; a changed search drops the selected room"""
        branch_id = parse_int(branch_id)
        if not branch_id or not check_in_date or not check_out_date:
            raise WizardError('Please select branch and dates')

        check_in = parse_date(check_in_date)
        check_out = parse_date(check_out_date)
        if check_in is None or check_out is None:
            raise WizardError('Please enter valid dates')

        today = today or date.today()
        if check_in.date() < today:
            raise WizardError('Check-in date cannot be in the past')
        if check_out.date() <= check_in.date():
            raise WizardError('Check-out date must be after check-in date')

        guests = parse_int(number_of_guests, 0)
        if guests < 1:
            raise WizardError('Number of guests must be at least 1')

        criteria = (branch_id, check_in_date, check_out_date, guests)
        if criteria != (self.branch_id, self.check_in_date, self.check_out_date, self.number_of_guests):
            self.room = None

        self.branch_id = branch_id
        self.check_in_date = check_in_date
        self.check_out_date = check_out_date
        self.number_of_guests = guests

    @property
    def has_stay(self):
        return bool(self.branch_id and self.check_in_date and self.check_out_date)

    def search_params(self):
        return {
            'branch_id': self.branch_id,
            'check_in_date': self.check_in_date,
            'check_out_date': self.check_out_date,
            'guests': self.number_of_guests,
        }

    def select_room(self, room_id, available_rooms):
        """Pick a room; it has to be one of the rooms the last search returned"""
        room_id = parse_int(room_id)
        if not room_id:
            raise WizardError('Please select a room')

        for room in available_rooms:
            if parse_int(room.get('room_id')) == room_id:
                self.room = {field: room.get(field) for field in ROOM_FIELDS}
                return self.room

        raise WizardError('Selected room is no longer available')

    # ---- step 3: confirm ----

    def set_payment(self, payment_method, special_requests=''):
        if payment_method not in PAYMENT_METHODS:
            raise WizardError('Please select a payment method')
        self.payment_method = payment_method
        self.special_requests = (special_requests or '').strip()

    # ---- navigation ----

    def can_enter(self, step):
        if step == STEP_GUEST:
            return True
        if step == STEP_ROOM:
            return bool(self.guest_id)
        if step == STEP_CONFIRM:
            return bool(self.guest_id and self.has_stay and self.room)
        return False

    def go_to(self, step):
        step = parse_int(step)
        if step not in STEPS:
            raise WizardError('Unknown step')
        if not self.can_enter(step):
            raise WizardError('Please complete the previous step first')
        self.step = step

    def current_step(self):
        """Step to render: the requested one, or the furthest reachable below it"""
        step = self.step
        while step > STEP_GUEST and not self.can_enter(step):
            step -= 1
        return step

    @property
    def nights(self):
        return calculate_nights(self.check_in_date, self.check_out_date)

    @property
    def total_price(self):
        if not self.room:
            return 0.0
        if self.room.get('total_price') is not None:
            return float(self.room['total_price'])
        return float(self.room.get('base_rate') or 0) * self.nights

    def payload(self):
        """Request body for POST /bookings"""
        if not self.can_enter(STEP_CONFIRM):
            raise WizardError('Booking details are incomplete')
        return {
            'guest_id': self.guest_id,
            'branch_id': self.branch_id,
            'room_id': self.room['room_id'],
            'check_in_date': self.check_in_date,
            'check_out_date': self.check_out_date,
            'number_of_guests': self.number_of_guests,
            'payment_method': self.payment_method,
            'special_requests': self.special_requests or None,
        }

    def __repr__(self):
        return f'<BookingWizard step={self.step} guest={self.guest_id} room={self.room and self.room.get("room_id")}>'
