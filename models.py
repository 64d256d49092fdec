from datetime import date, datetime

from flask_login import UserMixin

ROLE_ADMIN = 'Admin'
ROLE_RECEPTIONIST = 'Receptionist'
ROLE_GUEST = 'Guest'
ROLES = (ROLE_ADMIN, ROLE_RECEPTIONIST, ROLE_GUEST)
STAFF_ROLES = (ROLE_ADMIN, ROLE_RECEPTIONIST)

# Booking lifecycle: Booked -> Checked-In -> Checked-Out, or Booked -> Cancelled
BOOKED = 'Booked'
CHECKED_IN = 'Checked-In'
CHECKED_OUT = 'Checked-Out'
CANCELLED = 'Cancelled'
BOOKING_STATUSES = (BOOKED, CHECKED_IN, CHECKED_OUT, CANCELLED)
BOOKING_TRANSITIONS = {
    BOOKED: (CHECKED_IN, CANCELLED),
    CHECKED_IN: (CHECKED_OUT,),
    CHECKED_OUT: (),
    CANCELLED: (),
}

ROOM_STATUSES = ('Available', 'Occupied', 'Maintenance')
PAYMENT_METHODS = ('Cash', 'Credit Card', 'Debit Card', 'Online Transfer')
PAYMENT_STATUSES = ('Completed', 'Pending', 'Failed', 'Refunded')
ID_TYPES = ('Passport', 'NIC', 'Driving License')
DEFAULT_COUNTRY = 'Sri Lanka'

TICKET_STATUSES = ('Open', 'In Progress', 'Resolved', 'Closed')
TICKET_PRIORITIES = ('Low', 'Medium', 'High', 'Urgent')
REQUEST_STATUSES = ('Pending', 'Approved', 'Rejected', 'Completed')

SERVICE_CATEGORIES = (
    'Room Service', 'Spa', 'Laundry', 'Minibar',
    'Restaurant', 'Transportation', 'Other',
)
SERVICE_UNIT_TYPES = ('item', 'hour', 'day', 'person', 'kg')

FEE_TYPES = ('Late Checkout', 'No Show', 'Cancellation', 'Damage')
FEE_CALCULATIONS = ('Fixed Amount', 'Percentage', 'Per Hour')
TAX_TYPES = ('VAT', 'Service Tax', 'Tourism Tax', 'Other')
DISCOUNT_TYPES = ('Percentage', 'Fixed Amount')


def _to_float(value):
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _to_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    # helpers imports the role constants from this module
    from helpers import parse_date
    parsed = parse_date(value)
    return parsed.date() if parsed else None


class User(UserMixin):
    """Logged-in user, rebuilt from the browser session on every request"""

    def __init__(self, user_id, username, email=None, full_name=None, role=ROLE_GUEST,
                 branch=None, branch_id=None, guest_id=None, phone=None):
        self.user_id = user_id
        self.username = username
        self.email = email
        self.full_name = full_name
        self.role = role
        self.branch = branch or None
        self._branch_id = branch_id
        self.guest_id = guest_id
        self.phone = phone

    @classmethod
    def from_payload(cls, data):
        """Build a user from the ``user`` member of the login response or /auth/me"""
        return cls(
            user_id=data.get('user_id'),
            username=data.get('username'),
            email=data.get('email'),
            full_name=data.get('full_name'),
            role=data.get('role', ROLE_GUEST),
            branch=data.get('branch'),
            branch_id=data.get('branch_id'),
            guest_id=data.get('guest_id'),
            phone=data.get('phone'),
        )

    def get_id(self):
        return str(self.user_id)

    @property
    def branch_id(self):
        # Login returns a nested branch, the token only carries branch_id
        if self.branch and self.branch.get('branch_id'):
            return self.branch['branch_id']
        return self._branch_id

    @property
    def branch_name(self):
        return self.branch.get('branch_name') if self.branch else None

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def is_receptionist(self):
        return self.role == ROLE_RECEPTIONIST

    @property
    def is_guest(self):
        return self.role == ROLE_GUEST

    @property
    def is_staff(self):
        return self.role in STAFF_ROLES

    @property
    def display_name(self):
        return self.full_name or self.username

    def has_role(self, *roles):
        return not roles or self.role in roles

    def to_dict(self):
        """Serializable form kept in the session"""
        data = {
            'user_id': self.user_id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'branch': self.branch,
            'branch_id': self.branch_id,
            'phone': self.phone,
        }
        if self.guest_id:
            data['guest_id'] = self.guest_id
        return data

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'


class Booking:
    """Read-only view over a booking record returned by the backend.

    Unknown attributes fall through to the underlying record, so templates can
    use any backend column directly.
    """

    def __init__(self, data):
        self.data = dict(data or {})

    def __getitem__(self, key):
        return self.data[key]

    def __getattr__(self, name):
        try:
            return self.__dict__['data'][name]
        except KeyError:
            raise AttributeError(name) from None

    def get(self, key, default=None):
        return self.data.get(key, default)

    @property
    def booking_id(self):
        return self.data.get('booking_id')

    @property
    def status(self):
        return self.data.get('booking_status')

    @property
    def guest_name(self):
        if self.data.get('guest_name'):
            return self.data['guest_name']
        name = f"{self.data.get('first_name') or ''} {self.data.get('last_name') or ''}".strip()
        return name or None

    @property
    def check_in(self):
        return _to_date(self.data.get('check_in_date'))

    @property
    def check_out(self):
        return _to_date(self.data.get('check_out_date'))

    @property
    def nights(self):
        """Calculate number of nights"""
        if not self.check_in or not self.check_out:
            return 0
        return (self.check_out - self.check_in).days

    @property
    def total_amount(self):
        return _to_float(self.data.get('total_amount'))

    @property
    def paid_amount(self):
        return _to_float(self.data.get('paid_amount'))

    @property
    def outstanding_amount(self):
        if 'outstanding_amount' in self.data:
            return _to_float(self.data.get('outstanding_amount'))
        return max(0.0, self.total_amount - self.paid_amount)

    def can_transition(self, new_status):
        return new_status in BOOKING_TRANSITIONS.get(self.status, ())

    @property
    def can_check_in(self):
        return self.can_transition(CHECKED_IN)

    @property
    def can_check_out(self):
        """Checked-In and nothing left to pay"""
        return self.can_transition(CHECKED_OUT) and self.outstanding_amount <= 0

    @property
    def can_cancel(self):
        return self.can_transition(CANCELLED)

    @property
    def is_active(self):
        return self.status == CHECKED_IN

    def to_dict(self):
        return dict(self.data)

    def __repr__(self):
        return f'<Booking {self.booking_id} {self.status}>'
