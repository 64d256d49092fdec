import logging
import time
from datetime import date
from functools import wraps

import jwt
from flask import Blueprint, current_app, flash, jsonify, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user

from exceptions import ApiError, AuthenticationError
from extensions import api, login_manager
from filters import guest_dashboard_stats
from helpers import get_dashboard_route, is_valid_email
from models import ROLE_ADMIN, ROLE_GUEST, ROLE_RECEPTIONIST, User

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)

MIN_PASSWORD_LENGTH = 6
JWT_ALGORITHM = 'HS256'


def token_expired(token):
    """True when the backend token can no longer be used"""
    secret = current_app.config.get('JWT_SECRET_KEY')
    try:
        if secret:
            jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
            return False
        payload = jwt.decode(token, options={'verify_signature': False})
    except jwt.ExpiredSignatureError:
        logger.info('[AUTH] Token expired')
        return True
    except jwt.InvalidTokenError:
        logger.warning('[AUTH] Invalid token in session')
        return True

    exp = payload.get('exp')
    return exp is not None and exp < time.time()


def start_auth_session(token, user_data):
    user = User.from_payload(user_data)
    session['token'] = token
    session['user'] = user.to_dict()
    login_user(user)
    return user


def clear_auth_session():
    logout_user()
    session.pop('token', None)
    session.pop('user', None)
    session.pop('booking_wizard', None)


@login_manager.user_loader
def load_user(user_id):
    data = session.get('user')
    token = session.get('token')
    if not data or not token or str(data.get('user_id')) != str(user_id):
        return None
    if token_expired(token):
        session.pop('token', None)
        session.pop('user', None)
        return None
    return User.from_payload(data)


def role_required(*roles):
    """Restrict a view to logged-in users holding one of ``roles``.

    Anonymous visitors are sent to the login page. A logged-in user without
    the role lands on their own dashboard instead of an error page.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()

            if not current_user.has_role(*roles):
                logger.info(f'[AUTH] {current_user.username} ({current_user.role}) denied {request.path}')
                return redirect(get_dashboard_route(current_user.role))

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def staff_required(f):
    return role_required(ROLE_ADMIN, ROLE_RECEPTIONIST)(f)


def no_branch_redirect():
    flash('No branch assigned to your account. Please contact administrator.', 'danger')
    return redirect(url_for('main.index'))


def branch_required(f):
    """Keep a receptionist without a branch off branch-scoped pages"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user.is_authenticated and current_user.is_receptionist and not current_user.branch_id:
            logger.warning(f'[AUTH] {current_user.username} has no branch, denied {request.path}')
            return no_branch_redirect()
        return f(*args, **kwargs)
    return decorated_function


# Routes
@main_bp.route('/')
def index():
    if current_user.is_authenticated:
        return redirect(get_dashboard_route(current_user.role))
    return redirect(url_for('main.login'))


@main_bp.route('/health')
def health():
    return jsonify({
        'status': 'healthy',
        'backend': current_app.config.get('SKYNEST_API_URL'),
    })


@main_bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(get_dashboard_route(current_user.role))

    if request.method == 'POST':
        username = request.form.get('username', '').strip()
        password = request.form.get('password', '')

        if not username or not password:
            flash('Please provide username and password', 'danger')
            return render_template('login.html', username=username)

        try:
            data = api.auth.login(username, password)
        except ApiError as e:
            logger.info(f'[LOGIN] Failed login for {username}: {e.message}')
            flash(e.message or 'Login failed', 'danger')
            return render_template('login.html', username=username)

        token = data.get('token')
        user_data = data.get('user') or {}
        if not token or not user_data:
            flash('Login failed', 'danger')
            return render_template('login.html', username=username)

        user = start_auth_session(token, user_data)
        logger.info(f'[LOGIN] {user.username} logged in as {user.role}')
        flash('Login successful!', 'success')
        return redirect(get_dashboard_route(user.role))

    return render_template('login.html')


@main_bp.route('/logout')
def logout():
    clear_auth_session()
    flash('Logged out successfully', 'info')
    return redirect(url_for('main.login'))


@main_bp.route('/signup', methods=['GET', 'POST'])
def signup():
    if request.method == 'POST':
        form = request.form
        password = form.get('password', '')

        if password != form.get('confirm_password', ''):
            flash('Passwords do not match', 'danger')
            return render_template('signup.html', form=form)

        if len(password) < MIN_PASSWORD_LENGTH:
            flash('Password must be at least 6 characters', 'danger')
            return render_template('signup.html', form=form)

        email = form.get('email', '').strip()
        if not is_valid_email(email):
            flash('Please enter a valid email address', 'danger')
            return render_template('signup.html', form=form)

        try:
            body = api.auth.signup({
                'firstName': form.get('first_name', '').strip(),
                'lastName': form.get('last_name', '').strip(),
                'email': email,
                'phone': form.get('phone', '').strip(),
                'password': password,
                'idType': form.get('id_type', 'Passport'),
                'idNumber': form.get('id_number', '').strip(),
                'address': form.get('address', '').strip(),
                'country': form.get('country', '').strip(),
                'dateOfBirth': form.get('date_of_birth') or None,
            })
        except ApiError as e:
            flash(e.message, 'danger')
            return render_template('signup.html', form=form)

        created = (body.get('data') or {}).get('username') or email.split('@')[0]
        logger.info(f'[SIGNUP] Guest account created: {created}')
        flash(f'Account created successfully! Your username is {created}.', 'success')
        return redirect(url_for('main.login'))

    return render_template('signup.html', form={})


@main_bp.route('/forgot-password', methods=['GET', 'POST'])
def forgot_password():
    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        if not is_valid_email(email):
            flash('Please enter a valid email address', 'danger')
            return render_template('forgot_password.html', email=email)

        try:
            body = api.auth.forgot_password(email)
        except ApiError as e:
            flash(e.message, 'danger')
            return render_template('forgot_password.html', email=email)

        flash(body.get('message') or 'Password reset instructions sent to your email', 'success')
        return redirect(url_for('main.login'))

    return render_template('forgot_password.html')


@main_bp.route('/reset-password', methods=['GET', 'POST'])
def reset_password():
    token = request.values.get('token', '')
    if not token:
        flash('Invalid or missing reset token', 'danger')
        return redirect(url_for('main.forgot_password'))

    if request.method == 'POST':
        new_password = request.form.get('new_password', '')

        if new_password != request.form.get('confirm_password', ''):
            flash('Passwords do not match', 'danger')
            return render_template('reset_password.html', token=token)

        if len(new_password) < MIN_PASSWORD_LENGTH:
            flash('Password must be at least 6 characters', 'danger')
            return render_template('reset_password.html', token=token)

        try:
            body = api.auth.reset_password(token, new_password)
        except ApiError as e:
            flash(e.message, 'danger')
            return render_template('reset_password.html', token=token)

        flash(body.get('message') or 'Password reset successfully', 'success')
        return redirect(url_for('main.login'))

    return render_template('reset_password.html', token=token)


@main_bp.route('/admin')
@role_required(ROLE_ADMIN)
def admin_dashboard():
    stats = {}
    revenue_data = []
    try:
        stats = api.reports.dashboard()
        revenue = api.reports.monthly_revenue({'year': date.today().year})
        # newest month first from the backend; chart shows oldest first
        revenue_data = list(reversed(revenue[:6]))
    except ApiError as e:
        logger.error(f'[DASHBOARD] Admin dashboard data failed: {e}')

    return render_template('dashboards/admin.html', stats=stats, revenue_data=revenue_data)


@main_bp.route('/receptionist')
@role_required(ROLE_RECEPTIONIST)
def receptionist_dashboard():
    stats = {}
    today_bookings = []
    pending_requests = 0
    branch_id = current_user.branch_id
    try:
        stats = api.reports.dashboard({'branch_id': branch_id})
        today = date.today().isoformat()
        bookings = api.bookings.list({'branch_id': branch_id, 'start_date': today, 'end_date': today})
        today_bookings = bookings[:5]
        pending_requests = api.service_requests.pending_count()
    except ApiError as e:
        logger.error(f'[DASHBOARD] Receptionist dashboard data failed: {e}')

    return render_template('dashboards/receptionist.html', stats=stats, today_bookings=today_bookings,
                           pending_requests=pending_requests)


@main_bp.route('/guest')
@main_bp.route('/guest/dashboard')
@role_required(ROLE_GUEST)
def guest_dashboard():
    bookings = []
    try:
        bookings = api.bookings.list()
    except ApiError as e:
        logger.error(f'[DASHBOARD] Guest dashboard data failed: {e}')

    return render_template('dashboards/guest.html', stats=guest_dashboard_stats(bookings))


@main_bp.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    if request.method == 'POST':
        current_password = request.form.get('current_password', '')
        new_password = request.form.get('new_password', '')

        if new_password != request.form.get('confirm_password', ''):
            flash('New passwords do not match', 'danger')
            return redirect(url_for('main.profile'))

        if len(new_password) < MIN_PASSWORD_LENGTH:
            flash('Password must be at least 6 characters', 'danger')
            return redirect(url_for('main.profile'))

        try:
            api.auth.change_password(current_password, new_password)
            flash('Password changed successfully', 'success')
        # the backend answers a wrong current password with 401
        except (ApiError, AuthenticationError) as e:
            flash(e.message, 'danger')
        return redirect(url_for('main.profile'))

    return render_template('profile.html')
