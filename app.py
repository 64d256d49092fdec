import os
import logging

from flask import Flask, flash, redirect, render_template, request, url_for
from flask_login import current_user
from werkzeug.middleware.proxy_fix import ProxyFix

from exceptions import ApiError, AuthenticationError, BackendUnavailable
from extensions import api, login_manager
import helpers

# Set up logging
logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

# create the app
app = Flask(__name__)
app.secret_key = os.environ.get("SESSION_SECRET", "skynest_dev_secret_key")
app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # needed for url_for to generate with https

app.config["SKYNEST_API_URL"] = os.environ.get("SKYNEST_API_URL", "http://localhost:5000/api")
app.config["API_TIMEOUT"] = float(os.environ.get("API_TIMEOUT", 10))
app.config["HOTEL_TIMEZONE"] = os.environ.get("HOTEL_TIMEZONE", helpers.DEFAULT_TIMEZONE)
app.config["JWT_SECRET_KEY"] = os.environ.get("JWT_SECRET_KEY")
app.config["SESSION_COOKIE_HTTPONLY"] = True
app.config["SESSION_COOKIE_SAMESITE"] = "Lax"

# Initialize the extensions
api.init_app(app)
login_manager.init_app(app)
login_manager.login_view = 'main.login'
login_manager.login_message = 'Please log in to access this page.'
login_manager.login_message_category = 'warning'

# Import routes after the extensions so the user loader is registered on them
from routes import main_bp, clear_auth_session  # noqa: E402
from booking_routes import booking_bp  # noqa: E402
from front_desk_routes import front_desk_bp  # noqa: E402
from admin_routes import admin_bp  # noqa: E402
from guest_routes import guest_bp  # noqa: E402

for blueprint in (main_bp, booking_bp, front_desk_bp, admin_bp, guest_bp):
    app.register_blueprint(blueprint)
logger.info(f"Registered {len(app.blueprints)} blueprints, backend at {app.config['SKYNEST_API_URL']}")


# Jinja filters
@app.template_filter('to_local_time')
def to_local_time(dt):
    return helpers.to_local_time(dt, app.config['HOTEL_TIMEZONE'])


@app.template_filter('datetime')
def format_datetime(value):
    return helpers.format_datetime(value, app.config['HOTEL_TIMEZONE'])


app.add_template_filter(helpers.format_currency, 'currency')
app.add_template_filter(helpers.format_date, 'date')
app.add_template_filter(helpers.get_status_class, 'status_class')
app.add_template_filter(helpers.truncate_text, 'truncate_text')
app.add_template_filter(helpers.get_role_display_name, 'role_name')


@app.context_processor
def inject_navigation():
    if not current_user.is_authenticated:
        return {'nav_items': [], 'dashboard_path': None}

    dashboard_path = helpers.get_dashboard_route(current_user.role)
    nav_items = [
        {'path': path, 'label': label, 'active': helpers.is_nav_active(path, request.path, dashboard_path)}
        for path, label in helpers.get_nav_items(current_user.role)
    ]
    return {'nav_items': nav_items, 'dashboard_path': dashboard_path}


# Error handlers
@app.errorhandler(AuthenticationError)
def handle_authentication_error(e):
    logger.info(f'[AUTH] Backend rejected the session: {e.message}')
    clear_auth_session()
    flash('Session expired. Please log in again.', 'warning')
    return redirect(url_for('main.login'))


@app.errorhandler(ApiError)
def handle_api_error(e):
    # Page loads that did not handle the failure themselves
    logger.error(f'[API] Unhandled error on {request.path}: {e}')
    flash(e.message, 'danger')
    if current_user.is_authenticated:
        return redirect(helpers.get_dashboard_route(current_user.role))
    return redirect(url_for('main.login'))


@app.errorhandler(BackendUnavailable)
def handle_backend_unavailable(e):
    flash(e.message, 'danger')
    return render_template('errors/unavailable.html'), 503


@app.errorhandler(404)
def not_found(e):
    return render_template('errors/404.html'), 404


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 3000))
    app.run(host="0.0.0.0", port=port, debug=False)
