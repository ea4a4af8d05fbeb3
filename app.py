"""
DockSlot - Charter Booking Platform
Flask application factory and initialization
"""

import os
import click
import logging
from flask import Flask, g
from dotenv import load_dotenv

load_dotenv()

from config import config
from extensions import login_manager, csrf
from database import close_db, init_db

from utils.api_response import api_error


def create_app(config_name=None):
    """
    Build the DockSlot API application.

    Args:
        config_name: 'development', 'production' or 'test'; defaults to FLASK_ENV

    Returns:
        Flask application instance
    """
    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    config_class = config[config_name]
    if hasattr(config_class, 'validate'):
        config_class.validate()

    app = Flask(__name__)
    app.config.from_object(config_class)

    db_dir = os.path.dirname(app.config.get('DATABASE_PATH') or '')
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    login_manager.init_app(app)
    csrf.init_app(app)

    register_blueprints(app)
    register_error_handlers(app)
    register_cli_commands(app)
    app.teardown_appcontext(close_db)
    configure_logging(app)

    return app


def register_blueprints(app):
    """Register Flask blueprints."""
    from blueprints.auth.routes import auth_bp
    from blueprints.dashboard import dashboard_bp
    from blueprints.public.routes import public_bp
    from blueprints.cron.routes import cron_bp

    # Guests and the scheduler have no session to carry a CSRF token
    csrf.exempt(public_bp)
    csrf.exempt(cron_bp)

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(dashboard_bp, url_prefix='/api')
    app.register_blueprint(public_bp, url_prefix='/api')
    app.register_blueprint(cron_bp, url_prefix='/api/cron')

    @app.route('/health')
    def health():
        """Liveness check."""
        return {'status': 'ok', 'version': app.config.get('APP_VERSION')}


def register_error_handlers(app):
    """Register error handlers."""

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 errors."""
        return api_error('Not found', 404)

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 errors."""
        return api_error('Method not allowed', 405)

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        db = g.get('db')
        if db:
            db.rollback()
        return api_error('An unexpected error occurred', 500)

    @app.errorhandler(403)
    def forbidden_error(error):
        """Handle 403 errors."""
        return api_error('Forbidden', 403)

    @app.errorhandler(401)
    def unauthorized_error(error):
        """Handle 401 errors."""
        return api_error('Unauthorized', 401)


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Initialize database with schema and seed data."""
        click.echo('Initializing database...')
        with app.app_context():
            init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-captain')
    @click.argument('email')
    @click.option('--name', default=None, help="Captain's full name")
    @click.option('--business', default=None, help='Charter business name')
    @click.option('--timezone', default=None, help='IANA timezone, e.g. America/New_York')
    @click.password_option()
    def create_captain_command(email, name, business, timezone, password):
        """Create a new captain account."""
        from models.profile import create_profile

        with app.app_context():
            try:
                profile_id = create_profile(
                    email=email,
                    password=password,
                    full_name=name,
                    business_name=business,
                    timezone=timezone
                )
                click.echo(f'Captain created successfully! ID: {profile_id}')
            except ValueError as e:
                click.echo(f'Error creating captain: {str(e)}', err=True)

    @app.cli.command('expire-bookings')
    def expire_bookings_command():
        """Expire unpaid bookings whose trip has started."""
        from models.booking_state import expire_overdue_bookings

        with app.app_context():
            expired = expire_overdue_bookings()
        click.echo(f'Expired {len(expired)} booking(s)')

    @app.cli.command('send-payment-reminders')
    def send_payment_reminders_command():
        """Remind guests whose Venmo/Zelle payment is unverified."""
        from models.payment import send_due_payment_reminders

        with app.app_context():
            reminded = send_due_payment_reminders()
        click.echo(f'Sent {len(reminded)} reminder(s)')

    @app.cli.command('resume-hibernation')
    def resume_hibernation_command():
        """Resume captains whose hibernation end date has arrived."""
        from models.profile import resume_due_hibernations

        with app.app_context():
            resumed = resume_due_hibernations()
        click.echo(f'Resumed {len(resumed)} captain(s)')


def configure_logging(app):
    """File logging in production, DEBUG on the console otherwise."""
    if app.debug or app.testing:
        app.logger.setLevel(logging.DEBUG)
        return

    os.makedirs('logs', exist_ok=True)
    handler = logging.FileHandler('logs/dockslot.log')
    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
    ))
    handler.setLevel(logging.INFO)

    # Model and service modules log through the root logger
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.INFO)
    app.logger.addHandler(handler)
    app.logger.setLevel(logging.INFO)
    app.logger.info('DockSlot startup')


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', debug=True)
