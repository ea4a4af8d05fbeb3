"""
Scheduled job routes.
Hit by an external scheduler; guarded by the CRON_SECRET bearer token.
The same jobs are available as Flask CLI commands.
"""

from flask import Blueprint, current_app

from models.booking_state import expire_overdue_bookings
from models.payment import send_due_payment_reminders
from models.profile import resume_due_hibernations
from utils.api_response import api_success
from utils.decorators import cron_secret_required

cron_bp = Blueprint('cron', __name__)


@cron_bp.route('/expire-bookings', methods=['GET', 'POST'])
@cron_secret_required
def expire_bookings():
    """Expire unpaid bookings whose trip has started."""
    expired = expire_overdue_bookings()
    current_app.logger.info('Cron: expired %d booking(s)', len(expired))
    return api_success(data={'expired': expired, 'count': len(expired)})


@cron_bp.route('/payment-reminders', methods=['GET', 'POST'])
@cron_secret_required
def payment_reminders():
    """Remind guests whose Venmo/Zelle payment is still unverified."""
    reminded = send_due_payment_reminders()
    current_app.logger.info('Cron: sent %d payment reminder(s)', len(reminded))
    return api_success(data={'reminded': reminded, 'count': len(reminded)})


@cron_bp.route('/resume-hibernation', methods=['GET', 'POST'])
@cron_secret_required
def resume_hibernation():
    """Resume captains whose hibernation end date has arrived."""
    resumed = resume_due_hibernations()
    current_app.logger.info('Cron: resumed %d captain(s)', len(resumed))
    return api_success(data={'resumed': resumed, 'count': len(resumed)})
