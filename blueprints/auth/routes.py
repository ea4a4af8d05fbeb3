"""
Authentication routes: login, logout, current captain.
Answers JSON for the dashboard client.
"""

from flask import Blueprint, current_app
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from blueprints.auth.forms import LoginForm, ChangePasswordForm
from models.profile import (
    Captain, check_password, get_profile_by_email, get_profile_by_id,
    update_last_login, update_password
)
from utils.api_response import api_success, api_error
from utils.audit import log_audit
from utils.messages import MESSAGES
from utils.validators import validate_password

auth_bp = Blueprint('auth', __name__)


def _captain_payload(profile: dict) -> dict:
    return {
        'id': profile['id'],
        'email': profile['email'],
        'full_name': profile.get('full_name'),
        'business_name': profile.get('business_name'),
        'timezone': profile.get('timezone'),
        'is_hibernating': bool(profile.get('is_hibernating')),
    }


def _form_errors(form) -> str:
    for errors in form.errors.values():
        if errors:
            return errors[0]
    return MESSAGES['invalid_request']


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token the dashboard sends back in the X-CSRFToken header."""
    return api_success(data={'csrf_token': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    """Log a captain in with email and password."""
    form = LoginForm()

    if not form.validate_on_submit():
        return api_error(_form_errors(form), 400, code='VALIDATION')

    profile = get_profile_by_email(form.email.data)

    # Check credentials
    if profile is None or not check_password(profile, form.password.data):
        current_app.logger.info('Failed login for %s', form.email.data)
        return api_error(MESSAGES['invalid_credentials'], 401)

    # Check if captain is active
    if not profile.get('active'):
        return api_error(MESSAGES['account_disabled'], 403)

    login_user(Captain(profile), remember=form.remember_me.data)
    update_last_login(profile['id'])
    log_audit('LOGIN', 'profile', profile['id'], user_id=profile['id'])

    message = MESSAGES['login_success'].format(name=profile.get('full_name') or profile['email'])
    return api_success(data=_captain_payload(profile), message=message)


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Log the current captain out."""
    logout_user()
    return api_success(message=MESSAGES['logout_success'])


@auth_bp.route('/me')
@login_required
def me():
    """Current captain."""
    return api_success(data=_captain_payload(get_profile_by_id(current_user.id)))


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    """Change the current captain's password."""
    form = ChangePasswordForm()

    if not form.validate_on_submit():
        return api_error(_form_errors(form), 400, code='VALIDATION')

    profile = get_profile_by_id(current_user.id)
    if not check_password(profile, form.current_password.data):
        return api_error('Current password is incorrect', 400, code='VALIDATION')

    valid, message = validate_password(form.new_password.data)
    if not valid:
        return api_error(message, 400, code='VALIDATION')

    update_password(current_user.id, form.new_password.data)
    log_audit('UPDATE', 'profile', current_user.id, after={'password': 'changed'})
    return api_success(message=MESSAGES['password_updated'])
