"""
Flask extension instances, bound to the app in create_app().
"""

from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

login_manager = LoginManager()
csrf = CSRFProtect()


@login_manager.user_loader
def load_user(user_id):
    """Rebuild the session's Captain from the profile id Flask-Login stored."""
    from models.profile import get_profile_by_id, Captain

    profile = get_profile_by_id(int(user_id))
    if profile and profile.get('active', 1):
        return Captain(profile)
    return None


@login_manager.unauthorized_handler
def unauthorized():
    """Answer unauthenticated API calls with JSON instead of a redirect."""
    from utils.api_response import api_error

    return api_error('Unauthorized', status=401)
