"""
Captain profile model and data access functions.
Handles captain authentication, profile settings, hibernation, and
Flask-Login integration.
"""

import logging
from werkzeug.security import generate_password_hash, check_password_hash
from database import get_db
from utils.datetime_helpers import get_today

logger = logging.getLogger(__name__)

# Columns a captain may change through the profile settings API
EDITABLE_PROFILE_FIELDS = (
    'full_name', 'business_name', 'phone', 'timezone', 'brand_color',
    'cancellation_policy', 'meeting_spot_name', 'meeting_spot_address',
    'meeting_spot_latitude', 'meeting_spot_longitude', 'advance_booking_days',
    'booking_buffer_minutes', 'show_email_publicly', 'show_phone_publicly',
    'venmo_enabled', 'venmo_username', 'zelle_enabled', 'zelle_contact',
    'auto_confirm_alt_payments'
)

# Columns safe to show on the public booking page
PUBLIC_PROFILE_FIELDS = (
    'id', 'full_name', 'business_name', 'timezone', 'brand_color',
    'cancellation_policy', 'meeting_spot_name', 'meeting_spot_address',
    'advance_booking_days', 'stripe_connected', 'venmo_enabled',
    'venmo_username', 'zelle_enabled', 'zelle_contact'
)


class Captain:
    """
    Captain class for Flask-Login integration.
    Wraps database row dictionary with required Flask-Login properties.
    """

    def __init__(self, profile):
        """
        Initialize Captain from database row.

        Args:
            profile: Dictionary with profile data from database
        """
        self.id = profile['id']
        self.email = profile['email']
        self.full_name = profile.get('full_name')
        self.business_name = profile.get('business_name')
        self.timezone = profile.get('timezone')
        self.active = profile.get('active', 1)
        self.last_login = profile.get('last_login')

    @property
    def display_name(self):
        return self.business_name or self.full_name or self.email

    @property
    def is_authenticated(self):
        """Required by Flask-Login."""
        return True

    @property
    def is_active(self):
        """Required by Flask-Login."""
        return self.active == 1

    @property
    def is_anonymous(self):
        """Required by Flask-Login."""
        return False

    def get_id(self):
        """Required by Flask-Login. Returns profile ID as string."""
        return str(self.id)


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_profile_by_id(profile_id: int) -> dict:
    """
    Get captain profile by ID.

    Args:
        profile_id: Profile ID

    Returns:
        Profile dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM profiles WHERE id = ?', (profile_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_profile_by_email(email: str) -> dict:
    """
    Get captain profile by email (case-insensitive).

    Args:
        email: Email to search for

    Returns:
        Profile dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM profiles WHERE lower(email) = lower(?)', (email,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_captain_name(profile: dict) -> str:
    """Name shown to guests: business name, then full name."""
    if not profile:
        return 'Your Captain'
    return profile.get('business_name') or profile.get('full_name') or 'Your Captain'


def get_public_profile(profile: dict) -> dict:
    """
    Reduce a profile to what the public booking page may show.

    Contact details are included only when the captain opted in.
    """
    public = {field: profile.get(field) for field in PUBLIC_PROFILE_FIELDS}
    public['email'] = profile['email'] if profile.get('show_email_publicly') else None
    public['phone'] = profile.get('phone') if profile.get('show_phone_publicly') else None
    return public


def get_hibernation_info(profile: dict) -> dict:
    """
    Hibernation details for the public page.

    The return date and contact details are only exposed when the captain
    enabled the matching flags.
    """
    info = {
        'is_hibernating': bool(profile.get('is_hibernating')),
        'message': profile.get('hibernation_message'),
        'end_date': None,
        'allow_notifications': bool(profile.get('hibernation_allow_notifications')),
        'contact_email': None,
        'contact_phone': None,
    }
    if not info['is_hibernating']:
        return info

    if profile.get('hibernation_show_return_date'):
        info['end_date'] = profile.get('hibernation_end_date')

    if profile.get('hibernation_show_contact_info'):
        info['contact_email'] = profile.get('email')
        info['contact_phone'] = profile.get('phone')

    return info


# =============================================================================
# WRITE OPERATIONS
# =============================================================================

def create_profile(email: str, password: str, full_name: str = None,
                   business_name: str = None, timezone: str = None) -> int:
    """
    Create a captain profile with the default weekly schedule.

    Args:
        email: Login email (unique)
        password: Plain text password (hashed before storage)
        full_name: Captain's name
        business_name: Charter business name
        timezone: IANA timezone name

    Returns:
        New profile ID

    Raises:
        ValueError: If the email is already registered
    """
    from models.availability import create_default_windows

    if get_profile_by_email(email):
        raise ValueError(f"A captain with email {email} already exists")

    db = get_db()
    cursor = db.cursor()

    try:
        cursor.execute('''
            INSERT INTO profiles (email, password_hash, full_name, business_name, timezone)
            VALUES (?, ?, ?, ?, COALESCE(?, 'America/New_York'))
        ''', (email.strip().lower(), generate_password_hash(password),
              full_name, business_name, timezone))
        profile_id = cursor.lastrowid

        create_default_windows(profile_id, cursor=cursor)

        db.commit()
    except Exception:
        db.rollback()
        raise

    return profile_id


def update_profile(profile_id: int, **fields) -> bool:
    """
    Update editable profile settings.

    Args:
        profile_id: Profile ID
        **fields: Columns from EDITABLE_PROFILE_FIELDS; others are ignored

    Returns:
        True if a row was updated
    """
    updates = {k: v for k, v in fields.items() if k in EDITABLE_PROFILE_FIELDS}
    if not updates:
        return False

    db = get_db()
    cursor = db.cursor()

    set_clause = ', '.join(f'{column} = ?' for column in updates)
    cursor.execute(f'''
        UPDATE profiles
        SET {set_clause}, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', list(updates.values()) + [profile_id])

    db.commit()
    return cursor.rowcount > 0


def check_password(profile: dict, password: str) -> bool:
    """Check a plain text password against the stored hash."""
    return check_password_hash(profile['password_hash'], password)


def update_password(profile_id: int, new_password: str) -> bool:
    """Replace a captain's password (hashed before storage)."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        UPDATE profiles
        SET password_hash = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (generate_password_hash(new_password), profile_id))
    db.commit()
    return cursor.rowcount > 0


def update_last_login(profile_id: int) -> None:
    """Stamp the captain's last login time."""
    db = get_db()
    db.execute('UPDATE profiles SET last_login = CURRENT_TIMESTAMP WHERE id = ?', (profile_id,))
    db.commit()


# =============================================================================
# HIBERNATION
# =============================================================================

def set_hibernation(profile_id: int, is_hibernating: bool, message: str = None,
                    end_date: str = None, show_return_date: bool = False,
                    allow_notifications: bool = False, show_contact_info: bool = False) -> None:
    """
    Turn hibernation on or off for a captain.

    While hibernating the public booking flow refuses new bookings.

    Args:
        profile_id: Profile ID
        is_hibernating: New hibernation flag
        message: Message shown on the public page
        end_date: Planned resume date (YYYY-MM-DD)
        show_return_date: Whether guests see the resume date
        allow_notifications: Whether guests may ask to be notified
        show_contact_info: Whether guests see contact details
    """
    db = get_db()
    try:
        if is_hibernating:
            db.execute('''
                UPDATE profiles
                SET is_hibernating = 1,
                    hibernation_message = ?,
                    hibernation_end_date = ?,
                    hibernation_show_return_date = ?,
                    hibernation_allow_notifications = ?,
                    hibernation_show_contact_info = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (message, end_date, int(show_return_date), int(allow_notifications),
                  int(show_contact_info), profile_id))
        else:
            db.execute('''
                UPDATE profiles
                SET is_hibernating = 0,
                    hibernation_end_date = NULL,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (profile_id,))
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info('Captain %s hibernation %s', profile_id, 'on' if is_hibernating else 'off')


def resume_due_hibernations() -> list:
    """
    Turn off hibernation for captains whose resume date has arrived.

    The resume date is compared with today in each captain's timezone.

    Returns:
        List of resumed profile IDs
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT id, timezone, hibernation_end_date FROM profiles
        WHERE is_hibernating = 1 AND hibernation_end_date IS NOT NULL
    ''')

    resumed = []
    for row in cursor.fetchall():
        if row['hibernation_end_date'] <= get_today(row['timezone']).isoformat():
            set_hibernation(row['id'], False)
            resumed.append(row['id'])
    return resumed
