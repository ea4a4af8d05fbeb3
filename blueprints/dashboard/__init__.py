"""
Captain dashboard API.
Split into smaller modules by concern for maintainability:
- routes/bookings.py - Booking list, detail, create, edit, notes, tags
- routes/booking_actions.py - Lifecycle actions, weather holds, payment verification
- routes/payments.py - Manual payments and refunds
- routes/messaging.py - Guest email, SMS and balance requests
- routes/exports.py - CSV and Excel export
- routes/schedule.py - Availability windows and blackout dates
- routes/settings.py - Trip types, vessels, profile, hibernation
- routes/insights.py - Analytics, calendar, weather, audit log
"""

from flask import Blueprint

# Create the dashboard blueprint
dashboard_bp = Blueprint('dashboard', __name__)

# Import and register routes from submodules
from blueprints.dashboard.routes import bookings
from blueprints.dashboard.routes import booking_actions
from blueprints.dashboard.routes import payments
from blueprints.dashboard.routes import messaging
from blueprints.dashboard.routes import exports
from blueprints.dashboard.routes import schedule
from blueprints.dashboard.routes import settings
from blueprints.dashboard.routes import insights

# Static paths (/bookings/export, /bookings/verify-payment) are registered
# alongside /bookings/<int:booking_id>; the int converter keeps them apart.
exports.register_routes(dashboard_bp)
booking_actions.register_routes(dashboard_bp)
bookings.register_routes(dashboard_bp)
payments.register_routes(dashboard_bp)
messaging.register_routes(dashboard_bp)
schedule.register_routes(dashboard_bp)
settings.register_routes(dashboard_bp)
insights.register_routes(dashboard_bp)
