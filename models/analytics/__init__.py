"""
Dashboard analytics module.
Pure reducers over already-fetched booking dicts, plus the loader that
feeds them.

Submodules:
    - revenue: Monthly, seasonal and payment totals
    - guests: Repeat customers, party sizes, weather hold recovery
    - dashboard: Quick stats, insights and the loader
"""

# Revenue analytics
from models.analytics.revenue import (
    calculate_revenue_by_month,
    calculate_seasonal_metrics,
    calculate_payment_metrics,
)

# Guest analytics
from models.analytics.guests import (
    calculate_customer_metrics,
    calculate_weather_metrics,
)

# Dashboard
from models.analytics.dashboard import (
    calculate_quick_stats,
    generate_insights,
    get_dashboard_analytics,
)

__all__ = [
    # Revenue
    'calculate_revenue_by_month',
    'calculate_seasonal_metrics',
    'calculate_payment_metrics',
    # Guests
    'calculate_customer_metrics',
    'calculate_weather_metrics',
    # Dashboard
    'calculate_quick_stats',
    'generate_insights',
    'get_dashboard_analytics',
]
