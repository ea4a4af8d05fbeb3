"""
Marine weather lookups against the NOAA api.weather.gov service.

NOAA needs no API key but requires a descriptive User-Agent. Coverage is
limited to US waters.
"""

import logging
import re

import requests
from flask import current_app

from services import IntegrationError

logger = logging.getLogger(__name__)

NOAA_BASE_URL = 'https://api.weather.gov'
MARINE_ALERT_KEYWORDS = ('craft', 'marine', 'gale', 'storm', 'wind')
HIGH_WIND_MPH = 25


def noaa_headers() -> dict:
    return {
        'User-Agent': current_app.config.get('WEATHER_USER_AGENT'),
        'Accept': 'application/geo+json'
    }


def in_coverage_area(lat: float, lon: float) -> bool:
    """NOAA forecasts cover the continental US and nearby waters."""
    return 24 <= lat <= 50 and -125 <= lon <= -66


def _get(url: str, params: dict = None) -> dict:
    try:
        r = requests.get(url, headers=noaa_headers(), params=params,
                         timeout=current_app.config.get('HTTP_TIMEOUT', 15))
        r.raise_for_status()
    except requests.RequestException as e:
        logger.error('NOAA request %s failed: %s', url, e, exc_info=True)
        raise IntegrationError(f'Weather service unavailable: {e}') from e
    return r.json()


def get_forecast(lat: float, lon: float) -> list:
    """
    Get forecast periods for a point.

    Args:
        lat: Latitude
        lon: Longitude

    Returns:
        List of period dicts (name, start_time, end_time, temperature,
        temperature_unit, wind_speed, wind_direction, short_forecast)

    Raises:
        IntegrationError: If NOAA cannot be reached
    """
    point = _get(f'{NOAA_BASE_URL}/points/{lat:.4f},{lon:.4f}')
    forecast = _get(point['properties']['forecast'])

    return [
        {
            'name': period.get('name'),
            'start_time': period.get('startTime'),
            'end_time': period.get('endTime'),
            'temperature': period.get('temperature'),
            'temperature_unit': period.get('temperatureUnit'),
            'wind_speed': period.get('windSpeed'),
            'wind_direction': period.get('windDirection'),
            'short_forecast': period.get('shortForecast'),
        }
        for period in forecast['properties'].get('periods', [])
    ]


def get_alerts(lat: float, lon: float) -> list:
    """
    Get active weather alerts for a point.

    Returns:
        List of alert dicts (event, severity, headline, instruction, expires)

    Raises:
        IntegrationError: If NOAA cannot be reached
    """
    data = _get(f'{NOAA_BASE_URL}/alerts/active', params={'point': f'{lat:.4f},{lon:.4f}'})
    return [
        {
            'event': feature['properties'].get('event') or '',
            'severity': feature['properties'].get('severity') or 'Unknown',
            'headline': feature['properties'].get('headline'),
            'instruction': feature['properties'].get('instruction'),
            'expires': feature['properties'].get('expires'),
        }
        for feature in data.get('features', [])
    ]


def max_wind_mph(wind_speed: str) -> int:
    """Parse the upper bound from NOAA wind text such as '10 to 15 mph'."""
    match = re.search(r'(\d+)\s*(?:to\s*(\d+))?\s*mph', wind_speed or '')
    if not match:
        return None
    return int(match.group(2) or match.group(1))


def assess_conditions(alerts: list, periods: list) -> dict:
    """
    Rate conditions for a charter from alerts and the first forecast period.

    Severe or extreme marine alerts are dangerous; any other marine alert or
    winds above HIGH_WIND_MPH call for caution.

    Returns:
        dict with recommendation (safe, caution, dangerous), is_safe,
        reason and the marine alerts considered
    """
    marine = [a for a in alerts
              if any(k in (a.get('event') or '').lower() for k in MARINE_ALERT_KEYWORDS)]
    severe = [a for a in marine if a['severity'] in ('Severe', 'Extreme')]

    if severe:
        return {'recommendation': 'dangerous', 'is_safe': False, 'alerts': marine,
                'reason': '; '.join(a['headline'] or a['event'] for a in severe)}
    if marine:
        return {'recommendation': 'caution', 'is_safe': False, 'alerts': marine,
                'reason': '; '.join(a['headline'] or a['event'] for a in marine)}

    if periods:
        wind = periods[0].get('wind_speed')
        top = max_wind_mph(wind)
        if top is not None and top > HIGH_WIND_MPH:
            return {'recommendation': 'caution', 'is_safe': False, 'alerts': [],
                    'reason': f'High winds forecasted: {wind}'}

    return {'recommendation': 'safe', 'is_safe': True, 'alerts': [], 'reason': None}


def suggest_hold_reason(assessment: dict) -> str:
    """Weather hold reason text prefilled for the captain."""
    if assessment['alerts']:
        alert = assessment['alerts'][0]
        text = f"{alert['event']}: {alert['headline'] or ''}".strip()
        if alert.get('instruction'):
            text += f" {alert['instruction']}"
        return text
    if assessment.get('reason'):
        return assessment['reason']
    return 'Unfavorable weather conditions forecasted for safe charter operations'


def check_marine_conditions(lat: float, lon: float) -> dict:
    """
    Fetch alerts and forecast for a point and assess them.

    Raises:
        IntegrationError: Outside coverage or if NOAA cannot be reached
    """
    if not in_coverage_area(lat, lon):
        raise IntegrationError('Location outside NOAA coverage area (US waters only)')

    alerts = get_alerts(lat, lon)
    periods = get_forecast(lat, lon)
    assessment = assess_conditions(alerts, periods)

    return {
        **assessment,
        'forecast': periods[:6],
        'suggested_reason': suggest_hold_reason(assessment),
    }
