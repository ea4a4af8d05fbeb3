"""
Weather service tests.
NOAA calls are replaced with canned responses on requests.get.
"""

import pytest
import requests

from services import IntegrationError
from services.weather import (
    assess_conditions, check_marine_conditions, get_alerts, max_wind_mph, suggest_hold_reason
)

MIAMI = (25.7617, -80.1918)
FORECAST_URL = 'https://api.weather.gov/gridpoints/MFL/110,50/forecast'


def _alert(event, severity='Moderate', headline=None, instruction=None):
    return {'event': event, 'severity': severity, 'headline': headline,
            'instruction': instruction, 'expires': None}


def _period(wind_speed):
    return {'name': 'Today', 'wind_speed': wind_speed, 'short_forecast': 'Sunny'}


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f'{self.status} Error')

    def json(self):
        return self.payload


@pytest.fixture
def noaa(monkeypatch):
    """Serve canned NOAA responses and record the requested URLs."""
    state = {'alerts': [], 'periods': [], 'calls': []}

    def fake_get(url, headers=None, params=None, timeout=None):
        state['calls'].append({'url': url, 'headers': headers, 'params': params})
        if '/points/' in url:
            return FakeResponse({'properties': {'forecast': FORECAST_URL}})
        if url.endswith('/alerts/active'):
            return FakeResponse({'features': [{'properties': p} for p in state['alerts']]})
        if url == FORECAST_URL:
            return FakeResponse({'properties': {'periods': state['periods']}})
        return FakeResponse({}, status=404)

    monkeypatch.setattr('services.weather.requests.get', fake_get)
    return state


class TestMaxWindMph:
    """Tests for NOAA wind text parsing."""

    def test_single_speed(self):
        assert max_wind_mph('15 mph') == 15

    def test_range_uses_upper_bound(self):
        assert max_wind_mph('10 to 30 mph') == 30

    def test_unparseable(self):
        assert max_wind_mph('Calm') is None
        assert max_wind_mph(None) is None


class TestAssessConditions:
    """Tests for the safe / caution / dangerous rating."""

    def test_severe_marine_alert_is_dangerous(self):
        alerts = [_alert('Gale Warning', severity='Severe', headline='Gale Warning until 6 PM')]

        result = assess_conditions(alerts, [_period('5 mph')])
        assert result['recommendation'] == 'dangerous'
        assert result['is_safe'] is False
        assert result['reason'] == 'Gale Warning until 6 PM'

    def test_moderate_marine_alert_is_caution(self):
        alerts = [_alert('Small Craft Advisory')]

        result = assess_conditions(alerts, [_period('5 mph')])
        assert result['recommendation'] == 'caution'
        assert result['reason'] == 'Small Craft Advisory'
        assert len(result['alerts']) == 1

    def test_non_marine_alert_ignored(self):
        result = assess_conditions([_alert('Heat Advisory', severity='Severe')], [_period('5 mph')])
        assert result['recommendation'] == 'safe'
        assert result['is_safe'] is True

    def test_alert_without_event_name(self):
        result = assess_conditions([_alert(None, severity='Severe')], [])
        assert result['recommendation'] == 'safe'

    def test_high_wind_range_is_caution(self):
        result = assess_conditions([], [_period('10 to 30 mph')])
        assert result['recommendation'] == 'caution'
        assert result['reason'] == 'High winds forecasted: 10 to 30 mph'

    def test_light_wind_is_safe(self):
        assert assess_conditions([], [_period('5 to 10 mph')])['recommendation'] == 'safe'

    def test_no_wind_text_is_safe(self):
        result = assess_conditions([], [_period(None)])
        assert result['recommendation'] == 'safe'
        assert result['reason'] is None

    def test_no_forecast_is_safe(self):
        assert assess_conditions([], [])['recommendation'] == 'safe'


class TestSuggestHoldReason:
    """Tests for the prefilled hold reason."""

    def test_alert_with_instruction(self):
        alert = _alert('Small Craft Advisory', headline='Seas 6 to 8 ft', instruction='Stay in port.')
        assessment = assess_conditions([alert], [])

        assert suggest_hold_reason(assessment) == 'Small Craft Advisory: Seas 6 to 8 ft Stay in port.'

    def test_wind_reason(self):
        assessment = assess_conditions([], [_period('20 to 35 mph')])
        assert suggest_hold_reason(assessment) == 'High winds forecasted: 20 to 35 mph'

    def test_generic_fallback(self):
        assessment = assess_conditions([], [])
        assert suggest_hold_reason(assessment).startswith('Unfavorable weather conditions')


class TestCheckMarineConditions:
    """Tests for the combined NOAA lookup."""

    def test_severe_alert_from_noaa(self, app, noaa):
        noaa['alerts'] = [{'event': 'Storm Warning', 'severity': 'Extreme',
                           'headline': 'Storm Warning in effect'}]
        noaa['periods'] = [{'name': f'Period {i}', 'windSpeed': '40 mph'} for i in range(8)]

        result = check_marine_conditions(*MIAMI)
        assert result['recommendation'] == 'dangerous'
        assert len(result['forecast']) == 6
        assert result['forecast'][0]['wind_speed'] == '40 mph'
        assert result['suggested_reason'] == 'Storm Warning: Storm Warning in effect'

    def test_calm_day(self, app, noaa):
        noaa['periods'] = [{'name': 'Today', 'windSpeed': '5 to 10 mph'}]

        result = check_marine_conditions(*MIAMI)
        assert result['recommendation'] == 'safe'
        assert result['is_safe'] is True

    def test_sends_user_agent(self, app, noaa):
        check_marine_conditions(*MIAMI)

        assert noaa['calls']
        assert all(call['headers']['User-Agent'] == app.config['WEATHER_USER_AGENT']
                   for call in noaa['calls'])

    def test_null_event_from_noaa(self, app, noaa):
        noaa['alerts'] = [{'event': None, 'severity': None, 'headline': 'Unnamed alert'}]

        alerts = get_alerts(*MIAMI)
        assert alerts[0]['event'] == ''
        assert alerts[0]['severity'] == 'Unknown'
        assert check_marine_conditions(*MIAMI)['recommendation'] == 'safe'

    def test_outside_coverage(self, app, noaa):
        with pytest.raises(IntegrationError):
            check_marine_conditions(51.5074, -0.1278)
        assert noaa['calls'] == []

    def test_service_unreachable(self, app, monkeypatch):
        def failing_get(url, **kwargs):
            raise requests.ConnectionError('connection refused')

        monkeypatch.setattr('services.weather.requests.get', failing_get)
        with pytest.raises(IntegrationError):
            check_marine_conditions(*MIAMI)
