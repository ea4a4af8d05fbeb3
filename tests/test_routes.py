"""
Route tests.
Exercise the JSON API through the Flask test client.
"""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

from tests.conftest import CAPTAIN_EMAIL, CAPTAIN_ID, HALF_DAY_TRIP_ID, SUNSET_TRIP_ID


def _booking_body(day, time='10:00', **extra):
    body = {
        'guest_name': 'Dana Reyes',
        'guest_email': 'dana@example.com',
        'guest_phone': '(305) 555-0199',
        'party_size': 4,
        'scheduled_start': f'{day.isoformat()}T{time}:00',
        'trip_type_id': HALF_DAY_TRIP_ID,
    }
    body.update(extra)
    return body


class TestAppRoutes:
    """Tests for app-level routes and error handling."""

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/does-not-exist')
        assert response.status_code == 404
        assert response.get_json() == {'success': False, 'error': 'Not found'}

    def test_dashboard_requires_login(self, client):
        response = client.get('/api/bookings')
        assert response.status_code == 401
        assert response.get_json()['success'] is False


class TestAuthRoutes:
    """Tests for login and the current captain."""

    def test_login_and_me(self, authenticated_client):
        response = authenticated_client.get('/api/auth/me')
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['email'] == CAPTAIN_EMAIL
        assert data['timezone'] == 'America/New_York'

    def test_wrong_password(self, client):
        response = client.post('/api/auth/login', json={
            'email': CAPTAIN_EMAIL, 'password': 'wrong-password'
        })
        assert response.status_code == 401

    def test_logout(self, authenticated_client):
        assert authenticated_client.post('/api/auth/logout').status_code == 200
        assert authenticated_client.get('/api/auth/me').status_code == 401


class TestBookingRoutes:
    """Tests for booking CRUD and lifecycle routes."""

    def test_create_list_and_detail(self, authenticated_client, future_day):
        day = future_day()
        response = authenticated_client.post('/api/bookings', json=_booking_body(day))
        assert response.status_code == 201
        created = response.get_json()['data']
        assert created['status'] == 'pending_deposit'
        assert created['reference'] == f"DK-{created['id']:04d}"
        assert 'confirm' in created['allowed_actions']

        response = authenticated_client.get(f'/api/bookings?startDate={day}&endDate={day}')
        body = response.get_json()
        assert body['total'] == 1
        assert body['pagination']['has_more'] is False

        response = authenticated_client.get(f"/api/bookings/{created['id']}")
        detail = response.get_json()['data']
        assert detail['logs'][0]['entry_type'] == 'booking_created'
        assert detail['payments'] == []

    def test_create_validation_error(self, authenticated_client, future_day):
        response = authenticated_client.post('/api/bookings', json=_booking_body(future_day(), guest_email='nope'))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'VALIDATION'

    def test_overlap_conflict(self, authenticated_client, future_day):
        day = future_day()
        authenticated_client.post('/api/bookings', json=_booking_body(day))
        response = authenticated_client.post('/api/bookings', json=_booking_body(day, time='11:00'))
        assert response.status_code == 409
        assert response.get_json()['code'] == 'CONFLICT'

    def test_unknown_booking_404(self, authenticated_client):
        response = authenticated_client.get('/api/bookings/424242')
        assert response.status_code == 404

    def test_update_party_size(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        response = authenticated_client.patch(f"/api/bookings/{booking['id']}", json={'party_size': 2})
        assert response.status_code == 200
        assert response.get_json()['data']['party_size'] == 2

    def test_duplicate_to_new_date(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day(), special_requests='Bring bait')
        new_day = future_day(9)

        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/duplicate",
            json={'scheduled_start': f'{new_day.isoformat()}T10:00:00'}
        )
        assert response.status_code == 201
        copy = response.get_json()['data']
        assert copy['id'] != booking['id']
        assert copy['status'] == 'pending_deposit'
        assert copy['special_requests'] == 'Bring bait'

    def test_duplicate_with_another_trip_type(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        new_day = future_day(9)

        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/duplicate",
            json={'scheduled_start': f'{new_day.isoformat()}T10:00:00',
                  'trip_type_id': SUNSET_TRIP_ID}
        )
        assert response.status_code == 201
        copy = response.get_json()['data']
        assert copy['trip_type_id'] == SUNSET_TRIP_ID
        assert copy['total_price_cents'] == 30000
        assert copy['balance_due_cents'] == 30000

        from utils.datetime_helpers import from_db_timestamp
        length = from_db_timestamp(copy['scheduled_end']) - from_db_timestamp(copy['scheduled_start'])
        assert length.total_seconds() == 2 * 3600

    def test_duplicate_with_foreign_trip_type(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/duplicate",
            json={'scheduled_start': f'{future_day(9).isoformat()}T10:00:00', 'trip_type_id': 999}
        )
        assert response.status_code == 404

    def test_duplicate_onto_another_vessel(self, app, authenticated_client, make_booking, future_day):
        from models.vessel import create_vessel

        skiff = create_vessel(CAPTAIN_ID, 'Skiff', 2)
        cat = create_vessel(CAPTAIN_ID, 'Big Cat', 8)
        booking = make_booking(future_day())
        url = f"/api/bookings/{booking['id']}/duplicate"
        start = f'{future_day(9).isoformat()}T10:00:00'

        response = authenticated_client.post(url, json={'scheduled_start': start, 'vessel_id': skiff})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'CAPACITY'

        response = authenticated_client.post(url, json={'scheduled_start': start, 'vessel_id': cat})
        assert response.status_code == 201
        assert response.get_json()['data']['vessel_id'] == cat

    def test_cancel_then_cancel_again(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        url = f"/api/bookings/{booking['id']}/status"

        response = authenticated_client.post(url, json={'action': 'cancel', 'reason': 'Guest sick'})
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'cancelled'

        response = authenticated_client.post(url, json={'action': 'cancel'})
        assert response.status_code == 409
        assert response.get_json()['code'] == 'INVALID_TRANSITION'

    def test_unknown_status_action(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/status", json={'action': 'teleport'}
        )
        assert response.status_code == 400

    def test_weather_hold_and_offers(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/weather-hold", json={'reason': 'Gale warning'}
        )
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'weather_hold'

        day = future_day(15)
        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/reschedule-offers",
            json={'slots': [{'start': f'{day}T08:00:00', 'end': f'{day}T12:00:00'}]}
        )
        assert response.status_code == 201
        offer = response.get_json()['data'][-1]

        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/reschedule-offers/{offer['id']}/accept"
        )
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'rescheduled'


class TestPaymentRoutes:
    """Tests for payment verification and messaging routes."""

    def test_alt_payment_then_reminder_limit(self, app, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())

        response = authenticated_client.post('/api/bookings/complete-alt-payment', json={
            'bookingId': booking['id'], 'paymentMethod': 'venmo'
        })
        assert response.status_code == 200
        assert response.get_json()['data']['payment_status'] == 'pending_verification'

        for _ in range(2):
            response = authenticated_client.post('/api/bookings/verify-payment', json={
                'bookingId': booking['id'], 'action': 'remind'
            })
            assert response.status_code == 200

        response = authenticated_client.post('/api/bookings/verify-payment', json={
            'bookingId': booking['id'], 'action': 'remind'
        })
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Maximum reminders (2) already sent'

    def test_verify_confirm(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        authenticated_client.post('/api/bookings/complete-alt-payment', json={
            'bookingId': booking['id'], 'paymentMethod': 'zelle'
        })

        response = authenticated_client.post('/api/bookings/verify-payment', json={
            'booking_id': booking['id'], 'action': 'confirm'
        })
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['action'] == 'confirmed'
        assert data['booking']['payment_status'] == 'deposit_paid'

    def test_verify_missing_fields(self, authenticated_client):
        response = authenticated_client.post('/api/bookings/verify-payment', json={'action': 'confirm'})
        assert response.status_code == 400

    def test_record_payment_and_refund(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        url = f"/api/bookings/{booking['id']}"

        response = authenticated_client.post(f'{url}/record-payment', json={
            'amount_cents': 20000, 'payment_type': 'deposit', 'notes': 'Cash'
        })
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'confirmed'

        response = authenticated_client.post(f'{url}/refund', json={'amount_cents': 25000})
        assert response.status_code == 400

        response = authenticated_client.get(f'{url}/payments')
        assert [p['amount_cents'] for p in response.get_json()['data']] == [20000]

    def test_sms_without_phone(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day(), guest_phone=None)
        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/send-sms", json={'message': 'See you at the dock'}
        )
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Guest phone number not found'

    def test_sms_provider_not_configured(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        response = authenticated_client.post(
            f"/api/bookings/{booking['id']}/send-sms", json={'message': 'See you at the dock'}
        )
        assert response.status_code == 502

    def test_request_balance_when_paid(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        authenticated_client.post(f"/api/bookings/{booking['id']}/mark-fully-paid")

        response = authenticated_client.post(f"/api/bookings/{booking['id']}/request-balance")
        assert response.status_code == 400
        assert response.get_json()['error'] == 'No balance due on this booking'

    def test_send_message(self, authenticated_client, make_booking, future_day):
        booking = make_booking(future_day())
        response = authenticated_client.post(f"/api/bookings/{booking['id']}/send-message", json={
            'subject': 'Parking', 'message': 'Park in lot B.'
        })
        assert response.status_code == 200

        response = authenticated_client.get('/api/audit-logs?action=sent_message')
        logs = response.get_json()['data']
        assert len(logs) == 1
        assert logs[0]['entity_id'] == booking['id']
        assert logs[0]['changes']['after']['subject'] == 'Parking'

        response = authenticated_client.post(f"/api/bookings/{booking['id']}/send-message", json={
            'subject': 'Parking'
        })
        assert response.status_code == 400


class TestExportRoute:
    """Tests for the export download."""

    def test_csv_download(self, authenticated_client, make_booking, future_day):
        day = future_day()
        make_booking(day)

        response = authenticated_client.get(f'/api/bookings/export?startDate={day}&endDate={day}')
        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert f'bookings_{day}_to_{day}.csv' in response.headers['Content-Disposition']
        lines = response.get_data(as_text=True).strip().split('\n')
        assert lines[0].startswith('Booking ID,Guest Name')
        assert len(lines) == 2

    def test_xlsx_download(self, authenticated_client):
        response = authenticated_client.get('/api/bookings/export?format=xlsx')
        assert response.status_code == 200
        assert response.headers['Content-Disposition'].endswith('.xlsx"')


class TestSettingsRoutes:
    """Tests for profile and schedule settings."""

    def test_profile_hides_password(self, authenticated_client):
        data = authenticated_client.get('/api/profile').get_json()['data']
        assert 'password_hash' not in data

    def test_profile_rejects_bad_timezone(self, authenticated_client):
        response = authenticated_client.patch('/api/profile', json={'timezone': 'Mars/Olympus'})
        assert response.status_code == 400

    def test_profile_update(self, authenticated_client):
        response = authenticated_client.patch('/api/profile', json={
            'business_name': 'Reel Deal Charters', 'booking_buffer_minutes': 90
        })
        assert response.status_code == 200
        assert response.get_json()['data']['booking_buffer_minutes'] == 90

    def test_blackout_range(self, authenticated_client, future_day):
        start = future_day()
        end = future_day(9)
        response = authenticated_client.post('/api/blackouts', json={
            'start_date': start.isoformat(), 'end_date': end.isoformat(), 'reason': 'Vacation'
        })
        assert response.status_code == 201

        blackouts = authenticated_client.get('/api/blackouts').get_json()['data']
        assert blackouts[0]['blackout_date'] == start.isoformat()


class TestPublicRoutes:
    """Tests for guest-facing routes."""

    def test_captain_page(self, client):
        response = client.get(f'/api/public/captains/{CAPTAIN_ID}')
        assert response.status_code == 200
        assert len(response.get_json()['data']['trip_types']) == 3

    def test_availability_requires_date_or_month(self, client):
        response = client.get(f'/api/availability/{CAPTAIN_ID}/{HALF_DAY_TRIP_ID}')
        assert response.status_code == 400

    def test_book_then_manage(self, client, future_day):
        day = future_day()
        slots = client.get(f'/api/availability/{CAPTAIN_ID}/{HALF_DAY_TRIP_ID}?date={day}').get_json()
        first_open = next(s for s in slots['data']['time_slots'] if s['available'])

        response = client.post('/api/public/bookings', json={
            'captain_id': CAPTAIN_ID,
            'trip_type_id': HALF_DAY_TRIP_ID,
            'scheduled_date': day.isoformat(),
            'scheduled_time': first_open['start_time'],
            'guest_name': 'Morgan Lee',
            'guest_email': 'morgan@example.com',
            'party_size': 2,
        })
        assert response.status_code == 201
        created = response.get_json()['data']

        response = client.get(f"/api/public/manage/{created['guest_token']}")
        assert response.status_code == 200
        assert response.get_json()['data']['booking']['status'] == 'pending_deposit'

    def test_checkout_refused_once_paid(self, client, make_booking, future_day):
        from models.payment import mark_deposit_paid

        booking = make_booking(future_day())
        mark_deposit_paid(booking['id'], CAPTAIN_ID)

        response = client.post(f"/api/public/bookings/{booking['id']}/checkout")
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Deposit already paid'

    def test_checkout_creates_deposit_session(self, app, client, make_booking, future_day, monkeypatch):
        import stripe

        calls = []

        def fake_create(**params):
            calls.append(params)
            return SimpleNamespace(id='cs_test_new', url='https://checkout.stripe.com/c/pay/cs_test_new')

        app.config['STRIPE_SECRET_KEY'] = 'sk_test_123'
        monkeypatch.setattr(stripe.checkout.Session, 'create', staticmethod(fake_create))
        booking = make_booking(future_day())

        response = client.post(f"/api/public/bookings/{booking['id']}/checkout")
        assert response.status_code == 200
        assert response.get_json()['data']['session_id'] == 'cs_test_new'

        params = calls[0]
        assert params['api_key'] == 'sk_test_123'
        assert params['line_items'][0]['price_data']['unit_amount'] == 20000
        assert params['metadata'] == {
            'bookingId': str(booking['id']),
            'depositAmount': '20000',
            'totalAmount': '50000',
        }

    def test_checkout_without_stripe_key(self, client, make_booking, future_day):
        booking = make_booking(future_day())

        response = client.post(f"/api/public/bookings/{booking['id']}/checkout")
        assert response.status_code == 502

    def test_checkout_stripe_failure(self, app, client, make_booking, future_day, monkeypatch):
        import stripe

        def failing_create(**params):
            raise stripe.StripeError('card processor unavailable')

        app.config['STRIPE_SECRET_KEY'] = 'sk_test_123'
        monkeypatch.setattr(stripe.checkout.Session, 'create', staticmethod(failing_create))
        booking = make_booking(future_day())

        response = client.post(f"/api/public/bookings/{booking['id']}/checkout")
        assert response.status_code == 502

    def test_manage_rate_limited(self, client):
        for _ in range(5):
            assert client.get('/api/public/manage/unknown-token').status_code == 404
        response = client.get('/api/public/manage/unknown-token')
        assert response.status_code == 429


def sign_payload(payload, secret, timestamp=None):
    """Stripe-Signature header value for a payload, as Stripe would send it."""
    timestamp = int(timestamp if timestamp is not None else time.time())
    signed = f'{timestamp}.'.encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={digest}'


class TestStripeWebhook:
    """Tests for the Stripe webhook."""

    def _event(self, booking_id):
        return json.dumps({
            'type': 'checkout.session.completed',
            'data': {'object': {
                'id': 'cs_test_webhook',
                'metadata': {'bookingId': str(booking_id), 'depositAmount': '20000'},
            }},
        }).encode()

    def _post(self, client, payload, signature):
        return client.post('/api/stripe/webhook', data=payload, content_type='application/json',
                           headers={'Stripe-Signature': signature})

    def test_signed_event_confirms_booking(self, app, client, make_booking, future_day):
        from models.booking import get_booking_by_id

        booking = make_booking(future_day())
        payload = self._event(booking['id'])

        response = self._post(client, payload, sign_payload(payload, 'whsec_test'))
        assert response.status_code == 200
        assert get_booking_by_id(booking['id'])['status'] == 'confirmed'

    def test_bad_signature_rejected(self, client, make_booking, future_day):
        booking = make_booking(future_day())
        payload = self._event(booking['id'])

        response = self._post(client, payload, 't=1,v1=deadbeef')
        assert response.status_code == 400

    def test_wrong_secret_rejected(self, app, client, make_booking, future_day):
        from models.booking import get_booking_by_id

        booking = make_booking(future_day())
        payload = self._event(booking['id'])

        response = self._post(client, payload, sign_payload(payload, 'whsec_other'))
        assert response.status_code == 400
        assert get_booking_by_id(booking['id'])['status'] == 'pending_deposit'

    def test_stale_signature_rejected(self, client, make_booking, future_day):
        booking = make_booking(future_day())
        payload = self._event(booking['id'])

        response = self._post(client, payload, sign_payload(payload, 'whsec_test', time.time() - 3600))
        assert response.status_code == 400

    def test_signed_non_json_body_rejected(self, client):
        payload = b'not json at all'

        response = self._post(client, payload, sign_payload(payload, 'whsec_test'))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid payload'

    def test_other_event_types_acknowledged(self, client):
        payload = json.dumps({'type': 'payment_intent.created', 'data': {'object': {}}}).encode()

        response = self._post(client, payload, sign_payload(payload, 'whsec_test'))
        assert response.status_code == 200
        assert response.get_json()['data']['received'] is True


class TestCronRoutes:
    """Tests for the scheduled job endpoints."""

    def test_jobs_run_without_secret(self, client):
        for job in ('expire-bookings', 'payment-reminders', 'resume-hibernation'):
            response = client.post(f'/api/cron/{job}')
            assert response.status_code == 200
            assert response.get_json()['data']['count'] == 0

    def test_secret_enforced(self, app, client):
        app.config['CRON_SECRET'] = 's3cret'

        assert client.get('/api/cron/expire-bookings').status_code == 401
        response = client.get('/api/cron/expire-bookings', headers={'Authorization': 'Bearer s3cret'})
        assert response.status_code == 200
