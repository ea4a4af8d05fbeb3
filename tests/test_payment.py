"""
Tests for payment verification, manual payments and refunds.
"""

import pytest

from models.booking_state import BookingError
from tests.conftest import CAPTAIN_ID, FULL_DAY_TRIP_ID


class TestAltPaymentVerification:
    """Guest-declared Venmo/Zelle payments verified by the captain."""

    def test_alt_payment_waits_for_verification(self, app, future_day, make_booking):
        from models.payment import complete_alt_payment

        booking = make_booking(future_day())
        result = complete_alt_payment(booking['id'], 'venmo', auto_confirm=False)

        assert result['status'] == 'pending_deposit'
        assert result['payment_status'] == 'pending_verification'
        assert result['auto_confirmed'] is False

    def test_alt_payment_auto_confirm_from_profile(self, app, future_day, make_booking):
        from models.payment import complete_alt_payment

        booking = make_booking(future_day())
        result = complete_alt_payment(booking['id'], 'zelle')

        assert result['auto_confirmed'] is True
        assert result['status'] == 'confirmed'

    def test_alt_payment_rejects_unknown_method(self, app, future_day, make_booking):
        from models.payment import complete_alt_payment

        booking = make_booking(future_day())
        with pytest.raises(BookingError) as exc:
            complete_alt_payment(booking['id'], 'paypal')
        assert exc.value.code == 'VALIDATION'

    def test_alt_payment_rejects_disabled_method(self, app, future_day, make_booking):
        from models.payment import complete_alt_payment
        from models.profile import update_profile

        update_profile(CAPTAIN_ID, zelle_enabled=0)
        booking = make_booking(future_day())
        with pytest.raises(BookingError) as exc:
            complete_alt_payment(booking['id'], 'zelle')
        assert 'Zelle is not accepted' in str(exc.value)

    def test_confirm_records_deposit(self, app, future_day, make_booking):
        from models.payment import complete_alt_payment, get_payments, verify_payment

        booking = make_booking(future_day())
        complete_alt_payment(booking['id'], 'venmo', auto_confirm=False)

        result = verify_payment(booking['id'], CAPTAIN_ID, 'confirm', actor_id=CAPTAIN_ID)
        updated = result['booking']

        assert result['action'] == 'confirmed'
        assert updated['status'] == 'confirmed'
        assert updated['payment_status'] == 'deposit_paid'
        assert updated['deposit_paid_cents'] == 20000
        assert updated['balance_due_cents'] == 30000
        assert updated['deposit_paid_at'] is not None

        payments = get_payments(booking['id'])
        assert [(p['amount_cents'], p['payment_type']) for p in payments] == [(20000, 'deposit')]

    def test_confirm_full_price_deposit_marks_fully_paid(self, app, future_day, make_booking):
        from models.payment import complete_alt_payment, verify_payment

        booking = make_booking(future_day(), time='08:00', trip_type_id=FULL_DAY_TRIP_ID)
        complete_alt_payment(booking['id'], 'venmo', auto_confirm=False)

        updated = verify_payment(booking['id'], CAPTAIN_ID, 'confirm')['booking']

        assert updated['payment_status'] == 'fully_paid'
        assert updated['balance_due_cents'] == 0
        assert updated['balance_paid_at'] is not None

    def test_confirm_on_confirmed_booking_keeps_status(self, app, future_day, make_booking):
        from models.booking_log import get_booking_logs
        from models.payment import complete_alt_payment, verify_payment

        booking = make_booking(future_day())
        complete_alt_payment(booking['id'], 'venmo', auto_confirm=True)

        updated = verify_payment(booking['id'], CAPTAIN_ID, 'confirm')['booking']

        assert updated['status'] == 'confirmed'
        assert updated['payment_status'] == 'deposit_paid'
        assert len(get_booking_logs(booking['id'], entry_type='status_changed')) == 1

    def test_remind_limit(self, app, future_day, make_booking):
        from models.payment import complete_alt_payment, verify_payment

        booking = make_booking(future_day())
        complete_alt_payment(booking['id'], 'venmo', auto_confirm=False)

        first = verify_payment(booking['id'], CAPTAIN_ID, 'remind')
        second = verify_payment(booking['id'], CAPTAIN_ID, 'remind')
        assert first['action'] == 'reminded'
        assert second['booking']['payment_reminder_count'] == 2
        assert second['booking']['payment_reminder_last_sent'] is not None

        with pytest.raises(BookingError) as exc:
            verify_payment(booking['id'], CAPTAIN_ID, 'remind')
        assert exc.value.code == 'VALIDATION'
        assert str(exc.value) == 'Maximum reminders (2) already sent'

    def test_cancel_notes_missing_payment(self, app, future_day, make_booking):
        from models.payment import complete_alt_payment, verify_payment

        booking = make_booking(future_day())
        complete_alt_payment(booking['id'], 'venmo', auto_confirm=False)

        result = verify_payment(booking['id'], CAPTAIN_ID, 'cancel')

        assert result['action'] == 'cancelled'
        assert result['booking']['status'] == 'cancelled'
        assert 'Cancelled: Venmo payment not received.' in result['booking']['internal_notes']

    def test_invalid_action(self, app, future_day, make_booking):
        from models.payment import verify_payment

        booking = make_booking(future_day())
        with pytest.raises(BookingError) as exc:
            verify_payment(booking['id'], CAPTAIN_ID, 'refund')
        assert exc.value.code == 'VALIDATION'


class TestManualPayments:
    """Payments and refunds recorded by the captain."""

    def test_record_deposit_confirms_booking(self, app, future_day, make_booking):
        from models.payment import record_payment

        booking = make_booking(future_day())
        updated = record_payment(booking['id'], CAPTAIN_ID, 15000, 'deposit', notes='Cash at dock')

        assert updated['status'] == 'confirmed'
        assert updated['deposit_paid_cents'] == 15000
        assert updated['balance_due_cents'] == 35000

    def test_balance_payment_completes_price(self, app, future_day, make_booking):
        from models.payment import mark_deposit_paid, record_payment

        booking = make_booking(future_day())
        mark_deposit_paid(booking['id'], CAPTAIN_ID)
        updated = record_payment(booking['id'], CAPTAIN_ID, 30000, 'balance')

        assert updated['payment_status'] == 'fully_paid'
        assert updated['balance_due_cents'] == 0

    def test_tip_leaves_balance(self, app, future_day, make_booking):
        from models.payment import get_payments, record_payment

        booking = make_booking(future_day())
        updated = record_payment(booking['id'], CAPTAIN_ID, 5000, 'tip')

        assert updated['balance_due_cents'] == 50000
        assert updated['status'] == 'pending_deposit'
        assert get_payments(booking['id'])[0]['payment_type'] == 'tip'

    def test_rejects_non_positive_amount(self, app, future_day, make_booking):
        from models.payment import record_payment

        booking = make_booking(future_day())
        with pytest.raises(BookingError) as exc:
            record_payment(booking['id'], CAPTAIN_ID, 0, 'deposit')
        assert exc.value.code == 'VALIDATION'

    def test_mark_fully_paid(self, app, future_day, make_booking):
        from models.payment import mark_fully_paid

        booking = make_booking(future_day())
        updated = mark_fully_paid(booking['id'], CAPTAIN_ID)

        assert updated['status'] == 'confirmed'
        assert updated['payment_status'] == 'fully_paid'
        assert updated['deposit_paid_cents'] == 50000

    def test_refund_bounded_by_amount_paid(self, app, future_day, make_booking):
        from models.payment import mark_deposit_paid, record_refund

        booking = make_booking(future_day())
        mark_deposit_paid(booking['id'], CAPTAIN_ID)

        partial = record_refund(booking['id'], CAPTAIN_ID, 5000, reason='Short trip')
        assert partial['payment_status'] == 'partially_refunded'

        with pytest.raises(BookingError) as exc:
            record_refund(booking['id'], CAPTAIN_ID, 20000)
        assert exc.value.code == 'VALIDATION'

        full = record_refund(booking['id'], CAPTAIN_ID, 15000)
        assert full['payment_status'] == 'fully_refunded'


class TestStripeCheckout:
    """Applying completed Checkout sessions."""

    def test_session_confirms_booking_once(self, app, future_day, make_booking):
        from models.booking import get_booking_by_id
        from models.payment import apply_stripe_checkout_completed

        booking = make_booking(future_day())

        first = apply_stripe_checkout_completed(booking['id'], 'cs_test_123')
        replay = apply_stripe_checkout_completed(booking['id'], 'cs_test_123')

        assert first['duplicate'] is False
        assert first['payment_status'] == 'deposit_paid'
        assert replay['duplicate'] is True

        stored = get_booking_by_id(booking['id'])
        assert stored['status'] == 'confirmed'
        assert stored['deposit_paid_cents'] == 20000
        assert stored['payment_method'] == 'stripe'

    def test_unknown_booking(self, app):
        from models.payment import apply_stripe_checkout_completed

        with pytest.raises(BookingError) as exc:
            apply_stripe_checkout_completed(999999, 'cs_test_missing')
        assert exc.value.code == 'NOT_FOUND'
