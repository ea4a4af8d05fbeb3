"""
Centralized user-facing messages.
Keeps API success and error wording consistent across blueprints.
"""

MESSAGES = {
    # Success messages
    'login_success': 'Welcome back, {name}',
    'logout_success': 'Signed out',
    'booking_created': 'Booking {code} created',
    'booking_updated': 'Booking updated',
    'booking_duplicated': 'Booking duplicated',
    'payment_confirmed': 'Payment confirmed',
    'reminder_sent': 'Payment reminder sent',
    'booking_cancelled': 'Booking cancelled',
    'payment_recorded': 'Payment recorded',
    'refund_recorded': 'Refund recorded',
    'message_sent': 'Message sent',
    'sms_sent': 'Text message sent',
    'balance_requested': 'Balance request sent',
    'weather_hold_set': 'Booking placed on weather hold',
    'offers_created': '{count} reschedule offers created',
    'offer_accepted': 'Trip rescheduled',
    'dates_requested': 'Your request has been sent to the captain',
    'blackout_created': 'Blackout date added',
    'blackout_range_created': '{count} blackout dates added',
    'blackout_deleted': 'Blackout date removed',
    'schedule_updated': 'Availability updated',
    'profile_updated': 'Profile updated',
    'trip_type_saved': 'Trip type saved',
    'vessel_saved': 'Vessel saved',

    # Error messages
    'invalid_credentials': 'Invalid email or password',
    'account_disabled': 'This account has been disabled',
    'data_required': 'Request body is required',
    'booking_not_found': 'Booking not found',
    'invalid_request': 'Invalid request',
}
