"""
Third-party integrations: email (Resend), SMS (Twilio), card payments
(Stripe Checkout) and marine weather (NOAA).

Payments go through the ``stripe`` SDK; the others call their REST APIs
with ``requests``. Each raises IntegrationError when the provider is
unreachable or misconfigured.
"""


class IntegrationError(Exception):
    """A third-party service call failed or is not configured."""
