"""Guest-facing booking routes."""
