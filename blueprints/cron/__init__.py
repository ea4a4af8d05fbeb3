"""Scheduled job routes."""
