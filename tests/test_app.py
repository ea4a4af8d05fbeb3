"""
Test application factory and configuration.
"""

import pytest
from app import create_app


class TestAppFactory:
    """Test Flask application factory."""

    def test_create_app_development(self):
        """Test app creation with development config."""
        app = create_app('development')
        assert app.config['DEBUG'] is True
        assert app.config['TESTING'] is False

    def test_create_app_test(self):
        """Test app creation with test config."""
        app = create_app('test')
        assert app.config['TESTING'] is True
        assert app.config['WTF_CSRF_ENABLED'] is False
        assert app.config['EMAIL_ENABLED'] is False

    def test_app_has_blueprints(self):
        """Test that all blueprints are registered."""
        app = create_app('test')
        assert {'auth', 'dashboard', 'public', 'cron'} <= set(app.blueprints)

    def test_production_requires_secret_key(self, monkeypatch):
        """Production refuses to start without a strong SECRET_KEY."""
        monkeypatch.delenv('SECRET_KEY', raising=False)
        with pytest.raises(ValueError):
            create_app('production')

        monkeypatch.setenv('SECRET_KEY', 'too-short')
        with pytest.raises(ValueError):
            create_app('production')


class TestCliCommands:
    """Test Flask CLI commands."""

    def test_commands_registered(self):
        app = create_app('test')
        commands = set(app.cli.commands)
        assert {'init-db', 'create-captain', 'expire-bookings',
                'send-payment-reminders', 'resume-hibernation'} <= commands

    def test_expire_bookings_command(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['expire-bookings'])
        assert result.exit_code == 0
        assert 'Expired 0 booking(s)' in result.output

    def test_create_captain_command(self, app):
        from models.profile import get_profile_by_email

        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'create-captain', 'skipper@example.com', '--name', 'Jo Skipper',
            '--timezone', 'America/Chicago', '--password', 'longpassword'
        ])
        assert result.exit_code == 0
        assert 'Captain created successfully' in result.output

        profile = get_profile_by_email('skipper@example.com')
        assert profile['timezone'] == 'America/Chicago'
