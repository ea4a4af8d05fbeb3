"""
Authentication forms using Flask-WTF.
The dashboard posts JSON; Flask-WTF reads it as form data.
"""

from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import DataRequired, Length


class LoginForm(FlaskForm):
    """Captain login form."""

    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Length(max=254)
    ])

    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required')
    ])

    remember_me = BooleanField('Remember me')


class ChangePasswordForm(FlaskForm):
    """Password change form."""

    current_password = PasswordField('Current password', validators=[
        DataRequired(message='Current password is required')
    ])

    new_password = PasswordField('New password', validators=[
        DataRequired(message='New password is required'),
        Length(min=8, message='Password must be at least 8 characters')
    ])
