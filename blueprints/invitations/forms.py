"""
Invitation forms
"""
from wtforms import EmailField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional

from utils.forms import ApiForm


class InvitationForm(ApiForm):
    email = EmailField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address'),
        Length(max=255)
    ])
    message = TextAreaField('Message', validators=[Optional(), Length(max=1000)])


class AcceptInvitationForm(ApiForm):
    token = StringField('Token', validators=[DataRequired(message='Token is required')])
