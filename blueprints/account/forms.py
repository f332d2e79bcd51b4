"""
Profile form
"""
from wtforms import EmailField, StringField, URLField
from wtforms.validators import Email, Length, URL

from utils.forms import ApiForm


class ProfileForm(ApiForm):
    name = StringField('Name', validators=[
        Length(min=1, max=100, message='Name must be between 1 and 100 characters')
    ])
    email = EmailField('Email', validators=[Email(message='Invalid email address')])
    avatar_url = URLField('Avatar', validators=[URL(message='Invalid URL'), Length(max=512)])
