"""
Family forms
Validation for family, child roster and admin-transfer requests
"""
from wtforms import DateField, IntegerField, StringField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional

from utils.forms import ApiForm


class FamilyForm(ApiForm):
    name = StringField('Family Name', validators=[
        DataRequired(message='Family name is required'),
        Length(min=1, max=100, message='Family name must be at most 100 characters')
    ])


class ChildForm(ApiForm):
    name = StringField('Name', validators=[
        DataRequired(message='Child name is required'),
        Length(max=100)
    ])
    date_of_birth = DateField('Date of Birth', validators=[Optional()])
    year_group = StringField('Year Group', validators=[Optional(), Length(max=50)])
    sort_order = IntegerField('Sort Order', validators=[Optional(), NumberRange(min=0)])


class TransferAdminForm(ApiForm):
    target_user_id = IntegerField('New Admin', validators=[
        InputRequired(message='target_user_id is required')
    ])
