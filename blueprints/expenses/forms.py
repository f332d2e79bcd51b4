"""
Expense forms
"""
from wtforms import DateField, DecimalField, IntegerField, StringField
from wtforms.validators import AnyOf, DataRequired, InputRequired, Length, NumberRange, Optional

from models.expenses import PrivacyMode
from utils.forms import ApiForm


class ExpenseForm(ApiForm):
    amount = DecimalField('Amount', places=2, validators=[
        InputRequired(message='Amount is required'),
        NumberRange(min=0.01, message='Amount must be greater than zero')
    ])
    currency = StringField('Currency', validators=[Optional(), Length(min=3, max=3)])
    category = StringField('Category', validators=[
        DataRequired(message='Category is required'),
        Length(max=50)
    ])
    description = StringField('Description', validators=[Optional(), Length(max=255)])
    date = DateField('Date', validators=[DataRequired(message='Date is required')])
    privacy_mode = StringField('Privacy', validators=[
        Optional(),
        AnyOf([mode.value for mode in PrivacyMode], message='Unknown privacy mode')
    ])
    child_id = IntegerField('Child', validators=[Optional()])
