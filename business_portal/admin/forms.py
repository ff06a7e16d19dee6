from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SelectField, IntegerField
from wtforms.validators import DataRequired, Email, Optional, Length, NumberRange, URL

from business_portal.models import ROLES


class UserForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    email = StringField('Email', validators=[DataRequired(), Email()])
    username = StringField('Username', validators=[DataRequired(), Length(min=3, max=50)])
    password = PasswordField('Password', validators=[Optional(), Length(min=6)])
    pin = StringField('PIN', validators=[Optional()])
    department = StringField('Department', validators=[Optional(), Length(max=100)])
    role = SelectField('Role', choices=[(r, r) for r in ROLES], default='USER')


class ApiSettingsForm(FlaskForm):
    apiEndpoint = StringField('API Endpoint', validators=[Optional(), URL(require_tld=False)])
    apiKey = StringField('API Key', validators=[Optional()])
    senderName = StringField('Sender Name', validators=[Optional()])
    senderPhone = StringField('Sender Phone', validators=[Optional()])
    senderAddress = StringField('Sender Address', validators=[Optional()])


class SalaryCalcDayForm(FlaskForm):
    day = IntegerField('Salary calculation day', validators=[DataRequired(), NumberRange(min=1, max=28)])
