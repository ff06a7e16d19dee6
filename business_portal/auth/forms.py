from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField, SelectField
from wtforms.validators import DataRequired, Optional, Regexp, Length


class LoginForm(FlaskForm):
    identifier = StringField('Email or Username', validators=[Optional()])
    password = PasswordField('Password or PIN', validators=[DataRequired()])
    auth_type = SelectField('Login with', choices=[('password', 'Password'), ('pin', 'PIN')], default='password')
    remember_me = BooleanField('Remember Me')


class ProfileForm(FlaskForm):
    name = StringField('Name', validators=[Optional(), Length(max=100)])
    current_password = PasswordField('Current Password', validators=[Optional()])
    new_password = PasswordField('New Password', validators=[Optional(), Length(min=6)])


class PinForm(FlaskForm):
    current_password = PasswordField('Current Password', validators=[DataRequired()])
    pin = StringField('PIN', validators=[DataRequired(), Regexp(r'^\d{4,6}$', message='PIN must be 4-6 digits')])


class VerifyPasswordForm(FlaskForm):
    password = PasswordField('Password', validators=[DataRequired()])
