from flask_wtf import FlaskForm
from wtforms import TextAreaField, DateField
from wtforms.validators import DataRequired, Optional


class LogActivityForm(FlaskForm):
    date = DateField('Date', validators=[DataRequired()])
    activity = TextAreaField('Activity', validators=[DataRequired()])
    problem = TextAreaField('Problem', validators=[Optional()])
