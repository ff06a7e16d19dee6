from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired, FileAllowed
from wtforms import StringField, BooleanField, SelectField, IntegerField, FloatField, DateField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Optional, NumberRange, Length

from business_portal.services.attendance import STATUSES
from business_portal.services.overtime_leave import REQUEST_TYPES, DECISIONS
from business_portal.services.payroll import COMPONENT_TYPES

SPREADSHEET = FileAllowed(['xlsx', 'xls'], 'Excel files only!')


class AttendanceForm(FlaskForm):
    user_id = IntegerField('Employee', validators=[DataRequired()])
    date = DateField('Date', validators=[DataRequired()])
    status = SelectField('Status', choices=[('', '-')] + [(s, s) for s in STATUSES], default='')
    clock_in = StringField('Clock In', validators=[Optional()])
    clock_out = StringField('Clock Out', validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])
    is_holiday = BooleanField('National holiday')
    update_holiday_global = BooleanField('Apply holiday to every employee')


class WorkScheduleForm(FlaskForm):
    day_of_week = IntegerField('Day', validators=[NumberRange(min=0, max=6)])
    start_time = StringField('Start', validators=[Optional()])
    end_time = StringField('End', validators=[Optional()])
    is_work_day = BooleanField('Work day')


class CustomScheduleForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    start_date = DateField('From', validators=[DataRequired()])
    end_date = DateField('To', validators=[DataRequired()])
    start_time = StringField('Start', validators=[Optional()])
    end_time = StringField('End', validators=[Optional()])


class SpreadsheetForm(FlaskForm):
    file = FileField('Spreadsheet', validators=[FileRequired(), SPREADSHEET])


class SalaryComponentForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    type = SelectField('Type', choices=[(t, t) for t in COMPONENT_TYPES])


class PayrollForm(FlaskForm):
    user_id = IntegerField('Employee', validators=[DataRequired()])
    month = IntegerField('Month', validators=[DataRequired(), NumberRange(min=1, max=12)])
    year = IntegerField('Year', validators=[DataRequired(), NumberRange(min=2000, max=2100)])
    basic_salary = FloatField('Basic Salary', validators=[InputRequired(), NumberRange(min=0)])
    items = StringField('Items (JSON)', validators=[Optional()])
    salary_slip = FileField('Salary Slip', validators=[Optional()])
    remove_salary_slip = BooleanField('Remove salary slip')


class OvertimeLeaveForm(FlaskForm):
    type = SelectField('Type', choices=[(t, t) for t in REQUEST_TYPES])
    date = DateField('Date', validators=[DataRequired()])
    reason = TextAreaField('Reason', validators=[DataRequired()])
    amount = FloatField('Amount', validators=[Optional(), NumberRange(min=0)])
    attachment = FileField('Attachment', validators=[Optional()])


class OvertimeOrderForm(FlaskForm):
    user_id = IntegerField('Employee', validators=[DataRequired()])
    requester_name = StringField('Requested by', validators=[DataRequired()])
    job = TextAreaField('Job', validators=[DataRequired()])
    amount = FloatField('Amount', validators=[InputRequired(), NumberRange(min=0)])


class DecisionForm(FlaskForm):
    status = SelectField('Decision', choices=[(d, d) for d in DECISIONS])
    admin_note = TextAreaField('Note', validators=[Optional()])
    amount = FloatField('Amount', validators=[Optional(), NumberRange(min=0)])
