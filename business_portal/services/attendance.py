import calendar
import logging
from datetime import date, datetime, time, timedelta

from business_portal import db
from business_portal.models import User, Attendance, WorkSchedule, CustomWorkSchedule
from business_portal.crypto import encrypt, encrypt_date
from business_portal.errors import ValidationFailed, NotFound

logger = logging.getLogger(__name__)

STATUSES = ('PRESENT', 'SICK', 'PERMIT', 'LEAVE', 'ABSENT')
PERMIT_STATUSES = ('PERMIT', 'LEAVE', 'SICK')

# day_of_week: 0 = Sunday
DAY_NAMES = ('Minggu', 'Senin', 'Selasa', 'Rabu', 'Kamis', 'Jumat', 'Sabtu')


def parse_hhmm(value):
    try:
        hours, minutes = str(value).strip().replace('.', ':').split(':')[:2]
        return time(int(hours), int(minutes))
    except (ValueError, TypeError):
        raise ValidationFailed(f'Invalid time: {value}')


def _apply(record, **fields):
    for name, value in fields.items():
        setattr(record, name, value)


def get_or_build(user_id, day):
    record = Attendance.query.filter_by(user_id=user_id, date=day).first()
    if record is None:
        record = Attendance(user_id=user_id, date=day, is_holiday=False)
        db.session.add(record)
    return record


def upsert_attendance(user_id, day, status=None, clock_in=None, clock_out=None,
                      notes=None, is_holiday=False, update_holiday_global=False):
    """
    Create or update the attendance of one user on one day.

    ``clock_in``/``clock_out`` are ``HH:MM`` strings. ``None`` keeps the stored
    value, an empty string clears it. Times are only kept for PRESENT (or no
    status); any other status clears both.
    """
    if not user_id or not day:
        raise ValidationFailed('User ID and date are required')
    if status and status not in STATUSES:
        raise ValidationFailed(f'Invalid status: {status}')

    if update_holiday_global:
        return update_holiday_global_flag(day, is_holiday)

    if db.session.get(User, user_id) is None:
        raise NotFound('User not found')

    record = get_or_build(user_id, day)
    _apply(record, is_holiday=bool(is_holiday), status_enc=encrypt(status), notes_enc=encrypt(notes))

    if not status or status == 'PRESENT':
        if clock_in:
            record.clock_in_enc = encrypt_date(datetime.combine(day, parse_hhmm(clock_in)))
        elif clock_in == '':
            record.clock_in_enc = None
        if clock_out:
            record.clock_out_enc = encrypt_date(datetime.combine(day, parse_hhmm(clock_out)))
        elif clock_out == '':
            record.clock_out_enc = None
    else:
        record.clock_in_enc = None
        record.clock_out_enc = None

    db.session.commit()
    return record


def update_holiday_global_flag(day, is_holiday):
    """Set only the holiday flag of every user on ``day``."""
    count = 0
    for user in User.query.all():
        record = get_or_build(user.id, day)
        record.is_holiday = bool(is_holiday)
        count += 1
    db.session.commit()
    return count


def record_clock_times(user_id, day, clock_in=None, clock_out=None):
    """Upsert a PRESENT day from imported clock datetimes, without committing."""
    record = get_or_build(user_id, day)
    record.status_enc = encrypt('PRESENT')
    record.is_holiday = False
    record.clock_in_enc = encrypt_date(clock_in) if clock_in else None
    record.clock_out_enc = encrypt_date(clock_out) if clock_out else None
    return record


def delete_attendance(attendance_id):
    record = db.session.get(Attendance, attendance_id)
    if record is None:
        raise NotFound('Attendance not found')
    db.session.delete(record)
    db.session.commit()


def get_attendances(day):
    """Every user with their record for ``day`` (or None)."""
    records = {a.user_id: a for a in Attendance.query.filter_by(date=day).all()}
    return [{'user': user, 'attendance': records.get(user.id)} for user in User.query.order_by(User.id).all()]


def get_monthly_attendance(user_id, month, year):
    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    return (Attendance.query
            .filter(Attendance.user_id == user_id, Attendance.date >= start, Attendance.date <= end)
            .order_by(Attendance.date)
            .all())


# --- Work schedules ---

def get_work_schedules():
    schedules = WorkSchedule.query.order_by(WorkSchedule.day_of_week).all()
    if schedules:
        return schedules

    for day_of_week, name in enumerate(DAY_NAMES):
        work_day = 1 <= day_of_week <= 5
        db.session.add(WorkSchedule(
            day_of_week=day_of_week,
            day_name=name,
            start_time='08:00' if work_day else None,
            end_time='17:00' if work_day else None,
            is_work_day=work_day,
        ))
    db.session.commit()
    return WorkSchedule.query.order_by(WorkSchedule.day_of_week).all()


def update_work_schedule(day_of_week, start_time=None, end_time=None, is_work_day=True):
    if day_of_week not in range(7):
        raise ValidationFailed('Invalid day of week')
    get_work_schedules()
    for value in (start_time, end_time):
        if value:
            parse_hhmm(value)

    schedule = WorkSchedule.query.filter_by(day_of_week=day_of_week).first()
    schedule.start_time = start_time or None
    schedule.end_time = end_time or None
    schedule.is_work_day = bool(is_work_day)
    db.session.commit()
    return schedule


def create_custom_schedule(name, start_date, end_date, start_time=None, end_time=None):
    if not name or not start_date or not end_date:
        raise ValidationFailed('Name and date range are required')
    if end_date < start_date:
        raise ValidationFailed('End date must not be before start date')
    for value in (start_time, end_time):
        if value:
            parse_hhmm(value)

    schedule = CustomWorkSchedule(name=name, start_date=start_date, end_date=end_date,
                                  start_time=start_time or None, end_time=end_time or None)
    db.session.add(schedule)
    db.session.commit()
    return schedule


def list_custom_schedules():
    return CustomWorkSchedule.query.order_by(CustomWorkSchedule.start_date.desc()).all()


def delete_custom_schedule(schedule_id):
    schedule = db.session.get(CustomWorkSchedule, schedule_id)
    if schedule is None:
        raise NotFound('Custom schedule not found')
    db.session.delete(schedule)
    db.session.commit()


# --- Payroll period summaries ---

def payroll_period(calc_day, month, year, today=None):
    """
    Attendance period paid in ``month``/``year``: from ``calc_day`` of the
    previous month to the day before ``calc_day`` of this month, capped at today.

    A ``calc_day`` past the end of a short month rolls over into the next
    month (31 in February is March 3rd, or 2nd in leap years).
    """
    try:
        calc_day = int(calc_day)
    except (TypeError, ValueError):
        raise ValidationFailed('calc_day: must be a number')
    if not 1 <= calc_day <= 31:
        raise ValidationFailed('calc_day: must be between 1 and 31')
    if not 1 <= month <= 12:
        raise ValidationFailed('month: must be between 1 and 12')

    offset = timedelta(days=calc_day - 1)
    if month == 1:
        start = date(year - 1, 12, 1) + offset
    else:
        start = date(year, month - 1, 1) + offset
    end = date(year, month, 1) + offset - timedelta(days=1)
    today = today or date.today()
    return start, min(end, today)


def _python_to_sunday_first(day):
    # date.weekday(): Monday = 0
    return (day.weekday() + 1) % 7


def attendance_summary(period, user_ids=None):
    start, end = period
    users_query = User.query.order_by(User.id)
    if user_ids is not None:
        users_query = users_query.filter(User.id.in_(user_ids))
    users = users_query.all()

    schedules = {ws.day_of_week: ws for ws in get_work_schedules()}
    customs = (CustomWorkSchedule.query
               .filter(CustomWorkSchedule.start_date <= end, CustomWorkSchedule.end_date >= start)
               .all())

    records = {}
    for record in Attendance.query.filter(Attendance.date >= start, Attendance.date <= end).all():
        records[(record.user_id, record.date)] = record

    results = []
    for user in users:
        summary = {
            'id': user.id,
            'name': user.name,
            'department': user.department,
            'role': user.role,
            'totalWorkDays': 0,
            'lateCount': 0,
            'lateMinutes': 0,
            'absentCount': 0,
            'permitCount': 0,
            'noClockOutCount': 0,
        }

        day = start
        while day <= end:
            summary['totalWorkDays'] += 1
            day_of_week = _python_to_sunday_first(day)
            record = records.get((user.id, day))
            current, day = day, day + timedelta(days=1)

            # Sundays and holidays count as present
            if day_of_week == 0 or (record and record.is_holiday):
                continue

            custom = next((c for c in customs if c.start_date <= current <= c.end_date), None)
            schedule = schedules.get(day_of_week)
            if not custom and not (schedule and schedule.is_work_day):
                continue

            status = record.status if record else None
            if record is None or status == 'ABSENT':
                summary['absentCount'] += 1
            elif status in PERMIT_STATUSES:
                summary['permitCount'] += 1
            elif not status or status == 'PRESENT':
                clock_in = record.clock_in
                start_time = (custom and custom.start_time) or (schedule and schedule.start_time)
                if clock_in and start_time:
                    scheduled = datetime.combine(current, parse_hhmm(start_time))
                    if clock_in > scheduled:
                        summary['lateCount'] += 1
                        summary['lateMinutes'] += int((clock_in - scheduled).total_seconds() // 60)
                if clock_in and not record.clock_out:
                    summary['noClockOutCount'] += 1

        results.append(summary)
    return results
