import calendar
import logging
from datetime import date, datetime, time

from business_portal import db
from business_portal.models import User, Attendance
from business_portal.crypto import encrypt, encrypt_date
from business_portal.excel import (generate_attendance_template, read_raw_attendance,
                                   export_raw_attendance_to_excel, export_attendance_grid_to_excel,
                                   read_attendance_grid)
from business_portal.services.attendance import get_or_build, record_clock_times

logger = logging.getLogger(__name__)


def _at(day, minutes):
    return datetime.combine(day, time(minutes // 60, minutes % 60))


def attendance_template():
    return generate_attendance_template(User.query.order_by(User.id).all())


def import_raw_attendance(file):
    aggregated, errors = read_raw_attendance(file)
    known = {u.id for u in User.query.with_entities(User.id).all()}

    count = 0
    try:
        for (user_id, day), (clock_in, clock_out) in sorted(aggregated.items()):
            if user_id not in known:
                continue
            record_clock_times(
                user_id, day,
                clock_in=_at(day, clock_in) if clock_in is not None else None,
                clock_out=_at(day, clock_out) if clock_out is not None else None,
            )
            count += 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Raw attendance import failed')
        raise
    logger.info('Imported %s attendance day(s), %s row(s) skipped', count, len(errors))
    return {'success': True, 'count': count, 'errors': errors}


def export_raw_attendance(month=None, year=None):
    query = Attendance.query
    if month and year:
        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        query = query.filter(Attendance.date >= start, Attendance.date <= end)
    records = query.order_by(Attendance.date, Attendance.user_id).all()
    return export_raw_attendance_to_excel(records, month, year)


def export_attendance_grid(month, year):
    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    records = Attendance.query.filter(Attendance.date >= start, Attendance.date <= end).all()
    users = User.query.order_by(User.id).all()
    return export_attendance_grid_to_excel(users, records, month, year)


def import_attendance_grid(file, month, year):
    entries, errors = read_attendance_grid(file, month, year)
    known = {u.id for u in User.query.with_entities(User.id).all()}
    reported = set()

    count = 0
    try:
        for user_id, day, cell in entries:
            if user_id not in known:
                if user_id not in reported:
                    errors.append(f'Unknown user ID {user_id}')
                    reported.add(user_id)
                continue
            record = get_or_build(user_id, day)
            record.is_holiday = cell['is_holiday']
            record.status_enc = encrypt(cell['status'])
            record.clock_in_enc = encrypt_date(datetime.combine(day, cell['clock_in'])) if cell['clock_in'] else None
            record.clock_out_enc = encrypt_date(datetime.combine(day, cell['clock_out'])) if cell['clock_out'] else None
            count += 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Attendance grid import failed')
        raise
    return {'success': True, 'count': count, 'errors': errors}
