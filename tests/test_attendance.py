from datetime import date, datetime

import pytest

from business_portal import db
from business_portal.errors import ValidationFailed
from business_portal.models import Attendance
from business_portal.services import attendance as svc

# 2026-03-02 is a Monday
MONDAY = date(2026, 3, 2)


def test_upsert_present_with_times(app, employee):
    record = svc.upsert_attendance(employee.id, MONDAY, status='PRESENT', clock_in='08:10', clock_out='17:05')
    assert record.clock_in == datetime(2026, 3, 2, 8, 10)
    assert record.clock_out == datetime(2026, 3, 2, 17, 5)
    assert record.status == 'PRESENT'


def test_upsert_is_unique_per_user_and_day(app, employee):
    svc.upsert_attendance(employee.id, MONDAY, status='PRESENT', clock_in='08:00')
    svc.upsert_attendance(employee.id, MONDAY, status='PRESENT', clock_out='17:00')
    records = Attendance.query.filter_by(user_id=employee.id).all()
    assert len(records) == 1
    # None keeps the stored clock-in
    assert records[0].clock_in == datetime(2026, 3, 2, 8, 0)
    assert records[0].clock_out == datetime(2026, 3, 2, 17, 0)


def test_empty_time_clears(app, employee):
    svc.upsert_attendance(employee.id, MONDAY, status='PRESENT', clock_in='08:00', clock_out='17:00')
    record = svc.upsert_attendance(employee.id, MONDAY, status='PRESENT', clock_out='')
    assert record.clock_in is not None
    assert record.clock_out is None


def test_non_present_status_clears_times(app, employee):
    svc.upsert_attendance(employee.id, MONDAY, status='PRESENT', clock_in='08:00', clock_out='17:00')
    record = svc.upsert_attendance(employee.id, MONDAY, status='SICK', clock_in='08:00')
    assert record.status == 'SICK'
    assert record.clock_in is None
    assert record.clock_out is None


def test_invalid_status(app, employee):
    with pytest.raises(ValidationFailed):
        svc.upsert_attendance(employee.id, MONDAY, status='HOLIDAY')


def test_global_holiday_only_touches_the_flag(app, employee, make_user):
    other = make_user()
    svc.upsert_attendance(employee.id, MONDAY, status='PRESENT', clock_in='08:00')

    count = svc.upsert_attendance(employee.id, MONDAY, is_holiday=True, update_holiday_global=True)
    assert count == 2

    mine = Attendance.query.filter_by(user_id=employee.id, date=MONDAY).one()
    assert mine.is_holiday is True
    assert mine.clock_in == datetime(2026, 3, 2, 8, 0)
    assert Attendance.query.filter_by(user_id=other.id, date=MONDAY).one().is_holiday is True


def test_work_schedule_defaults(app):
    schedules = svc.get_work_schedules()
    assert len(schedules) == 7
    assert schedules[0].day_name == 'Minggu'
    assert not schedules[0].is_work_day
    assert schedules[1].start_time == '08:00'
    assert schedules[6].is_work_day is False


def test_payroll_period():
    today = date(2026, 12, 31)
    assert svc.payroll_period(25, 3, 2026, today) == (date(2026, 2, 25), date(2026, 3, 24))
    assert svc.payroll_period(25, 1, 2026, today) == (date(2025, 12, 25), date(2026, 1, 24))
    # Capped at today
    assert svc.payroll_period(25, 3, 2026, date(2026, 3, 10)) == (date(2026, 2, 25), date(2026, 3, 10))


def test_payroll_period_cutoff_past_short_month_rolls_over():
    today = date(2030, 1, 1)
    # February 2026 has 28 days
    assert svc.payroll_period(31, 3, 2026, today) == (date(2026, 3, 3), date(2026, 3, 30))
    assert svc.payroll_period(30, 3, 2026, today) == (date(2026, 3, 2), date(2026, 3, 29))
    assert svc.payroll_period(29, 3, 2026, today) == (date(2026, 3, 1), date(2026, 3, 28))
    # Leap year
    assert svc.payroll_period(29, 3, 2028, today) == (date(2028, 2, 29), date(2028, 3, 28))
    # April has 30 days
    assert svc.payroll_period(31, 5, 2026, today) == (date(2026, 5, 1), date(2026, 5, 30))


@pytest.mark.parametrize('calc_day', [0, 32, -1])
def test_payroll_period_rejects_impossible_cutoff(calc_day):
    with pytest.raises(ValidationFailed):
        svc.payroll_period(calc_day, 3, 2026)


def test_summary_with_end_of_month_cutoff(admin_client):
    response = admin_client.get('/hr/attendance/summary?calc_day=31&month=3&year=2026')
    assert response.status_code == 200

    response = admin_client.get('/hr/attendance/summary?calc_day=40&month=3&year=2026')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'calc_day: must be between 1 and 31'


@pytest.mark.parametrize('url', [
    '/hr/attendance/monthly?month=13',
    '/hr/attendance/summary?month=0&year=2026',
    '/hr/payroll/recap?month=13&year=2026',
    '/hr/attendance/export?month=13&year=2026',
    '/inventory/production-plans?month=14',
])
def test_out_of_range_month_is_a_bad_request(admin_client, url):
    response = admin_client.get(url)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'month: must be between 1 and 12'


def test_out_of_range_year_is_a_bad_request(admin_client):
    response = admin_client.get('/hr/payroll/recap?month=3&year=99999')
    assert response.status_code == 400
    assert response.get_json()['error'].startswith('year:')


def test_summary_counts(app, employee):
    # Week of Sunday 2026-03-01 .. Saturday 2026-03-07
    period = (date(2026, 3, 1), date(2026, 3, 7))
    svc.upsert_attendance(employee.id, date(2026, 3, 2), status='PRESENT', clock_in='08:20', clock_out='17:00')
    svc.upsert_attendance(employee.id, date(2026, 3, 3), status='PRESENT', clock_in='07:55')
    svc.upsert_attendance(employee.id, date(2026, 3, 4), status='SICK')
    svc.upsert_attendance(employee.id, date(2026, 3, 5), is_holiday=True)
    # Friday 6 has no record, Saturday 7 is not a work day

    summary = svc.attendance_summary(period, user_ids=[employee.id])[0]
    assert summary['totalWorkDays'] == 7
    assert summary['lateCount'] == 1
    assert summary['lateMinutes'] == 20
    assert summary['noClockOutCount'] == 1
    assert summary['permitCount'] == 1
    assert summary['absentCount'] == 1


def test_explicit_absent_counts_as_absent(app, employee):
    svc.upsert_attendance(employee.id, MONDAY, status='ABSENT')
    summary = svc.attendance_summary((MONDAY, MONDAY), user_ids=[employee.id])[0]
    assert summary['absentCount'] == 1


def test_custom_schedule_makes_saturday_a_work_day(app, employee):
    saturday = date(2026, 3, 7)
    svc.create_custom_schedule('Stock opname', saturday, saturday, '09:00', '13:00')
    svc.upsert_attendance(employee.id, saturday, status='PRESENT', clock_in='09:30', clock_out='13:00')

    summary = svc.attendance_summary((saturday, saturday), user_ids=[employee.id])[0]
    assert summary['lateCount'] == 1
    assert summary['lateMinutes'] == 30


def test_attendance_endpoints(admin_client, employee_client, employee):
    response = admin_client.post('/hr/attendance', data={
        'user_id': str(employee.id), 'date': '2026-03-02', 'status': 'PRESENT', 'clock_in': '08:00'})
    assert response.status_code == 200

    rows = employee_client.get('/hr/attendance/monthly?month=3&year=2026').get_json()
    assert len(rows) == 1

    assert employee_client.get(f'/hr/attendance/monthly?user_id={employee.id + 100}').status_code == 403
    assert employee_client.post('/hr/attendance', data={'user_id': str(employee.id), 'date': '2026-03-02'}
                                ).status_code == 403

    summary = employee_client.get('/hr/attendance/my-summary?month=3&year=2026').get_json()
    assert summary['data']['id'] == employee.id
    assert summary['period']['startDate'] == '2026-02-25'


def test_delete_attendance(admin_client, employee):
    record = svc.upsert_attendance(employee.id, MONDAY, status='PRESENT')
    record_id = record.id
    assert admin_client.delete(f'/hr/attendance/{record_id}').status_code == 200
    db.session.expunge_all()
    assert Attendance.query.count() == 0
