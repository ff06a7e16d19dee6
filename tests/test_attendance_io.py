import io
from datetime import date, datetime, time

import pandas as pd
import pytest

from business_portal.errors import ValidationFailed
from business_portal.excel import parse_excel_date, parse_excel_minutes, parse_grid_cell
from business_portal.models import Attendance
from business_portal.services import attendance_io
from business_portal.services.attendance import upsert_attendance


def xlsx(rows, columns=None, header=True):
    output = io.BytesIO()
    pd.DataFrame(rows, columns=columns).to_excel(output, index=False, header=header)
    output.seek(0)
    return output


def test_excel_cell_parsing():
    assert parse_excel_date(46083) == date(2026, 3, 2)
    assert parse_excel_date('2026-03-02') == date(2026, 3, 2)
    assert parse_excel_date(datetime(2026, 3, 2, 8, 0)) == date(2026, 3, 2)
    assert parse_excel_minutes(0.5) == 720
    assert parse_excel_minutes(time(8, 5)) == 485
    assert parse_excel_minutes('17:30') == 1050
    assert parse_excel_minutes('later') is None


def test_out_of_range_times_are_not_times_of_day():
    assert parse_excel_minutes('25:00') is None
    assert parse_excel_minutes('24:00') is None
    assert parse_excel_minutes('08:75') is None
    assert parse_excel_minutes('-1:30') is None
    assert parse_excel_minutes('23:59') == 1439
    assert parse_excel_minutes('00:00') == 0


def test_template_lists_users(app, employee):
    df = pd.read_excel(attendance_io.attendance_template())
    assert list(df.columns) == ['ID', 'Nama', 'Date', 'Time']
    assert employee.id in df['ID'].tolist()


def test_import_pairs_clock_events(app, employee):
    sheet = xlsx([
        [employee.id, 'Budi', '2026-03-02', '08:15'],
        [employee.id, 'Budi', '2026-03-02', '07:58'],
        [employee.id, 'Budi', '2026-03-02', '17:02'],
        [employee.id, 'Budi', '2026-03-02', '16:30'],
        [employee.id, 'Budi', '2026-03-03', '12:30'],
        [9999, 'Nobody', '2026-03-02', '08:00'],
    ], columns=['id', 'Nama', 'DATE', 'Time'])

    assert attendance_io.import_raw_attendance(sheet) == {'success': True, 'count': 2, 'errors': []}

    first = Attendance.query.filter_by(user_id=employee.id, date=date(2026, 3, 2)).one()
    assert first.status == 'PRESENT'
    assert first.clock_in == datetime(2026, 3, 2, 7, 58)
    assert first.clock_out == datetime(2026, 3, 2, 17, 2)

    second = Attendance.query.filter_by(user_id=employee.id, date=date(2026, 3, 3)).one()
    assert second.clock_in is None
    assert second.clock_out == datetime(2026, 3, 3, 12, 30)


def test_import_requires_columns(app):
    with pytest.raises(ValidationFailed, match=r'Required columns \(ID, Date, Time\) not found'):
        attendance_io.import_raw_attendance(xlsx([[1, '2026-03-02']], columns=['ID', 'Date']))


def test_import_rejects_empty_file(app):
    with pytest.raises(ValidationFailed, match='File empty or invalid'):
        attendance_io.import_raw_attendance(xlsx([], columns=['ID', 'Date', 'Time']))


def test_export_raw_attendance(app, employee):
    upsert_attendance(employee.id, date(2026, 3, 2), status='PRESENT', clock_in='08:00', clock_out='17:00')
    book = pd.read_excel(attendance_io.export_raw_attendance(3, 2026), sheet_name=None)
    assert list(book) == ['Attendance 3-2026']
    assert book['Attendance 3-2026']['Time'].tolist() == ['08:00', '17:00']

    assert list(pd.read_excel(attendance_io.export_raw_attendance(), sheet_name=None)) == ['All Attendance']


@pytest.mark.parametrize('text, expected', [
    ('08:00-17:00', ('PRESENT', False, time(8, 0), time(17, 0))),
    ('8.05 – 16.45', ('PRESENT', False, time(8, 5), time(16, 45))),
    ('07:55', ('PRESENT', False, time(7, 55), None)),
    ('libur', (None, True, None, None)),
    ('SAKIT', ('SICK', False, None, None)),
    ('IZIN', ('PERMIT', False, None, None)),
    ('CUTI', ('LEAVE', False, None, None)),
    ('ALPA', ('ABSENT', False, None, None)),
    ('ABSEN', ('ABSENT', False, None, None)),
])
def test_grid_vocabulary(text, expected):
    cell = parse_grid_cell(text)
    assert (cell['status'], cell['is_holiday'], cell['clock_in'], cell['clock_out']) == expected


def test_grid_blank_and_unknown():
    assert parse_grid_cell(None) is None
    assert parse_grid_cell('  ') is None
    with pytest.raises(ValueError):
        parse_grid_cell('WFH')


def test_grid_import_reports_cells(app, employee):
    header = ['ID', 'Nama', 1, 2, 3]
    sheet = xlsx([
        [employee.id, 'Budi', '08:00-17:00', 'SAKIT', 'WFH'],
        [4242, 'Ghost', 'LIBUR', None, None],
    ], columns=header)

    result = attendance_io.import_attendance_grid(sheet, 3, 2026)
    assert result['count'] == 2
    assert 'E2: Unrecognised value "WFH"' in result['errors']
    assert 'Unknown user ID 4242' in result['errors']

    sick = Attendance.query.filter_by(user_id=employee.id, date=date(2026, 3, 2)).one()
    assert sick.status == 'SICK'


def test_grid_round_trip_is_idempotent(app, employee):
    upsert_attendance(employee.id, date(2026, 3, 2), status='PRESENT', clock_in='08:00', clock_out='17:00')
    upsert_attendance(employee.id, date(2026, 3, 3), status='LEAVE')
    upsert_attendance(employee.id, date(2026, 3, 4), is_holiday=True)

    exported = attendance_io.export_attendance_grid(3, 2026).getvalue()
    first = attendance_io.import_attendance_grid(io.BytesIO(exported), 3, 2026)
    second = attendance_io.import_attendance_grid(io.BytesIO(exported), 3, 2026)

    assert first['errors'] == second['errors'] == []
    assert first['count'] == second['count'] == 3
    assert Attendance.query.filter_by(user_id=employee.id).count() == 3
    again = attendance_io.export_attendance_grid(3, 2026).getvalue()
    assert pd.read_excel(io.BytesIO(again)).equals(pd.read_excel(io.BytesIO(exported)))


def test_grid_endpoints(admin_client, employee):
    response = admin_client.get('/hr/attendance/grid?month=3&year=2026')
    assert response.status_code == 200
    assert response.mimetype.endswith('spreadsheetml.sheet')

    upload = xlsx([[employee.id, 'Budi', '08:00-17:00']], columns=['ID', 'Nama', 1])
    response = admin_client.post('/hr/attendance/grid?month=3&year=2026',
                                 data={'file': (upload, 'absensi.xlsx')}, content_type='multipart/form-data')
    assert response.status_code == 200
    assert response.get_json()['count'] == 1


def test_import_skips_and_reports_bad_time_cells(app, employee):
    sheet = xlsx([
        [employee.id, 'Budi', '2026-03-02', '25:00'],
        [employee.id, 'Budi', '2026-03-02', '08:00'],
        [employee.id, 'Budi', '2026-03-03', 'pagi'],
        ['abc', 'Budi', '2026-03-03', '08:00'],
    ], columns=['ID', 'Nama', 'Date', 'Time'])

    result = attendance_io.import_raw_attendance(sheet)

    assert result['count'] == 1
    assert result['errors'] == [
        'D2: invalid time "25:00"',
        'D4: invalid time "pagi"',
        'A5: invalid user ID "abc"',
    ]
    record = Attendance.query.filter_by(user_id=employee.id, date=date(2026, 3, 2)).one()
    assert record.clock_in == datetime(2026, 3, 2, 8, 0)
    assert record.clock_out is None


def test_import_endpoint_reports_bad_rows(admin_client, employee):
    upload = xlsx([[employee.id, 'Budi', '2026-03-02', '25:00']], columns=['ID', 'Nama', 'Date', 'Time'])
    response = admin_client.post('/hr/attendance/import', data={'file': (upload, 'absen.xlsx')},
                                 content_type='multipart/form-data')
    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'count': 0, 'errors': ['D2: invalid time "25:00"']}
