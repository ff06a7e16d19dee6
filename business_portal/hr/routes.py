import io
import json
import logging
from datetime import date

from flask import request, jsonify, send_file, current_app
from flask_login import current_user

from . import bp
from .forms import (AttendanceForm, WorkScheduleForm, CustomScheduleForm, SpreadsheetForm, SalaryComponentForm,
                    PayrollForm, OvertimeLeaveForm, OvertimeOrderForm, DecisionForm)
from business_portal.errors import ValidationFailed, Forbidden
from business_portal.pdf import generate_payslip_pdf
from business_portal.services import attendance as attendance_service
from business_portal.services import attendance_io
from business_portal.services import payroll as payroll_service
from business_portal.services import overtime_leave as request_service
from business_portal.services.settings import get_salary_calc_day, get_setting
from business_portal.utils.helpers import (admin_required, login_required_json, validate_or_raise, parse_date,
                                           month_year_args, log_audit)

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _xlsx(output, filename):
    return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


# --- Attendance ---

@bp.route('/attendance')
@admin_required
def attendances():
    day = parse_date(request.args.get('date')) or date.today()
    return jsonify({
        'date': day.isoformat(),
        'rows': [{
            'user': {'id': row['user'].id, 'name': row['user'].display_name,
                     'department': row['user'].department},
            'attendance': row['attendance'].to_dict() if row['attendance'] else None,
        } for row in attendance_service.get_attendances(day)],
    })


@bp.route('/attendance', methods=['POST'])
@admin_required
def save_attendance():
    form = validate_or_raise(AttendanceForm())
    if form.update_holiday_global.data:
        count = attendance_service.upsert_attendance(form.user_id.data, form.date.data,
                                                     is_holiday=form.is_holiday.data, update_holiday_global=True)
        log_audit('UPDATE', 'Attendance', None,
                  f"Holiday {'set' if form.is_holiday.data else 'cleared'} on {form.date.data} for {count} users",
                  current_user)
        return jsonify({'success': True, 'count': count})

    record = attendance_service.upsert_attendance(
        form.user_id.data, form.date.data,
        status=form.status.data or None,
        clock_in=form.clock_in.data,
        clock_out=form.clock_out.data,
        notes=form.notes.data,
        is_holiday=form.is_holiday.data,
    )
    return jsonify(record.to_dict())


@bp.route('/attendance/<int:attendance_id>', methods=['DELETE'])
@admin_required
def delete_attendance(attendance_id):
    attendance_service.delete_attendance(attendance_id)
    log_audit('DELETE', 'Attendance', attendance_id, 'Attendance deleted', current_user)
    return jsonify({'success': True})


@bp.route('/attendance/monthly')
@login_required_json
def monthly_attendance():
    month, year = month_year_args()
    user_id = request.args.get('user_id', type=int) or current_user.id
    if user_id != current_user.id and not current_user.is_admin:
        raise Forbidden('You can only view your own attendance')
    records = attendance_service.get_monthly_attendance(user_id, month, year)
    return jsonify([r.to_dict() for r in records])


def _summary_period():
    month, year = month_year_args()
    calc_day = request.args.get('calc_day', type=int) or get_salary_calc_day()
    return attendance_service.payroll_period(calc_day, month, year)


def _period_dict(period):
    return {'startDate': period[0].isoformat(), 'endDate': period[1].isoformat()}


@bp.route('/attendance/summary')
@admin_required
def attendance_summary():
    period = _summary_period()
    return jsonify({'data': attendance_service.attendance_summary(period), 'period': _period_dict(period)})


@bp.route('/attendance/my-summary')
@login_required_json
def my_attendance_summary():
    period = _summary_period()
    rows = attendance_service.attendance_summary(period, user_ids=[current_user.id])
    return jsonify({'data': rows[0] if rows else None, 'period': _period_dict(period)})


# --- Attendance spreadsheets ---

@bp.route('/attendance/template')
@admin_required
def attendance_template():
    return _xlsx(attendance_io.attendance_template(), 'template_import_absensi.xlsx')


@bp.route('/attendance/import', methods=['POST'])
@admin_required
def import_attendance():
    form = validate_or_raise(SpreadsheetForm())
    result = attendance_io.import_raw_attendance(form.file.data)
    log_audit('IMPORT', 'Attendance', None, f"Imported {result['count']} attendance days", current_user)
    return jsonify(result)


@bp.route('/attendance/export')
@admin_required
def export_attendance():
    month, year = month_year_args(default_today=False)
    output = attendance_io.export_raw_attendance(month, year)
    suffix = f'{month}-{year}' if month and year else 'all'
    return _xlsx(output, f'attendance_{suffix}.xlsx')


@bp.route('/attendance/grid')
@admin_required
def export_attendance_grid():
    month, year = month_year_args()
    return _xlsx(attendance_io.export_attendance_grid(month, year), f'absensi_{month}-{year}.xlsx')


@bp.route('/attendance/grid', methods=['POST'])
@admin_required
def import_attendance_grid():
    form = validate_or_raise(SpreadsheetForm())
    month, year = month_year_args()
    result = attendance_io.import_attendance_grid(form.file.data, month, year)
    log_audit('IMPORT', 'Attendance', None,
              f"Grid {month}-{year}: {result['count']} cells, {len(result['errors'])} errors", current_user)
    return jsonify(result)


# --- Work schedules ---

@bp.route('/work-schedule')
@login_required_json
def work_schedules():
    return jsonify([s.to_dict() for s in attendance_service.get_work_schedules()])


@bp.route('/work-schedule', methods=['POST'])
@admin_required
def update_work_schedule():
    form = validate_or_raise(WorkScheduleForm())
    schedule = attendance_service.update_work_schedule(form.day_of_week.data, form.start_time.data,
                                                       form.end_time.data, form.is_work_day.data)
    return jsonify(schedule.to_dict())


@bp.route('/custom-schedule')
@login_required_json
def custom_schedules():
    return jsonify([s.to_dict() for s in attendance_service.list_custom_schedules()])


@bp.route('/custom-schedule', methods=['POST'])
@admin_required
def create_custom_schedule():
    form = validate_or_raise(CustomScheduleForm())
    schedule = attendance_service.create_custom_schedule(form.name.data, form.start_date.data, form.end_date.data,
                                                         form.start_time.data, form.end_time.data)
    return jsonify(schedule.to_dict()), 201


@bp.route('/custom-schedule/<int:schedule_id>', methods=['DELETE'])
@admin_required
def delete_custom_schedule(schedule_id):
    attendance_service.delete_custom_schedule(schedule_id)
    return jsonify({'success': True})


# --- Salary components & payroll ---

@bp.route('/salary-components')
@admin_required
def salary_components():
    components = payroll_service.get_salary_components(request.args.get('type'))
    return jsonify([c.to_dict() for c in components])


@bp.route('/salary-components', methods=['POST'])
@admin_required
def create_salary_component():
    form = validate_or_raise(SalaryComponentForm())
    component = payroll_service.create_salary_component(form.name.data, form.type.data)
    return jsonify(component.to_dict()), 201


@bp.route('/salary-components/<int:component_id>', methods=['DELETE'])
@admin_required
def delete_salary_component(component_id):
    payroll_service.delete_salary_component(component_id)
    return jsonify({'success': True})


def _payroll_items(raw):
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError:
        raise ValidationFailed('items: invalid JSON')
    if not isinstance(items, list):
        raise ValidationFailed('items: expected a list')
    return items


@bp.route('/payroll', methods=['POST'])
@admin_required
def save_payroll():
    form = validate_or_raise(PayrollForm())
    payroll = payroll_service.upsert_payroll(
        form.user_id.data, form.month.data, form.year.data, form.basic_salary.data,
        _payroll_items(form.items.data),
        slip=form.salary_slip.data or None,
        remove_slip=form.remove_salary_slip.data,
    )
    log_audit('UPDATE', 'Payroll', payroll.id,
              f'Payroll {payroll.month}/{payroll.year} for user {payroll.user_id}', current_user)
    return jsonify(payroll.to_dict())


@bp.route('/payroll')
@login_required_json
def get_payroll():
    month, year = month_year_args()
    user_id = request.args.get('user_id', type=int) or current_user.id
    if user_id != current_user.id and not current_user.is_admin:
        raise Forbidden('You can only view your own payroll')
    payroll = payroll_service.get_payroll(user_id, month, year)
    return jsonify(payroll.to_dict() if payroll else None)


@bp.route('/payroll/<int:payroll_id>', methods=['DELETE'])
@admin_required
def delete_payroll(payroll_id):
    payroll_service.delete_payroll(payroll_id)
    log_audit('DELETE', 'Payroll', payroll_id, 'Payroll deleted', current_user)
    return jsonify({'success': True})


@bp.route('/payroll/recap')
@admin_required
def payroll_recap():
    month, year = month_year_args()
    return jsonify(payroll_service.monthly_recap(month, year))


@bp.route('/payroll/<int:payroll_id>/pdf')
@login_required_json
def payslip_pdf(payroll_id):
    payroll = payroll_service.get_payroll_by_id(payroll_id)
    if payroll.user_id != current_user.id and not current_user.is_admin:
        raise Forbidden('You can only download your own payslip')

    period = attendance_service.payroll_period(get_salary_calc_day(), payroll.month, payroll.year)
    summary = attendance_service.attendance_summary(period, user_ids=[payroll.user_id])
    content = generate_payslip_pdf(payroll, company_name=get_setting('SENDER_NAME'),
                                   summary=summary[0] if summary else None,
                                   letterhead=current_app.config.get('PAYSLIP_LETTERHEAD'))
    return send_file(io.BytesIO(content), mimetype='application/pdf', as_attachment=True,
                     download_name=f'payslip_{payroll.year}_{payroll.month:02d}_{payroll.user_id}.pdf')


# --- Overtime & leave requests ---

@bp.route('/requests')
@login_required_json
def list_requests():
    types = request.args.getlist('type') or None
    month, year = month_year_args(default_today=False)
    return jsonify(request_service.list_requests(
        current_user,
        page=request.args.get('page', 1, type=int),
        limit=request.args.get('limit', 50, type=int),
        types=types,
        own_only=request.args.get('own') == '1',
        month=month, year=year,
        calc_day=get_salary_calc_day(),
    ))


@bp.route('/requests', methods=['POST'])
@login_required_json
def create_request():
    form = validate_or_raise(OvertimeLeaveForm())
    item = request_service.create_request(current_user, form.type.data, form.date.data, form.reason.data,
                                          attachment=form.attachment.data or None, amount=form.amount.data)
    return jsonify(item.to_dict()), 201


@bp.route('/requests/order', methods=['POST'])
@admin_required
def create_overtime_order():
    form = validate_or_raise(OvertimeOrderForm())
    item = request_service.create_overtime_order(form.user_id.data, form.requester_name.data,
                                                 form.job.data, form.amount.data)
    log_audit('CREATE', 'OvertimeLeave', item.id, f'Overtime order for user {item.user_id}', current_user)
    return jsonify(item.to_dict()), 201


@bp.route('/requests/pending-count')
@admin_required
def pending_requests():
    return jsonify({'count': request_service.pending_count()})


@bp.route('/requests/<int:request_id>/status', methods=['POST'])
@admin_required
def decide_request(request_id):
    form = validate_or_raise(DecisionForm())
    item = request_service.update_status(request_id, form.status.data, form.admin_note.data, form.amount.data)
    log_audit('UPDATE', 'OvertimeLeave', item.id, f'Request {form.status.data.lower()}', current_user)
    return jsonify(item.to_dict())


@bp.route('/requests/<int:request_id>', methods=['DELETE'])
@login_required_json
def delete_request(request_id):
    request_service.delete_request(current_user, request_id)
    return jsonify({'success': True})
