import logging

from flask import request, jsonify
from flask_login import current_user

from . import bp
from .forms import UserForm, ApiSettingsForm, SalaryCalcDayForm
from business_portal.errors import ValidationFailed, PortalError
from business_portal.services import users as user_service
from business_portal.services import certificates
from business_portal.services.audit import list_audit_logs
from business_portal.services.rbac import get_rbac_config, save_rbac_config
from business_portal.services.settings import (get_api_settings, save_api_settings, check_api_connection,
                                                get_salary_calc_day, set_setting)
from business_portal.utils.helpers import admin_required, roles_required, validate_or_raise, log_audit

logger = logging.getLogger(__name__)


# --- Users ---

@bp.route('/admin/users')
@admin_required
def users():
    return jsonify([u.to_dict() for u in user_service.list_users()])


@bp.route('/admin/users', methods=['POST'])
@admin_required
def create_user():
    form = validate_or_raise(UserForm())
    if not form.password.data:
        raise ValidationFailed('password: This field is required.')
    user = user_service.create_user(form.name.data, form.email.data, form.username.data, form.password.data,
                                    department=form.department.data, role=form.role.data, pin=form.pin.data)
    log_audit('CREATE', 'User', user.id, f'Created user {user.username} ({user.role})', current_user)
    return jsonify(user.to_dict()), 201


@bp.route('/admin/users/<int:user_id>', methods=['POST', 'PUT'])
@admin_required
def update_user(user_id):
    form = validate_or_raise(UserForm())
    user = user_service.update_user(user_id, form.name.data, form.email.data, form.username.data,
                                    department=form.department.data, role=form.role.data,
                                    password=form.password.data, pin=form.pin.data)
    log_audit('UPDATE', 'User', user.id, f'Updated user {user.username}', current_user)
    return jsonify(user.to_dict())


@bp.route('/admin/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    user_service.delete_user(user_id, acting_user=current_user)
    log_audit('DELETE', 'User', user_id, 'Deleted user', current_user)
    return jsonify({'success': True})


@bp.route('/admin/users/<int:user_id>/toggle-role', methods=['POST'])
@admin_required
def toggle_user_role(user_id):
    user = user_service.toggle_role(user_id)
    log_audit('UPDATE', 'User', user.id, f'Role changed to {user.role}', current_user)
    return jsonify(user.to_dict())


# --- Page access ---

@bp.route('/api/rbac', methods=['GET'])
@admin_required
def rbac_config():
    return jsonify({'config': get_rbac_config()})


@bp.route('/api/rbac', methods=['POST'])
@roles_required('ADMIN')
def save_rbac():
    config = save_rbac_config((request.get_json(silent=True) or {}).get('config'))
    log_audit('UPDATE', 'Settings', None, 'RBAC configuration saved', current_user)
    return jsonify({'success': True, 'config': config})


# --- Settings ---

@bp.route('/admin/settings/api', methods=['GET'])
@roles_required('ADMIN')
def api_settings():
    settings = get_api_settings()
    settings['hasApiKey'] = bool(settings.pop('apiKey'))
    return jsonify(settings)


@bp.route('/admin/settings/api', methods=['POST'])
@roles_required('ADMIN')
def save_api():
    form = validate_or_raise(ApiSettingsForm())
    data = {name: field.data for name, field in form._fields.items() if name != 'csrf_token'}
    # A blank key keeps the stored one
    if not data.get('apiKey'):
        data.pop('apiKey')
    save_api_settings(data)
    log_audit('UPDATE', 'Settings', None, 'API settings saved', current_user)
    return jsonify({'success': True})


@bp.route('/admin/settings/api/test', methods=['POST'])
@roles_required('ADMIN')
def test_api():
    return jsonify(check_api_connection())


@bp.route('/admin/settings/salary-calc-day', methods=['GET', 'POST'])
@admin_required
def salary_calc_day():
    if request.method == 'POST':
        form = validate_or_raise(SalaryCalcDayForm())
        set_setting('SALARY_CALC_DAY', str(form.day.data))
        log_audit('UPDATE', 'Settings', None, f'Salary calculation day set to {form.day.data}', current_user)
    return jsonify({'day': get_salary_calc_day()})


# --- Audit trail ---

@bp.route('/admin/audit_logs')
@admin_required
def audit_logs():
    return jsonify(list_audit_logs(
        page=request.args.get('page', 1, type=int),
        action=request.args.get('action'),
        performed_by=request.args.get('user'),
    ))


# --- Certificates (external document service) ---

def _api_result(response, status=200):
    if not response.success:
        raise PortalError(response.error or 'Request failed', status=502 if response.status is None else 400)
    return jsonify(response.data), status


@bp.route('/admin/certificates')
@roles_required('ADMIN', 'HRD', 'ADMINISTRASI')
def list_certificates():
    return _api_result(certificates.list_certificates(request.args.get('page', 1, type=int),
                                                      request.args.get('search')))


@bp.route('/admin/certificates/generate-number')
@roles_required('ADMIN', 'HRD', 'ADMINISTRASI')
def certificate_number():
    return jsonify({'certificate_number': certificates.generate_number()})


@bp.route('/admin/certificates/<int:certificate_id>')
@roles_required('ADMIN', 'HRD', 'ADMINISTRASI')
def get_certificate(certificate_id):
    return _api_result(certificates.get_certificate(certificate_id))


@bp.route('/admin/certificates', methods=['POST'])
@roles_required('ADMIN', 'HRD', 'ADMINISTRASI')
def create_certificate():
    data = request.get_json(silent=True) or {}
    if not data.get('recipient_name'):
        raise ValidationFailed('recipient_name: This field is required.')
    result = _api_result(certificates.create_certificate(data), 201)
    log_audit('CREATE', 'Certificate', None, f"Certificate for {data['recipient_name']}", current_user)
    return result


@bp.route('/admin/certificates/<int:certificate_id>', methods=['PUT'])
@roles_required('ADMIN', 'HRD', 'ADMINISTRASI')
def update_certificate(certificate_id):
    return _api_result(certificates.update_certificate(certificate_id, request.get_json(silent=True) or {}))


@bp.route('/admin/certificates/<int:certificate_id>', methods=['DELETE'])
@roles_required('ADMIN', 'HRD', 'ADMINISTRASI')
def delete_certificate(certificate_id):
    result = _api_result(certificates.delete_certificate(certificate_id))
    log_audit('DELETE', 'Certificate', certificate_id, 'Certificate deleted', current_user)
    return result
