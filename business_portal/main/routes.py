import mimetypes
import os

from flask import jsonify, request, send_file
from flask_login import current_user

from . import bp
from .forms import LogActivityForm
from business_portal.auth.forms import ProfileForm, PinForm, VerifyPasswordForm
from business_portal.errors import ValidationFailed, NotFound
from business_portal.services import users as user_service
from business_portal.services import log_activity as log_service
from business_portal.services.rbac import check_access
from business_portal.services.uploads import local_path
from business_portal.services.chat import unread_total
from business_portal.utils.helpers import login_required_json, validate_or_raise, parse_date, log_audit


@bp.route('/')
@bp.route('/dashboard')
@login_required_json
def index():
    return jsonify({
        'user': current_user.to_dict(),
        'unreadMessages': unread_total(current_user),
    })


# --- Profile ---

@bp.route('/profile', methods=['GET', 'POST'])
@login_required_json
def profile():
    if request.method == 'GET':
        return jsonify(current_user.to_dict())
    form = validate_or_raise(ProfileForm())
    user_service.update_profile(current_user, name=form.name.data,
                                current_password=form.current_password.data,
                                new_password=form.new_password.data)
    log_audit('UPDATE', 'Profile', current_user.id, 'Profile updated', current_user)
    return jsonify({'success': True, 'user': current_user.to_dict()})


@bp.route('/profile/pin', methods=['GET', 'POST'])
@login_required_json
def profile_pin():
    if request.method == 'GET':
        return jsonify({'hasPin': bool(current_user.pin_enc)})
    form = validate_or_raise(PinForm())
    user_service.update_pin(current_user, form.current_password.data, form.pin.data)
    log_audit('UPDATE', 'Profile', current_user.id, 'PIN changed', current_user)
    return jsonify({'success': True})


@bp.route('/profile/verify-password', methods=['POST'])
@login_required_json
def verify_password():
    form = validate_or_raise(VerifyPasswordForm())
    return jsonify({'success': current_user.check_password(form.password.data)})


# --- Access control ---

@bp.route('/api/rbac/check')
@login_required_json
def rbac_check():
    path = request.args.get('path')
    if not path:
        raise ValidationFailed('path is required')
    return jsonify({'path': path, 'allowed': check_access(current_user, path)})


# --- Uploaded files ---

@bp.route('/api/uploads/<path:filename>')
def serve_upload(filename):
    if '..' in filename.replace('\\', '/').split('/') or filename.startswith('/'):
        raise ValidationFailed('Invalid path')
    path = local_path('/api/uploads/' + filename)
    if path is None:
        raise ValidationFailed('Invalid path')
    if not os.path.isfile(path):
        raise NotFound('File not found')

    mimetype = mimetypes.guess_type(path)[0] or 'application/octet-stream'
    response = send_file(path, mimetype=mimetype, max_age=31536000)
    response.headers['Cache-Control'] = 'public, max-age=31536000, immutable'
    return response


# --- Daily work log ---

@bp.route('/log-activity', methods=['GET'])
@login_required_json
def log_activities():
    target = request.args.get('user_id', type=int)
    logs = log_service.list_log_activities(current_user, target)
    return jsonify([log.to_dict() for log in logs])


@bp.route('/log-activity', methods=['POST'])
@login_required_json
def save_log_activity():
    form = validate_or_raise(LogActivityForm())
    log = log_service.upsert_log_activity(current_user, form.date.data, form.activity.data, form.problem.data)
    return jsonify(log.to_dict())


@bp.route('/log-activity/<int:log_id>', methods=['DELETE'])
@login_required_json
def delete_log_activity(log_id):
    log_service.delete_log_activity(current_user, log_id)
    return jsonify({'success': True})


@bp.route('/log-activity/recap')
@login_required_json
def log_activity_recap():
    if not current_user.is_admin:
        return jsonify([])
    day = parse_date(request.args.get('date'))
    if day is None:
        raise ValidationFailed('date is required')
    return jsonify([{
        'user': {'id': row['user'].id, 'name': row['user'].display_name, 'department': row['user'].department},
        'log': row['log'].to_dict() if row['log'] else None,
    } for row in log_service.daily_recap(day)])
