import logging

from flask import request, jsonify
from flask_login import login_user, logout_user, current_user

from . import bp
from .forms import LoginForm
from business_portal.errors import Unauthorized, RateLimited
from business_portal.services import rate_limit
from business_portal.services.users import find_by_identifier, find_by_pin
from business_portal.utils.helpers import client_ip, validate_or_raise, log_audit

logger = logging.getLogger(__name__)


@bp.route('/login', methods=['POST'])
def login():
    ip = client_ip()
    status = rate_limit.get_status(ip)
    if status['isLocked']:
        minutes = -(-status['remainingSeconds'] // 60)
        raise RateLimited(f'Too many failed attempts. Try again in {minutes} minute(s).')

    form = validate_or_raise(LoginForm())
    if form.auth_type.data == 'pin':
        user = find_by_pin(form.password.data)
    else:
        user = find_by_identifier(form.identifier.data) if form.identifier.data else None
        if user is not None and not user.check_password(form.password.data):
            user = None

    if user is None:
        blocked_for = rate_limit.register_failure(ip)
        logger.info('Failed %s login from %s', form.auth_type.data, ip)
        if blocked_for:
            raise RateLimited(f'Too many failed attempts. Try again in {-(-blocked_for // 60)} minute(s).')
        raise Unauthorized('Invalid credentials')

    rate_limit.reset(ip)
    login_user(user, remember=form.remember_me.data)
    log_audit('LOGIN', 'User', user.id, f'Login via {form.auth_type.data}', user)
    return jsonify({'success': True, 'user': user.to_dict()})


@bp.route('/logout', methods=['POST'])
def logout():
    if current_user.is_authenticated:
        logout_user()
    return jsonify({'success': True})


@bp.route('/rate-limit-status')
def rate_limit_status():
    return jsonify(rate_limit.get_status(client_ip()))


@bp.route('/me')
def me():
    if not current_user.is_authenticated:
        raise Unauthorized('Unauthorized')
    return jsonify(current_user.to_dict())
