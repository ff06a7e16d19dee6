import logging
from functools import wraps
from datetime import datetime, date

from flask import request
from flask_login import current_user

from business_portal.errors import Unauthorized, Forbidden, ValidationFailed

logger = logging.getLogger(__name__)

MIN_YEAR, MAX_YEAR = 2000, 2100


def log_audit(action, resource_type, resource_id, details, user):
    """
    Logs a system action to the AuditLog table.
    user: The User model instance performing the action.
    """
    from business_portal import db
    from business_portal.models import AuditLog

    performed_by = (user.username or user.email) if user else None
    log = AuditLog(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        performed_by=performed_by or "System/Unknown"
    )
    db.session.add(log)
    try:
        db.session.commit()
    except Exception:
        logger.exception('Failed to write audit log')
        db.session.rollback()


def login_required_json(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            raise Unauthorized('Unauthorized')
        return f(*args, **kwargs)
    return decorated_function


def roles_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                raise Unauthorized('Unauthorized')
            if current_user.role not in roles:
                raise Forbidden('You do not have permission to perform this action')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = roles_required('ADMIN', 'HRD')


def client_ip():
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()
    return request.remote_addr or 'unknown'


def form_error(form):
    """First validation error of a FlaskForm as ``field: message``."""
    for field, messages in form.errors.items():
        if messages:
            return f"{field}: {messages[0]}"
    return 'Invalid form data'


def validate_or_raise(form):
    if not form.validate_on_submit():
        raise ValidationFailed(form_error(form))
    return form


def parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError:
        raise ValidationFailed(f'Invalid date: {value}')


def month_year_args(default_today=True):
    month = request.args.get('month', type=int)
    year = request.args.get('year', type=int)
    if month is not None and not 1 <= month <= 12:
        raise ValidationFailed('month: must be between 1 and 12')
    if year is not None and not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationFailed(f'year: must be between {MIN_YEAR} and {MAX_YEAR}')
    if default_today:
        today = date.today()
        month = month or today.month
        year = year or today.year
    return month, year
