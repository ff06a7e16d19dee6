import logging
import math
from datetime import datetime, date

from business_portal import db
from business_portal.models import User, OvertimeLeave
from business_portal.crypto import encrypt, encrypt_date, decrypt
from business_portal.errors import ValidationFailed, NotFound, Forbidden
from business_portal.services.uploads import validate_attachment, save_upload, delete_upload
from business_portal.services.attendance import payroll_period

logger = logging.getLogger(__name__)

REQUEST_TYPES = ('LEAVE', 'OVERTIME', 'VACATION', 'OVERTIME_SUBMISSION')
FILTER_TYPES = ('ORDER', 'OVERTIME_SUBMISSION', 'LEAVE', 'VACATION')
DECISIONS = ('APPROVED', 'REJECTED')


def create_request(user, type, day, reason, attachment=None, amount=None):
    if type not in REQUEST_TYPES:
        raise ValidationFailed('Invalid request type')
    # A self-submitted overtime is an OVERTIME row without requester name
    if type == 'OVERTIME_SUBMISSION':
        type = 'OVERTIME'
    if not day:
        raise ValidationFailed('Date is required')
    if not (reason or '').strip():
        raise ValidationFailed('Reason is required')

    attachment_path = None
    if attachment is not None and attachment.filename:
        validate_attachment(attachment)
        attachment_path = save_upload(attachment)

    request = OvertimeLeave(
        user_id=user.id,
        date_enc=encrypt_date(datetime.combine(day, datetime.min.time())),
        type_enc=encrypt(type),
        reason_enc=encrypt(reason.strip()),
        attachment_enc=encrypt(attachment_path),
        amount_enc=encrypt(str(float(amount))) if amount not in (None, '') else None,
        status_enc=encrypt('PENDING'),
    )
    db.session.add(request)
    db.session.commit()
    return request


def create_overtime_order(user_id, requester_name, job, amount):
    """Overtime ordered by an admin on behalf of an employee, approved immediately."""
    if db.session.get(User, user_id) is None:
        raise NotFound('User not found')
    if not (job or '').strip():
        raise ValidationFailed('Job description is required')
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise ValidationFailed('Invalid amount')

    order = OvertimeLeave(
        user_id=user_id,
        date_enc=encrypt_date(datetime.utcnow()),
        type_enc=encrypt('OVERTIME'),
        reason_enc=encrypt(f'Perintah Lembur: {job.strip()}'),
        requester_name_enc=encrypt(requester_name),
        job_enc=encrypt(job.strip()),
        amount_enc=encrypt(str(amount)),
        status_enc=encrypt('APPROVED'),
    )
    db.session.add(order)
    db.session.commit()
    return order


def _category(item):
    if item.type == 'OVERTIME':
        return 'ORDER' if decrypt(item.requester_name_enc) else 'OVERTIME_SUBMISSION'
    if item.type in ('LEAVE', 'VACATION'):
        return item.type
    return None


def list_requests(user, page=1, limit=50, types=None, own_only=False, month=None, year=None, calc_day=25):
    """Requests visible to ``user``, filtered in memory since every field is encrypted."""
    types = types or FILTER_TYPES
    query = OvertimeLeave.query
    if not user.is_admin or own_only:
        query = query.filter_by(user_id=user.id)
    items = query.order_by(OvertimeLeave.id.desc()).all()

    period = None
    if month and year:
        period = payroll_period(calc_day, month, year, today=date.max)

    filtered = []
    for item in items:
        if period:
            day = item.date
            if day is None or not period[0] <= day <= period[1]:
                continue
        if _category(item) in types:
            filtered.append(item)

    filtered.sort(key=lambda i: i.created_at, reverse=True)
    total = len(filtered)
    page = max(int(page), 1)
    start = (page - 1) * limit
    return {
        'data': [item.to_dict() for item in filtered[start:start + limit]],
        'total': total,
        'pages': math.ceil(total / limit) if limit else 1,
        'period': {'startDate': period[0].isoformat(), 'endDate': period[1].isoformat()} if period else None,
    }


def pending_count():
    return sum(1 for item in OvertimeLeave.query.all() if item.status == 'PENDING')


def update_status(request_id, status, admin_note=None, amount=None):
    if status not in DECISIONS:
        raise ValidationFailed('Status must be APPROVED or REJECTED')
    request = db.session.get(OvertimeLeave, request_id)
    if request is None:
        raise NotFound('Request not found')
    if request.status != 'PENDING':
        raise ValidationFailed('Only pending requests can be changed')

    request.status_enc = encrypt(status)
    if admin_note is not None:
        request.admin_note_enc = encrypt(admin_note)
    if amount not in (None, ''):
        request.amount_enc = encrypt(str(float(amount)))
    db.session.commit()
    return request


def delete_request(user, request_id):
    request = db.session.get(OvertimeLeave, request_id)
    if request is None:
        raise NotFound('Request not found')
    if request.user_id != user.id:
        raise Forbidden('Forbidden')
    if request.status != 'PENDING':
        raise ValidationFailed('Only pending requests can be deleted')

    attachment = decrypt(request.attachment_enc)
    db.session.delete(request)
    db.session.commit()
    if attachment:
        delete_upload(attachment)
