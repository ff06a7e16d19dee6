import logging
from datetime import datetime, timedelta

from business_portal import db
from business_portal.models import AuditLog

logger = logging.getLogger(__name__)

RETENTION_DAYS = 7


def cleanup_audit_logs(now=None):
    cutoff = (now or datetime.utcnow()) - timedelta(days=RETENTION_DAYS)
    try:
        deleted = AuditLog.query.filter(AuditLog.timestamp < cutoff).delete()
        db.session.commit()
        return deleted
    except Exception:
        db.session.rollback()
        logger.exception('Audit log cleanup failed')
        return 0


def list_audit_logs(page=1, per_page=50, action=None, performed_by=None):
    cleanup_audit_logs()
    query = AuditLog.query
    if action:
        query = query.filter(AuditLog.action == action)
    if performed_by:
        query = query.filter(AuditLog.performed_by.ilike(f'%{performed_by}%'))
    pagination = query.order_by(AuditLog.timestamp.desc()).paginate(page=page, per_page=per_page, error_out=False)
    return {
        'data': [log.to_dict() for log in pagination.items],
        'total': pagination.total,
        'pages': pagination.pages,
        'page': pagination.page,
    }
