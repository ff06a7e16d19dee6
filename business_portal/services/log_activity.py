from business_portal import db
from business_portal.models import User, LogActivity
from business_portal.errors import ValidationFailed, NotFound, Forbidden


def upsert_log_activity(user, day, activity, problem=None):
    if not day:
        raise ValidationFailed('Date is required')
    if not (activity or '').strip():
        raise ValidationFailed('Activity is required')

    log = LogActivity.query.filter_by(user_id=user.id, date=day).first()
    if log is None:
        log = LogActivity(user_id=user.id, date=day)
        db.session.add(log)
    log.activity = activity.strip()
    log.problem = (problem or '').strip() or None
    db.session.commit()
    return log


def list_log_activities(user, target_user_id=None):
    """Own logs, or another user's when ``user`` is an admin."""
    owner_id = user.id
    if target_user_id and target_user_id != user.id:
        if not user.is_admin:
            raise Forbidden('You can only view your own activity log')
        owner_id = target_user_id
    return LogActivity.query.filter_by(user_id=owner_id).order_by(LogActivity.date.desc()).all()


def delete_log_activity(user, log_id):
    log = db.session.get(LogActivity, log_id)
    if log is None:
        raise NotFound('Log not found')
    if log.user_id != user.id and not user.is_admin:
        raise Forbidden('Forbidden')
    db.session.delete(log)
    db.session.commit()


def daily_recap(day):
    logs = {log.user_id: log for log in LogActivity.query.filter_by(date=day).all()}
    return [{'user': user, 'log': logs.get(user.id)} for user in User.query.order_by(User.id).all()]
