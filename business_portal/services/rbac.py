import json
import logging

from business_portal import db
from business_portal.models import SystemSetting, ROLES
from business_portal.crypto import encrypt, decrypt
from business_portal.errors import ValidationFailed

logger = logging.getLogger(__name__)

RBAC_KEY = 'RBAC_CONFIG'


def get_rbac_config():
    """Page path -> allowed roles, or None when nothing is configured."""
    setting = SystemSetting.query.filter_by(key=RBAC_KEY).first()
    if setting is None:
        return None
    plain = decrypt(setting.value)
    if not plain:
        return None
    try:
        return json.loads(plain)
    except ValueError:
        logger.error('RBAC config is not valid JSON')
        return None


def save_rbac_config(config):
    if not isinstance(config, dict):
        raise ValidationFailed('RBAC config must be an object of path -> roles')
    cleaned = {}
    for path, roles in config.items():
        if not isinstance(roles, list):
            raise ValidationFailed(f'Roles for {path} must be a list')
        unknown = [r for r in roles if r not in ROLES]
        if unknown:
            raise ValidationFailed(f'Unknown role(s) for {path}: {", ".join(unknown)}')
        cleaned[path] = roles

    value = encrypt(json.dumps(cleaned))
    setting = SystemSetting.query.filter_by(key=RBAC_KEY).first()
    if setting is None:
        setting = SystemSetting(key=RBAC_KEY)
        db.session.add(setting)
    setting.value = value
    db.session.commit()
    return cleaned


def check_access(user, path):
    role = user.role or 'USER'
    if role == 'ADMIN':
        return True
    config = get_rbac_config()
    if not config:
        return True
    allowed = config.get(path)
    return not allowed or role in allowed
