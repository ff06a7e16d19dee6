import re
import logging

from business_portal import db
from business_portal.models import User, ROLES
from business_portal.crypto import blind_hash
from business_portal.errors import ValidationFailed, NotFound, Forbidden

logger = logging.getLogger(__name__)

PIN_RE = re.compile(r'^\d{4,6}$')
NAME_EDITOR_ROLES = ('ADMIN', 'HRD', 'ADMINISTRASI')


def validate_pin(pin):
    if not PIN_RE.match(pin or ''):
        raise ValidationFailed('PIN must be 4-6 digits')
    return pin


def find_by_identifier(identifier):
    """Look a user up by email or username through the blind-hash columns."""
    digest = blind_hash(identifier)
    if not digest:
        return None
    return User.query.filter((User.email_hash == digest) | (User.username_hash == digest)).first()


def find_by_pin(pin):
    if not pin:
        return None
    for user in User.query.filter(User.pin_enc.isnot(None)).all():
        if user.pin == pin:
            return user
    return None


def get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    return user


def list_users():
    return User.query.order_by(User.created_at.desc()).all()


def _check_unique(email, username, exclude_id=None):
    email_hash, username_hash = blind_hash(email), blind_hash(username)
    if not email_hash or not username_hash:
        raise ValidationFailed('Invalid email or username')
    query = User.query.filter((User.email_hash == email_hash) | (User.username_hash == username_hash))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ValidationFailed('Email or Username already exists')


def create_user(name, email, username, password, department=None, role=None, pin=None):
    role = role or 'USER'
    if role not in ROLES:
        raise ValidationFailed(f'Invalid role: {role}')
    if not password:
        raise ValidationFailed('Password is required')
    _check_unique(email, username)
    if pin:
        validate_pin(pin)

    user = User()
    user.name = name
    user.email = email.strip()
    user.username = username.strip()
    user.department = department
    user.role = role
    user.pin = pin or None
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def update_user(user_id, name, email, username, department=None, role=None, password=None, pin=None):
    user = get_user(user_id)
    if role and role not in ROLES:
        raise ValidationFailed(f'Invalid role: {role}')
    _check_unique(email, username, exclude_id=user.id)

    user.name = name
    user.email = email.strip()
    user.username = username.strip()
    user.department = department
    if role:
        user.role = role
    if password and password.strip():
        user.set_password(password)
    if pin and pin.strip():
        user.pin = validate_pin(pin.strip())
    db.session.commit()
    return user


def delete_user(user_id, acting_user=None):
    user = get_user(user_id)
    if acting_user is not None and acting_user.id == user.id:
        raise ValidationFailed('You cannot delete your own account')
    db.session.delete(user)
    db.session.commit()


def toggle_role(user_id):
    user = get_user(user_id)
    user.role = 'USER' if user.role == 'ADMIN' else 'ADMIN'
    db.session.commit()
    return user


# --- Own profile ---

def update_profile(user, name=None, current_password=None, new_password=None):
    if user.role in NAME_EDITOR_ROLES:
        if name is not None:
            if not name.strip():
                raise ValidationFailed('Name cannot be empty')
            user.name = name.strip()
    elif name is not None and name != user.name:
        raise Forbidden('Only Admins can update their name')

    if new_password:
        if not current_password:
            raise ValidationFailed('Current password is required to set a new password')
        if not user.check_password(current_password):
            raise ValidationFailed('Incorrect current password')
        user.set_password(new_password)

    db.session.commit()
    return user


def update_pin(user, current_password, pin):
    validate_pin(pin)
    if not user.check_password(current_password):
        raise ValidationFailed('Incorrect password')
    user.pin = pin
    db.session.commit()
