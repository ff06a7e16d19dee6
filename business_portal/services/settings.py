import logging

import requests

from business_portal import db
from business_portal.models import SystemSetting
from business_portal.crypto import encrypt, decrypt

logger = logging.getLogger(__name__)

ENCRYPTED_KEYS = {'API_KEY'}

API_SETTING_KEYS = {
    'apiEndpoint': 'API_ENDPOINT',
    'apiKey': 'API_KEY',
    'senderName': 'SENDER_NAME',
    'senderPhone': 'SENDER_PHONE',
    'senderAddress': 'SENDER_ADDRESS',
}


def get_setting(key, default=None):
    setting = SystemSetting.query.filter_by(key=key).first()
    if setting is None or setting.value == '':
        return default
    if key in ENCRYPTED_KEYS:
        return decrypt(setting.value) or default
    return setting.value


def set_setting(key, value, commit=True):
    stored = value if value is not None else ''
    if key in ENCRYPTED_KEYS and stored:
        stored = encrypt(str(stored))
    setting = SystemSetting.query.filter_by(key=key).first()
    if setting is None:
        setting = SystemSetting(key=key)
        db.session.add(setting)
    setting.value = str(stored)
    if commit:
        db.session.commit()
    return setting


def get_api_settings():
    return {name: get_setting(key) for name, key in API_SETTING_KEYS.items()}


def save_api_settings(data):
    for name, key in API_SETTING_KEYS.items():
        if name in data:
            value = data[name]
            set_setting(key, value.strip() if isinstance(value, str) else value, commit=False)
    db.session.commit()


def get_salary_calc_day(default=None):
    from flask import current_app
    fallback = default or current_app.config.get('SALARY_CALC_DAY', 25)
    value = get_setting('SALARY_CALC_DAY')
    try:
        day = int(value) if value else fallback
    except ValueError:
        day = fallback
    return min(max(day, 1), 28)


def check_api_connection():
    settings = get_api_settings()
    endpoint = settings['apiEndpoint']
    if not endpoint:
        return {'success': False, 'message': 'API endpoint is not configured'}

    headers = {'Content-Type': 'application/json'}
    if settings['apiKey']:
        headers['X-API-Key'] = settings['apiKey']
    try:
        response = requests.get(endpoint, headers=headers, timeout=5)
    except requests.Timeout:
        return {'success': False, 'message': 'Connection timeout (5s)'}
    except requests.RequestException as e:
        logger.error('API connection test failed: %s', e)
        return {'success': False, 'message': str(e)}

    if response.ok:
        return {'success': True, 'message': f'Connected (HTTP {response.status_code})', 'status': response.status_code}
    return {'success': False, 'message': f'HTTP {response.status_code}: {response.reason}', 'status': response.status_code}
