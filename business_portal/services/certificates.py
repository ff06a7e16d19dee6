from datetime import date
from urllib.parse import urlencode

from business_portal.services.api_client import api_client

ENDPOINT = '/certificates'
MONTH_ROMANS = ('I', 'II', 'III', 'IV', 'V', 'VI', 'VII', 'VIII', 'IX', 'X', 'XI', 'XII')


def fallback_number(today=None):
    today = today or date.today()
    return f'1/SP/{MONTH_ROMANS[today.month - 1]}/{today.year}'


def generate_number():
    response = api_client.get(f'{ENDPOINT}/generate-number')
    if response.success and isinstance(response.data, dict) and response.data.get('certificate_number'):
        return response.data['certificate_number']
    return fallback_number()


def list_certificates(page=1, search=None):
    params = {'page': int(page)}
    if search:
        params['search'] = search
    return api_client.get(f'{ENDPOINT}?{urlencode(params)}')


def get_certificate(certificate_id):
    return api_client.get(f'{ENDPOINT}/{certificate_id}')


def create_certificate(data):
    payload = dict(data)
    if not payload.get('certificate_number'):
        payload['certificate_number'] = generate_number()
    return api_client.post(ENDPOINT, payload)


def update_certificate(certificate_id, data):
    return api_client.put(f'{ENDPOINT}/{certificate_id}', data)


def delete_certificate(certificate_id):
    return api_client.delete(f'{ENDPOINT}/{certificate_id}')

