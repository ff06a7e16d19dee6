"""
JSON client for the external document service (certificates etc).

The base URL and key come from the API settings, so they can be changed at
runtime without a restart. Every call returns an :class:`ApiResponse` and
never raises for transport errors.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from business_portal.services.settings import get_api_settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


@dataclass
class ApiResponse:
    success: bool
    data: Any = None
    error: Optional[str] = None
    status: Optional[int] = None


def build_url(base, endpoint):
    if endpoint.startswith('http'):
        return endpoint
    return base.rstrip('/') + (endpoint if endpoint.startswith('/') else '/' + endpoint)


class ApiClient:

    def get(self, endpoint, headers=None, timeout=DEFAULT_TIMEOUT):
        return self.request('GET', endpoint, headers=headers, timeout=timeout)

    def post(self, endpoint, body=None, headers=None, timeout=DEFAULT_TIMEOUT):
        return self.request('POST', endpoint, body, headers, timeout)

    def put(self, endpoint, body=None, headers=None, timeout=DEFAULT_TIMEOUT):
        return self.request('PUT', endpoint, body, headers, timeout)

    def patch(self, endpoint, body=None, headers=None, timeout=DEFAULT_TIMEOUT):
        return self.request('PATCH', endpoint, body, headers, timeout)

    def delete(self, endpoint, headers=None, timeout=DEFAULT_TIMEOUT):
        return self.request('DELETE', endpoint, headers=headers, timeout=timeout)

    def request(self, method, endpoint, body=None, headers=None, timeout=DEFAULT_TIMEOUT):
        settings = get_api_settings()
        if not settings['apiEndpoint']:
            return ApiResponse(False, error='API endpoint is not configured')

        url = build_url(settings['apiEndpoint'], endpoint)
        request_headers = {'Content-Type': 'application/json'}
        request_headers.update(headers or {})
        if settings['apiKey']:
            request_headers['X-API-Key'] = settings['apiKey']

        try:
            response = requests.request(method, url, headers=request_headers,
                                        json=body, timeout=timeout)
        except requests.Timeout:
            logger.warning('%s %s timed out', method, url)
            return ApiResponse(False, error='Request timeout')
        except requests.RequestException as e:
            logger.error('%s %s failed: %s', method, url, e)
            return ApiResponse(False, error=str(e))

        data = None
        if 'application/json' in (response.headers.get('Content-Type') or ''):
            try:
                data = response.json()
            except ValueError:
                logger.warning('Invalid JSON body from %s', url)

        if not response.ok:
            return ApiResponse(False, data=data, error=f'HTTP {response.status_code}: {response.reason}',
                               status=response.status_code)
        return ApiResponse(True, data=data, status=response.status_code)


api_client = ApiClient()
