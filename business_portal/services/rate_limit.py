"""
Login rate limiting keyed by client IP.

Failed attempts are counted in a moving window kept in the ``limits`` storage
named by ``RATELIMIT_STORAGE_URI`` (``memory://`` by default, a Redis or
Memcached URI shares the counters between workers). Reaching
``LOGIN_MAX_ATTEMPTS`` sets a block marker that lives for
``LOGIN_BLOCK_MINUTES``; both expire inside the storage.
"""
import logging
import math
import time

from flask import current_app
from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'login_rate_limiter'
FAILURES = 'login-failures'
BLOCK = 'login-block'


def init_app(app):
    storage = storage_from_string(app.config.get('RATELIMIT_STORAGE_URI', 'memory://'))
    app.extensions[EXTENSION_KEY] = MovingWindowRateLimiter(storage)


def _limiter():
    return current_app.extensions[EXTENSION_KEY]


def _items():
    config = current_app.config
    block_seconds = max(1, int(config.get('LOGIN_BLOCK_MINUTES', 5) * 60))
    window_seconds = max(block_seconds, int(config.get('LOGIN_ATTEMPT_WINDOW_MINUTES', 60) * 60))
    attempts = RateLimitItemPerSecond(config.get('LOGIN_MAX_ATTEMPTS', 7), window_seconds)
    block = RateLimitItemPerSecond(1, block_seconds)
    return attempts, block, block_seconds


def get_status(ip):
    _, block, _ = _items()
    limiter = _limiter()
    if limiter.test(block, BLOCK, ip):
        return {'isLocked': False, 'remainingSeconds': 0}

    reset_at, _ = limiter.get_window_stats(block, BLOCK, ip)
    return {'isLocked': True, 'remainingSeconds': max(1, math.ceil(reset_at - time.time()))}


def register_failure(ip):
    """Record a failed attempt. Returns the block length in seconds when the IP just got blocked."""
    attempts, block, block_seconds = _items()
    limiter = _limiter()
    limiter.hit(attempts, FAILURES, ip)
    _, remaining = limiter.get_window_stats(attempts, FAILURES, ip)
    if remaining > 0:
        return 0

    limiter.clear(attempts, FAILURES, ip)
    limiter.hit(block, BLOCK, ip)
    logger.warning('Login blocked for %s after %s failed attempts', ip, attempts.amount)
    return block_seconds


def reset(ip):
    attempts, block, _ = _items()
    limiter = _limiter()
    limiter.clear(attempts, FAILURES, ip)
    limiter.clear(block, BLOCK, ip)
