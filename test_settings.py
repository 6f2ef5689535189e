"""Test-specific Django settings"""
from splitter.settings import *

# Disable rate limiting for tests
RATELIMIT_ENABLE = False

# Use in-memory cache for tests
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':
    DATABASES['default'].setdefault('OPTIONS', {})
    DATABASES['default']['OPTIONS'].update({
        'timeout': 30,
        'check_same_thread': False,
        'transaction_mode': 'IMMEDIATE',
    })
    # File-backed test database so worker threads get their own connections
    DATABASES['default']['TEST'] = {'NAME': str(BASE_DIR / 'test_splits.sqlite3')}

# Ensure test mode
DEBUG = False
TESTING = True

# Live observation should not sleep during tests
SPLITS_LIVE_POLL_INTERVAL = 0
SPLITS_LIVE_LONG_POLL_SECONDS = 0
