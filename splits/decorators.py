from functools import wraps

from django.conf import settings
from django_ratelimit.decorators import ratelimit


def conditional_ratelimit(key, rate, method, block=True):
    """Apply rate limiting only if RATELIMIT_ENABLE is True"""
    def decorator(func):
        if not getattr(settings, 'RATELIMIT_ENABLE', True):
            return func
        return ratelimit(key=key, rate=rate, method=method, block=block)(func)
    return decorator


def no_store(func):
    """Snapshots change with every claim; clients must not cache them"""
    @wraps(func)
    def wrapper(request, *args, **kwargs):
        response = func(request, *args, **kwargs)
        response['Cache-Control'] = 'no-store'
        return response
    return wrapper


# Predefined rate limit decorators for different endpoint types
rate_limit_create = conditional_ratelimit(key='ip', rate='20/m', method='POST')
rate_limit_view = conditional_ratelimit(key='ip', rate='200/m', method='GET')
rate_limit_claim = conditional_ratelimit(key='ip', rate='120/m', method='POST')
rate_limit_edit = conditional_ratelimit(key='ip', rate='30/m', method='POST')
rate_limit_finalize = conditional_ratelimit(key='ip', rate='10/m', method='POST')
rate_limit_payment = conditional_ratelimit(key='ip', rate='20/m', method='POST')
