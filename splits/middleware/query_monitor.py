"""
Query monitoring middleware to track and log database performance
Helps prevent performance regressions by alerting on high query counts
"""
import logging
import time
from functools import wraps

from django.conf import settings
from django.db import connection

logger = logging.getLogger(__name__)


class QueryCountMiddleware:
    """
    Middleware to count and log database queries per request
    Adds X-Query-Count header and logs warnings for high query counts
    """

    # A claim or snapshot request should stay well below this
    QUERY_COUNT_WARNING_THRESHOLD = 15

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        # Only monitor in DEBUG mode to avoid production overhead
        if not settings.DEBUG:
            return self.get_response(request)

        connection.queries_log.clear()

        start_time = time.time()
        queries_before = len(connection.queries)

        response = self.get_response(request)

        # Streaming responses run their queries after we return
        if getattr(response, 'streaming', False):
            return response

        duration_ms = (time.time() - start_time) * 1000
        query_count = len(connection.queries) - queries_before

        response['X-Query-Count'] = str(query_count)
        response['X-Response-Time-Ms'] = f"{duration_ms:.2f}"

        if query_count > self.QUERY_COUNT_WARNING_THRESHOLD:
            logger.warning(
                f"High query count: {query_count} queries in {duration_ms:.2f}ms for {request.method} {request.path}"
            )
            if query_count > 30:
                logger.warning("Query details (first 5):")
                for query in connection.queries[:5]:
                    logger.warning(f"  - {query['time']}s: {query['sql'][:100]}...")
        elif duration_ms > 500 and not request.path.endswith('/live/'):
            logger.info(
                f"Slow request: {duration_ms:.2f}ms with {query_count} queries for {request.method} {request.path}"
            )

        return response


def log_query_performance(func):
    """
    Decorator to log query performance for specific functions
    Used on the snapshot builder, which runs on every live update
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not settings.DEBUG:
            return func(*args, **kwargs)

        start_time = time.time()
        start_queries = len(connection.queries)

        try:
            return func(*args, **kwargs)
        finally:
            duration_ms = (time.time() - start_time) * 1000
            query_count = len(connection.queries) - start_queries

            if duration_ms > 100 or query_count > 8:
                logger.info(
                    f"{func.__module__}.{func.__qualname__}: {duration_ms:.2f}ms, {query_count} queries"
                )
                if duration_ms > 500 or query_count > 20:
                    logger.warning(
                        f"Performance issue in {func.__module__}.{func.__qualname__}: "
                        f"{duration_ms:.2f}ms, {query_count} queries"
                    )

    return wrapper
