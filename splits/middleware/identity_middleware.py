"""
Middleware that resolves who is calling.

Signed-in users act as ``auth:<user id>``. Everyone else is a guest keyed by
the device id their client sends in the ``X-Guest-Device-Id`` header, the
``guestDeviceId`` field of a JSON body, or the ``guestDeviceId`` query
parameter (EventSource clients cannot set headers). Requests with none of
these get ``request.identity = None``.
"""
import json
import logging

from splits.identity import Identity

logger = logging.getLogger(__name__)

GUEST_HEADER = 'HTTP_X_GUEST_DEVICE_ID'
DISPLAY_NAME_HEADER = 'HTTP_X_DISPLAY_NAME'
GUEST_FIELD = 'guestDeviceId'


def _device_id_from_body(request):
    if request.method != 'POST' or request.content_type != 'application/json':
        return None
    try:
        data = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(data, dict):
        return data.get(GUEST_FIELD)
    return None


def resolve_identity(request):
    display_name = request.META.get(DISPLAY_NAME_HEADER)

    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        name = display_name or user.get_full_name() or user.get_username()
        return Identity.authenticated(str(user.pk), name)

    device_id = (
        request.META.get(GUEST_HEADER)
        or _device_id_from_body(request)
        or request.GET.get(GUEST_FIELD)
    )
    if not device_id:
        return None

    identity = Identity.guest(device_id, display_name)
    if identity is None:
        logger.debug(f"Ignoring malformed guest device id on {request.method} {request.path}")
    return identity


class IdentityMiddleware:
    """Attach the caller's Identity to the request"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.identity = resolve_identity(request)
        return self.get_response(request)
