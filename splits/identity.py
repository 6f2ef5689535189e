"""
Caller identity and the participant keys derived from it.

Every identity comparison in the app goes through ``participant_key``; raw
user ids and device tokens are never compared directly.
"""
import re
from dataclasses import dataclass
from typing import Optional

AUTH_PREFIX = 'auth:'
GUEST_PREFIX = 'guest:'

GUEST_DEVICE_ID_PATTERN = re.compile(r'^[0-9a-fA-F-]{36}$')
GENERIC_DISPLAY_NAMES = {'you', 'guest', 'friend'}


def normalize_guest_device_id(value) -> Optional[str]:
    """Lower-cased device id, or None if it isn't a 36 char hex/dash token"""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not GUEST_DEVICE_ID_PATTERN.match(trimmed):
        return None
    return trimmed.lower()


def normalized_display_name(value) -> Optional[str]:
    """Treat blank and placeholder names as absent"""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or trimmed.lower() in GENERIC_DISPLAY_NAMES:
        return None
    return trimmed


def default_display_name(participant_key: str) -> str:
    if participant_key.startswith(AUTH_PREFIX):
        return 'Friend'
    if participant_key.startswith(GUEST_PREFIX):
        return 'Guest'
    return 'Participant'


@dataclass(frozen=True)
class Identity:
    """Either an authenticated user or a guest device"""
    user_id: Optional[str] = None
    guest_device_id: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def authenticated(cls, user_id, display_name: Optional[str] = None) -> 'Identity':
        return cls(user_id=str(user_id), display_name=display_name)

    @classmethod
    def guest(cls, device_id, display_name: Optional[str] = None) -> Optional['Identity']:
        normalized = normalize_guest_device_id(device_id)
        if normalized is None:
            return None
        return cls(guest_device_id=normalized, display_name=display_name)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def participant_key(self) -> str:
        if self.user_id:
            return f"{AUTH_PREFIX}{self.user_id}"
        if self.guest_device_id:
            return f"{GUEST_PREFIX}{self.guest_device_id}"
        raise ValueError("Identity has neither a user id nor a guest device id")

    @property
    def preferred_display_name(self) -> str:
        return normalized_display_name(self.display_name) or default_display_name(self.participant_key)

    def __str__(self):
        return self.participant_key
