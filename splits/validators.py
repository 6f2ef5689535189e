"""
Input validators for the splits app
Sanitizes names and converts external strings into the app's closed types
"""
import html
import logging
import re

import bleach
from django.core.exceptions import ValidationError

from splits.models import PaymentMethod

logger = logging.getLogger(__name__)

SHARE_CODE_PATTERN = re.compile(r'[0-9]{6}')


class InputValidator:
    """Validate and sanitize user text inputs"""

    SUSPICIOUS_PATTERNS = [
        '<script', 'javascript:', 'onclick', 'onerror', 'onload',
        'alert(', 'eval(', 'document.', 'window.',
        '<iframe', '<embed', '<object', '<img', '<svg',
        '\x00', '../', '..\\', 'onfocus', 'onmouse'
    ]

    @staticmethod
    def clean_text(value) -> str:
        """Strip markup; entities bleach introduces are decoded again"""
        if not isinstance(value, str):
            return ''
        return html.unescape(bleach.clean(value.strip(), tags=[], strip=True)).strip()

    @classmethod
    def validate_name(cls, name, field_name="Name", min_length=1, max_length=50):
        """Validate and sanitize a display name"""
        if not name or not isinstance(name, str):
            raise ValidationError(f"{field_name} is required")

        name = cls.clean_text(name)

        if len(name) < min_length:
            raise ValidationError(f"{field_name} must be at least {min_length} characters")

        if len(name) > max_length:
            raise ValidationError(f"{field_name} must not exceed {max_length} characters")

        lowered = name.lower()
        for pattern in cls.SUSPICIOUS_PATTERNS:
            if pattern in lowered:
                logger.warning(f"Rejected {field_name.lower()} with suspicious pattern {pattern!r}")
                raise ValidationError(f"{field_name} contains invalid characters")

        return name

    @classmethod
    def clean_item_name(cls, name, max_length=200) -> str:
        """Item names are never rejected, only cleaned; empty means drop the item"""
        return cls.clean_text(name)[:max_length]

    @staticmethod
    def is_valid_share_code(code) -> bool:
        return isinstance(code, str) and bool(SHARE_CODE_PATTERN.fullmatch(code))

    @staticmethod
    def validate_payment_method(value) -> PaymentMethod:
        """Map an external method string onto PaymentMethod"""
        if isinstance(value, PaymentMethod):
            return value
        try:
            return PaymentMethod(value)
        except ValueError:
            raise ValidationError("Invalid payment method.")

    @staticmethod
    def validate_delta(value) -> int:
        """Claim deltas are signed whole numbers; fractions are truncated"""
        if isinstance(value, bool):
            raise ValidationError("Delta must be a number")
        try:
            return int(value)
        except (ValueError, TypeError, OverflowError):
            raise ValidationError("Delta must be a number")
