"""
Host payment options

Finalizing needs to know whether the host can be paid at all, and the
settlement needs to know who absorbs leftover cents. Hosts signed in with
an account configure this in a HostPaymentProfile; hosts on a guest device
settle in cash and always absorb the extra cents.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import transaction

from splits.identity import GUEST_PREFIX, Identity
from splits.models import HostPaymentProfile, PaymentMethod
from splits.schemas import HostPaymentOptionsView, PaymentProfilePayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostPaymentConfig:
    has_payment_options: bool = False
    absorb_extra_cents: bool = False
    preferred_payment_method: Optional[str] = None
    venmo_enabled: bool = False
    venmo_username: Optional[str] = None
    cash_app_enabled: bool = False
    cash_app_cashtag: Optional[str] = None
    zelle_enabled: bool = False
    zelle_contact: Optional[str] = None
    cash_apple_pay_enabled: bool = False

    def public_options(self) -> HostPaymentOptionsView:
        return HostPaymentOptionsView(
            preferred_payment_method=self.preferred_payment_method,
            venmo_enabled=self.venmo_enabled,
            venmo_username=self.venmo_username,
            cash_app_enabled=self.cash_app_enabled,
            cash_app_cashtag=self.cash_app_cashtag,
            zelle_enabled=self.zelle_enabled,
            zelle_contact=self.zelle_contact,
            cash_apple_pay_enabled=self.cash_apple_pay_enabled,
        )


GUEST_HOST_CONFIG = HostPaymentConfig(
    has_payment_options=True,
    absorb_extra_cents=True,
    preferred_payment_method=PaymentMethod.CASH_APPLE_PAY.value,
    cash_apple_pay_enabled=True,
)

NO_PAYMENT_CONFIG = HostPaymentConfig()


def _handle(value: str) -> Optional[str]:
    value = (value or '').strip()
    return value or None


class PaymentProfileService:
    """Resolves and stores host payment profiles"""

    def resolve(self, owner_key: str) -> HostPaymentConfig:
        if owner_key.startswith(GUEST_PREFIX):
            return GUEST_HOST_CONFIG

        try:
            profile = HostPaymentProfile.objects.get(owner_key=owner_key)
        except HostPaymentProfile.DoesNotExist:
            return NO_PAYMENT_CONFIG

        return HostPaymentConfig(
            has_payment_options=profile.has_payment_options,
            absorb_extra_cents=profile.absorb_extra_cents,
            preferred_payment_method=profile.preferred_payment_method or None,
            venmo_enabled=profile.venmo_enabled,
            venmo_username=_handle(profile.venmo_username),
            cash_app_enabled=profile.cash_app_enabled,
            cash_app_cashtag=_handle(profile.cash_app_cashtag),
            zelle_enabled=profile.zelle_enabled,
            zelle_contact=_handle(profile.zelle_contact),
            cash_apple_pay_enabled=profile.cash_apple_pay_enabled,
        )

    @transaction.atomic
    def update_profile(self, identity: Identity, payload: PaymentProfilePayload) -> HostPaymentConfig:
        owner_key = identity.participant_key
        fields = payload.model_dump(exclude_none=False)
        preferred = fields.pop('preferred_payment_method')
        fields['preferred_payment_method'] = preferred.value if preferred else None

        HostPaymentProfile.objects.update_or_create(owner_key=owner_key, defaults=fields)
        logger.info(f"Updated payment profile for {owner_key}")
        return self.resolve(owner_key)
