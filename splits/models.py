from django.db import models
from django.utils import timezone
import uuid

from splits.money import as_fraction


class SettlementPhase(models.TextChoices):
    CLAIMING = 'claiming', 'Claiming'
    FINALIZED = 'finalized', 'Finalized'


class ArchiveReason(models.TextChoices):
    MANUAL = 'manual', 'Manual'
    AUTO_SETTLED = 'auto_settled', 'Auto settled'


class PaymentStatus(models.TextChoices):
    NONE = 'none', 'None'
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'


class PaymentMethod(models.TextChoices):
    VENMO = 'venmo', 'Venmo'
    CASH_APP = 'cash_app', 'Cash App'
    ZELLE = 'zelle', 'Zelle'
    CASH_APPLE_PAY = 'cash_apple_pay', 'Cash / Apple Pay'


# Items stored as a JSON blob on the receipt row
ITEMS_SCHEMA_LEGACY = 1
# Items stored as ReceiptItem rows
ITEMS_SCHEMA_CURRENT = 2

MONEY = dict(max_digits=12, decimal_places=2, null=True, blank=True)


def item_claim_key(client_item_id: str, sort_order: int) -> str:
    """Claim key: the client id, or a positional fallback that does not survive item replacement"""
    client_id = (client_item_id or '').strip()
    if client_id:
        return client_id
    return f"sort:{sort_order}"


class Receipt(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    share_code = models.CharField(max_length=6, unique=True, db_index=True)
    client_receipt_id = models.CharField(max_length=128)
    owner_key = models.CharField(max_length=200, db_index=True)

    receipt_total = models.DecimalField(**MONEY)
    subtotal = models.DecimalField(**MONEY)
    tax = models.DecimalField(**MONEY)
    gratuity = models.DecimalField(**MONEY)
    extra_fees_total = models.DecimalField(**MONEY)
    other_fees = models.DecimalField(**MONEY)
    gratuity_percent = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)

    settlement_phase = models.CharField(
        max_length=20, choices=SettlementPhase.choices, default=SettlementPhase.CLAIMING
    )
    finalized_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    archived_reason = models.CharField(
        max_length=20, choices=ArchiveReason.choices, null=True, blank=True
    )

    # Bumped on every committed mutation of the receipt or its rows
    revision = models.PositiveIntegerField(default=0)

    legacy_items_json = models.TextField(null=True, blank=True)
    items_schema_version = models.PositiveSmallIntegerField(default=ITEMS_SCHEMA_CURRENT)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['owner_key', 'client_receipt_id'],
                name='unique_owner_client_receipt',
            ),
        ]
        indexes = [
            models.Index(fields=['owner_key', 'is_active', 'created_at'], name='splits_receipt_owner_idx'),
        ]

    @property
    def host_participant_key(self) -> str:
        return self.owner_key

    @property
    def is_finalized(self) -> bool:
        return self.settlement_phase == SettlementPhase.FINALIZED

    def __str__(self):
        return f"Receipt {self.share_code} ({self.settlement_phase})"


class ReceiptItem(models.Model):
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name='items')
    client_item_id = models.CharField(max_length=128, blank=True, default='')
    name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(**MONEY)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['sort_order', 'id']
        indexes = [
            models.Index(fields=['receipt', 'sort_order'], name='splits_item_sort_idx'),
        ]

    @property
    def key(self) -> str:
        return item_claim_key(self.client_item_id, self.sort_order)

    @property
    def unit_price(self):
        """Exact price of one unit as a Fraction"""
        return as_fraction(self.price) / max(1, self.quantity)

    def __str__(self):
        return f"{self.name} x{self.quantity} - ${self.price if self.price is not None else '?'}"


class Participant(models.Model):
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name='participants')
    participant_key = models.CharField(max_length=200)
    user_id = models.CharField(max_length=150, blank=True, default='')
    guest_device_id = models.CharField(max_length=36, blank=True, default='')
    display_name = models.CharField(max_length=50, blank=True, default='')

    is_submitted = models.BooleanField(default=False)
    submitted_at = models.DateTimeField(null=True, blank=True)

    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.NONE
    )
    payment_method = models.CharField(
        max_length=20, choices=PaymentMethod.choices, null=True, blank=True
    )
    payment_amount = models.DecimalField(**MONEY)
    payment_marked_at = models.DateTimeField(null=True, blank=True)
    payment_confirmed_at = models.DateTimeField(null=True, blank=True)

    joined_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['joined_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['receipt', 'participant_key'],
                name='unique_receipt_participant',
            ),
        ]
        indexes = [
            models.Index(fields=['participant_key', 'joined_at'], name='splits_participant_key_idx'),
        ]

    def clear_payment(self):
        self.payment_status = PaymentStatus.NONE
        self.payment_method = None
        self.payment_amount = None
        self.payment_marked_at = None
        self.payment_confirmed_at = None

    def __str__(self):
        return f"{self.display_name or self.participant_key} on {self.receipt_id}"


class Claim(models.Model):
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name='claims')
    item_key = models.CharField(max_length=128)
    participant_key = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['receipt', 'item_key', 'participant_key'],
                name='unique_claim_per_item_participant',
            ),
        ]
        indexes = [
            models.Index(fields=['receipt', 'item_key'], name='splits_claim_item_idx'),
            models.Index(fields=['receipt', 'participant_key'], name='splits_claim_participant_idx'),
        ]

    def __str__(self):
        return f"{self.participant_key} claimed {self.quantity}x {self.item_key}"


class HostPaymentProfile(models.Model):
    """Payment handles a host has configured, keyed by the host's participant key"""
    owner_key = models.CharField(max_length=200, unique=True)
    preferred_payment_method = models.CharField(
        max_length=20, choices=PaymentMethod.choices, null=True, blank=True
    )
    absorb_extra_cents = models.BooleanField(default=False)
    venmo_enabled = models.BooleanField(default=False)
    venmo_username = models.CharField(max_length=50, blank=True, default='')
    cash_app_enabled = models.BooleanField(default=False)
    cash_app_cashtag = models.CharField(max_length=50, blank=True, default='')
    zelle_enabled = models.BooleanField(default=False)
    zelle_contact = models.CharField(max_length=100, blank=True, default='')
    cash_apple_pay_enabled = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def has_payment_options(self) -> bool:
        has_venmo = self.venmo_enabled and bool(self.venmo_username.strip())
        has_cash_app = self.cash_app_enabled and bool(self.cash_app_cashtag.strip())
        has_zelle = self.zelle_enabled and bool(self.zelle_contact.strip())
        return has_venmo or has_cash_app or has_zelle or self.cash_apple_pay_enabled

    def __str__(self):
        return f"Payment profile for {self.owner_key}"
