"""
Pydantic models for request payloads and the read views sent to clients

Request payloads accept camelCase (client) or snake_case keys. Views are
immutable and serialize to camelCase JSON.
"""
import math
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from splits.items import to_positive_int
from splits.models import ArchiveReason, PaymentMethod, PaymentStatus, SettlementPhase
from splits.money import normalize_money


class RequestPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ViewModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


# Request payloads

class ReceiptItemPayload(RequestPayload):
    """A line item as the client sends it"""
    client_item_id: Optional[str] = Field(default=None, max_length=128)
    name: str = Field(default='', max_length=500)
    quantity: int = 1
    price: Optional[Decimal] = None
    sort_order: Optional[int] = None

    @field_validator('quantity', mode='before')
    @classmethod
    def coerce_quantity(cls, v):
        """Non-positive or non-numeric quantities fall back to 1"""
        return to_positive_int(v, 1)

    @field_validator('price', mode='before')
    @classmethod
    def coerce_price(cls, v):
        """Negative or non-finite prices are treated as unknown"""
        return normalize_money(v)

    def to_item_dict(self) -> dict:
        return {
            'client_item_id': self.client_item_id or '',
            'name': self.name,
            'quantity': self.quantity,
            'price': self.price,
            'sort_order': self.sort_order,
        }


class CreateReceiptPayload(RequestPayload):
    client_receipt_id: str = Field(min_length=1, max_length=128)
    items: List[ReceiptItemPayload] = Field(default_factory=list)
    receipt_total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    gratuity: Optional[Decimal] = None

    @field_validator('client_receipt_id')
    @classmethod
    def strip_client_receipt_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('clientReceiptId is required')
        return v

    @field_validator('receipt_total', 'subtotal', 'tax', 'gratuity', mode='before')
    @classmethod
    def coerce_money(cls, v):
        return normalize_money(v)


class ClaimPayload(RequestPayload):
    item_key: str = Field(min_length=1, max_length=128)
    delta: int

    @field_validator('delta', mode='before')
    @classmethod
    def truncate_delta(cls, v):
        if isinstance(v, bool):
            raise ValueError('delta must be a number')
        if isinstance(v, float):
            if not math.isfinite(v):
                raise ValueError('delta must be finite')
            return int(v)
        return v


class SubmissionPayload(RequestPayload):
    is_submitted: bool


class DisplayNamePayload(RequestPayload):
    display_name: str = Field(max_length=200)


class PaymentIntentPayload(RequestPayload):
    method: PaymentMethod


class PaymentProfilePayload(RequestPayload):
    preferred_payment_method: Optional[PaymentMethod] = None
    absorb_extra_cents: bool = False
    venmo_enabled: bool = False
    venmo_username: str = Field(default='', max_length=50)
    cash_app_enabled: bool = False
    cash_app_cashtag: str = Field(default='', max_length=50)
    zelle_enabled: bool = False
    zelle_contact: str = Field(default='', max_length=100)
    cash_apple_pay_enabled: bool = False

    @field_validator('venmo_username', 'cash_app_cashtag', 'zelle_contact', mode='before')
    @classmethod
    def blank_handles(cls, v):
        if v is None:
            return ''
        return v.strip() if isinstance(v, str) else v


class MigrateGuestPayload(RequestPayload):
    guest_device_id: str


# Views

class ItemView(ViewModel):
    key: str
    client_item_id: Optional[str] = None
    name: str
    quantity: int
    price: Optional[Decimal] = None
    sort_order: int


class ReceiptView(ViewModel):
    """What getReceipt / joinReceipt return"""
    id: str
    code: str
    client_receipt_id: str
    created_at: datetime
    is_active: bool
    settlement_phase: SettlementPhase
    finalized_at: Optional[datetime] = None
    archived_reason: Optional[ArchiveReason] = None
    receipt_total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    gratuity: Optional[Decimal] = None
    extra_fees_total: Optional[Decimal] = None
    other_fees: Optional[Decimal] = None
    gratuity_percent: Optional[Decimal] = None
    can_manage: bool = False
    items: List[ItemView] = Field(default_factory=list)


class HostPaymentOptionsView(ViewModel):
    preferred_payment_method: Optional[PaymentMethod] = None
    venmo_enabled: bool = False
    venmo_username: Optional[str] = None
    cash_app_enabled: bool = False
    cash_app_cashtag: Optional[str] = None
    zelle_enabled: bool = False
    zelle_contact: Optional[str] = None
    cash_apple_pay_enabled: bool = False


class TotalsView(ViewModel):
    item_subtotal: Decimal
    tax_share: Decimal
    gratuity_share: Decimal
    other_share: Decimal
    extra_fees_share: Decimal
    rounding_adjustment: Decimal
    total_due: Decimal


class ParticipantView(TotalsView):
    participant_key: str
    display_name: str
    is_host: bool = False
    joined_at: Optional[datetime] = None
    is_submitted: bool = False
    submitted_at: Optional[datetime] = None
    payment_status: PaymentStatus = PaymentStatus.NONE
    payment_method: Optional[PaymentMethod] = None
    payment_amount: Optional[Decimal] = None


class ViewerSettlementView(TotalsView):
    can_pay: bool = False
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[PaymentMethod] = None


class ItemClaimView(ItemView):
    claimed_quantity: int = 0
    viewer_claimed_quantity: int = 0
    remaining_quantity: int = 0


class PaymentQueueEntry(ViewModel):
    participant_key: str
    display_name: str
    amount_due: Decimal
    payment_status: PaymentStatus = PaymentStatus.NONE
    payment_method: Optional[PaymentMethod] = None
    payment_amount: Optional[Decimal] = None


class SettlementSnapshot(ViewModel):
    """Everything a client needs to render the live split at one revision"""
    id: str
    code: str
    client_receipt_id: str
    created_at: datetime
    is_active: bool
    settlement_phase: SettlementPhase
    finalized_at: Optional[datetime] = None
    archived_reason: Optional[ArchiveReason] = None
    receipt_total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    gratuity: Optional[Decimal] = None
    extra_fees_total: Decimal
    other_fees: Optional[Decimal] = None
    gratuity_percent: Optional[Decimal] = None
    revision: int
    can_manage: bool = False
    viewer_participant_key: Optional[str] = None
    viewer_removed: bool = False
    host_participant_key: str
    host_display_name: str
    host_has_payment_options: bool
    host_payment_options: HostPaymentOptionsView
    all_participants_submitted: bool
    unclaimed_item_count: int
    participants: List[ParticipantView] = Field(default_factory=list)
    viewer_settlement: Optional[ViewerSettlementView] = None
    items: List[ItemClaimView] = Field(default_factory=list)
    host_payment_queue: List[PaymentQueueEntry] = Field(default_factory=list)

    def participant(self, participant_key: str) -> Optional[ParticipantView]:
        for participant in self.participants:
            if participant.participant_key == participant_key:
                return participant
        return None

    def item(self, key: str) -> Optional[ItemClaimView]:
        for item in self.items:
            if item.key == key:
                return item
        return None


class ReceiptSummaryView(ViewModel):
    """Row in the recent receipts list"""
    id: str
    code: str
    client_receipt_id: str
    created_at: datetime
    is_active: bool
    settlement_phase: SettlementPhase
    finalized_at: Optional[datetime] = None
    archived_reason: Optional[ArchiveReason] = None
    receipt_total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    gratuity: Optional[Decimal] = None
    extra_fees_total: Optional[Decimal] = None
    other_fees: Optional[Decimal] = None
    gratuity_percent: Optional[Decimal] = None
    can_manage: bool = False
    item_count: int = 0
