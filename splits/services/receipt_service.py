"""
Service layer for receipt operations
Creating and resetting receipts, lookups by share code, recents and guest migration
"""
import logging
import random
import string
from typing import Dict, Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from splits.exceptions import AuthenticationRequiredError, CodeGenerationExhaustedError
from splits.identity import Identity, normalize_guest_device_id, normalized_display_name
from splits.items import normalize_items
from splits.models import ITEMS_SCHEMA_CURRENT, Claim, Participant, Receipt, SettlementPhase
from splits.money import (
    compute_extra_fees_total, compute_gratuity_percent, compute_other_fees, normalize_money,
)
from splits.repositories import ClaimRepository, ParticipantRepository, ReceiptRepository
from splits.schemas import ReceiptSummaryView, ReceiptView
from splits.services.participant_service import ParticipantRegistry
from splits.services.snapshot_service import SnapshotService
from splits.validators import InputValidator

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
DEFAULT_RECENT_LIMIT = 30


def make_share_code(length: int = CODE_LENGTH) -> str:
    return ''.join(random.choice(string.digits) for _ in range(length))


class ReceiptService:
    """Handles all business logic for receipts"""

    def __init__(self, receipts: ReceiptRepository = None,
                 participants: ParticipantRepository = None,
                 claims: ClaimRepository = None,
                 registry: ParticipantRegistry = None,
                 snapshots: SnapshotService = None,
                 code_generator=None):
        self.receipts = receipts or ReceiptRepository()
        self.participants = participants or ParticipantRepository()
        self.claims = claims or ClaimRepository()
        self.registry = registry or ParticipantRegistry(self.receipts, self.participants, self.claims)
        self.snapshots = snapshots or SnapshotService(self.receipts, self.participants, self.claims)
        self.code_generator = code_generator or make_share_code

    @property
    def max_code_attempts(self) -> int:
        return getattr(settings, 'SPLITS_SHARE_CODE_MAX_ATTEMPTS', 20)

    def create_with_share_code(self, **fields) -> Receipt:
        """
        Insert a receipt under a random unused 6 digit code.

        A code another request took between the existence check and the
        insert counts as a collision like any other; attempts are bounded.
        """
        for attempt in range(self.max_code_attempts):
            candidate = self.code_generator()
            if self.receipts.share_code_exists(candidate):
                logger.debug(f"Share code collision on attempt {attempt + 1}")
                continue
            try:
                with transaction.atomic():
                    return self.receipts.create(share_code=candidate, **fields)
            except IntegrityError:
                if not self.receipts.share_code_exists(candidate):
                    raise
                logger.warning(f"Share code {candidate} was taken concurrently on attempt {attempt + 1}")

        logger.error(f"Could not generate a unique share code after {self.max_code_attempts} attempts")
        raise CodeGenerationExhaustedError("Could not generate unique share code")

    def create_receipt(self, owner_identity: Identity, client_receipt_id: str,
                       items: Iterable[dict], fee_totals: Optional[Dict] = None) -> Dict:
        """
        Create a receipt, or reset the owner's existing one with this client id.

        Re-creating replaces the items, deletes every claim and resets each
        participant's submission and payment state, since the items they
        claimed may no longer exist.

        Args:
            owner_identity: The host
            client_receipt_id: The host app's own id for this receipt
            items: Dicts with client_item_id, name, quantity, price, sort_order
            fee_totals: Optional receipt_total, subtotal, tax, gratuity

        Returns:
            Dict with the receipt id and share code
        """
        if owner_identity is None:
            raise AuthenticationRequiredError("Authentication required.")

        fee_totals = fee_totals or {}
        normalized_items = normalize_items(items)
        receipt_total = normalize_money(fee_totals.get('receipt_total'))
        subtotal = normalize_money(fee_totals.get('subtotal'))
        tax = normalize_money(fee_totals.get('tax'))
        gratuity = normalize_money(fee_totals.get('gratuity'))

        extra_fees_total = compute_extra_fees_total(
            receipt_total, [item.price for item in normalized_items], tax, gratuity
        )
        money_fields = {
            'receipt_total': receipt_total,
            'subtotal': subtotal,
            'tax': tax,
            'gratuity': gratuity,
            'extra_fees_total': extra_fees_total,
            'other_fees': compute_other_fees(extra_fees_total, tax, gratuity),
            'gratuity_percent': compute_gratuity_percent(gratuity, subtotal),
        }
        owner_key = owner_identity.participant_key

        with transaction.atomic():
            existing = self.receipts.find_for_owner(owner_key, client_receipt_id, for_update=True)
            if existing is not None:
                self.receipts.update_fields(
                    existing,
                    is_active=True,
                    settlement_phase=SettlementPhase.CLAIMING,
                    finalized_at=None,
                    archived_reason=None,
                    legacy_items_json=None,
                    items_schema_version=ITEMS_SCHEMA_CURRENT,
                    **money_fields,
                )
                self.receipts.replace_items(existing, normalized_items)
                reset = self.participants.reset_for_claiming(existing.pk)
                self.receipts.touch(existing)
                logger.info(
                    f"Reset receipt {existing.share_code} with {len(normalized_items)} items, "
                    f"{reset} participants back to claiming"
                )
                return {'id': str(existing.id), 'share_code': existing.share_code}

            receipt = self.create_with_share_code(
                client_receipt_id=client_receipt_id,
                owner_key=owner_key,
                **money_fields,
            )
            self.receipts.replace_items(receipt, normalized_items)

        logger.info(f"Created receipt {receipt.share_code} with {len(normalized_items)} items")
        return {'id': str(receipt.id), 'share_code': receipt.share_code}

    def _active_by_code(self, share_code) -> Optional[Receipt]:
        if not InputValidator.is_valid_share_code(share_code):
            return None
        return self.receipts.get_by_share_code(share_code)

    def get_receipt(self, share_code: str, identity: Optional[Identity] = None) -> Optional[ReceiptView]:
        """None for malformed, unknown or archived codes"""
        receipt = self._active_by_code(share_code)
        if receipt is None:
            return None
        return self.snapshots.receipt_view(receipt, identity)

    def join_receipt(self, share_code: str, identity: Identity) -> Optional[ReceiptView]:
        """Like get_receipt, but adds the caller as a participant while claiming is open"""
        if identity is None:
            raise AuthenticationRequiredError("Authentication required.")

        receipt = self._active_by_code(share_code)
        if receipt is None:
            return None
        if not receipt.is_finalized:
            self.registry.join(receipt, identity)
        return self.snapshots.receipt_view(receipt, identity)

    def list_recent(self, identity: Optional[Identity], limit: Optional[int] = None,
                    include_archived: bool = False) -> List[ReceiptSummaryView]:
        """
        Receipts the identity owns or has joined, newest activity first.

        Joined receipts only show while active; ``include_archived`` applies
        to owned receipts.
        """
        if identity is None:
            return []

        limit_max = getattr(settings, 'SPLITS_RECENT_LIMIT_MAX', 100)
        try:
            limit = int(limit) if limit is not None else DEFAULT_RECENT_LIMIT
        except (TypeError, ValueError):
            limit = DEFAULT_RECENT_LIMIT
        limit = max(1, min(limit, limit_max))

        participant_key = identity.participant_key
        entries = {}
        for receipt in self.receipts.list_owned(participant_key, include_archived)[:limit * 2]:
            entries[receipt.pk] = (receipt, receipt.created_at)

        joined_rows = self.participants.rows_for_key(participant_key).order_by('-joined_at')[:limit * 3]
        for row in joined_rows:
            receipt = row.receipt
            if not receipt.is_active:
                continue
            sort_key = max(receipt.created_at, row.joined_at)
            current = entries.get(receipt.pk)
            if current is None or sort_key > current[1]:
                entries[receipt.pk] = (receipt, sort_key)

        ordered = sorted(entries.values(), key=lambda entry: entry[1], reverse=True)[:limit]
        return [self.snapshots.summary_view(receipt, identity) for receipt, _ in ordered]

    def migrate_guest_data(self, auth_identity: Identity, guest_device_id: str) -> Dict[str, int]:
        """
        Hand everything a guest device did over to the signed-in account.

        Receipts the device owned change owner, its claims merge into the
        account's claims (quantities add up when both claimed the same
        item), and its participant rows merge into the account's rows,
        keeping the earliest join time.
        """
        if auth_identity is None or not auth_identity.is_authenticated:
            raise AuthenticationRequiredError("Authentication required.")

        device_id = normalize_guest_device_id(guest_device_id)
        if device_id is None:
            raise ValidationError("Valid guest device id required.")

        guest_key = Identity(guest_device_id=device_id).participant_key
        auth_key = auth_identity.participant_key
        preferred_name = auth_identity.preferred_display_name
        receipt_count = claim_count = participant_count = 0
        touched = set()

        with transaction.atomic():
            for receipt in Receipt.objects.select_for_update().filter(owner_key=guest_key):
                if self.receipts.find_for_owner(auth_key, receipt.client_receipt_id) is not None:
                    logger.warning(
                        f"Not migrating receipt {receipt.share_code}: account already has "
                        f"client receipt {receipt.client_receipt_id}"
                    )
                    continue
                self.receipts.update_fields(receipt, owner_key=auth_key)
                self.receipts.touch(receipt)
                receipt_count += 1

            guest_rows = list(Participant.objects.select_for_update().filter(participant_key=guest_key))
            for row in guest_rows:
                for claim in Claim.objects.filter(receipt_id=row.receipt_id, participant_key=guest_key):
                    auth_claim = self.claims.get(row.receipt_id, claim.item_key, auth_key)
                    if auth_claim is not None:
                        auth_claim.quantity += claim.quantity
                        auth_claim.save(update_fields=['quantity', 'updated_at'])
                        claim.delete()
                    else:
                        claim.participant_key = auth_key
                        claim.save(update_fields=['participant_key', 'updated_at'])
                    claim_count += 1

                auth_row = self.participants.get(row.receipt_id, auth_key)
                if auth_row is not None:
                    auth_row.user_id = auth_identity.user_id
                    auth_row.guest_device_id = ''
                    auth_row.display_name = normalized_display_name(auth_row.display_name) or preferred_name
                    auth_row.joined_at = min(auth_row.joined_at, row.joined_at)
                    auth_row.save()
                    row.delete()
                else:
                    row.participant_key = auth_key
                    row.user_id = auth_identity.user_id
                    row.guest_device_id = ''
                    row.display_name = preferred_name
                    row.save()
                participant_count += 1
                touched.add(row.receipt_id)

            self.receipts.touch_many(touched)

        logger.info(
            f"Migrated guest {device_id} to {auth_key}: {receipt_count} receipts, "
            f"{participant_count} participants, {claim_count} claims"
        )
        return {
            'migrated_receipt_count': receipt_count,
            'migrated_participant_count': participant_count,
            'migrated_claim_count': claim_count,
        }
