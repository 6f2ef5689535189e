"""
Service layer for claim operations
Keeps the per-item invariant: claims on an item never exceed its quantity
"""
import logging
from typing import NamedTuple

from django.db import transaction

from splits.exceptions import AlreadyFinalizedError, ClaimsLockedError, ItemNotFoundError
from splits.identity import Identity
from splits.repositories import ClaimRepository, ParticipantRepository, ReceiptRepository
from splits.services.receipt_locks import lock_receipt
from splits.validators import InputValidator

logger = logging.getLogger(__name__)


class ClaimResult(NamedTuple):
    applied_delta: int
    quantity: int


class ClaimLedger:
    """Per (item, participant) claimed quantities"""

    def __init__(self, receipts: ReceiptRepository = None,
                 participants: ParticipantRepository = None,
                 claims: ClaimRepository = None):
        self.receipts = receipts or ReceiptRepository()
        self.participants = participants or ParticipantRepository()
        self.claims = claims or ClaimRepository()

    def adjust_claim(self, share_code: str, item_key: str, identity: Identity, delta) -> ClaimResult:
        """
        Change the caller's claim on one item by ``delta`` units.

        Positive deltas are clamped to what is still unclaimed and negative
        deltas to what the caller holds, so a client can ask for "+3" and
        get the 1 unit that's left. ``applied_delta == 0`` means nothing
        could be applied; it is not an error.

        Args:
            share_code: Receipt share code
            item_key: Key of the item to claim
            identity: Caller
            delta: Signed number of units; fractions are truncated

        Returns:
            ClaimResult with the applied delta and the caller's new quantity
        """
        delta = InputValidator.validate_delta(delta)
        if delta == 0:
            return ClaimResult(0, 0)

        with transaction.atomic():
            receipt = lock_receipt(self.receipts, share_code)
            if receipt.is_finalized:
                raise AlreadyFinalizedError("Claims can't change after the split is finalized.")

            item = next((row for row in self.receipts.load_items(receipt) if row.key == item_key), None)
            if item is None:
                raise ItemNotFoundError(f"Item {item_key} not found")

            participant, joined = self.participants.upsert(receipt, identity)
            if participant.is_submitted:
                raise ClaimsLockedError("Claims are locked after you submit.")

            total = self.claims.total_claimed(receipt.pk, item.key)
            claim = self.claims.get(receipt.pk, item.key, participant.participant_key)
            existing = claim.quantity if claim else 0

            if delta > 0:
                applied = min(delta, max(0, item.quantity - total))
            else:
                applied = -min(-delta, existing)

            if applied == 0:
                if joined:
                    self.receipts.touch(receipt)
                return ClaimResult(0, existing)

            new_quantity = existing + applied
            self.claims.set_quantity(
                receipt.pk, item.key, participant.participant_key, new_quantity, existing=claim
            )
            self.receipts.touch(receipt)

        logger.info(
            f"Claim on {share_code}/{item_key} by {participant.participant_key}: "
            f"requested {delta}, applied {applied}, now {max(0, new_quantity)}"
        )
        return ClaimResult(applied, max(0, new_quantity))
