"""
Service layer for participants: joining, submission, removal and names
"""
import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from splits.exceptions import AlreadyFinalizedError, CannotRemoveHostError
from splits.identity import Identity, normalized_display_name
from splits.models import Participant, Receipt
from splits.repositories import ClaimRepository, ParticipantRepository, ReceiptRepository
from splits.services.receipt_locks import lock_receipt, require_host
from splits.validators import InputValidator

logger = logging.getLogger(__name__)


class ParticipantRegistry:
    """Who has joined a receipt, and where they are in the split"""

    def __init__(self, receipts: ReceiptRepository = None,
                 participants: ParticipantRepository = None,
                 claims: ClaimRepository = None):
        self.receipts = receipts or ReceiptRepository()
        self.participants = participants or ParticipantRepository()
        self.claims = claims or ClaimRepository()

    def join(self, receipt: Receipt, identity: Identity) -> Optional[Participant]:
        """
        Add the caller to the receipt; safe to repeat.

        Once a receipt is finalized nobody new can join (they could still
        view it), so this returns None without writing anything.
        """
        with transaction.atomic():
            locked = self.receipts.lock_by_id(receipt.pk)
            if locked is None or not locked.is_active or locked.is_finalized:
                return None

            participant, changed = self.participants.upsert(locked, identity)
            if changed:
                self.receipts.touch(locked)

        if changed:
            logger.info(f"{participant.participant_key} joined receipt {locked.share_code}")
        return participant

    def set_submission_status(self, share_code: str, identity: Identity, is_submitted: bool) -> Participant:
        """
        Mark the caller's claims as done (or reopen them).

        Unsubmitting forgets any payment intent computed from the old claims.
        """
        with transaction.atomic():
            receipt = lock_receipt(self.receipts, share_code)
            if receipt.is_finalized:
                raise AlreadyFinalizedError("This split is already finalized.")

            participant, _ = self.participants.upsert(receipt, identity)
            participant.is_submitted = bool(is_submitted)
            participant.submitted_at = timezone.now() if is_submitted else None
            fields = ['is_submitted', 'submitted_at']
            if not is_submitted:
                participant.clear_payment()
                fields += [
                    'payment_status', 'payment_method', 'payment_amount',
                    'payment_marked_at', 'payment_confirmed_at',
                ]
            self.participants.save(participant, fields)
            self.receipts.touch(receipt)

        logger.info(
            f"{participant.participant_key} {'submitted' if is_submitted else 'reopened'} "
            f"claims on {share_code}"
        )
        return participant

    def remove_participant(self, share_code: str, host_identity: Identity, participant_key: str) -> bool:
        """
        Host removes someone, freeing everything they claimed.

        Returns False if there was no such participant.
        """
        with transaction.atomic():
            receipt = lock_receipt(self.receipts, share_code)
            require_host(receipt, host_identity)
            if receipt.is_finalized:
                raise AlreadyFinalizedError("Participants can't be removed after finalizing.")
            if participant_key == receipt.host_participant_key:
                raise CannotRemoveHostError("The host can't be removed.")

            participant = self.participants.get(receipt.pk, participant_key)
            if participant is None:
                return False

            released = self.claims.delete_for_participant(receipt.pk, participant_key)
            self.participants.delete(participant)
            self.receipts.touch(receipt)

        logger.info(f"Removed {participant_key} from {share_code}, released {released} claims")
        return True

    def update_display_name(self, share_code: str, identity: Identity, display_name: str) -> Participant:
        """Rename the caller on this receipt; generic names fall back to the default"""
        cleaned = InputValidator.validate_name(display_name, field_name="Display name")

        with transaction.atomic():
            receipt = lock_receipt(self.receipts, share_code)
            if receipt.is_finalized:
                raise AlreadyFinalizedError("Display names can't be changed after finalization.")

            participant, _ = self.participants.upsert(receipt, identity)
            participant.display_name = normalized_display_name(cleaned) or identity.preferred_display_name
            self.participants.save(participant, ['display_name'])
            self.receipts.touch(receipt)

        return participant
