"""
Lifecycle controller

Receipts move claiming -> finalized once. Archival is a separate flag: the
host can archive by hand, and a finalized receipt archives itself as soon as
every guest who owes money has had their payment confirmed.
"""
import logging

from django.db import transaction
from django.utils import timezone

from splits.exceptions import (
    HostPaymentIntentError, MissingPaymentOptionsError,
    NoParticipantsError, NoPaymentDueError, NotFinalizedError, ParticipantNotFoundError,
    ParticipantsNotSubmittedError, UnclaimedItemsError,
)
from splits.identity import Identity
from splits.models import ArchiveReason, PaymentStatus, SettlementPhase
from splits.repositories import ClaimRepository, ParticipantRepository, ReceiptRepository
from splits.services.payment_profile_service import PaymentProfileService
from splits.services.receipt_locks import lock_receipt, require_host
from splits.services.settlement_calculator import compute_receipt_settlement, unclaimed_items
from splits.validators import InputValidator

logger = logging.getLogger(__name__)


class LifecycleController:
    """Phase transitions, payment tracking and archival"""

    def __init__(self, receipts: ReceiptRepository = None,
                 participants: ParticipantRepository = None,
                 claims: ClaimRepository = None,
                 payment_profiles: PaymentProfileService = None):
        self.receipts = receipts or ReceiptRepository()
        self.participants = participants or ParticipantRepository()
        self.claims = claims or ClaimRepository()
        self.payment_profiles = payment_profiles or PaymentProfileService()

    def _settlement(self, receipt, participants=None):
        items = self.receipts.load_items(receipt)
        if participants is None:
            participants = self.participants.list_for_receipt(receipt.pk)
        claims = self.claims.list_for_receipt(receipt.pk)
        config = self.payment_profiles.resolve(receipt.owner_key)
        return compute_receipt_settlement(receipt, items, participants, claims, config.absorb_extra_cents)

    def finalize(self, share_code: str, host_identity: Identity) -> bool:
        """
        Lock in the split.

        Requires at least one participant, everyone submitted, every item
        fully claimed and a way to pay the host. Finalizing twice is a no-op.
        """
        with transaction.atomic():
            receipt = lock_receipt(self.receipts, share_code)
            require_host(receipt, host_identity)
            if receipt.is_finalized:
                return True

            participants = self.participants.list_for_receipt(receipt.pk)
            if not participants:
                raise NoParticipantsError("No one has joined this split yet.")

            waiting = [p for p in participants if not p.is_submitted]
            if waiting:
                raise ParticipantsNotSubmittedError(
                    f"{len(waiting)} participant(s) haven't submitted yet."
                )

            items = self.receipts.load_items(receipt)
            remaining = unclaimed_items(items, self.claims.list_for_receipt(receipt.pk))
            if remaining:
                raise UnclaimedItemsError(f"{len(remaining)} item(s) still need to be claimed.")

            if not self.payment_profiles.resolve(receipt.owner_key).has_payment_options:
                raise MissingPaymentOptionsError("Add a payment option before finalizing.")

            self.receipts.update_fields(
                receipt,
                settlement_phase=SettlementPhase.FINALIZED,
                finalized_at=timezone.now(),
                archived_reason=None,
            )
            self.receipts.touch(receipt)

        logger.info(f"Finalized receipt {share_code} with {len(participants)} participants")
        return True

    def mark_payment_intent(self, share_code: str, identity: Identity, method) -> dict:
        """Guest says they've paid (or are paying) the host"""
        method = InputValidator.validate_payment_method(method)

        with transaction.atomic():
            receipt = lock_receipt(self.receipts, share_code)
            if not receipt.is_finalized:
                raise NotFinalizedError("This split isn't finalized yet.")
            if identity.participant_key == receipt.host_participant_key:
                raise HostPaymentIntentError("Host doesn't submit payment intents.")

            participants = self.participants.list_for_receipt(receipt.pk)
            participant = next(
                (p for p in participants if p.participant_key == identity.participant_key), None
            )
            if participant is None:
                raise ParticipantNotFoundError("Participant not found.")

            totals = self._settlement(receipt, participants)
            amount_due = totals[participant.participant_key].total_due
            if amount_due <= 0:
                raise NoPaymentDueError("No payment due.")

            participant.payment_status = PaymentStatus.PENDING
            participant.payment_method = method
            participant.payment_amount = amount_due
            participant.payment_marked_at = timezone.now()
            participant.payment_confirmed_at = None
            self.participants.save(participant, [
                'payment_status', 'payment_method', 'payment_amount',
                'payment_marked_at', 'payment_confirmed_at',
            ])
            self.receipts.touch(receipt)

        logger.info(f"{participant.participant_key} marked {amount_due} via {method.value} on {share_code}")
        return {
            'payment_status': PaymentStatus.PENDING,
            'amount': amount_due,
            'method': method,
        }

    def confirm_payment(self, share_code: str, host_identity: Identity, participant_key: str) -> dict:
        """
        Host confirms a guest paid.

        The auto-archive check runs on participants re-read after the
        confirmation is written, inside the same transaction.
        """
        with transaction.atomic():
            receipt = lock_receipt(self.receipts, share_code)
            require_host(receipt, host_identity)
            if not receipt.is_finalized:
                raise NotFinalizedError("This split isn't finalized yet.")
            if participant_key == receipt.host_participant_key:
                raise HostPaymentIntentError("Host doesn't need payment confirmation.")

            target = self.participants.get(receipt.pk, participant_key)
            if target is None:
                raise ParticipantNotFoundError("Participant not found.")

            target.payment_status = PaymentStatus.CONFIRMED
            target.payment_confirmed_at = timezone.now()
            self.participants.save(target, ['payment_status', 'payment_confirmed_at'])

            participants = self.participants.list_for_receipt(receipt.pk)
            totals = self._settlement(receipt, participants)
            payable = [
                p for p in participants
                if p.participant_key != receipt.host_participant_key
                and totals[p.participant_key].total_due > 0
            ]
            archived = bool(payable) and all(p.payment_status == PaymentStatus.CONFIRMED for p in payable)
            if archived:
                self.receipts.update_fields(
                    receipt, is_active=False, archived_reason=ArchiveReason.AUTO_SETTLED
                )
            self.receipts.touch(receipt)

        logger.info(f"Host confirmed payment from {participant_key} on {share_code}")
        if archived:
            logger.info(f"Receipt {share_code} settled in full and was archived")
        return {'confirmed': True, 'archived': archived}

    def archive(self, client_receipt_id: str, owner_identity: Identity) -> bool:
        with transaction.atomic():
            receipt = self.receipts.find_for_owner(
                owner_identity.participant_key, client_receipt_id, for_update=True
            )
            if receipt is None:
                return False
            self.receipts.update_fields(receipt, is_active=False, archived_reason=ArchiveReason.MANUAL)
            self.receipts.touch(receipt)

        logger.info(f"Archived receipt {receipt.share_code}")
        return True

    def unarchive(self, client_receipt_id: str, owner_identity: Identity) -> bool:
        with transaction.atomic():
            receipt = self.receipts.find_for_owner(
                owner_identity.participant_key, client_receipt_id, for_update=True
            )
            if receipt is None:
                return False
            self.receipts.update_fields(receipt, is_active=True, archived_reason=None)
            self.receipts.touch(receipt)

        logger.info(f"Unarchived receipt {receipt.share_code}")
        return True

    def destroy(self, client_receipt_id: str, owner_identity: Identity) -> bool:
        """Delete the receipt with its items, participants and claims"""
        with transaction.atomic():
            receipt = self.receipts.find_for_owner(
                owner_identity.participant_key, client_receipt_id, for_update=True
            )
            if receipt is None:
                return False
            share_code = receipt.share_code
            self.receipts.delete(receipt)

        logger.info(f"Destroyed receipt {share_code}")
        return True
