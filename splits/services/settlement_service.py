"""
Settlement service facade

One explicitly constructed object exposing every receipt operation. It owns
the repositories and hands the same instances to each collaborator; views
build one per request instead of sharing a module-level singleton.
"""
from typing import Dict, Iterable, List, Optional

from splits.exceptions import AuthenticationRequiredError
from splits.identity import Identity
from splits.live import SettlementWatch
from splits.models import Participant
from splits.repositories import ClaimRepository, ParticipantRepository, ReceiptRepository
from splits.schemas import PaymentProfilePayload, ReceiptSummaryView, ReceiptView, SettlementSnapshot
from splits.services.claim_service import ClaimLedger, ClaimResult
from splits.services.lifecycle_service import LifecycleController
from splits.services.participant_service import ParticipantRegistry
from splits.services.payment_profile_service import HostPaymentConfig, PaymentProfileService
from splits.services.receipt_service import ReceiptService
from splits.services.snapshot_service import SnapshotService
from splits.validators import InputValidator


def require_identity(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise AuthenticationRequiredError("Authentication required.")
    return identity


class SettlementService:
    """Entry point for the claim/settlement engine"""

    def __init__(self, receipts: ReceiptRepository = None,
                 participants: ParticipantRepository = None,
                 claims: ClaimRepository = None,
                 payment_profiles: PaymentProfileService = None,
                 code_generator=None):
        self.receipts = receipts or ReceiptRepository()
        self.participants = participants or ParticipantRepository()
        self.claims = claims or ClaimRepository()
        self.payment_profiles = payment_profiles or PaymentProfileService()

        repos = (self.receipts, self.participants, self.claims)
        self.snapshots = SnapshotService(*repos, payment_profiles=self.payment_profiles)
        self.registry = ParticipantRegistry(*repos)
        self.ledger = ClaimLedger(*repos)
        self.lifecycle = LifecycleController(*repos, payment_profiles=self.payment_profiles)
        self.receipt_service = ReceiptService(
            *repos,
            registry=self.registry,
            snapshots=self.snapshots,
            code_generator=code_generator,
        )

    # Receipts

    def create_receipt(self, owner_identity: Identity, client_receipt_id: str,
                       items: Iterable[dict], fee_totals: Optional[Dict] = None) -> Dict:
        return self.receipt_service.create_receipt(owner_identity, client_receipt_id, items, fee_totals)

    def get_receipt(self, share_code: str, identity: Optional[Identity] = None) -> Optional[ReceiptView]:
        return self.receipt_service.get_receipt(share_code, identity)

    def join_receipt(self, share_code: str, identity: Identity) -> Optional[ReceiptView]:
        return self.receipt_service.join_receipt(share_code, identity)

    def list_recent(self, identity: Optional[Identity], limit: Optional[int] = None,
                    include_archived: bool = False) -> List[ReceiptSummaryView]:
        return self.receipt_service.list_recent(identity, limit, include_archived)

    def migrate_guest_data(self, auth_identity: Identity, guest_device_id: str) -> Dict[str, int]:
        return self.receipt_service.migrate_guest_data(auth_identity, guest_device_id)

    # Live reads

    def get_snapshot(self, share_code: str, identity: Optional[Identity] = None) -> Optional[SettlementSnapshot]:
        if not InputValidator.is_valid_share_code(share_code):
            return None
        receipt = self.receipts.get_by_share_code(share_code)
        if receipt is None:
            return None
        return self.snapshots.build_snapshot(receipt, identity)

    def observe_settlement(self, share_code: str, identity: Optional[Identity] = None,
                           poll_interval: Optional[float] = None, **watch_options) -> Optional[SettlementWatch]:
        """Watch a receipt's settlement; None if it isn't available right now"""
        if not InputValidator.is_valid_share_code(share_code):
            return None
        receipt = self.receipts.get_by_share_code(share_code)
        if receipt is None:
            return None
        return SettlementWatch(
            receipt.pk,
            identity,
            snapshots=self.snapshots,
            receipts=self.receipts,
            poll_interval=poll_interval,
            **watch_options,
        )

    # Claims and participants

    def adjust_claim(self, share_code: str, item_key: str, identity: Identity, delta) -> ClaimResult:
        return self.ledger.adjust_claim(share_code, item_key, require_identity(identity), delta)

    def set_submission_status(self, share_code: str, identity: Identity, is_submitted: bool) -> Participant:
        return self.registry.set_submission_status(share_code, require_identity(identity), is_submitted)

    def remove_participant(self, share_code: str, host_identity: Identity, participant_key: str) -> bool:
        return self.registry.remove_participant(share_code, require_identity(host_identity), participant_key)

    def update_display_name(self, share_code: str, identity: Identity, display_name: str) -> Participant:
        return self.registry.update_display_name(share_code, require_identity(identity), display_name)

    # Lifecycle

    def finalize_settlement(self, share_code: str, host_identity: Identity) -> bool:
        return self.lifecycle.finalize(share_code, require_identity(host_identity))

    def mark_payment_intent(self, share_code: str, identity: Identity, method) -> dict:
        return self.lifecycle.mark_payment_intent(share_code, require_identity(identity), method)

    def confirm_payment(self, share_code: str, host_identity: Identity, participant_key: str) -> dict:
        return self.lifecycle.confirm_payment(share_code, require_identity(host_identity), participant_key)

    def archive(self, client_receipt_id: str, owner_identity: Identity) -> bool:
        return self.lifecycle.archive(client_receipt_id, require_identity(owner_identity))

    def unarchive(self, client_receipt_id: str, owner_identity: Identity) -> bool:
        return self.lifecycle.unarchive(client_receipt_id, require_identity(owner_identity))

    def destroy(self, client_receipt_id: str, owner_identity: Identity) -> bool:
        return self.lifecycle.destroy(client_receipt_id, require_identity(owner_identity))

    # Host payment profile

    def update_payment_profile(self, identity: Identity, payload: PaymentProfilePayload) -> HostPaymentConfig:
        return self.payment_profiles.update_profile(require_identity(identity), payload)
