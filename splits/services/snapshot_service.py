"""
Read side: immutable views of a receipt and its live settlement
"""
import logging
from typing import Optional

from django.db import transaction

from splits.identity import Identity, default_display_name, normalized_display_name
from splits.middleware.query_monitor import log_query_performance
from splits.models import Receipt, SettlementPhase
from splits.money import compute_gratuity_percent, compute_other_fees
from splits.repositories import ClaimRepository, ParticipantRepository, ReceiptRepository
from splits.schemas import (
    ItemClaimView, ItemView, ParticipantView, PaymentQueueEntry, ReceiptSummaryView,
    ReceiptView, SettlementSnapshot, ViewerSettlementView,
)
from splits.services.payment_profile_service import PaymentProfileService
from splits.services.settlement_calculator import (
    SettlementTotals, claimed_quantities, compute_receipt_settlement,
    receipt_extra_fees_total, unclaimed_items,
)

logger = logging.getLogger(__name__)

HOST_FALLBACK_NAME = 'Host'

# Optimistic builds before falling back to the receipt lock
SNAPSHOT_ATTEMPTS = 3


def _totals_fields(totals: SettlementTotals) -> dict:
    return {
        'item_subtotal': totals.item_subtotal,
        'tax_share': totals.tax_share,
        'gratuity_share': totals.gratuity_share,
        'other_share': totals.other_share,
        'extra_fees_share': totals.extra_fees_share,
        'rounding_adjustment': totals.rounding_adjustment,
        'total_due': totals.total_due,
    }


class SnapshotService:
    """Builds ReceiptView and SettlementSnapshot objects from committed state"""

    def __init__(self, receipts: ReceiptRepository = None,
                 participants: ParticipantRepository = None,
                 claims: ClaimRepository = None,
                 payment_profiles: PaymentProfileService = None):
        self.receipts = receipts or ReceiptRepository()
        self.participants = participants or ParticipantRepository()
        self.claims = claims or ClaimRepository()
        self.payment_profiles = payment_profiles or PaymentProfileService()

    def receipt_view(self, receipt: Receipt, identity: Optional[Identity] = None) -> ReceiptView:
        items = self.receipts.load_items(receipt)
        return ReceiptView(
            id=str(receipt.id),
            code=receipt.share_code,
            client_receipt_id=receipt.client_receipt_id,
            created_at=receipt.created_at,
            is_active=receipt.is_active,
            settlement_phase=receipt.settlement_phase,
            finalized_at=receipt.finalized_at,
            archived_reason=receipt.archived_reason,
            receipt_total=receipt.receipt_total,
            subtotal=receipt.subtotal,
            tax=receipt.tax,
            gratuity=receipt.gratuity,
            extra_fees_total=receipt.extra_fees_total,
            other_fees=receipt.other_fees,
            gratuity_percent=receipt.gratuity_percent,
            can_manage=identity is not None and identity.participant_key == receipt.host_participant_key,
            items=[
                ItemView(
                    key=item.key,
                    client_item_id=item.client_item_id or None,
                    name=item.name,
                    quantity=item.quantity,
                    price=item.price,
                    sort_order=item.sort_order,
                )
                for item in items
            ],
        )

    def summary_view(self, receipt: Receipt, identity: Optional[Identity] = None) -> ReceiptSummaryView:
        view = self.receipt_view(receipt, identity)
        fields = view.model_dump(exclude={'items'})
        return ReceiptSummaryView(**fields, item_count=len(view.items))

    @log_query_performance
    def build_snapshot(self, receipt: Receipt,
                       identity: Optional[Identity] = None) -> Optional[SettlementSnapshot]:
        """
        Snapshot of the receipt as of a single revision.

        The rows behind a snapshot are read in separate queries, so it is
        built optimistically and rebuilt whenever the revision moved while
        reading. If writes keep landing it is built once more holding the
        receipt lock. Returns None once the receipt is archived or gone.
        """
        for attempt in range(SNAPSHOT_ATTEMPTS):
            current = self.receipts.get_by_id(receipt.pk)
            if current is None or not current.is_active:
                return None
            snapshot = self._snapshot_at(current, identity)
            if self.receipts.get_revision(receipt.pk) == (current.revision, True):
                return snapshot
            logger.debug(
                f"Receipt {current.share_code} changed while building snapshot, attempt {attempt + 1}"
            )

        with transaction.atomic():
            current = self.receipts.lock_by_id(receipt.pk)
            if current is None or not current.is_active:
                return None
            return self._snapshot_at(current, identity)

    def _snapshot_at(self, receipt: Receipt, identity: Optional[Identity]) -> SettlementSnapshot:
        """
        Everything the live screen shows for one read of the receipt.

        The host always appears among the participants, with zero totals if
        they never joined; they don't count towards submission or settlement.
        """
        items = self.receipts.load_items(receipt)
        rows = self.participants.list_for_receipt(receipt.pk)
        claims = self.claims.list_for_receipt(receipt.pk)
        config = self.payment_profiles.resolve(receipt.owner_key)
        totals = compute_receipt_settlement(receipt, items, rows, claims, config.absorb_extra_cents)

        host_key = receipt.host_participant_key
        viewer_key = identity.participant_key if identity else None
        rows_by_key = {row.participant_key: row for row in rows}
        host_row = rows_by_key.get(host_key)
        viewer_row = rows_by_key.get(viewer_key) if viewer_key else None

        def display_name_for(row):
            name = normalized_display_name(row.display_name)
            if name:
                return name
            if row.participant_key == host_key:
                return HOST_FALLBACK_NAME
            return default_display_name(row.participant_key)

        participants = []
        if host_row is None:
            participants.append(ParticipantView(
                participant_key=host_key,
                display_name=HOST_FALLBACK_NAME,
                is_host=True,
                **_totals_fields(SettlementTotals()),
            ))
        for row in rows:
            participants.append(ParticipantView(
                participant_key=row.participant_key,
                display_name=display_name_for(row),
                is_host=row.participant_key == host_key,
                joined_at=row.joined_at,
                is_submitted=row.is_submitted,
                submitted_at=row.submitted_at,
                payment_status=row.payment_status,
                payment_method=row.payment_method,
                payment_amount=row.payment_amount,
                **_totals_fields(totals.get(row.participant_key, SettlementTotals())),
            ))

        is_finalized = receipt.settlement_phase == SettlementPhase.FINALIZED
        viewer_settlement = None
        if viewer_row is not None:
            viewer_settlement = ViewerSettlementView(
                can_pay=is_finalized and viewer_key != host_key,
                payment_status=viewer_row.payment_status,
                payment_method=viewer_row.payment_method,
                **_totals_fields(totals.get(viewer_key, SettlementTotals())),
            )

        claimed = claimed_quantities(claims)
        viewer_claimed = claimed_quantities(
            claim for claim in claims if viewer_key and claim.participant_key == viewer_key
        )
        item_views = [
            ItemClaimView(
                key=item.key,
                client_item_id=item.client_item_id or None,
                name=item.name,
                quantity=item.quantity,
                price=item.price,
                sort_order=item.sort_order,
                claimed_quantity=claimed.get(item.key, 0),
                viewer_claimed_quantity=viewer_claimed.get(item.key, 0),
                remaining_quantity=max(0, item.quantity - claimed.get(item.key, 0)),
            )
            for item in items
        ]

        payment_queue = [
            PaymentQueueEntry(
                participant_key=row.participant_key,
                display_name=display_name_for(row),
                amount_due=totals[row.participant_key].total_due,
                payment_status=row.payment_status,
                payment_method=row.payment_method,
                payment_amount=row.payment_amount,
            )
            for row in rows
            if row.participant_key != host_key and totals[row.participant_key].total_due > 0
        ]

        extra_fees_total = receipt_extra_fees_total(receipt, items)
        other_fees = receipt.other_fees
        if other_fees is None:
            other_fees = compute_other_fees(extra_fees_total, receipt.tax, receipt.gratuity)
        gratuity_percent = receipt.gratuity_percent
        if gratuity_percent is None:
            gratuity_percent = compute_gratuity_percent(receipt.gratuity, receipt.subtotal)

        return SettlementSnapshot(
            id=str(receipt.id),
            code=receipt.share_code,
            client_receipt_id=receipt.client_receipt_id,
            created_at=receipt.created_at,
            is_active=receipt.is_active,
            settlement_phase=receipt.settlement_phase,
            finalized_at=receipt.finalized_at,
            archived_reason=receipt.archived_reason,
            receipt_total=receipt.receipt_total,
            subtotal=receipt.subtotal,
            tax=receipt.tax,
            gratuity=receipt.gratuity,
            extra_fees_total=extra_fees_total,
            other_fees=other_fees,
            gratuity_percent=gratuity_percent,
            revision=receipt.revision,
            can_manage=viewer_key == host_key,
            viewer_participant_key=viewer_key,
            viewer_removed=viewer_key is not None and viewer_key != host_key and viewer_row is None,
            host_participant_key=host_key,
            host_display_name=display_name_for(host_row) if host_row else HOST_FALLBACK_NAME,
            host_has_payment_options=config.has_payment_options,
            host_payment_options=config.public_options(),
            all_participants_submitted=bool(rows) and all(row.is_submitted for row in rows),
            unclaimed_item_count=len(unclaimed_items(items, claims)),
            participants=participants,
            viewer_settlement=viewer_settlement,
            items=item_views,
            host_payment_queue=payment_queue,
        )
