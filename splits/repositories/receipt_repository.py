"""
Repository for Receipt data access
Encapsulates all database queries related to receipts and their items
"""
import logging
from typing import Iterable, List, Optional, Tuple

from django.db import transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from splits.items import NormalizedItem
from splits.legacy import parse_legacy_items
from splits.models import (
    Claim, ITEMS_SCHEMA_CURRENT, ITEMS_SCHEMA_LEGACY, Participant, Receipt, ReceiptItem,
)

logger = logging.getLogger(__name__)


class ReceiptRepository:
    """Handles all data access for receipts"""

    def get_by_share_code(self, share_code: str, active_only: bool = True) -> Optional[Receipt]:
        """Get receipt by share code; archived receipts are hidden unless asked for"""
        queryset = Receipt.objects.all()
        if active_only:
            queryset = queryset.filter(is_active=True)
        try:
            return queryset.get(share_code=share_code)
        except Receipt.DoesNotExist:
            return None

    def get_by_id(self, receipt_id) -> Optional[Receipt]:
        try:
            return Receipt.objects.get(id=receipt_id)
        except Receipt.DoesNotExist:
            return None

    def lock_by_share_code(self, share_code: str) -> Optional[Receipt]:
        """
        Lock the receipt row for the rest of the current transaction.

        Every mutation takes this lock first so reads and writes of the
        receipt's claims and participants happen in one critical section.
        """
        try:
            return Receipt.objects.select_for_update().get(share_code=share_code)
        except Receipt.DoesNotExist:
            return None

    def lock_by_id(self, receipt_id) -> Optional[Receipt]:
        try:
            return Receipt.objects.select_for_update().get(id=receipt_id)
        except Receipt.DoesNotExist:
            return None

    def find_for_owner(self, owner_key: str, client_receipt_id: str,
                       for_update: bool = False) -> Optional[Receipt]:
        queryset = Receipt.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(owner_key=owner_key, client_receipt_id=client_receipt_id)
        except Receipt.DoesNotExist:
            return None

    def share_code_exists(self, share_code: str) -> bool:
        return Receipt.objects.filter(share_code=share_code).exists()

    def create(self, **fields) -> Receipt:
        return Receipt.objects.create(**fields)

    def update_fields(self, receipt: Receipt, **fields) -> Receipt:
        for field, value in fields.items():
            setattr(receipt, field, value)
        receipt.save(update_fields=list(fields) + ['updated_at'])
        return receipt

    def touch(self, receipt: Receipt) -> int:
        """Bump the revision so live observers pick up the change"""
        Receipt.objects.filter(pk=receipt.pk).update(
            revision=F('revision') + 1,
            updated_at=timezone.now(),
        )
        receipt.refresh_from_db(fields=['revision', 'updated_at'])
        return receipt.revision

    def touch_many(self, receipt_ids) -> int:
        if not receipt_ids:
            return 0
        return Receipt.objects.filter(pk__in=list(receipt_ids)).update(
            revision=F('revision') + 1,
            updated_at=timezone.now(),
        )

    def get_revision(self, receipt_id) -> Optional[Tuple[int, bool]]:
        """(revision, is_active) for a receipt, or None once it is gone"""
        row = Receipt.objects.filter(pk=receipt_id).values_list('revision', 'is_active').first()
        if row is None:
            return None
        return row[0], row[1]

    @transaction.atomic
    def replace_items(self, receipt: Receipt, items: Iterable[NormalizedItem]) -> List[ReceiptItem]:
        """Replace all items; every claim goes too since item keys may have moved"""
        Claim.objects.filter(receipt=receipt).delete()
        ReceiptItem.objects.filter(receipt=receipt).delete()

        now = timezone.now()
        created = ReceiptItem.objects.bulk_create([
            ReceiptItem(
                receipt=receipt,
                client_item_id=item.client_item_id,
                name=item.name,
                quantity=item.quantity,
                price=item.price,
                sort_order=item.sort_order,
                created_at=now,
            )
            for item in items
        ])
        return sorted(created, key=lambda row: row.sort_order)

    def load_items(self, receipt: Receipt) -> List[ReceiptItem]:
        """Items in display order, migrating a legacy JSON blob on first read"""
        items = list(ReceiptItem.objects.filter(receipt=receipt).order_by('sort_order', 'id'))
        if items or receipt.items_schema_version != ITEMS_SCHEMA_LEGACY:
            return items
        return self.migrate_legacy_items(receipt)

    @transaction.atomic
    def migrate_legacy_items(self, receipt: Receipt) -> List[ReceiptItem]:
        """Normalize a schema 1 receipt into item rows and clear its blob"""
        locked = self.lock_by_id(receipt.pk)
        if locked is None:
            return []
        if locked.items_schema_version != ITEMS_SCHEMA_LEGACY:
            # Another request migrated it while we waited for the lock
            return list(ReceiptItem.objects.filter(receipt=locked).order_by('sort_order', 'id'))

        parsed = parse_legacy_items(locked.legacy_items_json, locked.client_receipt_id)
        now = timezone.now()
        ReceiptItem.objects.bulk_create([
            ReceiptItem(
                receipt=locked,
                client_item_id=item.client_item_id,
                name=item.name,
                quantity=item.quantity,
                price=item.price,
                sort_order=item.sort_order,
                created_at=now,
            )
            for item in parsed
        ])
        Receipt.objects.filter(pk=locked.pk).update(
            legacy_items_json=None,
            items_schema_version=ITEMS_SCHEMA_CURRENT,
        )
        receipt.legacy_items_json = None
        receipt.items_schema_version = ITEMS_SCHEMA_CURRENT
        logger.info(f"Migrated {len(parsed)} legacy items for receipt {receipt.share_code}")
        return list(ReceiptItem.objects.filter(receipt=locked).order_by('sort_order', 'id'))

    def pending_legacy_receipts(self) -> QuerySet:
        return Receipt.objects.filter(items_schema_version=ITEMS_SCHEMA_LEGACY)

    def list_owned(self, owner_key: str, include_archived: bool = False) -> QuerySet:
        queryset = Receipt.objects.filter(owner_key=owner_key)
        if not include_archived:
            queryset = queryset.filter(is_active=True)
        return queryset.order_by('-created_at')

    @transaction.atomic
    def delete(self, receipt: Receipt) -> None:
        """Delete a receipt and everything hanging off it"""
        Claim.objects.filter(receipt=receipt).delete()
        Participant.objects.filter(receipt=receipt).delete()
        ReceiptItem.objects.filter(receipt=receipt).delete()
        receipt.delete()
