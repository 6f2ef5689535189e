"""
Repository for Claim data access
Encapsulates all database queries related to claims
"""
from typing import List, Optional

from django.db.models import Sum

from splits.models import Claim


class ClaimRepository:
    """Handles all data access for claims"""

    def list_for_receipt(self, receipt_id) -> List[Claim]:
        return list(Claim.objects.filter(receipt_id=receipt_id).order_by('item_key', 'id'))

    def get(self, receipt_id, item_key: str, participant_key: str) -> Optional[Claim]:
        try:
            return Claim.objects.get(
                receipt_id=receipt_id,
                item_key=item_key,
                participant_key=participant_key,
            )
        except Claim.DoesNotExist:
            return None

    def total_claimed(self, receipt_id, item_key: str) -> int:
        """Sum of every participant's claim on one item"""
        result = Claim.objects.filter(
            receipt_id=receipt_id,
            item_key=item_key,
        ).aggregate(total=Sum('quantity'))
        return result['total'] or 0

    def set_quantity(self, receipt_id, item_key: str, participant_key: str,
                     quantity: int, existing: Optional[Claim] = None) -> Optional[Claim]:
        """Store a participant's claim; zero or less removes the row"""
        if quantity <= 0:
            Claim.objects.filter(
                receipt_id=receipt_id,
                item_key=item_key,
                participant_key=participant_key,
            ).delete()
            return None

        if existing is not None:
            existing.quantity = quantity
            existing.save(update_fields=['quantity', 'updated_at'])
            return existing

        return Claim.objects.create(
            receipt_id=receipt_id,
            item_key=item_key,
            participant_key=participant_key,
            quantity=quantity,
        )

    def delete_for_participant(self, receipt_id, participant_key: str) -> int:
        deleted, _ = Claim.objects.filter(
            receipt_id=receipt_id,
            participant_key=participant_key,
        ).delete()
        return deleted
