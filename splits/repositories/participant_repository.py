"""
Repository for Participant data access
"""
from typing import List, Optional, Tuple

from django.db.models import QuerySet
from django.utils import timezone

from splits.identity import Identity, normalized_display_name
from splits.models import Participant, PaymentStatus, Receipt


class ParticipantRepository:
    """Handles all data access for receipt participants"""

    def list_for_receipt(self, receipt_id) -> List[Participant]:
        """Participants in join order"""
        return list(Participant.objects.filter(receipt_id=receipt_id).order_by('joined_at', 'id'))

    def get(self, receipt_id, participant_key: str) -> Optional[Participant]:
        try:
            return Participant.objects.get(receipt_id=receipt_id, participant_key=participant_key)
        except Participant.DoesNotExist:
            return None

    def upsert(self, receipt: Receipt, identity: Identity) -> Tuple[Participant, bool]:
        """
        Insert the caller as a participant, or refresh their row.

        A name the participant already chose is kept; generic placeholders
        ("Guest", "you") get replaced by the identity's name. Returns the row
        and whether anything was written.
        """
        participant_key = identity.participant_key
        participant = self.get(receipt.pk, participant_key)

        if participant is None:
            participant = Participant.objects.create(
                receipt=receipt,
                participant_key=participant_key,
                user_id=identity.user_id or '',
                guest_device_id=identity.guest_device_id or '',
                display_name=identity.preferred_display_name,
                joined_at=timezone.now(),
            )
            return participant, True

        refreshed = {
            'user_id': identity.user_id or '',
            'guest_device_id': identity.guest_device_id or '',
            'display_name': (
                normalized_display_name(participant.display_name) or identity.preferred_display_name
            ),
        }
        changed = [field for field, value in refreshed.items() if getattr(participant, field) != value]
        if not changed:
            return participant, False

        for field in changed:
            setattr(participant, field, refreshed[field])
        participant.save(update_fields=changed + ['updated_at'])
        return participant, True

    def save(self, participant: Participant, fields: List[str]) -> Participant:
        participant.save(update_fields=fields + ['updated_at'])
        return participant

    def reset_for_claiming(self, receipt_id) -> int:
        """Forget every submission and payment on the receipt"""
        return Participant.objects.filter(receipt_id=receipt_id).update(
            is_submitted=False,
            submitted_at=None,
            payment_status=PaymentStatus.NONE,
            payment_method=None,
            payment_amount=None,
            payment_marked_at=None,
            payment_confirmed_at=None,
            updated_at=timezone.now(),
        )

    def delete(self, participant: Participant) -> None:
        participant.delete()

    def rows_for_key(self, participant_key: str) -> QuerySet:
        """Every participant row an identity has, across receipts"""
        return Participant.objects.filter(participant_key=participant_key).select_related('receipt')
