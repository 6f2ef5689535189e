"""
Shared preconditions for receipt mutations.

Callers must already be inside ``transaction.atomic()``; the receipt row stays
locked until that transaction commits or rolls back.
"""
from splits.exceptions import (
    HostOnlyActionError, InvalidShareCodeError, ReceiptArchivedError, ReceiptNotFoundError,
)
from splits.identity import Identity
from splits.models import Receipt
from splits.repositories import ReceiptRepository
from splits.validators import InputValidator


def lock_receipt(receipts: ReceiptRepository, share_code: str) -> Receipt:
    """Lock an active receipt by share code or raise"""
    if not InputValidator.is_valid_share_code(share_code):
        raise InvalidShareCodeError("Share code must be 6 digits")

    receipt = receipts.lock_by_share_code(share_code)
    if receipt is None:
        raise ReceiptNotFoundError("Receipt not found.")
    if not receipt.is_active:
        raise ReceiptArchivedError("Receipt is archived.")
    return receipt


def require_host(receipt: Receipt, identity: Identity) -> None:
    if identity is None or identity.participant_key != receipt.host_participant_key:
        raise HostOnlyActionError("Only the host can perform this action.")
