from .receipt_repository import ReceiptRepository
from .participant_repository import ParticipantRepository
from .claim_repository import ClaimRepository

__all__ = ['ReceiptRepository', 'ParticipantRepository', 'ClaimRepository']
