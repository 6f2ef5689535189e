from .claim_service import ClaimLedger, ClaimResult
from .lifecycle_service import LifecycleController
from .participant_service import ParticipantRegistry
from .payment_profile_service import HostPaymentConfig, PaymentProfileService
from .receipt_service import ReceiptService
from .snapshot_service import SnapshotService
from .settlement_service import SettlementService

__all__ = [
    'ClaimLedger', 'ClaimResult', 'LifecycleController', 'ParticipantRegistry',
    'HostPaymentConfig', 'PaymentProfileService', 'ReceiptService',
    'SnapshotService', 'SettlementService',
]
