"""Application services — use case orchestration."""

from trust_settlement.services.cascade import TrustCascade
from trust_settlement.services.commission_service import CommissionService
from trust_settlement.services.context import ServiceContext
from trust_settlement.services.escrow_service import EscrowService
from trust_settlement.services.reputation_service import ReputationService
from trust_settlement.services.trust_service import TrustService
from trust_settlement.services.verification_service import VerificationService

__all__ = [
    "CommissionService",
    "EscrowService",
    "ReputationService",
    "ServiceContext",
    "TrustCascade",
    "TrustService",
    "VerificationService",
]
