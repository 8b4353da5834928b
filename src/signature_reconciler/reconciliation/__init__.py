"""
Signature reconciliation components.
"""

from .engine import ReconciliationEngine
from .locking import AgentLockCoordinator
from .materializer import DealMaterializer, build_deal
from .service import ReconcilerService
from .session import ProviderSessionManager
from .sweep import AgreementSweeper
from .transitions import compute_transition, newly_completed_roles

__all__ = [
    'ReconciliationEngine',
    'AgentLockCoordinator',
    'DealMaterializer',
    'build_deal',
    'ReconcilerService',
    'ProviderSessionManager',
    'AgreementSweeper',
    'compute_transition',
    'newly_completed_roles',
]
