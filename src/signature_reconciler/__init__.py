"""
Signature Reconciler

Confirms DocuSign signer completion for two-party legal agreements, advances
the agreement state machine idempotently and materializes the downstream
Deal exactly once.
"""

__version__ = '0.1.0'

# Re-export key classes for convenience
from .reconciliation import (
    ReconciliationEngine,
    ReconcilerService,
    DealMaterializer,
    AgentLockCoordinator,
    AgreementSweeper,
    ProviderSessionManager,
)
from .repository import AgreementStore, DealRepository, ConnectionRepository
from .logging import (
    configure_logging,
    logging_context,
    ReconcileTimer,
)
from .errors import (
    ReconcilerError,
    RequestError,
    NotFoundError,
    ConfigError,
    ClientError,
    PartialSuccessResult,
)

__all__ = [
    # Version
    '__version__',
    # Reconciliation
    'ReconciliationEngine',
    'ReconcilerService',
    'DealMaterializer',
    'AgentLockCoordinator',
    'AgreementSweeper',
    'ProviderSessionManager',
    # Repositories
    'AgreementStore',
    'DealRepository',
    'ConnectionRepository',
    # Logging
    'configure_logging',
    'logging_context',
    'ReconcileTimer',
    # Errors
    'ReconcilerError',
    'RequestError',
    'NotFoundError',
    'ConfigError',
    'ClientError',
    'PartialSuccessResult',
]
