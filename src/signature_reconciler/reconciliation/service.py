"""
Wiring for the reconciliation components.

Builds the engine and sweeper over one entity store and one set of clients.
"""

from dataclasses import dataclass

from ..clients.docusign_client import DocuSignClient
from ..clients.function_client import FunctionClient
from ..repository import AgreementStore, ConnectionRepository, DealRepository
from ..store.base import EntityStore
from .engine import ReconciliationEngine
from .locking import AgentLockCoordinator
from .materializer import DealMaterializer
from .session import ProviderSessionManager
from .sweep import AgreementSweeper


@dataclass
class ReconcilerService:
    """Engine and sweeper sharing repositories and clients."""

    engine: ReconciliationEngine
    sweeper: AgreementSweeper

    @classmethod
    def build(
        cls,
        store: EntityStore,
        provider: DocuSignClient,
        functions: FunctionClient,
        **engine_options,
    ) -> 'ReconcilerService':
        """
        Wire every component over ``store``.

        Args:
            store: Entity store backend
            provider: DocuSign client
            functions: Backend function client
            **engine_options: Passed to ReconciliationEngine (poll tuning, sleep, clock)
        """
        agreements = AgreementStore(store)
        deals = DealRepository(store)
        sessions = ProviderSessionManager(ConnectionRepository(store), provider)
        materializer = DealMaterializer(agreements, deals, functions)
        locker = AgentLockCoordinator(deals)

        engine = ReconciliationEngine(
            agreements=agreements,
            provider=provider,
            sessions=sessions,
            materializer=materializer,
            locker=locker,
            **engine_options,
        )
        sweeper = AgreementSweeper(
            agreements=agreements,
            provider=provider,
            sessions=sessions,
            materializer=materializer,
            locker=locker,
        )
        return cls(engine=engine, sweeper=sweeper)
