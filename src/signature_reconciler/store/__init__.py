"""
Entity store backends.
"""

from .base import (
    DEAL,
    DEAL_DRAFT,
    DEAL_INVITE,
    DOCUSIGN_CONNECTION,
    LEGAL_AGREEMENT,
    NEWEST_FIRST,
    ROOM,
    EntityStore,
)
from .memory import InMemoryEntityStore
from .postgres import PostgresEntityStore

__all__ = [
    'DEAL',
    'DEAL_DRAFT',
    'DEAL_INVITE',
    'DOCUSIGN_CONNECTION',
    'LEGAL_AGREEMENT',
    'NEWEST_FIRST',
    'ROOM',
    'EntityStore',
    'InMemoryEntityStore',
    'PostgresEntityStore',
]
