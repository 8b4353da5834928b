"""
Entity store interface.

The marketplace keeps its entities (LegalAgreement, Deal, DealDraft, Room,
DealInvite, DocuSignConnection) in a document store with filter-by-field
reads, partial updates, creates and deletes. Nothing is transactional; the
only guarantee this service relies on beyond eventual consistency is the
unique key on ``Deal.current_legal_agreement_id``, which turns a racing
double-create into a UniqueConstraintError the caller can fall back from.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

# Entity names
LEGAL_AGREEMENT = 'LegalAgreement'
DEAL = 'Deal'
DEAL_DRAFT = 'DealDraft'
ROOM = 'Room'
DEAL_INVITE = 'DealInvite'
DOCUSIGN_CONNECTION = 'DocuSignConnection'

# entity -> fields that must be unique across non-null values
UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    DEAL: ('current_legal_agreement_id',),
}

NEWEST_FIRST = '-created_date'


class EntityStore(ABC):
    """Abstract interface for entity storage backends.

    Methods:
        get: Fetch one record by id.
        filter: Records whose fields equal every criteria value.
        create: Insert a record, assigning ``id`` and ``created_date``.
        update: Merge ``fields`` into an existing record.
        delete: Remove a record.
    """

    @abstractmethod
    async def get(self, entity: str, entity_id: str) -> dict[str, Any] | None:
        """Fetch a record by id, or None."""
        ...

    @abstractmethod
    async def filter(
        self,
        entity: str,
        criteria: dict[str, Any],
        order_by: str | None = None,
        limit: int | None = None,
        exclude: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Records matching all criteria. ``order_by`` accepts '-created_date'.

        ``exclude`` drops records whose field equals the given value; a None
        value drops records where the field is missing or empty.
        """
        ...

    @abstractmethod
    async def create(self, entity: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return it. Raises UniqueConstraintError on key clash."""
        ...

    @abstractmethod
    async def update(
        self,
        entity: str,
        entity_id: str,
        fields: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Partial update. Returns the merged record, or None if it does not exist."""
        ...

    @abstractmethod
    async def delete(self, entity: str, entity_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""
        ...

    async def verify_connectivity(self) -> bool:
        """Return True if the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
        return None
