"""
Provider-side models: stored DocuSign connection, the session value handed
to the provider client, and recipient-status snapshots.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils import ensure_utc, utc_now

COMPLETED = 'completed'


class DocuSignConnection(BaseModel):
    """Persisted OAuth connection to the DocuSign account."""

    model_config = ConfigDict(extra='allow')

    id: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    account_id: str
    base_uri: str


class ProviderSession(BaseModel):
    """
    Immutable credentials for one reconcile call.

    Obtained from ProviderSessionManager and passed explicitly to the
    provider client; nothing caches tokens at module level.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    account_id: str
    base_uri: str
    expires_at: datetime | None = None

    @property
    def is_demo(self) -> bool:
        return 'demo' in self.base_uri

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return ensure_utc(now or utc_now()) >= ensure_utc(self.expires_at)


class RecipientStatus(BaseModel):
    """One signer row from the envelope recipients endpoint."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    recipient_id: str = Field(..., alias='recipientId')
    status: str | None = None
    signed_date_time: datetime | None = Field(default=None, alias='signedDateTime')
    email: str | None = None

    @field_validator('recipient_id', mode='before')
    @classmethod
    def _coerce_recipient_id(cls, value):
        return str(value) if value is not None else value

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED


class RecipientSnapshot(BaseModel):
    """
    Signer statuses for an envelope as of ``fetched_at``.

    ``fetched_at`` is the signed-time fallback when the provider omits
    ``signedDateTime``, so re-applying the same snapshot always yields the
    same agreement fields.
    """

    envelope_id: str
    recipients: list[RecipientStatus] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=utc_now)

    def find(self, recipient_id: str) -> RecipientStatus | None:
        for recipient in self.recipients:
            if str(recipient.recipient_id) == str(recipient_id):
                return recipient
        return None

    def is_completed(self, recipient_id: str) -> bool:
        recipient = self.find(recipient_id)
        return recipient is not None and recipient.is_completed

    def signed_at(self, recipient_id: str) -> datetime:
        """Provider signed time for a completed recipient, else ``fetched_at``."""
        recipient = self.find(recipient_id)
        if recipient is not None and recipient.signed_date_time is not None:
            return recipient.signed_date_time
        return self.fetched_at


class TokenGrant(BaseModel):
    """Response of the OAuth refresh-token grant."""

    model_config = ConfigDict(extra='ignore')

    access_token: str
    refresh_token: str | None = None
    expires_in: int = 3600
    token_type: str | None = None
