"""Domain models for Onebox Sync."""

from datetime import datetime, timezone
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field


class EmailLabel(str, Enum):
    """The closed set of categories an ingested email can be assigned."""

    INTERESTED = "Interested"
    MEETING_BOOKED = "Meeting Booked"
    NOT_INTERESTED = "Not Interested"
    SPAM = "Spam"
    OUT_OF_OFFICE = "Out of Office"


# The one label that triggers outbound notifications.
POSITIVE_SIGNAL_LABEL = EmailLabel.INTERESTED


class Unavailable(Enum):
    """Explicit "no classification" outcome once retries are exhausted."""

    UNAVAILABLE = "unavailable"


UNAVAILABLE = Unavailable.UNAVAILABLE

ClassificationResult = Union[EmailLabel, Unavailable]


class IngestStatus(str, Enum):
    """Where a single message's pipeline run ended."""

    PARSE_FAILED = "parse_failed"
    PERSIST_FAILED = "persist_failed"
    STORED = "stored"
    CLASSIFIED = "classified"
    UNCLASSIFIED = "unclassified"
    LABEL_UPDATE_FAILED = "label_update_failed"


class LeadNotification(BaseModel):
    """Payload handed to every notifier for a positive-signal email."""

    subject: str
    sender: str
    account_id: str
    category: EmailLabel
    date: datetime
    document_id: str
    body: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def preview(self, limit: int) -> str:
        """Body truncated to ``limit`` characters with an ellipsis when cut."""
        if len(self.body) <= limit:
            return self.body
        return self.body[:limit] + "..."
