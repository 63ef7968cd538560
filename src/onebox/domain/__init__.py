"""Domain models and entities."""

from onebox.domain.entities.account import Account, CredentialPair
from onebox.domain.entities.email_message import NormalizedEmail
from onebox.domain.models import (
    POSITIVE_SIGNAL_LABEL,
    UNAVAILABLE,
    ClassificationResult,
    EmailLabel,
    IngestStatus,
    LeadNotification,
    Unavailable,
)

__all__ = [
    "Account",
    "CredentialPair",
    "NormalizedEmail",
    "EmailLabel",
    "POSITIVE_SIGNAL_LABEL",
    "Unavailable",
    "UNAVAILABLE",
    "ClassificationResult",
    "IngestStatus",
    "LeadNotification",
]
