from __future__ import annotations
from typing import Protocol
from onebox.domain.entities.email_message import NormalizedEmail
from onebox.domain.models import EmailLabel

class DocumentStore(Protocol):
    def persist(self, email: NormalizedEmail) -> str: ...
    def update_label(self, document_id: str, label: EmailLabel) -> bool: ...
