from __future__ import annotations
from typing import Protocol
from onebox.domain.models import LeadNotification

class Notifier(Protocol):
    name: str

    def notify(self, notification: LeadNotification) -> bool: ...
