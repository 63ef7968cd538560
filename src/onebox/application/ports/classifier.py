from __future__ import annotations
from typing import Protocol
from onebox.domain.models import EmailLabel

class ClassificationService(Protocol):
    def classify(self, subject: str, body: str) -> EmailLabel: ...
