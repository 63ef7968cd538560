from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class NormalizedEmail:
    subject: str
    body_text: str
    sender: str
    received_at: datetime
    source_account: str
    source_folder: str
    message_id: str = ""
