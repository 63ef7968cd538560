from __future__ import annotations
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from datetime import datetime, timezone

from bs4 import BeautifulSoup

from onebox.application.ports.email_source import RawEmail
from onebox.domain.entities.email_message import NormalizedEmail

NO_SUBJECT = "(no subject)"
UNKNOWN_SENDER = "Unknown"


def _html_to_text(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text(separator="\n").strip()


def _as_text(msg: EmailMessage) -> str:
    # Prefer text/plain; fall back to the first text/html part
    body = msg.get_body(preferencelist=("plain", "html"))
    if body is None:
        return ""
    content = body.get_content()
    if body.get_content_type() == "text/html":
        return _html_to_text(content)
    return content.strip()


def rfc822_to_email_message(raw: RawEmail) -> NormalizedEmail:
    """Parse a fetched RFC822 blob into a NormalizedEmail.

    Raises ValueError when the blob is empty or carries no headers at all.
    """
    if not raw.rfc822_bytes or not raw.rfc822_bytes.strip():
        raise ValueError(f"UID {raw.uid} has an empty body")

    em = BytesParser(policy=policy.default).parsebytes(raw.rfc822_bytes)
    if not em.keys():
        raise ValueError(f"UID {raw.uid} has no RFC822 headers")

    subject = (em.get("Subject") or "").strip() or NO_SUBJECT
    sender = (em.get("From") or "").strip() or UNKNOWN_SENDER
    message_id = (em.get("Message-Id") or "").strip()

    # Date parsing can be messy; default to now if absent/unparseable
    try:
        dt = em.get("Date")
        received_at = dt.datetime if dt and dt.datetime else datetime.now(timezone.utc)
    except (TypeError, ValueError, AttributeError):
        received_at = datetime.now(timezone.utc)

    return NormalizedEmail(
        subject=subject,
        body_text=_as_text(em),
        sender=sender,
        received_at=received_at,
        source_account=raw.account,
        source_folder=raw.folder,
        message_id=message_id,
    )
