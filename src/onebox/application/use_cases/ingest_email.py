"""Push one fetched email through normalize -> persist -> classify -> label -> notify."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from loguru import logger

from onebox.application.classification import (
    ClassifierCapability,
    ClassifierConfigured,
    ClassifierDisabled,
)
from onebox.application.ports.document_store import DocumentStore
from onebox.application.ports.email_source import RawEmail
from onebox.application.ports.notifier import Notifier
from onebox.domain.entities.email_message import NormalizedEmail
from onebox.domain.models import (
    POSITIVE_SIGNAL_LABEL,
    UNAVAILABLE,
    ClassificationResult,
    EmailLabel,
    IngestStatus,
    LeadNotification,
)
from onebox.infrastructure.email.providers.imap.mapper import rfc822_to_email_message

Normalizer = Callable[[RawEmail], NormalizedEmail]


@dataclass(frozen=True)
class IngestResult:
    status: IngestStatus
    document_id: Optional[str] = None
    label: Optional[EmailLabel] = None
    notified: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return self.status in (IngestStatus.PARSE_FAILED, IngestStatus.PERSIST_FAILED)


class IngestEmailUseCase:
    """Ingest a single email; every step is its own failure domain.

    Flow:
    1. Normalize the RFC822 blob (failure: message skipped)
    2. Persist to the document store (failure: message dropped, no retry)
    3. Classify, when a classifier is configured
    4. Write the label back onto the stored document (failure: left uncategorized)
    5. Notify every notifier when the label is the positive signal

    ``process`` never raises, so one bad message cannot stop its siblings
    or the session that fetched it.
    """

    def __init__(
        self,
        store: DocumentStore,
        classifier: ClassifierCapability,
        notifiers: Sequence[Notifier] = (),
        normalizer: Normalizer = rfc822_to_email_message,
    ) -> None:
        self.store = store
        self.notifiers = list(notifiers)
        self.normalizer = normalizer

        if isinstance(classifier, ClassifierConfigured):
            self._classify: Optional[Callable[[NormalizedEmail], ClassificationResult]] = (
                lambda email: classifier.client.classify(email.subject, email.body_text)
            )
        elif isinstance(classifier, ClassifierDisabled):
            logger.info(f"AI categorization disabled: {classifier.reason}")
            self._classify = None
        else:
            raise TypeError(f"Unsupported classifier capability: {classifier!r}")

    @property
    def classification_enabled(self) -> bool:
        return self._classify is not None

    def process(self, raw: RawEmail) -> IngestResult:
        log = logger.bind(account=raw.account, uid=raw.uid)

        try:
            email = self.normalizer(raw)
        except Exception as e:
            log.error(f"Failed to parse UID {raw.uid}: {e}")
            return IngestResult(IngestStatus.PARSE_FAILED)

        log.info(f"Email received: from={email.sender} subject={email.subject[:80]!r}")

        try:
            document_id = self.store.persist(email)
        except Exception as e:
            log.error(f"Failed to persist UID {raw.uid} ({email.subject[:50]!r}): {e}")
            return IngestResult(IngestStatus.PERSIST_FAILED)

        log.info(f"Email stored as document {document_id}")

        if self._classify is None:
            return IngestResult(IngestStatus.STORED, document_id=document_id)

        result = self._classify(email)
        if result is UNAVAILABLE:
            log.warning(f"Could not categorize document {document_id}; left uncategorized")
            return IngestResult(IngestStatus.UNCLASSIFIED, document_id=document_id)

        try:
            updated = self.store.update_label(document_id, result)
        except Exception as e:
            log.error(f"Failed to label document {document_id} as {result.value}: {e}")
            updated = False

        if not updated:
            log.warning(f"Document {document_id} remains uncategorized")
            return IngestResult(IngestStatus.LABEL_UPDATE_FAILED, document_id=document_id, label=result)

        log.info(f"Email categorized as {result.value}")

        notified: tuple[str, ...] = ()
        if result == POSITIVE_SIGNAL_LABEL:
            notified = self._notify(email, document_id, result)

        return IngestResult(IngestStatus.CLASSIFIED, document_id=document_id, label=result, notified=notified)

    def _notify(self, email: NormalizedEmail, document_id: str, label: EmailLabel) -> tuple[str, ...]:
        """Invoke every notifier; returns the names of those that reported delivery."""
        notification = LeadNotification(
            subject=email.subject,
            sender=email.sender,
            account_id=email.source_account,
            category=label,
            date=email.received_at,
            document_id=document_id,
            body=email.body_text,
        )

        log = logger.bind(account=email.source_account)
        log.info(f"Triggering {len(self.notifiers)} notifier(s) for {label.value} lead: {email.subject[:50]!r}")

        delivered: list[str] = []
        for notifier in self.notifiers:
            name = getattr(notifier, "name", type(notifier).__name__)
            try:
                if notifier.notify(notification):
                    delivered.append(name)
                else:
                    log.warning(f"Notifier {name} did not deliver")
            except Exception as e:
                log.error(f"Notifier {name} failed: {e}")

        return tuple(delivered)
