from datetime import datetime, timezone

import pytest

from onebox.domain.entities.email_message import NormalizedEmail
from onebox.domain.models import EmailLabel
from onebox.infrastructure.sqlite import SQLiteEmailStore


@pytest.fixture
def store(tmp_path):
    return SQLiteEmailStore(tmp_path / "nested" / "emails.db")


def make_email(account="sales@example.com", subject="Pricing question"):
    return NormalizedEmail(
        subject=subject,
        body_text="Could you send me your pricing?",
        sender="jane@client.test",
        received_at=datetime(2025, 10, 14, 9, 30, tzinfo=timezone.utc),
        source_account=account,
        source_folder="INBOX",
        message_id="<abc@client.test>",
    )


def test_persist_assigns_unique_ids(store):
    first = store.persist(make_email())
    second = store.persist(make_email())

    assert first != second
    assert store.count() == 2


def test_persisted_document_round_trips(store):
    doc_id = store.persist(make_email())
    stored = store.get(doc_id)

    assert stored.account_id == "sales@example.com"
    assert stored.subject == "Pricing question"
    assert stored.date == "2025-10-14T09:30:00+00:00"
    assert stored.ai_category is None


def test_update_label(store):
    doc_id = store.persist(make_email())

    assert store.update_label(doc_id, EmailLabel.MEETING_BOOKED) is True
    assert store.get(doc_id).ai_category == "Meeting Booked"


def test_update_label_of_unknown_document(store):
    assert store.update_label("missing", EmailLabel.SPAM) is False


def test_count_per_account(store):
    store.persist(make_email(account="a@example.com"))
    store.persist(make_email(account="b@example.com"))
    store.persist(make_email(account="b@example.com"))

    assert store.count("b@example.com") == 2
    assert store.get("missing") is None
