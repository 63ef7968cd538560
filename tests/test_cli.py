import pytest

from onebox.application.classification import ClassifierConfigured, ClassifierDisabled
from onebox.application.ports.email_source import MailboxTransportError
from onebox.cli.ingest_once import backfill_mailbox
from onebox.cli.worker import build_classifier, build_pipeline, build_supervisor
from onebox.domain.models import IngestStatus
from onebox.infrastructure.settings import Settings
from tests.fakes import FakeConnection, RecordingPipeline, make_account


@pytest.fixture
def settings(tmp_path, monkeypatch):
    for var in ("GROQ_API_KEY", "LLM_PROVIDER", "SLACK_WEBHOOK_URL", "WEBHOOK_SITE_URL"):
        monkeypatch.delenv(var, raising=False)
    return Settings(_env_file=None, sqlite_db_path=str(tmp_path / "emails.db"))


def test_classifier_disabled_without_credentials(settings):
    capability = build_classifier(settings)
    assert isinstance(capability, ClassifierDisabled)
    assert "groq" in capability.reason


def test_classifier_configured_with_credentials(settings):
    settings = Settings(_env_file=None, sqlite_db_path=settings.sqlite_db_path, groq_api_key="gsk-test")

    capability = build_classifier(settings)

    assert isinstance(capability, ClassifierConfigured)
    assert capability.client.max_attempts == 3


def test_pipeline_wires_both_notifiers(settings):
    pipeline = build_pipeline(settings)

    assert [n.name for n in pipeline.notifiers] == ["slack", "generic_webhook"]
    assert pipeline.classification_enabled is False


def test_supervisor_skips_incomplete_accounts(settings, monkeypatch):
    monkeypatch.setenv("IMAP_EMAIL_1", "sales@example.com")
    monkeypatch.setenv("IMAP_PASS_1", "pw")
    monkeypatch.setenv("IMAP_EMAIL_2", "support@example.com")

    supervisor = build_supervisor(settings)

    assert "sales@example.com" in supervisor.account_ids
    assert "support@example.com" not in supervisor.account_ids
    assert supervisor.timings.refresh_interval == 1740


def test_backfill_mailbox_counts_and_closes():
    conn = FakeConnection(make_account(), backfill=[1, 2, 3, 4])
    pipeline = RecordingPipeline()

    ingested, failed = backfill_mailbox(conn, pipeline, folder="INBOX", since_days=30, limit=2)

    assert (ingested, failed) == (2, 0)
    assert pipeline.uids == [3, 4]
    assert conn.closed


def test_backfill_mailbox_closes_on_error():
    conn = FakeConnection(make_account(), fail_on={"search_since": MailboxTransportError("gone")})

    with pytest.raises(MailboxTransportError):
        backfill_mailbox(conn, RecordingPipeline(), folder="INBOX", since_days=30)
    assert conn.closed


def test_backfill_mailbox_counts_failures():
    class FailingPipeline(RecordingPipeline):
        def process(self, raw):
            result = super().process(raw)
            if raw.uid == 2:
                return type(result)(IngestStatus.PERSIST_FAILED)
            return result

    conn = FakeConnection(make_account(), backfill=[1, 2])
    assert backfill_mailbox(conn, FailingPipeline(), folder="INBOX", since_days=7) == (1, 1)


def test_backfill_mailbox_skips_refused_messages():
    conn = FakeConnection(make_account(), backfill=[1, 2, 3], refused=[2])
    pipeline = RecordingPipeline()

    assert backfill_mailbox(conn, pipeline, folder="INBOX", since_days=30) == (2, 1)
    assert pipeline.uids == [1, 3]
    assert conn.closed
