import pytest

from onebox.application.classification import ClassificationClient, ClassifierConfigured, ClassifierDisabled
from onebox.application.use_cases.ingest_email import IngestEmailUseCase
from onebox.domain.models import EmailLabel, IngestStatus
from tests.fakes import FakeNotifier, FakeStore, ScriptedService, raw_email


def configured(service):
    return ClassifierConfigured(ClassificationClient(service, sleep=lambda _s: None))


def test_stores_and_labels_a_message():
    store = FakeStore()
    pipeline = IngestEmailUseCase(store, configured(ScriptedService(EmailLabel.NOT_INTERESTED)))

    result = pipeline.process(raw_email(uid=3))

    assert result.status is IngestStatus.CLASSIFIED
    assert result.label is EmailLabel.NOT_INTERESTED
    assert store.labels[result.document_id] is EmailLabel.NOT_INTERESTED
    assert store.documents[result.document_id].subject == "Message 3"
    assert result.notified == ()


def test_disabled_classifier_only_persists():
    store = FakeStore()
    pipeline = IngestEmailUseCase(store, ClassifierDisabled(reason="no key"))

    result = pipeline.process(raw_email())

    assert result.status is IngestStatus.STORED
    assert len(store.documents) == 1
    assert store.labels == {}
    assert pipeline.classification_enabled is False


def test_parse_failure_skips_message():
    store = FakeStore()
    service = ScriptedService()
    pipeline = IngestEmailUseCase(store, configured(service))

    result = pipeline.process(raw_email(payload=b""))

    assert result.status is IngestStatus.PARSE_FAILED
    assert result.failed
    assert store.documents == {}
    assert service.calls == 0


def test_persist_failure_drops_message_before_classification():
    service = ScriptedService()
    pipeline = IngestEmailUseCase(FakeStore(fail_persist=True), configured(service))

    result = pipeline.process(raw_email())

    assert result.status is IngestStatus.PERSIST_FAILED
    assert result.document_id is None
    assert service.calls == 0


def test_unavailable_classification_leaves_document_unlabelled():
    store = FakeStore()
    notifier = FakeNotifier("slack")
    pipeline = IngestEmailUseCase(store, configured(ScriptedService(failures=99)), notifiers=[notifier])

    result = pipeline.process(raw_email())

    assert result.status is IngestStatus.UNCLASSIFIED
    assert result.document_id in store.documents
    assert store.labels == {}
    assert notifier.received == []


def test_label_update_failure_does_not_stop_sibling_messages():
    store = FakeStore(fail_update=True)
    notifier = FakeNotifier("slack")
    pipeline = IngestEmailUseCase(store, configured(ScriptedService()), notifiers=[notifier])

    results = [pipeline.process(raw_email(uid=uid)) for uid in (1, 2)]

    assert [r.status for r in results] == [IngestStatus.LABEL_UPDATE_FAILED] * 2
    assert len(store.documents) == 2
    assert not any(r.failed for r in results)
    # no notification for a label that never landed
    assert notifier.received == []


def test_interested_notifies_every_notifier():
    slack = FakeNotifier("slack")
    webhook = FakeNotifier("generic_webhook")
    pipeline = IngestEmailUseCase(FakeStore(), configured(ScriptedService()), notifiers=[slack, webhook])

    result = pipeline.process(raw_email(uid=9))

    assert result.notified == ("slack", "generic_webhook")
    notification = slack.received[0]
    assert notification.category is EmailLabel.INTERESTED
    assert notification.document_id == result.document_id
    assert notification.account_id == "sales@example.com"
    assert webhook.received == [notification]


@pytest.mark.parametrize(
    "broken",
    [FakeNotifier("slack", error=RuntimeError("boom")), FakeNotifier("slack", result=False)],
)
def test_one_failing_notifier_does_not_block_the_other(broken):
    webhook = FakeNotifier("generic_webhook")
    pipeline = IngestEmailUseCase(FakeStore(), configured(ScriptedService()), notifiers=[broken, webhook])

    result = pipeline.process(raw_email())

    assert result.status is IngestStatus.CLASSIFIED
    assert len(broken.received) == 1
    assert len(webhook.received) == 1
    assert result.notified == ("generic_webhook",)


def test_unknown_capability_is_rejected():
    with pytest.raises(TypeError):
        IngestEmailUseCase(FakeStore(), classifier=object())
