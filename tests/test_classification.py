import pytest

from onebox.application.classification import ClassificationClient
from onebox.domain.models import UNAVAILABLE, EmailLabel
from tests.fakes import ScriptedService


def make_client(service, max_attempts=3):
    sleeps = []
    client = ClassificationClient(service, max_attempts=max_attempts, base_delay=1.0, sleep=sleeps.append)
    return client, sleeps


def test_first_attempt_success_does_not_sleep():
    client, sleeps = make_client(ScriptedService(EmailLabel.SPAM))
    assert client.classify("Win big", "click here") is EmailLabel.SPAM
    assert sleeps == []


@pytest.mark.parametrize("failures,expected_sleeps", [(1, [1.0]), (2, [1.0, 2.0])])
def test_recovers_after_transient_failures(failures, expected_sleeps):
    service = ScriptedService(EmailLabel.MEETING_BOOKED, failures=failures)
    client, sleeps = make_client(service)

    assert client.classify("Call Tuesday", "See you at 3pm") is EmailLabel.MEETING_BOOKED
    assert sleeps == expected_sleeps
    assert service.calls == failures + 1


def test_exhausted_retries_yield_unavailable_without_raising():
    service = ScriptedService(failures=10)
    client, sleeps = make_client(service)

    assert client.classify("Hello", "world") is UNAVAILABLE
    assert service.calls == 3
    # no sleep after the final attempt
    assert sleeps == [1.0, 2.0]


def test_more_attempts_keep_doubling():
    client, sleeps = make_client(ScriptedService(failures=4), max_attempts=5)
    assert client.classify("Hi", "there") is EmailLabel.INTERESTED
    assert sleeps == [1.0, 2.0, 4.0, 8.0]


def test_label_outside_the_set_counts_as_failure():
    service = ScriptedService(label="Maybe Later")
    client, sleeps = make_client(service)

    assert client.classify("Hmm", "not sure") is UNAVAILABLE
    assert service.calls == 3
    assert len(sleeps) == 2


def test_plain_string_label_is_coerced():
    client, _ = make_client(ScriptedService(label="Out of Office"))
    assert client.classify("Away", "Back Monday") is EmailLabel.OUT_OF_OFFICE


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        ClassificationClient(ScriptedService(), max_attempts=0)
