import os

import pytest
from pydantic import ValidationError

from onebox.domain.entities.account import CredentialPair
from onebox.infrastructure.settings import Settings, credential_pairs_from_env


def make_settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_defaults_match_the_sync_timings():
    settings = make_settings()
    assert settings.imap_host == "imap.gmail.com"
    assert settings.refresh_interval_seconds == 1740
    assert settings.backfill_lookback_days == 30
    assert settings.error_reconnect_delay_seconds == 5.0
    assert settings.refresh_reconnect_delay_seconds == 2.0
    assert settings.classification_max_attempts == 3


@pytest.mark.parametrize(
    "overrides,enabled",
    [
        ({}, False),
        ({"groq_api_key": "gsk-test"}, True),
        ({"groq_api_key": ""}, False),
        ({"llm_provider": "openai", "groq_api_key": "gsk-test"}, False),
        ({"llm_provider": "anthropic", "anthropic_api_key": "sk-ant"}, True),
        ({"llm_provider": "local"}, False),
        ({"llm_provider": "local", "vllm_base_url": "http://vllm:8000/v1"}, True),
    ],
)
def test_classification_enabled(monkeypatch, overrides, enabled):
    for var in ("GROQ_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "VLLM_BASE_URL", "LLM_PROVIDER"):
        monkeypatch.delenv(var, raising=False)
    assert make_settings(**overrides).classification_enabled is enabled


def test_invalid_strategy_is_rejected():
    with pytest.raises(ValidationError):
        make_settings(reconnect_strategy="random")


def test_credential_pairs_are_ordered_by_number():
    env = {
        "IMAP_EMAIL_2": "second@example.com",
        "IMAP_PASS_2": "pw2",
        "IMAP_EMAIL_1": "first@example.com",
        "IMAP_PASS_1": "pw1",
        "IMAP_EMAIL_10": "tenth@example.com",
        "IMAP_PASS_10": "pw10",
        "UNRELATED": "x",
    }
    pairs = credential_pairs_from_env(env)
    assert [p.identifier for p in pairs] == ["first@example.com", "second@example.com", "tenth@example.com"]


def test_incomplete_pairs_are_still_reported():
    env = {
        "IMAP_EMAIL_1": "sales@example.com",
        "IMAP_PASS_1": "pw",
        "IMAP_EMAIL_2": "support@example.com",
        "IMAP_PASS_3": "orphan",
    }
    assert credential_pairs_from_env(env) == [
        CredentialPair("sales@example.com", "pw"),
        CredentialPair("support@example.com", None),
        CredentialPair(None, "orphan"),
    ]


def test_blank_values_count_as_missing():
    pairs = credential_pairs_from_env({"IMAP_EMAIL_1": "  ", "IMAP_PASS_1": ""})
    assert pairs == [CredentialPair(None, None)]
    assert not pairs[0].is_complete


def test_reads_process_environment_by_default(monkeypatch):
    monkeypatch.setenv("IMAP_EMAIL_7", "env@example.com")
    monkeypatch.setenv("IMAP_PASS_7", "secret")

    assert CredentialPair("env@example.com", "secret") in credential_pairs_from_env()


@pytest.fixture
def clean_account_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.upper().startswith(("IMAP_EMAIL_", "IMAP_PASS_")):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_accounts_are_read_from_dotenv(clean_account_env):
    (clean_account_env / ".env").write_text("IMAP_EMAIL_1=a@example.com\nIMAP_PASS_1=pw\nLOG_LEVEL=DEBUG\n")

    assert credential_pairs_from_env() == [CredentialPair("a@example.com", "pw")]


def test_process_environment_overrides_dotenv(clean_account_env, monkeypatch):
    (clean_account_env / ".env").write_text(
        "IMAP_EMAIL_1=a@example.com\nIMAP_PASS_1=from-file\nIMAP_EMAIL_2=b@example.com\n"
    )
    monkeypatch.setenv("IMAP_PASS_1", "from-env")
    monkeypatch.setenv("IMAP_PASS_2", "pw2")

    assert credential_pairs_from_env() == [
        CredentialPair("a@example.com", "from-env"),
        CredentialPair("b@example.com", "pw2"),
    ]


def test_missing_dotenv_file_is_fine(clean_account_env):
    assert credential_pairs_from_env() == []


def test_explicit_env_file(clean_account_env):
    custom = clean_account_env / "accounts.env"
    custom.write_text("imap_email_3=c@example.com\nimap_pass_3=pw3\n")

    assert credential_pairs_from_env(env_file=custom) == [CredentialPair("c@example.com", "pw3")]
