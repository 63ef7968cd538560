"""Application settings using Pydantic Settings for configuration management."""

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Literal, Mapping

from dotenv import dotenv_values
from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from onebox.domain.entities.account import CredentialPair

_ACCOUNT_VAR = re.compile(r"^IMAP_(?:EMAIL|PASS)_(\d+)$", re.IGNORECASE)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Onebox Sync"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # IMAP server (shared by all accounts)
    imap_host: str = "imap.gmail.com"
    imap_port: int = 993
    imap_folder: str = "INBOX"
    imap_timeout_seconds: float = 30.0

    # Sync timing
    backfill_lookback_days: int = Field(default=30, ge=0)
    refresh_interval_seconds: float = Field(default=29 * 60, gt=0)
    refresh_reconnect_delay_seconds: float = Field(default=2.0, ge=0)
    error_reconnect_delay_seconds: float = Field(default=5.0, ge=0)
    reconnect_strategy: Literal["fixed", "exponential"] = "fixed"
    max_reconnect_delay_seconds: float = Field(default=300.0, gt=0)
    idle_check_seconds: float = Field(default=10.0, gt=0)

    # LLM classification
    llm_provider: Literal["groq", "openai", "anthropic", "local"] = "groq"
    llm_model: str | None = None
    groq_api_key: SecretStr | None = None
    openai_api_key: SecretStr | None = None
    anthropic_api_key: SecretStr | None = None
    vllm_base_url: str | None = None
    classification_max_attempts: int = Field(default=3, ge=1)
    classification_base_delay_seconds: float = Field(default=1.0, ge=0)

    # Notifications
    slack_webhook_url: str | None = None
    webhook_site_url: str | None = None
    notification_timeout_seconds: float = 30.0

    # Document store
    sqlite_db_path: str = "data/emails.db"

    @computed_field
    @property
    def classification_enabled(self) -> bool:
        """Whether the selected LLM provider has what it needs to run."""
        if self.llm_provider == "local":
            return bool(self.vllm_base_url)
        key = {
            "groq": self.groq_api_key,
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
        }[self.llm_provider]
        return key is not None and bool(key.get_secret_value())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def credential_pairs_from_env(
    environ: Mapping[str, str] | None = None,
    env_file: str | Path | None = None,
) -> list[CredentialPair]:
    """
    Collect mailbox credentials from numbered environment variables.

        IMAP_EMAIL_1=sales@example.com
        IMAP_PASS_1=app-password
        IMAP_EMAIL_2=support@example.com
        IMAP_PASS_2=...

    By default the process environment is merged over the ``.env`` file
    Settings reads, so accounts may live in either. An explicit ``environ``
    is used as-is.

    Pairs are returned ordered by their number. A number with only one half
    set still yields a (incomplete) pair so the supervisor can report it.
    """
    if environ is None:
        dotenv_path = env_file or Settings.model_config["env_file"]
        file_values = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
        sources = [file_values, os.environ]
    else:
        sources = [environ]

    lookup: dict[str, str] = {}
    for source in sources:
        lookup.update({key.upper(): value for key, value in source.items() if _ACCOUNT_VAR.match(key)})

    numbers = sorted({int(_ACCOUNT_VAR.match(key).group(1)) for key in lookup})

    return [
        CredentialPair(
            identifier=(lookup.get(f"IMAP_EMAIL_{n}") or "").strip() or None,
            password=lookup.get(f"IMAP_PASS_{n}") or None,
        )
        for n in numbers
    ]
