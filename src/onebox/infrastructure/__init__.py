# src/onebox/infrastructure/__init__.py
"""Infrastructure layer - IMAP, LLM, webhooks, storage and configuration."""

from onebox.infrastructure.settings import Settings, credential_pairs_from_env, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "credential_pairs_from_env",
]
