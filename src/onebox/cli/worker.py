"""IMAP sync worker - keeps one IDLE session open per configured mailbox."""

from __future__ import annotations

import signal
import sys
import threading

from loguru import logger

from onebox.application.classification import (
    ClassificationClient,
    ClassifierCapability,
    ClassifierConfigured,
    ClassifierDisabled,
)
from onebox.application.sync.scheduler import ReconnectPolicy
from onebox.application.sync.session import SessionTimings
from onebox.application.sync.supervisor import AccountSupervisor
from onebox.application.use_cases.ingest_email import IngestEmailUseCase
from onebox.infrastructure.email.providers.imap.auth import ImapServerConfig
from onebox.infrastructure.email.providers.imap.client import imap_connection_factory
from onebox.infrastructure.notifications import GenericWebhookNotifier, SlackNotifier
from onebox.infrastructure.settings import Settings, credential_pairs_from_env, get_settings
from onebox.infrastructure.sqlite import sqlite_store_from_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[account]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str) -> None:
    logger.remove()
    logger.configure(extra={"account": "-"})
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)


def build_classifier(settings: Settings) -> ClassifierCapability:
    """Resolve the classification capability once, at startup."""
    if not settings.classification_enabled:
        return ClassifierDisabled(reason=f"no credentials for llm_provider={settings.llm_provider}")

    from onebox.infrastructure.llm import LLMEmailClassifier, create_llm

    service = LLMEmailClassifier(create_llm(settings))
    return ClassifierConfigured(
        ClassificationClient(
            service,
            max_attempts=settings.classification_max_attempts,
            base_delay=settings.classification_base_delay_seconds,
        )
    )


def build_pipeline(settings: Settings) -> IngestEmailUseCase:
    store = sqlite_store_from_settings(settings)
    notifiers = [
        SlackNotifier(settings.slack_webhook_url, timeout=settings.notification_timeout_seconds),
        GenericWebhookNotifier(settings.webhook_site_url, timeout=settings.notification_timeout_seconds),
    ]
    return IngestEmailUseCase(store=store, classifier=build_classifier(settings), notifiers=notifiers)


def build_supervisor(settings: Settings) -> AccountSupervisor:
    server = ImapServerConfig(
        host=settings.imap_host,
        port=settings.imap_port,
        timeout=settings.imap_timeout_seconds,
    )
    timings = SessionTimings(
        folder=settings.imap_folder,
        lookback_days=settings.backfill_lookback_days,
        refresh_interval=settings.refresh_interval_seconds,
        idle_check=settings.idle_check_seconds,
    )
    policy = ReconnectPolicy(
        error_delay=settings.error_reconnect_delay_seconds,
        refresh_delay=settings.refresh_reconnect_delay_seconds,
        strategy=settings.reconnect_strategy,
        max_delay=settings.max_reconnect_delay_seconds,
    )
    return AccountSupervisor(
        credentials=credential_pairs_from_env(),
        connection_factory=imap_connection_factory(server),
        pipeline=build_pipeline(settings),
        timings=timings,
        policy=policy,
    )


def main() -> int:
    """Entry point for the sync worker."""
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} v{settings.app_version} ({settings.environment})")
    logger.info("=" * 60)

    try:
        supervisor = build_supervisor(settings)
    except Exception as e:
        logger.error(f"Failed to initialize infrastructure: {e}")
        return 1

    stop = threading.Event()

    def _handle_shutdown(signum, frame) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        stop.set()

    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)

    started = supervisor.start()
    if started == 0:
        logger.warning("No sessions running; set IMAP_EMAIL_1/IMAP_PASS_1 (and _2, _3, ...) to ingest mail")

    # Wake periodically so signals are handled promptly
    while not stop.wait(timeout=1.0):
        pass

    supervisor.shutdown()
    logger.info("Worker shutdown complete")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
