"""Retry-governed wrapper around the external classification service."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Union

from loguru import logger

from onebox.application.ports.classifier import ClassificationService
from onebox.domain.models import UNAVAILABLE, ClassificationResult, EmailLabel


class ClassificationClient:
    """Classify emails, retrying transient failures with exponential backoff.

    Sleeps ``base_delay * 2**attempt`` between attempts (1s, 2s, 4s, ... with the
    defaults) and never after the last one. When every attempt fails the result
    is ``UNAVAILABLE``; callers never see the underlying exception.
    """

    def __init__(
        self,
        service: ClassificationService,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.service = service
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def classify(self, subject: str, body: str) -> ClassificationResult:
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            try:
                result = self.service.classify(subject, body)
                # Anything outside the fixed label set is treated as a failed call
                return EmailLabel(result)
            except Exception as e:
                last_error = e

            if attempt < self.max_attempts - 1:
                backoff = self.base_delay * (2 ** attempt)
                logger.warning(
                    f"Classification attempt {attempt + 1}/{self.max_attempts} failed "
                    f"({last_error}), retrying in {backoff:.1f}s"
                )
                self._sleep(backoff)

        logger.error(f"Classification unavailable after {self.max_attempts} attempts: {last_error}")
        return UNAVAILABLE


@dataclass(frozen=True)
class ClassifierConfigured:
    client: ClassificationClient


@dataclass(frozen=True)
class ClassifierDisabled:
    reason: str = "classification not configured"


ClassifierCapability = Union[ClassifierConfigured, ClassifierDisabled]
