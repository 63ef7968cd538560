"""LLM integration for email categorization."""

from onebox.infrastructure.llm.classifier import EmailCategorization, LLMEmailClassifier
from onebox.infrastructure.llm.factory import create_llm

__all__ = [
    "EmailCategorization",
    "LLMEmailClassifier",
    "create_llm",
]
