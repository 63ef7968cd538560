"""LLM-backed email categorization."""

from __future__ import annotations

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from loguru import logger
from pydantic import BaseModel, Field

from onebox.domain.models import EmailLabel

SYSTEM_PROMPT = """You are an expert email classifier for business communications. Your task is to analyze the provided email text and categorize it into one of the following labels:

1. "Interested" - The sender shows genuine interest in a product, service, or proposal. They may ask questions, request more information, or express positive sentiment about business opportunities.

2. "Meeting Booked" - The email confirms, schedules, or discusses a meeting. Look for calendar invites, meeting times, or confirmation of scheduled calls.

3. "Not Interested" - The sender explicitly declines, shows disinterest, or politely rejects an offer or proposal.

4. "Spam" - ONLY categorize as spam if the email is clearly:
   - Unsolicited bulk promotional emails with no business relevance
   - Scams or phishing attempts
   - Completely irrelevant automated messages
   - Obvious spam with suspicious links or content

   Do NOT categorize legitimate business emails, newsletters from known companies, LinkedIn notifications, job alerts, or professional communications as spam.

5. "Out of Office" - Automated out-of-office replies indicating the person is unavailable.

Analyze the email subject and body carefully to determine the most appropriate category."""

# Keep prompts bounded for very long threads
MAX_BODY_CHARS = 8000


class EmailCategorization(BaseModel):
    """Structured output the model must return."""

    category: EmailLabel = Field(description="Exactly one of the five allowed labels")


class LLMEmailClassifier:
    """ClassificationService over any LangChain chat model with structured output.

    A single call, no retries: retry policy belongs to ClassificationClient.
    A response outside the label set fails pydantic validation and raises.
    """

    def __init__(self, llm: BaseChatModel) -> None:
        self._chain = llm.with_structured_output(EmailCategorization)

    def classify(self, subject: str, body: str) -> EmailLabel:
        email_text = f"Subject: {subject}\n\nBody: {body[:MAX_BODY_CHARS]}"
        result = self._chain.invoke([
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=email_text),
        ])

        if isinstance(result, dict):
            result = EmailCategorization.model_validate(result)
        if not isinstance(result, EmailCategorization):
            raise ValueError(f"Unexpected classifier response: {result!r}")

        logger.debug(f"Email categorized: {subject[:50]!r} -> {result.category.value}")
        return result.category
