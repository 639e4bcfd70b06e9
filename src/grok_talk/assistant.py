"""
Grok chat client.

Sends one utterance per request (no conversation history) to the xAI chat
completion endpoint through the OpenAI SDK and returns the reply text or a
classified error. Never raises and never retries.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
import openai
from openai import OpenAI

from grok_talk.settings import DEFAULT_BASE_URL, DEFAULT_MODEL

logger = logging.getLogger("grok_talk.assistant")

SYSTEM_PROMPT: str = "You are Grok, a helpful AI assistant."
CANNED_REPLY: str = (
    "Hi, I'm Grok running in demo mode. "
    "Set the XAI_API_KEY environment variable to get real answers."
)

# Best-effort fallbacks when the error carries no usable status code
_QUOTA_PATTERN = re.compile(
    r"credit|quota|spending limit|insufficient[ _]?(funds|balance)|billing|exhausted",
    re.IGNORECASE,
)
_NETWORK_PATTERN = re.compile(
    r"name or service not known|nodename nor servname|getaddrinfo|name resolution"
    r"|no such host|could not resolve|network is unreachable|no route to host",
    re.IGNORECASE,
)


class AssistantErrorKind(Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK_UNREACHABLE = "network_unreachable"
    OTHER = "other"


@dataclass(frozen=True)
class AssistantError:
    kind: AssistantErrorKind
    message: str = ""


@dataclass(frozen=True)
class AssistantResult:
    """Either ``reply`` or ``error`` is set, never both."""

    reply: Optional[str] = None
    error: Optional[AssistantError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _status_error_text(exc: openai.APIStatusError) -> str:
    parts = [str(exc)]
    if exc.body is not None:
        parts.append(str(exc.body))
    return " ".join(parts)


def classify_error(exc: BaseException) -> AssistantError:
    """Map a failed chat request to an :class:`AssistantError`.

    Status codes and SDK exception types decide first; message patterns
    are only consulted when those are inconclusive.
    """
    if isinstance(exc, openai.APITimeoutError):
        return AssistantError(AssistantErrorKind.OTHER, "Request timed out")

    if isinstance(exc, openai.APIConnectionError):
        cause = exc.__cause__ or exc
        return AssistantError(AssistantErrorKind.NETWORK_UNREACHABLE, str(cause))

    if isinstance(exc, openai.APIStatusError):
        text = _status_error_text(exc)
        if exc.status_code == 402 or _QUOTA_PATTERN.search(text):
            return AssistantError(AssistantErrorKind.QUOTA_EXCEEDED, text)
        return AssistantError(AssistantErrorKind.OTHER, f"HTTP {exc.status_code}: {exc.message}")

    if isinstance(exc, (httpx.ConnectError, ConnectionError)):
        return AssistantError(AssistantErrorKind.NETWORK_UNREACHABLE, str(exc))

    text = str(exc)
    if _NETWORK_PATTERN.search(text):
        return AssistantError(AssistantErrorKind.NETWORK_UNREACHABLE, text)
    if _QUOTA_PATTERN.search(text):
        return AssistantError(AssistantErrorKind.QUOTA_EXCEEDED, text)
    return AssistantError(AssistantErrorKind.OTHER, text or type(exc).__name__)


class AssistantClient:
    """Single-shot client for the Grok chat completion API.

    Without an API key the client runs in demo mode: ask() returns
    CANNED_REPLY and makes no network calls.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.model = model
        self.client: Optional[OpenAI] = None
        if api_key:
            self.client = OpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                max_retries=0,
                http_client=http_client,
            )
        else:
            logger.warning("XAI_API_KEY not set; running in demo mode with a canned reply")

    @property
    def demo_mode(self) -> bool:
        return self.client is None

    @staticmethod
    def build_messages(utterance: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": utterance},
        ]

    def ask(self, utterance: str) -> AssistantResult:
        """Send ``utterance`` to Grok and return the reply or a classified error."""
        if self.client is None:
            return AssistantResult(reply=CANNED_REPLY)

        logger.debug(f"Sending {len(utterance)} characters to {self.model}")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(utterance),
                stream=False,
                temperature=0,
            )
        except Exception as e:
            error = classify_error(e)
            logger.error(f"Grok request failed ({error.kind.value}): {error.message}")
            return AssistantResult(error=error)

        reply = self._extract_reply(response)
        if reply is None:
            logger.error(f"Unexpected response shape: {str(response)[:200]}")
            return AssistantResult(
                error=AssistantError(AssistantErrorKind.OTHER, "Malformed response from Grok")
            )
        return AssistantResult(reply=reply)

    @staticmethod
    def _extract_reply(response: Any) -> Optional[str]:
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError):
            return None
        if not isinstance(content, str) or not content.strip():
            return None
        return content.strip()

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
