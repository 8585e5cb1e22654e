"""Groq chat-completions classifier.

Pipeline:
    title + description → clean_text() → build_prompt() → POST /chat/completions
    → choices[0].message.content (JSON) → validator.validate() → ClassificationResult

Every failed attempt (network error, timeout, non-2xx, unparseable envelope)
is retried after a backoff wait, up to ``max_attempts`` calls. When attempts
run out the client returns ``None``: the caller treats that as "no
classification available", never as a fatal error.
"""

import json
import re
import threading
from typing import Any, Callable, Dict, Optional, Set

import requests

from src.core.config import ClassifierSettings
from src.core.errors import (
    ClassifierError, ClassifierMalformedResponse, ClassifierTimeout, ClassifierTransportError,
)
from src.core.logger import logger
from src.core.retry import RetriesExhausted, call_with_retries
from src.models.datatypes import ClassificationResult, Rejected
from src.pipeline import validator
from src.providers.base import Classifier

_DISALLOWED_CHARS = re.compile(r"[^\w\s.,-]", re.ASCII)
_WHITESPACE_RUN = re.compile(r"\s+", re.ASCII)

_PROMPT_TEMPLATE = """{company_list}Analyze news article and create JSON response:
{{
  "company_name": "string",
  "headline": "string",
  "description": "string",
  "nsc": "uppercase NSC symbol",
  "confidence": 0.0-1.0,
  "news_date": "YYYY-MM-DD"
}} Return NULL if no company found. Text: {text}"""


def clean_text(text: str, max_chars: int = 1500) -> str:
    """Bound prompt size and strip formatting noise.

    Truncates to ``max_chars``, drops every character that is not an ASCII word
    character, ASCII whitespace, ``.``, ``,`` or ``-``, then collapses whitespace
    runs to a single space.
    """
    text = (text or "")[:max_chars]
    text = _DISALLOWED_CHARS.sub("", text)
    return _WHITESPACE_RUN.sub(" ", text)


def build_prompt(text: str, whitelist: Set[str]) -> str:
    """Build the classification prompt, listing valid symbols when there are any."""
    company_list = f"Valid NSCs: {', '.join(sorted(whitelist))}. " if whitelist else ""
    return _PROMPT_TEMPLATE.format(company_list=company_list, text=text)


class GroqClassifier(Classifier):
    """Classifier backed by Groq's OpenAI-compatible chat-completions API.

    Args:
        settings: Endpoint, model, timeout and retry policy.
        session: Optional ``requests.Session`` (one is created if omitted).
        stop_event: Shared shutdown event; setting it interrupts a backoff wait.
        sleep: Wait function used between attempts when no ``stop_event`` is given.
    """

    def __init__(
        self,
        settings: ClassifierSettings,
        session: Optional[requests.Session] = None,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.stop_event = stop_event
        self._sleep = sleep
        if not settings.api_key:
            logger.warning("GroqClassifier: no API key configured — requests will be rejected")

    # ── public API ──────────────────────────────────────────────────────────

    def request(self, text: str, whitelist: Set[str]) -> Optional[Dict[str, Any]]:
        """Return the raw reply object for ``text``, or None after the last failed attempt.

        An explicit NULL reply (no company found) is returned as ``{}`` so the
        validator reports it like any other missing ticker.
        """
        prompt = build_prompt(clean_text(text, self.settings.max_chars), whitelist)
        retry_kwargs = {}
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep
        try:
            return call_with_retries(
                lambda: self._attempt(prompt),
                max_attempts=self.settings.max_attempts,
                delay=self.settings.backoff,
                multiplier=self.settings.backoff_multiplier,
                jitter=self.settings.jitter,
                retry_on=(ClassifierError,),
                stop_event=self.stop_event,
                label="GroqClassifier.request",
                **retry_kwargs,
            )
        except RetriesExhausted as e:
            logger.error(
                f"GroqClassifier: no classification after {e.attempts} attempt(s) "
                f"| reason={type(e.last_error).__name__}"
            )
            return None

    def classify(self, text: str, whitelist: Set[str]) -> Optional[ClassificationResult]:
        raw = self.request(text, whitelist)
        if raw is None:
            return None
        verdict = validator.validate(raw, whitelist)
        if isinstance(verdict, Rejected):
            logger.info(
                f"GroqClassifier: rejected | reason={verdict.reason.value} | {verdict.detail}"
            )
            return None
        return verdict

    # ── internal ─────────────────────────────────────────────────────────────

    def _attempt(self, prompt: str) -> Dict[str, Any]:
        """One blocking call. Raises a ClassifierError subclass on any failure."""
        body = {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.settings.temperature,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.settings.base_url.rstrip('/')}/chat/completions"

        try:
            resp = self.session.post(url, json=body, headers=headers, timeout=self.settings.timeout)
        except requests.Timeout as exc:
            raise ClassifierTimeout(f"no reply within {self.settings.timeout}s") from exc
        except requests.RequestException as exc:
            raise ClassifierTransportError(str(exc)) from exc

        if not 200 <= resp.status_code < 300:
            raise ClassifierTransportError(
                f"HTTP {resp.status_code}: {_error_message(resp)}"
            )
        return _parse_reply(resp)


# ── helpers ───────────────────────────────────────────────────────────────────

def _parse_reply(resp: requests.Response) -> Dict[str, Any]:
    """Unwrap ``choices[0].message.content`` and decode it as a JSON object."""
    try:
        content = resp.json()["choices"][0]["message"]["content"]
        payload = json.loads(content)
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise ClassifierMalformedResponse(f"unparseable reply: {exc}") from exc

    if payload is None:
        logger.debug("GroqClassifier: reply signalled no company")
        return {}
    if not isinstance(payload, dict):
        raise ClassifierMalformedResponse(
            f"expected a JSON object, got {type(payload).__name__}"
        )
    return payload


def _error_message(resp: requests.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text[:200]
