"""
Thin client for an OpenAI-compatible chat completions endpoint.

Every failure mode (missing key, network error, timeout, non-200, malformed
body, non-JSON content) is raised as UpstreamServiceError so callers only have
one thing to catch.
"""

import json
import logging
from typing import Any, Optional

import requests

import config
from errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class ChatClient:
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 model: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.base_url = (base_url or config.OPENAI_BASE_URL).rstrip("/")
        self.model = model or config.OPENAI_MODEL
        self.timeout = timeout if timeout is not None else config.AI_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def _headers(self):
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def complete_json(self, system: str, prompt: str) -> Any:
        """Send one system + user message pair and return the decoded JSON reply."""
        if not self.api_key:
            raise UpstreamServiceError("OPENAI_API_KEY not set")
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
        }
        try:
            r = self.session.post(f"{self.base_url}/chat/completions", headers=self._headers(),
                                  json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamServiceError(f"AI request failed: {e}") from e
        if r.status_code != 200:
            raise UpstreamServiceError(f"AI provider returned {r.status_code}: {r.text[:200]}")

        try:
            content = r.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamServiceError("Malformed AI response body") from e
        if not content:
            raise UpstreamServiceError("No content in AI response")
        try:
            return json.loads(content)
        except ValueError as e:
            raise UpstreamServiceError("AI response content is not JSON") from e
