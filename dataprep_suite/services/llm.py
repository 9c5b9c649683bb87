"""
Thin async client for the hosted LLM APIs used for keyword generation.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

import httpx

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"


class LLMError(Exception):
    """Raised when the LLM call fails or returns an unusable body."""


def extract_json(text: str) -> Dict[str, Any]:
    """Parse a JSON object out of a model reply, tolerating code fences."""
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        raise LLMError("No JSON object in LLM response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise LLMError(f"Invalid JSON in LLM response: {e}") from e


class LLMClient:
    """Chat-completion client. OpenAI is used when both keys are configured."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    @property
    def provider(self) -> Optional[str]:
        if self.settings.openai_api_key:
            return "openai"
        if self.settings.anthropic_api_key:
            return "anthropic"
        return None

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int = 500) -> str:
        provider = self.provider
        if provider is None:
            raise LLMError("No LLM API key configured")

        async with httpx.AsyncClient(
            timeout=self.settings.llm_timeout_seconds, transport=self.transport
        ) as client:
            try:
                if provider == "openai":
                    response = await client.post(
                        OPENAI_URL,
                        headers={"Authorization": f"Bearer {self.settings.openai_api_key}"},
                        json={
                            "model": self.settings.openai_model,
                            "messages": [
                                {"role": "system", "content": system_prompt},
                                {"role": "user", "content": user_prompt},
                            ],
                            "temperature": 0.3,
                            "max_tokens": max_tokens,
                        },
                    )
                    response.raise_for_status()
                    return response.json()["choices"][0]["message"]["content"]

                response = await client.post(
                    ANTHROPIC_URL,
                    headers={
                        "x-api-key": self.settings.anthropic_api_key,
                        "anthropic-version": "2023-06-01",
                    },
                    json={
                        "model": self.settings.anthropic_model,
                        "max_tokens": max_tokens,
                        "temperature": 0.3,
                        "messages": [
                            {"role": "user", "content": f"{system_prompt}\n\n{user_prompt}"}
                        ],
                    },
                )
                response.raise_for_status()
                return response.json()["content"][0]["text"]
            except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
                logger.error(f"{provider} request failed: {e}")
                raise LLMError(str(e)) from e
