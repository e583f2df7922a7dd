"""
Text generation for donor suggestions.

Supported providers: "openai" and "anthropic" over their REST APIs,
"google" through the google-genai SDK. Any failure yields a fixed fallback
message so the heuristic ranking is still shown.
"""

import logging
from typing import Optional

import requests
from google import genai
from google.genai import types

from .config import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful AI assistant specializing in blood donation matching. "
    "Provide clear, actionable recommendations."
)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"

UNAVAILABLE = "AI suggestions are temporarily unavailable. Showing top donors based on donation history."
UNSUPPORTED = "AI provider not supported. Showing heuristic-based donor matches."
NOT_CONFIGURED = "HEMO_AI_API_KEY is not configured. Showing heuristic-based donor matches."


class TextGenerator:
    """Single-prompt completion against the configured provider."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def generate(self, prompt: str) -> str:
        provider = self.settings.ai_provider
        if not self.settings.ai_api_key:
            logger.warning("HEMO_AI_API_KEY not set; skipping AI analysis")
            return NOT_CONFIGURED

        try:
            if provider == "openai":
                return self._openai(prompt)
            if provider == "google":
                return self._google(prompt)
            if provider == "anthropic":
                return self._anthropic(prompt)
        except requests.exceptions.RequestException as e:
            logger.error(f"AI API error ({provider}): {str(e)}")
            return UNAVAILABLE
        except Exception as e:
            logger.error(f"Unexpected error from AI provider {provider}: {str(e)}")
            return UNAVAILABLE

        logger.warning(f"Unsupported AI provider: {provider}")
        return UNSUPPORTED

    def _openai(self, prompt: str) -> str:
        response = self.session.post(
            OPENAI_URL,
            headers={"Authorization": f"Bearer {self.settings.ai_api_key}"},
            json={
                "model": self.settings.openai_model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            },
            timeout=self.settings.http_timeout,
        )
        response.raise_for_status()
        choices = response.json().get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""

    def _anthropic(self, prompt: str) -> str:
        response = self.session.post(
            ANTHROPIC_URL,
            headers={
                "x-api-key": self.settings.ai_api_key,
                "anthropic-version": "2023-06-01",
            },
            json={
                "model": self.settings.anthropic_model,
                "max_tokens": 4096,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
            },
            timeout=self.settings.http_timeout,
        )
        response.raise_for_status()
        content = response.json().get("content") or [{}]
        return content[0].get("text") or ""

    def _google(self, prompt: str) -> str:
        client = genai.Client(api_key=self.settings.ai_api_key)
        response = client.models.generate_content(
            model=self.settings.google_model,
            contents=prompt,
            config=types.GenerateContentConfig(system_instruction=SYSTEM_PROMPT),
        )
        return response.text or ""
