"""
LLM Providers
Thin wrappers around the Gemini and OpenAI SDK clients. Each one exposes
complete(prompt) -> str and raises ProviderUnavailableError for anything that
goes wrong on the wire.
"""

import logging
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types
from openai import OpenAI

from answer_eval.core.config import Settings
from answer_eval.core.exceptions import ProviderUnavailableError

logger = logging.getLogger(__name__)


class CompletionProvider(Protocol):
    name: str

    def complete(self, prompt: str) -> str:
        ...


class GeminiProvider:
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str,
        timeout: float,
        client: Any = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiProvider":
        return cls(
            settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise ProviderUnavailableError("gemini API key is not configured")
            # the SDK takes its timeout in milliseconds
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    def complete(self, prompt: str) -> str:
        client = self.client
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=0.7,
                    top_k=40,
                    top_p=0.95,
                    max_output_tokens=2048,
                ),
            )
            text = response.text
        except Exception as e:
            raise ProviderUnavailableError(f"gemini request failed: {e}") from e
        if not text:
            raise ProviderUnavailableError("Empty response from Gemini API")
        return text


class OpenAIProvider:
    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str,
        timeout: float,
        base_url: Optional[str] = None,
        client: Any = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIProvider":
        return cls(
            settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            base_url=settings.OPENAI_BASE_URL,
        )

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise ProviderUnavailableError("openai API key is not configured")
            # no SDK retries; the engine moves on to the next provider
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def complete(self, prompt: str) -> str:
        client = self.client
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=1500,
                temperature=0.7,
            )
            content = response.choices[0].message.content
        except Exception as e:
            raise ProviderUnavailableError(f"openai request failed: {e}") from e
        if not content:
            raise ProviderUnavailableError("Empty response from OpenAI API")
        return content
