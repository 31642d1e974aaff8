from types import SimpleNamespace

import pytest

from answer_eval.core.exceptions import ProviderUnavailableError
from answer_eval.services.llm_providers import GeminiProvider, OpenAIProvider


class FakeGeminiClient:
    def __init__(self, text="SCORE: 6", error=None):
        self.calls = []
        self.text = text
        self.error = error
        self.models = self

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class FakeOpenAIClient:
    def __init__(self, content="SCORE: 4", error=None):
        self.calls = []
        self.content = content
        self.error = error
        self.chat = SimpleNamespace(completions=self)

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class TestGeminiProvider:
    def test_complete_returns_text(self):
        client = FakeGeminiClient()
        provider = GeminiProvider("key", model="gemini-2.0-flash", timeout=30, client=client)

        assert provider.complete("prompt") == "SCORE: 6"
        assert client.calls[0]["model"] == "gemini-2.0-flash"
        assert client.calls[0]["contents"] == "prompt"

    def test_missing_key_is_unavailable(self):
        with pytest.raises(ProviderUnavailableError):
            GeminiProvider(None, model="m", timeout=1).complete("prompt")

    @pytest.mark.parametrize("client", [FakeGeminiClient(error=TimeoutError("slow")), FakeGeminiClient(text="")])
    def test_errors_and_empty_text_are_unavailable(self, client):
        provider = GeminiProvider("key", model="m", timeout=1, client=client)
        with pytest.raises(ProviderUnavailableError):
            provider.complete("prompt")


class TestOpenAIProvider:
    def test_complete_returns_message_content(self):
        client = FakeOpenAIClient()
        provider = OpenAIProvider("key", model="gpt-4o-mini", timeout=30, client=client)

        assert provider.complete("prompt") == "SCORE: 4"
        assert client.calls[0]["messages"] == [{"role": "user", "content": "prompt"}]
        assert client.calls[0]["model"] == "gpt-4o-mini"

    def test_missing_key_is_unavailable(self):
        with pytest.raises(ProviderUnavailableError):
            OpenAIProvider(None, model="m", timeout=1).complete("prompt")

    @pytest.mark.parametrize("client", [FakeOpenAIClient(error=ConnectionError("reset")), FakeOpenAIClient(content=None)])
    def test_errors_and_empty_content_are_unavailable(self, client):
        provider = OpenAIProvider("key", model="m", timeout=1, client=client)
        with pytest.raises(ProviderUnavailableError):
            provider.complete("prompt")
