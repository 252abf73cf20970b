# tests/router/test_adapters.py
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import anthropic
import pytest

from readgate.router.claude import ClaudeAdapter
from readgate.router.gemini import GeminiAdapter
from readgate.router.models import ModelConfig


def make_config(name: str, provider: str, limit: int = 1000) -> ModelConfig:
    return ModelConfig(
        name              = name,
        provider          = provider,
        priority          = 1,
        daily_token_limit = limit,
        api_key           = "test-key",
        timeout_seconds   = 30,
        temperature       = 0.1,
        max_tokens        = 512,
    )


def make_repo(used: int = 0):
    repo = MagicMock()
    repo.get_token_usage_today.return_value = used
    return repo


# ── Claude ────────────────────────────────────────────────────────────────

def make_claude_client(text: str = '{"ok": true}'):
    client = MagicMock()
    client.messages.create.return_value = SimpleNamespace(
        content = [SimpleNamespace(type="text", text=text)],
        usage   = SimpleNamespace(input_tokens=120, output_tokens=30),
    )
    return client


class TestClaudeAdapter:

    def test_envia_system_y_user(self):
        client  = make_claude_client()
        adapter = ClaudeAdapter(make_config("claude-haiku", "anthropic"), make_repo(), client=client)

        adapter.complete("SYSTEM", "USER")

        client.messages.create.assert_called_once_with(
            model       = "claude-haiku",
            max_tokens  = 512,
            temperature = 0.1,
            system      = "SYSTEM",
            messages    = [{"role": "user", "content": "USER"}],
        )

    def test_devuelve_texto_y_registra_tokens(self):
        repo    = make_repo()
        adapter = ClaudeAdapter(make_config("claude-haiku", "anthropic"), repo, client=make_claude_client())

        response = adapter.complete("SYSTEM", "USER")

        assert response.text == '{"ok": true}'
        assert (response.tokens_input, response.tokens_output) == (120, 30)
        repo.add_token_usage.assert_called_once_with("claude-haiku", 150)

    def test_disponibilidad_segun_quota(self):
        config = make_config("claude-haiku", "anthropic", limit=1000)
        assert ClaudeAdapter(config, make_repo(used=999), client=MagicMock()).is_available()
        assert not ClaudeAdapter(config, make_repo(used=1000), client=MagicMock()).is_available()

    def test_error_de_api_se_propaga(self):
        client = MagicMock()
        client.messages.create.side_effect = anthropic.APIConnectionError(request=MagicMock())
        repo    = make_repo()
        adapter = ClaudeAdapter(make_config("claude-haiku", "anthropic"), repo, client=client)

        with pytest.raises(anthropic.APIConnectionError):
            adapter.complete("SYSTEM", "USER")

        repo.add_token_usage.assert_not_called()


# ── Gemini ────────────────────────────────────────────────────────────────

class TestGeminiAdapter:

    @patch("readgate.router.gemini.genai")
    def test_configura_y_genera(self, mock_genai):
        generative = mock_genai.GenerativeModel.return_value
        generative.generate_content.return_value = SimpleNamespace(
            text           = '{"ok": true}',
            usage_metadata = SimpleNamespace(prompt_token_count=80, candidates_token_count=20),
        )
        repo    = make_repo()
        adapter = GeminiAdapter(make_config("gemini-flash", "google"), repo)

        response = adapter.complete("SYSTEM", "USER")

        mock_genai.configure.assert_called_once_with(api_key="test-key")
        kwargs = mock_genai.GenerativeModel.call_args.kwargs
        assert kwargs["model_name"] == "gemini-flash"
        assert kwargs["system_instruction"] == "SYSTEM"
        generative.generate_content.assert_called_once_with(
            "USER", request_options={"timeout": 30},
        )
        assert response.text == '{"ok": true}'
        repo.add_token_usage.assert_called_once_with("gemini-flash", 100)

    @patch("readgate.router.gemini.genai")
    def test_fuerza_respuesta_json(self, mock_genai):
        adapter = GeminiAdapter(make_config("gemini-flash", "google"), make_repo())
        adapter._build_model("gemini-flash", "SYSTEM")

        kwargs = mock_genai.GenerationConfig.call_args.kwargs
        assert kwargs["response_mime_type"] == "application/json"
        assert kwargs["max_output_tokens"] == 512

    @patch("readgate.router.gemini.genai")
    def test_disponibilidad_segun_quota(self, mock_genai):
        config = make_config("gemini-flash", "google", limit=10)
        assert not GeminiAdapter(config, make_repo(used=10)).is_available()
