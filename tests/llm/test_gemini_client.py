"""Tests for GeminiSearchClient with the Gemini SDK patched out."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.generativeai.types.generation_types import BlockedPromptException

from grantflow.config.settings import Settings
from grantflow.exceptions import ConfigurationError
from grantflow.llm.gemini_client import GeminiSearchClient


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestInit:
    def test_missing_key_raises(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            GeminiSearchClient(cfg=_settings(gemini_api_key=""))
        assert "GEMINI_API_KEY" in str(exc_info.value)

    @patch("grantflow.llm.gemini_client.genai.configure")
    def test_defaults_from_settings(self, mock_configure: MagicMock) -> None:
        cfg = _settings(gemini_api_key="k", gemini_model="gemini-test", crossref_timeout_seconds=30)
        client = GeminiSearchClient(cfg=cfg)

        mock_configure.assert_called_once_with(api_key="k")
        assert client.model_name == "gemini-test"
        assert client.timeout == 30
        assert client.temperature == 0.0


class TestRespond:
    @pytest.mark.asyncio
    @patch("grantflow.llm.gemini_client.genai.GenerativeModel")
    @patch("grantflow.llm.gemini_client.genai.configure")
    async def test_returns_reply_text(self, mock_configure: MagicMock, mock_model_cls: MagicMock) -> None:
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text='{"program_found": true}'))
        mock_model_cls.return_value = model

        client = GeminiSearchClient(api_key="k", model_name="gemini-test", timeout=12)
        reply = await client.respond("prompt", "system")

        assert reply == '{"program_found": true}'
        mock_model_cls.assert_called_once_with(
            "gemini-test",
            system_instruction="system",
            tools="google_search_retrieval",
        )
        kwargs = model.generate_content_async.call_args.kwargs
        assert kwargs["request_options"] == {"timeout": 12}

    @pytest.mark.asyncio
    @patch("grantflow.llm.gemini_client.genai.GenerativeModel")
    @patch("grantflow.llm.gemini_client.genai.configure")
    async def test_blocked_prompt_not_retried(self, mock_configure: MagicMock, mock_model_cls: MagicMock) -> None:
        model = MagicMock()
        model.generate_content_async = AsyncMock(side_effect=BlockedPromptException("blocked"))
        mock_model_cls.return_value = model

        client = GeminiSearchClient(api_key="k")
        with pytest.raises(BlockedPromptException):
            await client.respond("prompt", "system")

        assert model.generate_content_async.await_count == 1
