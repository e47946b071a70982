from unittest.mock import patch

import pytest

from app.application.exceptions import ConfigurationError
from app.infrastructure.llm.bedrock_client import BedrockVisionClient
from app.infrastructure.llm.client_factory import (get_vision_model_client,
                                                   missing_credentials)
from app.infrastructure.llm.openai_client import OpenAIVisionClient


@pytest.fixture(autouse=True)
def no_dotenv():
    """.env の値がテストに影響しないようにする"""
    with patch("app.infrastructure.llm.client_factory.load_dotenv"), \
            patch("app.infrastructure.llm.openai_client.load_dotenv"):
        yield


@pytest.mark.unit
class TestGetVisionModelClient:
    def test_default_is_openai(self, monkeypatch):
        monkeypatch.delenv("VISION_MODEL_PROVIDER", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert isinstance(get_vision_model_client(), OpenAIVisionClient)

    def test_openai_without_key(self, monkeypatch):
        """OpenAI のAPIキーがない場合は ConfigurationError"""
        monkeypatch.setenv("VISION_MODEL_PROVIDER", "openai")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            get_vision_model_client()

    def test_bedrock(self, monkeypatch):
        monkeypatch.setenv("VISION_MODEL_PROVIDER", "Bedrock")
        monkeypatch.setenv("BEDROCK_MODEL_ID", "custom-model")
        client = get_vision_model_client()
        assert isinstance(client, BedrockVisionClient)
        assert client.model_id == "custom-model"

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("VISION_MODEL_PROVIDER", "llama")
        with pytest.raises(ConfigurationError) as exc_info:
            get_vision_model_client()
        assert exc_info.value.details == {"setting": "VISION_MODEL_PROVIDER"}


@pytest.mark.unit
class TestMissingCredentials:
    def test_all_set(self, monkeypatch):
        monkeypatch.setenv("VISION_MODEL_PROVIDER", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("GEOCODING_PROVIDER", "nominatim")
        assert missing_credentials() == []

    def test_missing(self, monkeypatch):
        monkeypatch.setenv("VISION_MODEL_PROVIDER", "openai")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("GEOCODING_PROVIDER", "google")
        monkeypatch.delenv("GEOCODING_API_KEY", raising=False)
        assert missing_credentials() == ["OPENAI_API_KEY", "GEOCODING_API_KEY"]
