import os

from dotenv import load_dotenv

from app.application.exceptions import ConfigurationError
from app.infrastructure.llm.bedrock_client import BedrockVisionClient
from app.infrastructure.llm.openai_client import OpenAIVisionClient
from app.infrastructure.llm.vision_model import VisionModelClient

VISION_MODEL_PROVIDERS = ("openai", "bedrock")


def get_vision_model_provider() -> str:
    load_dotenv()
    return os.getenv("VISION_MODEL_PROVIDER", "openai").lower()


def get_vision_model_client() -> VisionModelClient:
    """
    VISION_MODEL_PROVIDERに応じた画像解析クライアントを取得する

    Raises:
        ConfigurationError: プロバイダが不明、または認証情報が設定されていない場合
    """
    provider = get_vision_model_provider()
    if provider == "openai":
        return OpenAIVisionClient()
    if provider == "bedrock":
        return BedrockVisionClient()
    raise ConfigurationError(
        "VISION_MODEL_PROVIDER", f"Unknown vision model provider: {provider}")


def missing_credentials() -> list[str]:
    """起動時チェック用: 選択中のプロバイダに必要で未設定の環境変数を返す"""
    load_dotenv()
    missing = []
    provider = get_vision_model_provider()
    if provider not in VISION_MODEL_PROVIDERS:
        missing.append("VISION_MODEL_PROVIDER")
    if provider == "openai" and not os.getenv("OPENAI_API_KEY"):
        missing.append("OPENAI_API_KEY")
    if os.getenv("GEOCODING_PROVIDER", "nominatim").lower() == "google" \
            and not os.getenv("GEOCODING_API_KEY"):
        missing.append("GEOCODING_API_KEY")
    return missing
