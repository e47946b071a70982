import os
import time as time_module
from typing import Any, Dict, List, Optional, Tuple

import openai
from dotenv import load_dotenv
from loguru import logger
from openai import AsyncOpenAI

from app.application.exceptions import (ConfigurationError, UpstreamError,
                                        UpstreamTimeoutError)
from app.infrastructure.llm.vision_model import (ImageReference,
                                                 VisionCompletion)

DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_OPENAI_TIMEOUT_SECONDS = 120.0

# 設定ごとに共有する AsyncOpenAI クライアント
_shared_clients: Dict[Tuple[str, Optional[str], float], AsyncOpenAI] = {}


def get_async_openai_client(
    api_key: str,
    base_url: Optional[str],
    timeout_seconds: float,
) -> AsyncOpenAI:
    """設定に対応する共有の AsyncOpenAI クライアントを取得する"""
    key = (api_key, base_url, timeout_seconds)
    if key not in _shared_clients:
        _shared_clients[key] = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )
    return _shared_clients[key]


class OpenAIVisionClient:
    """OpenAI Chat Completions API（JSONモード）を使用した画像解析クライアント"""

    provider = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        load_dotenv()
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY", "OpenAI API key not configured")

        self.model = model or os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)
        self.timeout_seconds = timeout_seconds or float(
            os.getenv("OPENAI_TIMEOUT_SECONDS", DEFAULT_OPENAI_TIMEOUT_SECONDS))
        self.client = get_async_openai_client(
            api_key,
            base_url or os.getenv("OPENAI_BASE_URL") or None,
            self.timeout_seconds,
        )

    @staticmethod
    def build_content(prompt: str, images: List[ImageReference]) -> List[Dict[str, Any]]:
        """指示テキストと画像を1つのユーザーメッセージの内容にまとめる"""
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in images:
            content.append({
                "type": "image_url",
                "image_url": {"url": image.url, "detail": image.detail},
            })
        return content

    async def complete_json(
        self,
        prompt: str,
        images: List[ImageReference],
        json_schema: Dict[str, Any],
    ) -> VisionCompletion:
        """
        画像付きのプロンプトを送信し、JSON形式の応答を取得する

        スキーマはプロンプト内に記載済みのため、JSONモードのみ指定する。

        Args:
            prompt: 指示テキスト
            images: 画像の参照（順序を維持して送信する）
            json_schema: 応答のJSONスキーマ（このクライアントでは未使用）

        Returns:
            VisionCompletion: 応答テキストとトークン使用量

        Raises:
            UpstreamTimeoutError: タイムアウトした場合
            UpstreamError: APIの呼び出しに失敗した場合
        """
        start_time = time_module.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "user",
                    "content": self.build_content(prompt, images),
                }],
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError:
            logger.error(f"OpenAI API がタイムアウトしました: model={self.model}")
            raise UpstreamTimeoutError("OpenAI", self.timeout_seconds)
        except openai.APIError as e:
            logger.error(f"OpenAI API エラー: {e}")
            raise UpstreamError("OpenAI", str(e))

        elapsed_ms = (time_module.time() - start_time) * 1000
        content: Optional[str] = None
        if response.choices:
            content = response.choices[0].message.content

        usage = None
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.info(
            "OpenAI 画像解析完了: "
            + f"model={self.model}, images={len(images)}, "
            + f"usage={usage}, elapsed={elapsed_ms:.2f}ms"
        )
        return VisionCompletion(content=content, usage=usage)
