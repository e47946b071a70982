import base64
import binascii
import json
import os
import time as time_module
from typing import Any, Dict, Final, List, Literal, Optional, Tuple
from urllib.parse import urlparse

import aioboto3
from botocore.exceptions import (BotoCoreError, ClientError,
                                 ConnectTimeoutError, ReadTimeoutError)
from dotenv import load_dotenv
from loguru import logger
from types_aiobotocore_bedrock_runtime.type_defs import (
    ContentBlockOutputTypeDef, ContentBlockTypeDef, ConverseResponseTypeDef,
    ImageBlockTypeDef, InferenceConfigurationTypeDef, MessageTypeDef,
    ToolChoiceTypeDef, ToolConfigurationTypeDef, ToolTypeDef)

from app.application.common.concurrency import run_all_or_cancel
from app.application.exceptions import (InvalidParamError, UpstreamError,
                                        UpstreamTimeoutError)
from app.infrastructure.http.http_utils import fetch_bytes
from app.infrastructure.llm.vision_model import (ImageReference,
                                                 VisionCompletion)

ImageFormatType = Literal["gif", "jpeg", "png", "webp"]

DEFAULT_MODEL_ID: Final[str] = "us.anthropic.claude-sonnet-4-5-20250929-v1:0"
TOOL_NAME: Final[str] = "building_analysis"
IMAGE_FETCH_TIMEOUT_SECONDS: Final[float] = 20.0
# Converse API の1画像あたりの上限
IMAGE_MAX_BYTES: Final[int] = 3_750_000

_MIME_TO_FORMAT: Final[Dict[str, ImageFormatType]] = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def _get_format_from_path(path: str) -> Optional[ImageFormatType]:
    """ファイル名の拡張子から画像フォーマットを取得する"""
    ext = os.path.splitext(path)[1].lower()
    if ext == '.jpg' or ext == '.jpeg':
        return 'jpeg'
    elif ext == '.png':
        return 'png'
    elif ext == '.gif':
        return 'gif'
    elif ext == '.webp':
        return 'webp'
    return None


def decode_data_url(url: str) -> Tuple[bytes, Optional[str]]:
    """data URL（data:image/png;base64,...）をバイト列とMIMEタイプに変換する"""
    header, _, payload = url.partition(",")
    mime_type = header[len("data:"):].split(";")[0] or None
    if ";base64" not in header:
        raise InvalidParamError("Only base64 data URLs are supported", "images")
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError):
        raise InvalidParamError("Invalid base64 image data", "images")


def resolve_image_format(url: str, mime_type: Optional[str]) -> ImageFormatType:
    """MIMEタイプ、なければURLの拡張子から画像フォーマットを決定する"""
    if mime_type and mime_type.lower() in _MIME_TO_FORMAT:
        return _MIME_TO_FORMAT[mime_type.lower()]
    image_format = _get_format_from_path(urlparse(url).path)
    # 判別できない場合のデフォルト
    return image_format or "jpeg"


class BedrockVisionClient:
    """AWS Bedrock Converse API を使用した画像解析クライアント

    JSONモードがないため、応答スキーマを入力とするツールを強制指定して
    構造化された応答を得る。
    """

    provider = "bedrock"
    region_name: str
    model_id: str

    def __init__(
        self,
        region_name: str | None = None,
        model_id: str | None = None,
    ) -> None:
        load_dotenv()
        self.region_name = region_name or os.getenv(
            "AWS_REGION", "us-east-1"
        )
        self.model_id = model_id or os.getenv(
            "BEDROCK_MODEL_ID", DEFAULT_MODEL_ID
        )

    async def _load_image(self, image: ImageReference) -> ImageBlockTypeDef:
        """画像の参照をConverse APIの画像ブロックに変換する"""
        if image.url.startswith("data:"):
            image_bytes, mime_type = decode_data_url(image.url)
            if len(image_bytes) > IMAGE_MAX_BYTES:
                raise InvalidParamError(
                    f"Image exceeds the maximum size of {IMAGE_MAX_BYTES} bytes", "images")
        else:
            image_bytes, mime_type = await fetch_bytes(
                image.url,
                service="Image download",
                timeout_seconds=IMAGE_FETCH_TIMEOUT_SECONDS,
                max_bytes=IMAGE_MAX_BYTES,
            )
        return {
            "format": resolve_image_format(image.url, mime_type),
            "source": {"bytes": image_bytes},
        }

    async def complete_json(
        self,
        prompt: str,
        images: List[ImageReference],
        json_schema: Dict[str, Any],
    ) -> VisionCompletion:
        """画像付きのプロンプトを送信し、JSON形式の応答を取得する

        Args:
            prompt: 指示テキスト
            images: 画像の参照（順序を維持して送信する。detailは使用しない）
            json_schema: ツール入力として強制する応答のJSONスキーマ

        Returns:
            VisionCompletion: ツール入力をJSON文字列にした応答とトークン使用量

        Raises:
            UpstreamTimeoutError: タイムアウトした場合
            UpstreamError: APIの呼び出しに失敗した場合
        """
        image_blocks = await run_all_or_cancel(
            *(self._load_image(image) for image in images))

        content: List[ContentBlockTypeDef] = [{"text": prompt}]
        for image_block in image_blocks:
            content.append({"image": image_block})
        messages: List[MessageTypeDef] = [
            {"role": "user", "content": content}
        ]
        tool: ToolTypeDef = {
            "toolSpec": {
                "name": TOOL_NAME,
                "description": "建物の解析結果（combined matrix）を返却する",
                "inputSchema": {"json": json_schema},
            }
        }
        tool_choice: ToolChoiceTypeDef = {"tool": {"name": TOOL_NAME}}
        tool_config: ToolConfigurationTypeDef = {
            "tools": [tool],
            "toolChoice": tool_choice,
        }
        inference_config: InferenceConfigurationTypeDef = {
            "temperature": 0.0,
            "maxTokens": 4096,
        }

        start_time = time_module.time()
        try:
            session = aioboto3.Session()
            async with session.client(
                "bedrock-runtime",
                region_name=self.region_name,
            ) as bedrock_client:
                response: ConverseResponseTypeDef = (
                    await bedrock_client.converse(
                        modelId=self.model_id,
                        messages=messages,
                        inferenceConfig=inference_config,
                        toolConfig=tool_config,
                    )
                )
        except (ReadTimeoutError, ConnectTimeoutError):
            elapsed_ms = (time_module.time() - start_time) * 1000
            logger.error(
                f"Bedrock API がタイムアウトしました: elapsed={elapsed_ms:.2f}ms")
            raise UpstreamTimeoutError("Bedrock", elapsed_ms / 1000)
        except (ClientError, BotoCoreError) as e:
            elapsed_ms = (time_module.time() - start_time) * 1000
            logger.error(
                "Bedrock API エラー: "
                + f"{e}, elapsed={elapsed_ms:.2f}ms"
            )
            raise UpstreamError("Bedrock", str(e))

        completion = self._parse_response(response)
        elapsed_ms = (time_module.time() - start_time) * 1000
        logger.info(
            "Bedrock 画像解析完了: "
            + f"model={self.model_id}, images={len(images)}, "
            + f"usage={completion.usage}, elapsed={elapsed_ms:.2f}ms"
        )
        return completion

    def _parse_response(
        self,
        response: ConverseResponseTypeDef,
    ) -> VisionCompletion:
        """Bedrock Converse API のレスポンスをパースする

        toolUse ブロックがあればその入力を、なければテキストブロックを返す。
        どちらもない場合は content=None を返す。
        """
        usage = None
        raw_usage = response.get("usage")
        if raw_usage:
            usage = {
                "prompt_tokens": raw_usage.get("inputTokens", 0),
                "completion_tokens": raw_usage.get("outputTokens", 0),
                "total_tokens": raw_usage.get("totalTokens", 0),
            }

        message = response.get("output", {}).get("message")
        if message is None:
            logger.warning("Bedrock レスポンスに message が含まれていません")
            return VisionCompletion(content=None, usage=usage)

        content_blocks: List[ContentBlockOutputTypeDef] = message.get("content", [])
        text_parts = []
        for block in content_blocks:
            if "toolUse" in block:
                tool_input = block["toolUse"]["input"]
                return VisionCompletion(
                    content=json.dumps(tool_input, ensure_ascii=False),
                    usage=usage,
                )
            if "text" in block:
                text_parts.append(block["text"])

        logger.warning("Bedrock レスポンスに toolUse が含まれていません")
        return VisionCompletion(
            content="".join(text_parts) or None,
            usage=usage,
        )
