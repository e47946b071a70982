import json
from typing import Any, List

from loguru import logger
from pydantic import ValidationError

from app.application.exceptions import (InvalidParamError,
                                        ProviderValidationError,
                                        UpstreamFormatError)
from app.domain.constants.building_prompt import build_instruction
from app.infrastructure.llm.vision_model import (ImageReference,
                                                 VisionModelClient)
from app.interfaces.schemas.building_analysis import (AnalyzeBuildingRequest,
                                                      AnalyzeBuildingResponse,
                                                      CombinedMatrixPayload,
                                                      EnvelopedPayload,
                                                      ImageInput, TokenUsage)


def to_image_references(images: List[str | ImageInput]) -> List[ImageReference]:
    """リクエストの画像指定（URL文字列または{url, detail}）を順序どおり変換する"""
    references = []
    for image in images:
        if isinstance(image, str):
            references.append(ImageReference(url=image))
        else:
            references.append(ImageReference(url=image.url, detail=image.detail))
    return references


def parse_model_output(raw_content: str | None) -> CombinedMatrixPayload:
    """
    モデルの応答テキストを解析し、{combined_matrix: ...}形式に正規化する

    直接形式 {combined_matrix} を先に試し、失敗した場合は
    指示の形式をそのまま返した包含形式 {schema: {combined_matrix}} を試す。

    Args:
        raw_content: モデルの応答テキスト

    Returns:
        CombinedMatrixPayload: 正規化した解析結果

    Raises:
        UpstreamFormatError: 応答が空、またはJSONとして解析できない場合
        ProviderValidationError: どちらの形式にも一致しない場合
    """
    if not raw_content:
        raise UpstreamFormatError("No content received from vision model")

    try:
        parsed: Any = json.loads(raw_content)
    except json.JSONDecodeError as e:
        logger.error(f"モデルの応答をJSONとして解析できません: {e}")
        raise UpstreamFormatError(
            "Invalid JSON response from vision model", raw_content[:2000])

    try:
        return CombinedMatrixPayload.model_validate(parsed)
    except ValidationError as direct_error:
        try:
            return EnvelopedPayload.model_validate(parsed).schema_
        except ValidationError as enveloped_error:
            validation_errors = {
                "direct": direct_error.errors(include_url=False),
                "enveloped": enveloped_error.errors(include_url=False),
            }
            logger.error(f"Validation error: {validation_errors}")
            logger.error(
                f"Raw response: {json.dumps(parsed, indent=2, ensure_ascii=False)}")
            raise ProviderValidationError(validation_errors, parsed)


async def analyze_building_app(
    request: AnalyzeBuildingRequest,
    vision_client: VisionModelClient,
) -> AnalyzeBuildingResponse:
    """
    建物の写真から階数・外装材・建築様式・用途構成を推定する

    Args:
        request: 住所と画像の一覧
        vision_client: 画像解析クライアント

    Returns:
        AnalyzeBuildingResponse: 正規化した解析結果とトークン使用量

    Raises:
        InvalidParamError: 画像が指定されていない場合
    """
    logger.info(f"建物解析リクエスト: address={request.address}, images={len(request.images)}")

    if not request.images:
        raise InvalidParamError("No images provided", "images")

    completion = await vision_client.complete_json(
        prompt=build_instruction(request.address),
        images=to_image_references(request.images),
        json_schema=CombinedMatrixPayload.model_json_schema(),
    )

    payload = parse_model_output(completion.content)
    logger.info(
        f"建物解析完了: provider={vision_client.provider}, "
        f"style={payload.combined_matrix.architectural_style}, "
        f"floors={payload.combined_matrix.num_floors}")

    return AnalyzeBuildingResponse(
        success=True,
        data=payload,
        usage=TokenUsage(**completion.usage) if completion.usage else None,
    )
