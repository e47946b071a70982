from fastapi import APIRouter, Depends

from app.application.building.analyze_building import analyze_building_app
from app.infrastructure.llm.client_factory import get_vision_model_client
from app.infrastructure.llm.vision_model import VisionModelClient
from app.interfaces.schemas.building_analysis import (AnalyzeBuildingRequest,
                                                      AnalyzeBuildingResponse)

router = APIRouter()


@router.post(
    "/analyze-building",
    response_model=AnalyzeBuildingResponse,
    response_model_exclude_none=True,
)
async def analyze_building(
    request: AnalyzeBuildingRequest,
    vision_client: VisionModelClient = Depends(
        get_vision_model_client, use_cache=True),
):
    """
    建物の写真（上空写真とストリートビュー）から建物の特徴を推定する。
    """
    return await analyze_building_app(
        request=request,
        vision_client=vision_client,
    )
