from datetime import datetime, timezone
from typing import Callable

from loguru import logger
from pydantic import ValidationError

from app.application.common.concurrency import run_all_or_cancel
from app.application.exceptions import InternalValidationError
from app.domain.models.poi import Geolocation
from app.domain.services.poi_service import POIService
from app.infrastructure.geocoding.geocoding_service import GeocodingService
from app.infrastructure.overpass.overpass_service import OverpassService
from app.interfaces.schemas.osm_data import (DEFAULT_RADIUS_M,
                                             FetchOsmDataRequest,
                                             FetchOsmDataResponse, OSMData)


def utc_now_iso() -> str:
    """現在時刻をISO8601形式（UTC、ミリ秒、Z表記）で返す"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def fetch_osm_data_app(
    request: FetchOsmDataRequest,
    geocoding_service: GeocodingService,
    overpass_service: OverpassService,
    poi_service: POIService,
    clock: Callable[[], str] = utc_now_iso,
) -> FetchOsmDataResponse:
    """
    指定地点の住所と周辺施設を取得する

    逆ジオコーディングと空間検索は互いに依存しないため並列に実行する。
    どちらかが失敗した場合は他方をキャンセルし、リクエスト全体を失敗とする。

    Args:
        request: 緯度・経度・検索半径
        geocoding_service: 逆ジオコーディングサービス
        overpass_service: Overpass APIサービス
        poi_service: 周辺施設抽出サービス
        clock: 取得日時を返す関数

    Returns:
        FetchOsmDataResponse: 住所と周辺施設

    Raises:
        InternalValidationError: 組み立てたレスポンスがスキーマに一致しない場合
    """
    latitude = request.latitude
    longitude = request.longitude
    radius = request.radius if request.radius is not None else DEFAULT_RADIUS_M

    logger.info(f"周辺情報リクエスト: ({latitude}, {longitude}), radius={radius}")

    place, elements = await run_all_or_cancel(
        geocoding_service.reverse_geocode(latitude, longitude),
        overpass_service.fetch_elements(latitude, longitude, radius),
    )

    highlights = poi_service.extract_highlights(
        elements, Geolocation(lat=latitude, lng=longitude))

    payload = {
        "input": {"lat": latitude, "lng": longitude, "radius_m": radius},
        "location": {
            "display_name": place.display_name,
            "city": place.city,
            "county": place.county,
            "state": place.state,
            "postcode": place.postcode,
        },
        "highlights": poi_service.to_dict(highlights),
        "fetched_at": clock(),
    }

    try:
        data = OSMData.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Response validation error: {e}")
        raise InternalValidationError(e.errors(include_url=False))

    return FetchOsmDataResponse(success=True, data=data)
