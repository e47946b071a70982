from fastapi import APIRouter, Depends

from app.application.location.fetch_osm_data import fetch_osm_data_app
from app.domain.services.poi_service import POIService, get_poi_service
from app.infrastructure.geocoding.geocoding_service import (
    GeocodingService, get_geocoding_service)
from app.infrastructure.overpass.overpass_service import (
    OverpassService, get_overpass_service)
from app.interfaces.schemas.osm_data import (FetchOsmDataRequest,
                                             FetchOsmDataResponse)

router = APIRouter()


@router.post("/fetch-osm-data", response_model=FetchOsmDataResponse)
async def fetch_osm_data(
    request: FetchOsmDataRequest,
    geocoding_service: GeocodingService = Depends(
        get_geocoding_service, use_cache=True),
    overpass_service: OverpassService = Depends(
        get_overpass_service, use_cache=True),
    poi_service: POIService = Depends(get_poi_service, use_cache=True),
):
    """
    指定地点の住所と周辺施設（バス停・駅・学校・スーパー・公園・教会）を取得する。
    """
    return await fetch_osm_data_app(
        request=request,
        geocoding_service=geocoding_service,
        overpass_service=overpass_service,
        poi_service=poi_service,
    )
