from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt

DEFAULT_RADIUS_M = 600

# 整数・小数のどちらも受け付け、文字列や真偽値は受け付けない
PositiveNumber = Union[
    Annotated[StrictInt, Field(gt=0)],
    Annotated[StrictFloat, Field(gt=0)],
]


class FetchOsmDataRequest(BaseModel):
    latitude: StrictFloat = Field(..., description="緯度", ge=-90, le=90)
    longitude: StrictFloat = Field(..., description="経度", ge=-180, le=180)
    radius: Optional[PositiveNumber] = Field(
        None,
        description=f"検索半径（メートル、省略時は{DEFAULT_RADIUS_M}）",
    )


class Geolocation(BaseModel):
    lat: float = Field(..., description="緯度")
    lng: float = Field(..., description="経度")


class POIItem(BaseModel):
    """周辺施設"""
    name: str = Field(..., description="施設名")
    distance_m: Optional[int] = Field(None, description="検索地点からの距離（メートル）", ge=0)
    geolocation: Optional[Geolocation] = Field(None, description="施設の位置")


class Highlights(BaseModel):
    """カテゴリごとの周辺施設"""
    bus_stops: List[POIItem]
    subway_stations: List[POIItem]
    schools: List[POIItem]
    groceries: List[POIItem]
    parks: List[POIItem]
    churches: List[POIItem]


class LocationInfo(BaseModel):
    display_name: Optional[str] = Field(None, description="表示用の住所")
    city: Optional[str] = Field(None, description="市区町村")
    county: Optional[str] = Field(None, description="郡")
    state: Optional[str] = Field(None, description="州・都道府県")
    postcode: Optional[str] = Field(None, description="郵便番号")


class OsmInput(BaseModel):
    lat: float
    lng: float
    radius_m: Union[int, float]


class OSMData(BaseModel):
    input: OsmInput = Field(..., description="検索条件")
    location: LocationInfo = Field(..., description="逆ジオコーディング結果")
    highlights: Highlights = Field(..., description="周辺施設")
    fetched_at: str = Field(..., description="取得日時（ISO8601形式）")


class FetchOsmDataResponse(BaseModel):
    success: bool = Field(True, description="処理が成功したか")
    data: OSMData
