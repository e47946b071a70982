from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Geolocation:
    """緯度経度を表すデータクラス"""
    lat: float
    lng: float


@dataclass
class OverpassElement:
    """Overpass APIが返す地物（node/way/relation）"""
    type: str
    id: int
    tags: Dict[str, str] = field(default_factory=dict)
    lat: Optional[float] = None
    lon: Optional[float] = None
    center: Optional[Geolocation] = None

    @classmethod
    def from_dict(cls, element: Dict[str, Any]) -> 'OverpassElement':
        """
        Overpass APIのJSON要素からOverpassElementを作成する

        wayとrelationは`out center`指定時のみcenterを持つ
        """
        center = element.get('center') or {}
        center_location = None
        if center.get('lat') is not None and center.get('lon') is not None:
            center_location = Geolocation(lat=center['lat'], lng=center['lon'])

        return cls(
            type=element.get('type', ''),
            id=element.get('id', 0),
            tags=element.get('tags') or {},
            lat=element.get('lat'),
            lon=element.get('lon'),
            center=center_location
        )

    @property
    def geolocation(self) -> Optional[Geolocation]:
        """地物自身の座標、なければ中心座標"""
        if self.lat is not None and self.lon is not None:
            return Geolocation(lat=self.lat, lng=self.lon)
        return self.center


@dataclass
class POIItem:
    """周辺施設を表すデータクラス"""
    name: str
    distance_m: Optional[int]
    geolocation: Optional[Geolocation]

    def dedupe_key(self) -> tuple:
        return (self.name, self.geolocation)


@dataclass
class Highlights:
    """カテゴリごとの周辺施設一覧"""
    bus_stops: List[POIItem] = field(default_factory=list)
    subway_stations: List[POIItem] = field(default_factory=list)
    schools: List[POIItem] = field(default_factory=list)
    groceries: List[POIItem] = field(default_factory=list)
    parks: List[POIItem] = field(default_factory=list)
    churches: List[POIItem] = field(default_factory=list)
