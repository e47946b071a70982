import math
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from app.domain.models.poi import (Geolocation, Highlights, OverpassElement,
                                   POIItem)
from app.domain.utils.geo_utils import GeoUtils

Tags = Mapping[str, str]

GROCERY_SHOPS = frozenset({'supermarket', 'convenience', 'greengrocer', 'organic'})


@dataclass(frozen=True)
class CategoryRule:
    """タグからカテゴリを判定するルール"""
    category: str
    matches: Callable[[Tags], bool]
    resolve_name: Callable[[Tags], str]


def _name_or(fallback: str) -> Callable[[Tags], str]:
    return lambda tags: tags.get('name') or fallback


# 各ルールは独立に評価され、1つの地物が複数カテゴリに属することがある
CATEGORY_RULES: List[CategoryRule] = [
    CategoryRule(
        category='bus_stops',
        matches=lambda t: (t.get('highway') == 'bus_stop' or
                           t.get('bus') == 'yes' or
                           t.get('public_transport') == 'platform'),
        resolve_name=_name_or('Bus stop'),
    ),
    CategoryRule(
        category='subway_stations',
        matches=lambda t: t.get('railway') in ('station', 'stop'),
        resolve_name=_name_or('Subway station'),
    ),
    CategoryRule(
        category='schools',
        matches=lambda t: t.get('amenity') == 'school',
        resolve_name=_name_or('School'),
    ),
    CategoryRule(
        category='parks',
        matches=lambda t: (t.get('leisure') in ('park', 'playground') or
                           t.get('landuse') == 'recreation_ground'),
        resolve_name=_name_or('Park'),
    ),
    CategoryRule(
        category='groceries',
        matches=lambda t: (t.get('shop') in GROCERY_SHOPS or
                           t.get('amenity') == 'marketplace'),
        resolve_name=lambda t: t.get('name') or t.get('brand') or 'Grocery',
    ),
    CategoryRule(
        category='churches',
        matches=lambda t: (t.get('amenity') == 'place_of_worship' or
                           t.get('building') == 'church'),
        resolve_name=_name_or('Church'),
    ),
]

CATEGORIES: List[str] = [rule.category for rule in CATEGORY_RULES]


def classify(tags: Tags) -> List[str]:
    """
    タグに一致するカテゴリをすべて返す

    Args:
        tags: 地物のタグ

    Returns:
        List[str]: 一致したカテゴリ名（一致しない場合は空）
    """
    return [rule.category for rule in CATEGORY_RULES if rule.matches(tags)]


def dedupe(items: Iterable[POIItem]) -> List[POIItem]:
    """名前と位置が同じ施設を除外する（最初の出現を残し、順序は維持）"""
    seen = set()
    result = []
    for item in items:
        key = item.dedupe_key()
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


class POIService:
    """Overpass APIの地物から周辺施設を抽出するサービス"""

    def make_item(
        self,
        element: OverpassElement,
        name: str,
        origin: Geolocation
    ) -> POIItem:
        """地物を検索地点からの距離付きのPOIItemに変換する"""
        location = element.geolocation
        distance_m: Optional[int] = None
        if location is not None:
            # 0.5 は切り上げる
            distance_m = int(math.floor(GeoUtils.haversine_distance(
                origin.lat, origin.lng, location.lat, location.lng) + 0.5))
        return POIItem(name=name, distance_m=distance_m, geolocation=location)

    def extract_highlights(
        self,
        elements: Iterable[OverpassElement],
        origin: Geolocation
    ) -> Highlights:
        """
        地物をカテゴリごとに分類し、重複を除いた周辺施設一覧を作成する

        Args:
            elements: Overpass APIの地物
            origin: 検索地点

        Returns:
            Highlights: カテゴリごとの周辺施設
        """
        buckets: Dict[str, List[POIItem]] = {category: [] for category in CATEGORIES}
        total = 0

        for element in elements:
            total += 1
            for rule in CATEGORY_RULES:
                if rule.matches(element.tags):
                    buckets[rule.category].append(
                        self.make_item(element, rule.resolve_name(element.tags), origin))

        highlights = Highlights(**{
            category: dedupe(items) for category, items in buckets.items()
        })
        logger.debug(
            f"周辺施設を抽出しました: elements={total}, "
            + ", ".join(f"{c}={len(getattr(highlights, c))}" for c in CATEGORIES))
        return highlights

    @staticmethod
    def to_dict(highlights: Highlights) -> dict:
        return asdict(highlights)


# シングルトンパターン
_poi_service_instance: POIService | None = None


def get_poi_service() -> POIService:
    """POIServiceのインスタンスを取得する"""
    global _poi_service_instance
    if _poi_service_instance is None:
        _poi_service_instance = POIService()
    return _poi_service_instance
