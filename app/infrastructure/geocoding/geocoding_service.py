import asyncio
import json
import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import googlemaps
from dotenv import load_dotenv
from googlemaps import exceptions as gmaps_exceptions
from loguru import logger

from app.application.exceptions import (ConfigurationError, UpstreamError,
                                        UpstreamTimeoutError)
from app.infrastructure.http.http_utils import fetch_json

# 逆ジオコーディングのタイムアウト（秒）
REVERSE_GEOCODE_TIMEOUT_SECONDS = 8.0
DEFAULT_NOMINATIM_BASE = "https://nominatim.openstreetmap.org"


@dataclass
class Place:
    """逆ジオコーディング結果を表すデータクラス"""
    display_name: Optional[str]
    city: Optional[str]
    county: Optional[str]
    state: Optional[str]
    postcode: Optional[str]
    category: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def empty(cls) -> 'Place':
        return cls(None, None, None, None, None)


class GeocodingService(Protocol):
    async def reverse_geocode(self, latitude: float, longitude: float) -> Place:
        ...


class NominatimGeocodingService:
    """Nominatim APIを使用して緯度経度から住所を取得するサービス"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float = REVERSE_GEOCODE_TIMEOUT_SECONDS
    ):
        load_dotenv()
        self.base_url = (base_url or os.getenv(
            "NOMINATIM_BASE", DEFAULT_NOMINATIM_BASE)).rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def reverse_geocode(self, latitude: float, longitude: float) -> Place:
        """
        緯度経度から住所を取得する

        Args:
            latitude (float): 緯度
            longitude (float): 経度

        Returns:
            Place: 住所情報

        Raises:
            UpstreamTimeoutError: タイムアウトした場合
            UpstreamError: Nominatimがエラーを返した場合
        """
        params = {
            "format": "jsonv2",
            "lat": str(latitude),
            "lon": str(longitude),
            "addressdetails": "1",
            "extratags": "1",
        }
        data = await fetch_json(
            f"{self.base_url}/reverse",
            service="Nominatim",
            timeout_seconds=self.timeout_seconds,
            params=params
        )

        if not isinstance(data, dict) or "error" in data:
            logger.warning(f"住所が見つかりませんでした: ({latitude}, {longitude})")
            return Place.empty()

        address = data.get("address") or {}
        return Place(
            display_name=data.get("display_name") or None,
            city=address.get("city") or address.get("town") or address.get("village") or None,
            county=address.get("county") or None,
            state=address.get("state") or None,
            postcode=address.get("postcode") or None,
            category=data.get("category"),
            type=data.get("type")
        )


class SingleAttemptGoogleMapsClient(googlemaps.Client):
    """再試行しないGoogle Mapsクライアント

    5xx応答時の再試行（2回目以降の呼び出し）を TransportError として扱う。
    """

    def _request(self, url, params, first_request_time=None, retry_counter=0,
                 *args, **kwargs):
        if retry_counter > 0:
            raise gmaps_exceptions.TransportError(
                "Geocoding API returned a retriable error")
        return super()._request(
            url, params, first_request_time, retry_counter, *args, **kwargs)


class GoogleGeocodingService:
    """Google Maps Geocoding APIを使用して緯度経度から住所を取得するサービス"""
    client: Any  # type: ignore

    def __init__(self, timeout_seconds: float = REVERSE_GEOCODE_TIMEOUT_SECONDS):
        load_dotenv()
        api_key = os.getenv('GEOCODING_API_KEY')
        if not api_key:
            raise ConfigurationError(
                "GEOCODING_API_KEY",
                "GEOCODING_API_KEY is not set in environment variables")
        self.timeout_seconds = timeout_seconds
        self.client = SingleAttemptGoogleMapsClient(
            key=api_key,
            timeout=timeout_seconds,
            retry_timeout=timeout_seconds,
            retry_over_query_limit=False,
        )

    async def reverse_geocode(self, latitude: float, longitude: float) -> Place:
        """
        緯度経度から住所を取得する

        googlemapsクライアントは同期APIのため、ワーカースレッドで実行する。

        Args:
            latitude (float): 緯度
            longitude (float): 経度

        Returns:
            Place: 住所情報
        """
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self.client.reverse_geocode, (latitude, longitude)),
                timeout=self.timeout_seconds
            )
        except (asyncio.TimeoutError, gmaps_exceptions.Timeout):
            logger.error(f"Geocoding APIがタイムアウトしました: ({latitude}, {longitude})")
            raise UpstreamTimeoutError("Google Geocoding", self.timeout_seconds)
        except (gmaps_exceptions.ApiError,
                gmaps_exceptions.HTTPError,
                gmaps_exceptions.TransportError) as e:
            logger.error(f"Geocoding APIでエラーが発生しました: {str(e)}")
            raise UpstreamError("Google Geocoding", str(e))

        if not result:
            logger.warning(f"住所が見つかりませんでした: ({latitude}, {longitude})")
            return Place.empty()

        logger.debug(
            f"Geocoding API response: {json.dumps(result[0], indent=2, ensure_ascii=False)}")

        components = {}
        for component in result[0].get('address_components', []):
            # 同じ種類が複数ある場合は最初のものを使う
            for comp_type in component.get('types', []):
                components.setdefault(comp_type, component['long_name'])

        return Place(
            display_name=result[0].get('formatted_address'),
            city=components.get('locality') or components.get('postal_town'),
            county=components.get('administrative_area_level_2'),
            state=components.get('administrative_area_level_1'),
            postcode=components.get('postal_code'),
            category=None,
            type=(result[0].get('types') or [None])[0]
        )


def get_geocoding_service() -> GeocodingService:
    """GEOCODING_PROVIDERに応じたGeocodingServiceのインスタンスを取得する"""
    load_dotenv()
    provider = os.getenv("GEOCODING_PROVIDER", "nominatim").lower()
    if provider == "nominatim":
        return NominatimGeocodingService()
    if provider == "google":
        return GoogleGeocodingService()
    raise ConfigurationError(
        "GEOCODING_PROVIDER", f"Unknown geocoding provider: {provider}")
