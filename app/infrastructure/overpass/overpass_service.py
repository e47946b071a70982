import os
from typing import List

from dotenv import load_dotenv
from loguru import logger

from app.domain.models.poi import OverpassElement
from app.infrastructure.http.http_utils import fetch_json

# 空間検索のタイムアウト（秒）
OVERPASS_TIMEOUT_SECONDS = 25.0
DEFAULT_OVERPASS_BASE = "https://overpass-api.de/api/interpreter"


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_radius_query(
    latitude: float,
    longitude: float,
    radius: float,
    timeout_seconds: int = int(OVERPASS_TIMEOUT_SECONDS)
) -> str:
    """
    指定地点から半径radiusメートル以内の全地物を取得するOverpass QLを作成する

    wayとrelationは`out tags center`で中心座標を取得する
    """
    around = f"around:{_format_number(radius)},{latitude},{longitude}"
    return (
        f"[out:json][timeout:{timeout_seconds}];\n"
        "(\n"
        f"  node({around});\n"
        f"  way({around});\n"
        f"  relation({around});\n"
        ");\n"
        "out tags center;"
    )


class OverpassService:
    """Overpass APIを使用して周辺の地物を取得するサービス"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float = OVERPASS_TIMEOUT_SECONDS
    ):
        load_dotenv()
        self.base_url = base_url or os.getenv("OVERPASS_BASE", DEFAULT_OVERPASS_BASE)
        self.timeout_seconds = timeout_seconds

    async def fetch_elements(
        self,
        latitude: float,
        longitude: float,
        radius: float
    ) -> List[OverpassElement]:
        """
        指定地点周辺の地物を取得する

        Args:
            latitude (float): 緯度
            longitude (float): 経度
            radius (float): 検索半径（メートル）

        Returns:
            List[OverpassElement]: 地物の一覧

        Raises:
            UpstreamTimeoutError: タイムアウトした場合
            UpstreamError: Overpass APIがエラーを返した場合
        """
        query = build_radius_query(
            latitude, longitude, radius, int(self.timeout_seconds))
        data = await fetch_json(
            self.base_url,
            service="Overpass",
            timeout_seconds=self.timeout_seconds,
            data={"data": query}
        )

        raw_elements = data.get("elements") if isinstance(data, dict) else None
        if not raw_elements:
            logger.warning(
                f"地物が見つかりませんでした: ({latitude}, {longitude}), radius={_format_number(radius)}")
            return []

        return [OverpassElement.from_dict(element) for element in raw_elements
                if isinstance(element, dict)]


def get_overpass_service() -> OverpassService:
    """OverpassServiceのインスタンスを取得する"""
    return OverpassService()
