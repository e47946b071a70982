from unittest.mock import AsyncMock, patch

import pytest

from app.application.exceptions import UpstreamError
from app.domain.models.poi import Geolocation
from app.infrastructure.overpass.overpass_service import (OverpassService,
                                                          build_radius_query)


@pytest.mark.unit
class TestBuildRadiusQuery:
    def test_query(self):
        """node/way/relation を半径指定で検索し、タグと中心座標を出力する"""
        query = build_radius_query(40.7128, -74.006, 600.0)

        assert query.startswith("[out:json][timeout:25];")
        assert "node(around:600,40.7128,-74.006);" in query
        assert "way(around:600,40.7128,-74.006);" in query
        assert "relation(around:600,40.7128,-74.006);" in query
        assert query.endswith("out tags center;")

    def test_fractional_radius(self):
        """小数の半径はそのまま使う"""
        assert "around:250.5," in build_radius_query(1.0, 2.0, 250.5)


@pytest.mark.unit
class TestOverpassService:
    @pytest.fixture
    def service(self):
        return OverpassService(base_url="https://overpass.example.com/api/interpreter")

    @pytest.mark.asyncio
    async def test_fetch_elements(self, service):
        """地物を OverpassElement に変換して返す"""
        response = {
            "version": 0.6,
            "elements": [
                {"type": "node", "id": 1, "lat": 40.713, "lon": -74.0062,
                 "tags": {"highway": "bus_stop"}},
                {"type": "way", "id": 2, "center": {"lat": 40.7126, "lon": -74.0075},
                 "tags": {"leisure": "park", "name": "City Hall Park"}},
                {"type": "relation", "id": 3},
            ],
        }
        with patch("app.infrastructure.overpass.overpass_service.fetch_json",
                   new=AsyncMock(return_value=response)) as mock_fetch:
            elements = await service.fetch_elements(40.7128, -74.006, 600)

        assert [element.id for element in elements] == [1, 2, 3]
        assert elements[0].geolocation == Geolocation(lat=40.713, lng=-74.0062)
        assert elements[1].geolocation == Geolocation(lat=40.7126, lng=-74.0075)
        assert elements[2].geolocation is None
        assert elements[2].tags == {}

        args, kwargs = mock_fetch.call_args
        assert args[0] == "https://overpass.example.com/api/interpreter"
        assert kwargs["timeout_seconds"] == 25.0
        assert "around:600,40.7128,-74.006" in kwargs["data"]["data"]

    @pytest.mark.asyncio
    async def test_no_elements(self, service):
        """地物がない場合は空リスト"""
        with patch("app.infrastructure.overpass.overpass_service.fetch_json",
                   new=AsyncMock(return_value={"elements": []})):
            assert await service.fetch_elements(0.0, 0.0, 100) == []

    @pytest.mark.asyncio
    async def test_upstream_error(self, service):
        """Overpass API のエラーはそのまま伝播する"""
        with patch("app.infrastructure.overpass.overpass_service.fetch_json",
                   new=AsyncMock(side_effect=UpstreamError("Overpass", "HTTP 429 Too Many Requests"))):
            with pytest.raises(UpstreamError):
                await service.fetch_elements(40.7128, -74.006, 600)
