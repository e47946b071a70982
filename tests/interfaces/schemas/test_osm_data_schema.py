import pytest
from pydantic import ValidationError

from app.interfaces.schemas.osm_data import FetchOsmDataRequest, POIItem


@pytest.mark.unit
class TestFetchOsmDataRequest:
    def test_valid(self):
        request = FetchOsmDataRequest(latitude=40.7, longitude=-74.0)
        assert request.radius is None

    @pytest.mark.parametrize("latitude, longitude", [
        (90, 180),
        (-90, -180),
    ])
    def test_boundaries(self, latitude, longitude):
        """範囲の両端は有効"""
        request = FetchOsmDataRequest(latitude=latitude, longitude=longitude)
        assert request.latitude == latitude

    @pytest.mark.parametrize("latitude, longitude, radius", [
        (90.0001, 0, None),
        (0, -180.0001, None),
        (0, 0, -100),
    ])
    def test_out_of_range(self, latitude, longitude, radius):
        with pytest.raises(ValidationError):
            FetchOsmDataRequest(latitude=latitude, longitude=longitude, radius=radius)

    @pytest.mark.parametrize("body", [
        {"latitude": "45", "longitude": "10"},
        {"latitude": True, "longitude": 0},
        {"latitude": 0, "longitude": False},
        {"latitude": 0, "longitude": 0, "radius": "500"},
        {"latitude": 0, "longitude": 0, "radius": True},
    ])
    def test_no_coercion(self, body):
        """文字列や真偽値は数値として受け付けない"""
        with pytest.raises(ValidationError):
            FetchOsmDataRequest.model_validate(body)

    def test_radius_keeps_number_type(self):
        """検索半径は整数・小数をそのまま保持する"""
        assert type(FetchOsmDataRequest(latitude=0, longitude=0, radius=500).radius) is int
        assert FetchOsmDataRequest(latitude=0, longitude=0, radius=500.5).radius == 500.5


@pytest.mark.unit
class TestPOIItem:
    def test_without_location(self):
        """座標のない施設は距離と位置がNone"""
        item = POIItem(name="Bus stop")

        assert item.distance_m is None
        assert item.geolocation is None

    def test_negative_distance(self):
        with pytest.raises(ValidationError):
            POIItem(name="Park", distance_m=-1)
