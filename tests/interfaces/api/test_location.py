import pytest
from fastapi import status

from app.application.exceptions import UpstreamError, UpstreamTimeoutError
from app.domain.models.poi import Geolocation, OverpassElement
from main import API_PREFIX

ENDPOINT = f"{API_PREFIX}/fetch-osm-data"


@pytest.mark.api
class TestFetchOsmDataAPI:
    def test_fetch_osm_data_success(
        self,
        client,
        mock_geocoding_service,
        mock_overpass_service
    ):
        """正常系: 住所と周辺施設がカテゴリごとに返ることを確認"""
        mock_overpass_service.fetch_elements.return_value = [
            OverpassElement(type="node", id=1, lat=40.7486, lon=-73.9855,
                            tags={"highway": "bus_stop", "name": "5 Av/W 34 St"}),
            OverpassElement(type="way", id=2, center=Geolocation(lat=40.7497, lng=-73.9876),
                            tags={"railway": "station", "name": "34 St-Herald Sq"}),
            OverpassElement(type="node", id=3, lat=40.75, lon=-73.99,
                            tags={"amenity": "cafe", "name": "Coffee"}),
        ]

        response = client.post(ENDPOINT, json={
            "latitude": 40.748817,
            "longitude": -73.985428,
        })

        assert response.status_code == status.HTTP_200_OK
        response_data = response.json()
        assert response_data["success"] is True
        data = response_data["data"]
        assert data["input"] == {"lat": 40.748817, "lng": -73.985428, "radius_m": 600}
        assert isinstance(data["input"]["radius_m"], int)
        assert data["location"]["postcode"] == "10118"
        assert data["location"]["city"] == "New York"
        assert [item["name"] for item in data["highlights"]["bus_stops"]] == ["5 Av/W 34 St"]
        assert [item["name"] for item in data["highlights"]["subway_stations"]] == ["34 St-Herald Sq"]
        assert data["highlights"]["schools"] == []
        assert data["highlights"]["churches"] == []
        assert data["fetched_at"].endswith("Z")

        mock_geocoding_service.reverse_geocode.assert_awaited_once_with(40.748817, -73.985428)
        mock_overpass_service.fetch_elements.assert_awaited_once_with(40.748817, -73.985428, 600)

    def test_fetch_osm_data_custom_radius(self, client, mock_overpass_service):
        """正常系: 指定した検索半径を使う"""
        response = client.post(ENDPOINT, json={
            "latitude": 40.748817,
            "longitude": -73.985428,
            "radius": 250,
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["input"]["radius_m"] == 250
        assert isinstance(response.json()["data"]["input"]["radius_m"], int)
        mock_overpass_service.fetch_elements.assert_awaited_once_with(40.748817, -73.985428, 250)

    @pytest.mark.parametrize("body", [
        {"latitude": 91, "longitude": 0},
        {"latitude": -90.5, "longitude": 0},
        {"latitude": 0, "longitude": 180.1},
        {"latitude": 0, "longitude": 0, "radius": 0},
        {"longitude": 0},
        {"latitude": "north", "longitude": 0},
        {"latitude": "45", "longitude": "10"},
        {"latitude": True, "longitude": 0},
        {"latitude": 0, "longitude": 0, "radius": "500"},
    ])
    def test_fetch_osm_data_invalid_params(
        self,
        client,
        mock_geocoding_service,
        mock_overpass_service,
        body
    ):
        """異常系: 座標が範囲外または不正な場合は400で外部サービスを呼び出さない"""
        response = client.post(ENDPOINT, json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        response_data = response.json()
        assert response_data["code"] == 105
        assert response_data["details"]["errors"]
        mock_geocoding_service.reverse_geocode.assert_not_awaited()
        mock_overpass_service.fetch_elements.assert_not_awaited()

    def test_fetch_osm_data_overpass_error(self, client, mock_overpass_service):
        """異常系: Overpass API が失敗した場合は500"""
        mock_overpass_service.fetch_elements.side_effect = UpstreamError(
            "Overpass", "HTTP 504 Gateway Timeout")

        response = client.post(ENDPOINT, json={"latitude": 40.7, "longitude": -74.0})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        response_data = response.json()
        assert response_data["code"] == 202
        assert response_data["details"]["service"] == "Overpass"

    def test_fetch_osm_data_geocoding_timeout(self, client, mock_geocoding_service):
        """異常系: 逆ジオコーディングがタイムアウトした場合は500"""
        mock_geocoding_service.reverse_geocode.side_effect = UpstreamTimeoutError("Nominatim", 8)

        response = client.post(ENDPOINT, json={"latitude": 40.7, "longitude": -74.0})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["code"] == 203

    def test_fetch_osm_data_fractional_radius(self, client, mock_overpass_service):
        """正常系: 小数の検索半径はそのまま返す"""
        response = client.post(ENDPOINT, json={
            "latitude": 40.748817,
            "longitude": -73.985428,
            "radius": 250.5,
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["input"]["radius_m"] == 250.5
        mock_overpass_service.fetch_elements.assert_awaited_once_with(40.748817, -73.985428, 250.5)
