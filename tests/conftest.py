import copy
import json
from typing import Any, Dict
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from app.domain.constants.building_prompt import EXAMPLE_OUTPUT
from app.domain.services.poi_service import POIService, get_poi_service
from app.infrastructure.geocoding.geocoding_service import (
    NominatimGeocodingService, Place, get_geocoding_service)
from app.infrastructure.llm.client_factory import get_vision_model_client
from app.infrastructure.llm.vision_model import VisionCompletion
from app.infrastructure.overpass.overpass_service import (
    OverpassService, get_overpass_service)
from main import app

TEST_ADDRESS = "123 Example Street, New York, NY 10001, USA"


@pytest.fixture
def example_output() -> Dict[str, Any]:
    """回答例（直接形式）のコピー"""
    return copy.deepcopy(EXAMPLE_OUTPUT)


@pytest.fixture
def test_usage() -> Dict[str, int]:
    return {"prompt_tokens": 1200, "completion_tokens": 300, "total_tokens": 1500}


@pytest.fixture
def mock_vision_client(example_output, test_usage):
    """回答例を返すモック化された画像解析クライアント"""
    client = Mock()
    client.provider = "stub"
    client.complete_json = AsyncMock(return_value=VisionCompletion(
        content=json.dumps(example_output),
        usage=test_usage,
    ))
    return client


@pytest.fixture
def test_place() -> Place:
    return Place(
        display_name="Empire State Building, 350, 5th Avenue, Manhattan, New York, 10118, United States",
        city="New York",
        county="New York County",
        state="New York",
        postcode="10118",
        category="tourism",
        type="attraction",
    )


@pytest.fixture
def mock_geocoding_service(test_place):
    """モック化されたGeocodingService"""
    service = Mock(spec=NominatimGeocodingService)
    service.reverse_geocode = AsyncMock(return_value=test_place)
    return service


@pytest.fixture
def mock_overpass_service():
    """モック化されたOverpassService（地物なし）"""
    service = Mock(spec=OverpassService)
    service.fetch_elements = AsyncMock(return_value=[])
    return service


@pytest.fixture
def client(mock_vision_client, mock_geocoding_service, mock_overpass_service):
    """
    テスト用のFastAPIクライアント
    外部サービスを依存性注入でモックに置き換える
    """
    app.dependency_overrides[get_vision_model_client] = lambda: mock_vision_client
    app.dependency_overrides[get_geocoding_service] = lambda: mock_geocoding_service
    app.dependency_overrides[get_overpass_service] = lambda: mock_overpass_service
    app.dependency_overrides[get_poi_service] = POIService
    yield TestClient(app)
    app.dependency_overrides.clear()
