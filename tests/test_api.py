from fastapi.testclient import TestClient
import pytest

from ecoscan.engine import AnalysisEngine, ResultCache, get_engine
from ecoscan.gateway import EnrichmentGateway
from ecoscan.main import MetricsLogger, app

from conftest import QUINOA_SALAD, PLASTIC_BOTTLE

client = TestClient(app)


@pytest.fixture(autouse=True)
def offline_app():
    engine = AnalysisEngine(EnrichmentGateway(enabled=False), cache=ResultCache())
    app.dependency_overrides[get_engine] = lambda: engine
    MetricsLogger.reset()
    yield engine
    app.dependency_overrides.clear()


def test_root():
    response = client.get("/")
    assert response.status_code == 200
    assert "EcoScan" in response.json()["message"]


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["rss_bytes"] >= 0


def test_config_snapshot_has_no_secrets():
    data = client.get("/config").json()
    assert "model" in data
    assert "environmental_weights" in data
    assert all("key" not in k or k == "api_key_configured" for k in data)


def test_analyze_quinoa():
    response = client.post("/analyze", json=QUINOA_SALAD)
    assert response.status_code == 200
    data = response.json()
    assert data["product_name"] == "Organic Quinoa Salad"
    assert data["unified_score"] == 80
    assert data["sustainability_grade"] == "B"
    assert data["analysis_type"] == "combined"
    assert data["enrichment_source"] == "fallback"
    assert data["eco_score"]["breakdown"]["carbon"] == 70


def test_analyze_environmental_only():
    data = client.post("/analyze", json=PLASTIC_BOTTLE).json()
    assert data["analysis_type"] == "environmental_only"
    assert data["food_analysis"] is None
    assert data["confidence_level"] == "low"


def test_analyze_without_name_is_422():
    response = client.post("/analyze", json={"brand": "Acme", "packaging": "glass"})
    assert response.status_code == 422
    assert "product name" in response.json()["detail"]


def test_cache_endpoints(offline_app):
    offline_app.cache.put("f" * 64, None)
    stats = client.get("/cache/stats").json()
    assert stats["size"] == 1
    assert stats["keys"] == ["f" * 12]
    assert client.post("/cache/clear").json() == {"cleared": 1}
    assert client.get("/cache/stats").json()["size"] == 0


def test_metrics_track_fallback_rate():
    client.post("/analyze", json=QUINOA_SALAD)
    client.post("/analyze", json=PLASTIC_BOTTLE)
    data = client.get("/metrics").json()
    assert data["count"] == 2
    assert data["fallback_rate"] == 100.0
    assert data["score_trend"] == [80, 42]


def test_analyze_with_nan_nutrient_is_not_a_server_error():
    response = client.post(
        "/analyze",
        content='{"name": "Protein Bar", "calories": NaN, "sugar": Infinity}',
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json()["analysis_type"] == "environmental_only"
