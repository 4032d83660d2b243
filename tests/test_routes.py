"""HTTP surface tests against the app built with scripted settings."""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from main import create_app
from services.catalog import figure_ids
from utils.settings import ConfigurationError, agent_key_env_name


@pytest.fixture(autouse=True)
def clear_agent_keys(monkeypatch):
    for figure_id in figure_ids():
        monkeypatch.delenv(agent_key_env_name(figure_id), raising=False)


@pytest.fixture
def client(test_settings):
    with TestClient(create_app(test_settings)) as test_client:
        yield test_client


def test_health_reports_transport(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["transport"] == "scripted"
    assert body["elevenlabs_available"] is False


def test_figures_are_public_views(client):
    figures = client.get("/api/figures").json()["figures"]
    assert [figure["id"] for figure in figures] == ["einstein", "aurelius", "curie", "lincoln"]
    assert all(set(figure) == {"id", "name", "imageSrc", "videoSrc", "isActive"} for figure in figures)
    assert [figure["id"] for figure in figures if figure["isActive"]] == ["einstein"]


def test_security_headers_are_attached(client):
    response = client.get("/api/figures")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Strict-Transport-Security"].startswith("max-age=31536000")


def test_rate_limit_rejects_excess_requests(test_settings):
    settings = replace(test_settings, rate_limit_requests=2)
    with TestClient(create_app(settings)) as client:
        assert client.get("/api/figures").status_code == 200
        assert client.get("/api/figures").status_code == 200
        limited = client.get("/api/figures")
        assert limited.status_code == 429
        assert limited.json() == {"detail": "Rate limit exceeded. Please try again later."}
        # Only /api/ paths count against the budget.
        assert client.get("/health").status_code == 200


def test_proxy_routes_require_same_origin_outside_development(test_settings):
    settings = replace(test_settings, app_env="production")
    with TestClient(create_app(settings)) as client:
        denied = client.post("/api/agent-audio", json={"message": "hello"})
        assert denied.status_code == 403
        assert denied.json()["detail"] == "Access denied"

        allowed = client.post(
            "/api/agent-audio",
            json={"message": "hello"},
            headers={"Referer": "http://testserver/"},
        )
        assert allowed.status_code == 200


def test_agent_audio_uses_configured_transport(client):
    response = client.post("/api/agent-audio", json={"message": "What is relativity?", "figureId": "einstein"})
    assert response.status_code == 200
    body = response.json()
    assert body["conversation_id"].startswith("scripted-einstein-")
    assert "E=mc²" in body["response"]
    assert body["audio"] is None


def test_agent_audio_validates_input(client):
    assert client.post("/api/agent-audio", json={"message": "   "}).status_code == 400
    assert client.post("/api/agent-audio", json={"message": "hi", "figureId": "napoleon"}).status_code == 404


def test_legacy_conversation_endpoint(client):
    response = client.post("/api/conversation", json={"message": "tell me about peace", "agentKey": "k"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["response"].startswith("Peace cannot be kept by force")

    missing = client.post("/api/conversation", json={"message": "hi"})
    assert missing.status_code == 400


def test_figure_token_never_exposes_agent_key(monkeypatch, test_settings):
    monkeypatch.setenv("AGENT_KEY_EINSTEIN", "agent-secret-e")
    with TestClient(create_app(test_settings)) as client:
        response = client.get("/api/figure-agent-key/einstein")
        assert response.status_code == 200
        body = response.json()
        assert body["figureId"] == "einstein"
        assert body["token"]
        assert body["expiresAt"] > body["timestamp"]
        assert "agent-secret-e" not in response.text

        assert client.get("/api/figure-agent-key/curie").status_code == 404


def test_provider_routes_without_api_key(monkeypatch, test_settings):
    monkeypatch.setenv("AGENT_KEY_EINSTEIN", "agent-secret-e")
    with TestClient(create_app(test_settings)) as client:
        response = client.get("/api/signed-url", params={"figureId": "einstein"})
        assert response.status_code == 500
        assert response.json()["detail"] == "Server configuration error: Missing API key"

        response = client.post(
            "/api/elevenlabs/conversation-response",
            json={"message": "hi", "conversationId": "conv-1"},
        )
        assert response.status_code == 500


def test_start_conversation_rejects_unknown_token(client):
    response = client.post("/api/elevenlabs/start-conversation", json={"token": "forged"})
    assert response.status_code == 401
    assert client.post("/api/elevenlabs/start-conversation", json={}).status_code == 400


def test_startup_fails_without_agent_keys_when_provider_configured(test_settings):
    settings = replace(test_settings, elevenlabs_api_key="xi-test")
    with pytest.raises(ConfigurationError) as excinfo:
        with TestClient(create_app(settings)):
            pass
    assert "AGENT_KEY_EINSTEIN" in str(excinfo.value)


def test_transcripts_for_unknown_client_are_empty(client):
    response = client.get("/api/transcripts/nobody")
    assert response.status_code == 200
    assert response.json() == {"client_id": "nobody", "conversations": {}}


def test_clearing_unknown_figure_is_not_found(client):
    assert client.delete("/api/transcripts/nobody/napoleon").status_code == 404
    response = client.delete("/api/transcripts/nobody/curie")
    assert response.status_code == 200
    assert response.json()["cleared"] is False


def test_transcripts_require_same_origin_outside_development(test_settings):
    settings = replace(test_settings, app_env="production")
    with TestClient(create_app(settings)) as client:
        assert client.get("/api/transcripts/alice").status_code == 403
        assert client.delete("/api/transcripts/alice/einstein").status_code == 403
        assert client.get("/api/transcripts/alice", headers={"Referer": "https://evil.example/"}).status_code == 403

        same_origin = {"Referer": "http://testserver/"}
        assert client.get("/api/transcripts/alice", headers=same_origin).status_code == 200
        assert client.delete("/api/transcripts/alice/einstein", headers=same_origin).status_code == 200
