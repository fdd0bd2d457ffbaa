import httpx
import pytest

from config import Settings
from loyverse import build_http_client
from service import build_service


def test_defaults(monkeypatch):
    monkeypatch.delenv("LOYVERSE_TOKEN", raising=False)
    monkeypatch.delenv("SYNC_DELAY_SECONDS", raising=False)
    s = Settings(_env_file=None)
    assert s.LOYVERSE_API_BASE == "https://api.loyverse.com/v1.0"
    assert s.LOYVERSE_TOKEN == ""
    assert s.SYNC_DELAY_SECONDS == 0.1
    assert s.LOYVERSE_PAGE_LIMIT == 50


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("LOYVERSE_TOKEN", "secret")
    monkeypatch.setenv("SYNC_DELAY_SECONDS", "0.5")
    s = Settings(_env_file=None)
    assert s.LOYVERSE_TOKEN == "secret"
    assert s.SYNC_DELAY_SECONDS == 0.5


@pytest.mark.asyncio
async def test_http_client_carries_bearer_token(monkeypatch):
    monkeypatch.setenv("LOYVERSE_TOKEN", "secret")
    http = build_http_client(Settings(_env_file=None))
    try:
        assert http.headers["Authorization"] == "Bearer secret"
        assert str(http.base_url).startswith("https://api.loyverse.com/v1.0")
    finally:
        await http.aclose()


@pytest.mark.asyncio
async def test_build_service_uses_configured_delay(monkeypatch):
    monkeypatch.setenv("SYNC_DELAY_SECONDS", "0.25")
    http = httpx.AsyncClient()
    try:
        service = build_service(http, Settings(_env_file=None))
        assert service.reconciler.pacer.delay_seconds == 0.25
        assert service.accumulator.list_records() == []
    finally:
        await http.aclose()
