from __future__ import annotations

import json

import pytest

from foreman.tools import get_current_weather as weather_module


class FakeResponse:
    def __init__(self, payload, status_code=200, reason="OK"):
        self._payload = payload
        self.status_code = status_code
        self.reason = reason
        self.ok = status_code < 400

    def json(self):
        return self._payload


@pytest.mark.asyncio
async def test_weather_returns_current_conditions(builtin_registry, monkeypatch):
    captured = {}

    def fake_get(url, params=None, timeout=None):
        captured.update(url=url, params=params, timeout=timeout)
        return FakeResponse({"current_weather": {"temperature": 12.5, "windspeed": 3.0}})

    monkeypatch.setattr(weather_module.requests, "get", fake_get)
    output = await builtin_registry.invoke("get_current_weather", '{"latitude": 52.52, "longitude": 13.41}')

    assert json.loads(output) == {"temperature": 12.5, "windspeed": 3.0}
    assert captured["url"] == weather_module.OPEN_METEO_URL
    assert captured["params"] == {"latitude": 52.52, "longitude": 13.41, "current_weather": "true"}
    assert captured["timeout"] == 10


@pytest.mark.asyncio
async def test_weather_http_failure_is_contained(builtin_registry, monkeypatch):
    monkeypatch.setattr(
        weather_module.requests, "get", lambda url, params=None, timeout=None: FakeResponse({}, 503, "Unavailable")
    )
    output = await builtin_registry.invoke("get_current_weather", {"latitude": 0, "longitude": 0})
    payload = json.loads(output)
    assert payload["success"] is False
    assert "503 Unavailable" in payload["error"]


@pytest.mark.asyncio
async def test_weather_rejects_out_of_range_coordinates(builtin_registry, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("network must not be reached")

    monkeypatch.setattr(weather_module.requests, "get", fail)
    output = await builtin_registry.invoke("get_current_weather", {"latitude": 91, "longitude": 0})
    payload = json.loads(output)
    assert payload["success"] is False
    assert "latitude" in payload["error"]
