"""get_current_weather tool (Open-Meteo current conditions)."""
from __future__ import annotations

from typing import Any, Dict

import requests

from ..config import env_int
from .base import ExecutionContext, ToolDefinition

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"

TOOL_DEFINITION: ToolDefinition = {
    "name": "get_current_weather",
    "description": "Get the current weather for a specific location using latitude and longitude.",
    "parameters": {
        "type": "object",
        "properties": {
            "latitude": {"type": "number", "minimum": -90, "maximum": 90, "description": "The latitude of the location."},
            "longitude": {"type": "number", "minimum": -180, "maximum": 180, "description": "The longitude of the location."},
        },
        "required": ["latitude", "longitude"],
    },
}


def tool_handler(args: Dict[str, Any], context: ExecutionContext) -> Dict[str, Any]:  # noqa: ARG001
    response = requests.get(
        OPEN_METEO_URL,
        params={"latitude": args["latitude"], "longitude": args["longitude"], "current_weather": "true"},
        timeout=env_int("FOREMAN_WEATHER_TIMEOUT_S", 10),
    )
    if not response.ok:
        raise RuntimeError(f"Failed to fetch weather data: {response.status_code} {response.reason}")
    current = response.json().get("current_weather")
    if not isinstance(current, dict):
        raise RuntimeError("Weather service returned no current conditions")
    return current
