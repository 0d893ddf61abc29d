"""WeatherAPI.com integration — current conditions, forecasts and place search.

Backs the assistant's getWeather / searchLocation tools and the bot's
/weather and /forecast commands.

Gracefully degrades: returns None on any failure (no API key, timeout,
HTTP error, unexpected response body, etc.).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.weatherapi.com/v1"
_TIMEOUT_SECONDS = 5


@dataclass
class CurrentWeather:
    """Result of a successful current.json lookup."""

    location: str
    condition: str
    temp_c: float
    feelslike_c: float
    humidity: int
    wind_kph: float


@dataclass
class LocationMatch:
    name: str
    region: str
    country: str


async def get_current_weather(location: str, api_key: str) -> CurrentWeather | None:
    """Look up current weather for a place name (or "lat,lon")."""
    if not location or not api_key:
        return None

    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.get(
                f"{_BASE_URL}/current.json",
                params={"key": api_key, "q": location},
            )
            resp.raise_for_status()
            data = resp.json()

        current = data["current"]
        place = data.get("location", {})
        return CurrentWeather(
            location=place.get("name") or location,
            condition=current["condition"]["text"],
            temp_c=current["temp_c"],
            feelslike_c=current.get("feelslike_c", current["temp_c"]),
            humidity=current.get("humidity", 0),
            wind_kph=current.get("wind_kph", 0.0),
        )
    except Exception as exc:
        logger.warning("WeatherAPI current lookup failed for '%s': %s", location, exc)
        return None


async def search_locations(query: str, api_key: str) -> list[LocationMatch] | None:
    """Search places matching ``query``. Empty list when nothing matched."""
    if not query or not api_key:
        return None

    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.get(
                f"{_BASE_URL}/search.json",
                params={"key": api_key, "q": query},
            )
            resp.raise_for_status()
            data = resp.json()

        if not isinstance(data, list):
            logger.warning("WeatherAPI search returned %s", type(data).__name__)
            return None

        return [
            LocationMatch(
                name=item.get("name", ""),
                region=item.get("region", ""),
                country=item.get("country", ""),
            )
            for item in data
        ]
    except Exception as exc:
        logger.warning("WeatherAPI search failed for '%s': %s", query, exc)
        return None


@dataclass
class DailyForecast:
    """One day of a forecast.json lookup."""

    date: str
    condition: str
    max_temp_c: float
    min_temp_c: float
    max_wind_kph: float
    avg_humidity: float


async def forecast_days(location: str, api_key: str, days: int = 5) -> list[DailyForecast] | None:
    """Day-by-day forecast for the next ``days`` days, starting today."""
    if not location or not api_key:
        return None

    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.get(
                f"{_BASE_URL}/forecast.json",
                params={"key": api_key, "q": location, "days": days},
            )
            resp.raise_for_status()
            data = resp.json()

        return [
            DailyForecast(
                date=item["date"],
                condition=item["day"]["condition"]["text"],
                max_temp_c=item["day"]["maxtemp_c"],
                min_temp_c=item["day"]["mintemp_c"],
                max_wind_kph=item["day"].get("maxwind_kph", 0.0),
                avg_humidity=item["day"].get("avghumidity", 0),
            )
            for item in data["forecast"]["forecastday"]
        ]
    except Exception as exc:
        logger.warning("WeatherAPI forecast failed for '%s': %s", location, exc)
        return None
