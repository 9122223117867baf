"""
Weather clients.

Outing weather is never stored; every lookup asks an upstream again:
- past outings    -> Open-Meteo archive (one day of daily aggregates)
- today / future  -> Open-Meteo forecast (current reading + today's daily)
                     or OpenWeatherMap when an API key is configured

Each provider hands back the same WeatherReport so the endpoint only knows
one shape. Everything is requested in imperial units.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
import logging
import re

import httpx

from .errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)


# Open-Meteo / WMO weather interpretation codes
WEATHER_CONDITIONS: Mapping[int, str] = MappingProxyType({
    0: "Clear",
    1: "Mainly Clear",
    2: "Partly Cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing Rime Fog",
    51: "Light Drizzle",
    53: "Moderate Drizzle",
    55: "Dense Drizzle",
    56: "Light Freezing Drizzle",
    57: "Dense Freezing Drizzle",
    61: "Slight Rain",
    63: "Moderate Rain",
    65: "Heavy Rain",
    66: "Light Freezing Rain",
    67: "Heavy Freezing Rain",
    71: "Slight Snow",
    73: "Moderate Snow",
    75: "Heavy Snow",
    77: "Snow Grains",
    80: "Slight Rain Showers",
    81: "Moderate Rain Showers",
    82: "Violent Rain Showers",
    85: "Slight Snow Showers",
    86: "Heavy Snow Showers",
    95: "Thunderstorm",
    96: "Thunderstorm with Hail",
    99: "Thunderstorm with Heavy Hail",
})

UNKNOWN_CONDITIONS = "Unknown"


def describe_weather_code(code: Any) -> str:
    """Map a numeric weather code to its label; anything unmapped is "Unknown"."""
    if code is None or isinstance(code, bool):
        return UNKNOWN_CONDITIONS
    try:
        key = int(code)
    except (TypeError, ValueError):
        return UNKNOWN_CONDITIONS
    if key != code and not isinstance(code, str):
        # 1.5 is not code 1
        return UNKNOWN_CONDITIONS
    return WEATHER_CONDITIONS.get(key, UNKNOWN_CONDITIONS)


# "lat,lng" with optional whitespace, e.g. "45.5, -122.6"
_PINPOINT_RE = re.compile(r"\s*(-?[0-9]+(?:\.[0-9]*)?)\s*,\s*(-?[0-9]+(?:\.[0-9]*)?)\s*")


def parse_pinpoint(pinpoint: Optional[str]) -> Optional[Tuple[float, float]]:
    """
    Parse a user-entered pinpoint into (latitude, longitude).

    Returns None for anything that is not a well-formed, in-range pair,
    including None and the empty string.
    """
    if not pinpoint or not isinstance(pinpoint, str):
        return None

    match = _PINPOINT_RE.fullmatch(pinpoint)
    if not match:
        return None

    lat = float(match.group(1))
    lon = float(match.group(2))
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
        return None
    return lat, lon


def resolve_coordinates(
    latitude: Optional[float],
    longitude: Optional[float],
    pinpoint: Optional[str] = None,
) -> Tuple[float, float]:
    """
    Pick the coordinates a weather lookup should use.

    Stored latitude/longitude win; the raw pinpoint is the fallback.
    Raises ValidationError when neither gives a usable pair.
    """
    if latitude is not None and longitude is not None:
        return float(latitude), float(longitude)

    coords = parse_pinpoint(pinpoint)
    if coords is None:
        raise ValidationError(
            "Cannot fetch weather: location must have coordinates. "
            "Add coordinates (lat,lng) for this spot."
        )
    return coords


@dataclass(frozen=True)
class WeatherReport:
    """
    Normalized weather for one outing.

    Temperatures are Fahrenheit, wind mph, precipitation inches,
    pressure hPa. wind_direction is in degrees.
    """
    source: str
    temperature: Optional[float]
    temperature_max: Optional[float]
    temperature_min: Optional[float]
    conditions: str
    humidity: Optional[float]
    wind_speed: float
    wind_direction: Optional[float]
    pressure: Optional[float]
    precipitation: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["temperature_unit"] = "fahrenheit"
        out["wind_direction"] = (
            f"{_format_number(self.wind_direction)}°" if self.wind_direction is not None else None
        )
        return out


def _format_number(value: float) -> str:
    # 270.0 -> "270", 22.5 -> "22.5"
    return str(int(value)) if float(value).is_integer() else str(value)


def _first(series: Dict[str, Any], key: str) -> Any:
    values = series.get(key) or []
    return values[0] if values else None


def _upstream_reason(r: httpx.Response) -> str:
    """Best diagnostic an upstream gives us: JSON reason/error/message, else raw text."""
    try:
        body = r.json()
    except ValueError:
        return r.text
    if isinstance(body, dict):
        for key in ("reason", "message", "error"):
            value = body.get(key)
            if value and not isinstance(value, bool):
                return str(value)
    return r.text


class WeatherProvider:
    """
    One upstream weather source.

    Subclasses implement fetch(); _get_json() handles the HTTP plumbing and
    turns every failure into an UpstreamError.
    """

    name = "provider"
    base = ""

    def __init__(self, timeout_s: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout_s = timeout_s
        # Tests pass an httpx.MockTransport here
        self.transport = transport

    async def fetch(self, day: date, lat: float, lon: float) -> WeatherReport:
        raise NotImplementedError

    async def _get_json(self, url: str, params: Dict[str, Any], what: str) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                r = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            message = str(exc) or exc.__class__.__name__
            logger.error("%s request failed: %s", what, message)
            raise UpstreamError(f"{what} failed: {message}")

        if r.status_code != 200:
            reason = _upstream_reason(r)
            logger.error("%s returned %s: %s", what, r.status_code, reason)
            raise UpstreamError(
                f"{what} failed ({r.status_code}): {reason}",
                details={"status_code": r.status_code},
            )

        try:
            body = r.json()
        except ValueError:
            raise UpstreamError(f"{what} returned a non-JSON body")
        if not isinstance(body, dict):
            logger.error("%s returned a %s instead of an object", what, type(body).__name__)
            raise UpstreamError(f"{what} returned an unexpected body")
        return body


class OpenMeteoArchiveProvider(WeatherProvider):
    """
    Open-Meteo historical archive; used for outings before today.

    Only daily aggregates exist for past days, so temperature is the mean of
    the day's max and min, and humidity / pressure are unknown.
    """

    name = "historical"
    base = "https://archive-api.open-meteo.com/v1/archive"

    async def fetch(self, day: date, lat: float, lon: float) -> WeatherReport:
        params = {
            "latitude": lat,
            "longitude": lon,
            "start_date": day.isoformat(),
            "end_date": day.isoformat(),
            "daily": "temperature_2m_max,temperature_2m_min,weathercode,precipitation_sum,windspeed_10m_max",
            "timezone": "auto",
            "temperature_unit": "fahrenheit",
            "windspeed_unit": "mph",
            "precipitation_unit": "inch",
        }
        data = await self._get_json(self.base, params, "Historical weather")

        daily = data.get("daily") or {}
        if not daily.get("time"):
            raise UpstreamError("No historical weather data available for this date")

        tmax = _first(daily, "temperature_2m_max")
        tmin = _first(daily, "temperature_2m_min")
        mean = (tmax + tmin) / 2 if tmax is not None and tmin is not None else None

        return WeatherReport(
            source=self.name,
            temperature=mean,
            temperature_max=tmax,
            temperature_min=tmin,
            conditions=describe_weather_code(_first(daily, "weathercode")),
            humidity=None,
            wind_speed=_first(daily, "windspeed_10m_max") or 0,
            wind_direction=None,
            pressure=None,
            precipitation=_first(daily, "precipitation_sum") or 0,
        )


class OpenMeteoForecastProvider(WeatherProvider):
    """Open-Meteo current conditions plus today's daily forecast."""

    name = "forecast"
    base = "https://api.open-meteo.com/v1/forecast"

    async def fetch(self, day: date, lat: float, lon: float) -> WeatherReport:
        params = {
            "latitude": lat,
            "longitude": lon,
            "current": "temperature_2m,weathercode,relative_humidity_2m,wind_speed_10m,"
                       "wind_direction_10m,surface_pressure",
            "daily": "temperature_2m_max,temperature_2m_min,precipitation_sum",
            "temperature_unit": "fahrenheit",
            "windspeed_unit": "mph",
            "precipitation_unit": "inch",
        }
        data = await self._get_json(self.base, params, "Forecast weather")

        current = data.get("current")
        if not current:
            raise UpstreamError("No current weather data returned")

        daily = data.get("daily") or {}
        has_daily = bool(daily.get("time"))

        return WeatherReport(
            source=self.name,
            temperature=current.get("temperature_2m"),
            temperature_max=_first(daily, "temperature_2m_max") if has_daily else None,
            temperature_min=_first(daily, "temperature_2m_min") if has_daily else None,
            conditions=describe_weather_code(current.get("weathercode")),
            humidity=current.get("relative_humidity_2m"),
            wind_speed=current.get("wind_speed_10m") or 0,
            wind_direction=current.get("wind_direction_10m"),
            pressure=current.get("surface_pressure"),
            precipitation=_first(daily, "precipitation_sum") if has_daily else None,
        )


class OpenWeatherProvider(WeatherProvider):
    """
    OpenWeatherMap current weather (/data/2.5/weather, units=imperial).

    Swapped in for the forecast branch when WEATHER_API_KEY is set.
    Conditions come back as OpenWeather's own labels ("Clouds", "Rain").
    """

    name = "openweather"
    base = "https://api.openweathermap.org/data/2.5/weather"

    def __init__(self, api_key: str, timeout_s: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(timeout_s=timeout_s, transport=transport)
        self.api_key = api_key

    async def fetch(self, day: date, lat: float, lon: float) -> WeatherReport:
        params = {"lat": lat, "lon": lon, "appid": self.api_key, "units": "imperial"}
        data = await self._get_json(self.base, params, "Current weather")

        main = data.get("main") or {}
        wind = data.get("wind") or {}
        rain = data.get("rain") or {}
        weather = (data.get("weather") or [{}])[0]

        precipitation = rain.get("1h")
        if precipitation is None:
            precipitation = rain.get("3h")

        return WeatherReport(
            source=self.name,
            temperature=main.get("temp"),
            temperature_max=main.get("temp_max"),
            temperature_min=main.get("temp_min"),
            conditions=weather.get("main") or UNKNOWN_CONDITIONS,
            humidity=main.get("humidity"),
            wind_speed=wind.get("speed") or 0,
            wind_direction=wind.get("deg"),
            pressure=main.get("pressure"),
            precipitation=precipitation,
        )


class WeatherService:
    """
    Chooses a provider by date and runs it.

    historical: used when the outing day is before today
    forecast:   used otherwise
    """

    def __init__(self, historical: WeatherProvider, forecast: WeatherProvider):
        self.historical = historical
        self.forecast = forecast

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "WeatherService":
        timeout_s = settings.http_timeout_s
        if settings.weather_api_key:
            forecast: WeatherProvider = OpenWeatherProvider(settings.weather_api_key, timeout_s, transport)
        else:
            forecast = OpenMeteoForecastProvider(timeout_s, transport)
        return cls(OpenMeteoArchiveProvider(timeout_s, transport), forecast)

    def select_provider(self, day: date, today: Optional[date] = None) -> WeatherProvider:
        today = today or date.today()
        if _as_day(day) < _as_day(today):
            return self.historical
        return self.forecast

    async def weather_for(
        self,
        day: date,
        latitude: float,
        longitude: float,
        today: Optional[date] = None,
    ) -> WeatherReport:
        day = _as_day(day)
        provider = self.select_provider(day, today)
        logger.info("Fetching %s weather for %s at %s,%s", provider.name, day.isoformat(), latitude, longitude)
        return await provider.fetch(day, latitude, longitude)


def _as_day(value: date) -> date:
    # datetime is a date subclass; compare calendar days only
    return value.date() if isinstance(value, datetime) else value
