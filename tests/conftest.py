"""
Shared fixtures.

- every test gets a fresh in-memory SQLite database
- the weather upstreams are replaced by httpx.MockTransport handlers,
  so nothing here touches the network
"""

import os

# Must be set before fishlog.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["WEATHER_API_KEY"] = ""

from datetime import date, timedelta
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fishlog.db import Base, get_db
from fishlog.main import app, get_weather_service
from fishlog.weather_clients import WeatherService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def archive_payload(tmax=60.0, tmin=40.0, code=3, precip=0.12, wind=8.5, day="2024-05-01"):
    return {
        "daily": {
            "time": [day],
            "temperature_2m_max": [tmax],
            "temperature_2m_min": [tmin],
            "weathercode": [code],
            "precipitation_sum": [precip],
            "windspeed_10m_max": [wind],
        }
    }


def forecast_payload(temp=55.4, code=61, humidity=81, wind=5.2, deg=270, pressure=1012.3):
    return {
        "current": {
            "temperature_2m": temp,
            "weathercode": code,
            "relative_humidity_2m": humidity,
            "wind_speed_10m": wind,
            "wind_direction_10m": deg,
            "surface_pressure": pressure,
        },
        "daily": {
            "time": [date.today().isoformat()],
            "temperature_2m_max": [62.0],
            "temperature_2m_min": [48.0],
            "precipitation_sum": [0.3],
        },
    }


class FakeUpstream:
    """
    Records every outbound request and answers from canned payloads
    keyed by host.
    """

    def __init__(self):
        self.requests = []
        self.responses = {
            "archive-api.open-meteo.com": httpx.Response(200, json=archive_payload()),
            "api.open-meteo.com": httpx.Response(200, json=forecast_payload()),
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses[request.url.host]

    @property
    def hosts(self):
        return [r.url.host for r in self.requests]

    def service(self, api_key=None) -> WeatherService:
        config = SimpleNamespace(weather_api_key=api_key, http_timeout_s=5.0)
        return WeatherService.from_settings(config, transport=httpx.MockTransport(self))


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def weather_client(client, upstream):
    """API client whose weather lookups hit the FakeUpstream."""
    app.dependency_overrides[get_weather_service] = lambda: upstream.service()
    return client


@pytest.fixture
def yesterday():
    return date.today() - timedelta(days=1)


@pytest.fixture
def user_id(client):
    r = client.post("/users", json={"username": "angler", "email": "angler@example.com"})
    assert r.status_code == 201
    return r.json()["user_id"]


@pytest.fixture
def location_id(client):
    r = client.post("/location", json={"location_name": "Bunch Bar", "region": "Columbia", "pinpoint": "45.5,-122.6"})
    assert r.status_code == 201
    return r.json()["location_id"]
