"""
Tests for WeatherService.

Covers the weatherapi.com request shape, payload transform, fallback
behaviour and the livestock impact assessment.
"""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from agriintel.api.base_service import HttpResult
from agriintel.models.weather_models import (
    AlertType,
    CurrentConditions,
    RiskLevel,
    WeatherAlert,
    WeatherData,
    WeatherLocation,
)
from agriintel.services.weather_service import WeatherService


def json_result(body, status=200):
    """Build an HttpResult carrying a JSON body."""
    return HttpResult(status=status, body=body, text=json.dumps(body))


def forecast_payload(name="Pretoria", temp_c=18.5, alerts=None):
    """Build a minimal weatherapi.com forecast payload."""
    return {
        "location": {"name": name, "country": "South Africa", "lat": -25.75, "lon": 28.19},
        "current": {
            "temp_c": temp_c,
            "humidity": 40,
            "wind_kph": 12.2,
            "wind_degree": 90,
            "pressure_mb": 1020.0,
            "vis_km": 10.0,
            "uv": 5.0,
            "condition": {"text": "Sunny", "icon": "//cdn.weatherapi.com/weather/64x64/day/113.png"},
        },
        "forecast": {
            "forecastday": [
                {
                    "date": "2024-06-01",
                    "day": {
                        "maxtemp_c": 21.0,
                        "mintemp_c": 6.0,
                        "condition": {"text": "Sunny", "icon": "//cdn/113.png"},
                        "totalprecip_mm": 0.0,
                        "avghumidity": 35,
                    },
                }
            ]
        },
        "alerts": {"alert": alerts or []},
    }


def conditions(**overrides):
    """Build current conditions for impact tests."""
    values = dict(
        temperature=20, humidity=50, wind_speed=10, wind_direction=0,
        pressure=1013, visibility=10, uv_index=3, condition="Clear", icon="",
    )
    values.update(overrides)
    return CurrentConditions(**values)


def weather_with(alerts=None, **current):
    """Build a weather report with the given current conditions."""
    return WeatherData(
        location=WeatherLocation(name="Farm", country="South Africa", latitude=0.0, longitude=0.0),
        current=conditions(**current),
        alerts=alerts or [],
    )


@pytest.fixture
def service(fake_clock, recording_sleep):
    """Create a WeatherService with a key and a mocked network boundary."""
    service = WeatherService(api_key="test-key", clock=fake_clock, sleep=recording_sleep)
    service._send = AsyncMock(return_value=json_result(forecast_payload()))
    return service


class TestConfiguration:
    """Test weather service defaults."""

    def test_defaults(self, service):
        config = service.get_config()

        assert config.base_url == "https://api.weatherapi.com/v1"
        assert config.timeout == 15.0
        assert config.retries == 2
        assert config.retry_delay == 2.0
        assert config.cache.ttl == 1800.0
        assert config.cache.max_size == 50

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("WEATHER_API_KEY", "env-key")

        assert WeatherService().api_key == "env-key"


class TestGetWeatherData:
    """Test live forecast retrieval."""

    @pytest.mark.asyncio
    async def test_request_shape_and_transform(self, service):
        response = await service.get_weather_data("Pretoria")

        call = service._send.await_args
        assert call.args == ("GET", "https://api.weatherapi.com/v1/forecast.json")
        assert call.kwargs["params"] == {
            "key": "test-key", "q": "Pretoria", "days": 7, "aqi": "no", "alerts": "yes",
        }

        assert response.success
        weather = response.data
        assert isinstance(weather, WeatherData)
        assert weather.is_fallback is False
        assert weather.location.name == "Pretoria"
        assert weather.current.temperature == 18.5
        assert weather.current.condition == "Sunny"
        assert len(weather.forecast) == 1
        assert weather.forecast[0].max_temp == 21.0

    @pytest.mark.asyncio
    async def test_api_key_kept_out_of_cache_and_logs(self, service):
        loggers = [service, service.cache, service.rate_limiter, service.deduplicator, service.retry_executor]
        for component in loggers:
            component.logger = Mock()

        await service.get_weather_data("Pretoria")
        await service.get_weather_data("Pretoria")

        assert service._send.await_count == 1
        assert service._send.await_args.kwargs["params"]["key"] == "test-key"
        assert all("test-key" not in key for key in service.cache._entries)
        for component in loggers:
            assert "test-key" not in str(component.logger.mock_calls)

    @pytest.mark.asyncio
    async def test_alerts_mapped(self, service):
        service._send.return_value = json_result(forecast_payload(alerts=[
            {"category": "Heat", "desc": "Heatwave expected", "priority": "Severe"},
            {"category": "Flood", "desc": "Flash floods", "priority": "Moderate"},
        ]))

        weather = (await service.get_weather_data("Pretoria")).data

        assert [(a.type, a.severity) for a in weather.alerts] == [
            (AlertType.HEAT, RiskLevel.HIGH),
            (AlertType.STORM, RiskLevel.MEDIUM),
        ]

    @pytest.mark.asyncio
    async def test_forecast_cached(self, service):
        await service.get_weather_data("Pretoria")
        response = await service.get_weather_data("Pretoria")

        assert service._send.await_count == 1
        assert response.metadata.cached is True
        assert response.data.location.name == "Pretoria"

    @pytest.mark.asyncio
    async def test_coordinates(self, service):
        await service.get_weather_by_coordinates(-26.2, 28.05)

        assert service._send.await_args.kwargs["params"]["q"] == "-26.2,28.05"


class TestFallback:
    """Test the static fallback report."""

    @pytest.mark.asyncio
    async def test_unauthorized_upstream_uses_fallback(self, service):
        service._send.return_value = json_result({"error": {"code": 2008}}, status=401)

        response = await service.get_weather_data("Johannesburg")

        assert response.success
        assert response.error is None
        assert response.data.is_fallback is True
        assert response.data.location.name == "Johannesburg"
        assert response.data.location.country == "South Africa"
        assert response.data.current.temperature == 22
        assert response.data.current.condition == "Partly cloudy"
        assert "Authentication required" in response.message
        assert service._send.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_key_uses_fallback_without_network(self, fake_clock):
        service = WeatherService(clock=fake_clock)
        service._send = AsyncMock()

        response = await service.get_weather_data("Durban")

        assert response.success
        assert response.data.is_fallback is True
        service._send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_errors_retried_before_fallback(self, service, recording_sleep):
        service._send.return_value = json_result({}, status=503)

        response = await service.get_weather_data("Pretoria")

        assert service._send.await_count == 3
        assert recording_sleep.delays == [2.0, 4.0]
        assert response.success
        assert response.data.is_fallback is True

    @pytest.mark.asyncio
    async def test_malformed_payload_uses_fallback(self, service):
        service._send.return_value = json_result({"location": {}})

        response = await service.get_weather_data("Pretoria")

        assert response.success
        assert response.data.is_fallback is True

    @pytest.mark.asyncio
    async def test_fallback_disabled_returns_failure(self, fake_clock, recording_sleep):
        service = WeatherService(api_key="bad", enable_fallback=False, clock=fake_clock, sleep=recording_sleep)
        service._send = AsyncMock(return_value=json_result({}, status=401))

        response = await service.get_weather_data("Johannesburg")

        assert response.success is False
        assert response.data is None
        assert response.error == "Authentication required"

    @pytest.mark.asyncio
    async def test_fallback_disabled_without_key(self):
        service = WeatherService(enable_fallback=False)

        response = await service.get_weather_data("Durban")

        assert response.success is False
        assert response.error == "Weather API key not configured"


class TestMultipleLocations:
    """Test concurrent lookups."""

    @pytest.mark.asyncio
    async def test_results_in_location_order(self, service):
        async def fake_send(method, url, params=None, **kwargs):
            return json_result(forecast_payload(name=params["q"]))

        service._send.side_effect = fake_send

        response = await service.get_multiple_weather_data(["Pretoria", "Polokwane"])

        assert response.success
        assert [w.location.name for w in response.data] == ["Pretoria", "Polokwane"]


class TestLivestockImpact:
    """Test the livestock impact assessment rules."""

    def test_mild_weather_low_risk(self, service):
        impact = service.get_livestock_impact(weather_with())

        assert impact.risk == RiskLevel.LOW
        assert impact.recommendations == []
        assert impact.alerts == []

    def test_heat_stress(self, service):
        impact = service.get_livestock_impact(weather_with(temperature=36))

        assert impact.risk == RiskLevel.HIGH
        assert "High temperature stress risk" in impact.alerts

    def test_cold_stress(self, service):
        impact = service.get_livestock_impact(weather_with(temperature=2))

        assert impact.risk == RiskLevel.HIGH
        assert "Cold stress risk" in impact.alerts

    def test_warm_weather_medium(self, service):
        impact = service.get_livestock_impact(weather_with(temperature=30))

        assert impact.risk == RiskLevel.MEDIUM
        assert impact.recommendations == ["Monitor for heat stress"]

    def test_humid_heat_high(self, service):
        impact = service.get_livestock_impact(weather_with(temperature=27, humidity=85))

        assert impact.risk == RiskLevel.HIGH
        assert "High humidity with heat increases disease risk" in impact.alerts

    def test_strong_wind_medium(self, service):
        impact = service.get_livestock_impact(weather_with(wind_speed=60))

        assert impact.risk == RiskLevel.MEDIUM

    def test_high_uv_recommendation_only(self, service):
        impact = service.get_livestock_impact(weather_with(uv_index=9))

        assert impact.risk == RiskLevel.LOW
        assert impact.recommendations == ["Provide UV protection for light-skinned animals"]

    def test_upstream_alerts_raise_risk(self, service):
        alerts = [WeatherAlert(type=AlertType.STORM, message="Hail likely", severity=RiskLevel.HIGH)]

        impact = service.get_livestock_impact(weather_with(alerts=alerts))

        assert impact.risk == RiskLevel.HIGH
        assert impact.alerts == ["STORM: Hail likely"]

    def test_fallback_weather_assessed(self, service):
        impact = service.get_livestock_impact(WeatherData.fallback("Johannesburg"))

        assert impact.risk == RiskLevel.LOW
