"""
Weather Service

Forecasts from weatherapi.com through the BaseService pipeline, with a static
fallback so the dashboard always has something to show, and a livestock
impact assessment derived from the conditions.
"""

import os
from typing import Any, Dict, Optional, Sequence, Union

from ..api.base_service import BaseService
from ..models.service_models import ServiceConfig, ServiceResponse
from ..models.weather_models import LivestockImpact, RiskLevel, WeatherData

WEATHER_API_URL = "https://api.weatherapi.com/v1"


class WeatherService(BaseService):
    """
    weatherapi.com client.

    With fallback enabled, a missing API key or any upstream failure yields
    the static fallback report as a successful response.
    """

    DEFAULT_CONFIG = {
        "base_url": WEATHER_API_URL,
        "timeout": 15.0,
        "retries": 2,
        "retry_delay": 2.0,
        "cache": {"enabled": True, "ttl": 1800.0, "max_size": 50},
    }

    FORECAST_DAYS = 7

    def __init__(
        self,
        config: Union[ServiceConfig, Dict[str, Any], None] = None,
        api_key: Optional[str] = None,
        enable_fallback: bool = True,
        **kwargs
    ):
        """
        Initialize weather service.

        Args:
            config: ServiceConfig or partial overrides
            api_key: weatherapi.com key (defaults to WEATHER_API_KEY env var)
            enable_fallback: Serve static data when the upstream is unavailable
            **kwargs: Passed through to BaseService (clock, sleep)
        """
        super().__init__(config=config, service_name="WeatherAPI", **kwargs)
        self.api_key = api_key or os.getenv("WEATHER_API_KEY")
        self.enable_fallback = enable_fallback

        if not self.api_key:
            self.logger.warning("Weather API key not configured", fallback_enabled=enable_fallback)

    def get_auth_headers(self) -> Dict[str, str]:
        return {}

    def get_auth_params(self) -> Dict[str, Any]:
        # weatherapi.com authenticates with the ``key`` query parameter
        return {"key": self.api_key} if self.api_key else {}

    async def get_weather_data(self, location: str) -> ServiceResponse:
        """
        Get current conditions, a 7-day forecast and alerts for a location.

        Args:
            location: City name, postcode or ``lat,lon``

        Returns:
            Envelope carrying WeatherData
        """
        if not self.api_key:
            return self._fallback_or_fail(location, "Weather API key not configured")

        response = await self.request(
            "/forecast.json",
            params={
                "q": location,
                "days": self.FORECAST_DAYS,
                "aqi": "no",
                "alerts": "yes",
            },
            cache_ttl=self.config.cache.ttl
        )

        if not response.success:
            return self._fallback_or_fail(location, response.error, response)

        try:
            weather = WeatherData.from_weatherapi(response.data)
        except (KeyError, TypeError, ValueError) as e:
            self.logger.error("Unexpected weather payload", location=location, error=str(e))
            return self._fallback_or_fail(location, f"Invalid weather payload: {e}")

        return response.model_copy(update={"data": weather})

    async def get_weather_by_coordinates(self, latitude: float, longitude: float) -> ServiceResponse:
        return await self.get_weather_data(f"{latitude},{longitude}")

    async def get_multiple_weather_data(self, locations: Sequence[str]) -> ServiceResponse:
        """
        Get weather for several locations concurrently.

        Returns:
            Envelope whose data is a list of WeatherData in location order
        """
        return await self.gather_batch(list(locations), self.get_weather_data, item_name="weather for")

    def _fallback_or_fail(
        self,
        location: str,
        error: Optional[str],
        response: Optional[ServiceResponse] = None
    ) -> ServiceResponse:
        request_id = response.metadata.request_id if response else self.generate_request_id()

        if not self.enable_fallback:
            if response is not None:
                return response
            return ServiceResponse.fail(error or "Weather data unavailable", request_id)

        self.logger.warning("Using fallback weather data", location=location, reason=error)
        return ServiceResponse.ok(
            WeatherData.fallback(location),
            request_id,
            message=f"Using fallback weather data: {error}"
        )

    def get_livestock_impact(self, weather: WeatherData) -> LivestockImpact:
        """
        Assess livestock risk from current conditions and active alerts.

        Args:
            weather: Weather report to assess

        Returns:
            Risk level with recommendations and alert messages
        """
        impact = LivestockImpact()
        current = weather.current
        temp = current.temperature

        if temp > 35:
            impact.alerts.append("High temperature stress risk")
            impact.recommendations.append("Provide shade and increase water supply")
            impact.raise_to(RiskLevel.HIGH)
        elif temp < 5:
            impact.alerts.append("Cold stress risk")
            impact.recommendations.append("Provide shelter and increase feed")
            impact.raise_to(RiskLevel.HIGH)
        elif temp > 28:
            impact.recommendations.append("Monitor for heat stress")
            impact.raise_to(RiskLevel.MEDIUM)

        if current.humidity > 80 and temp > 25:
            impact.alerts.append("High humidity with heat increases disease risk")
            impact.recommendations.append("Improve ventilation and monitor for respiratory issues")
            impact.raise_to(RiskLevel.HIGH)

        if current.wind_speed > 50:
            impact.alerts.append("Strong winds may cause stress")
            impact.recommendations.append("Provide windbreaks and secure loose objects")
            impact.raise_to(RiskLevel.MEDIUM)

        if current.uv_index > 8:
            impact.recommendations.append("Provide UV protection for light-skinned animals")

        for alert in weather.alerts:
            impact.alerts.append(f"{alert.type.value.upper()}: {alert.message}")
            impact.raise_to(alert.severity)

        return impact
