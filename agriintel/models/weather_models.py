"""
Weather Models

Weather payloads as consumed by the dashboard, decoupled from the upstream
weatherapi.com response shape.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List


class AlertType(Enum):
    """Weather alert categories relevant to livestock."""
    RAIN = "rain"
    STORM = "storm"
    HEAT = "heat"
    COLD = "cold"
    WIND = "wind"


class RiskLevel(Enum):
    """Severity scale shared by alerts and livestock impact."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# weatherapi.com priority strings mapped to our severity scale
_PRIORITY_TO_SEVERITY = {
    "low": RiskLevel.LOW,
    "moderate": RiskLevel.MEDIUM,
    "high": RiskLevel.HIGH,
    "severe": RiskLevel.HIGH,
}


@dataclass
class WeatherLocation:
    """Resolved location of a weather report."""
    name: str
    country: str
    latitude: float
    longitude: float


@dataclass
class CurrentConditions:
    """Current weather conditions."""
    temperature: float
    humidity: float
    wind_speed: float
    wind_direction: float
    pressure: float
    visibility: float
    uv_index: float
    condition: str
    icon: str
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ForecastDay:
    """One day of forecast."""
    date: datetime
    max_temp: float
    min_temp: float
    condition: str
    icon: str
    precipitation: float
    humidity: float


@dataclass
class WeatherAlert:
    """Upstream weather alert mapped to livestock categories."""
    type: AlertType
    message: str
    severity: RiskLevel

    @staticmethod
    def map_alert_type(category: str) -> AlertType:
        try:
            return AlertType(category.lower())
        except ValueError:
            return AlertType.STORM

    @staticmethod
    def map_severity(priority: str) -> RiskLevel:
        return _PRIORITY_TO_SEVERITY.get(priority.lower(), RiskLevel.MEDIUM)


@dataclass
class WeatherData:
    """
    Weather report for a single location.

    Built either from a weatherapi.com forecast payload or from the static
    fallback used when the upstream is unavailable.
    """
    location: WeatherLocation
    current: CurrentConditions
    forecast: List[ForecastDay] = field(default_factory=list)
    alerts: List[WeatherAlert] = field(default_factory=list)
    is_fallback: bool = False

    @classmethod
    def from_weatherapi(cls, payload: Dict[str, Any]) -> "WeatherData":
        """
        Create weather data from a weatherapi.com ``forecast.json`` payload.

        Args:
            payload: Parsed upstream JSON

        Returns:
            WeatherData instance

        Raises:
            KeyError: If a required upstream field is missing
        """
        location = payload["location"]
        current = payload["current"]

        forecast = []
        for day in payload.get("forecast", {}).get("forecastday", []):
            details = day["day"]
            forecast.append(ForecastDay(
                date=datetime.fromisoformat(day["date"]),
                max_temp=details["maxtemp_c"],
                min_temp=details["mintemp_c"],
                condition=details["condition"]["text"],
                icon=details["condition"]["icon"],
                precipitation=details.get("totalprecip_mm", 0.0),
                humidity=details.get("avghumidity", 0.0),
            ))

        alerts = [
            WeatherAlert(
                type=WeatherAlert.map_alert_type(alert.get("category", "")),
                message=alert.get("desc", ""),
                severity=WeatherAlert.map_severity(alert.get("priority", "")),
            )
            for alert in (payload.get("alerts") or {}).get("alert") or []
        ]

        return cls(
            location=WeatherLocation(
                name=location["name"],
                country=location["country"],
                latitude=location["lat"],
                longitude=location["lon"],
            ),
            current=CurrentConditions(
                temperature=current["temp_c"],
                humidity=current["humidity"],
                wind_speed=current["wind_kph"],
                wind_direction=current["wind_degree"],
                pressure=current["pressure_mb"],
                visibility=current["vis_km"],
                uv_index=current["uv"],
                condition=current["condition"]["text"],
                icon=current["condition"]["icon"],
            ),
            forecast=forecast,
            alerts=alerts,
        )

    @classmethod
    def fallback(cls, location: str) -> "WeatherData":
        """Static report served when the upstream cannot be reached."""
        return cls(
            location=WeatherLocation(
                name=location,
                country="South Africa",
                latitude=-26.2041,
                longitude=28.0473,
            ),
            current=CurrentConditions(
                temperature=22,
                humidity=65,
                wind_speed=15,
                wind_direction=180,
                pressure=1013,
                visibility=10,
                uv_index=6,
                condition="Partly cloudy",
                icon="//cdn.weatherapi.com/weather/64x64/day/116.png",
            ),
            is_fallback=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (enums rendered as values)."""
        data = asdict(self)
        data["alerts"] = [
            {**alert, "type": alert["type"].value, "severity": alert["severity"].value}
            for alert in data["alerts"]
        ]
        return data


@dataclass
class LivestockImpact:
    """Assessment of how current weather affects livestock."""
    risk: RiskLevel = RiskLevel.LOW
    recommendations: List[str] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)

    def raise_to(self, level: RiskLevel) -> None:
        """Raise the risk level, never lowering it."""
        order = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]
        if order.index(level) > order.index(self.risk):
            self.risk = level
