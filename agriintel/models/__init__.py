"""
Models Module

Configuration, envelope and payload models shared by the service layer.
"""

from .service_models import (
    CacheConfig,
    RateLimitConfig,
    ServiceConfig,
    ResponseMetadata,
    ServiceResponse,
    CacheEntry,
    RateLimitEntry,
    PendingRequest,
    ServiceHealth,
)
from .weather_models import (
    AlertType,
    RiskLevel,
    WeatherLocation,
    CurrentConditions,
    ForecastDay,
    WeatherAlert,
    WeatherData,
    LivestockImpact,
)

__all__ = [
    # Service configuration and envelope
    "CacheConfig",
    "RateLimitConfig",
    "ServiceConfig",
    "ResponseMetadata",
    "ServiceResponse",

    # Per-instance state records
    "CacheEntry",
    "RateLimitEntry",
    "PendingRequest",
    "ServiceHealth",

    # Weather payloads
    "AlertType",
    "RiskLevel",
    "WeatherLocation",
    "CurrentConditions",
    "ForecastDay",
    "WeatherAlert",
    "WeatherData",
    "LivestockImpact",
]
