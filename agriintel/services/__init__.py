"""
Services Module

Domain services built on the BaseService pipeline and the factory that
wires them.
"""

from .livestock_service import LivestockApiService
from .weather_service import WeatherService
from .service_factory import (
    ServiceFactory,
    ServiceContainer,
    get_service_factory,
    reset_service_factory,
    get_api_service,
    get_weather_service,
    initialize_services,
    create_service_container,
)

__all__ = [
    "LivestockApiService",
    "WeatherService",
    "ServiceFactory",
    "ServiceContainer",
    "get_service_factory",
    "reset_service_factory",
    "get_api_service",
    "get_weather_service",
    "initialize_services",
    "create_service_container",
]
