"""
Service Factory

Creates, memoizes and reconfigures the AgriIntel services, and provides a
small dependency-injection container for callers that prefer explicit
wiring over module-level access.
"""

import asyncio
from typing import Any, Dict, Optional

import structlog
from dotenv import load_dotenv

from ..api.base_service import BaseService
from .livestock_service import LivestockApiService
from .weather_service import WeatherService

logger = structlog.get_logger(__name__)

# Sections: "global" applies to every service, "api" and "weather" to one each
FactoryConfig = Dict[str, Dict[str, Any]]

_SECTIONS = ("global", "api", "weather")


def _normalize_config(config: Optional[FactoryConfig]) -> FactoryConfig:
    config = dict(config or {})
    unknown = set(config) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown service config sections: {sorted(unknown)}")
    return {section: dict(config.get(section) or {}) for section in _SECTIONS}


def _merge_section(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    # nested dicts (cache, rate_limit) merge one level deep
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


class ServiceFactory:
    """
    Factory for the livestock API and weather services.

    Each service is built on first use from the ``global`` section merged
    with its own section, then reused until the factory is reset or
    reconfigured.
    """

    def __init__(
        self,
        config: Optional[FactoryConfig] = None,
        tenant_id: Optional[str] = None,
        weather_api_key: Optional[str] = None,
        **service_kwargs
    ):
        """
        Initialize service factory.

        Args:
            config: Partial config per section (global, api, weather)
            tenant_id: Tenant for the livestock API
            weather_api_key: weatherapi.com key (defaults to env var)
            **service_kwargs: Passed to every service (clock, sleep)
        """
        self.config = _normalize_config(config)
        self.tenant_id = tenant_id
        self.weather_api_key = weather_api_key
        self._service_kwargs = service_kwargs

        self._api_service: Optional[LivestockApiService] = None
        self._weather_service: Optional[WeatherService] = None

        self.logger = logger.bind(service="ServiceFactory")
        self.logger.info("Service factory initialized", sections=[s for s in _SECTIONS if self.config[s]])

    def _service_config(self, section: str) -> Dict[str, Any]:
        return _merge_section(self.config["global"], self.config[section])

    def get_api_service(self) -> LivestockApiService:
        """Get the livestock API service, creating it on first use."""
        if self._api_service is None:
            self._api_service = LivestockApiService(
                config=self._service_config("api"),
                tenant_id=self.tenant_id,
                **self._service_kwargs
            )
            self.logger.info("Livestock API service created")
        return self._api_service

    def get_weather_service(self) -> WeatherService:
        """Get the weather service, creating it on first use."""
        if self._weather_service is None:
            self._weather_service = WeatherService(
                config=self._service_config("weather"),
                api_key=self.weather_api_key,
                **self._service_kwargs
            )
            self.logger.info("Weather service created")
        return self._weather_service

    def merge_config(self, new_config: FactoryConfig) -> None:
        """
        Merge the given config sections without touching live services.

        Services created from now on use the new settings; call
        ``update_config`` to rebuild the ones already created.
        """
        normalized = _normalize_config(new_config)
        for section in _SECTIONS:
            if section in new_config:
                self.config[section] = _merge_section(self.config[section], normalized[section])

    async def update_config(self, new_config: FactoryConfig) -> None:
        """
        Apply new config sections and rebuild any services already created.

        Old instances have their HTTP sessions closed. Cache, rate-limit and
        health state start fresh.
        """
        self.merge_config(new_config)

        had_api = self._api_service is not None
        had_weather = self._weather_service is not None
        await self.close()

        if had_api:
            self.get_api_service()
        if had_weather:
            self.get_weather_service()

        self.logger.info("Service configuration updated", rebuilt_api=had_api, rebuilt_weather=had_weather)

    def reset(self) -> None:
        """
        Drop all service instances (useful for testing).

        Sessions are not closed here; await ``close()`` first when the
        services may have opened one.
        """
        self._api_service = None
        self._weather_service = None
        self.logger.info("Service instances reset")

    async def close(self) -> None:
        """Close HTTP sessions of all created services and drop them."""
        for service in (self._api_service, self._weather_service):
            if service is not None:
                await service.close()
        self.reset()

    async def get_health_status(self) -> Dict[str, Any]:
        """
        Check both services concurrently.

        Returns:
            Per-service booleans and an overall status: healthy (both up),
            degraded (one up) or unhealthy (none up)
        """
        results = await asyncio.gather(
            self.get_api_service().health_check(),
            self.get_weather_service().health_check(),
            return_exceptions=True
        )

        api_up, weather_up = (
            not isinstance(result, BaseException) and result.success
            for result in results
        )

        if api_up and weather_up:
            overall = "healthy"
        elif api_up or weather_up:
            overall = "degraded"
        else:
            overall = "unhealthy"

        return {"api": api_up, "weather": weather_up, "overall": overall}

    def clear_all_caches(self) -> None:
        for service in (self._api_service, self._weather_service):
            if service is not None:
                service.clear_cache()

    def get_cache_stats(self) -> Dict[str, Optional[Dict[str, Any]]]:
        """Cache statistics per created service (None if not created yet)."""
        return {
            "api": self._api_service.get_cache_stats() if self._api_service else None,
            "weather": self._weather_service.get_cache_stats() if self._weather_service else None,
        }


class ServiceContainer:
    """
    Registry of named services for dependency injection.

    Registered services are addressed by name; the factory-backed accessors
    always return the factory's current instances.
    """

    def __init__(self, factory: ServiceFactory):
        self.factory = factory
        self._services: Dict[str, BaseService] = {}

    def register(self, name: str, service: BaseService) -> None:
        self._services[name] = service

    def get(self, name: str) -> Optional[BaseService]:
        return self._services.get(name)

    def get_api_service(self) -> LivestockApiService:
        return self.factory.get_api_service()

    def get_weather_service(self) -> WeatherService:
        return self.factory.get_weather_service()

    def clear_all_caches(self) -> None:
        for service in self._services.values():
            service.clear_cache()

    async def get_health_status(self) -> Dict[str, bool]:
        """Health of every registered service, by name."""
        names = list(self._services)
        results = await asyncio.gather(
            *(self._services[name].health_check() for name in names),
            return_exceptions=True
        )
        return {
            name: not isinstance(result, BaseException) and result.success
            for name, result in zip(names, results)
        }


# Global factory instance for convenience
_global_factory: Optional[ServiceFactory] = None


def get_service_factory(config: Optional[FactoryConfig] = None, **kwargs) -> ServiceFactory:
    """
    Get the global service factory, creating it on first call.

    Args:
        config: Config sections; on an existing factory they are merged in and
            apply to services created afterwards
        **kwargs: ServiceFactory arguments, used only on creation

    Returns:
        Global ServiceFactory instance
    """
    global _global_factory

    if _global_factory is None:
        _global_factory = ServiceFactory(config, **kwargs)
    elif config:
        _global_factory.merge_config(config)

    return _global_factory


def reset_service_factory() -> None:
    """Reset global service factory (useful for testing)."""
    global _global_factory
    _global_factory = None


def get_api_service() -> LivestockApiService:
    """Get the livestock API service from the global factory."""
    return get_service_factory().get_api_service()


def get_weather_service() -> WeatherService:
    """Get the weather service from the global factory."""
    return get_service_factory().get_weather_service()


async def initialize_services(
    config: Optional[FactoryConfig] = None,
    env_file: Optional[str] = None,
    **kwargs
) -> ServiceFactory:
    """
    Initialize services at application startup.

    Loads environment variables from ``env_file`` (or a discovered ``.env``),
    creates the global factory and warms both services up with health checks.
    Health check failures are logged, never raised.

    Returns:
        Global ServiceFactory instance
    """
    load_dotenv(env_file)

    factory = get_service_factory(config, **kwargs)

    services = {"api": factory.get_api_service(), "weather": factory.get_weather_service()}
    results = await asyncio.gather(
        *(service.health_check() for service in services.values()),
        return_exceptions=True
    )

    for name, result in zip(services, results):
        if isinstance(result, BaseException):
            logger.warning("Health check failed during initialization", service=name, error=str(result))
        elif not result.success:
            logger.warning("Health check failed during initialization", service=name, error=result.error)

    logger.info("Services initialized")
    return factory


def create_service_container(factory: Optional[ServiceFactory] = None) -> ServiceContainer:
    """Create a service container with the default services registered."""
    factory = factory or get_service_factory()
    container = ServiceContainer(factory)

    container.register("api", factory.get_api_service())
    container.register("weather", factory.get_weather_service())

    return container
