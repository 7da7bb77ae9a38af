#!/usr/bin/env python3
"""
AgriIntel Service Health Check

Initializes the service layer from the environment (.env supported), runs a
health check against the livestock API and the weather API, fetches a sample
forecast and prints a summary. Results are saved as JSON under ``reports/``.
"""

import asyncio
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import structlog
from dotenv import load_dotenv

from agriintel.services import initialize_services
from agriintel.utils.logging_config import setup_logging

# Load environment variables
load_dotenv()

setup_logging(
    log_dir=os.getenv("LOG_DIR", "logs"),
    log_level=os.getenv("LOG_LEVEL", "INFO"),
)

logger = structlog.get_logger(__name__)

SAMPLE_LOCATION = "Johannesburg"


async def run_checks() -> Dict[str, Any]:
    """Run health and sample-request checks against both services."""
    factory = await initialize_services()
    try:
        health = await factory.get_health_status()

        api_service = factory.get_api_service()
        dashboard = await api_service.get_dashboard_data()

        weather_service = factory.get_weather_service()
        weather = await weather_service.get_weather_data(SAMPLE_LOCATION)

        impact = None
        if weather.success:
            assessment = weather_service.get_livestock_impact(weather.data)
            impact = {
                "risk": assessment.risk.value,
                "alerts": assessment.alerts,
                "recommendations": assessment.recommendations,
            }

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "health": health,
            "dashboard": {
                "success": dashboard.success,
                "error": dashboard.error,
            },
            "weather": {
                "success": weather.success,
                "error": weather.error,
                "message": weather.message,
                "is_fallback": weather.data.is_fallback if weather.success else None,
                "temperature": weather.data.current.temperature if weather.success else None,
                "condition": weather.data.current.condition if weather.success else None,
            },
            "livestock_impact": impact,
            "metrics": {
                "api": api_service.get_health_metrics(),
                "weather": weather_service.get_health_metrics(),
            },
        }
    finally:
        await factory.close()


async def main() -> int:
    """Main check function."""
    try:
        results = await run_checks()
    except Exception as e:
        logger.error("Service check failed", error=str(e))
        print(f"ERROR: Service check failed - {e}")
        return 1

    output_dir = Path("reports")
    output_dir.mkdir(exist_ok=True)
    output_file = output_dir / f"service_check_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    with open(output_file, "w") as f:
        json.dump(results, f, indent=2, default=str)

    print("\n" + "=" * 60)
    print("AGRIINTEL SERVICE CHECK")
    print("=" * 60)

    health = results["health"]
    print(f"Overall: {health['overall']}")
    print(f"Livestock API: {'up' if health['api'] else 'down'}")
    print(f"Weather API: {'up' if health['weather'] else 'down'}")

    weather = results["weather"]
    if weather["success"]:
        source = "fallback" if weather["is_fallback"] else "live"
        print(f"{SAMPLE_LOCATION}: {weather['temperature']}°C, {weather['condition']} ({source})")
    else:
        print(f"{SAMPLE_LOCATION}: unavailable - {weather['error']}")

    if results["livestock_impact"]:
        print(f"Livestock risk: {results['livestock_impact']['risk']}")

    print(f"\nDetailed results saved to: {output_file}")
    print("=" * 60)

    return 0 if health["overall"] != "unhealthy" else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
