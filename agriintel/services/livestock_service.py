"""
Livestock API Service

Typed access to the AgriIntel livestock management API: animals, health,
financial, feeding, breeding, RFID and task records, plus search and
dashboard aggregation. Every call goes through the BaseService pipeline.
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from ..api.base_service import BaseService
from ..models.service_models import ServiceConfig, ServiceResponse

Params = Optional[Dict[str, Any]]
Record = Dict[str, Any]


class LivestockApiService(BaseService):
    """
    Client for the livestock management API.

    List reads are cached per endpoint for as long as that data tends to stay
    fresh. Successful writes drop the cached reads of the collection they
    touch.
    """

    DEFAULT_CONFIG = {
        "timeout": 15.0,
        "retries": 3,
        "retry_delay": 1.0,
        "cache": {"enabled": True, "ttl": 300.0, "max_size": 200},
    }

    # Cache TTLs in seconds
    ANIMALS_TTL = 120.0
    ANIMAL_TTL = 300.0
    HEALTH_TTL = 60.0
    FINANCIAL_TTL = 600.0
    FEEDING_TTL = 300.0
    BREEDING_TTL = 900.0
    RFID_TTL = 120.0
    TASKS_TTL = 30.0
    SEARCH_TTL = 120.0
    DASHBOARD_TTL = 300.0

    def __init__(
        self,
        config: Union[ServiceConfig, Dict[str, Any], None] = None,
        tenant_id: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize livestock API service.

        Args:
            config: ServiceConfig or partial overrides
            tenant_id: Tenant sent as ``X-Tenant-ID`` for multi-tenant deployments
            **kwargs: Passed through to BaseService (clock, sleep)
        """
        super().__init__(config=config, service_name="LivestockAPI", **kwargs)
        self.tenant_id = tenant_id

        self.logger.info("Livestock API service initialized", has_tenant=bool(tenant_id))

    def get_auth_headers(self) -> Dict[str, str]:
        headers = {}
        if self.tenant_id:
            headers["X-Tenant-ID"] = self.tenant_id
        return headers

    async def _create(self, collection: str, data: Record) -> ServiceResponse:
        response = await self.request(collection, method="POST", body=data)
        if response.success:
            self.invalidate(collection)
        return response

    # Animals

    async def get_animals(self, params: Params = None) -> ServiceResponse:
        """
        List animals.

        Args:
            params: page, limit, species, status, search
        """
        return await self.request("/animals", params=params, cache_ttl=self.ANIMALS_TTL)

    async def get_animal(self, animal_id: str) -> ServiceResponse:
        return await self.request(f"/animals/{animal_id}", cache_ttl=self.ANIMAL_TTL)

    async def create_animal(self, animal: Record) -> ServiceResponse:
        return await self._create("/animals", animal)

    async def update_animal(self, animal_id: str, changes: Record) -> ServiceResponse:
        response = await self.request(f"/animals/{animal_id}", method="PUT", body=changes)
        if response.success:
            self.invalidate("/animals")
        return response

    async def delete_animal(self, animal_id: str) -> ServiceResponse:
        response = await self.request(f"/animals/{animal_id}", method="DELETE")
        if response.success:
            self.invalidate("/animals")
        return response

    async def batch_get_animals(self, animal_ids: Sequence[str]) -> ServiceResponse:
        """
        Fetch several animals concurrently.

        Args:
            animal_ids: Animal identifiers

        Returns:
            Envelope with the animals that loaded; failures for individual
            animals are listed in ``message``
        """
        return await self.gather_batch(list(animal_ids), self.get_animal, item_name="animal")

    # Health

    async def get_health_records(self, params: Params = None) -> ServiceResponse:
        """
        List health records.

        Args:
            params: page, limit, animalId, severity, status
        """
        return await self.request("/health", params=params, cache_ttl=self.HEALTH_TTL)

    async def create_health_record(self, record: Record) -> ServiceResponse:
        return await self._create("/health", record)

    # Financial

    async def get_financial_records(self, params: Params = None) -> ServiceResponse:
        """
        List financial records.

        Args:
            params: page, limit, type, category, startDate, endDate
        """
        return await self.request("/financial", params=params, cache_ttl=self.FINANCIAL_TTL)

    async def create_financial_record(self, record: Record) -> ServiceResponse:
        return await self._create("/financial", record)

    # Feeding

    async def get_feed_records(self, params: Params = None) -> ServiceResponse:
        """
        List feed inventory records.

        Args:
            params: page, limit, type, lowStock
        """
        return await self.request("/feeding", params=params, cache_ttl=self.FEEDING_TTL)

    async def create_feed_record(self, record: Record) -> ServiceResponse:
        return await self._create("/feeding", record)

    # Breeding

    async def get_breeding_records(self, params: Params = None) -> ServiceResponse:
        return await self.request("/breeding", params=params, cache_ttl=self.BREEDING_TTL)

    async def create_breeding_record(self, record: Record) -> ServiceResponse:
        return await self._create("/breeding", record)

    # RFID

    async def get_rfid_records(self, params: Params = None) -> ServiceResponse:
        return await self.request("/rfid", params=params, cache_ttl=self.RFID_TTL)

    async def create_rfid_record(self, record: Record) -> ServiceResponse:
        return await self._create("/rfid", record)

    # Tasks

    async def get_tasks(self, params: Params = None) -> ServiceResponse:
        """
        List tasks. Cached briefly since task status changes often.

        Args:
            params: page, limit, status, priority, category, assignedTo
        """
        return await self.request("/tasks", params=params, cache_ttl=self.TASKS_TTL)

    async def create_task(self, task: Record) -> ServiceResponse:
        return await self._create("/tasks", task)

    # Cross-entity

    async def search_entities(
        self,
        query: str,
        types: Optional[List[str]] = None
    ) -> ServiceResponse:
        """
        Search across entity types.

        Args:
            query: Free-text search
            types: Entity types to search (defaults to animals and tasks)
        """
        types = types or ["animals", "tasks"]
        return await self.request(
            "/search",
            params={"q": query, "types": ",".join(types)},
            cache_ttl=self.SEARCH_TTL
        )

    async def get_dashboard_data(
        self,
        start: Optional[str] = None,
        end: Optional[str] = None
    ) -> ServiceResponse:
        """
        Get aggregated dashboard statistics.

        Args:
            start: Optional range start (ISO date)
            end: Optional range end (ISO date)
        """
        return await self.request(
            "/dashboard/stats",
            params={"start": start, "end": end},
            cache_ttl=self.DASHBOARD_TTL
        )
