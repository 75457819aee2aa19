"""
HTTP data source for entities owned by another service.

The remote service exposes the internal CRUD API:
- POST /internal/query   {filters, fields, limit, offset} -> {items, total}  (404 reads as no items)
- POST /internal/create  {entity, operation, data}        -> {items, count}
- POST /internal/update  {entity, operation, data, filters}
- POST /internal/delete  {entity, operation, filters}
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from fastapi.encoders import jsonable_encoder

from ..core.errors import NotFound, ServiceError
from ..core.query_types import (
    InternalMutationRequest,
    InternalMutationResponse,
    InternalQueryRequest,
    InternalQueryResponse,
    NormalizedFilter,
)
from .base import DataSource, Entity

logger = logging.getLogger(__name__)


class HTTPDataSource(DataSource):
    """
    Data source backed by a remote service's internal API.

    Usage:
        photos = HTTPDataSource("Photo", "http://photos:8002/photo")
        await photos.where([NormalizedFilter(field="postedBy", op="eq", value="alice")])
        await photos.close()
    """

    def __init__(
        self,
        entity: str,
        base_url: str,
        key: str = "id",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """
        Args:
            entity: entity name sent with each request
            base_url: service URL including the resource prefix
            key: identity field
            client: shared client (tests pass one with a MockTransport)
            timeout: request timeout when the client is created here
        """
        super().__init__(entity, key)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, body: dict[str, Any], missing_ok: bool = False) -> dict[str, Any]:
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        try:
            response = await client.post(url, json=jsonable_encoder(body))
        except httpx.RequestError as e:
            raise ServiceError(service=self.base_url, status_code=0, message=str(e)) from e

        if response.status_code == 404 and missing_ok:
            return {}
        if response.status_code >= 400:
            raise ServiceError(service=self.base_url, status_code=response.status_code, message=response.text)
        logger.debug(f"POST {url} -> {response.status_code}")
        return response.json()

    async def _query(self, filters: list[NormalizedFilter], limit: Optional[int] = None) -> InternalQueryResponse:
        request = InternalQueryRequest(entity=self.entity, filters=filters, limit=limit)
        return InternalQueryResponse(**await self._post("/internal/query", request.model_dump(), missing_ok=True))

    async def _mutate(self, operation: str, **kwargs: Any) -> InternalMutationResponse:
        request = InternalMutationRequest(entity=self.entity, operation=operation, **kwargs)
        return InternalMutationResponse(**await self._post(f"/internal/{operation}", request.model_dump()))

    def _by_key(self, key: Any) -> list[NormalizedFilter]:
        return [NormalizedFilter(field=self.key, op="eq", value=key)]

    async def get(self, key: Any) -> Optional[Entity]:
        response = await self._query(self._by_key(key), limit=1)
        return response.items[0] if response.items else None

    async def all(self) -> list[Entity]:
        return (await self._query([])).items

    async def where(self, filters: list[NormalizedFilter]) -> list[Entity]:
        return (await self._query(filters)).items

    async def count(self) -> int:
        return (await self._query([], limit=0)).total

    async def create(self, entity: Entity) -> Entity:
        response = await self._mutate("create", data=entity)
        if not response.items:
            raise ServiceError(service=self.base_url, status_code=200, message=f"create returned no {self.entity}")
        return response.items[0]

    async def update(self, key: Any, changes: Entity) -> Entity:
        response = await self._mutate("update", data=changes, filters=self._by_key(key))
        if not response.items:
            raise NotFound(self.entity, key)
        return response.items[0]

    async def delete(self, key: Any) -> Optional[Entity]:
        existing = await self.get(key)
        if existing is None:
            return None
        await self._mutate("delete", filters=self._by_key(key))
        return existing
