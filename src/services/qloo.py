"""
Qloo Client - entity search, entity lookup and insight queries

All requests carry the X-Api-Key header and share one aiohttp session.
Non-2xx responses become UpstreamServiceError (429 and 5xx are transient);
response bodies are logged, never passed on to API clients.

Usage:
    client = QlooClient(api_key, base_url)
    results = await client.search("dune")
    await client.close()
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from src.config.limits import INSIGHT_TAGS_TAKE, SEARCH_ENTITY_TYPES
from src.models import EntitySearchResult, EntitySummary
from src.services.errors import EntityNotFoundError, UpstreamServiceError
from src.services.logger import get_logger
from src.services.retry import RetryPolicy, execute_with_retry

logger = logging.getLogger(__name__)

SERVICE_NAME = "qloo"
ENTITY_URN_PREFIX = "urn:entity:"


def entity_type_name(entity: Dict[str, Any]) -> str:
    """'urn:entity:book' -> 'book' (first type only), 'N/A' when untyped"""
    types = entity.get("types") or []
    return types[0].replace(ENTITY_URN_PREFIX, "") if types else "N/A"


def entity_release_year(entity: Dict[str, Any]) -> Optional[Any]:
    properties = entity.get("properties") or {}
    return properties.get("release_year") or properties.get("publication_year")


def parse_search_results(payload: Dict[str, Any]) -> List[EntitySearchResult]:
    """Keep only hits that have both a name and an image"""
    results = []
    for entity in payload.get("results") or []:
        name = entity.get("name")
        image_url = ((entity.get("properties") or {}).get("image") or {}).get("url")
        if not (name and image_url):
            continue
        results.append(EntitySearchResult(
            id=entity.get("entity_id"),
            name=name,
            image_url=image_url,
            type=entity_type_name(entity),
            release_year=entity_release_year(entity),
        ))
    return results


def parse_entity_summary(entity: Dict[str, Any]) -> EntitySummary:
    properties = entity.get("properties") or {}
    return EntitySummary(
        entity_id=entity.get("entity_id"),
        name=entity.get("name") or "",
        image_url=(properties.get("image") or {}).get("url"),
        type=entity_type_name(entity),
        release_year=entity_release_year(entity),
        description=properties.get("description"),
        short_description=properties.get("short_description"),
    )


def tags_as_records(tags: List[Dict[str, Any]], key_field: str) -> List[Dict[str, str]]:
    """[{type|subtype: name}] records from a Qloo tag list"""
    return [{tag.get(key_field): tag.get("name")} for tag in tags if tag.get(key_field)]


class QlooClient:
    """Async client for the Qloo recommendation API"""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://hackathon.api.qloo.com",
        timeout_seconds: float = 20.0,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        if not api_key:
            logger.warning("⚠️ QLOO_API_KEY not set; entity search and ingestion will fail")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.retry_policy = retry_policy or RetryPolicy()
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"accept": "application/json", "X-Api-Key": self.api_key or ""},
                timeout=self.timeout,
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _get_once(self, path: str, params: Dict[str, Any], allow_statuses=()) -> Optional[Dict]:
        url = f"{self.base_url}{path}"
        start = time.time()
        try:
            async with self._get_session().get(url, params=params) as response:
                if response.status in allow_statuses:
                    get_logger().upstream_call(SERVICE_NAME, path, time.time() - start, "skipped",
                                               f"HTTP {response.status}")
                    return None
                if response.status >= 400:
                    details = await response.text()
                    logger.error(f"❌ Qloo {path} error (HTTP {response.status}): {details[:500]}")
                    get_logger().upstream_call(SERVICE_NAME, path, time.time() - start, "error",
                                               f"HTTP {response.status}")
                    raise UpstreamServiceError(
                        SERVICE_NAME,
                        response.reason or "Unknown error",
                        upstream_status=response.status,
                        transient=response.status == 429 or response.status >= 500,
                    )
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise UpstreamServiceError(SERVICE_NAME, f"Timeout calling {path}", transient=True)
        except aiohttp.ClientError as e:
            raise UpstreamServiceError(SERVICE_NAME, f"{type(e).__name__}: {e}", transient=True)

        get_logger().upstream_call(SERVICE_NAME, path, time.time() - start)
        return payload or {}

    async def _get(self, path: str, params: Dict[str, Any], allow_statuses=()) -> Optional[Dict]:
        return await execute_with_retry(
            self._get_once, path, params, allow_statuses,
            policy=self.retry_policy, service=SERVICE_NAME,
        )

    async def search(self, query: str) -> List[EntitySearchResult]:
        """Movies, TV shows and books matching `query`, best match first"""
        payload = await self._get("/search", {
            "query": query,
            "types": SEARCH_ENTITY_TYPES,
            "page": "1",
            "sort_by": "match",
        })
        return parse_search_results(payload)

    async def get_entity(self, entity_id: str) -> Dict[str, Any]:
        """
        Full entity record by id.

        Raises:
            EntityNotFoundError: when Qloo has no entity for the id
        """
        payload = await self._get("/entities", {"entity_ids": entity_id})
        results = payload.get("results") or []
        if not results:
            raise EntityNotFoundError(entity_id)
        return results[0]

    async def get_insight_tags(self, entity_id: str, tag_types: str, take: int = INSIGHT_TAGS_TAKE) -> List[Dict[str, str]]:
        """Affinity tags for an entity as [{subtype: name}] records"""
        payload = await self._get("/v2/insights/", {
            "filter.type": "urn:tag",
            "signal.interests.entities": entity_id,
            "filter.tag.types": tag_types,
            "take": take,
        })
        tags = (payload.get("results") or {}).get("tags") or []
        return tags_as_records(tags, "subtype")

    async def get_cross_domain_entity(self, entity_id: str, entity_type: str) -> Optional[Dict[str, Any]]:
        """
        Top recommended entity of another domain (artist, movie, destination).

        Returns None when Qloo has no recommendation or rejects the type
        for this entity (HTTP 400).
        """
        payload = await self._get("/v2/insights/", {
            "filter.type": entity_type,
            "signal.interests.entities": entity_id,
            "take": 1,
            "page": 1,
        }, allow_statuses=(400,))
        if not payload:
            return None
        entities = (payload.get("results") or {}).get("entities") or []
        return entities[0] if entities else None
