from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError, helpers
from loguru import logger
from pydantic import ValidationError

from .config import IndexSettings, parse_connection_string
from .errors import IndexConnectivityError, IndexWriteError, RegionLookupAbsent
from .models import Addr, AdministrativeRegion
from .results import SearchResponse

DEFAULT_TIMEOUT = 30.0

ADDR_MAPPINGS: dict[str, Any] = {
    "properties": {
        "type": {"type": "keyword"},
        "id": {"type": "keyword"},
        "name": {"type": "text"},
        "label": {"type": "text"},
        "house_number": {"type": "keyword"},
        "zip_codes": {"type": "keyword"},
        "weight": {"type": "double"},
        "coord": {"type": "geo_point"},
        "approx_coord": {"type": "geo_shape"},
        "street": {
            "properties": {
                "id": {"type": "keyword"},
                "name": {"type": "text"},
                "label": {"type": "text"},
                "coord": {"type": "geo_point"},
                "administrative_regions": {"type": "object", "enabled": False},
            }
        },
    }
}


class IndexWriter(ABC):
    """Narrow contract between the import pipeline and the search backend."""

    @abstractmethod
    def get_admins_for_dataset(self, dataset: str) -> List[AdministrativeRegion]:
        """Administrative regions already indexed for ``dataset``.

        Raises RegionLookupAbsent when the dataset has none.
        """

    @abstractmethod
    def create_index(self, dataset: str, settings: IndexSettings) -> str:
        """Create a fresh address index and return its name."""

    @abstractmethod
    def submit_batch(self, index: str, docs: Sequence[Addr]) -> int:
        """Write ``docs`` to ``index``, blocking until acknowledged."""

    @abstractmethod
    def publish_index(self, dataset: str, index: str) -> None:
        """Make ``index`` the live address index of ``dataset``."""


class ElasticsearchIndexWriter(IndexWriter):
    def __init__(
        self,
        connection_string: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[Elasticsearch] = None,
    ) -> None:
        self.host, self.root = parse_connection_string(connection_string)
        self.timeout = timeout
        self.client = client or Elasticsearch(self.host, request_timeout=timeout)

    def admin_alias(self, dataset: str) -> str:
        return f"{self.root}_admin_{dataset}"

    def addr_alias(self, dataset: str) -> str:
        return f"{self.root}_addr_{dataset}"

    def get_admins_for_dataset(self, dataset: str) -> List[AdministrativeRegion]:
        index = self.admin_alias(dataset)
        admins: List[AdministrativeRegion] = []
        try:
            for hit in helpers.scan(self.client, index=index, query={"query": {"match_all": {}}}):
                try:
                    admins.append(AdministrativeRegion.model_validate(hit["_source"]))
                except ValidationError as exc:
                    logger.warning("Ignoring invalid administrative region {id}: {err}", id=hit.get("_id"), err=exc)
        except NotFoundError as exc:
            raise RegionLookupAbsent(f"index {index} not found") from exc
        except TransportError as exc:
            raise IndexConnectivityError(f"cannot reach {self.host}: {exc}") from exc
        if not admins:
            raise RegionLookupAbsent(f"index {index} holds no administrative region")
        return admins

    def create_index(self, dataset: str, settings: IndexSettings) -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        name = f"{self.addr_alias(dataset)}_{stamp}"
        try:
            self.client.indices.create(
                index=name,
                settings={
                    "number_of_shards": settings.nb_shards,
                    "number_of_replicas": settings.nb_replicas,
                },
                mappings=ADDR_MAPPINGS,
            )
        except TransportError as exc:
            raise IndexConnectivityError(f"cannot reach {self.host}: {exc}") from exc
        except ApiError as exc:
            raise IndexWriteError(f"cannot create index {name}: {exc}") from exc
        logger.info("Created index {name}", name=name)
        return name

    def submit_batch(self, index: str, docs: Sequence[Addr]) -> int:
        if not docs:
            return 0
        actions = (
            {"_op_type": "index", "_index": index, "_id": doc.id, "_source": doc.to_document()} for doc in docs
        )
        try:
            success, _ = helpers.bulk(self.client, actions, raise_on_error=True, max_retries=0)
        except helpers.BulkIndexError as exc:
            first = exc.errors[0] if exc.errors else {}
            raise IndexWriteError(f"{len(exc.errors)} documents rejected by {index}: {first}") from exc
        except TransportError as exc:
            raise IndexConnectivityError(f"cannot reach {self.host}: {exc}") from exc
        except ApiError as exc:
            raise IndexWriteError(f"bulk write to {index} failed: {exc}") from exc
        return success

    def publish_index(self, dataset: str, index: str) -> None:
        alias = self.addr_alias(dataset)
        prefix = f"{alias}_"
        try:
            actions: List[Mapping[str, Any]] = []
            stale: set[str] = set()
            for name in (alias, f"{self.root}_addr", self.root):
                for old in self._indexes_behind(name):
                    if old.startswith(prefix) and old != index:
                        actions.append({"remove": {"index": old, "alias": name}})
                        stale.add(old)
                actions.append({"add": {"index": index, "alias": name}})
            self.client.indices.update_aliases(actions=actions)
            self.client.indices.refresh(index=index)
            for old in sorted(stale):
                logger.info("Deleting previous index {name}", name=old)
                self.client.indices.delete(index=old)
        except TransportError as exc:
            raise IndexConnectivityError(f"cannot reach {self.host}: {exc}") from exc
        except ApiError as exc:
            raise IndexWriteError(f"cannot publish index {index}: {exc}") from exc
        logger.info("Index {index} published as {alias}", index=index, alias=alias)

    def search(self, query: str, index: Optional[str] = None) -> SearchResponse:
        try:
            body = self.client.search(index=index or self.root, q=query)
        except TransportError as exc:
            raise IndexConnectivityError(f"cannot reach {self.host}: {exc}") from exc
        except ApiError as exc:
            raise IndexWriteError(f"search on {index or self.root} failed: {exc}") from exc
        return SearchResponse.parse(body.body)

    def _indexes_behind(self, alias: str) -> List[str]:
        try:
            return sorted(self.client.indices.get_alias(name=alias).body.keys())
        except NotFoundError:
            return []
