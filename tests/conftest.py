from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional, Sequence

import pytest
from loguru import logger

from geo_importer.config import IndexSettings
from geo_importer.errors import IndexWriteError, RegionLookupAbsent
from geo_importer.models import Addr, AdministrativeRegion, ZoneType
from geo_importer.writers import IndexWriter

HEADER = "LON,LAT,NUMBER,STREET,UNIT,CITY,DISTRICT,REGION,POSTCODE,ID,HASH"


def square_region(
    region_id: str,
    min_x: float,
    min_y: float,
    max_x: float,
    max_y: float,
    zone_type: Optional[ZoneType] = None,
    weight: float = 0.0,
    level: int = 0,
) -> AdministrativeRegion:
    ring = [[min_x, min_y], [max_x, min_y], [max_x, max_y], [min_x, max_y], [min_x, min_y]]
    return AdministrativeRegion(
        id=region_id,
        name=region_id,
        label=region_id,
        zone_type=zone_type,
        weight=weight,
        level=level,
        boundary={"type": "Polygon", "coordinates": [ring]},
    )


def csv_row(lon, lat, number, street, city="Paris", postcode="75001", record_id="1") -> str:
    return f"{lon},{lat},{number},{street},,{city},,,{postcode},{record_id},abc"


def write_csv(path: Path, rows: Sequence[str], header: str = HEADER) -> Path:
    path.write_text("\n".join([header, *rows]) + "\n", encoding="utf-8")
    return path


class InMemoryIndexWriter(IndexWriter):
    def __init__(self, admins: Optional[list[AdministrativeRegion]] = None, fail_on_batch: Optional[int] = None):
        self.admins = admins
        self.fail_on_batch = fail_on_batch
        self.created: list[tuple[str, IndexSettings]] = []
        self.published: list[tuple[str, str]] = []
        self.batches: list[list[Addr]] = []
        self.documents: dict[str, Addr] = {}
        self._lock = threading.Lock()

    def get_admins_for_dataset(self, dataset: str) -> list[AdministrativeRegion]:
        if self.admins is None:
            raise RegionLookupAbsent(f"no admin for {dataset}")
        return list(self.admins)

    def create_index(self, dataset: str, settings: IndexSettings) -> str:
        name = f"munin_addr_{dataset}_test"
        self.created.append((name, settings))
        return name

    def submit_batch(self, index: str, docs: Sequence[Addr]) -> int:
        with self._lock:
            if self.fail_on_batch is not None and len(self.batches) >= self.fail_on_batch:
                raise IndexWriteError("rejected")
            self.batches.append(list(docs))
            for doc in docs:
                self.documents[doc.id] = doc
        return len(docs)

    def publish_index(self, dataset: str, index: str) -> None:
        self.published.append((dataset, index))


@pytest.fixture
def writer() -> InMemoryIndexWriter:
    return InMemoryIndexWriter()


@pytest.fixture
def log_messages():
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["level"].name + ":" + message.record["message"]))
    yield messages
    logger.remove(handler_id)
