from __future__ import annotations

import heapq
import math
from collections import defaultdict
from dataclasses import dataclass
from statistics import median
from typing import Any, Iterable, List, Optional, Sequence

from loguru import logger

from .models import AdministrativeRegion, Coord

Ring = tuple[tuple[float, float], ...]
Polygon = tuple[Ring, ...]
Cell = tuple[int, int]

# regions covering more grid cells than this are checked on every lookup
MAX_CELLS_PER_REGION = 64
MIN_CELL_SIZE = 1e-9


@dataclass(frozen=True)
class _IndexedRegion:
    region: AdministrativeRegion
    polygons: tuple[Polygon, ...]
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def area(self) -> float:
        return (self.max_x - self.min_x) * (self.max_y - self.min_y)

    def bbox_contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def contains(self, x: float, y: float) -> bool:
        if not self.bbox_contains(x, y):
            return False
        return any(_polygon_contains(polygon, x, y) for polygon in self.polygons)


def _ring_crossings(ring: Ring, x: float, y: float) -> int:
    crossings = 0
    count = len(ring)
    j = count - 1
    for i in range(count):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                crossings += 1
        j = i
    return crossings


def _polygon_contains(polygon: Polygon, x: float, y: float) -> bool:
    # even-odd over outer ring and holes together
    return sum(_ring_crossings(ring, x, y) for ring in polygon) % 2 == 1


def _to_ring(raw: Iterable[Sequence[float]]) -> Ring:
    return tuple((float(point[0]), float(point[1])) for point in raw)


def _parse_boundary(boundary: dict[str, Any]) -> tuple[Polygon, ...]:
    geometry_type = boundary.get("type")
    coordinates = boundary.get("coordinates") or []
    if geometry_type == "Polygon":
        raw_polygons = [coordinates]
    elif geometry_type == "MultiPolygon":
        raw_polygons = coordinates
    else:
        raise ValueError(f"unsupported boundary type {geometry_type!r}")
    polygons = []
    for raw_polygon in raw_polygons:
        rings = tuple(ring for ring in (_to_ring(raw_ring) for raw_ring in raw_polygon) if len(ring) >= 3)
        if rings:
            polygons.append(rings)
    return tuple(polygons)


class CoordinateIndex:
    """Read-only lookup of the administrative regions enclosing a coordinate.

    The index is filled once from the regions of a dataset and never
    mutated afterwards, so worker threads may query it concurrently.
    Results are ordered from the smallest enclosing region (by bounding
    box area) to the largest.

    Bounding boxes are bucketed on a uniform grid whose cell size defaults
    to the median bounding box extent, so a lookup only runs the polygon
    test against the regions sharing the coordinate's cell. Regions
    spanning too many cells (countries, states) sit in a separate list
    that every lookup scans.
    """

    def __init__(self, regions: Iterable[AdministrativeRegion] = (), cell_size: Optional[float] = None) -> None:
        entries: List[_IndexedRegion] = []
        for region in regions:
            entry = self._index_region(region)
            if entry is not None:
                entries.append(entry)
        entries.sort(key=lambda e: (e.area, -e.region.level, e.region.id))
        self._entries: tuple[_IndexedRegion, ...] = tuple(entries)
        self.cell_size = cell_size if cell_size and cell_size > 0 else _default_cell_size(entries)

        grid: dict[Cell, List[int]] = defaultdict(list)
        large: List[int] = []
        for position, entry in enumerate(self._entries):
            cells = self._cells_of(entry)
            if cells is None:
                large.append(position)
                continue
            for cell in cells:
                grid[cell].append(position)
        self._grid: dict[Cell, tuple[int, ...]] = {cell: tuple(found) for cell, found in grid.items()}
        self._large: tuple[int, ...] = tuple(large)

    @classmethod
    def build(cls, regions: Iterable[AdministrativeRegion]) -> "CoordinateIndex":
        index = cls(regions)
        logger.info(
            "Coordinate index built with {count} administrative regions ({cells} grid cells, {large} large regions)",
            count=len(index),
            cells=len(index._grid),
            large=len(index._large),
        )
        return index

    def __len__(self) -> int:
        return len(self._entries)

    def candidates(self, coord: Coord) -> List[AdministrativeRegion]:
        """Regions whose grid cells cover ``coord``, smallest first, before any geometry test."""
        return [self._entries[position].region for position in self._candidate_positions(coord.lon, coord.lat)]

    def regions_containing(self, coord: Coord) -> List[AdministrativeRegion]:
        x, y = coord.lon, coord.lat
        return [
            self._entries[position].region
            for position in self._candidate_positions(x, y)
            if self._entries[position].contains(x, y)
        ]

    def _candidate_positions(self, x: float, y: float) -> Iterable[int]:
        if not (math.isfinite(x) and math.isfinite(y)):
            return ()
        bucket = self._grid.get(self._cell(x, y), ())
        # both sequences are ascending, so the merge keeps smallest-first order
        return heapq.merge(bucket, self._large)

    def _cell(self, x: float, y: float) -> Cell:
        return math.floor(x / self.cell_size), math.floor(y / self.cell_size)

    def _cells_of(self, entry: _IndexedRegion) -> Optional[List[Cell]]:
        bounds = (entry.min_x, entry.min_y, entry.max_x, entry.max_y)
        if not all(math.isfinite(value) for value in bounds):
            return None
        min_cx, min_cy = self._cell(entry.min_x, entry.min_y)
        max_cx, max_cy = self._cell(entry.max_x, entry.max_y)
        if (max_cx - min_cx + 1) * (max_cy - min_cy + 1) > MAX_CELLS_PER_REGION:
            return None
        return [(cx, cy) for cx in range(min_cx, max_cx + 1) for cy in range(min_cy, max_cy + 1)]

    def _index_region(self, region: AdministrativeRegion) -> _IndexedRegion | None:
        if not region.boundary:
            logger.debug("Administrative region {id} has no boundary, skipped", id=region.id)
            return None
        try:
            polygons = _parse_boundary(region.boundary)
        except (ValueError, TypeError, IndexError) as exc:
            logger.warning("Invalid boundary for administrative region {id}: {err}", id=region.id, err=exc)
            return None
        if not polygons:
            return None
        xs = [x for polygon in polygons for ring in polygon for x, _ in ring]
        ys = [y for polygon in polygons for ring in polygon for _, y in ring]
        return _IndexedRegion(
            region=region,
            polygons=polygons,
            min_x=min(xs),
            min_y=min(ys),
            max_x=max(xs),
            max_y=max(ys),
        )


def _default_cell_size(entries: Sequence[_IndexedRegion]) -> float:
    extents = [max(entry.max_x - entry.min_x, entry.max_y - entry.min_y) for entry in entries]
    extents = [extent for extent in extents if math.isfinite(extent) and extent > 0]
    return max(median(extents), MIN_CELL_SIZE) if extents else 1.0
