"""Tests for the administrative region coordinate index."""

import random

from conftest import square_region
from geo_importer.indexers import CoordinateIndex
from geo_importer.models import AdministrativeRegion, Coord, ZoneType


def ids(regions):
    return [region.id for region in regions]


class TestCoordinateIndex:
    def test_empty_index(self):
        index = CoordinateIndex([])
        assert len(index) == 0
        assert index.regions_containing(Coord(lon=1, lat=1)) == []

    def test_smallest_enclosing_first(self):
        country = square_region("country", -10, -10, 10, 10, ZoneType.country)
        city = square_region("city", 0, 0, 4, 4, ZoneType.city)
        suburb = square_region("suburb", 1, 1, 2, 2, ZoneType.suburb)
        index = CoordinateIndex.build([country, suburb, city])

        assert ids(index.regions_containing(Coord(lon=1.5, lat=1.5))) == ["suburb", "city", "country"]
        assert ids(index.regions_containing(Coord(lon=3, lat=3))) == ["city", "country"]
        assert ids(index.regions_containing(Coord(lon=20, lat=20))) == []

    def test_polygon_hole(self):
        outer = [[0, 0], [10, 0], [10, 10], [0, 10], [0, 0]]
        hole = [[4, 4], [6, 4], [6, 6], [4, 6], [4, 4]]
        region = AdministrativeRegion(id="ring", boundary={"type": "Polygon", "coordinates": [outer, hole]})
        index = CoordinateIndex([region])

        assert ids(index.regions_containing(Coord(lon=2, lat=2))) == ["ring"]
        assert index.regions_containing(Coord(lon=5, lat=5)) == []

    def test_multipolygon(self):
        first = [[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]
        second = [[5, 5], [6, 5], [6, 6], [5, 6], [5, 5]]
        region = AdministrativeRegion(
            id="islands", boundary={"type": "MultiPolygon", "coordinates": [[first], [second]]}
        )
        index = CoordinateIndex([region])

        assert ids(index.regions_containing(Coord(lon=5.5, lat=5.5))) == ["islands"]
        assert ids(index.regions_containing(Coord(lon=0.5, lat=0.5))) == ["islands"]
        assert index.regions_containing(Coord(lon=3, lat=3)) == []

    def test_triangle_outside_bbox_corner(self):
        triangle = [[0, 0], [4, 0], [0, 4], [0, 0]]
        region = AdministrativeRegion(id="tri", boundary={"type": "Polygon", "coordinates": [triangle]})
        index = CoordinateIndex([region])

        assert ids(index.regions_containing(Coord(lon=1, lat=1))) == ["tri"]
        assert index.regions_containing(Coord(lon=3, lat=3)) == []

    def test_regions_without_usable_boundary_are_ignored(self):
        no_boundary = AdministrativeRegion(id="none")
        bad = AdministrativeRegion(id="bad", boundary={"type": "Point", "coordinates": [1, 1]})
        good = square_region("good", 0, 0, 2, 2)
        index = CoordinateIndex([no_boundary, bad, good])

        assert len(index) == 1
        assert ids(index.regions_containing(Coord(lon=1, lat=1))) == ["good"]


class TestGridPruning:
    """Lookups only test the regions sharing the coordinate's grid cell"""

    @staticmethod
    def communes(count, seed=7):
        rng = random.Random(seed)
        regions = []
        for i in range(count):
            x, y = rng.uniform(-5, 8), rng.uniform(42, 51)
            size = rng.uniform(0.02, 0.2)
            regions.append(square_region(f"c{i}", x, y, x + size, y + size * rng.uniform(0.5, 1.5), level=8))
        return regions

    def test_same_result_as_full_scan(self):
        regions = self.communes(2000)
        regions.append(square_region("fr", -6, 41, 10, 52, ZoneType.country, level=2))
        index = CoordinateIndex(regions)
        full_scan = sorted(
            (index._index_region(region) for region in regions),
            key=lambda e: (e.area, -e.region.level, e.region.id),
        )
        rng = random.Random(11)

        for _ in range(300):
            coord = Coord(lon=rng.uniform(-6, 10), lat=rng.uniform(41, 52))
            expected = [entry.region.id for entry in full_scan if entry.contains(coord.lon, coord.lat)]
            assert ids(index.regions_containing(coord)) == expected
            assert expected[-1] == "fr"

    def test_few_candidates_per_lookup(self):
        index = CoordinateIndex(self.communes(5000))

        candidates = index.candidates(Coord(lon=1.5, lat=46.5))

        assert len(candidates) < 100
        assert len(index) == 5000

    def test_large_region_checked_everywhere(self):
        country = square_region("country", -50, -50, 50, 50, ZoneType.country)
        city = square_region("city", 0, 0, 1, 1, ZoneType.city)
        index = CoordinateIndex([country, city], cell_size=1.0)

        assert ids(index.candidates(Coord(lon=-40, lat=40))) == ["country"]
        assert ids(index.candidates(Coord(lon=0.5, lat=0.5))) == ["city", "country"]
        assert ids(index.regions_containing(Coord(lon=0.5, lat=0.5))) == ["city", "country"]

    def test_point_on_cell_edge(self):
        left = square_region("left", 0, 0, 1, 1)
        right = square_region("right", 1, 0, 2, 1)
        index = CoordinateIndex([left, right], cell_size=1.0)

        assert ids(index.candidates(Coord(lon=1.0, lat=0.5))) == ["left", "right"]
        assert ids(index.regions_containing(Coord(lon=0.5, lat=0.5))) == ["left"]
        assert ids(index.regions_containing(Coord(lon=1.5, lat=0.5))) == ["right"]

    def test_non_finite_coordinate(self):
        index = CoordinateIndex([square_region("a", 0, 0, 1, 1)])
        assert index.regions_containing(Coord(lon=float("nan"), lat=0.5)) == []
