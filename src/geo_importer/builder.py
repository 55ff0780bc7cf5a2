from __future__ import annotations

from typing import Callable, Iterable, Sequence

from .indexers import CoordinateIndex
from .models import Addr, AdministrativeRegion, Coord, RawAddressRecord, Street

RegionLookup = Callable[[Coord], Sequence[AdministrativeRegion]]

# characters that would break the identity string
_ID_UNSAFE = " \t\r\n/.:;"
_ID_TRANSLATION = str.maketrans({char: "-" for char in _ID_UNSAFE})


def sanitize_house_number(number: str) -> str:
    return number.translate(_ID_TRANSLATION)


def derive_weight(regions: Iterable[AdministrativeRegion]) -> float:
    """Weight of the first city in ``regions`` (smallest first), 0 if none."""
    for region in regions:
        if region.is_city():
            return region.weight
    return 0.0


def make_addr_id(lon: float, lat: float, number: str, legacy_identity_mode: bool) -> str:
    addr_id = f"addr:{lon},{lat}"
    if legacy_identity_mode:
        return addr_id
    return f"{addr_id}:{sanitize_house_number(number)}"


def build_addr(record: RawAddressRecord, regions_for: RegionLookup, legacy_identity_mode: bool) -> Addr:
    coord = Coord(lon=record.lon, lat=record.lat)
    regions = list(regions_for(coord))
    weight = derive_weight(regions)
    zip_codes = [record.postcode]

    street = Street(
        id=f"street:{record.id}",
        name=record.street,
        label=f"{record.street} ({record.city})",
        administrative_regions=regions,
        weight=weight,
        zip_codes=zip_codes,
        coord=coord,
    )
    addr_name = f"{record.number} {record.street}"
    return Addr(
        id=make_addr_id(record.lon, record.lat, record.number, legacy_identity_mode),
        name=addr_name,
        house_number=record.number,
        label=f"{addr_name} ({record.city})",
        street=street,
        coord=coord,
        approx_coord=None if legacy_identity_mode else coord.approx(),
        weight=weight,
        zip_codes=zip_codes,
    )


class AddressBuilder:
    def __init__(self, index: CoordinateIndex, legacy_identity_mode: bool = False) -> None:
        self.index = index
        self.legacy_identity_mode = legacy_identity_mode

    def __call__(self, record: RawAddressRecord) -> Addr:
        return build_addr(record, self.index.regions_containing, self.legacy_identity_mode)
