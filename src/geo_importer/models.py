from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

APPROX_PRECISION = 6


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]


class Coord(BaseModel):
    model_config = ConfigDict(frozen=True)

    lon: float
    lat: float

    def approx(self) -> GeoPoint:
        return GeoPoint(coordinates=(round(self.lon, APPROX_PRECISION), round(self.lat, APPROX_PRECISION)))


class ZoneType(str, Enum):
    suburb = "suburb"
    city_district = "city_district"
    city = "city"
    state_district = "state_district"
    state = "state"
    country_region = "country_region"
    country = "country"
    non_administrative = "non_administrative"


class AdministrativeRegion(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["admin"] = "admin"
    id: str
    name: str = ""
    label: str = ""
    insee: str = ""
    level: int = 0
    zone_type: Optional[ZoneType] = None
    weight: float = 0.0
    zip_codes: list[str] = Field(default_factory=list)
    coord: Optional[Coord] = None
    boundary: Optional[dict[str, Any]] = Field(default=None, exclude=True)

    def is_city(self) -> bool:
        return self.zone_type == ZoneType.city


class RawAddressRecord(BaseModel):
    """One row of an OpenAddresses CSV file."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    street: str
    postcode: str
    district: str
    region: str
    city: str
    number: str
    unit: str
    lat: float
    lon: float


class Street(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["street"] = "street"
    id: str
    name: str
    label: str
    administrative_regions: list[AdministrativeRegion] = Field(default_factory=list)
    weight: float = 0.0
    zip_codes: list[str] = Field(default_factory=list)
    coord: Coord
    approx_coord: Optional[GeoPoint] = None


class Addr(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["addr"] = "addr"
    id: str
    name: str
    house_number: str
    label: str
    street: Street
    coord: Coord
    approx_coord: Optional[GeoPoint] = None
    weight: float = 0.0
    zip_codes: list[str] = Field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
