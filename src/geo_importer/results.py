"""Typed decoding of search backend and geocoder responses.

Every decoder raises DecodeError when the expected structure is missing
instead of returning an empty result.
"""
from __future__ import annotations

from typing import Annotated, Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, ValidationError

from .errors import DecodeError
from .models import Addr, AdministrativeRegion, Street


def _place_kind(value: Any) -> str:
    if isinstance(value, Mapping):
        return value.get("type", "admin")
    return getattr(value, "type", "admin")


Place = Annotated[
    Union[
        Annotated[Addr, Tag("addr")],
        Annotated[Street, Tag("street")],
        Annotated[AdministrativeRegion, Tag("admin")],
    ],
    Discriminator(_place_kind),
]


def _decode(model: type[BaseModel], payload: Mapping[str, Any] | str | bytes) -> Any:
    try:
        if isinstance(payload, (str, bytes)):
            return model.model_validate_json(payload)
        return model.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"malformed {model.__name__}: {exc}") from exc


class SearchHit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    index: str = Field(alias="_index")
    score: Optional[float] = Field(default=None, alias="_score")
    source: Place = Field(alias="_source")


class SearchHits(BaseModel):
    hits: list[SearchHit]


class SearchResponse(BaseModel):
    hits: SearchHits

    @classmethod
    def parse(cls, payload: Mapping[str, Any] | str | bytes) -> "SearchResponse":
        return _decode(cls, payload)

    def places(self) -> list[Addr | Street | AdministrativeRegion]:
        return [hit.source for hit in self.hits.hits]

    def addresses(self) -> list[Addr]:
        return [place for place in self.places() if isinstance(place, Addr)]


class CountResponse(BaseModel):
    count: int

    @classmethod
    def parse(cls, payload: Mapping[str, Any] | str | bytes) -> "CountResponse":
        return _decode(cls, payload)


class GeocodingEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None
    label: Optional[str] = None
    housenumber: Optional[str] = None
    street: Optional[str] = None
    postcode: Optional[str] = None
    city: Optional[str] = None
    citycode: Optional[str] = None
    weight: Optional[float] = None


class FeatureProperties(BaseModel):
    geocoding: GeocodingEntry


class Feature(BaseModel):
    properties: FeatureProperties


class GeocodingResponse(BaseModel):
    features: list[Feature]

    @classmethod
    def parse(cls, payload: Mapping[str, Any] | str | bytes) -> "GeocodingResponse":
        return _decode(cls, payload)

    def entries(self) -> list[GeocodingEntry]:
        return [feature.properties.geocoding for feature in self.features]
