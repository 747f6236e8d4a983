"""Declared schemas for the raw BTS flight and ASOS weather files.

Every raw file is read with all columns as text. A :class:`DatasetSchema`
tells the normalizer which kind each field should be coerced into, and is
passed explicitly into every stage that needs to know column roles.

Constants
---------
MONITORED_STATIONS
    Airports (and their ASOS stations) covered by the pipeline.
SUPPORTED_START, SUPPORTED_END
    Inclusive calendar window for flight dates and observation dates.
FLIGHT_SCHEMA, WEATHER_SCHEMA
    Frozen schemas for the two record kinds.
"""
from datetime import date
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict

MONITORED_STATIONS: Tuple[str, ...] = ("JFK", "LGA", "EWR")
SUPPORTED_START = date(2015, 1, 1)
SUPPORTED_END = date(2024, 12, 31)

NULL_TOKENS: Tuple[str, ...] = ("", "null")


class FieldKind(str, Enum):
    """Target type of a raw text field."""
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    STRING = "string"
    DATE = "date"
    DATETIME = "datetime"


class FieldSpec(BaseModel):
    """One declared field.

    Parameters
    ----------
    name
        Column name as it appears in the raw file header.
    kind
        Target :class:`FieldKind`.
    formats
        Accepted ``strptime`` formats for date/datetime fields, tried in
        order; the first one that parses wins.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    kind: FieldKind
    formats: Tuple[str, ...] = ()


class DatasetSchema(BaseModel):
    """Ordered, immutable collection of :class:`FieldSpec`."""
    model_config = ConfigDict(frozen=True)

    name: str
    fields: Tuple[FieldSpec, ...]

    def names(self, kind: FieldKind | None = None) -> list[str]:
        return [f.name for f in self.fields if kind is None or f.kind == kind]

    def field(self, name: str) -> FieldSpec:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(f"{self.name}: no field named {name!r}")


def _specs(kind: FieldKind, names, formats: Tuple[str, ...] = ()) -> Tuple[FieldSpec, ...]:
    return tuple(FieldSpec(name=n, kind=kind, formats=formats) for n in names)


FLIGHT_DATE_FORMATS = ("%m-%d-%Y", "%m/%d/%Y", "%Y-%m-%d", "%m/%d/%Y %I:%M:%S %p")
WEATHER_TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S")

FLIGHT_SCHEMA = DatasetSchema(
    name="bts",
    fields=(
        _specs(FieldKind.NUMERIC, (
            "YEAR", "MONTH", "DAY_OF_MONTH", "DEP_DELAY", "DEP_DELAY_NEW",
            "ARR_DELAY", "ARR_DELAY_NEW", "CARRIER_DELAY", "WEATHER_DELAY",
            "NAS_DELAY", "LATE_AIRCRAFT_DELAY",
        ))
        + _specs(FieldKind.BOOLEAN, ("DEP_DEL15", "ARR_DEL15", "CANCELLED", "DIVERTED"))
        + _specs(FieldKind.STRING, (
            "OP_UNIQUE_CARRIER", "OP_CARRIER_AIRLINE_ID", "TAIL_NUM",
            "OP_CARRIER_FL_NUM", "ORIGIN_AIRPORT_ID", "ORIGIN",
            "DEST_AIRPORT_ID", "DEST", "CANCELLATION_CODE",
            "DIV1_AIRPORT", "DIV1_AIRPORT_ID", "CRS_DEP_TIME",
            "DEP_TIME", "CRS_ARR_TIME", "ARR_TIME",
        ))
        + _specs(FieldKind.DATE, ("FL_DATE",), FLIGHT_DATE_FORMATS)
    ),
)

WEATHER_SCHEMA = DatasetSchema(
    name="weather",
    fields=(
        _specs(FieldKind.NUMERIC, ("tmpf", "dwpf", "drct", "sknt", "mslp", "p01i", "vsby", "gust"))
        + _specs(FieldKind.STRING, ("station", "wxcodes"))
        + _specs(FieldKind.DATETIME, ("valid",), WEATHER_TIMESTAMP_FORMATS)
    ),
)
