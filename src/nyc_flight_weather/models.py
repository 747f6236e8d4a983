"""Data models for cleaned BTS flight, ASOS weather and merged records.

This module defines Pydantic v2 models used to verify cleaned rows before
they are written out, plus the small value objects shared by the stages.

Models
------
FlightRecord
    One cleaned BTS flight leg (one row per flight).
WeatherRecord
    One cleaned ASOS observation (one row per station timestamp).
MergedRecord
    A flight extended with its matched weather fields.
OutlierBounds
    Snapshot of the clamp interval applied to one numeric field.
"""
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .schema import MONITORED_STATIONS, SUPPORTED_END, SUPPORTED_START

DELAY_FIELDS = (
    "DEP_DELAY", "DEP_DELAY_NEW", "ARR_DELAY", "ARR_DELAY_NEW",
    "CARRIER_DELAY", "WEATHER_DELAY", "NAS_DELAY", "LATE_AIRCRAFT_DELAY",
)
CANCELLATION_CODES = ("A", "B", "C", "D")


class MatchOutcome(str, Enum):
    MATCHED = "Matched"
    NO_WEATHER_MATCH = "No Weather Match"


class OutlierBounds(BaseModel):
    """Clamp interval for one field, with the statistics it came from.

    ``q1``, ``q3`` and ``iqr`` are ``None`` for fixed physical bounds.
    ``rows`` is the number of non-null values the quartiles were taken over.
    """
    model_config = ConfigDict(frozen=True)

    field: str
    lower: Optional[float] = None
    upper: Optional[float] = None
    q1: Optional[float] = None
    q3: Optional[float] = None
    iqr: Optional[float] = None
    rows: int = 0


def _in_window(v: date) -> date:
    if not SUPPORTED_START <= v <= SUPPORTED_END:
        raise ValueError(f"{v} outside {SUPPORTED_START}..{SUPPORTED_END}")
    return v


class FlightRecord(BaseModel):
    """Validated, cleaned BTS flight record.

    Field names mirror the BTS On-Time Performance download columns.

    Parameters
    ----------
    FL_DATE
        Flight date, inside the supported window.
    CANCELLED, DIVERTED
        Terminal event flags.
    CANCELLATION_CODE
        ``A`` carrier, ``B`` weather, ``C`` NAS, ``D`` security. Only set on
        cancelled flights.
    DIV1_AIRPORT, DIV1_AIRPORT_ID
        First diversion airport. Only set on diverted flights.
    DEP_DELAY ... LATE_AIRCRAFT_DELAY
        Delay minutes. Never null for a flight that was neither cancelled
        nor diverted.
    """
    FL_DATE: date
    YEAR: Optional[float] = None
    MONTH: Optional[float] = None
    DAY_OF_MONTH: Optional[float] = None
    OP_UNIQUE_CARRIER: Optional[str] = None
    OP_CARRIER_AIRLINE_ID: Optional[str] = None
    TAIL_NUM: Optional[str] = None
    OP_CARRIER_FL_NUM: Optional[str] = None
    ORIGIN_AIRPORT_ID: Optional[str] = None
    ORIGIN: Optional[str] = None
    DEST_AIRPORT_ID: Optional[str] = None
    DEST: Optional[str] = None
    CRS_DEP_TIME: Optional[str] = None
    DEP_TIME: Optional[str] = None
    CRS_ARR_TIME: Optional[str] = None
    ARR_TIME: Optional[str] = None
    DEP_DELAY: Optional[float] = None
    DEP_DELAY_NEW: Optional[float] = None
    DEP_DEL15: Optional[bool] = None
    ARR_DELAY: Optional[float] = None
    ARR_DELAY_NEW: Optional[float] = None
    ARR_DEL15: Optional[bool] = None
    CANCELLED: Optional[bool] = None
    CANCELLATION_CODE: Optional[str] = None
    DIVERTED: Optional[bool] = None
    DIV1_AIRPORT: Optional[str] = None
    DIV1_AIRPORT_ID: Optional[str] = None
    CARRIER_DELAY: Optional[float] = None
    WEATHER_DELAY: Optional[float] = None
    NAS_DELAY: Optional[float] = None
    LATE_AIRCRAFT_DELAY: Optional[float] = None
    flight_time: Optional[datetime] = None
    flight_hour: Optional[datetime] = None

    @field_validator("FL_DATE")
    @classmethod
    def _date_in_window(cls, v):
        return _in_window(v)

    @field_validator("CANCELLATION_CODE")
    @classmethod
    def _known_code(cls, v):
        if v is not None and v not in CANCELLATION_CODES:
            raise ValueError(f"unknown cancellation code {v!r}")
        return v

    @model_validator(mode="after")
    def _terminal_events(self):
        if not self.CANCELLED and self.CANCELLATION_CODE is not None:
            raise ValueError("cancellation code set on a flight that was not cancelled")
        if not self.DIVERTED and (self.DIV1_AIRPORT is not None or self.DIV1_AIRPORT_ID is not None):
            raise ValueError("diversion airport set on a flight that was not diverted")
        if self.CANCELLED is False and self.DIVERTED is False:
            missing = [f for f in DELAY_FIELDS if getattr(self, f) is None]
            if missing:
                raise ValueError(f"completed flight with null delays: {missing}")
        return self


class WeatherRecord(BaseModel):
    """Validated, cleaned ASOS observation.

    Parameters
    ----------
    station
        Three-letter station id, one of the monitored airports.
    valid
        Observation timestamp (UTC, minute precision).
    tmpf, dwpf
        Air and dew point temperature (F).
    drct, sknt, gust
        Wind direction (degrees), speed and gust (knots).
    mslp
        Sea level pressure (mb).
    p01i
        One hour precipitation (inches).
    vsby
        Visibility (miles).
    wxcodes
        Present weather codes, e.g. ``"-RA BR"``.
    """
    station: str
    valid: datetime
    tmpf: Optional[float] = None
    dwpf: Optional[float] = None
    drct: Optional[float] = None
    sknt: Optional[float] = None
    mslp: Optional[float] = None
    p01i: Optional[float] = None
    vsby: Optional[float] = None
    gust: Optional[float] = None
    wxcodes: Optional[str] = None
    valid_date: Optional[date] = None
    valid_hour: Optional[datetime] = None

    @field_validator("station")
    @classmethod
    def _monitored(cls, v):
        if v not in MONITORED_STATIONS:
            raise ValueError(f"station {v!r} is not monitored")
        return v

    @field_validator("valid")
    @classmethod
    def _valid_in_window(cls, v):
        _in_window(v.date())
        return v


class MergedRecord(FlightRecord):
    """Flight record with the weather fields attached by the merge."""
    valid: Optional[datetime] = None
    tmpf: Optional[float] = None
    dwpf: Optional[float] = None
    drct: Optional[float] = None
    sknt: Optional[float] = None
    mslp: Optional[float] = None
    p01i: Optional[float] = None
    vsby: Optional[float] = None
    gust: Optional[float] = None
    wxcodes: Optional[str] = None
    merge_status: MatchOutcome

    @model_validator(mode="after")
    def _status_follows_fields(self):
        has_weather = self.wxcodes is not None or self.p01i is not None
        if has_weather != (self.merge_status == MatchOutcome.MATCHED):
            raise ValueError("merge_status disagrees with attached weather fields")
        return self
