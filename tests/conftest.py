from pathlib import Path

import polars as pl
import pytest

from nyc_flight_weather.config import PipelineSettings

FLIGHT_DEFAULTS = {
    "YEAR": "2023",
    "MONTH": "2",
    "DAY_OF_MONTH": "10",
    "FL_DATE": "2023-02-10",
    "OP_UNIQUE_CARRIER": "B6",
    "OP_CARRIER_AIRLINE_ID": "20409",
    "TAIL_NUM": "N123JB",
    "OP_CARRIER_FL_NUM": "101",
    "ORIGIN_AIRPORT_ID": "12478",
    "ORIGIN": "JFK",
    "DEST_AIRPORT_ID": "13204",
    "DEST": "MCO",
    "CRS_DEP_TIME": "0925",
    "DEP_TIME": "0930",
    "DEP_DELAY": "5.00",
    "DEP_DELAY_NEW": "5.00",
    "DEP_DEL15": "0.00",
    "CRS_ARR_TIME": "1230",
    "ARR_TIME": "1235",
    "ARR_DELAY": "5.00",
    "ARR_DELAY_NEW": "5.00",
    "ARR_DEL15": "0.00",
    "CANCELLED": "0.00",
    "CANCELLATION_CODE": "",
    "DIVERTED": "0.00",
    "DIV1_AIRPORT": "",
    "DIV1_AIRPORT_ID": "",
    "CARRIER_DELAY": "",
    "WEATHER_DELAY": "",
    "NAS_DELAY": "",
    "LATE_AIRCRAFT_DELAY": "",
}

WEATHER_DEFAULTS = {
    "station": "JFK",
    "valid": "2023-02-10 09:51",
    "tmpf": "35.10",
    "dwpf": "20.00",
    "drct": "310.00",
    "sknt": "12.00",
    "mslp": "1020.10",
    "p01i": "0.00",
    "vsby": "10.00",
    "gust": "null",
    "wxcodes": "null",
}


def _frame(defaults: dict, rows: list) -> pl.DataFrame:
    records = [{**defaults, **row} for row in rows]
    return pl.DataFrame(records, schema={k: pl.String for k in defaults})


def raw_flights(*rows: dict) -> pl.DataFrame:
    """Raw all-text flight frame; every row starts from FLIGHT_DEFAULTS."""
    return _frame(FLIGHT_DEFAULTS, list(rows) or [{}])


def raw_weather(*rows: dict) -> pl.DataFrame:
    """Raw all-text weather frame; every row starts from WEATHER_DEFAULTS."""
    return _frame(WEATHER_DEFAULTS, list(rows) or [{}])


def write_raw(df: pl.DataFrame, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.write_csv(path)
    return path


@pytest.fixture
def settings(tmp_path) -> PipelineSettings:
    return PipelineSettings(
        flight_dir=tmp_path / "raw" / "bts",
        weather_dir=tmp_path / "raw" / "weather",
        output_dir=tmp_path / "out",
    )
