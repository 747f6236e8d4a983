"""Run settings for the cleansing and merge pipeline.

Settings are read from environment variables, the same way the DAG reads
its connection parameters:

- ``FLIGHT_WEATHER_FLIGHT_DIR``: directory of raw ``bts_*.csv`` files.
- ``FLIGHT_WEATHER_WEATHER_DIR``: directory of raw ``weather_*.csv`` files.
- ``FLIGHT_WEATHER_OUTPUT_DIR``: root for ``cleaned/``, ``reports/`` and ``merged/``.
- ``FLIGHT_WEATHER_START_DATE`` / ``FLIGHT_WEATHER_END_DATE``: ISO dates.
- ``FLIGHT_WEATHER_STATIONS``: comma separated airport codes.
- ``FLIGHT_WEATHER_VERIFY_RECORDS``: ``true``/``false``, row-level model check.
"""
import os
from datetime import date
from pathlib import Path
from typing import Tuple

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .schema import MONITORED_STATIONS, SUPPORTED_END, SUPPORTED_START


class PipelineSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    flight_dir: Path = Path("/data/downloads/bts")
    weather_dir: Path = Path("/data/downloads/weather")
    output_dir: Path = Path("/data/processed")
    flight_pattern: str = "bts_*.csv"
    weather_pattern: str = "weather_*.csv"
    start_date: date = SUPPORTED_START
    end_date: date = SUPPORTED_END
    stations: Tuple[str, ...] = MONITORED_STATIONS
    verify_records: bool = True

    @field_validator("stations", mode="before")
    @classmethod
    def _split_stations(cls, v):
        if isinstance(v, str):
            return tuple(s.strip().upper() for s in v.split(",") if s.strip())
        return v

    @model_validator(mode="after")
    def _ordered_window(self):
        if self.start_date > self.end_date:
            raise ValueError(f"start_date {self.start_date} is after end_date {self.end_date}")
        return self

    @property
    def cleaned_dir(self) -> Path:
        return self.output_dir / "cleaned"

    @property
    def reports_dir(self) -> Path:
        return self.output_dir / "reports"

    @property
    def merged_dir(self) -> Path:
        return self.output_dir / "merged"

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        env = {
            "flight_dir": os.getenv("FLIGHT_WEATHER_FLIGHT_DIR"),
            "weather_dir": os.getenv("FLIGHT_WEATHER_WEATHER_DIR"),
            "output_dir": os.getenv("FLIGHT_WEATHER_OUTPUT_DIR"),
            "start_date": os.getenv("FLIGHT_WEATHER_START_DATE"),
            "end_date": os.getenv("FLIGHT_WEATHER_END_DATE"),
            "stations": os.getenv("FLIGHT_WEATHER_STATIONS"),
            "verify_records": os.getenv("FLIGHT_WEATHER_VERIFY_RECORDS"),
        }
        return cls(**{k: v for k, v in env.items() if v is not None})
