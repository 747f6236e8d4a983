"""Validation and cleansing of ASOS weather observations.

Same shape as :mod:`.flights`, with one difference: outliers are judged and
clamped against fixed physical limits instead of the data's own quartiles.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Sequence, Tuple

import polars as pl

from . import quality
from .models import OutlierBounds
from .normalize import normalize_frame
from .schema import MONITORED_STATIONS, SUPPORTED_END, SUPPORTED_START, WEATHER_SCHEMA, DatasetSchema, FieldKind
from .timekeys import add_weather_keys

logger = logging.getLogger(__name__)

WEATHER_KEY = ("station", "valid")
WXCODES_PATTERN = r"^[A-Z+\-, ]+$"

# Temperature in F, one hour precipitation in inches, visibility in miles.
PHYSICAL_BOUNDS: Tuple[OutlierBounds, ...] = (
    OutlierBounds(field="tmpf", lower=-40.0, upper=120.0),
    OutlierBounds(field="p01i", lower=0.0, upper=10.0),
    OutlierBounds(field="vsby", lower=0.0, upper=10.0),
)


@dataclass(frozen=True)
class WeatherCleaningResult:
    cleaned: pl.DataFrame
    invalid_dates: pl.DataFrame
    duplicates: pl.DataFrame


def prepare_weather(
    raw: pl.DataFrame,
    schema: DatasetSchema = WEATHER_SCHEMA,
    stations: Sequence[str] = MONITORED_STATIONS,
) -> pl.DataFrame:
    """Normalize raw rows, add date/hour keys and keep monitored stations."""
    typed = add_weather_keys(normalize_frame(raw, schema))
    prepared = typed.filter(pl.col("station").is_in(list(stations)))
    logger.info("[weather] %d raw row(s), %d from %s", raw.height, prepared.height, "/".join(stations))
    return prepared


def check_weather(
    df: pl.DataFrame,
    schema: DatasetSchema = WEATHER_SCHEMA,
    stations: Sequence[str] = MONITORED_STATIONS,
    start: date = SUPPORTED_START,
    end: date = SUPPORTED_END,
) -> quality.QualityReport:
    """Quality report over a prepared, not yet cleaned, weather frame."""
    report = quality.QualityReport("weather")
    report.add("missing_summary", quality.missing_summary(df))
    report.add("station_summary", quality.frequency(df, "station"))
    report.add("duplicate_check", quality.duplicate_groups(df, WEATHER_KEY))
    report.add("ranges", quality.numeric_ranges(df, schema.names(FieldKind.NUMERIC)))

    # Always 0 once prepare_weather has filtered to the monitored stations.
    station_row = pl.DataFrame(
        {
            "Field": ["station"],
            "Rule": ["|".join(stations)],
            "Invalid_Count": [quality.value_violations(df, "station", stations)],
            "Null_Count": [df["station"].null_count()],
        },
        schema={"Field": pl.String, "Rule": pl.String, "Invalid_Count": pl.Int64, "Null_Count": pl.Int64},
    )
    report.add("string_check", pl.concat([station_row, quality.pattern_violations(df, [("wxcodes", WXCODES_PATTERN)])]))
    report.add("date_check", pl.DataFrame(
        {"Field": ["valid"], "Invalid_Count": [quality.date_violations(df, "valid", start, end, is_datetime=True)]},
        schema={"Field": pl.String, "Invalid_Count": pl.Int64},
    ))

    flagged = pl.any_horizontal([quality.outside(b) for b in PHYSICAL_BOUNDS]).fill_null(False)
    report.add("outliers", df.filter(flagged))
    report.add("outlier_bounds", quality.bounds_table(PHYSICAL_BOUNDS, "fixed"))
    return report


def clean_weather(
    df: pl.DataFrame,
    stations: Sequence[str] = MONITORED_STATIONS,
    start: date = SUPPORTED_START,
    end: date = SUPPORTED_END,
) -> WeatherCleaningResult:
    """Apply the weather cleansing rules, in order.

    1. Drop rows whose ``valid`` date is null or outside ``[start, end]``.
    2. Null stations outside ``stations``.
    3. Null ``wxcodes`` that do not match ``[A-Z+\\-, ]+``.
    4. Drop all but the first row per (station, timestamp).
    5. Clamp ``tmpf``, ``p01i`` and ``vsby`` to :data:`PHYSICAL_BOUNDS`.
    """
    window = quality.in_window("valid", start, end, is_datetime=True)
    invalid_dates = df.filter(~window.fill_null(False)).with_columns(
        pl.lit("RangeExclusion").alias("removal_reason")
    )
    out = df.filter(window)

    wx = pl.col("wxcodes")
    out = out.with_columns(
        pl.when(pl.col("station").is_in(list(stations))).then(pl.col("station"))
        .otherwise(pl.lit(None, dtype=pl.String)).alias("station"),
        pl.when(wx.str.contains(WXCODES_PATTERN)).then(wx)
        .otherwise(pl.lit(None, dtype=pl.String)).alias("wxcodes"),
    )

    duplicates = quality.duplicate_members(out, WEATHER_KEY)
    out = out.unique(subset=list(WEATHER_KEY), keep="first", maintain_order=True)

    out = out.with_columns([quality.clamp(b) for b in PHYSICAL_BOUNDS])

    logger.info(
        "[weather] cleaned %d -> %d row(s): %d invalid timestamp(s), %d duplicate(s) dropped",
        df.height, out.height, invalid_dates.height, duplicates.filter(~pl.col("kept")).height,
    )
    return WeatherCleaningResult(cleaned=out, invalid_dates=invalid_dates, duplicates=duplicates)


def process_weather(
    raw: pl.DataFrame,
    schema: DatasetSchema = WEATHER_SCHEMA,
    stations: Sequence[str] = MONITORED_STATIONS,
    start: date = SUPPORTED_START,
    end: date = SUPPORTED_END,
) -> Tuple[pl.DataFrame, quality.QualityReport]:
    """Prepare, check and clean raw weather rows."""
    prepared = prepare_weather(raw, schema, stations)
    report = check_weather(prepared, schema, stations, start, end)
    result = clean_weather(prepared, stations, start, end)

    report.add("invalid_dates", result.invalid_dates)
    report.add("duplicates", result.duplicates)
    report.add("yearly_totals", quality.yearly_totals(result.cleaned, "valid", "Total_Observations"))
    return result.cleaned, report
