"""Validation and cleansing of BTS flight records.

The flow for one run is:

- :func:`prepare_flights` types the raw text columns, derives the
  ``flight_hour`` join key and keeps departures from the monitored airports.
- :func:`check_flights` builds the quality report over that pre-cleaning
  snapshot (completeness, consistency, validity, outliers).
- :func:`clean_flights` applies the repair rules in a fixed order and keeps
  a log of every row it drops.
- :func:`process_flights` runs the three and returns the cleaned frame and
  the complete :class:`~.quality.QualityReport`.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence, Tuple

import polars as pl

from . import quality
from .models import CANCELLATION_CODES, DELAY_FIELDS, OutlierBounds
from .normalize import normalize_frame
from .schema import FLIGHT_SCHEMA, MONITORED_STATIONS, SUPPORTED_END, SUPPORTED_START, DatasetSchema, FieldKind
from .timekeys import add_flight_keys

logger = logging.getLogger(__name__)

FLIGHT_KEY = ("FL_DATE", "OP_CARRIER_FL_NUM", "ORIGIN")
DIVERSION_FIELDS = ("DIV1_AIRPORT", "DIV1_AIRPORT_ID")
ID_RULES = (
    ("ORIGIN_AIRPORT_ID", r"^[0-9]+$"),
    ("DEST_AIRPORT_ID", r"^[0-9]+$"),
    ("OP_CARRIER_AIRLINE_ID", r"^[0-9]+$"),
)
STRING_RULES = (
    ("TAIL_NUM", r"^[A-Z0-9]+$"),
    ("OP_CARRIER_FL_NUM", r"^[0-9]+$"),
    ("CRS_DEP_TIME", r"^[0-9]{4}$"),
)


@dataclass(frozen=True)
class FlightCleaningResult:
    """Output of :func:`clean_flights`.

    ``bounds`` holds the departure-delay and weather-delay clamp intervals
    actually applied, so a later run can reuse them.
    """
    cleaned: pl.DataFrame
    invalid_dates: pl.DataFrame
    duplicates: pl.DataFrame
    bounds: Tuple[OutlierBounds, OutlierBounds]


def prepare_flights(
    raw: pl.DataFrame,
    schema: DatasetSchema = FLIGHT_SCHEMA,
    stations: Sequence[str] = MONITORED_STATIONS,
) -> pl.DataFrame:
    """Normalize raw rows, add the join key and keep monitored origins."""
    typed = add_flight_keys(normalize_frame(raw, schema))
    prepared = typed.filter(pl.col("ORIGIN").is_in(list(stations)))
    logger.info("[bts] %d raw row(s), %d departing %s", raw.height, prepared.height, "/".join(stations))
    return prepared


def flight_outlier_bounds(df: pl.DataFrame) -> Tuple[OutlierBounds, OutlierBounds]:
    """IQR fences for departure delay and (non-negative) weather delay."""
    return (
        quality.iqr_bounds(df, "DEP_DELAY"),
        quality.iqr_bounds(df, "WEATHER_DELAY", floor=0.0),
    )


def check_flights(
    df: pl.DataFrame,
    schema: DatasetSchema = FLIGHT_SCHEMA,
    start: date = SUPPORTED_START,
    end: date = SUPPORTED_END,
) -> quality.QualityReport:
    """Quality report over a prepared, not yet cleaned, flight frame."""
    report = quality.QualityReport("bts")

    # Completeness
    report.add("missing_summary", quality.missing_summary(df))

    # Consistency
    ids = quality.pattern_violations(df, ID_RULES)
    report.add("id_consistency", ids.with_columns(
        (pl.col("Invalid_Count") + pl.col("Null_Count")).alias("Inconsistent")
    ))
    report.add("duplicate_check", quality.duplicate_groups(df, FLIGHT_KEY))
    report.add("cancellation_summary", quality.crosstab(df, "CANCELLED", "CANCELLATION_CODE"))
    report.add("diversion_summary", quality.crosstab(df, "DIVERTED", "DIV1_AIRPORT"))

    # Validity
    report.add("ranges", quality.numeric_ranges(df, schema.names(FieldKind.NUMERIC)))
    report.add("boolean_check", quality.boolean_violations(df, schema.names(FieldKind.BOOLEAN)))
    codes = pl.DataFrame(
        {
            "Field": ["CANCELLATION_CODE"],
            "Rule": ["|".join(CANCELLATION_CODES)],
            "Invalid_Count": [quality.value_violations(df, "CANCELLATION_CODE", CANCELLATION_CODES)],
            "Null_Count": [df["CANCELLATION_CODE"].null_count()],
        },
        schema={"Field": pl.String, "Rule": pl.String, "Invalid_Count": pl.Int64, "Null_Count": pl.Int64},
    )
    report.add("string_check", pl.concat([quality.pattern_violations(df, STRING_RULES), codes]))
    report.add("date_check", pl.DataFrame(
        {"Field": ["FL_DATE"], "Invalid_Count": [quality.date_violations(df, "FL_DATE", start, end)]},
        schema={"Field": pl.String, "Invalid_Count": pl.Int64},
    ))

    # Outliers
    bounds = flight_outlier_bounds(df)
    flagged = pl.any_horizontal([quality.outside(b) for b in bounds]).fill_null(False)
    report.add("outliers", df.filter(flagged))
    report.add("outlier_bounds", quality.bounds_table(bounds, "detection"))
    return report


def clean_flights(
    df: pl.DataFrame,
    schema: DatasetSchema = FLIGHT_SCHEMA,
    start: date = SUPPORTED_START,
    end: date = SUPPORTED_END,
    bounds: Optional[Tuple[OutlierBounds, OutlierBounds]] = None,
) -> FlightCleaningResult:
    """Apply the flight cleansing rules, in order.

    1. Drop rows whose ``FL_DATE`` is null or outside ``[start, end]``.
    2. Null the cancellation code unless cancelled (and keep only codes
       ``A``-``D``); null the diversion airport fields unless diverted.
    3. Zero-fill null delays of flights that were neither cancelled nor
       diverted.
    4. Null booleans that are not strictly true or false.
    5. Null tail number, flight number and scheduled departure time values
       that fail their patterns.
    6. Clamp ``DEP_DELAY`` and ``WEATHER_DELAY`` to their IQR fences,
       computed on the frame as it stands after step 5 unless ``bounds`` is
       given.
    7. Drop all but the first row per (date, flight number, origin).

    Parameters
    ----------
    df
        Prepared flight frame (see :func:`prepare_flights`). Not modified.
    schema
        Declared fields; its boolean fields are re-checked in step 4.
    start, end
        Inclusive supported date window.
    bounds
        Frozen ``(DEP_DELAY, WEATHER_DELAY)`` bounds from an earlier run.

    Returns
    -------
    FlightCleaningResult
    """
    window = quality.in_window("FL_DATE", start, end)
    invalid_dates = df.filter(~window.fill_null(False)).with_columns(
        pl.lit("RangeExclusion").alias("removal_reason")
    )
    out = df.filter(window)

    cancelled = pl.col("CANCELLED").fill_null(False)
    diverted = pl.col("DIVERTED").fill_null(False)
    code = pl.col("CANCELLATION_CODE")
    out = out.with_columns(
        pl.when(~cancelled).then(pl.lit(None, dtype=pl.String))
        .when(code.is_in(list(CANCELLATION_CODES))).then(code)
        .otherwise(pl.lit(None, dtype=pl.String))
        .alias("CANCELLATION_CODE"),
        *[
            pl.when(~diverted).then(pl.lit(None, dtype=pl.String)).otherwise(pl.col(c)).alias(c)
            for c in DIVERSION_FIELDS
        ],
    )

    completed = ~pl.col("CANCELLED") & ~pl.col("DIVERTED")
    out = out.with_columns([
        pl.when(completed & pl.col(c).is_null()).then(pl.lit(0.0)).otherwise(pl.col(c)).alias(c)
        for c in DELAY_FIELDS
    ])

    out = out.with_columns([
        pl.when(pl.col(c).is_in([True, False])).then(pl.col(c)).otherwise(pl.lit(None, dtype=pl.Boolean)).alias(c)
        for c in schema.names(FieldKind.BOOLEAN)
    ])

    out = out.with_columns([
        pl.when(pl.col(c).str.contains(pattern)).then(pl.col(c)).otherwise(pl.lit(None, dtype=pl.String)).alias(c)
        for c, pattern in STRING_RULES
    ])

    if bounds is None:
        bounds = flight_outlier_bounds(out)
    out = out.with_columns([quality.clamp(b) for b in bounds])

    duplicates = quality.duplicate_members(out, FLIGHT_KEY)
    out = out.unique(subset=list(FLIGHT_KEY), keep="first", maintain_order=True)

    logger.info(
        "[bts] cleaned %d -> %d row(s): %d invalid date(s), %d duplicate(s) dropped",
        df.height, out.height, invalid_dates.height, duplicates.filter(~pl.col("kept")).height,
    )
    return FlightCleaningResult(cleaned=out, invalid_dates=invalid_dates, duplicates=duplicates, bounds=bounds)


def process_flights(
    raw: pl.DataFrame,
    schema: DatasetSchema = FLIGHT_SCHEMA,
    stations: Sequence[str] = MONITORED_STATIONS,
    start: date = SUPPORTED_START,
    end: date = SUPPORTED_END,
    bounds: Optional[Tuple[OutlierBounds, OutlierBounds]] = None,
) -> Tuple[pl.DataFrame, quality.QualityReport]:
    """Prepare, check and clean raw flight rows.

    Returns the cleaned frame and a report holding the pre-cleaning checks,
    the removed-row logs, the bounds used for clamping and yearly totals.
    """
    prepared = prepare_flights(raw, schema, stations)
    report = check_flights(prepared, schema, start, end)
    result = clean_flights(prepared, schema, start, end, bounds)

    report.add("outlier_bounds", pl.concat([
        report["outlier_bounds"],
        quality.bounds_table(result.bounds, "cleaning"),
    ]))
    report.add("invalid_dates", result.invalid_dates)
    report.add("duplicates", result.duplicates)
    report.add("yearly_totals", quality.yearly_totals(result.cleaned, "FL_DATE", "Total_Flights"))
    return result.cleaned, report
