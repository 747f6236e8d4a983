"""Left join of cleaned flights to cleaned weather on (station, date, hour)."""
import logging
from dataclasses import dataclass

import polars as pl

from .models import MatchOutcome
from .timekeys import FLIGHT_HOUR, VALID_DATE, VALID_HOUR

logger = logging.getLogger(__name__)

WEATHER_FIELDS = ("valid", "tmpf", "dwpf", "drct", "sknt", "mslp", "p01i", "vsby", "gust", "wxcodes")
UNMATCHED_FIELDS = ("flight_hour", "ORIGIN", "DEP_DELAY", "CANCELLED", "DIVERTED", "wxcodes", "p01i")

FLIGHT_JOIN_KEY = ["ORIGIN", "FL_DATE", FLIGHT_HOUR]
WEATHER_JOIN_KEY = ["station", VALID_DATE, VALID_HOUR]


@dataclass(frozen=True)
class MergeResult:
    merged: pl.DataFrame
    summary: pl.DataFrame
    unmatched: pl.DataFrame


def first_observation_per_hour(weather: pl.DataFrame) -> pl.DataFrame:
    """Keep the first observation of each (station, date, hour), in dataset order."""
    return (
        weather.select([*WEATHER_JOIN_KEY, *WEATHER_FIELDS])
        .unique(subset=WEATHER_JOIN_KEY, keep="first", maintain_order=True)
    )


def match_status_expr() -> pl.Expr:
    """``Matched`` iff the joined row carries weather codes or precipitation."""
    return (
        pl.when(pl.col("wxcodes").is_not_null() | pl.col("p01i").is_not_null())
        .then(pl.lit(MatchOutcome.MATCHED.value))
        .otherwise(pl.lit(MatchOutcome.NO_WEATHER_MATCH.value))
        .alias("merge_status")
    )


def merge_summary(merged: pl.DataFrame) -> pl.DataFrame:
    """Single-row totals: flights, matched, unmatched and match rate in percent."""
    total = merged.height
    matched = merged.filter(pl.col("merge_status") == MatchOutcome.MATCHED.value).height
    return pl.DataFrame(
        {
            "Total_Flights": [total],
            "Matched_Weather": [matched],
            "Unmatched_Weather": [total - matched],
            "Match_Rate": [matched / total * 100 if total else 0.0],
        },
        schema={
            "Total_Flights": pl.Int64, "Matched_Weather": pl.Int64,
            "Unmatched_Weather": pl.Int64, "Match_Rate": pl.Float64,
        },
    )


def merge_flights_weather(flights: pl.DataFrame, weather: pl.DataFrame) -> MergeResult:
    """Attach at most one weather observation to every cleaned flight.

    Flights are matched on ``ORIGIN``/``FL_DATE``/``flight_hour`` against
    ``station``/``valid_date``/``valid_hour``. When several observations
    share a station hour the first one in ``weather`` order is used, so the
    merged frame has exactly one row per flight, in flight order. Flights
    with a null ``flight_hour`` never match.

    Parameters
    ----------
    flights
        Cleaned flight frame with ``flight_hour``.
    weather
        Cleaned weather frame with ``valid_date`` and ``valid_hour``.

    Returns
    -------
    MergeResult
        ``merged`` (flights + weather fields + ``merge_status``), the
        one-row ``summary`` and the ``unmatched`` diagnostic listing.
    """
    hourly = first_observation_per_hour(weather)
    if hourly.height < weather.height:
        logger.info("[merge] %d extra observation(s) in already-covered station hours ignored",
                    weather.height - hourly.height)

    merged = (
        flights.with_row_index("_flight_row")
        .join(hourly, left_on=FLIGHT_JOIN_KEY, right_on=WEATHER_JOIN_KEY, how="left")
        .sort("_flight_row")
        .drop("_flight_row")
        .with_columns(match_status_expr())
    )

    summary = merge_summary(merged)
    unmatched = merged.filter(
        pl.col("merge_status") == MatchOutcome.NO_WEATHER_MATCH.value
    ).select(list(UNMATCHED_FIELDS))

    row = summary.row(0, named=True)
    logger.info(
        "[merge] %d flight(s): %d matched, %d without weather (%.2f%%)",
        row["Total_Flights"], row["Matched_Weather"], row["Unmatched_Weather"], row["Match_Rate"],
    )
    return MergeResult(merged=merged, summary=summary, unmatched=unmatched)
