"""Hour-granularity join keys for flights and weather observations.

Both sides use naive timestamps that are read as UTC, so a flight hour and
an observation hour compare directly.
"""
import polars as pl

FLIGHT_TIME = "flight_time"
FLIGHT_HOUR = "flight_hour"
VALID_DATE = "valid_date"
VALID_HOUR = "valid_hour"


def hhmm_expr(time_col: str) -> pl.Expr:
    """Departure time text (``"930"``, ``"0930"``, ``"930.0"``) as zero-padded ``HHMM``."""
    t = (
        pl.col(time_col).cast(pl.String).str.strip_chars()
        .cast(pl.Float64, strict=False)
        .cast(pl.Int64, strict=False)
    )
    return t.cast(pl.String).str.zfill(4)


def flight_time_expr(date_col: str = "FL_DATE", time_col: str = "DEP_TIME") -> pl.Expr:
    """Flight date plus departure time as a single timestamp.

    Missing or unparseable times (including ``2400``) give null.
    """
    stamp = pl.concat_str([pl.col(date_col).dt.strftime("%Y-%m-%d"), pl.lit(" "), hhmm_expr(time_col)])
    return stamp.str.strptime(pl.Datetime("us"), "%Y-%m-%d %H%M", strict=False)


def add_flight_keys(df: pl.DataFrame, date_col: str = "FL_DATE", time_col: str = "DEP_TIME") -> pl.DataFrame:
    """Add ``flight_time`` and its floor-to-hour ``flight_hour``."""
    return (
        df.with_columns(flight_time_expr(date_col, time_col).alias(FLIGHT_TIME))
        .with_columns(pl.col(FLIGHT_TIME).dt.truncate("1h").alias(FLIGHT_HOUR))
    )


def add_weather_keys(df: pl.DataFrame, timestamp_col: str = "valid") -> pl.DataFrame:
    """Add ``valid_date`` and floor-to-hour ``valid_hour`` for observations."""
    ts = pl.col(timestamp_col)
    return df.with_columns(
        ts.dt.date().alias(VALID_DATE),
        ts.dt.truncate("1h").alias(VALID_HOUR),
    )
