"""
Orchestration of the cleansing and merge run over files on disk.

This module provides:
- Flight file cleansing with quality reports (:func:`process_flight_files`)
- Weather file cleansing with quality reports (:func:`process_weather_files`)
- Merge of the cleaned outputs (:func:`process_merge`)
- A single in-process run of all three (:func:`run_pipeline`)

The ``process_*`` functions are used directly as Airflow ``PythonOperator``
callables and only return small summaries; the tables themselves go to the
directories named in :class:`~nyc_flight_weather.config.PipelineSettings`.
"""

import logging
from typing import List, Optional, Tuple, Type

import polars as pl
from pydantic import BaseModel

from . import quality
from .config import PipelineSettings
from .flights import process_flights
from .merge import MergeResult, merge_flights_weather
from .models import FlightRecord, MergedRecord, WeatherRecord
from .normalize import normalize_frame
from .parse import list_raw_files, read_raw_files, write_table
from .schema import FLIGHT_SCHEMA, WEATHER_SCHEMA
from .timekeys import add_flight_keys, add_weather_keys
from .weather import process_weather

logger = logging.getLogger(__name__)

FLIGHTS_CLEANED_FILE = "bts_cleaned_data.csv"
WEATHER_CLEANED_FILE = "weather_cleaned_data.csv"
MERGED_FILE = "merged_flights_data.csv"
MERGE_SUMMARY_FILE = "merge_summary.csv"
UNMATCHED_FILE = "unmatched_weather_rows.csv"


def load_raw(directory, pattern: str, label: str) -> Tuple[pl.DataFrame, List[dict]]:
    """
    Read every raw file of one kind.

    Raises
    ------
    FileNotFoundError
        If no file in ``directory`` matches ``pattern``.
    """
    if not list_raw_files(directory, pattern):
        raise FileNotFoundError(f"[{label}] no files matching {pattern!r} in {directory}")
    raw, invalid = read_raw_files(directory, pattern)
    if invalid:
        logger.warning("[%s] %d file(s) could not be read and were skipped", label, len(invalid))
    return raw, invalid


def verify_records(df: pl.DataFrame, model: Type[BaseModel], report: quality.QualityReport) -> int:
    """Check cleaned rows against ``model``; failures become a report table."""
    _, invalid = quality.validate_rows(df, model, report.dataset)
    if invalid:
        logger.warning("[%s] %d cleaned row(s) fail the %s contract", report.dataset, len(invalid), model.__name__)
        report.add("contract_violations", quality.violations_table(invalid))
    return len(invalid)


def _unreadable_table(invalid: List[dict]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "file": [i["file"] for i in invalid],
            "errors": ["; ".join(e["msg"] for e in i["errors"]) for i in invalid],
        },
        schema={"file": pl.String, "errors": pl.String},
    )


def _log_summary(title: str, input_rows: int, cleaned: pl.DataFrame, report: quality.QualityReport) -> None:
    logger.info("=== %s ===", title)
    logger.info("Input Rows: %d", input_rows)
    logger.info("Cleaned Rows: %d", cleaned.height)
    for row in report["yearly_totals"].iter_rows(named=True):
        logger.info("  %s", row)


def clean_flight_files(settings: PipelineSettings) -> Tuple[pl.DataFrame, quality.QualityReport]:
    """
    Read, check and clean every flight file, writing the cleaned table and reports.

    Parameters
    ----------
    settings
        Input/output locations and validation window.

    Returns
    -------
    tuple[polars.DataFrame, QualityReport]
        Cleaned flights and their report (already written to disk).
    """
    raw, invalid = load_raw(settings.flight_dir, settings.flight_pattern, "bts")
    cleaned, report = process_flights(
        raw,
        FLIGHT_SCHEMA,
        stations=settings.stations,
        start=settings.start_date,
        end=settings.end_date,
    )
    if invalid:
        report.add("unreadable_files", _unreadable_table(invalid))
    if settings.verify_records:
        verify_records(cleaned, FlightRecord, report)

    write_table(cleaned, settings.cleaned_dir / FLIGHTS_CLEANED_FILE)
    report.write(settings.reports_dir)
    _log_summary("BTS Data Quality Summary", raw.height, cleaned, report)
    return cleaned, report


def clean_weather_files(settings: PipelineSettings) -> Tuple[pl.DataFrame, quality.QualityReport]:
    """
    Read, check and clean every weather file, writing the cleaned table and reports.
    """
    raw, invalid = load_raw(settings.weather_dir, settings.weather_pattern, "weather")
    cleaned, report = process_weather(
        raw,
        WEATHER_SCHEMA,
        stations=settings.stations,
        start=settings.start_date,
        end=settings.end_date,
    )
    if invalid:
        report.add("unreadable_files", _unreadable_table(invalid))
    if settings.verify_records:
        verify_records(cleaned, WeatherRecord, report)

    write_table(cleaned, settings.cleaned_dir / WEATHER_CLEANED_FILE)
    report.write(settings.reports_dir)
    _log_summary("Weather Data Quality Summary", raw.height, cleaned, report)
    return cleaned, report


def read_cleaned(settings: PipelineSettings) -> Tuple[pl.DataFrame, pl.DataFrame]:
    """
    Read the cleaned flight and weather tables back with their typed schemas.

    The hour keys are recomputed rather than trusted from the text files.
    """
    flights = pl.read_csv(settings.cleaned_dir / FLIGHTS_CLEANED_FILE, infer_schema=False)
    weather = pl.read_csv(settings.cleaned_dir / WEATHER_CLEANED_FILE, infer_schema=False)
    flights = add_flight_keys(normalize_frame(flights, FLIGHT_SCHEMA))
    weather = add_weather_keys(normalize_frame(weather, WEATHER_SCHEMA))
    return flights, weather


def verify_merge(result: MergeResult, settings: PipelineSettings) -> int:
    """Check merged rows against :class:`MergedRecord`.

    Failures are written to ``merge_contract_violations.csv``; nothing is
    written when every row passes or verification is switched off.
    """
    if not settings.verify_records:
        return 0
    report = quality.QualityReport("merge")
    failed = verify_records(result.merged, MergedRecord, report)
    report.write(settings.reports_dir)
    return failed


def write_merge(result: MergeResult, settings: PipelineSettings) -> None:
    write_table(result.merged, settings.merged_dir / MERGED_FILE)
    write_table(result.summary, settings.reports_dir / MERGE_SUMMARY_FILE)
    write_table(result.unmatched, settings.reports_dir / UNMATCHED_FILE)
    verify_merge(result, settings)


# ---------- Orchestrators used by DAG operator ----------

def process_flight_files(settings: Optional[PipelineSettings] = None) -> int:
    """
    Airflow callable: clean all flight files.

    Returns
    -------
    int
        Number of cleaned flight rows written.
    """
    settings = settings or PipelineSettings.from_env()
    cleaned, _ = clean_flight_files(settings)
    return cleaned.height


def process_weather_files(settings: Optional[PipelineSettings] = None) -> int:
    """
    Airflow callable: clean all weather files.

    Returns
    -------
    int
        Number of cleaned weather rows written.
    """
    settings = settings or PipelineSettings.from_env()
    cleaned, _ = clean_weather_files(settings)
    return cleaned.height


def process_merge(settings: Optional[PipelineSettings] = None) -> dict:
    """
    Airflow callable: merge the cleaned tables written by the two cleansing tasks.

    Returns
    -------
    dict
        The single merge summary row.
    """
    settings = settings or PipelineSettings.from_env()
    flights, weather = read_cleaned(settings)
    result = merge_flights_weather(flights, weather)
    write_merge(result, settings)
    return result.summary.row(0, named=True)


def run_pipeline(settings: PipelineSettings) -> MergeResult:
    """
    Clean both datasets and merge them in one process, writing every output.

    Examples
    --------
    >>> result = run_pipeline(PipelineSettings(output_dir=Path("/tmp/out")))
    >>> result.summary["Match_Rate"][0]
    97.4
    """
    flights, _ = clean_flight_files(settings)
    weather, _ = clean_weather_files(settings)
    result = merge_flights_weather(flights, weather)
    write_merge(result, settings)
    return result


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_pipeline(PipelineSettings.from_env())


if __name__ == "__main__":
    main()
