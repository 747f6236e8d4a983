"""
NYC Flight & Weather Cleansing DAG
==================================

This DAG downloads ASOS weather observations for JFK, LGA and EWR, cleans
the BTS flight extracts and the weather files with full quality reports,
then left-joins the cleaned flights to the weather on (airport, date, hour).

Prerequisites
-------------
- BTS extracts (``bts_*.csv``) already placed in the flight directory.
- Writable volumes for ``/data/downloads`` and ``/data/processed``.
- Python deps installed for operators and the project code.

Environment Variables
---------------------
- ``FLIGHT_WEATHER_FLIGHT_DIR``: raw flight files (default ``/data/downloads/bts``).
- ``FLIGHT_WEATHER_WEATHER_DIR``: raw weather files (default ``/data/downloads/weather``).
- ``FLIGHT_WEATHER_OUTPUT_DIR``: output root (default ``/data/processed``).
- ``FLIGHT_WEATHER_START_DATE`` / ``FLIGHT_WEATHER_END_DATE``: supported window.
- ``FLIGHT_WEATHER_STATIONS``: monitored airports, comma separated.

Data Paths
----------
- Cleaned tables: ``/data/processed/cleaned``
- Quality reports: ``/data/processed/reports``
- Merged table: ``/data/processed/merged``

Notes
-----
- The weather download tasks run in parallel.
- Flight cleansing does not depend on the downloads and starts immediately.
- The merge runs once both cleansing tasks have written their tables.
"""
import sys
from pathlib import Path
from datetime import datetime, timedelta

from airflow import DAG
from airflow.operators.python import PythonOperator
from airflow.operators.empty import EmptyOperator


sys.path.append(Path.joinpath(Path(__file__).parent.parent, "src").as_posix())

from nyc_flight_weather.config import PipelineSettings
from nyc_flight_weather.download import make_weather_download_task
from nyc_flight_weather.load import (
    process_flight_files,
    process_weather_files,
    process_merge,
)

settings = PipelineSettings.from_env()

default_args = {
    "owner": "airflow",
    "retries": 1,
    "retry_delay": timedelta(minutes=1),
}

with DAG(
    dag_id=Path(__file__).stem,
    start_date=datetime(2024, 1, 1),
    schedule=None,
    catchup=False,
    default_args=default_args,
    tags=["nyc", "bts", "weather", "data_quality"],
) as dag:

    dag.doc_md = """
    NYC Flight & Weather Cleansing DAG
    ==================================

    **Purpose**
      Produces cleaned BTS flights, cleaned ASOS weather and the merged
      flight/weather table, with a quality report trail for every dropped
      or repaired row.

    **Flow**
      #. Download ASOS weather per station and year in parallel.
      #. Clean flights (independent of the downloads).
      #. Clean weather once all downloads finished.
      #. Merge cleaned flights with cleaned weather.

    **Storage Layout**
      - Downloads: ``/data/downloads/{bts,weather}``
      - Outputs: ``/data/processed/{cleaned,reports,merged}``
    """

    weather_tasks = []
    for year in range(settings.start_date.year, settings.end_date.year + 1):
        for station in settings.stations:
            weather_tasks.append(
                make_weather_download_task(dag, station, year, settings.weather_dir.as_posix())
            )

    join_downloads = EmptyOperator(task_id="join_downloads")

    clean_flights_task = PythonOperator(
        task_id="process_flight_files",
        python_callable=process_flight_files,
        op_kwargs={"settings": settings},
        execution_timeout=timedelta(hours=2),
    )
    clean_flights_task.doc_md = """
    Process Flight Files
    --------------------

    **Steps**
      #. Read every ``bts_*.csv`` as text, in filename order.
      #. Normalize types, derive the flight hour, keep JFK/LGA/EWR departures.
      #. Write completeness, consistency, validity and outlier reports.
      #. Clean (date window, terminal events, delay imputation, patterns,
         IQR clamping, deduplication) and write ``bts_cleaned_data.csv``.
    """

    clean_weather_task = PythonOperator(
        task_id="process_weather_files",
        python_callable=process_weather_files,
        op_kwargs={"settings": settings},
        execution_timeout=timedelta(hours=1),
    )
    clean_weather_task.doc_md = """
    Process Weather Files
    ---------------------

    **Steps**
      #. Read every ``weather_*.csv`` as text, in filename order.
      #. Normalize types, derive date/hour keys, keep monitored stations.
      #. Write quality reports.
      #. Clean (timestamp window, station and code checks, deduplication,
         physical-limit clamping) and write ``weather_cleaned_data.csv``.
    """

    merge_task = PythonOperator(
        task_id="process_merge",
        python_callable=process_merge,
        op_kwargs={"settings": settings},
        execution_timeout=timedelta(hours=1),
    )

    weather_tasks >> join_downloads >> clean_weather_task
    [clean_flights_task, clean_weather_task] >> merge_task
