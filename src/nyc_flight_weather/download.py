"""Airflow tasks to download ASOS weather observations for the monitored airports.

This module exposes:

- :func:`download_file` – generic streamed downloader.
- :func:`asos_request` – URL and query parameters for one station-year.
- :func:`make_weather_download_task` – factory for yearly IEM ASOS CSV downloads.

BTS flight extracts are produced through the BTS web form and are expected
to be placed in the flight directory as ``bts_*.csv`` files.
"""
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from airflow import DAG
from airflow.operators.python import PythonOperator

import requests

ASOS_URL = "https://mesonet.agron.iastate.edu/cgi-bin/request/asos.py"
ASOS_FIELDS = ("tmpf", "dwpf", "drct", "sknt", "mslp", "p01i", "vsby", "gust", "wxcodes")


def download_file(
    url: str,
    output_path: str,
    params: Optional[Sequence[Tuple[str, str]]] = None,
):
    """Stream one ASOS (or any CSV) response to a local file.

    Parameters
    ----------
    url
        Service endpoint, normally :data:`ASOS_URL`.
    output_path
        Target CSV; missing parent directories are created.
    params
        Query parameters as ``(key, value)`` pairs rather than a dict, since
        the ASOS service expects ``data`` and ``report_type`` repeated once
        per requested field or report type (see :func:`asos_request`).

    Raises
    ------
    requests.HTTPError
        If the HTTP request returns a non-successful status code.
    """
    response = requests.get(url, params=params, stream=True, timeout=300)
    response.raise_for_status()
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "wb") as f:
        for chunk in response.iter_content(chunk_size=8192):
            f.write(chunk)
    print(f"Downloaded {response.url} → {output_path}")


def asos_request(station: str, year: int) -> Tuple[str, List[Tuple[str, str]]]:
    """Build the IEM ASOS request for one station and calendar year.

    Observations are requested in UTC as plain comma separated text, with
    missing values and trace precipitation written as ``null`` so they
    normalize to nulls.

    Parameters
    ----------
    station
        Three-letter station id (``"JFK"``, ``"LGA"``, ``"EWR"``).
    year
        Four-digit year; the range runs from Jan 1 of ``year`` to Jan 1 of
        the next year (exclusive).

    Returns
    -------
    tuple[str, list[tuple[str, str]]]
        Base URL and query parameters for :func:`download_file`.
    """
    params = [("station", station)]
    params += [("data", f) for f in ASOS_FIELDS]
    params += [
        ("year1", str(year)), ("month1", "1"), ("day1", "1"),
        ("year2", str(year + 1)), ("month2", "1"), ("day2", "1"),
        ("tz", "Etc/UTC"),
        ("format", "onlycomma"),
        ("latlon", "no"),
        ("elev", "no"),
        ("missing", "null"),
        ("trace", "null"),
        ("direct", "no"),
        ("report_type", "3"),
        ("report_type", "4"),
    ]
    return ASOS_URL, params


def make_weather_download_task(
    dag: DAG,
    station: str,
    year: int,
    output_path: str,
):
    """Create a PythonOperator to download one station-year of ASOS observations.

    The file is saved as ``{output_path}/weather_{station}_{year}.csv`` so the
    weather cleansing task picks it up in lexical order.

    Parameters
    ----------
    dag
        The DAG to attach this task to.
    station
        Three-letter station id.
    year
        Four-digit year.
    output_path
        Directory where the CSV file will be written.

    Returns
    -------
    airflow.operators.python.PythonOperator
        Configured operator that downloads the target file at runtime.
    """
    url, params = asos_request(station, year)
    output_path = f"{output_path}/weather_{station}_{year}.csv"

    return PythonOperator(
        task_id=f"download_weather_{station}_{year}",
        python_callable=download_file,
        op_kwargs={"url": url, "output_path": output_path, "params": params},
        dag=dag,
    )
