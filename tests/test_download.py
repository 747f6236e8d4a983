import pytest

pytest.importorskip("airflow")

from nyc_flight_weather import download  # noqa: E402


def test_asos_request_covers_one_year_in_utc():
    url, params = download.asos_request("JFK", 2023)
    assert url == download.ASOS_URL
    assert ("station", "JFK") in params
    assert [v for k, v in params if k == "data"] == list(download.ASOS_FIELDS)
    assert ("year1", "2023") in params and ("year2", "2024") in params
    assert ("tz", "Etc/UTC") in params
    assert ("missing", "null") in params


class _Response:
    url = "https://example.invalid/asos.py?station=JFK"

    def raise_for_status(self):
        pass

    def iter_content(self, chunk_size):
        yield b"station,valid,tmpf\n"
        yield b"JFK,2023-01-01 00:51,35.1\n"


def test_download_file_streams_to_disk(monkeypatch, tmp_path):
    calls = {}

    def fake_get(url, params=None, stream=False, timeout=None):
        calls.update(url=url, params=params, stream=stream)
        return _Response()

    monkeypatch.setattr(download.requests, "get", fake_get)
    out = tmp_path / "nested" / "weather_JFK_2023.csv"
    download.download_file("https://example.invalid/asos.py", str(out), params=[("station", "JFK")])

    assert out.read_text().splitlines() == ["station,valid,tmpf", "JFK,2023-01-01 00:51,35.1"]
    assert calls["stream"] is True
    assert calls["params"] == [("station", "JFK")]


def test_weather_download_task_factory(tmp_path):
    from airflow import DAG
    from datetime import datetime

    with DAG(dag_id="t", start_date=datetime(2024, 1, 1), schedule=None) as dag:
        task = download.make_weather_download_task(dag, "LGA", 2020, str(tmp_path))
    assert task.task_id == "download_weather_LGA_2020"
    assert task.op_kwargs["output_path"].endswith("weather_LGA_2020.csv")
