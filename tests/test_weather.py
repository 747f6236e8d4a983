from datetime import datetime

import polars as pl
from polars.testing import assert_frame_equal

from nyc_flight_weather.weather import PHYSICAL_BOUNDS, check_weather, clean_weather, prepare_weather, process_weather

from conftest import raw_weather


def _clean(*rows, **kwargs):
    return clean_weather(prepare_weather(raw_weather(*rows)), **kwargs)


def test_prepare_keeps_monitored_stations_and_adds_keys():
    df = prepare_weather(raw_weather({"station": "JFK"}, {"station": "BOS"}, {"station": "LGA"}))
    assert df["station"].to_list() == ["JFK", "LGA"]
    assert df["valid_hour"].to_list() == [datetime(2023, 2, 10, 9)] * 2


def test_temperature_clamped_to_physical_limit():
    row = _clean({"station": "JFK", "tmpf": "200"}).cleaned.row(0, named=True)
    assert row["tmpf"] == 120


def test_precipitation_and_visibility_clamped():
    result = _clean(
        {"valid": "2023-02-10 09:51", "tmpf": "-60", "p01i": "-1", "vsby": "15"},
        {"valid": "2023-02-10 10:51", "p01i": "12.5", "vsby": "0.25"},
    )
    assert result.cleaned["tmpf"].to_list() == [-40.0, 35.1]
    assert result.cleaned["p01i"].to_list() == [0.0, 10.0]
    assert result.cleaned["vsby"].to_list() == [10.0, 0.25]


def test_out_of_window_timestamps_dropped():
    result = _clean(
        {"valid": "2014-12-31 23:51"},
        {"valid": "2015-01-01 00:51"},
        {"valid": "2024-12-31 23:51"},
        {"valid": "2025-01-01 00:51"},
        {"valid": "garbage"},
    )
    assert result.cleaned["valid"].to_list() == [datetime(2015, 1, 1, 0, 51), datetime(2024, 12, 31, 23, 51)]
    assert result.invalid_dates.height == 3


def test_wxcodes_pattern():
    result = _clean(
        {"valid": "2023-02-10 01:51", "wxcodes": "-RA BR"},
        {"valid": "2023-02-10 02:51", "wxcodes": "+TSRA"},
        {"valid": "2023-02-10 03:51", "wxcodes": "ra"},
        {"valid": "2023-02-10 04:51", "wxcodes": "null"},
    )
    assert result.cleaned["wxcodes"].to_list() == ["-RA BR", "+TSRA", None, None]


def test_duplicate_station_timestamps_keep_first():
    result = _clean({"tmpf": "30"}, {"tmpf": "31"}, {"station": "LGA", "tmpf": "32"})
    assert result.cleaned["tmpf"].to_list() == [30.0, 32.0]
    assert result.duplicates["kept"].to_list() == [True, False]


def test_deduplication_happens_before_clamping():
    # both rows collapse to the first one, which is then clamped
    result = _clean({"tmpf": "500"}, {"tmpf": "50"})
    assert result.cleaned["tmpf"].to_list() == [120.0]


def test_station_outside_monitored_set_is_nulled():
    df = prepare_weather(raw_weather({"station": "JFK"}, {"station": "LGA"}))
    result = clean_weather(df, stations=("JFK",))
    assert result.cleaned["station"].to_list() == ["JFK", None]


def test_cleaning_is_idempotent():
    first = _clean(
        {"valid": "2023-02-10 01:51", "tmpf": "130", "wxcodes": "bad"},
        {"valid": "2023-02-10 01:51", "tmpf": "10"},
        {"valid": "2023-02-10 02:51", "vsby": "11"},
        {"valid": "2013-02-10 02:51"},
    )
    second = clean_weather(first.cleaned)
    assert_frame_equal(first.cleaned, second.cleaned)
    assert not first.cleaned.select(["station", "valid"]).is_duplicated().any()


def test_check_weather_report():
    df = prepare_weather(raw_weather(
        {"valid": "2023-02-10 01:51", "wxcodes": "ra", "tmpf": "150"},
        {"valid": "2023-02-10 01:51"},
        {"valid": "2010-02-10 01:51", "station": "LGA"},
    ))
    report = check_weather(df)

    stations = {r["station"]: r["Count"] for r in report["station_summary"].iter_rows(named=True)}
    assert stations == {"JFK": 2, "LGA": 1}
    assert report["duplicate_check"]["Count"].to_list() == [2]

    strings = {r["Field"]: r["Invalid_Count"] for r in report["string_check"].iter_rows(named=True)}
    assert strings == {"station": 0, "wxcodes": 1}
    assert report["date_check"]["Invalid_Count"].to_list() == [1]
    assert report["outliers"]["tmpf"].to_list() == [150.0]

    ranges = report["ranges"].filter(pl.col("Field") == "tmpf").row(0, named=True)
    assert (ranges["Min"], ranges["Max"]) == (35.1, 150.0)
    assert report["outlier_bounds"].height == len(PHYSICAL_BOUNDS)


def test_process_weather_yearly_totals():
    cleaned, report = process_weather(raw_weather(
        {"valid": "2019-06-01 00:51"},
        {"valid": "2019-06-01 01:51"},
        {"valid": "2020-06-01 00:51"},
    ))
    assert cleaned.height == 3
    totals = {r["Year"]: r["Total_Observations"] for r in report["yearly_totals"].iter_rows(named=True)}
    assert totals == {2019: 2, 2020: 1}


def test_station_check_counts_unmonitored_stations_only_before_filtering():
    raw = raw_weather({"station": "JFK"}, {"station": "BOS"})
    unfiltered = check_weather(prepare_weather(raw, stations=("JFK", "BOS")))
    filtered = check_weather(prepare_weather(raw))

    def station_invalid(report):
        return report["string_check"].filter(pl.col("Field") == "station")["Invalid_Count"].item()

    assert station_invalid(unfiltered) == 1
    assert station_invalid(filtered) == 0
