from datetime import date, datetime

import polars as pl
import pytest

from nyc_flight_weather.timekeys import add_flight_keys, add_weather_keys


def _flight(dep_time):
    df = pl.DataFrame(
        {"FL_DATE": [date(2023, 2, 10)], "DEP_TIME": [dep_time]},
        schema={"FL_DATE": pl.Date, "DEP_TIME": pl.String},
    )
    return add_flight_keys(df).row(0, named=True)


@pytest.mark.parametrize("dep_time", ["930", "0930", "930.0", " 0930 "])
def test_departure_time_is_zero_padded(dep_time):
    row = _flight(dep_time)
    assert row["flight_time"] == datetime(2023, 2, 10, 9, 30)
    assert row["flight_hour"] == datetime(2023, 2, 10, 9, 0)


def test_just_after_midnight():
    row = _flight("5")
    assert row["flight_time"] == datetime(2023, 2, 10, 0, 5)
    assert row["flight_hour"] == datetime(2023, 2, 10, 0, 0)


@pytest.mark.parametrize("dep_time", [None, "", "abc", "2400", "1375"])
def test_missing_or_bad_time_gives_null_key(dep_time):
    row = _flight(dep_time)
    assert row["flight_time"] is None
    assert row["flight_hour"] is None


def test_null_date_gives_null_key():
    df = pl.DataFrame({"FL_DATE": [None], "DEP_TIME": ["0930"]}, schema={"FL_DATE": pl.Date, "DEP_TIME": pl.String})
    assert add_flight_keys(df)["flight_hour"].to_list() == [None]


def test_weather_keys():
    df = pl.DataFrame({"valid": [datetime(2023, 2, 10, 9, 51), None]}, schema={"valid": pl.Datetime("us")})
    out = add_weather_keys(df)
    assert out["valid_hour"].to_list() == [datetime(2023, 2, 10, 9, 0), None]
    assert out["valid_date"].to_list() == [date(2023, 2, 10), None]
