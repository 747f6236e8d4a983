import math
from datetime import datetime

import polars as pl
import pytest

from nyc_flight_weather.flights import clean_flights, prepare_flights
from nyc_flight_weather.merge import UNMATCHED_FIELDS, WEATHER_FIELDS, merge_flights_weather, merge_summary
from nyc_flight_weather.models import MatchOutcome
from nyc_flight_weather.weather import clean_weather, prepare_weather

from conftest import raw_flights, raw_weather


def _flights(*rows):
    return clean_flights(prepare_flights(raw_flights(*rows))).cleaned


def _weather(*rows):
    return clean_weather(prepare_weather(raw_weather(*rows))).cleaned


def test_flight_matches_observation_in_same_hour():
    result = merge_flights_weather(
        _flights({"DEP_TIME": "0930"}),
        _weather({"valid": "2023-02-10 09:51", "p01i": "0.02", "wxcodes": "-RA"}),
    )
    row = result.merged.row(0, named=True)
    assert row["merge_status"] == MatchOutcome.MATCHED.value
    assert row["wxcodes"] == "-RA"
    assert row["p01i"] == pytest.approx(0.02)
    assert row["valid"] == datetime(2023, 2, 10, 9, 51)


def test_no_observation_at_flight_hour():
    result = merge_flights_weather(
        _flights({"ORIGIN": "JFK", "DEP_TIME": "0930"}),
        _weather({"station": "JFK", "valid": "2023-02-10 11:51"}, {"station": "LGA", "valid": "2023-02-10 09:51"}),
    )
    row = result.merged.row(0, named=True)
    assert row["merge_status"] == MatchOutcome.NO_WEATHER_MATCH.value
    assert all(row[f] is None for f in WEATHER_FIELDS)
    assert result.unmatched.height == 1


def test_joined_row_without_codes_or_precipitation_is_unmatched():
    result = merge_flights_weather(
        _flights({"DEP_TIME": "0930"}),
        _weather({"valid": "2023-02-10 09:51", "p01i": "null", "wxcodes": "null", "tmpf": "40"}),
    )
    row = result.merged.row(0, named=True)
    assert row["tmpf"] == 40.0
    assert row["merge_status"] == MatchOutcome.NO_WEATHER_MATCH.value


def test_first_observation_in_hour_wins_and_rows_are_conserved():
    flights = _flights(
        {"OP_CARRIER_FL_NUM": "1", "DEP_TIME": "0905"},
        {"OP_CARRIER_FL_NUM": "2", "DEP_TIME": "0955"},
    )
    weather = _weather(
        {"valid": "2023-02-10 09:51", "tmpf": "41"},
        {"valid": "2023-02-10 09:10", "tmpf": "39"},
    )
    result = merge_flights_weather(flights, weather)
    assert result.merged.height == flights.height
    assert result.merged["tmpf"].to_list() == [41.0, 41.0]
    assert result.merged["OP_CARRIER_FL_NUM"].to_list() == ["1", "2"]


def test_flight_without_departure_time_is_kept_unmatched():
    flights = _flights(
        {"OP_CARRIER_FL_NUM": "1", "DEP_TIME": "0930"},
        {"OP_CARRIER_FL_NUM": "2", "DEP_TIME": "", "CANCELLED": "1"},
    )
    result = merge_flights_weather(flights, _weather({"valid": "2023-02-10 09:51"}))
    assert result.merged.height == 2
    assert result.merged["merge_status"].to_list() == ["Matched", "No Weather Match"]
    assert result.unmatched.columns == list(UNMATCHED_FIELDS)
    assert result.unmatched["flight_hour"].to_list() == [None]


def test_date_is_part_of_the_key():
    result = merge_flights_weather(
        _flights({"FL_DATE": "2023-02-11", "DEP_TIME": "0930"}),
        _weather({"valid": "2023-02-10 09:51"}),
    )
    assert result.merged["merge_status"].to_list() == ["No Weather Match"]


def test_summary_counts_are_consistent():
    flights = _flights(*[{"OP_CARRIER_FL_NUM": str(i), "DEP_TIME": f"{h:02d}15"} for i, h in enumerate(range(6, 13))])
    weather = _weather(*[{"valid": f"2023-02-10 {h:02d}:51"} for h in (6, 7, 9)])
    summary = merge_flights_weather(flights, weather).summary.row(0, named=True)
    assert summary["Total_Flights"] == 7
    assert summary["Matched_Weather"] == 3
    assert summary["Matched_Weather"] + summary["Unmatched_Weather"] == summary["Total_Flights"]
    assert math.isclose(summary["Match_Rate"], 3 / 7 * 100)


def test_summary_of_empty_merge():
    summary = merge_summary(pl.DataFrame({"merge_status": []}, schema={"merge_status": pl.String}))
    assert summary.row(0) == (0, 0, 0, 0.0)
