from datetime import datetime

import pandas as pd
import pytest
import requests

from app.core import errors
from app.db.models.race import Race
from app.db.models.race_session import SessionName
from app.services import f1_provider
from app.services.f1_provider import (
    OpenF1Provider,
    fastest_lap_from_laps,
    normalize_fastf1_drivers,
    normalize_fastf1_results,
    normalize_fastf1_schedule,
    normalize_openf1_drivers,
    normalize_openf1_results,
    normalize_openf1_schedule,
    pick,
    to_naive_utc,
    unwrap_list,
)


def test_fastf1_results_classify_dnf_dns_dsq():
    results = pd.DataFrame([
        {"DriverNumber": "1", "ClassifiedPosition": "1", "Position": 1.0, "Status": "Finished", "Points": 25.0},
        {"DriverNumber": "44", "ClassifiedPosition": "2", "Position": 2.0, "Status": "+1 Lap", "Points": 18.0},
        {"DriverNumber": "16", "ClassifiedPosition": "R", "Position": 3.0, "Status": "Collision", "Points": 0.0},
        {"DriverNumber": "55", "ClassifiedPosition": "D", "Position": 4.0, "Status": "Disqualified", "Points": 0.0},
        {"DriverNumber": "63", "ClassifiedPosition": "W", "Position": None, "Status": "Did not start", "Points": 0.0},
    ])

    official = normalize_fastf1_results(results, fastest_lap_driver=44, pole_position_driver=1)

    assert [(p.position, p.driver_number) for p in official.positions] == [
        (1, 1), (2, 44), (3, 16), (4, 55), (5, 63),
    ]
    assert official.dnf_drivers == [16]
    assert official.fastest_lap_driver == 44
    assert official.pole_position_driver == 1


def test_fastf1_empty_results_is_fetch_error():
    with pytest.raises(errors.ExternalFetchError):
        normalize_fastf1_results(pd.DataFrame())


def test_fastf1_schedule_skips_testing_and_maps_sessions():
    schedule = pd.DataFrame([
        {
            "RoundNumber": 0, "EventName": "Pre-Season Testing", "Location": "Sakhir", "Country": "Bahrain",
            "EventDate": pd.Timestamp("2025-02-28"),
            "Session1": "Practice 1", "Session1DateUtc": pd.Timestamp("2025-02-26 07:00"),
            "Session2": None, "Session2DateUtc": None, "Session3": None, "Session3DateUtc": None,
            "Session4": None, "Session4DateUtc": None, "Session5": None, "Session5DateUtc": None,
        },
        {
            "RoundNumber": 1, "EventName": "Australian Grand Prix", "Location": "Melbourne", "Country": "Australia",
            "EventDate": pd.Timestamp("2025-03-16"),
            "Session1": "Practice 1", "Session1DateUtc": pd.Timestamp("2025-03-14 01:30"),
            "Session2": "Practice 2", "Session2DateUtc": pd.Timestamp("2025-03-14 05:00"),
            "Session3": "Practice 3", "Session3DateUtc": pd.Timestamp("2025-03-15 01:30"),
            "Session4": "Qualifying", "Session4DateUtc": pd.Timestamp("2025-03-15 05:00"),
            "Session5": "Race", "Session5DateUtc": pd.Timestamp("2025-03-16 04:00"),
        },
    ])

    races = normalize_fastf1_schedule(schedule)

    assert len(races) == 1
    race = races[0]
    assert race.round == 1
    assert race.race_datetime == datetime(2025, 3, 16, 4, 0)
    assert race.sessions[SessionName.QUALIFYING].ends_at == datetime(2025, 3, 15, 6, 0)
    assert race.sessions[SessionName.RACE].ends_at == datetime(2025, 3, 16, 6, 0)


def test_to_naive_utc_converts_offsets():
    assert to_naive_utc("2025-03-16T06:00:00+02:00") == datetime(2025, 3, 16, 4, 0)
    assert to_naive_utc(None) is None


def test_unwrap_list_accepts_both_shapes():
    rows = [{"driver_number": 1}]
    assert unwrap_list(rows, "drivers") == rows
    assert unwrap_list({"drivers": rows}, "drivers", "driver") == rows
    assert unwrap_list({"driver": rows}, "drivers", "driver") == rows

    with pytest.raises(errors.ExternalFetchError):
        unwrap_list({"detail": "No results found."}, "drivers")


def test_pick_handles_field_name_variants():
    assert pick({"driverNumber": 4}, "driver_number", "driverNumber") == 4
    assert pick({"driver_number": None}, "driver_number", default=0) == 0


def test_openf1_results_normalisation():
    rows = [
        {"driver_number": 81, "position": 2, "points": 18},
        {"driverNumber": 4, "position": 1},
        {"driver_number": 12, "position": None, "dnf": True},
        {"driver_number": 30, "position": None, "dns": True},
    ]

    official = normalize_openf1_results(rows, fastest_lap_driver=81, pole_position_driver=4)

    assert [(p.position, p.driver_number, p.points) for p in official.positions] == [
        (1, 4, 25.0), (2, 81, 18.0), (3, 12, 0), (4, 30, 0),
    ]
    assert official.dnf_drivers == [12]


def test_fastest_lap_from_laps_ignores_missing_durations():
    laps = [
        {"driver_number": 1, "lap_duration": 81.2},
        {"driver_number": 4, "lap_duration": None},
        {"driver_number": 16, "lap_duration": 80.9},
    ]
    assert fastest_lap_from_laps(laps) == 16
    assert fastest_lap_from_laps([]) is None


def test_openf1_schedule_numbers_rounds_by_race_date():
    sessions = [
        {"meeting_key": 2, "session_name": "Race", "date_start": "2025-03-23T07:00:00+00:00",
         "circuit_short_name": "Shanghai", "location": "Shanghai", "country_name": "China"},
        {"meeting_key": 1, "session_name": "Qualifying", "date_start": "2025-03-15T05:00:00+00:00",
         "date_end": "2025-03-15T06:00:00+00:00"},
        {"meeting_key": 1, "session_name": "Race", "date_start": "2025-03-16T04:00:00+00:00"},
        {"meeting_key": 9, "session_name": "Practice 1", "date_start": "2025-02-26T07:00:00+00:00"},
    ]
    meetings = [{"meeting_key": 1, "meeting_name": "Australian Grand Prix"}]

    races = normalize_openf1_schedule(sessions, meetings)

    assert [(r.round, r.name) for r in races] == [(1, "Australian Grand Prix"), (2, "Race 2")]
    assert races[0].sessions[SessionName.QUALIFYING].ends_at == datetime(2025, 3, 15, 6, 0)
    assert races[1].country == "China"


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self.payload = payload
        self.text = str(payload)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self.payload


def test_openf1_rate_limit_is_fetch_error(monkeypatch):
    monkeypatch.setattr(f1_provider.requests, "get", lambda *a, **kw: FakeResponse(429))

    with pytest.raises(errors.ExternalFetchError, match="429"):
        OpenF1Provider(base_url="https://example.test").fetch_season_schedule(2025)


def test_openf1_timeout_is_fetch_error(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.exceptions.Timeout("tiempo agotado")

    monkeypatch.setattr(f1_provider.requests, "get", boom)

    with pytest.raises(errors.ExternalFetchError):
        OpenF1Provider(base_url="https://example.test").fetch_season_schedule(2025)


def test_fastf1_drivers_from_session_results():
    results = pd.DataFrame([
        {"DriverNumber": "44", "FullName": "Lewis Hamilton", "Abbreviation": "HAM", "TeamName": "Ferrari"},
        {"DriverNumber": "1", "FullName": "Max Verstappen", "Abbreviation": "VER", "TeamName": "Red Bull Racing"},
        {"DriverNumber": "87", "FullName": None, "Abbreviation": None, "TeamName": None},
        {"DriverNumber": None, "FullName": "Sin dorsal", "Abbreviation": "XXX", "TeamName": "Nadie"},
    ])

    drivers = normalize_fastf1_drivers(results)

    assert [(d.driver_number, d.abbreviation) for d in drivers] == [(1, "VER"), (44, "HAM"), (87, None)]
    assert drivers[2].full_name == "87"
    assert normalize_fastf1_drivers(pd.DataFrame()) == []


def test_openf1_drivers_normalisation():
    rows = [
        {"driver_number": 81, "full_name": "Oscar PIASTRI", "name_acronym": "PIA", "team_name": "McLaren"},
        {"driverNumber": 4, "broadcast_name": "L NORRIS", "nameAcronym": "NOR", "teamName": "McLaren"},
        {"driver_number": 81, "full_name": "Oscar PIASTRI", "name_acronym": "PIA", "team_name": "McLaren"},
        {"full_name": "Sin dorsal"},
    ]

    drivers = normalize_openf1_drivers(rows)

    assert [(d.driver_number, d.full_name, d.team_name) for d in drivers] == [
        (4, "L NORRIS", "McLaren"), (81, "Oscar PIASTRI", "McLaren"),
    ]


def test_openf1_drivers_fall_back_to_latest_session(monkeypatch):
    requested = []

    def fake_get(url, params=None, timeout=None):
        requested.append((url.rsplit("/", 1)[-1], params))
        if url.endswith("/sessions"):
            return FakeResponse(200, [{"session_key": 9999, "date_start": "2025-11-30T16:00:00+00:00"}])
        if params["session_key"] == 9999:
            return FakeResponse(200, [])
        return FakeResponse(200, [{"driver_number": 1, "full_name": "Max VERSTAPPEN", "name_acronym": "VER"}])

    monkeypatch.setattr(f1_provider.requests, "get", fake_get)
    race = Race(round=23, name="Qatar Grand Prix", race_datetime=datetime(2025, 11, 30, 16, 0))

    drivers = OpenF1Provider(base_url="https://example.test").fetch_race_drivers(race)

    assert [d.abbreviation for d in drivers] == ["VER"]
    assert [params["session_key"] for path, params in requested if path == "drivers"] == [9999, "latest"]


def test_openf1_drivers_empty_everywhere_is_fetch_error(monkeypatch):
    monkeypatch.setattr(f1_provider.requests, "get", lambda *a, **kw: FakeResponse(200, []))
    race = Race(round=1, name="Australian Grand Prix", race_datetime=datetime(2026, 3, 8, 4, 0))

    with pytest.raises(errors.ExternalFetchError):
        OpenF1Provider(base_url="https://example.test").fetch_race_drivers(race)
