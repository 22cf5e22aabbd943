from app.schemas.race import RaceDriver

from conftest import future, past


def test_upcoming_races_skip_past_and_sort_by_date(client, season, make_race):
    make_race(1, past(24 * 7))
    third = make_race(3, future(24 * 14))
    second = make_race(2, future(24 * 7))

    upcoming = client.get(f"/seasons/{season.id}/races/upcoming").json()
    next_race = client.get(f"/seasons/{season.id}/races/upcoming?limit=1").json()

    assert [r["id"] for r in upcoming] == [second.id, third.id]
    assert [r["round"] for r in next_race] == [2]


def test_upcoming_races_unknown_season(client):
    response = client.get("/seasons/999/races/upcoming")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"


def test_upcoming_races_rejects_bad_limit(client, season):
    assert client.get(f"/seasons/{season.id}/races/upcoming?limit=0").status_code == 400


def test_race_drivers_from_provider(client, provider, make_race):
    race = make_race(1, future())
    provider.drivers = [
        RaceDriver(driver_number=1, full_name="Max Verstappen", abbreviation="VER", team_name="Red Bull Racing"),
        RaceDriver(driver_number=44, full_name="Lewis Hamilton", abbreviation="HAM", team_name="Ferrari"),
    ]

    drivers = client.get(f"/races/{race.id}/drivers").json()

    assert [(d["driver_number"], d["abbreviation"]) for d in drivers] == [(1, "VER"), (44, "HAM")]


def test_race_drivers_provider_failure_is_502(client, make_race):
    race = make_race(1, future())

    response = client.get(f"/races/{race.id}/drivers")

    assert response.status_code == 502
    assert response.json()["error"] == "ExternalFetchError"


def test_race_drivers_unknown_race(client):
    assert client.get("/races/999/drivers").status_code == 404


def test_domain_errors_are_logged_lazily(client, caplog):
    with caplog.at_level("WARNING", logger="main"):
        client.get("/races/999")

    record = next(r for r in caplog.records if r.name == "main")
    assert record.msg == "%s en %s: %s"
    assert record.args == ("NotFoundError", "/races/999", "Carrera no encontrada")
