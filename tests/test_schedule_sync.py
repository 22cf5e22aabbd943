from datetime import datetime, timedelta

import pytest

from app.core import errors
from app.db.models.race import Race
from app.db.models.race_session import SessionName
from app.db.models.season import Season
from app.schemas.race import ScheduledRace, SessionWindow
from app.scripts.create_admin import grant_admin
from app.services.schedule_sync import sync_race_session_times, sync_season_schedule
from app.tasks import result_poller

from conftest import FakeProvider, auth_headers, make_result


def scheduled(round_number, race_datetime, with_sessions=True):
    sessions = {}
    if with_sessions:
        qualy = race_datetime - timedelta(days=1)
        sessions = {
            SessionName.QUALIFYING: SessionWindow(starts_at=qualy, ends_at=qualy + timedelta(hours=1)),
            SessionName.RACE: SessionWindow(starts_at=race_datetime, ends_at=race_datetime + timedelta(hours=2)),
        }
    return ScheduledRace(
        round=round_number,
        name=f"Gran Premio {round_number}",
        race_datetime=race_datetime,
        sessions=sessions,
    )


def test_schedule_sync_creates_season_and_races(db):
    provider = FakeProvider(schedule=[
        scheduled(1, datetime(2027, 3, 14, 5, 0)),
        scheduled(2, datetime(2027, 3, 21, 7, 0)),
    ])

    season, logs = sync_season_schedule(db, 2027, provider)

    assert season.year == 2027
    assert season.total_races == 2
    races = db.query(Race).filter(Race.season_id == season.id).order_by(Race.round).all()
    assert [r.round for r in races] == [1, 2]
    assert races[0].get_session(SessionName.QUALIFYING).starts_at == datetime(2027, 3, 13, 5, 0)
    assert any("2 carreras nuevas" in line for line in logs)


def test_schedule_sync_fills_missing_session_times(db):
    race_datetime = datetime(2027, 3, 14, 5, 0)
    sync_season_schedule(db, 2027, FakeProvider(schedule=[scheduled(1, race_datetime, with_sessions=False)]))

    season, logs = sync_season_schedule(db, 2027, FakeProvider(schedule=[scheduled(1, race_datetime)]))

    race = db.query(Race).filter(Race.season_id == season.id).one()
    assert race.get_session(SessionName.QUALIFYING) is not None
    assert db.query(Race).count() == 1
    assert any("Horarios añadidos" in line for line in logs)


def test_schedule_sync_without_races_fails(db):
    with pytest.raises(errors.ExternalFetchError):
        sync_season_schedule(db, 2027, FakeProvider(schedule=[]))
    assert db.query(Season).count() == 0


def test_refresh_session_times(db, make_race):
    race_datetime = datetime(2025, 3, 14, 5, 0)
    race = make_race(1, race_datetime)
    provider = FakeProvider(schedule=[scheduled(1, race_datetime)])

    refreshed = sync_race_session_times(db, race.id, provider)

    assert refreshed.get_session(SessionName.RACE).ends_at == race_datetime + timedelta(hours=2)


def test_admin_endpoints_require_admin(client, db, provider, make_user):
    make_user("regular")
    grant_admin(db, "boss", username="Boss")
    provider.schedule = [scheduled(1, datetime(2027, 3, 14, 5, 0))]

    denied = client.post("/admin/seasons/2027/sync", headers=auth_headers("regular"))
    allowed = client.post("/admin/seasons/2027/sync", headers=auth_headers("boss"))

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["season"]["year"] == 2027
    assert allowed.json()["races_synced"] == 1

    seasons = client.get("/seasons").json()
    races = client.get(f"/seasons/{seasons[0]['id']}/races").json()
    assert races[0]["has_official_result"] is False
    assert {s["session"] for s in races[0]["sessions"]} == {"qualifying", "race"}


def test_grant_admin_promotes_existing_user(db, make_user):
    user = make_user("someone")
    assert grant_admin(db, "someone").id == user.id
    assert user.role == "admin"


def test_run_poll_once_uses_own_session(db, monkeypatch, make_race):
    make_race(1, datetime.utcnow() - timedelta(days=3))
    provider = FakeProvider(results={1: make_result([1, 2])})

    monkeypatch.setattr(result_poller, "SessionLocal", lambda: db)
    monkeypatch.setattr(result_poller, "build_provider", lambda: provider)
    monkeypatch.setattr(db, "close", lambda: None)

    batch = result_poller.run_poll_once()

    assert batch.races_synced == 1
    assert db.query(Race).one().has_official_result
