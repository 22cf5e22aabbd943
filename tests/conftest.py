import os
from datetime import datetime, timedelta

# La app se configura al importarse: base de datos en memoria y sin poller
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("POLLER_ENABLED", "false")
os.environ.setdefault("INTER_RACE_DELAY_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import errors
from app.core.deps import get_db, get_race_data_provider
from app.core.security import create_access_token
from app.db.models import _all  # noqa: F401
from app.db.models.race import Race
from app.db.models.race_session import RaceSession, SessionName
from app.db.models.room import Room, RoomStatus
from app.db.models.room_participant import RoomParticipant, ParticipantRole
from app.db.models.season import Season
from app.db.models.user import User
from app.db.session import Base
from app.schemas.race import OfficialResult, ResultPosition
from app.schemas.room import ScoringConfig, default_lockout_config
from app.services.f1_provider import RaceDataProvider
from main import app


class FakeProvider(RaceDataProvider):
    """Proveedor en memoria: resultados por ronda o excepción si no hay"""

    name = "fake"

    def __init__(self, results=None, schedule=None, drivers=None):
        self.results = results or {}
        self.schedule = schedule or []
        self.drivers = drivers or []
        self.calls = []

    def fetch_race_result(self, race):
        self.calls.append(race.id)
        result = self.results.get(race.round)
        if result is None:
            raise errors.ExternalFetchError(f"Sin resultados para la ronda {race.round}")
        return result

    def fetch_season_schedule(self, year):
        return list(self.schedule)

    def fetch_race_drivers(self, race):
        if not self.drivers:
            raise errors.ExternalFetchError("Sin pilotos")
        return list(self.drivers)


def make_result(order, fastest_lap=None, pole=None, dnfs=()):
    """order: dorsales en orden de llegada"""
    return OfficialResult(
        positions=[
            ResultPosition(position=i, driver_number=d, points=0)
            for i, d in enumerate(order, start=1)
        ],
        fastest_lap_driver=fastest_lap,
        pole_position_driver=pole,
        dnf_drivers=list(dnfs),
    )


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def client(db, provider):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_race_data_provider] = lambda: provider
    yield TestClient(app)
    app.dependency_overrides.clear()


# -----------------------
# Factorías
# -----------------------
@pytest.fixture()
def make_user(db):
    def _make(external_id, username=None, role="user"):
        user = User(external_id=external_id, username=username or external_id, role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture()
def season(db):
    season = Season(year=2025, name="Temporada 2025", total_races=0, current_round=1)
    db.add(season)
    db.commit()
    db.refresh(season)
    return season


@pytest.fixture()
def make_race(db, season):
    def _make(round_number, race_datetime, qualifying_at=None, season_id=None):
        race = Race(
            season_id=season_id or season.id,
            round=round_number,
            name=f"Gran Premio {round_number}",
            race_datetime=race_datetime,
        )
        if qualifying_at is not None:
            race.sessions.append(RaceSession(
                session=SessionName.QUALIFYING,
                starts_at=qualifying_at,
                ends_at=qualifying_at + timedelta(hours=1),
            ))
        db.add(race)
        db.commit()
        db.refresh(race)
        return race
    return _make


@pytest.fixture()
def make_room(db, season):
    counter = {"n": 0}

    def _make(host, members=(), lockout=None, scoring=None, status=RoomStatus.OPEN):
        counter["n"] += 1
        room = Room(
            host_id=host.id,
            season_id=season.id,
            name=f"Sala {counter['n']}",
            join_code=f"CODE{counter['n']:02d}",
            status=status,
            lockout_config=lockout or default_lockout_config().model_dump(mode="json"),
            scoring_config=scoring or ScoringConfig().model_dump(mode="json"),
        )
        db.add(room)
        db.flush()
        db.add(RoomParticipant(room_id=room.id, user_id=host.id, role=ParticipantRole.HOST))
        for member in members:
            db.add(RoomParticipant(room_id=room.id, user_id=member.id, role=ParticipantRole.PARTICIPANT))
        db.commit()
        db.refresh(room)
        return room
    return _make


def auth_headers(external_id, **claims):
    token = create_access_token({"sub": external_id, **claims})
    return {"Authorization": f"Bearer {token}"}


def future(hours=48):
    return datetime.utcnow() + timedelta(hours=hours)


def past(hours=48):
    return datetime.utcnow() - timedelta(hours=hours)
