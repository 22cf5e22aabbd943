from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload

from app.core import errors
from app.core.deps import get_db, get_race_data_provider
from app.db.models.race import Race
from app.db.models.season import Season
from app.schemas.race import RaceDriver, RaceOut
from app.schemas.season import SeasonOut
from app.services.f1_provider import RaceDataProvider

router = APIRouter(tags=["Races"])


@router.get("/seasons", response_model=list[SeasonOut])
def list_seasons(db: Session = Depends(get_db)):
    return db.query(Season).order_by(Season.year.desc()).all()


@router.get("/seasons/{season_id}/races", response_model=list[RaceOut])
def list_season_races(season_id: int, db: Session = Depends(get_db)):
    season = db.get(Season, season_id)
    if not season:
        raise errors.NotFoundError("Temporada no encontrada")

    return (
        db.query(Race)
        .options(selectinload(Race.sessions), selectinload(Race.result))
        .filter(Race.season_id == season_id)
        .order_by(Race.round)
        .all()
    )


@router.get("/seasons/{season_id}/races/upcoming", response_model=list[RaceOut])
def list_upcoming_races(season_id: int, limit: int | None = None, db: Session = Depends(get_db)):
    """Carreras aún por disputar, la más próxima primero (limit=1 -> siguiente carrera)"""
    season = db.get(Season, season_id)
    if not season:
        raise errors.NotFoundError("Temporada no encontrada")
    if limit is not None and limit < 1:
        raise errors.ValidationError("limit debe ser al menos 1")

    query = (
        db.query(Race)
        .options(selectinload(Race.sessions), selectinload(Race.result))
        .filter(Race.season_id == season_id, Race.race_datetime >= datetime.utcnow())
        .order_by(Race.race_datetime, Race.round)
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()


@router.get("/races/{race_id}", response_model=RaceOut)
def get_race(race_id: int, db: Session = Depends(get_db)):
    race = db.get(Race, race_id)
    if not race:
        raise errors.NotFoundError("Carrera no encontrada")
    return race


@router.get("/races/{race_id}/drivers", response_model=list[RaceDriver])
def list_race_drivers(
    race_id: int,
    db: Session = Depends(get_db),
    provider: RaceDataProvider = Depends(get_race_data_provider),
):
    race = db.get(Race, race_id)
    if not race:
        raise errors.NotFoundError("Carrera no encontrada")
    return provider.fetch_race_drivers(race)
