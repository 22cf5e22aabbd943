import logging

from sqlalchemy.orm import Session

from app.core import errors
from app.db.models.race import Race
from app.db.models.race_session import RaceSession, SessionName
from app.db.models.season import Season
from app.schemas.race import SessionWindow
from app.services.f1_provider import RaceDataProvider

logger = logging.getLogger(__name__)


def _apply_sessions(race: Race, sessions: dict[SessionName, SessionWindow]) -> int:
    """Crea o actualiza las sesiones de la carrera. Devuelve cuántas ha tocado."""
    touched = 0
    for name, window in sessions.items():
        existing = race.get_session(name)
        if existing is None:
            race.sessions.append(RaceSession(session=name, starts_at=window.starts_at, ends_at=window.ends_at))
            touched += 1
        elif existing.starts_at != window.starts_at or existing.ends_at != window.ends_at:
            existing.starts_at = window.starts_at
            existing.ends_at = window.ends_at
            touched += 1
    return touched


def sync_season_schedule(db: Session, year: int, provider: RaceDataProvider) -> tuple[Season, list[str]]:
    logs = []

    def log(msg):
        logs.append(msg)
        logger.info(msg)

    log(f"🚀 Sincronizando calendario {year} desde {provider.name}")

    # 1. Temporada (la creamos si no existe)
    season = db.query(Season).filter(Season.year == year).first()
    if not season:
        season = Season(year=year, name=f"Temporada {year}", total_races=0, current_round=0)
        db.add(season)
        db.flush()
        log(f"🆕 Temporada {year} creada")

    # 2. Calendario del proveedor (si falla no tocamos nada)
    try:
        scheduled = provider.fetch_season_schedule(year)
    except errors.ExternalFetchError:
        db.rollback()
        raise

    if not scheduled:
        db.rollback()
        raise errors.ExternalFetchError(f"No se encontraron carreras para {year}")

    created = 0
    updated = 0
    for item in scheduled:
        race = (
            db.query(Race)
            .filter(Race.season_id == season.id, Race.round == item.round)
            .first()
        )

        if not race:
            race = Race(
                season_id=season.id,
                round=item.round,
                name=item.name,
                race_datetime=item.race_datetime,
                circuit=item.circuit,
                location=item.location,
                country=item.country,
            )
            db.add(race)
            _apply_sessions(race, item.sessions)
            created += 1
            continue

        # Solo rellenamos horarios si la carrera aún no los tenía
        if not race.sessions and item.sessions:
            _apply_sessions(race, item.sessions)
            updated += 1
            log(f"🕒 Horarios añadidos a la ronda {item.round} ({item.name})")

    season.total_races = len(scheduled)
    if not season.current_round:
        season.current_round = 1
    db.commit()
    db.refresh(season)

    log(f"✅ {created} carreras nuevas, {updated} con horarios actualizados ({len(scheduled)} en total)")
    return season, logs


def sync_race_session_times(db: Session, race_id: int, provider: RaceDataProvider) -> Race:
    """Refresca los horarios de una carrera (por si no estaban en la primera sincronización)"""
    race = db.get(Race, race_id)
    if not race:
        raise errors.NotFoundError("Carrera no encontrada")

    sessions = provider.fetch_session_times(race)
    touched = _apply_sessions(race, sessions)
    db.commit()
    db.refresh(race)

    logger.info("Carrera %s: %s sesiones actualizadas", race.id, touched)
    return race
