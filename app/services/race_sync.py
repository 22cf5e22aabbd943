"""
Sincronización de resultados oficiales y puntuación de todas las salas.

Flujo:
1. Si la carrera no tiene resultado oficial, se pide al proveedor y se guarda.
   Si falla, no se puntúa nada (sin resultado no hay puntuación posible).
2. Para cada sala de la temporada de la carrera, de una en una:
   - si ya hay tantas puntuaciones como predicciones, se salta (idempotente)
   - si no, se calcula y se hace upsert de Score por (sala, carrera, usuario)
   - un fallo en una sala se apunta y se sigue con la siguiente
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import _all  # noqa: F401
from app.core import errors
from app.core.config import settings
from app.db.models.race import Race
from app.db.models.race_result import RaceResult
from app.db.models.race_position import RacePosition
from app.db.models.room import Room
from app.db.models.prediction import Prediction
from app.db.models.score import Score
from app.schemas.prediction import PredictionPicks, PredictedPosition
from app.schemas.race import OfficialResult, ResultPosition, RaceSyncResult, BatchSyncResult
from app.schemas.room import parse_scoring_config
from app.services.f1_provider import RaceDataProvider
from app.services.scoring import calculate_prediction_score

logger = logging.getLogger(__name__)


@dataclass
class RoomScoringResult:
    room_id: int
    race_id: int
    scores_created: int = 0
    scores_updated: int = 0
    total_predictions: int = 0


# -----------------------
# Conversión ORM -> DTO
# -----------------------
def official_result_from_db(result: RaceResult) -> OfficialResult:
    return OfficialResult(
        positions=[
            ResultPosition(position=p.position, driver_number=p.driver_number, points=p.points)
            for p in result.positions
        ],
        fastest_lap_driver=result.fastest_lap_driver,
        pole_position_driver=result.pole_position_driver,
        dnf_drivers=list(result.dnf_drivers or []),
    )


def picks_from_prediction(prediction: Prediction) -> PredictionPicks:
    return PredictionPicks(
        predicted_positions=[
            PredictedPosition(position=p.position, driver_number=p.driver_number)
            for p in prediction.positions
        ],
        fastest_lap_driver=prediction.fastest_lap_driver,
        pole_position_driver=prediction.pole_position_driver,
        dnf_drivers=list(prediction.dnf_drivers or []),
    )


# -----------------------
# Resultado oficial
# -----------------------
def store_official_result(db: Session, race: Race, official: OfficialResult) -> RaceResult:
    result = RaceResult(
        race_id=race.id,
        fastest_lap_driver=official.fastest_lap_driver,
        pole_position_driver=official.pole_position_driver,
        dnf_drivers=list(official.dnf_drivers),
        fetched_at=datetime.utcnow(),
        positions=[
            RacePosition(position=p.position, driver_number=p.driver_number, points=p.points)
            for p in official.positions
        ],
    )
    db.add(result)
    try:
        db.commit()
    except IntegrityError:
        # Otra sincronización (poller o anfitrión) lo guardó mientras descargábamos
        db.rollback()
        db.refresh(race)
        if race.result is None:
            raise
        logger.info("Resultado de la carrera %s ya guardado por otra sincronización", race.id)
        return race.result

    db.refresh(race)
    return result


def ensure_official_result(db: Session, race: Race, provider: RaceDataProvider) -> OfficialResult:
    """Devuelve el resultado guardado o lo descarga. Lanza ExternalFetchError si no se puede."""
    if race.result is not None:
        return official_result_from_db(race.result)

    logger.info("Descargando resultados de '%s' (ronda %s) desde %s", race.name, race.round, provider.name)
    try:
        official = provider.fetch_race_result(race)
    except errors.ExternalFetchError:
        raise
    except Exception as e:
        raise errors.ExternalFetchError(f"Error inesperado del proveedor: {e}") from e

    if not official.positions:
        raise errors.ExternalFetchError("El proveedor devolvió un resultado sin posiciones")

    stored = store_official_result(db, race, official)
    logger.info("Resultados de '%s' guardados (%s pilotos)", race.name, len(stored.positions))
    return official_result_from_db(stored)


# -----------------------
# Puntuación de una sala
# -----------------------
def room_scores_cover_predictions(db: Session, room_id: int, race_id: int) -> bool:
    scores_count = (
        db.query(func.count(Score.id))
        .filter(Score.room_id == room_id, Score.race_id == race_id)
        .scalar()
    )
    predictions_count = (
        db.query(func.count(Prediction.id))
        .filter(Prediction.room_id == room_id, Prediction.race_id == race_id)
        .scalar()
    )
    return scores_count >= predictions_count


def apply_scoring_for_room(db: Session, room: Room, race: Race) -> RoomScoringResult:
    if race.result is None:
        raise errors.ValidationError("Resultados de la carrera no disponibles")

    if race.season_id != room.season_id:
        raise errors.ValidationError("La carrera no pertenece a la temporada de la sala")

    official = official_result_from_db(race.result)
    scoring_config = parse_scoring_config(room.scoring_config)

    predictions = (
        db.query(Prediction)
        .filter(Prediction.room_id == room.id, Prediction.race_id == race.id)
        .all()
    )

    now = datetime.utcnow()
    outcome = RoomScoringResult(room_id=room.id, race_id=race.id, total_predictions=len(predictions))

    for prediction in predictions:
        result = calculate_prediction_score(
            picks_from_prediction(prediction),
            official,
            scoring_config,
        )
        breakdown = result.breakdown

        existing = (
            db.query(Score)
            .filter(
                Score.room_id == room.id,
                Score.race_id == race.id,
                Score.user_id == prediction.user_id,
            )
            .first()
        )

        if existing is None:
            existing = Score(room_id=room.id, race_id=race.id, user_id=prediction.user_id)
            db.add(existing)
            outcome.scores_created += 1
        else:
            outcome.scores_updated += 1

        existing.points = result.total
        existing.position_points = breakdown.position_points
        existing.fastest_lap_points = breakdown.fastest_lap_points
        existing.pole_position_points = breakdown.pole_position_points
        existing.dnf_penalty = breakdown.dnf_penalty
        existing.calculated_at = now

    db.commit()
    return outcome


# -----------------------
# Orquestador
# -----------------------
def sync_race_results_and_score(db: Session, race_id: int, provider: RaceDataProvider) -> RaceSyncResult:
    race = db.get(Race, race_id)
    if not race:
        raise errors.NotFoundError("Carrera no encontrada")

    try:
        ensure_official_result(db, race, provider)
    except errors.ExternalFetchError as e:
        db.rollback()
        logger.error("Fallo obteniendo resultados de la carrera %s: %s", race_id, e.message)
        return RaceSyncResult(
            success=False,
            message=f"No se pudieron sincronizar los resultados: {e.message}",
            race_id=race_id,
        )

    rooms = (
        db.query(Room)
        .filter(Room.season_id == race.season_id)
        .order_by(Room.id)
        .all()
    )
    room_ids = [r.id for r in rooms]

    summary = RaceSyncResult(success=True, message="", race_id=race_id)

    for room_id in room_ids:
        try:
            if room_scores_cover_predictions(db, room_id, race_id):
                logger.debug("Sala %s ya puntuada para la carrera %s", room_id, race_id)
            else:
                outcome = apply_scoring_for_room(db, db.get(Room, room_id), race)
                summary.rooms_scored += 1
                logger.info(
                    "Sala %s: %s puntuaciones nuevas, %s actualizadas",
                    room_id, outcome.scores_created, outcome.scores_updated,
                )
        except Exception as e:
            db.rollback()
            logger.exception("Error puntuando la sala %s para la carrera %s", room_id, race_id)
            summary.errors.append(f"Room {room_id}: {e}")
        summary.rooms_processed += 1

    summary.message = f"Resultados sincronizados, {summary.rooms_scored} salas puntuadas"
    logger.info("Carrera %s: %s", race_id, summary.message)
    return summary


def _run_races_sequentially(
    db: Session,
    races: list[tuple[int, str]],
    provider: RaceDataProvider,
    delay: float,
    sleep,
) -> BatchSyncResult:
    batch = BatchSyncResult()

    for i, (race_id, race_name) in enumerate(races):
        try:
            result = sync_race_results_and_score(db, race_id, provider)
            batch.results.append(result)
            if result.success:
                batch.races_synced += 1
            else:
                batch.errors.append(f"Race {race_name} ({race_id}): {result.message}")
        except Exception as e:
            db.rollback()
            logger.exception("Error sincronizando la carrera %s", race_id)
            batch.errors.append(f"Race {race_id}: {e}")
        batch.races_processed += 1

        # Pausa entre carreras para no saturar al proveedor
        if i < len(races) - 1 and delay > 0:
            sleep(delay)

    batch.message = f"{batch.races_processed} carreras procesadas, {batch.races_synced} sincronizadas"
    return batch


def find_races_ready_for_sync(
    db: Session,
    now: datetime,
    race_duration: timedelta,
    grace: timedelta,
) -> list[Race]:
    """
    Carreras que ya empezaron y no tienen resultado, y que además terminaron
    hace al menos 'grace' (el proveedor tarda en publicar).
    """
    started = (
        db.query(Race)
        .outerjoin(RaceResult, RaceResult.race_id == Race.id)
        .filter(Race.race_datetime < now, RaceResult.id.is_(None))
        .order_by(Race.race_datetime)
        .all()
    )
    return [r for r in started if now >= r.race_datetime + race_duration + grace]


def sync_completed_races(
    db: Session,
    provider: RaceDataProvider,
    now: datetime | None = None,
    race_duration: timedelta | None = None,
    grace: timedelta | None = None,
    delay: float | None = None,
    sleep=time.sleep,
) -> BatchSyncResult:
    now = now or datetime.utcnow()
    race_duration = race_duration if race_duration is not None else timedelta(hours=settings.race_duration_hours)
    grace = grace if grace is not None else timedelta(hours=settings.results_grace_hours)
    delay = settings.inter_race_delay_seconds if delay is None else delay

    ready = find_races_ready_for_sync(db, now, race_duration, grace)
    if not ready:
        return BatchSyncResult(message="No hay carreras terminadas pendientes de sincronizar")

    logger.info("%s carreras pendientes de resultados", len(ready))
    return _run_races_sequentially(db, [(r.id, r.name) for r in ready], provider, delay, sleep)


def sync_all_season_races(
    db: Session,
    season_id: int,
    provider: RaceDataProvider,
    now: datetime | None = None,
    delay: float | None = None,
    sleep=time.sleep,
) -> BatchSyncResult:
    """Sincronización manual (anfitrión) de todas las carreras ya disputadas de la temporada"""
    now = now or datetime.utcnow()
    delay = settings.inter_race_delay_seconds if delay is None else delay

    races = (
        db.query(Race)
        .filter(Race.season_id == season_id, Race.race_datetime < now)
        .order_by(Race.round)
        .all()
    )
    if not races:
        return BatchSyncResult(message="No hay carreras disputadas en esta temporada")

    return _run_races_sequentially(db, [(r.id, r.name) for r in races], provider, delay, sleep)
