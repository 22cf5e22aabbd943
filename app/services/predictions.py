import logging
from datetime import datetime

from sqlalchemy.orm import Session, joinedload

from app.core import errors
from app.db.models.prediction import Prediction
from app.db.models.prediction_position import PredictionPosition
from app.db.models.room import FORCED_LOCK_STATUSES
from app.db.models.user import User
from app.schemas.prediction import PredictionPicks
from app.schemas.room import parse_lockout_config
from app.services.lockout import calculate_lockout
from app.services.rooms import (
    get_room_or_404,
    get_race_or_404,
    ensure_race_in_room_season,
    is_participant,
)

logger = logging.getLogger(__name__)


def validate_picks(picks: PredictionPicks) -> None:
    positions = [p.position for p in picks.predicted_positions]
    if len(positions) != len(set(positions)):
        raise errors.ValidationError("No puedes repetir la misma posición")

    drivers = [p.driver_number for p in picks.predicted_positions]
    if len(drivers) != len(set(drivers)):
        raise errors.ValidationError("No puedes poner al mismo piloto en dos posiciones")

    if len(picks.dnf_drivers) != len(set(picks.dnf_drivers)):
        raise errors.ValidationError("Piloto repetido en la lista de abandonos")


def submit_prediction(
    db: Session,
    user: User,
    room_id: int,
    race_id: int,
    picks: PredictionPicks,
    now: datetime | None = None,
) -> Prediction:
    """
    Crea o actualiza la predicción del usuario (sala, carrera).
    La última que llegue antes del cierre es la que vale.
    """
    now = now or datetime.utcnow()

    room = get_room_or_404(db, room_id)
    race = get_race_or_404(db, race_id)
    ensure_race_in_room_season(room, race)

    lockout = calculate_lockout(room.status, parse_lockout_config(room.lockout_config), race, now)
    if lockout.locked:
        if room.status in FORCED_LOCK_STATUSES:
            raise errors.LockedError("La sala no acepta predicciones")
        raise errors.LockedError("Se ha pasado la hora de cierre de predicciones")

    if not is_participant(db, room.id, user.id):
        raise errors.AuthorizationError("Tienes que unirte a la sala antes de predecir")

    validate_picks(picks)

    prediction = (
        db.query(Prediction)
        .filter(
            Prediction.room_id == room.id,
            Prediction.race_id == race.id,
            Prediction.user_id == user.id,
        )
        .first()
    )

    if not prediction:
        prediction = Prediction(
            room_id=room.id,
            race_id=race.id,
            user_id=user.id,
            submitted_at=now,
        )
        db.add(prediction)
        db.flush()  # importante para tener prediction.id

    # 🔄 Sustituimos posiciones anteriores
    prediction.positions.clear()
    db.flush()
    for p in sorted(picks.predicted_positions, key=lambda p: p.position):
        prediction.positions.append(PredictionPosition(
            position=p.position,
            driver_number=p.driver_number,
        ))

    prediction.fastest_lap_driver = picks.fastest_lap_driver
    prediction.pole_position_driver = picks.pole_position_driver
    prediction.dnf_drivers = list(picks.dnf_drivers)
    prediction.updated_at = now

    db.commit()
    db.refresh(prediction)

    logger.info("Predicción guardada: sala=%s carrera=%s usuario=%s", room.id, race.id, user.id)
    return prediction


def get_user_prediction(db: Session, room_id: int, race_id: int, user_id: int) -> Prediction | None:
    return (
        db.query(Prediction)
        .options(joinedload(Prediction.positions))
        .filter(
            Prediction.room_id == room_id,
            Prediction.race_id == race_id,
            Prediction.user_id == user_id,
        )
        .first()
    )


def list_race_predictions(db: Session, room_id: int, race_id: int) -> list[Prediction]:
    get_room_or_404(db, room_id)
    return (
        db.query(Prediction)
        .options(joinedload(Prediction.positions), joinedload(Prediction.user))
        .filter(Prediction.room_id == room_id, Prediction.race_id == race_id)
        .order_by(Prediction.submitted_at, Prediction.id)
        .all()
    )
