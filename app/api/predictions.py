from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core import errors
from app.core.deps import get_current_user, get_db
from app.db.models.prediction import Prediction
from app.schemas.prediction import PredictedPosition, PredictionOut, PredictionPicks
from app.services.predictions import get_user_prediction, list_race_predictions, submit_prediction

router = APIRouter(prefix="/predictions", tags=["Predictions"])


def _to_out(prediction: Prediction) -> PredictionOut:
    return PredictionOut(
        id=prediction.id,
        room_id=prediction.room_id,
        race_id=prediction.race_id,
        user_id=prediction.user_id,
        username=prediction.user.username if prediction.user else None,
        predicted_positions=[
            PredictedPosition(position=p.position, driver_number=p.driver_number)
            for p in prediction.positions
        ],
        fastest_lap_driver=prediction.fastest_lap_driver,
        pole_position_driver=prediction.pole_position_driver,
        dnf_drivers=prediction.dnf_drivers or [],
        submitted_at=prediction.submitted_at,
        updated_at=prediction.updated_at,
    )


@router.post("/{room_id}/{race_id}", response_model=PredictionOut)
def upsert_prediction(
    room_id: int,
    race_id: int,
    picks: PredictionPicks,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    prediction = submit_prediction(db, current_user, room_id, race_id, picks)
    return _to_out(prediction)


@router.get("/{room_id}/{race_id}/me", response_model=PredictionOut)
def get_my_prediction(
    room_id: int,
    race_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    prediction = get_user_prediction(db, room_id, race_id, current_user.id)
    if not prediction:
        raise errors.NotFoundError("Todavía no has hecho tu predicción")
    return _to_out(prediction)


@router.get("/{room_id}/{race_id}/all", response_model=list[PredictionOut])
def get_all_predictions(
    room_id: int,
    race_id: int,
    db: Session = Depends(get_db),
):
    return [_to_out(p) for p in list_race_predictions(db, room_id, race_id)]
