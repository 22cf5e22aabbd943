# app/schemas/prediction.py
from datetime import datetime

from pydantic import BaseModel, Field


class PredictedPosition(BaseModel):
    position: int = Field(ge=1)
    driver_number: int


class PredictionPicks(BaseModel):
    """Lo que elige el usuario para una carrera"""
    predicted_positions: list[PredictedPosition] = Field(default_factory=list)
    fastest_lap_driver: int | None = None
    pole_position_driver: int | None = None
    dnf_drivers: list[int] = Field(default_factory=list)


class PredictionOut(PredictionPicks):
    id: int
    room_id: int
    race_id: int
    user_id: int
    username: str | None = None
    submitted_at: datetime
    updated_at: datetime
