# app/schemas/room.py
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from app.core import errors
from app.db.models.race_session import SessionName
from app.db.models.room import RoomStatus
from app.db.models.room_participant import ParticipantRole

# Tabla oficial de puntos de F1 (P1..P10)
DEFAULT_POSITION_POINTS = [25, 18, 15, 12, 10, 8, 6, 4, 2, 1]


def _as_naive_utc(value: datetime) -> datetime:
    # En base de datos todo se guarda en UTC sin zona horaria
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# -----------------------
# Cierre de predicciones (unión etiquetada por 'type')
# -----------------------
class CustomTimestampLockout(BaseModel):
    type: Literal["custom_timestamp"] = "custom_timestamp"
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return _as_naive_utc(v)


class HoursBeforeRaceLockout(BaseModel):
    type: Literal["custom_hours"] = "custom_hours"
    hours_before_race: float = Field(gt=0)


class BeforeSessionLockout(BaseModel):
    type: Literal["before_session"] = "before_session"
    session: SessionName


class BeforeSessionEndLockout(BaseModel):
    type: Literal["before_session_end"] = "before_session_end"
    session: SessionName

    @field_validator("session")
    @classmethod
    def session_must_end_before_race(cls, v: SessionName) -> SessionName:
        # Cerrar al final de la carrera no tiene sentido: ya se sabe el resultado
        if v == SessionName.RACE:
            raise ValueError("before_session_end no admite la sesión 'race'")
        return v


LockoutConfig = Annotated[
    Union[CustomTimestampLockout, HoursBeforeRaceLockout, BeforeSessionLockout, BeforeSessionEndLockout],
    Field(discriminator="type"),
]

lockout_config_adapter = TypeAdapter(LockoutConfig)


class ScoringConfig(BaseModel):
    position_points: list[float] = Field(default_factory=lambda: list(DEFAULT_POSITION_POINTS), min_length=1)
    fastest_lap_points: float = Field(default=1, ge=0)
    pole_position_points: float = Field(default=1, ge=0)
    # Se guarda en positivo; el motor de puntuación lo resta
    dnf_penalty: float = 1

    @field_validator("position_points")
    @classmethod
    def no_negative_points(cls, v: list[float]) -> list[float]:
        if any(p < 0 for p in v):
            raise ValueError("La tabla de puntos no puede tener valores negativos")
        return v

    @field_validator("dnf_penalty")
    @classmethod
    def penalty_magnitude(cls, v: float) -> float:
        return abs(v)


def default_lockout_config() -> BeforeSessionLockout:
    return BeforeSessionLockout(session=SessionName.QUALIFYING)


def parse_lockout_config(data: dict) -> LockoutConfig:
    """Convierte el JSON guardado en la sala en una variante concreta"""
    try:
        return lockout_config_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise errors.ValidationError(f"Configuración de cierre no válida: {e}")


def parse_scoring_config(data: dict) -> ScoringConfig:
    try:
        return ScoringConfig.model_validate(data)
    except PydanticValidationError as e:
        raise errors.ValidationError(f"Configuración de puntuación no válida: {e}")


# -----------------------
# Salas
# -----------------------
class RoomCreate(BaseModel):
    season_id: int
    name: str | None = None
    lockout_config: LockoutConfig = Field(default_factory=default_lockout_config)
    scoring_config: ScoringConfig = Field(default_factory=ScoringConfig)


class RoomJoin(BaseModel):
    join_code: str


class RoomSettingsUpdate(BaseModel):
    name: str | None = None
    lockout_config: LockoutConfig | None = None
    scoring_config: ScoringConfig | None = None


class RoomStatusUpdate(BaseModel):
    status: RoomStatus


class RoomOut(BaseModel):
    id: int
    name: str | None = None
    host_id: int
    season_id: int
    join_code: str
    status: RoomStatus
    lockout_config: dict
    scoring_config: dict
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ParticipantOut(BaseModel):
    user_id: int
    username: str
    avatar_url: str | None = None
    role: ParticipantRole
    joined_at: datetime


class LockoutInfoOut(BaseModel):
    room_id: int
    race_id: int
    lockout_at: datetime | None
    locked: bool
    seconds_remaining: float | None
    lockout_config: dict
    room_status: RoomStatus
