# app/schemas/race.py
from datetime import datetime

from pydantic import BaseModel, Field

from app.db.models.race_session import SessionName


class ResultPosition(BaseModel):
    position: int
    driver_number: int
    points: float = 0


class OfficialResult(BaseModel):
    """
    Formato único del resultado oficial, venga del proveedor que venga.
    Es lo único que ve el motor de puntuación.
    """
    positions: list[ResultPosition] = Field(default_factory=list)
    fastest_lap_driver: int | None = None
    pole_position_driver: int | None = None
    dnf_drivers: list[int] = Field(default_factory=list)


class SessionWindow(BaseModel):
    starts_at: datetime
    ends_at: datetime


class ScheduledRace(BaseModel):
    round: int
    name: str
    race_datetime: datetime
    circuit: str = "Unknown"
    location: str = "Unknown"
    country: str = "Unknown"
    sessions: dict[SessionName, SessionWindow] = Field(default_factory=dict)


class RaceSessionOut(BaseModel):
    session: SessionName
    starts_at: datetime
    ends_at: datetime

    class Config:
        from_attributes = True


class RaceOut(BaseModel):
    id: int
    season_id: int
    round: int
    name: str
    race_datetime: datetime
    circuit: str
    location: str
    country: str
    sessions: list[RaceSessionOut] = Field(default_factory=list)
    has_official_result: bool = False

    class Config:
        from_attributes = True


class RaceSyncResult(BaseModel):
    """Resumen de una sincronización de resultados (nunca lanza por salas individuales)"""
    success: bool
    message: str
    race_id: int
    rooms_processed: int = 0
    rooms_scored: int = 0
    errors: list[str] = Field(default_factory=list)


class BatchSyncResult(BaseModel):
    success: bool = True
    message: str = ""
    races_processed: int = 0
    races_synced: int = 0
    errors: list[str] = Field(default_factory=list)
    results: list[RaceSyncResult] = Field(default_factory=list)


class RaceDriver(BaseModel):
    """Piloto disponible para rellenar una predicción"""
    driver_number: int
    full_name: str
    abbreviation: str | None = None
    team_name: str | None = None
