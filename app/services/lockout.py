"""
Cálculo del cierre de predicciones de una sala para una carrera.

Funciones puras: no tocan la base de datos. Reciben el estado de la sala,
su configuración de cierre y la carrera (con sus sesiones ya cargadas).
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.db.models.race import Race
from app.db.models.room import RoomStatus, FORCED_LOCK_STATUSES
from app.schemas.room import (
    LockoutConfig,
    CustomTimestampLockout,
    HoursBeforeRaceLockout,
    BeforeSessionLockout,
    BeforeSessionEndLockout,
)


@dataclass(frozen=True)
class LockoutInfo:
    lockout_at: datetime | None
    locked: bool
    time_remaining: timedelta | None


def calculate_lockout_time(config: LockoutConfig, race: Race | None) -> datetime | None:
    """
    Momento exacto del cierre, o None si todavía no se puede calcular
    (no hay carrera o el proveedor aún no ha publicado el horario de la sesión).
    """
    if race is None:
        return None

    if isinstance(config, CustomTimestampLockout):
        return config.timestamp

    if isinstance(config, HoursBeforeRaceLockout):
        return race.race_datetime - timedelta(hours=config.hours_before_race)

    if isinstance(config, BeforeSessionLockout):
        session = race.get_session(config.session)
        return session.starts_at if session else None

    if isinstance(config, BeforeSessionEndLockout):
        session = race.get_session(config.session)
        return session.ends_at if session else None

    raise TypeError(f"Tipo de cierre desconocido: {type(config).__name__}")


def calculate_lockout(
    status: RoomStatus,
    config: LockoutConfig,
    race: Race | None,
    now: datetime | None = None,
) -> LockoutInfo:
    now = now or datetime.utcnow()
    lockout_at = calculate_lockout_time(config, race)

    time_remaining = None
    if lockout_at is not None and now < lockout_at:
        time_remaining = lockout_at - now

    # Sala cerrada a mano, puntuada o archivada: cerrada siempre
    if status in FORCED_LOCK_STATUSES:
        return LockoutInfo(lockout_at=lockout_at, locked=True, time_remaining=None)

    # Sin horario no bloqueamos (se bloqueará cuando llegue el dato)
    locked = lockout_at is not None and now >= lockout_at

    return LockoutInfo(lockout_at=lockout_at, locked=locked, time_remaining=time_remaining)


def is_locked(status: RoomStatus, config: LockoutConfig, race: Race | None, now: datetime | None = None) -> bool:
    return calculate_lockout(status, config, race, now).locked
