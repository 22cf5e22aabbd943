# app/db/models/room.py
import enum
from datetime import datetime
from typing import List, TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, ForeignKey, JSON, Enum as SqEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from app.db.session import Base

if TYPE_CHECKING:
    from app.db.models.season import Season
    from app.db.models.user import User
    from app.db.models.room_participant import RoomParticipant


class RoomStatus(str, enum.Enum):
    OPEN = "open"           # Acepta predicciones
    LOCKED = "locked"       # Cerrada a mano por el anfitrión
    SCORED = "scored"       # Puntuada
    ARCHIVED = "archived"   # Temporada terminada


# Transiciones permitidas (solo hacia delante)
ALLOWED_TRANSITIONS: dict[RoomStatus, set[RoomStatus]] = {
    RoomStatus.OPEN: {RoomStatus.LOCKED, RoomStatus.ARCHIVED},
    RoomStatus.LOCKED: {RoomStatus.SCORED},
    RoomStatus.SCORED: {RoomStatus.ARCHIVED},
    RoomStatus.ARCHIVED: set(),
}

# Estados en los que la sala no acepta predicciones pase lo que pase
FORCED_LOCK_STATUSES = frozenset({RoomStatus.LOCKED, RoomStatus.SCORED, RoomStatus.ARCHIVED})


class Room(Base):
    """
    Sala de predicciones para una temporada completa.
    lockout_config y scoring_config se guardan como JSON y se validan con
    los esquemas de app/schemas/room.py.
    """
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    host_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    season_id: Mapped[int] = mapped_column(Integer, ForeignKey("seasons.id"), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)

    # Código único para unirse (ej: "X9A2B1")
    join_code: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    status: Mapped[RoomStatus] = mapped_column(SqEnum(RoomStatus), default=RoomStatus.OPEN, nullable=False)

    lockout_config: Mapped[dict] = mapped_column(JSON, nullable=False)
    scoring_config: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    # Relaciones
    host: Mapped["User"] = relationship("User")
    season: Mapped["Season"] = relationship("Season", back_populates="rooms")
    participants: Mapped[List["RoomParticipant"]] = relationship(
        "RoomParticipant", back_populates="room", cascade="all, delete-orphan"
    )
