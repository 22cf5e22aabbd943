# app/db/models/race_session.py
import enum
from datetime import datetime
from sqlalchemy import Integer, ForeignKey, DateTime, UniqueConstraint, Enum as SqEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base


class SessionName(str, enum.Enum):
    FP1 = "fp1"
    FP2 = "fp2"
    FP3 = "fp3"
    QUALIFYING = "qualifying"
    RACE = "race"


class RaceSession(Base):
    """
    Horario de una sesión del fin de semana.
    Si no hay fila para una sesión es que todavía no conocemos su horario.
    """
    __tablename__ = "race_sessions"
    __table_args__ = (
        UniqueConstraint("race_id", "session", name="uq_race_session"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    race_id: Mapped[int] = mapped_column(Integer, ForeignKey("races.id"), nullable=False)
    session: Mapped[SessionName] = mapped_column(SqEnum(SessionName), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relaciones
    race: Mapped["Race"] = relationship("Race", back_populates="sessions")
