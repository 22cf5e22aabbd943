# app/db/models/race.py
from sqlalchemy import Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime
from app.db.session import Base

if TYPE_CHECKING:
    from app.db.models.season import Season
    from app.db.models.race_session import RaceSession
    from app.db.models.race_result import RaceResult
    from app.db.models.prediction import Prediction


class Race(Base):
    __tablename__ = "races"
    __table_args__ = (
        # Una ronda solo existe una vez por temporada
        UniqueConstraint("season_id", "round", name="uq_season_round"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    season_id: Mapped[int] = mapped_column(Integer, ForeignKey("seasons.id"), nullable=False, index=True)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Salida de la carrera (UTC)
    race_datetime: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    circuit: Mapped[str] = mapped_column(String, default="Unknown")
    location: Mapped[str] = mapped_column(String, default="Unknown")
    country: Mapped[str] = mapped_column(String, default="Unknown")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    # Relaciones
    season: Mapped["Season"] = relationship("Season", back_populates="races")
    sessions: Mapped[List["RaceSession"]] = relationship(
        "RaceSession", back_populates="race", cascade="all, delete-orphan"
    )
    result: Mapped[Optional["RaceResult"]] = relationship(
        "RaceResult", back_populates="race", uselist=False, cascade="all, delete-orphan"
    )
    predictions: Mapped[List["Prediction"]] = relationship("Prediction", back_populates="race")

    def get_session(self, name) -> "RaceSession | None":
        """Devuelve la sesión (fp1, qualifying...) si ya conocemos su horario"""
        for s in self.sessions:
            if s.session == name:
                return s
        return None

    @property
    def has_official_result(self) -> bool:
        return self.result is not None
