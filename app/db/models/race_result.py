# app/db/models/race_result.py
from datetime import datetime
from sqlalchemy import Integer, ForeignKey, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base


class RaceResult(Base):
    """Resultado oficial de una carrera. Solo existe una vez por carrera."""
    __tablename__ = "race_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    race_id: Mapped[int] = mapped_column(Integer, ForeignKey("races.id"), nullable=False, unique=True)
    fastest_lap_driver: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pole_position_driver: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Dorsales de los pilotos que abandonaron en carrera
    dnf_drivers: Mapped[list[int]] = mapped_column(JSON, default=list)
    fetched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relaciones
    race: Mapped["Race"] = relationship("Race", back_populates="result")
    positions: Mapped[list["RacePosition"]] = relationship(
        "RacePosition",
        back_populates="race_result",
        cascade="all, delete-orphan",
        order_by="RacePosition.position",
    )
