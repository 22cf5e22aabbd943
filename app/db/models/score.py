# app/db/models/score.py
from datetime import datetime
from sqlalchemy import Integer, Float, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base


class Score(Base):
    """
    Puntuación de una predicción (sala, carrera, usuario).
    Guardamos el desglose para poder enseñarlo en la clasificación.
    """
    __tablename__ = "scores"
    __table_args__ = (
        UniqueConstraint("room_id", "race_id", "user_id", name="uq_room_race_user_score"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    race_id: Mapped[int] = mapped_column(Integer, ForeignKey("races.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    points: Mapped[float] = mapped_column(Float, default=0)
    position_points: Mapped[float] = mapped_column(Float, default=0)
    fastest_lap_points: Mapped[float] = mapped_column(Float, default=0)
    pole_position_points: Mapped[float] = mapped_column(Float, default=0)
    dnf_penalty: Mapped[float] = mapped_column(Float, default=0)  # Siempre <= 0

    calculated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relaciones
    user: Mapped["User"] = relationship("User")
