# app/db/models/prediction.py
from sqlalchemy import Integer, ForeignKey, UniqueConstraint, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from datetime import datetime


class Prediction(Base):
    __tablename__ = "predictions"
    __table_args__ = (
        # Un usuario solo puede hacer 1 predicción por carrera y sala
        UniqueConstraint("room_id", "race_id", "user_id", name="uq_room_race_user_prediction"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    race_id: Mapped[int] = mapped_column(Integer, ForeignKey("races.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    fastest_lap_driver: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pole_position_driver: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dnf_drivers: Mapped[list[int]] = mapped_column(JSON, default=list)

    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relaciones
    user: Mapped["User"] = relationship("User", back_populates="predictions")
    race: Mapped["Race"] = relationship("Race", back_populates="predictions")
    positions: Mapped[list["PredictionPosition"]] = relationship(
        "PredictionPosition",
        back_populates="prediction",
        cascade="all, delete-orphan",
        order_by="PredictionPosition.position",
    )
