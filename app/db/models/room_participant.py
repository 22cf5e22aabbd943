import enum
from datetime import datetime
from sqlalchemy import Integer, ForeignKey, DateTime, UniqueConstraint, Enum as SqEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base


class ParticipantRole(str, enum.Enum):
    HOST = "host"
    PARTICIPANT = "participant"


class RoomParticipant(Base):
    __tablename__ = "room_participants"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_room_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(Integer, ForeignKey("rooms.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    role: Mapped[ParticipantRole] = mapped_column(SqEnum(ParticipantRole), default=ParticipantRole.PARTICIPANT)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relaciones
    room: Mapped["Room"] = relationship("Room", back_populates="participants")
    user: Mapped["User"] = relationship("User", back_populates="room_memberships")
