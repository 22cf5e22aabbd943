import logging
import secrets
from datetime import datetime

from sqlalchemy.orm import Session

from app.core import errors
from app.db.models.race import Race
from app.db.models.room import Room, RoomStatus, ALLOWED_TRANSITIONS
from app.db.models.room_participant import RoomParticipant, ParticipantRole
from app.db.models.season import Season
from app.db.models.user import User
from app.schemas.room import RoomCreate, RoomSettingsUpdate, parse_lockout_config
from app.services.lockout import LockoutInfo, calculate_lockout

logger = logging.getLogger(__name__)

# Sin caracteres que se confunden (0/O, 1/I)
JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH = 6


def generate_join_code(db: Session) -> str:
    while True:
        code = "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))
        if not db.query(Room).filter(Room.join_code == code).first():
            return code


def get_room_or_404(db: Session, room_id: int) -> Room:
    room = db.get(Room, room_id)
    if not room:
        raise errors.NotFoundError("Sala no encontrada")
    return room


def get_race_or_404(db: Session, race_id: int) -> Race:
    race = db.get(Race, race_id)
    if not race:
        raise errors.NotFoundError("Carrera no encontrada")
    return race


def ensure_race_in_room_season(room: Room, race: Race) -> None:
    if race.season_id != room.season_id:
        raise errors.ValidationError("La carrera no pertenece a la temporada de la sala")


def ensure_host(room: Room, user: User, action: str = "hacer esto") -> None:
    if room.host_id != user.id:
        raise errors.AuthorizationError(f"Solo el anfitrión puede {action}")


def is_participant(db: Session, room_id: int, user_id: int) -> bool:
    return (
        db.query(RoomParticipant)
        .filter(RoomParticipant.room_id == room_id, RoomParticipant.user_id == user_id)
        .first()
        is not None
    )


def create_room(db: Session, host: User, data: RoomCreate) -> Room:
    season = db.get(Season, data.season_id)
    if not season:
        raise errors.NotFoundError("Temporada no encontrada")

    room = Room(
        host_id=host.id,
        season_id=season.id,
        name=data.name,
        join_code=generate_join_code(db),
        status=RoomStatus.OPEN,
        lockout_config=data.lockout_config.model_dump(mode="json"),
        scoring_config=data.scoring_config.model_dump(mode="json"),
    )
    db.add(room)
    db.flush()

    # El anfitrión también juega
    db.add(RoomParticipant(room_id=room.id, user_id=host.id, role=ParticipantRole.HOST))
    db.commit()
    db.refresh(room)

    logger.info("Sala %s creada por el usuario %s (temporada %s)", room.id, host.id, season.year)
    return room


def join_room(db: Session, user: User, join_code: str) -> Room:
    room = db.query(Room).filter(Room.join_code == join_code.strip().upper()).first()
    if not room:
        raise errors.NotFoundError("Sala no encontrada")

    if room.status != RoomStatus.OPEN:
        raise errors.ValidationError("La sala no admite nuevos participantes")

    # Ya es participante: no hacemos nada
    if is_participant(db, room.id, user.id):
        return room

    db.add(RoomParticipant(room_id=room.id, user_id=user.id, role=ParticipantRole.PARTICIPANT))
    db.commit()
    return room


def list_participants(db: Session, room_id: int) -> list[RoomParticipant]:
    get_room_or_404(db, room_id)
    return (
        db.query(RoomParticipant)
        .filter(RoomParticipant.room_id == room_id)
        .order_by(RoomParticipant.joined_at, RoomParticipant.id)
        .all()
    )


def list_user_rooms(db: Session, user: User, include_closed: bool = False) -> list[Room]:
    """Salas en las que participa el usuario; por defecto solo las abiertas"""
    query = (
        db.query(Room)
        .join(RoomParticipant, RoomParticipant.room_id == Room.id)
        .filter(RoomParticipant.user_id == user.id)
    )
    if not include_closed:
        query = query.filter(Room.status == RoomStatus.OPEN)
    return query.order_by(Room.created_at.desc(), Room.id.desc()).all()


def update_room_settings(db: Session, user: User, room_id: int, data: RoomSettingsUpdate) -> Room:
    room = get_room_or_404(db, room_id)
    ensure_host(room, user, "cambiar la configuración")

    if data.name is not None:
        room.name = data.name
    if data.lockout_config is not None:
        room.lockout_config = data.lockout_config.model_dump(mode="json")
    if data.scoring_config is not None:
        room.scoring_config = data.scoring_config.model_dump(mode="json")

    room.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(room)
    return room


def transition_room_status(room: Room, target: RoomStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[room.status]:
        raise errors.ValidationError(
            f"No se puede pasar la sala de '{room.status.value}' a '{target.value}'"
        )
    room.status = target


def change_room_status(db: Session, user: User, room_id: int, target: RoomStatus) -> Room:
    room = get_room_or_404(db, room_id)
    ensure_host(room, user, "cambiar el estado de la sala")

    transition_room_status(room, target)
    room.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(room)

    logger.info("Sala %s -> %s", room.id, target.value)
    return room


def get_room_lockout(db: Session, room_id: int, race_id: int, now: datetime | None = None) -> tuple[Room, LockoutInfo]:
    room = get_room_or_404(db, room_id)
    race = get_race_or_404(db, race_id)
    ensure_race_in_room_season(room, race)

    info = calculate_lockout(room.status, parse_lockout_config(room.lockout_config), race, now)
    return room, info
