from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, get_db, get_race_data_provider
from app.schemas.race import BatchSyncResult, RaceSyncResult
from app.schemas.room import (
    LockoutInfoOut,
    ParticipantOut,
    RoomCreate,
    RoomJoin,
    RoomOut,
    RoomSettingsUpdate,
    RoomStatusUpdate,
)
from app.services import rooms as room_service
from app.services.f1_provider import RaceDataProvider
from app.services.race_sync import sync_all_season_races, sync_race_results_and_score

router = APIRouter(prefix="/rooms", tags=["Rooms"])


@router.post("/", response_model=RoomOut)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return room_service.create_room(db, current_user, data)


@router.post("/join", response_model=RoomOut)
def join_room(
    data: RoomJoin,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return room_service.join_room(db, current_user, data.join_code)


@router.get("/mine", response_model=list[RoomOut])
def my_rooms(
    include_closed: bool = False,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return room_service.list_user_rooms(db, current_user, include_closed=include_closed)


@router.get("/{room_id}", response_model=RoomOut)
def get_room(room_id: int, db: Session = Depends(get_db)):
    return room_service.get_room_or_404(db, room_id)


@router.get("/{room_id}/participants", response_model=list[ParticipantOut])
def list_participants(room_id: int, db: Session = Depends(get_db)):
    participants = room_service.list_participants(db, room_id)
    return [
        ParticipantOut(
            user_id=p.user_id,
            username=p.user.username,
            avatar_url=p.user.avatar_url,
            role=p.role,
            joined_at=p.joined_at,
        )
        for p in participants
    ]


@router.patch("/{room_id}/settings", response_model=RoomOut)
def update_settings(
    room_id: int,
    data: RoomSettingsUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return room_service.update_room_settings(db, current_user, room_id, data)


@router.patch("/{room_id}/status", response_model=RoomOut)
def update_status(
    room_id: int,
    data: RoomStatusUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return room_service.change_room_status(db, current_user, room_id, data.status)


@router.get("/{room_id}/races/{race_id}/lockout", response_model=LockoutInfoOut)
def get_lockout(room_id: int, race_id: int, db: Session = Depends(get_db)):
    room, info = room_service.get_room_lockout(db, room_id, race_id)
    return LockoutInfoOut(
        room_id=room.id,
        race_id=race_id,
        lockout_at=info.lockout_at,
        locked=info.locked,
        seconds_remaining=info.time_remaining.total_seconds() if info.time_remaining else None,
        lockout_config=room.lockout_config,
        room_status=room.status,
    )


# -----------------------
# Sincronización manual (solo anfitrión)
# -----------------------
@router.post("/{room_id}/races/{race_id}/sync", response_model=RaceSyncResult)
def sync_race(
    room_id: int,
    race_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
    provider: RaceDataProvider = Depends(get_race_data_provider),
):
    room = room_service.get_room_or_404(db, room_id)
    room_service.ensure_host(room, current_user, "sincronizar resultados")
    race = room_service.get_race_or_404(db, race_id)
    room_service.ensure_race_in_room_season(room, race)

    return sync_race_results_and_score(db, race.id, provider)


@router.post("/{room_id}/sync-all", response_model=BatchSyncResult)
def sync_all(
    room_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
    provider: RaceDataProvider = Depends(get_race_data_provider),
):
    room = room_service.get_room_or_404(db, room_id)
    room_service.ensure_host(room, current_user, "sincronizar resultados")

    return sync_all_season_races(db, room.season_id, provider)
