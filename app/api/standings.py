from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db
from app.schemas.score import LeaderboardEntry, UserRoomStats
from app.services.leaderboard import race_leaderboard, season_leaderboard, user_room_stats

router = APIRouter(prefix="/standings", tags=["Standings"])


@router.get("/rooms/{room_id}", response_model=list[LeaderboardEntry])
def room_season_standings(room_id: int, db: Session = Depends(get_db)):
    return season_leaderboard(db, room_id)


@router.get("/rooms/{room_id}/races/{race_id}", response_model=list[LeaderboardEntry])
def room_race_standings(room_id: int, race_id: int, db: Session = Depends(get_db)):
    return race_leaderboard(db, room_id, race_id)


@router.get("/rooms/{room_id}/users/{user_id}", response_model=UserRoomStats)
def user_stats(room_id: int, user_id: int, db: Session = Depends(get_db)):
    return user_room_stats(db, room_id, user_id)
