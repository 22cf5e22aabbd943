# app/schemas/score.py
from pydantic import BaseModel


class ScoreBreakdown(BaseModel):
    position_points: float = 0
    fastest_lap_points: float = 0
    pole_position_points: float = 0
    dnf_penalty: float = 0  # Negativo (o 0)
    total: float = 0


class ScoreResult(BaseModel):
    total: float
    breakdown: ScoreBreakdown


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    avatar_url: str | None = None
    points: float
    races_scored: int = 1
    breakdown: ScoreBreakdown | None = None


class UserRoomStats(BaseModel):
    room_id: int
    user_id: int
    total_points: float
    average_points: float
    races_scored: int
    race_wins: int
