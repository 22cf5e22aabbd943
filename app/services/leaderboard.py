"""
Clasificaciones de una sala a partir de las filas de Score.

Desempate (a igualdad de puntos): gana quien envió antes su predicción;
si aun así empatan, el id de usuario más bajo. Así el orden no depende de la
base de datos.
"""
from datetime import datetime

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from app.core import errors
from app.db.models.prediction import Prediction
from app.db.models.race import Race
from app.db.models.room import Room
from app.db.models.score import Score
from app.db.models.user import User
from app.schemas.score import LeaderboardEntry, ScoreBreakdown, UserRoomStats


def _tie_break_key(points: float, submitted_at: datetime | None, user_id: int):
    return (-points, submitted_at or datetime.max, user_id)


def rank_entries(rows: list[dict]) -> list[LeaderboardEntry]:
    """
    rows: dicts con user_id, username, avatar_url, points, submitted_at,
    races_scored y breakdown. Devuelve las entradas ordenadas con su posición.
    """
    ordered = sorted(rows, key=lambda r: _tie_break_key(r["points"], r.get("submitted_at"), r["user_id"]))
    return [
        LeaderboardEntry(
            rank=i,
            user_id=r["user_id"],
            username=r["username"],
            avatar_url=r.get("avatar_url"),
            points=r["points"],
            races_scored=r.get("races_scored", 1),
            breakdown=r.get("breakdown"),
        )
        for i, r in enumerate(ordered, start=1)
    ]


def _get_room(db: Session, room_id: int) -> Room:
    room = db.get(Room, room_id)
    if not room:
        raise errors.NotFoundError("Sala no encontrada")
    return room


def race_leaderboard(db: Session, room_id: int, race_id: int) -> list[LeaderboardEntry]:
    room = _get_room(db, room_id)
    race = db.get(Race, race_id)
    if not race:
        raise errors.NotFoundError("Carrera no encontrada")
    if race.season_id != room.season_id:
        raise errors.ValidationError("La carrera no pertenece a la temporada de la sala")

    results = (
        db.query(Score, User, Prediction.submitted_at)
        .join(User, User.id == Score.user_id)
        .outerjoin(
            Prediction,
            and_(
                Prediction.room_id == Score.room_id,
                Prediction.race_id == Score.race_id,
                Prediction.user_id == Score.user_id,
            ),
        )
        .filter(Score.room_id == room_id, Score.race_id == race_id)
        .all()
    )

    rows = []
    for score, user, submitted_at in results:
        rows.append({
            "user_id": user.id,
            "username": user.username,
            "avatar_url": user.avatar_url,
            "points": score.points,
            "submitted_at": submitted_at,
            "breakdown": ScoreBreakdown(
                position_points=score.position_points,
                fastest_lap_points=score.fastest_lap_points,
                pole_position_points=score.pole_position_points,
                dnf_penalty=score.dnf_penalty,
                total=score.points,
            ),
        })

    return rank_entries(rows)


def season_leaderboard(db: Session, room_id: int) -> list[LeaderboardEntry]:
    """Clasificación acumulada: suma de todas las carreras puntuadas de la sala"""
    _get_room(db, room_id)

    results = (
        db.query(
            User.id,
            User.username,
            User.avatar_url,
            func.coalesce(func.sum(Score.points), 0).label("points"),
            func.coalesce(func.sum(Score.position_points), 0).label("position_points"),
            func.coalesce(func.sum(Score.fastest_lap_points), 0).label("fastest_lap_points"),
            func.coalesce(func.sum(Score.pole_position_points), 0).label("pole_position_points"),
            func.coalesce(func.sum(Score.dnf_penalty), 0).label("dnf_penalty"),
            func.count(Score.id).label("races_scored"),
        )
        .join(Score, Score.user_id == User.id)
        .filter(Score.room_id == room_id)
        .group_by(User.id, User.username, User.avatar_url)
        .all()
    )

    # Primera predicción puntuada de cada usuario (para el desempate)
    first_submissions = dict(
        db.query(Prediction.user_id, func.min(Prediction.submitted_at))
        .join(
            Score,
            and_(
                Score.room_id == Prediction.room_id,
                Score.race_id == Prediction.race_id,
                Score.user_id == Prediction.user_id,
            ),
        )
        .filter(Prediction.room_id == room_id)
        .group_by(Prediction.user_id)
        .all()
    )

    rows = []
    for r in results:
        rows.append({
            "user_id": r.id,
            "username": r.username,
            "avatar_url": r.avatar_url,
            "points": float(r.points),
            "submitted_at": first_submissions.get(r.id),
            "races_scored": r.races_scored,
            "breakdown": ScoreBreakdown(
                position_points=r.position_points,
                fastest_lap_points=r.fastest_lap_points,
                pole_position_points=r.pole_position_points,
                dnf_penalty=r.dnf_penalty,
                total=r.points,
            ),
        })

    return rank_entries(rows)


def user_room_stats(db: Session, room_id: int, user_id: int) -> UserRoomStats:
    _get_room(db, room_id)

    # Todas las puntuaciones de la sala de una vez: el ganador de cada carrera
    # sale del mismo desempate que race_leaderboard
    results = (
        db.query(Score.race_id, Score.user_id, Score.points, Prediction.submitted_at)
        .outerjoin(
            Prediction,
            and_(
                Prediction.room_id == Score.room_id,
                Prediction.race_id == Score.race_id,
                Prediction.user_id == Score.user_id,
            ),
        )
        .filter(Score.room_id == room_id)
        .all()
    )

    winners = {}
    user_points = []
    for race_id, score_user_id, points, submitted_at in results:
        key = _tie_break_key(points, submitted_at, score_user_id)
        if race_id not in winners or key < winners[race_id]:
            winners[race_id] = key
        if score_user_id == user_id:
            user_points.append(points)

    total = sum(user_points)
    race_wins = sum(1 for key in winners.values() if key[2] == user_id)

    return UserRoomStats(
        room_id=room_id,
        user_id=user_id,
        total_points=total,
        average_points=total / len(user_points) if user_points else 0.0,
        races_scored=len(user_points),
        race_wins=race_wins,
    )
