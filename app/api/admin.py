from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_race_data_provider, require_admin
from app.schemas.race import BatchSyncResult, RaceOut, RaceSyncResult
from app.schemas.season import SeasonOut, SeasonSyncOut
from app.services.f1_provider import RaceDataProvider
from app.services.race_sync import sync_completed_races, sync_race_results_and_score
from app.services.schedule_sync import sync_race_session_times, sync_season_schedule

router = APIRouter(prefix="/admin", tags=["Admin"])


# -----------------------
# Calendario
# -----------------------
@router.post("/seasons/{year}/sync", response_model=SeasonSyncOut)
def sync_schedule(
    year: int,
    db: Session = Depends(get_db),
    provider: RaceDataProvider = Depends(get_race_data_provider),
    current_user = Depends(require_admin),
):
    season, logs = sync_season_schedule(db, year, provider)
    return SeasonSyncOut(
        season=SeasonOut.model_validate(season),
        races_synced=season.total_races,
        logs=logs,
    )


@router.post("/races/{race_id}/sessions", response_model=RaceOut)
def refresh_session_times(
    race_id: int,
    db: Session = Depends(get_db),
    provider: RaceDataProvider = Depends(get_race_data_provider),
    current_user = Depends(require_admin),
):
    return sync_race_session_times(db, race_id, provider)


# -----------------------
# Resultados
# -----------------------
@router.post("/races/{race_id}/sync", response_model=RaceSyncResult)
def sync_race(
    race_id: int,
    db: Session = Depends(get_db),
    provider: RaceDataProvider = Depends(get_race_data_provider),
    current_user = Depends(require_admin),
):
    return sync_race_results_and_score(db, race_id, provider)


@router.post("/poll", response_model=BatchSyncResult)
def run_poller_now(
    db: Session = Depends(get_db),
    provider: RaceDataProvider = Depends(get_race_data_provider),
    current_user = Depends(require_admin),
):
    # Misma pasada que el poller, pero sin esperar al siguiente ciclo
    return sync_completed_races(db, provider)
