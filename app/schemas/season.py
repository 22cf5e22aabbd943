from pydantic import BaseModel


class SeasonOut(BaseModel):
    id: int
    year: int
    name: str
    total_races: int
    current_round: int

    class Config:
        from_attributes = True


class SeasonSyncOut(BaseModel):
    season: SeasonOut
    races_synced: int
    logs: list[str]
