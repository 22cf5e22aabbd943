from pydantic import BaseModel
from datetime import datetime


class UserOut(BaseModel):
    id: int
    external_id: str
    username: str
    email: str | None = None
    avatar_url: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
