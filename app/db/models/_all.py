# Importa todos los modelos para que SQLAlchemy los registre antes de create_all
from app.db.models.user import User  # noqa: F401
from app.db.models.season import Season  # noqa: F401
from app.db.models.race import Race  # noqa: F401
from app.db.models.race_session import RaceSession  # noqa: F401
from app.db.models.race_result import RaceResult  # noqa: F401
from app.db.models.race_position import RacePosition  # noqa: F401
from app.db.models.room import Room  # noqa: F401
from app.db.models.room_participant import RoomParticipant  # noqa: F401
from app.db.models.prediction import Prediction  # noqa: F401
from app.db.models.prediction_position import PredictionPosition  # noqa: F401
from app.db.models.score import Score  # noqa: F401
