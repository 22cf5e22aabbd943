import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import PitwallError

# IMPORTANTE: Importar Base y Engine para que funcione la creación de tablas
from app.db.session import engine, Base

# Importar modelos para que SQLAlchemy los "vea" antes de crear las tablas
from app.db.models import _all

# Importar las rutas (los routers)
from app.api.auth import router as auth_router
from app.api.races import router as races_router
from app.api.rooms import router as rooms_router
from app.api.predictions import router as predictions_router
from app.api.standings import router as standings_router
from app.api.admin import router as admin_router
from app.tasks.result_poller import start_result_poller

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    poller = None
    if settings.poller_enabled:
        poller = start_result_poller()

    yield

    if poller:
        poller.cancel()
        try:
            await poller
        except asyncio.CancelledError:
            logger.info("Poller de resultados detenido")


app = FastAPI(
    title="Pitwall Predictions",
    version="1.0.0",
    lifespan=lifespan,
)

# Creamos las tablas en la base de datos
Base.metadata.create_all(bind=engine)


@app.exception_handler(PitwallError)
async def pitwall_error_handler(request: Request, exc: PitwallError):
    logger.warning("%s en %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# Conectamos las piezas (routers)
app.include_router(auth_router)
app.include_router(races_router)
app.include_router(rooms_router)
app.include_router(predictions_router)
app.include_router(standings_router)
app.include_router(admin_router)


# Configuramos el permiso para que el frontend pueda hablar con Python
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"message": "Pitwall Predictions funcionando 🏎️"}
