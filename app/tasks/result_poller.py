"""
app/tasks/result_poller.py
Tarea periódica: busca carreras terminadas sin resultado y lanza la sincronización.

No reintenta dentro de la misma pasada: la siguiente ejecución es el reintento.
"""
import asyncio
import logging

from app.core.config import settings
from app.db.session import SessionLocal
from app.schemas.race import BatchSyncResult
from app.services.f1_provider import build_provider
from app.services.race_sync import sync_completed_races

logger = logging.getLogger(__name__)


def run_poll_once() -> BatchSyncResult:
    """Punto de entrada sin argumentos para el planificador."""
    db = SessionLocal()
    try:
        provider = build_provider()
        result = sync_completed_races(db, provider)
        logger.info("Poller: %s", result.message)
        for error in result.errors:
            logger.warning("Poller: %s", error)
        return result
    finally:
        db.close()


async def poll_loop(interval_seconds: int | None = None):
    interval_seconds = interval_seconds or settings.poll_interval_seconds
    logger.info("Arrancando poller de resultados cada %ss", interval_seconds)

    while True:
        try:
            # La sincronización es bloqueante (red + BD): la sacamos del event loop
            await asyncio.to_thread(run_poll_once)
        except Exception:
            logger.exception("Error en el poller de resultados")

        await asyncio.sleep(interval_seconds)


def start_result_poller(interval_seconds: int | None = None) -> asyncio.Task:
    return asyncio.create_task(poll_loop(interval_seconds))


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    run_poll_once()
