# --- imports ---
import logging
import os

from fastapi import FastAPI

from . import db
from .core.config import IS_PRODUCTION, LOG_DIR
from .services.logging_service import configure_logging, log_environment_info

# --- create app ---
app = FastAPI(title="Club Schedules", version="0.1.0")

# --- logging (writes tracebacks to logs/server.log) ---
configure_logging(LOG_DIR, production=IS_PRODUCTION)
if IS_PRODUCTION:
    log_environment_info()

logger = logging.getLogger(__name__)

# --- include routers (after app = FastAPI) ---
from .api.schedules import router as schedules_api

app.include_router(schedules_api)


@app.get("/health")
async def health():
    return {"status": "ok"}


# --- lifecycle: init DB ---
@app.on_event("startup")
async def _on_startup() -> None:
    try:
        db.initialise_database()
        logger.info("Database ready at %s", db.get_db_path())
    except Exception:
        logger.exception("Database initialization failed")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.environ.get("HOST", "127.0.0.1"), port=int(os.environ.get("PORT", "8000")))
