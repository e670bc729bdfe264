import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .config import Settings, settings as default_settings
from .context import AppContext, build_context
from .database import init_db
from .log_handler import SQLiteHandler
from .router import router


# --- Logging Setup ---
def setup_logging(settings: Settings = default_settings):
    logger = logging.getLogger("ebuddy")
    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        if getattr(handler, "_ebuddy_managed", False):
            logger.removeHandler(handler)
            handler.close()

    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR, exist_ok=True)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    file_handler._ebuddy_managed = True
    logger.addHandler(file_handler)

    if settings.LOG_TO_DB:
        init_db(settings)
        db_handler = SQLiteHandler(settings)
        db_handler.setLevel(logging.WARNING)
        db_handler._ebuddy_managed = True
        logger.addHandler(db_handler)
    # Also configure root logger to see logs from other libraries
    logging.basicConfig(level=logging.INFO)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    context: AppContext = app.state.context
    context.load()
    yield
    context.quiz.reset()
    context.progress.flush()


# --- App Factory ---
def create_app(
    settings: Settings = default_settings, context: Optional[AppContext] = None
) -> FastAPI:
    setup_logging(settings)
    app = FastAPI(
        title=settings.PROJECT_NAME,
        debug=settings.DEBUG,
        lifespan=lifespan,
        root_path=settings.ROOT_PATH,
    )
    app.state.context = context or build_context(settings)

    if os.path.isdir(settings.STATIC_DIR):
        app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")

    app.include_router(router)

    return app
