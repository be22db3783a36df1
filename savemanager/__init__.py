import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from savemanager.core.config import APP_VERSION, ENV_FILE


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup/shutdown."""
    from savemanager.services import save_scheduler, settings

    if settings.save_default_config():
        settings.reload_config()

    await save_scheduler.start_scheduler()
    print("Save scheduler started")

    yield

    await save_scheduler.stop_scheduler()
    print("SaveManager shutting down")


def create_app():
    """FastAPI application factory."""
    load_dotenv(dotenv_path=ENV_FILE)

    secret_key = os.getenv("SECRET_KEY")
    if not secret_key:
        raise ValueError("ERROR: SECRET_KEY is missing in .env file!")

    app = FastAPI(
        title="SaveManager",
        version=APP_VERSION,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(SessionMiddleware, secret_key=secret_key)

    from savemanager.routers import savemanager

    app.include_router(savemanager.router, tags=["SaveManager"])

    return app
