"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from curupira import __version__
from curupira.api.routes import router
from curupira.app import CurupiraApp


def create_api(app: CurupiraApp, manage_lifecycle: bool = True) -> FastAPI:
    """Build the HTTP API for app.

    Args:
        app: Application whose registry the endpoints expose.
        manage_lifecycle: Start and close the app with the ASGI lifespan.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if manage_lifecycle:
            await app.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await app.close()

    api = FastAPI(title="Curupira", version=__version__, lifespan=lifespan)
    api.state.curupira = app
    api.include_router(router)
    return api
