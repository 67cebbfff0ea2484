from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from otpmarket import __version__
from otpmarket.core.config import get_settings
from otpmarket.core.container import ApplicationContainer
from otpmarket.core.logging import setup_logging
from otpmarket.interfaces.http.routers import create_api_router


def create_app(container: Optional[ApplicationContainer] = None) -> FastAPI:
    settings = container.settings if container is not None else get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = container or ApplicationContainer.build(settings)
        app.state.container = active
        await active.startup()
        try:
            yield
        finally:
            await active.shutdown()

    app = FastAPI(
        title=settings.project_name,
        description="Virtual phone number marketplace for one-time SMS verification codes",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_api_router(settings.api_prefix))

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("otpmarket.main:app", host=_settings.host, port=_settings.port, reload=_settings.server.reload)
