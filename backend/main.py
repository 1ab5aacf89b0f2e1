"""
Haiku Execution Backend - FastAPI application

Run: uvicorn main:app --app-dir backend
"""

from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

from infrastructure.errors import register_exception_handlers
from api.haiku_router import router as haiku_router, shutdown_client
from api.infrastructure_router import router as infrastructure_router

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await shutdown_client()


def create_app() -> FastAPI:
    app = FastAPI(title="Haiku Execution Backend", version=VERSION, lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(haiku_router)
    app.include_router(infrastructure_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "version": VERSION,
        }

    return app


app = create_app()
