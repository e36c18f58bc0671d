from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agrostock import __version__
from agrostock.api.exception_handlers import setup_exception_handlers
from agrostock.api.router import api_router
from agrostock.core.config import get_settings
from agrostock.core.logging import setup_logging
from agrostock.db.session import init_db

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    init_db()
    yield


def create_application() -> FastAPI:
    setup_logging()
    application = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    if settings.cors_origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )
    setup_exception_handlers(application)
    application.include_router(api_router, prefix=settings.api_v1_prefix)
    return application


app = create_application()
