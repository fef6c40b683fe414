"""
FastAPI application entry point.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import text, transcription
from .config import Config
from .utils.log_format import configure_logging

config = Config()
configure_logging(config.log_level)


def create_app() -> FastAPI:
    app = FastAPI(title="chunkscribe")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(transcription.router)
    app.include_router(text.router)
    return app


app = create_app()
