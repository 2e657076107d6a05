# printshop/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from printshop.core.config import settings
from printshop.core.logging_setup import setup_logging
from printshop.api.exception_handlers import register_exception_handlers
from printshop.api.router import api_router


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)

    # Health
    @app.get("/")
    def root():
        return {"message": "Print shop order API running", "version": "v1"}

    return app


app = create_app()
