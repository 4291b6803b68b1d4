from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from harmony.config import settings
from harmony.database import engine
from harmony.logging_config import configure_logging
from harmony.routers import auth, connections, conversations, messages, users


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    application = FastAPI(title="Harmony API")

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(auth.router)
    application.include_router(users.router)
    application.include_router(connections.router)
    application.include_router(messages.router)
    application.include_router(conversations.router)

    @application.get("/health")
    def health():
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except Exception:
            return JSONResponse({"status": "unhealthy"}, status_code=503)

    return application


app = create_app()
