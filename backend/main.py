import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spotch.api.endpoints import admin, exchange, payments, quests, rankings, spots, users, visits, wallet
from spotch.core.database import Base, engine
from spotch.core.errors import SpotchError
from spotch.core.settings import settings

# Imported for their side effect of registering tables on Base.metadata.
from spotch.models import badge, coupon, quest, social, spot, transaction, user, visit, weekly_spot_points  # noqa: F401
from spotch.models import wallet as wallet_model  # noqa: F401

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Spotch API")

    origins = settings.resolved_cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    def startup() -> None:
        if settings.db_auto_create:
            Base.metadata.create_all(bind=engine)
        logger.info("app.startup environment=%s auto_create=%s", settings.environment, settings.db_auto_create)

    @app.exception_handler(SpotchError)
    async def spotch_error_handler(request: Request, exc: SpotchError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("api.error path=%s kind=%s reason=%s", request.url.path, exc.kind.value, exc.reason)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(users.router, prefix="/api", tags=["users"])
    app.include_router(spots.router, prefix="/api", tags=["spots"])
    app.include_router(visits.router, prefix="/api", tags=["visits"])
    app.include_router(wallet.router, prefix="/api", tags=["wallet"])
    app.include_router(quests.router, prefix="/api", tags=["quests"])
    app.include_router(rankings.router, prefix="/api", tags=["rankings"])
    app.include_router(payments.router, prefix="/api", tags=["payments"])
    app.include_router(exchange.router, prefix="/api", tags=["exchange"])
    app.include_router(admin.router, prefix="/api", tags=["admin"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
