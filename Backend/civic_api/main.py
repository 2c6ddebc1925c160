import os
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from civic_api.routes_analytics import router as analytics_router
from civic_api.routes_community import router as community_router
from civic_api.routes_issues import router as issues_router
from civic_api.routes_profile import router as profile_router
from civic_api.database import init_db
from civic_api.config.settings import settings

LOGGER = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title=f"{settings.PROJECT_NAME} Civic Issue API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    os.makedirs(settings.IMAGE_DIR, exist_ok=True)
    app.mount("/images", StaticFiles(directory=settings.IMAGE_DIR), name="images")

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        LOGGER.info("Rejected %s %s: invalid payload", request.method, request.url.path)
        return JSONResponse(status_code=400, content={"error": jsonable_encoder(exc.errors())})

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.get("/api/ping")
    def ping():
        return {"message": settings.PING_MESSAGE}

    app.include_router(issues_router)
    app.include_router(analytics_router)
    app.include_router(community_router)
    app.include_router(profile_router)

    @app.on_event("startup")
    def startup():
        init_db()
        LOGGER.info("%s API ready (env=%s)", settings.PROJECT_NAME, settings.ENV)

    return app


app = create_app()
