import asyncio
import contextlib
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from orbit.core.config import settings
from orbit.core.logger import get_logger
from orbit.db.init_db import create_initial_data, init_db
from orbit.db.session import SessionLocal, engine
from orbit.routers import auth, feed, incidents
from orbit.services.feed_manager import feed_manager

logger = get_logger("orbit")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.INIT_DB_ON_STARTUP:
        await init_db(engine)
        async with SessionLocal() as session:
            await create_initial_data(session)

    listener = None
    if settings.REDIS_ENABLED:
        listener = asyncio.create_task(feed_manager.listen())
    logger.info(f"{settings.PROJECT_NAME} started")
    try:
        yield
    finally:
        if listener is not None:
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener
        await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for Orbit - geotagged emergency reports, officer verification and a live incident feed",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder({"error": "Invalid request", "detail": exc.errors()}),
    )


app.include_router(auth.router, prefix="/api", tags=["Authentication"])
app.include_router(incidents.router, prefix="/api", tags=["Incidents"])
app.include_router(feed.router, prefix="/api", tags=["Feed"])


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "operational", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT, reload=True)
