from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from oncegate.config import DEFAULT_PORT, get_settings
from oncegate.routers.download import router as download_router
from oncegate.services.proxy import apply_no_cache
from oncegate.services.storage import init_local_storage

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("oncegate")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_local_storage(settings)
    yield


app = FastAPI(title="oncegate", docs_url=None, redoc_url=None, openapi_url=None, lifespan=lifespan)


@app.middleware("http")
async def no_cache_headers(request: Request, call_next):
    # en toda respuesta, incluso 400/403/404/405/500
    response = await call_next(request)
    apply_no_cache(response.headers)
    return response


app.include_router(download_router)


if __name__ == "__main__":
    import uvicorn

    if not os.getenv("PORT"):
        logger.info("Defaulting to port %s", DEFAULT_PORT)
    logger.info("Listening on port %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
