import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gearlocker.config import get_settings
from gearlocker.db import create_db_and_tables
from gearlocker.logger import setup_logger
from gearlocker.routers import checkouts, equipment, skus

settings = get_settings()
logger = logging.getLogger("gearlocker")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger("gearlocker", settings.log_file, settings.log_level)
    create_db_and_tables()
    logger.info("gear locker API started")
    yield
    logger.info("gear locker API stopped")


app = FastAPI(title=settings.app_title, lifespan=lifespan)

app.include_router(equipment.router)
app.include_router(checkouts.router)
app.include_router(skus.router)


@app.get("/health")
def health():
    return {"ok": True}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, dict):
        content = {"error": detail.get("message", ""), "code": detail.get("code", "ERROR")}
    else:
        content = {"error": str(detail), "code": "HTTP_%d" % exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": "Request validation failed",
            "code": "VALIDATION_ERROR",
            "errors": jsonable_encoder(exc.errors()),
        },
    )
