# buildapp/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from buildapp.api.responses import error_body
from buildapp.api.v1.api import api_router
from buildapp.core.config import settings
from buildapp.core.errors import InternalError, TradeError
from buildapp.core.limiter import limiter
from buildapp.scheduler import init_scheduler, shutdown_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Trade service starting up...")
    if settings.SCHEDULER_ENABLED:
        init_scheduler()
    yield
    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()
    logger.info("Trade service shutting down...")


app = FastAPI(
    title="BuildApp Trade Service",
    version="1.0.0",
    description="""
        Buyer/supplier trade core: RFQs and offers, direct orders,
        fulfilment with delivery evidence, and equipment rentals.

        ## Authentication

        Every endpoint requires a JWT via the `Authorization: Bearer <token>`
        header. The WebSocket endpoint takes the token as a `token` query
        parameter.
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TradeError)
async def trade_error_handler(request: Request, exc: TradeError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_body("validation_error", "Request validation failed", {"errors": errors}),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(HTTP_ERROR_CODES.get(exc.status_code, "error"), str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_body(InternalError.code, InternalError().message),
    )


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Trade Service is running"}
