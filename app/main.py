# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.exceptions import BookingError, ExhaustionError, ExternalServiceError
from app.core.limiter import limiter
from app.core.pubsub import TopicRegistry
from app.scheduler import init_scheduler, shutdown_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Museum booking service starting up...")
    app.state.topics = TopicRegistry()
    if settings.SCHEDULER_ENABLED:
        init_scheduler(app.state.topics)
    yield
    logger.info("Museum booking service shutting down...")
    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()


app = FastAPI(
    title="Museum Booking Service",
    version="1.0.0",
    description="""
        Timed-entry ticketing for the museum.

        ## Features

        * **Slots**: Opening hours, bookable slots and live capacity
        * **Checkout**: Baskets of up to 10 tickets paid through Stripe Checkout
        * **Gift codes**: Packs of single-use codes that make a ticket free
        * **Door validation**: One-time scan of the ticket QR code

        ## Authentication

        Staff endpoints require a JWT via the `Authorization: Bearer <token>` header.
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if isinstance(exc, (ExternalServiceError, ExhaustionError)):
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            exc_info=exc.__cause__ or exc,
        )
        message = "Service temporarily unavailable, please try again"
    else:
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": message, "code": exc.code.value},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Museum Booking Service is running"}
