# registration_service/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from registration_service.api.v1.api import api_router
from registration_service.core.config import settings
from registration_service.core.exceptions import RegistrationServiceError
from registration_service.core.limiter import limiter
from registration_service.core.logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"Registration service starting (env={settings.ENV}, "
        f"gateway={'paystack' if settings.PAYSTACK_ENABLED else 'manual bank transfer'})"
    )
    yield
    logger.info("Registration service shutting down")


app = FastAPI(
    title="Competition Registration Service",
    version="1.0.0",
    description="""
        Registration, payment verification and ticketing for the competition.

        ## Features

        * **Registration**: Individual participants and school groups, with tracking numbers
        * **Payments**: Bank transfer attestation with admin verification, or Paystack checkout
        * **Tickets**: QR-coded tickets issued once payment is verified
        * **Check-in**: One-way check-in at the venue, gating participation certificates

        ## Authentication

        Admin endpoints under `/admin/` require a bearer token with the admin role.
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RegistrationServiceError)
async def registration_service_error_handler(request: Request, exc: RegistrationServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Registration service is running"}
