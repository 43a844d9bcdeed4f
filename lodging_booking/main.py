# lodging_booking/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lodging_booking.config import ALLOWED_ORIGINS
from lodging_booking.logging_config import setup_logging
from lodging_booking.middleware import RequestIDMiddleware
from lodging_booking.routes.availability import router as availability_router
from lodging_booking.routes.health import router as health_router
from lodging_booking.routes.metrics import router as metrics_router
from lodging_booking.routes.payments import router as payments_router
from lodging_booking.routes.reservations import router as reservations_router
from lodging_booking.routes.units import router as units_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Lodging Booking API",
    description="Availability search, reservations and payment reconciliation",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(units_router, tags=["Units"])
app.include_router(availability_router, tags=["Availability"])
app.include_router(reservations_router, tags=["Reservations"])
app.include_router(payments_router, tags=["Payments"])
