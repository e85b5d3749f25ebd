from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shuttle import __version__
from shuttle.config import settings
from shuttle.database import init_db
from shuttle.logger import setup_logger
from shuttle.pricing import router as pricing_router
from shuttle.bookings import router as bookings_router
from shuttle.credits import router as credits_router
from shuttle.calendar import router as calendar_router
from shuttle.notifications import router as notifications_router

logger = setup_logger(settings.SERVICE_NAME, settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    yield


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=__version__,
    description="Shared Shuttle Booking API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    pricing_router,
    prefix=f"{settings.API_V1_STR}/pricing",
    tags=["Pricing"]
)

app.include_router(
    bookings_router,
    prefix=f"{settings.API_V1_STR}/bookings",
    tags=["Bookings & Refunds"]
)

app.include_router(
    credits_router,
    prefix=f"{settings.API_V1_STR}/credits",
    tags=["Credits"]
)

app.include_router(
    calendar_router,
    prefix=f"{settings.API_V1_STR}/calendar",
    tags=["Calendar"]
)

app.include_router(
    notifications_router,
    prefix=f"{settings.API_V1_STR}/notifications",
    tags=["Notifications"]
)

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "Shared Shuttle Booking API",
        "version": __version__,
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
