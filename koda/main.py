from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from koda.core.config import settings
from koda.core.logging import get_logger, setup_logging
from koda.src.discover.routes import router as discover_router
from koda.src.events.routes import find_time_router
from koda.src.events.routes import router as events_router
from koda.src.friends.routes import router as friends_router
from koda.src.google_sync.routes import router as google_router
from koda.src.users.routes import me_router
from koda.src.users.routes import router as auth_router

# Set up logging configuration
setup_logging()

# Set up logger for this module
logger = get_logger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with /api/v1 prefix
app.include_router(auth_router, prefix="/api/v1")
app.include_router(me_router, prefix="/api/v1")
app.include_router(events_router, prefix="/api/v1")
app.include_router(find_time_router, prefix="/api/v1")
app.include_router(google_router, prefix="/api/v1")
app.include_router(discover_router, prefix="/api/v1")
app.include_router(friends_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/")
async def root():
    """Root endpoint."""
    logger.debug("Root endpoint called")
    return {"message": "Welcome to Koda API!"}
