"""
Phone Shop Backend - Main Application

Maintenance jobs, commission settlements, staff and phone inventory for a
phone repair shop.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
import logging

from phoneshop import config
from phoneshop.routers import inventory, maintenance, realtime, settlements, staff
from phoneshop.services.document_store import close_document_store

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info(f"Starting Phone Shop Backend (store: {config.STORE_BACKEND})...")
    yield
    # Shutdown
    logger.info("Shutting down Phone Shop Backend...")
    await close_document_store()


# Initialize FastAPI app
app = FastAPI(
    title="Phone Shop API",
    description="Repair jobs, commission settlements and barcode inventory",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(maintenance.router, prefix="/api/jobs", tags=["Maintenance Jobs"])
app.include_router(settlements.router, prefix="/api/settlements", tags=["Settlements"])
app.include_router(staff.router, prefix="/api/staff", tags=["Staff"])
app.include_router(inventory.router, prefix="/api/phones", tags=["Phone Inventory"])
app.include_router(realtime.router, prefix="/api/realtime", tags=["Real-time"])


@app.get("/")
def read_root():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "Phone Shop Backend",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Detailed health check"""
    return {
        "status": "healthy",
        "store_backend": config.STORE_BACKEND,
        "supabase_configured": bool(config.SUPABASE_URL and config.SUPABASE_KEY)
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
