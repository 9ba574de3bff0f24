"""Main FastAPI application"""
import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager

from atscfg.core.config import settings
from atscfg.core.database import engine
from atscfg.core.init import init_system


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    await init_system()
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Import and include routers
from atscfg.api.v1 import ats

# API routes
app.include_router(ats.router, prefix="/api/v1", tags=["ats"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Traffic Ops ATS Config API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}


def run():
    """Serve the API on HOST:PORT"""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
