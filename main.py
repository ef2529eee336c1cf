import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from orderhub.core.config import settings
from orderhub.core.logging_config import setup_logging
from orderhub.core.redis import redis_client
from orderhub.api.v1.api import api_router
from orderhub.middleware.logging import LoggingMiddleware

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"OrderHub starting ({settings.ENVIRONMENT})")
    yield
    await redis_client.disconnect()
    logger.info("OrderHub stopped")

# Create FastAPI app
app_config = {
    "title": "OrderHub",
    "description": "Order, payment and delivery reconciliation service",
    "version": "1.0.0",
    "lifespan": lifespan,
}

app = FastAPI(**app_config)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)
app.add_middleware(LoggingMiddleware)

# Include routers
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "message": "Welcome to OrderHub",
        "status": "active",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}

def run_http():
    """Run HTTP server"""
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )

if __name__ == "__main__":
    run_http()
