"""
FastAPI Application Entry Point

MedSearch Evidence Engine API
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from medsearch.core.config import settings
from medsearch.core.dependencies import get_cache
from medsearch.core.logging import setup_logging
from medsearch.core.rate_limit import limiter, rate_limit_exceeded_handler
from medsearch.api.research import router as research_router

setup_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Tiered biomedical literature search with evidence scoring and GRADE assessment",
    version="1.0.0"
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.include_router(research_router)

origins = [
    "http://localhost:4200",
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.get("/")
async def health_check():
    """Root endpoint to verify the server is running."""
    cache = get_cache()
    connected = cache.is_connected if cache is not None else False
    return {
        "status": "active",
        "project": settings.PROJECT_NAME,
        "version": "1.0.0",
        "cache": {
            "enabled": cache is not None,
            "type": "redis" if connected else "in-memory",
            "connected": connected
        },
        "rate_limiting": {
            "enabled": settings.RATE_LIMIT_ENABLED,
        },
        "endpoints": {
            "research": "/api/research",
            "research_stream": "/api/research/stream",
            "sources": "/api/research/sources"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
