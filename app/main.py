import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api import analysis
from app.services.ai_service import ConfigurationError, RateLimitError, ServiceUnavailableError

logger = logging.getLogger(__name__)

app = FastAPI(title="Foodcheck", version="0.1.0")


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "detail": {
                "error": "not_configured",
                "message": "The analysis service is not configured.",
                "can_retry": False,
            }
        },
    )


@app.exception_handler(ServiceUnavailableError)
async def service_unavailable_handler(request: Request, exc: ServiceUnavailableError):
    return JSONResponse(
        status_code=503,
        content={
            "detail": {
                "error": "service_unavailable",
                "message": "The AI service is temporarily unavailable. Please try again in a minute.",
                "can_retry": True,
            }
        },
    )


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError):
    return JSONResponse(
        status_code=429,
        content={
            "detail": {
                "error": "rate_limit",
                "message": "Too many requests. Please wait a minute and try again.",
                "can_retry": True,
            }
        },
    )


# Include routers
app.include_router(analysis.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
