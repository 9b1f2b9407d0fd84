import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from phishlens.config import settings
from phishlens.api import routes

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"🚀 Starting {settings.APP_NAME}...")
    service = routes.get_analysis_service()
    if service.oracle_configured:
        logger.info(f"✓ Oracle configured ({settings.ORACLE_MODEL})")
    else:
        logger.warning("⚠️ Oracle not configured, verdicts will be rule-based only")
    yield
    # Shutdown
    logger.info(f"👋 Shutting down {settings.APP_NAME}...")
    service.shutdown()
    routes.get_analysis_service.cache_clear()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Malformed JSON and wrongly typed fields share the {error} envelope
    logger.debug(f"Rejected request to {request.url.path}: {exc.errors()}")
    return routes.error_response(400, "Invalid request body")

# Include routers
app.include_router(routes.router, prefix=settings.API_PREFIX, tags=["Analysis"])

@app.get("/")
def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "version": settings.VERSION,
        "docs": "/docs"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("phishlens.main:app", host="0.0.0.0", port=8000, reload=False)
