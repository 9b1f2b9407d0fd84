import logging
from functools import lru_cache
from typing import Callable

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from phishlens.config import settings
from phishlens.core.artifacts import EmailInput, InvalidArtifactError, LogoInput, UrlInput
from phishlens.schemas import (
    BatchAnalysisRequest,
    BatchAnalysisResponse,
    EmailAnalysisRequest,
    HealthResponse,
    LogoAnalysisRequest,
    UrlAnalysisRequest,
)
from phishlens.services.analysis_service import AnalysisService, utc_timestamp

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_analysis_service() -> AnalysisService:
    return AnalysisService(settings)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _analyze(service: AnalysisService, build: Callable, failure_message: str):
    try:
        artifact = build()
    except InvalidArtifactError as e:
        return error_response(400, str(e))

    try:
        return service.analyze(artifact).to_response()
    except Exception:
        logger.exception(f"❌ Error in /analyze/{artifact.artifact_type}")
        return error_response(500, failure_message)

# ============================================================================
# ANALYSIS ENDPOINTS
# ============================================================================

@router.post("/analyze/url")
def analyze_url(
    request: UrlAnalysisRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Classify a single URL"""
    return _analyze(service, lambda: UrlInput(url=request.url), "URL analysis failed")


@router.post("/analyze/email")
def analyze_email(
    request: EmailAnalysisRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Classify an email from its sender, subject and body"""
    return _analyze(
        service,
        lambda: EmailInput(sender=request.sender, subject=request.subject, body=request.body),
        "Email analysis failed",
    )


@router.post("/analyze/logo")
def analyze_logo(
    request: LogoAnalysisRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Classify a logo given either an image URL or a base64 upload"""
    return _analyze(
        service,
        lambda: LogoInput(image_url=request.imageUrl, base64_image=request.base64Image),
        "Logo analysis failed",
    )


@router.post("/analyze/batch", response_model=BatchAnalysisResponse)
def analyze_batch(
    request: BatchAnalysisRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    try:
        results = service.analyze_batch(request.items)
    except InvalidArtifactError as e:
        return error_response(400, str(e))
    except Exception:
        logger.exception("❌ Error in /analyze/batch")
        return error_response(500, "Batch analysis failed")
    return {"results": results}


@router.get("/health", response_model=HealthResponse)
def health_check(service: AnalysisService = Depends(get_analysis_service)):
    return {
        "status": "healthy",
        "timestamp": utc_timestamp(),
        "service": settings.APP_NAME,
        "oracleConfigured": service.oracle_configured,
    }
