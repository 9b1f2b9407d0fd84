from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

# ==========================================
# 📥 INPUT MODELS
# ==========================================
# Fields are optional here; presence rules live in the artifact types so that
# missing and contradictory fields produce the same {error} response.

class UrlAnalysisRequest(BaseModel):
    url: Optional[str] = None

class EmailAnalysisRequest(BaseModel):
    sender: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None

class LogoAnalysisRequest(BaseModel):
    imageUrl: Optional[str] = None
    base64Image: Optional[str] = None

class BatchAnalysisRequest(BaseModel):
    """Tagged items, e.g. {"type": "url", "url": "..."}"""
    items: List[Dict[str, Any]] = Field(default_factory=list)

# ==========================================
# 📤 RESPONSE MODELS
# ==========================================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str
    oracleConfigured: bool

class BatchAnalysisResponse(BaseModel):
    results: List[Dict[str, Any]]
