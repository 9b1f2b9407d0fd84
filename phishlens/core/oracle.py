import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from phishlens.core.artifacts import EmailInput, LogoInput, UrlInput

logger = logging.getLogger(__name__)

# Longest body excerpt forwarded to the model
_BODY_EXCERPT = 1500


@dataclass(frozen=True)
class OracleSignal:
    is_positive: bool
    confidence: float
    reasoning: str
    extra_threats: Tuple[str, ...] = ()
    # False for the fallback signal: the combiner then ignores the oracle
    available: bool = True

    def to_dict(self) -> Dict:
        return {
            "isPhishing": self.is_positive,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "additionalThreats": list(self.extra_threats),
            "available": self.available,
        }


FALLBACK_SIGNAL = OracleSignal(
    is_positive=False,
    confidence=50,
    reasoning="unavailable",
    available=False,
)


@dataclass(frozen=True)
class DecodeResult:
    ok: bool
    payload: Optional[Dict] = None
    error: Optional[str] = None


def lenient_decode(text: str) -> DecodeResult:
    """
    Pull the first well-formed JSON object out of free text.

    Models wrap their answer in prose or markdown fences; every ``{`` is tried as
    the start of an object until one decodes.
    """
    if not text:
        return DecodeResult(ok=False, error="empty response")

    decoder = json.JSONDecoder()
    start = text.find("{")
    if start == -1:
        return DecodeResult(ok=False, error="no JSON object in response")

    while start != -1:
        try:
            payload, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(payload, dict):
            return DecodeResult(ok=True, payload=payload)
        start = text.find("{", start + 1)

    return DecodeResult(ok=False, error="no well-formed JSON object in response")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_signal(payload: Dict) -> Optional[OracleSignal]:
    """Validated signal, or None when any required field is missing or mistyped."""
    if not isinstance(payload, dict):
        return None

    is_phishing = payload.get("isPhishing")
    confidence = payload.get("confidence")
    reasoning = payload.get("reasoning")
    extra = payload.get("additionalThreats", [])

    if not isinstance(is_phishing, bool):
        return None
    if not _is_number(confidence) or not 0 <= confidence <= 100:
        return None
    if not isinstance(reasoning, str):
        return None
    if extra is None:
        extra = []
    if not isinstance(extra, list) or not all(isinstance(t, str) for t in extra):
        return None

    return OracleSignal(
        is_positive=is_phishing,
        confidence=float(confidence),
        reasoning=reasoning.strip(),
        extra_threats=tuple(t.strip() for t in extra if t.strip()),
    )


# ============================================================================
# PROMPTS
# ============================================================================

_ANSWER_FORMAT = """
Return a JSON response with:
1. "isPhishing": boolean - true if likely phishing, false if likely safe
2. "confidence": number between 0-100 - how confident you are
3. "reasoning": string - brief explanation of your analysis
4. "additionalThreats": array of strings - any additional threats you detected

Be thorough but concise. Return ONLY valid JSON, with no markdown and no citations."""

SYSTEM_PROMPTS = {
    "url": (
        "You are a cybersecurity expert specializing in phishing detection. "
        "Analyze URLs for phishing indicators.\n\n"
        "Consider these factors:\n"
        "- Domain reputation and similarity to known brands (typosquatting)\n"
        "- URL structure anomalies\n"
        "- Known phishing techniques (homograph attacks, subdomain abuse)\n"
        "- Brand impersonation attempts\n" + _ANSWER_FORMAT
    ),
    "email": (
        "You are a Tier 3 SOC analyst specializing in email phishing detection. "
        "Analyze the email for phishing indicators.\n\n"
        "Consider these factors:\n"
        "- Sender domain versus the brand the email claims to come from\n"
        "- Urgency, threats and requests for credentials or payment\n"
        "- Links pointing away from the claimed organisation\n"
        "- Legitimate transactional mail (receipts, shipping notices) from official domains\n"
        + _ANSWER_FORMAT
    ),
    "logo": (
        "You are a brand protection analyst. Decide whether the image is a brand logo "
        "being used to impersonate that brand.\n\n"
        "Consider these factors:\n"
        "- Which brand the logo depicts\n"
        "- Whether the image is hosted on the brand's official domains\n"
        "- Visual tampering, low quality copies or altered colours\n" + _ANSWER_FORMAT
    ),
}


class OracleClient:
    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        model: str,
        timeout: float = 20,
        temperature: float = 0.3,
        max_tokens: int = 500,
        enabled: bool = True,
        session: Optional[requests.Session] = None,
    ):
        """
        Chat-completion client whose answer is treated as one more signal.

        Args:
            api_url: OpenAI-compatible chat completions endpoint
            api_key: bearer token; without it every call returns the fallback
            session: injected by tests; a pooled session is created otherwise
        """
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.enabled = enabled

        # Reuse TCP connections for all calls
        self.http_session = session or requests.Session()
        self.http_session.headers.update({'User-Agent': 'PhishLens/1.0'})

    @classmethod
    def from_settings(cls, settings) -> "OracleClient":
        return cls(
            api_url=settings.ORACLE_API_URL,
            api_key=settings.ORACLE_API_KEY,
            model=settings.ORACLE_MODEL,
            timeout=settings.ORACLE_TIMEOUT_SECONDS,
            temperature=settings.ORACLE_TEMPERATURE,
            max_tokens=settings.ORACLE_MAX_TOKENS,
            enabled=settings.ORACLE_ENABLED,
        )

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.api_key) and bool(self.api_url)

    def build_messages(self, artifact, features) -> List[Dict]:
        system = {"role": "system", "content": SYSTEM_PROMPTS[artifact.artifact_type]}
        summary = features.summary()

        if isinstance(artifact, UrlInput):
            text = (
                f"Analyze this URL for phishing threats: {artifact.url}\n\n"
                f"Pre-computed features:\n{summary}"
            )
            return [system, {"role": "user", "content": text}]

        if isinstance(artifact, EmailInput):
            text = (
                f"Analyze this email for phishing threats.\n\n"
                f"Sender: {artifact.sender}\n"
                f"Subject: {artifact.subject}\n"
                f"Body Snippet: {artifact.body[:_BODY_EXCERPT]}\n\n"
                f"Pre-computed features:\n{summary}"
            )
            return [system, {"role": "user", "content": text}]

        if isinstance(artifact, LogoInput):
            reference = "uploaded image" if artifact.is_base64 else artifact.image_url
            parts = [{
                "type": "text",
                "text": (
                    f"Analyze this logo for brand impersonation. Source: {reference}\n\n"
                    f"Pre-computed features:\n{summary}"
                ),
            }]
            image = self._image_reference(artifact)
            if image:
                parts.append({"type": "image_url", "image_url": {"url": image}})
            return [system, {"role": "user", "content": parts}]

        raise TypeError(f"Unsupported artifact: {type(artifact).__name__}")

    @staticmethod
    def _image_reference(artifact: LogoInput) -> Optional[str]:
        if artifact.is_base64:
            blob = artifact.base64_image.strip()
            return blob if blob.startswith("data:") else f"data:image/png;base64,{blob}"
        if artifact.image_url.lower().startswith(("http://", "https://")):
            return artifact.image_url
        # Local paths cannot be fetched by the provider
        return None

    def consult(self, artifact, features) -> OracleSignal:
        """Ask the model for a second opinion; any failure yields FALLBACK_SIGNAL."""
        if not self.is_configured:
            logger.debug("Oracle not configured, using rule-based analysis only")
            return FALLBACK_SIGNAL

        payload = {
            "model": self.model,
            "messages": self.build_messages(artifact, features),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            logger.debug(f"🤖 Sending {artifact.artifact_type} to oracle...")
            response = self.http_session.post(
                self.api_url,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning(f"⚠️ Oracle timed out after {self.timeout}s")
            return FALLBACK_SIGNAL
        except requests.RequestException as e:
            logger.warning(f"⚠️ Oracle request failed: {e}")
            return FALLBACK_SIGNAL

        if response.status_code != 200:
            logger.warning(f"⚠️ Oracle API error ({response.status_code}): {response.text[:200]}")
            return FALLBACK_SIGNAL

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"⚠️ Unexpected oracle response shape: {e}")
            return FALLBACK_SIGNAL

        if not isinstance(content, str):
            logger.warning("⚠️ Oracle returned non-text content")
            return FALLBACK_SIGNAL

        decoded = lenient_decode(content)
        if not decoded.ok:
            logger.warning(f"⚠️ Could not decode oracle output: {decoded.error}")
            return FALLBACK_SIGNAL

        signal = parse_signal(decoded.payload)
        if signal is None:
            logger.warning(f"⚠️ Oracle output failed validation: {decoded.payload}")
            return FALLBACK_SIGNAL

        logger.debug(f"✓ Oracle verdict: phishing={signal.is_positive} confidence={signal.confidence}")
        return signal

    def close(self):
        self.http_session.close()
