from dataclasses import dataclass
from typing import Dict, Optional


class InvalidArtifactError(ValueError):
    """Raised when a request does not describe exactly one valid artifact."""


def _present(value) -> bool:
    return isinstance(value, str) and value.strip() != ""


@dataclass(frozen=True)
class UrlInput:
    url: str

    artifact_type = "url"

    def __post_init__(self):
        if not _present(self.url):
            raise InvalidArtifactError("URL is required")

    def echo(self) -> Dict:
        return {"url": self.url}


@dataclass(frozen=True)
class EmailInput:
    sender: str
    subject: str
    body: str

    artifact_type = "email"

    def __post_init__(self):
        if not (_present(self.sender) and _present(self.subject) and _present(self.body)):
            raise InvalidArtifactError("Sender, subject, and body are required")

    def echo(self) -> Dict:
        return {"sender": self.sender, "subject": self.subject}


@dataclass(frozen=True)
class LogoInput:
    image_url: Optional[str] = None
    base64_image: Optional[str] = None

    artifact_type = "logo"

    def __post_init__(self):
        has_url = _present(self.image_url)
        has_blob = _present(self.base64_image)
        if not has_url and not has_blob:
            raise InvalidArtifactError("Image URL or base64 image is required")
        if has_url and has_blob:
            raise InvalidArtifactError("Provide either an image URL or a base64 image, not both")

    @property
    def is_base64(self) -> bool:
        return _present(self.base64_image)

    def echo(self) -> Dict:
        return {"imageUrl": self.image_url if not self.is_base64 else "base64-image"}


def artifact_from_payload(payload: Dict):
    """Build an artifact from a tagged batch item (``{"type": "url", "url": ...}``)."""
    if not isinstance(payload, dict):
        raise InvalidArtifactError("Each batch item must be an object")

    kind = payload.get("type")
    if kind == "url":
        return UrlInput(url=payload.get("url"))
    if kind == "email":
        return EmailInput(
            sender=payload.get("sender"),
            subject=payload.get("subject"),
            body=payload.get("body"),
        )
    if kind == "logo":
        return LogoInput(
            image_url=payload.get("imageUrl"),
            base64_image=payload.get("base64Image"),
        )
    raise InvalidArtifactError("Item type must be one of: url, email, logo")
