"""
OCR Client Service
Extracts text from a single answer image through an external OCR provider.
Nothing in this module touches the database.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from mistralai import Mistral

from answer_eval.core.config import Settings
from answer_eval.core.exceptions import ProviderUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageRef:
    """Exactly one of `url` or `base64` must be set."""

    url: Optional[str] = None
    base64: Optional[str] = None
    mime_type: str = "image/jpeg"

    def describe(self) -> str:
        return self.url if self.url else f"<base64 {len(self.base64 or '')} chars>"


@dataclass
class OcrResult:
    success: bool
    extracted_text: str = ""
    confidence: Optional[float] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class OcrProvider(Protocol):
    def ocr(self, image: ImageRef, options: Dict[str, Any]) -> Dict[str, Any]:
        ...


class MistralOcrProvider:
    """Mistral OCR through the mistralai SDK client."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str,
        timeout: float,
        client: Any = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "MistralOcrProvider":
        return cls(
            settings.MISTRAL_API_KEY,
            model=settings.MISTRAL_OCR_MODEL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise ProviderUnavailableError("MISTRAL_API_KEY is not configured")
            self._client = Mistral(api_key=self.api_key, timeout_ms=int(self.timeout * 1000))
        return self._client

    def ocr(self, image: ImageRef, options: Dict[str, Any]) -> Dict[str, Any]:
        client = self.client

        if image.url:
            image_url = image.url
        else:
            image_url = f"data:{image.mime_type};base64,{image.base64}"

        try:
            response = client.ocr.process(
                model=self.model,
                document={"type": "image_url", "image_url": image_url},
                include_image_base64=bool(options.get("include_image_base64", False)),
            )
        except Exception as e:
            raise ProviderUnavailableError(f"Mistral OCR request failed: {e}") from e
        # SDK responses are pydantic models; the parser works on plain dicts
        return response.model_dump() if hasattr(response, "model_dump") else response


def _number(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def format_bounding_boxes(boxes: Any) -> List[Dict[str, Any]]:
    """Normalize provider boxes to {text, x, y, width, height, confidence}."""
    if not isinstance(boxes, list):
        return []

    formatted = []
    for box in boxes:
        if not isinstance(box, dict):
            continue
        formatted.append(
            {
                "text": box.get("text") or "",
                "x": _number(box.get("x")),
                "y": _number(box.get("y")),
                "width": _number(box.get("width")),
                "height": _number(box.get("height")),
                "confidence": _number(box.get("confidence")),
            }
        )
    return formatted


def _text_from_response(raw: Dict[str, Any]) -> str:
    # older responses carry a flat `text`, current ones a list of pages
    if raw.get("text"):
        return str(raw["text"])
    pages = raw.get("pages") or []
    return "\n\n".join(
        str(page.get("markdown") or page.get("text") or "")
        for page in pages
        if isinstance(page, dict)
    ).strip()


def _image_echo(raw: Dict[str, Any]) -> Optional[str]:
    if raw.get("imageBase64") or raw.get("image_base64"):
        return raw.get("imageBase64") or raw.get("image_base64")
    for page in raw.get("pages") or []:
        if not isinstance(page, dict):
            continue
        for img in page.get("images") or []:
            if isinstance(img, dict) and img.get("image_base64"):
                return img["image_base64"]
    return None


class TextExtractor:
    def __init__(self, provider: OcrProvider):
        self.provider = provider

    def extract(self, image: ImageRef, **options: Any) -> OcrResult:
        """
        Run OCR for one image.

        Provider-side failures (HTTP errors, timeouts, bad payloads) come back
        as OcrResult(success=False); only a malformed ImageRef raises.
        """
        if not isinstance(image, ImageRef):
            raise TypeError(f"expected ImageRef, got {type(image).__name__}")
        if bool(image.url) == bool(image.base64):
            raise ValueError("ImageRef needs exactly one of url or base64")

        start = time.monotonic()
        logger.info(f"Starting OCR for image: {image.describe()}")

        try:
            raw = self.provider.ocr(image, options)
            if not isinstance(raw, dict):
                raise ProviderUnavailableError(
                    f"unexpected OCR payload type {type(raw).__name__}"
                )
            extracted_text = _text_from_response(raw)
            confidence = raw.get("confidence")
            echo = _image_echo(raw)
            boxes = format_bounding_boxes(
                raw.get("boundingBoxes") or raw.get("bounding_boxes") or []
            )
        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(f"OCR failed after {elapsed_ms}ms for {image.describe()}: {e}")
            return OcrResult(
                success=False,
                error=str(e),
                metadata={"processing_time_ms": elapsed_ms, "boxes": []},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"OCR completed in {elapsed_ms}ms for image: {image.describe()}")

        return OcrResult(
            success=True,
            extracted_text=extracted_text,
            confidence=_number(confidence) if confidence is not None else None,
            metadata={
                "processing_time_ms": elapsed_ms,
                "provider_image_echo": echo,
                "boxes": boxes,
            },
        )
