"""
vision_client.py – compliance check of one image against guideline text

Builds a single multi-part chat message (instructions + guidelines, optional
reference images, then the submission) for an OpenAI-compatible vision API
and normalizes the loosely structured reply into a ReviewOutcome.
"""

import base64
import json
import math
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union

import httpx

from asset_review.models.schemas import ReferenceImage, ReviewOutcome
from asset_review.utils.config import (
    VISION_API_KEY,
    VISION_API_URL,
    VISION_MAX_TOKENS,
    VISION_MODEL,
    VISION_TIMEOUT_S,
)
from asset_review.utils.logger import get_logger, preview


logger = get_logger("vision-client")


FORMAT_ERROR_VIOLATION = "AI response format error"
FALLBACK_CONFIDENCE = 50


PROMPT_TEMPLATE = """You are a brand compliance reviewer. Analyze the submitted image against the following brand guidelines and provide a structured assessment.

BRAND GUIDELINES:
%(guidelines)s

INSTRUCTIONS:
1. Carefully examine the image for any violations of the brand guidelines
2. Determine if the asset passes or fails compliance
3. List specific violations found (if any)
4. Provide a confidence score (0-100) for your assessment

Respond ONLY with valid JSON in this exact format:
{
  "pass": true or false,
  "violations": ["violation 1", "violation 2"],
  "confidence": 0-100,
  "summary": "Brief summary of the review"
}"""

REFERENCE_INTRO = (
    "The following %(count)d reference image(s) show approved, compliant examples of this asset type. "
    "Use them as the visual standard when judging the submission."
)
SUBMISSION_INTRO = "Now review this submitted image against the guidelines and the reference examples:"


class VisionAPIError(RuntimeError):
    """The inference call itself failed; no review was performed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ImageInput:
    content: bytes
    mime_type: str

    def data_url(self) -> str:
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class _Unparseable:
    def __repr__(self) -> str:
        return "UNPARSEABLE"


UNPARSEABLE = _Unparseable()


# =============================
# Request assembly
# =============================
def _image_part(image: ImageInput) -> dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": image.data_url()}}


def build_content(guidelines: str, references: Iterable[ImageInput], image: ImageInput) -> list[dict[str, Any]]:
    """Ordered message parts: prompt, [reference intro, references..., transition], submission."""
    refs = list(references)
    parts: list[dict[str, Any]] = [{"type": "text", "text": PROMPT_TEMPLATE % {"guidelines": guidelines}}]
    if refs:
        parts.append({"type": "text", "text": REFERENCE_INTRO % {"count": len(refs)}})
        parts.extend(_image_part(r) for r in refs)
        parts.append({"type": "text", "text": SUBMISSION_INTRO})
    parts.append(_image_part(image))
    return parts


def guess_mime_type(file_name: str, default: str = "image/jpeg") -> str:
    mime, _ = mimetypes.guess_type(file_name)
    return mime if mime and mime.startswith("image/") else default


def fetch_reference_images(
    references: Iterable[ReferenceImage],
    download: Callable[[str], bytes],
) -> list[ImageInput]:
    """Downloads references in order; a failed download is logged and skipped."""
    images: list[ImageInput] = []
    for ref in references:
        try:
            blob = download(ref.storage_path)
        except Exception as e:
            logger.warning("Skipping reference image %s: %s", ref.file_name, e)
            continue
        if not blob:
            logger.warning("Skipping empty reference image %s", ref.file_name)
            continue
        images.append(ImageInput(content=blob, mime_type=guess_mime_type(ref.file_name)))
    return images


# =============================
# Reply normalization
# =============================
def extract_json_span(text: str) -> Optional[str]:
    """Greedy span from the first '{' to the last '}'; fences and prose around it are ignored."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _as_confidence(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str):
        try:
            num = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(num):
        return None
    return max(0, min(100, int(round(num))))


def _as_violations(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def parse_reply(text: str) -> Union[ReviewOutcome, _Unparseable]:
    span = extract_json_span(text or "")
    if span is None:
        return UNPARSEABLE
    try:
        data = json.loads(span)
    except json.JSONDecodeError:
        return UNPARSEABLE
    if not isinstance(data, dict):
        return UNPARSEABLE

    passed = _as_bool(data.get("pass", data.get("passed")))
    confidence = _as_confidence(data.get("confidence"))
    if passed is None or confidence is None:
        return UNPARSEABLE

    summary = data.get("summary")
    return ReviewOutcome(
        passed=passed,
        confidence=confidence,
        violations=_as_violations(data.get("violations")),
        summary=summary if isinstance(summary, str) else ("" if summary is None else str(summary)),
    )


def fallback_outcome(raw_text: str) -> ReviewOutcome:
    return ReviewOutcome(
        passed=False,
        confidence=FALLBACK_CONFIDENCE,
        violations=[FORMAT_ERROR_VIOLATION],
        summary=raw_text,
    )


def normalize_reply(text: str) -> ReviewOutcome:
    """parse_reply, with UNPARSEABLE replaced by the fixed format-error outcome."""
    parsed = parse_reply(text)
    if parsed is UNPARSEABLE:
        logger.warning("Model reply had no usable JSON object: %s", preview(text))
        return fallback_outcome(text or "")
    return parsed


# =============================
# Client
# =============================
class VisionClient:
    def __init__(
        self,
        base_url: Optional[str] = VISION_API_URL,
        api_key: Optional[str] = VISION_API_KEY,
        model: Optional[str] = VISION_MODEL,
        max_tokens: int = VISION_MAX_TOKENS,
        timeout_s: float = VISION_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def complete(self, content: list[dict[str, Any]]) -> str:
        """Sends one user message and returns the reply text."""
        if not self.base_url:
            raise VisionAPIError("Vision API not configured: set VISION_API_URL")
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": self.max_tokens,
        }
        url = f"{self.base_url}/chat/completions"
        logger.debug("Vision request → %s (%d parts)", url, len(content))
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                resp = client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise VisionAPIError(f"Vision API request failed: {e}") from e

        if resp.status_code >= 400:
            raise VisionAPIError(
                f"Vision API returned {resp.status_code}: {preview(resp.text)}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise VisionAPIError(f"Vision API returned a non-JSON body: {e}", status_code=resp.status_code) from e

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            text = None
        return text if isinstance(text, str) else ""

    def review(
        self,
        guidelines: str,
        references: Iterable[ImageInput],
        image: ImageInput,
    ) -> ReviewOutcome:
        """Raises VisionAPIError when the call fails; an unreadable reply still yields an outcome."""
        refs = list(references)
        text = self.complete(build_content(guidelines, refs, image))
        outcome = normalize_reply(text)
        logger.info(
            "Vision review: pass=%s confidence=%d violations=%d references=%d",
            outcome.passed, outcome.confidence, len(outcome.violations), len(refs),
        )
        return outcome


def review_image_file(path: Path, guidelines: str, client: Optional[VisionClient] = None) -> ReviewOutcome:
    """One-off check of a local image with ad hoc guidelines and no references."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Image file not found: {path}")
    image = ImageInput(content=path.read_bytes(), mime_type=guess_mime_type(path.name))
    return (client or VisionClient()).review(guidelines, [], image)
