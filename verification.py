# verification.py
"""
Waste-photo verification through the Gemini vision model.

The model is asked for a strict JSON object; whatever it returns is cleaned of
markdown fences before parsing, and anything that does not carry a waste type,
a quantity and a confidence in [0, 1] is treated as a failed verification.
"""
import base64
import json
import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, UnidentifiedImageError
from google import genai
from google.genai.errors import APIError

from errors import VerificationBusy, VerificationError

logger = logging.getLogger("wastetrack.verification")

VERIFICATION_PROMPT = """You are an expert in waste management and recycling. Analyze this image and provide:
1. The type of waste (e.g., plastic, paper, glass, metal, organic)
2. An estimate of the quantity or amount (in kg or liters)
3. Your confidence level in this assessment (as a percentage)

Return your response as a JSON object with this exact structure:
{
  "wasteType": "type of waste",
  "quantity": "estimated quantity with unit",
  "confidence": confidence level as a number between 0 and 1
}

CRITICAL INSTRUCTIONS:
- Return ONLY the JSON object
- NO markdown formatting
- NO code blocks or backticks
- NO additional text or explanations
- NO bold text or asterisks
- Start your response directly with the opening brace {
- End your response with the closing brace }

Example format:
{"wasteType": "plastic bottles", "quantity": "2 kg", "confidence": 0.8}"""

_FENCE_OPEN = re.compile(r"```json\n?")
_FENCE = re.compile(r"```\n?")
_BOLD_LINE = re.compile(r"^\*\*.*?\*\*$", re.MULTILINE)


@dataclass(frozen=True)
class VerificationResult:
    waste_type: str
    quantity: str
    confidence: float

    def to_dict(self) -> dict:
        return {
            "wasteType": self.waste_type,
            "quantity": self.quantity,
            "confidence": self.confidence,
        }


def clean_response_text(text: str) -> str:
    text = _FENCE_OPEN.sub("", text or "")
    text = _FENCE.sub("", text)
    text = _BOLD_LINE.sub("", text)
    return text.strip()


def parse_verification(text: str) -> VerificationResult:
    cleaned = clean_response_text(text)
    try:
        data = json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("unparseable verification response: %r", text)
        raise VerificationError("Failed to verify waste. Please try again.") from e
    if not isinstance(data, dict):
        raise VerificationError("Invalid verification result structure")

    waste_type = data.get("wasteType")
    quantity = data.get("quantity")
    confidence = data.get("confidence")
    if not waste_type or not quantity:
        raise VerificationError("Invalid verification result structure")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise VerificationError("Invalid verification result structure")
    if not 0 <= confidence <= 1:
        raise VerificationError("Confidence out of range")
    return VerificationResult(str(waste_type), str(quantity), float(confidence))


def decode_image(payload: bytes | str) -> Image.Image:
    """Open raw bytes or a base64 / data-URI string as a PIL image."""
    if isinstance(payload, str):
        try:
            _, encoded = payload.split(",", 1)
        except ValueError:
            encoded = payload
        try:
            payload = base64.b64decode(encoded)
        except (ValueError, TypeError) as e:
            raise VerificationError(f"Invalid image data: {e}") from e
    try:
        img = Image.open(BytesIO(payload))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise VerificationError(f"Invalid image data: {e}") from e
    return img


class VisionClient:
    def __init__(self, api_key: str | None = None, model: str = "gemini-1.5-flash",
                 client=None):
        if client is None:
            if not api_key:
                raise VerificationError("Vision verification is not configured")
            client = genai.Client(api_key=api_key)
        self.client = client
        self.model = model

    def verify(self, image: Image.Image) -> VerificationResult:
        logger.info("sending %sx%s image to %s", image.width, image.height, self.model)
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[VERIFICATION_PROMPT, image],
            )
        except APIError as e:
            logger.error("Gemini API error: %s", e)
            raise VerificationError(f"Vision service failed: {e.message}") from e
        except Exception as e:
            logger.error("Error verifying waste: %s", e)
            raise VerificationError("Failed to verify waste. Please try again.") from e

        result = parse_verification(getattr(response, "text", "") or "")
        logger.info("verified %s (%s, %.2f)", result.waste_type, result.quantity, result.confidence)
        return result


class InFlightGuard:
    """Allows at most one outstanding verification per key."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active: set = set()

    def busy(self, key) -> bool:
        with self._lock:
            return key in self._active

    @contextmanager
    def hold(self, key):
        with self._lock:
            if key in self._active:
                raise VerificationBusy("A verification is already in progress")
            self._active.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(key)
