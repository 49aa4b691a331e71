"""
Async HTTP client for the frame classification endpoint.

Each sampled frame is posted to the analysis proxy, which forwards it to the
hosted multimodal model. The model is asked for a bare JSON object but is not
trusted to comply, so the reply text is scanned for the first decodable
object. Every transport or parse problem is turned into a failed
FrameAnalysis instead of an exception.
"""

import asyncio
import base64
import json
import logging
import math
from typing import Any, Dict, Optional, Union

import httpx

from models.analysis_result import JPEG_DATA_URI_PREFIX
from models.frame_analysis import FrameAnalysis

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT_URL = "http://localhost:8000/api/analyze-frame"


class FrameResponseError(Exception):
    """Raised when a classification response cannot be interpreted."""
    pass


def ensure_data_uri(image: Union[bytes, str]) -> str:
    """Return the image as a self-describing data URI.

    Bytes are base64 encoded as JPEG; strings that already carry a
    ``data:image`` prefix are kept, other strings are taken as bare base64.
    """
    if isinstance(image, (bytes, bytearray)):
        return JPEG_DATA_URI_PREFIX + base64.b64encode(bytes(image)).decode("ascii")
    if image.startswith("data:image"):
        return image
    return JPEG_DATA_URI_PREFIX + image


def extract_response_text(data: Any) -> str:
    """Pull the model's reply text out of the proxy response envelope."""
    try:
        content = data["output"]["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise FrameResponseError(f"Response envelope has no message content: {e!r}") from e

    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict) and part.get("text"):
                return str(part["text"])
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, dict) and content.get("text"):
        return str(content["text"])
    return ""


def find_json_object(text: str) -> Dict[str, Any]:
    """Return the first well-formed JSON object embedded in text."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except ValueError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    raise FrameResponseError("No JSON object found in response")


def _as_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _as_text(value: Any) -> str:
    return str(value) if value else ""


def parse_frame_analysis(text: str, index: int) -> FrameAnalysis:
    """Build a FrameAnalysis from the model's reply, coercing loose types."""
    result = find_json_object(text)
    return FrameAnalysis(
        frame_index=index,
        has_clear_face=bool(result.get("has_clear_face")),
        face_confidence=_as_confidence(result.get("face_confidence")),
        face_description=_as_text(result.get("face_description")),
        has_subtitle=bool(result.get("has_subtitle")),
        subtitle_confidence=_as_confidence(result.get("subtitle_confidence")),
        subtitle_text=_as_text(result.get("subtitle_text"))
    )


class FrameClassifierClient:
    """Sends frames to the analysis proxy and parses the per-frame verdicts."""

    def __init__(
        self,
        endpoint_url: str = DEFAULT_ENDPOINT_URL,
        timeout_seconds: float = 60.0,
        max_retries: int = 0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the classifier client.

        Args:
            endpoint_url: URL of the analyze-frame endpoint
            timeout_seconds: HTTP timeout per request
            max_retries: Extra attempts after a timeout
            client: Shared AsyncClient; one is created when omitted
        """
        self.endpoint_url = endpoint_url
        self.max_retries = max_retries
        self.session = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def classify(self, image: Union[bytes, str], index: int) -> FrameAnalysis:
        """
        Classify one normalized frame.

        Args:
            image: JPEG bytes, bare base64 or a data URI
            index: Sample index of the frame

        Returns:
            FrameAnalysis for the frame, or the failure placeholder when the
            request or the response could not be handled
        """
        payload = {"image": ensure_data_uri(image), "index": index}

        try:
            data = await self._post(payload)
            text = extract_response_text(data)
            analysis = parse_frame_analysis(text, index)
        except (httpx.HTTPError, FrameResponseError) as e:
            logger.warning(f"Frame {index} analysis failed: {e}")
            return FrameAnalysis.failure(index, str(e) or type(e).__name__)

        logger.debug(
            f"Frame {index}: face={analysis.has_clear_face} ({analysis.face_confidence:.2f}), "
            f"subtitle={analysis.has_subtitle} ({analysis.subtitle_confidence:.2f})"
        )
        return analysis

    async def _post(self, payload: Dict[str, Any]) -> Any:
        """POST the payload, retrying timeouts, and decode the JSON body."""
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.session.post(self.endpoint_url, json=payload)
                break
            except httpx.TimeoutException as e:
                logger.warning(
                    f"Frame {payload['index']} request timed out "
                    f"(attempt {attempt + 1}/{self.max_retries + 1}): {e}"
                )
                if attempt >= self.max_retries:
                    raise
                await asyncio.sleep(0.1 * (2 ** attempt))

        if response.is_error:
            body = response.text[:500]
            raise FrameResponseError(f"Analysis endpoint returned HTTP {response.status_code}: {body}")

        try:
            return response.json()
        except ValueError as e:
            raise FrameResponseError(f"Response body is not JSON: {e}") from e

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()
