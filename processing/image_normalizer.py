"""Downscaling and JPEG encoding of extracted frames before transmission."""

import cv2
import numpy as np
from typing import Tuple

DEFAULT_MAX_IMAGE_SIZE = 1024
DEFAULT_JPEG_QUALITY = 85


class ImageNormalizationError(ValueError):
    """Raised when an image payload cannot be decoded or encoded."""
    pass


def fit_within(width: int, height: int, max_size: int) -> Tuple[int, int]:
    """Scale (width, height) so the longest edge is at most max_size.

    Aspect ratio is preserved; sizes already within the cap are returned
    unchanged.
    """
    longest = max(width, height)
    if longest <= max_size:
        return width, height

    scale = max_size / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


def encode_jpeg(image: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode a BGR image as JPEG bytes."""
    ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ImageNormalizationError("JPEG encoding failed")
    return buffer.tobytes()


def decode_image(image: bytes) -> np.ndarray:
    """Decode compressed image bytes into a BGR array."""
    decoded = None
    if image:
        decoded = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
    if decoded is None or decoded.size == 0:
        raise ImageNormalizationError("Image payload could not be decoded")
    return decoded


def normalize_image(image: bytes, max_size: int = DEFAULT_MAX_IMAGE_SIZE,
                    quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Cap the longest edge of a compressed image at max_size.

    Args:
        image: Compressed still (JPEG or PNG bytes)
        max_size: Longest allowed edge in pixels
        quality: JPEG quality used when the image has to be re-encoded

    Returns:
        The input bytes when already within bounds, otherwise a re-encoded
        JPEG of the downscaled image

    Raises:
        ImageNormalizationError: If the payload is not a decodable image
    """
    decoded = decode_image(image)
    height, width = decoded.shape[:2]

    if max(width, height) <= max_size:
        return image

    target = fit_within(width, height, max_size)
    resized = cv2.resize(decoded, target, interpolation=cv2.INTER_AREA)
    return encode_jpeg(resized, quality)
