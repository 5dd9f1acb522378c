# -*- coding: utf-8 -*-
import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Tuple, Union

import cv2 as cv
import numpy as np
from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener  #type: ignore

from scanvocab.config import (
    CONTRAST_FACTOR,
    DARK_BACKGROUND_LUMA,
    JPEG_QUALITY,
    MAX_IMAGE_DIMENSION,
    VARIANT_WEIGHTS,
)
from scanvocab.errors import ImageDecodeError

register_heif_opener()

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r'^data:([^;]+);base64,(.+)$', re.DOTALL)


@dataclass(frozen=True)
class ImageVariant:
    """A transformed copy of the input image, tagged with a reliability weight."""
    id: str
    image: np.ndarray
    weight: float


def split_data_url(data_url: str) -> Tuple[str, str]:
    """Returns (media type, base64 payload); bare base64 is assumed to be JPEG."""
    match = _DATA_URL.match(data_url.strip())
    if match:
        return match.group(1), match.group(2)
    return 'image/jpeg', data_url.strip()


def decode_image(data: Union[bytes, str]) -> np.ndarray:
    """
    Decode raw bytes, base64 text or a data URL into a BGR image.

    OpenCV handles the common formats; HEIC/HEIF goes through Pillow.
    """
    if isinstance(data, str):
        _, payload = split_data_url(data)
        try:
            data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Invalid base64 image data: {e}")

    if not data:
        raise ImageDecodeError("Empty image data")

    img = cv.imdecode(np.frombuffer(data, dtype=np.uint8), cv.IMREAD_COLOR)
    if img is not None:
        return img

    try:
        with Image.open(io.BytesIO(data)) as image:
            rgb = np.array(image.convert("RGB"))
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}")
    return cv.cvtColor(rgb, cv.COLOR_RGB2BGR)


def load_image(path: Path) -> np.ndarray:
    """Loads an image (JPEG, PNG, WebP, HEIC) from path."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ImageDecodeError(f"Could not read image from {path}: {e}")
    return decode_image(data)


def normalize_image(image: np.ndarray, max_dimension: int = MAX_IMAGE_DIMENSION) -> np.ndarray:
    """Downscale so that neither side exceeds max_dimension."""
    h, w = image.shape[:2]
    if w <= max_dimension and h <= max_dimension:
        return image

    if w >= h:
        new_h, new_w = round(h * (max_dimension / w)), max_dimension
    else:
        new_h, new_w = max_dimension, round(w * (max_dimension / h))
    return cv.resize(image, (max(new_w, 1), max(new_h, 1)), interpolation=cv.INTER_AREA)


def encode_jpeg(image: np.ndarray, quality: int = JPEG_QUALITY) -> bytes:
    ok, buffer = cv.imencode('.jpg', image, [cv.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise ImageDecodeError("Failed to encode image as JPEG")
    return buffer.tobytes()


def to_data_url(image: np.ndarray, quality: int = JPEG_QUALITY) -> str:
    payload = base64.b64encode(encode_jpeg(image, quality)).decode('ascii')
    return f"data:image/jpeg;base64,{payload}"


def _as_bgr(gray: np.ndarray) -> np.ndarray:
    return cv.cvtColor(gray, cv.COLOR_GRAY2BGR)


def luma(image: np.ndarray) -> np.ndarray:
    """Per-pixel luma, 0.299R + 0.587G + 0.114B, on a BGR buffer."""
    if image.ndim == 2:
        return image.astype(np.float32)
    b = image[..., 0].astype(np.float32)
    g = image[..., 1].astype(np.float32)
    r = image[..., 2].astype(np.float32)
    return 0.299 * r + 0.587 * g + 0.114 * b


def mean_luma(image: np.ndarray) -> float:
    return float(luma(image).mean())


def is_dark_background(image: np.ndarray) -> bool:
    """Light text on a dark background (mean luma below 128)."""
    return mean_luma(image) < DARK_BACKGROUND_LUMA


def grayscale_contrast(image: np.ndarray, factor: float = CONTRAST_FACTOR) -> np.ndarray:
    gray = image if image.ndim == 2 else cv.cvtColor(image, cv.COLOR_BGR2GRAY)
    # Contrast stretch around mid-gray
    stretched = (gray.astype(np.float32) - 127.5) * factor + 127.5
    return _as_bgr(np.clip(stretched, 0, 255).astype(np.uint8))


def threshold_by_mean_luma(image: np.ndarray) -> np.ndarray:
    """Binarize each pixel against the image's own mean luma."""
    values = luma(image)
    binary = np.where(values >= values.mean(), 255, 0).astype(np.uint8)
    return _as_bgr(binary)


def rotate_ccw(image: np.ndarray) -> np.ndarray:
    """
    90 degrees counter-clockwise. Vertical Japanese reads top-to-bottom,
    right-to-left; this turns its columns into left-to-right rows.
    """
    return cv.rotate(image, cv.ROTATE_90_COUNTERCLOCKWISE)


def rotate_cw(image: np.ndarray) -> np.ndarray:
    return cv.rotate(image, cv.ROTATE_90_CLOCKWISE)


def invert(image: np.ndarray) -> np.ndarray:
    return cv.bitwise_not(image)


VARIANT_BUILDERS: List[Tuple[str, Callable[[np.ndarray], np.ndarray]]] = [
    ('grayscaleContrast', grayscale_contrast),
    ('threshold', threshold_by_mean_luma),
    ('rotatedCCW', rotate_ccw),
    ('rotatedCW', rotate_cw),
]


def build_variants(image: np.ndarray) -> List[ImageVariant]:
    """
    Build the OCR variants of one image.

    Every variant is derived from the original, never from another variant.
    A variant that fails to build is skipped; if building fails altogether
    only the original is returned.
    """
    original = ImageVariant('original', image, VARIANT_WEIGHTS['original'])
    variants = [original]

    try:
        for variant_id, builder in VARIANT_BUILDERS:
            try:
                variants.append(ImageVariant(variant_id, builder(image), VARIANT_WEIGHTS[variant_id]))
            except (cv.error, ValueError) as e:
                logger.warning(f"Skipping OCR variant '{variant_id}': {e}")

        if is_dark_background(image):
            try:
                variants.append(ImageVariant('inverted', invert(image), VARIANT_WEIGHTS['inverted']))
            except (cv.error, ValueError) as e:
                logger.warning(f"Skipping OCR variant 'inverted': {e}")
    except Exception as e:
        logger.warning(f"Variant generation failed, using original image only: {e}")
        return [original]

    return variants


def save_debug_image(image: np.ndarray, path: Path) -> None:
    """Saves an image for inspection; failures are logged, not raised."""
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        if not cv.imwrite(str(path), image):
            logger.warning(f"Could not save debug image to {path}")
    except (cv.error, OSError) as e:
        logger.warning(f"Could not save debug image to {path}: {e}")
