"""
Face template encoding and the optional server-side embedding provider
"""
import base64
import json
import math
from io import BytesIO

import numpy as np

from utils.logger import get_logger
from utils.validators import ValidationError, validate_base64_image

logger = get_logger(__name__)


class EmbeddingUnavailable(Exception):
    """Raised when a photo is submitted but the ``face`` extra is not installed"""
    pass


def serialize_template(vector):
    """Encode a template for the face_embedding column (JSON array of floats)"""
    return json.dumps([float(v) for v in vector])


def parse_template(value):
    """
    Decode a stored template.

    Only a JSON array of finite numbers is a template. Anything else (NULL,
    placeholder strings such as "sample_embedding_1", malformed JSON) means
    "no template" rather than an error.

    Returns:
        list of floats, or None
    """
    if not value:
        return None
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return None

    if not isinstance(parsed, list) or not parsed:
        return None

    vector = []
    for item in parsed:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            return None
        item = float(item)
        if not math.isfinite(item):
            return None
        vector.append(item)
    return vector


def encode_face_from_base64(image_data):
    """
    Compute a 128-d face descriptor from a base64 photo.

    Requires the ``face`` extra (face_recognition + Pillow). Detection runs on
    the whole image and the first face found is used.

    Returns:
        list of floats, or None if no face was detected

    Raises:
        ValidationError: If the payload is not a decodable image
        EmbeddingUnavailable: If face_recognition or Pillow is missing
    """
    payload = validate_base64_image(image_data, "Photo")

    try:
        import face_recognition
        from PIL import Image, UnidentifiedImageError
    except ImportError as e:
        raise EmbeddingUnavailable(
            "Server-side face embedding is not installed; send a descriptor instead of a photo"
        ) from e

    try:
        image = Image.open(BytesIO(base64.b64decode(payload))).convert("RGB")
    except (UnidentifiedImageError, OSError):
        raise ValidationError("Photo is not a readable image")

    pixels = np.array(image)
    locations = face_recognition.face_locations(pixels)
    if not locations:
        logger.info("No face detected in submitted photo")
        return None

    if len(locations) > 1:
        logger.debug(f"{len(locations)} faces detected, using the first one")

    encodings = face_recognition.face_encodings(pixels, locations[:1])
    if not encodings:
        return None
    return [float(v) for v in encodings[0]]
