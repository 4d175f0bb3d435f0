"""
Identity matching of a probe face descriptor against enrolled templates.

The matcher is a pure function: it never touches the database and never raises
for an unrecognised face. Expected outcomes come back as a ``Rejected`` value;
only a malformed probe raises ``InvalidInput``.
"""
import math
import numbers
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple, Union

import numpy as np

from utils.logger import get_logger
from utils.validators import ValidationError

logger = get_logger(__name__)

REASON_NO_ENROLLED = "no_face_detected"
REASON_NOT_RECOGNIZED = "not_recognized"
REASON_AMBIGUOUS = "ambiguous_match"


class InvalidInput(ValidationError):
    """Probe vector is empty or not numeric"""
    pass


@dataclass(frozen=True)
class Matched:
    employee: Any
    distance: float
    confidence: float

    ok = True


@dataclass(frozen=True)
class Rejected:
    reason: str

    ok = False


MatchResult = Union[Matched, Rejected]


def _employee_key(employee):
    if isinstance(employee, dict):
        return employee.get("id")
    try:
        return employee["id"]
    except (KeyError, IndexError, TypeError):
        return getattr(employee, "id", id(employee))


def _as_probe(probe):
    if not isinstance(probe, np.ndarray):
        if not isinstance(probe, (list, tuple)):
            raise InvalidInput("Descriptor must be a non-empty list of numbers")
        if any(isinstance(v, bool) or not isinstance(v, numbers.Real) for v in probe):
            raise InvalidInput("Descriptor must contain only numbers")
    try:
        vector = np.asarray(probe, dtype=np.float64)
    except (TypeError, ValueError):
        raise InvalidInput("Descriptor must contain only numbers")

    if vector.ndim != 1 or vector.size == 0:
        raise InvalidInput("Descriptor must be a non-empty list of numbers")
    if not np.all(np.isfinite(vector)):
        raise InvalidInput("Descriptor must contain only finite numbers")
    return vector


def euclidean_distance(probe, template):
    """
    Distance between a probe and one enrolled template.

    Templates of a different length, or that are empty or non-finite, are not
    comparable and sit at infinite distance.
    """
    try:
        candidate = np.asarray(template, dtype=np.float64)
    except (TypeError, ValueError):
        return math.inf

    if candidate.ndim != 1 or candidate.shape != probe.shape:
        return math.inf
    if not np.all(np.isfinite(candidate)):
        return math.inf
    return float(np.linalg.norm(probe - candidate))


def confidence_for(distance, threshold):
    """Threshold-normalised confidence in [0, 1]; display only"""
    if threshold <= 0:
        return 1.0 if distance <= 0 else 0.0
    return min(1.0, max(0.0, 1.0 - distance / threshold))


def match(probe: Sequence[float],
          enrolled: List[Tuple[Any, Sequence[float]]],
          threshold: float,
          epsilon: float = 1e-6) -> MatchResult:
    """
    Find the enrolled employee whose template is nearest to the probe.

    Args:
        probe: Descriptor extracted from the live capture
        enrolled: (employee, template) pairs to compare against
        threshold: Maximum Euclidean distance accepted as a match
        epsilon: Distances this close to the best one count as a tie

    Returns:
        Matched(employee, distance, confidence) or Rejected(reason)

    Raises:
        InvalidInput: If the probe is empty or not numeric
    """
    vector = _as_probe(probe)

    if not enrolled:
        return Rejected(REASON_NO_ENROLLED)

    distances = [euclidean_distance(vector, template) for _, template in enrolled]
    best_index = int(np.argmin(distances))
    best_distance = distances[best_index]

    if math.isinf(best_distance) or best_distance > threshold:
        logger.info(f"Face not recognized (nearest distance: {best_distance:.4f}, threshold: {threshold})")
        return Rejected(REASON_NOT_RECOGNIZED)

    best_employee = enrolled[best_index][0]
    best_key = _employee_key(best_employee)
    for (employee, _), distance in zip(enrolled, distances):
        if abs(distance - best_distance) <= epsilon and _employee_key(employee) != best_key:
            logger.warning(
                f"Ambiguous face match between employees {best_key} and {_employee_key(employee)} "
                f"(distance: {best_distance:.4f}); check for near-duplicate enrollment"
            )
            return Rejected(REASON_AMBIGUOUS)

    confidence = confidence_for(best_distance, threshold)
    logger.debug(f"Face matched employee {best_key} (distance: {best_distance:.4f}, confidence: {confidence:.3f})")
    return Matched(best_employee, best_distance, confidence)
