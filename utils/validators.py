"""
Input validation utilities for the Face Attendance service
"""
import math
import re
from datetime import datetime
from typing import Optional, Tuple, Dict, Any, List


EMPLOYEE_STATUSES = ('active', 'inactive')
MANUAL_ATTENDANCE_STATUSES = ('present', 'late')


class ValidationError(Exception):
    """Custom exception for validation errors"""
    pass


def validate_required(value: Any, field_name: str) -> str:
    """
    Validate that a required field is not empty

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Stripped string value

    Raises:
        ValidationError: If value is empty or None
    """
    if value is None:
        raise ValidationError(f"{field_name} is required")

    value_str = str(value).strip()
    if not value_str:
        raise ValidationError(f"{field_name} is required")

    return value_str


def validate_length(value: str, field_name: str, min_length: int = None, max_length: int = None) -> str:
    """
    Validate string length

    Raises:
        ValidationError: If length constraints are not met
    """
    value_str = str(value).strip()
    length = len(value_str)

    if min_length is not None and length < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters long")

    if max_length is not None and length > max_length:
        raise ValidationError(f"{field_name} must be no more than {max_length} characters long")

    return value_str


def validate_email(email: str, field_name: str = "Email") -> str:
    """
    Validate email address format

    Args:
        email: Email address to validate
        field_name: Name of the field for error messages

    Returns:
        Validated email address (lowercase)

    Raises:
        ValidationError: If email is missing or its format is invalid
    """
    email = validate_required(email, field_name).lower()

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

    if not re.match(pattern, email):
        raise ValidationError(f"{field_name} has an invalid format")

    if len(email) > 255:
        raise ValidationError(f"{field_name} is too long (maximum 255 characters)")

    return email


def validate_integer(value: Any, field_name: str, min_value: int = None, max_value: int = None) -> Optional[int]:
    """
    Validate and convert to integer

    Returns:
        Integer value or None if empty

    Raises:
        ValidationError: If value cannot be converted or is out of range
    """
    if value is None or value == "":
        return None

    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{field_name} must be a valid integer")

    if min_value is not None and int_value < min_value:
        raise ValidationError(f"{field_name} must be at least {min_value}")

    if max_value is not None and int_value > max_value:
        raise ValidationError(f"{field_name} must be no more than {max_value}")

    return int_value


def validate_date(date_str: str, field_name: str = "Date", date_format: str = "%Y-%m-%d") -> Optional[str]:
    """
    Validate date format

    Returns:
        Validated date string or None if empty

    Raises:
        ValidationError: If date format is invalid
    """
    if not date_str or not str(date_str).strip():
        return None

    date_str = str(date_str).strip()

    try:
        datetime.strptime(date_str, date_format)
        return date_str
    except ValueError:
        raise ValidationError(f"{field_name} must be in format {date_format}")


def validate_time(time_str: str, field_name: str = "Time", time_format: str = "%H:%M") -> Optional[str]:
    """
    Validate a 24-hour time of day (HH:MM)

    Returns:
        Validated time string or None if empty

    Raises:
        ValidationError: If time format is invalid
    """
    if not time_str or not str(time_str).strip():
        return None

    time_str = str(time_str).strip()

    try:
        datetime.strptime(time_str, time_format)
        return time_str
    except ValueError:
        raise ValidationError(f"{field_name} must be in format {time_format} (e.g., '09:00')")


def validate_name(name: str, field_name: str = "Name") -> str:
    """
    Validate person name (letters in any script, spaces, apostrophes, hyphens)

    Raises:
        ValidationError: If name format is invalid
    """
    name = validate_required(name, field_name)
    name = validate_length(name, field_name, min_length=1, max_length=100)

    if not re.match(r"^[\w\s'\-\,\.]+$", name) or re.search(r'[\d_]', name):
        raise ValidationError(f"{field_name} can only contain letters, spaces, apostrophes, hyphens, periods, and commas")

    return name.strip()


def validate_username(username: str) -> str:
    """
    Validate username format

    Raises:
        ValidationError: If username format is invalid
    """
    username = validate_required(username, "Username")
    username = username.strip().lower()
    username = validate_length(username, "Username", min_length=3, max_length=100)

    if not re.match(r'^[a-z0-9_.\-]+$', username):
        raise ValidationError("Username can only contain lowercase letters, numbers, dots, dashes, and underscores")

    return username


def validate_password(password: str, min_length: int = 6) -> str:
    """
    Validate password (basic validation)

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    password = validate_required(password, "Password")
    password = validate_length(password, "Password", min_length=min_length, max_length=128)

    return password


def validate_base64_image(image_data: str, field_name: str = "Image") -> str:
    """
    Validate base64 image data

    Args:
        image_data: Base64 image string, with or without a data URL prefix
        field_name: Name of the field for error messages

    Returns:
        Base64 payload without the data URL prefix

    Raises:
        ValidationError: If image data is invalid
    """
    if not isinstance(image_data, str) or not image_data.strip():
        raise ValidationError(f"{field_name} is required")

    # Remove data URL prefix if present
    if ',' in image_data:
        image_data = image_data.split(',', 1)[1]

    import base64
    import binascii
    try:
        base64.b64decode(image_data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(f"{field_name} is not a valid base64 image")

    return image_data


def validate_embedding(values: Any, field_name: str = "Descriptor", dimension: int = 0) -> List[float]:
    """
    Validate a face template: a non-empty list of finite numbers

    Args:
        values: Candidate vector (list or tuple)
        field_name: Name of the field for error messages
        dimension: Required length, or 0 to accept any length

    Returns:
        The vector as a list of floats

    Raises:
        ValidationError: If the vector is empty, non-numeric, non-finite or has the wrong length
    """
    if not isinstance(values, (list, tuple)) or len(values) == 0:
        raise ValidationError(f"{field_name} must be a non-empty list of numbers")

    vector = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{field_name} must contain only numbers")
        value = float(value)
        if not math.isfinite(value):
            raise ValidationError(f"{field_name} must contain only finite numbers")
        vector.append(value)

    if dimension and len(vector) != dimension:
        raise ValidationError(f"{field_name} must have exactly {dimension} values (got {len(vector)})")

    return vector


def sanitize_string(value: str, max_length: int = None) -> str:
    """
    Sanitize string input (strip whitespace, limit length)
    """
    if value is None:
        return ""

    sanitized = str(value).strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


def validate_json_object(data: Any) -> Dict[str, Any]:
    """
    Validate a parsed JSON request body

    Returns:
        The body as a dict ({} when the request had no JSON body)

    Raises:
        ValidationError: If the body is JSON but not an object
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def validate_employee_data(data: Dict[str, Any], partial: bool = False) -> Tuple[Dict[str, Any], list]:
    """
    Validate employee directory data

    Args:
        data: Dictionary containing the request payload
        partial: Only validate the fields present (PATCH semantics)

    Returns:
        Tuple of (validated_data, errors_list)
    """
    validated = {}
    errors = []

    def wanted(key):
        return not partial or key in data

    checks = [
        ('first_name', lambda v: validate_name(v, "First Name")),
        ('last_name', lambda v: validate_name(v, "Last Name")),
        ('email', lambda v: validate_email(v, "Email")),
        ('department', lambda v: validate_length(validate_required(v, "Department"), "Department", max_length=100)),
        ('position', lambda v: validate_length(validate_required(v, "Position"), "Position", max_length=100)),
    ]

    for key, check in checks:
        if not wanted(key):
            continue
        try:
            validated[key] = check(data.get(key))
        except ValidationError as e:
            errors.append(str(e))

    if 'photo_url' in data:
        validated['photo_url'] = sanitize_string(data.get('photo_url')) or None

    if 'status' in data or not partial:
        status = sanitize_string(data.get('status', 'active')).lower() or 'active'
        if status not in EMPLOYEE_STATUSES:
            errors.append(f"Status must be one of: {', '.join(EMPLOYEE_STATUSES)}")
        else:
            validated['status'] = status

    return validated, errors
