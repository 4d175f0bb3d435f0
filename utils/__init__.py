"""
Utility modules for the Face Attendance service
"""
from .logger import get_logger, setup_logger
from .validators import (
    ValidationError,
    validate_required,
    validate_email,
    validate_integer,
    validate_date,
    validate_time,
    validate_name,
    validate_username,
    validate_password,
    validate_embedding,
    validate_json_object,
    sanitize_string,
    validate_employee_data
)

__all__ = [
    'get_logger',
    'setup_logger',
    'ValidationError',
    'validate_required',
    'validate_email',
    'validate_integer',
    'validate_date',
    'validate_time',
    'validate_name',
    'validate_username',
    'validate_password',
    'validate_embedding',
    'validate_json_object',
    'sanitize_string',
    'validate_employee_data'
]
